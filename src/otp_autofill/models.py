"""Data models for OTP Autofill."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass
class Account:
    """A linked mail account and its cached bearer token."""

    email: str  # Unique key
    display_name: str
    access_token: str
    expires_at: float  # Unix seconds
    refresh_token: str | None = None

    def summary(self) -> dict:
        return {"email": self.email, "name": self.display_name}


@dataclass(frozen=True)
class OTPCandidate:
    """A code extracted from one message, with its provenance."""

    code: str
    sender_name: str
    sender_email: str
    account_email: str
    timestamp_ms: int

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "senderName": self.sender_name,
            "senderEmail": self.sender_email,
            "accountEmail": self.account_email,
            "timestampMs": self.timestamp_ms,
        }


@dataclass(frozen=True)
class AuthGrant:
    """Outcome of an authorization flow."""

    access_token: str
    expires_in: int  # seconds, relative to the moment of the grant
    refresh_token: str | None = None


class FillState(Enum):
    IDLE = "idle"
    FIELD_LOCATED = "field_located"
    VALUE_INJECTED = "value_injected"
    SUBMIT_ATTEMPTED = "submit_attempted"
    DONE = "done"


@dataclass
class FillOutcome:
    """Where a fill request ended up."""

    code: str
    state: FillState = FillState.IDLE
    submitted: bool = False
