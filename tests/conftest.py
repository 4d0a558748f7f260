"""Shared fixtures for tests."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest

from otp_autofill.models import Account
from otp_autofill.store import AccountStore

NOW = 1_700_000_000.0


def b64url(text: str) -> str:
    """Encode like the Gmail API: URL-safe alphabet, padding stripped."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_message(
    msg_id: str,
    subject: str,
    body: str = "",
    snippet: str = "",
    sender: str = "Acme <no-reply@acme.com>",
    internal_date: int = 1_700_000_000_000,
    mime_type: str = "text/plain",
) -> dict:
    return {
        "id": msg_id,
        "snippet": snippet,
        "internalDate": str(internal_date),
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": sender},
            ],
            "parts": [{"mimeType": mime_type, "body": {"data": b64url(body)}}],
        },
    }


def fake_gmail_service(messages: list[dict]) -> MagicMock:
    """A stand-in for the Gmail Resource serving ``messages``."""
    by_id = {m["id"]: m for m in messages}
    service = MagicMock()
    api = service.users.return_value.messages.return_value
    api.list.return_value.execute.return_value = (
        {"messages": [{"id": m["id"]} for m in messages]} if messages else {}
    )
    api.get.side_effect = lambda userId, id, format: MagicMock(
        execute=MagicMock(return_value=by_id[id])
    )
    return service


@pytest.fixture
def store(tmp_path) -> AccountStore:
    with AccountStore(db_path=tmp_path / "accounts.db") as s:
        yield s


@pytest.fixture
def fresh_account() -> Account:
    return Account(
        email="alice@gmail.com",
        display_name="Alice",
        access_token="token-alice",
        expires_at=NOW + 3600,
        refresh_token="refresh-alice",
    )


@pytest.fixture
def stale_account() -> Account:
    return Account(
        email="bob@gmail.com",
        display_name="Bob",
        access_token="token-bob-old",
        expires_at=NOW + 30,  # inside the 60 s safety buffer
        refresh_token="refresh-bob",
    )
