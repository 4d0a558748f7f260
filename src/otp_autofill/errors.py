"""Exception types raised across the scan and fill pipeline."""

from __future__ import annotations


class OTPAutofillError(Exception):
    """Base class for all errors raised by this package."""


class AuthCancelledError(OTPAutofillError):
    """The interactive authorization was dismissed or produced no token."""

    def __init__(self, reason: str = "Auth cancelled") -> None:
        super().__init__(reason)


class TokenExpiredError(OTPAutofillError):
    """Silent refresh failed; the account has to be linked again."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f"Token expired for {email}. Please re-add the account.")


class ProviderError(OTPAutofillError):
    """The mail provider answered with a non-2xx status."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"Gmail API {status}")


class NoAccountsError(OTPAutofillError):
    def __init__(self) -> None:
        super().__init__("no_accounts")


class NoFieldFoundError(OTPAutofillError):
    def __init__(self) -> None:
        super().__init__("No OTP field found")


class NoSubmitFoundError(OTPAutofillError):
    def __init__(self) -> None:
        super().__init__("No submit control found")
