"""Authentication helpers: Google OAuth flows and per-account token lifecycle."""

from __future__ import annotations

import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Protocol

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build
from loguru import logger
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from otp_autofill import constants
from otp_autofill.errors import AuthCancelledError, TokenExpiredError
from otp_autofill.models import Account, AuthGrant
from otp_autofill.store import AccountStore

_TOKEN_URI = "https://oauth2.googleapis.com/token"


class AuthorizationService(Protocol):
    """The external authorization flow, seen only through its results."""

    def interactive(self) -> AuthGrant: ...

    def silent(self, account: Account) -> AuthGrant: ...

    def identity(self, access_token: str) -> tuple[str, str]: ...


def _grant_from_credentials(creds: Credentials) -> AuthGrant:
    if creds.expiry is not None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        expires_in = int((creds.expiry - now).total_seconds())
    else:
        expires_in = constants.DEFAULT_TOKEN_LIFETIME_SECONDS
    return AuthGrant(
        access_token=creds.token,
        expires_in=expires_in,
        refresh_token=creds.refresh_token,
    )


@retry(
    retry=retry_if_exception_type(TransportError),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(constants.REFRESH_ATTEMPTS),
    reraise=True,
)
def _refresh(creds: Credentials) -> None:
    creds.refresh(Request())


class GoogleAuthorizationService:
    """Google OAuth2 installed-app flow.

    The interactive flow opens a browser with the account chooser.  The
    silent flow reuses the refresh token issued for one account, so it
    never prompts.  Both need the OAuth client credentials downloaded from
    the Google Cloud Console at CREDENTIALS_PATH.
    """

    def __init__(self, credentials_path: Path | None = None, scopes: list[str] | None = None) -> None:
        self.credentials_path = credentials_path or constants.CREDENTIALS_PATH
        self.scopes = scopes or constants.SCOPES

    def _require_credentials_file(self) -> None:
        if not self.credentials_path.exists():
            raise FileNotFoundError(
                f"Credentials file not found at {self.credentials_path}.\n"
                "Download your OAuth client credentials from the Google Cloud Console "
                "and save them as:\n"
                f"  {self.credentials_path}"
            )

    def _client_config(self) -> dict:
        self._require_credentials_file()
        config = json.loads(self.credentials_path.read_text())
        return config.get("installed") or config.get("web") or {}

    def interactive(self) -> AuthGrant:
        self._require_credentials_file()
        flow = InstalledAppFlow.from_client_secrets_file(str(self.credentials_path), self.scopes)
        try:
            creds = flow.run_local_server(port=0, prompt="select_account")
        except Exception as exc:  # noqa: BLE001
            raise AuthCancelledError(str(exc) or "Auth cancelled") from exc
        if not creds or not creds.token:
            raise AuthCancelledError("No token received")
        return _grant_from_credentials(creds)

    def silent(self, account: Account) -> AuthGrant:
        if not account.refresh_token:
            raise RefreshError(f"No refresh token stored for {account.email}")
        client = self._client_config()
        creds = Credentials(
            token=None,
            refresh_token=account.refresh_token,
            token_uri=client.get("token_uri", _TOKEN_URI),
            client_id=client.get("client_id"),
            client_secret=client.get("client_secret"),
            scopes=self.scopes,
        )
        _refresh(creds)
        return _grant_from_credentials(creds)

    def identity(self, access_token: str) -> tuple[str, str]:
        """Return (email, display name) of the signed-in user."""
        service = build(
            "oauth2", "v2", credentials=Credentials(token=access_token), cache_discovery=False
        )
        info = service.userinfo().get().execute()
        email = info["email"]
        return email, info.get("name") or email


class AuthBroker:
    """Hands out valid bearer tokens and links new accounts."""

    def __init__(
        self,
        store: AccountStore,
        authorizer: AuthorizationService | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.authorizer = authorizer or GoogleAuthorizationService()
        self._clock = clock

    def get_valid_token(self, account: Account) -> str:
        """Return a usable token for the account, refreshing it silently if needed.

        A cached token is reused while it stays valid for more than
        TOKEN_EXPIRY_BUFFER_SECONDS.  Otherwise a silent refresh is
        attempted; if that fails the account must be linked again, so no
        interactive flow is started here.
        """
        now = self._clock()
        if account.expires_at > now + constants.TOKEN_EXPIRY_BUFFER_SECONDS:
            return account.access_token

        logger.debug("Refreshing token for {}", account.email)
        try:
            grant = self.authorizer.silent(account)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Silent refresh failed for {}: {}", account.email, exc)
            raise TokenExpiredError(account.email) from exc

        account.access_token = grant.access_token
        account.expires_at = self._clock() + grant.expires_in
        if grant.refresh_token:
            account.refresh_token = grant.refresh_token
        self.store.upsert(account)
        return account.access_token

    def add_account(self) -> Account:
        """Run the interactive flow and store the signed-in account."""
        grant = self.authorizer.interactive()
        if not grant.access_token:
            raise AuthCancelledError("No token received")

        email, name = self.authorizer.identity(grant.access_token)
        previous = self.store.get(email)
        account = Account(
            email=email,
            display_name=name or email,
            access_token=grant.access_token,
            expires_at=self._clock() + grant.expires_in,
            refresh_token=grant.refresh_token or (previous.refresh_token if previous else None),
        )
        self.store.upsert(account)
        logger.info("Linked account {}", email)
        return account

    def remove_account(self, email: str) -> None:
        self.store.remove(email)
        logger.info("Unlinked account {}", email)
