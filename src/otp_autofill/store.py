"""SQLite-backed store of linked accounts and their cached tokens."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from otp_autofill import constants
from otp_autofill.models import Account

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    email TEXT PRIMARY KEY,
    display_name TEXT,
    access_token TEXT,
    expires_at REAL,
    refresh_token TEXT
);
"""

_UPSERT_SQL = """
INSERT INTO accounts (email, display_name, access_token, expires_at, refresh_token)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT(email) DO UPDATE SET
    display_name = excluded.display_name,
    access_token = excluded.access_token,
    expires_at = excluded.expires_at,
    refresh_token = excluded.refresh_token
"""


def _row_to_account(row: sqlite3.Row) -> Account:
    return Account(
        email=row["email"],
        display_name=row["display_name"] or row["email"],
        access_token=row["access_token"] or "",
        expires_at=row["expires_at"] or 0.0,
        refresh_token=row["refresh_token"],
    )


class AccountStore:
    """Keyed collection of accounts, one record per email.

    Every write replaces a whole record, so a background scan and a
    user-requested scan refreshing the same token can interleave safely:
    the last write wins.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or constants.ACCOUNTS_DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        # Shared between the CLI thread and request worker threads.
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_CREATE_TABLES_SQL)

    # --- public API ---

    def list(self) -> list[Account]:
        """Return all accounts in the order they were first linked."""
        rows = self._conn.execute("SELECT * FROM accounts ORDER BY rowid").fetchall()
        return [_row_to_account(r) for r in rows]

    def get(self, email: str) -> Account | None:
        row = self._conn.execute(
            "SELECT * FROM accounts WHERE email = ?", (email,)
        ).fetchone()
        return _row_to_account(row) if row else None

    def upsert(self, account: Account) -> None:
        """Insert the account, replacing any record with the same email."""
        with self._conn:
            self._conn.execute(
                _UPSERT_SQL,
                (
                    account.email,
                    account.display_name,
                    account.access_token,
                    account.expires_at,
                    account.refresh_token,
                ),
            )

    def remove(self, email: str) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM accounts WHERE email = ?", (email,))

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> AccountStore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
