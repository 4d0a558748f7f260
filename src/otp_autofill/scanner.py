"""Scan orchestration - tokens, per-account scans, merged ranking."""

from __future__ import annotations

import threading
from typing import Callable

from loguru import logger

from otp_autofill.auth import AuthBroker
from otp_autofill.constants import POLL_INTERVAL_SECONDS
from otp_autofill.errors import NoAccountsError, OTPAutofillError
from otp_autofill.gmail_client import MailScanner
from otp_autofill.models import OTPCandidate
from otp_autofill.store import AccountStore


def rank_candidates(candidates: list[OTPCandidate]) -> list[OTPCandidate]:
    """Newest first; candidates with equal timestamps keep their order."""
    return sorted(candidates, key=lambda c: c.timestamp_ms, reverse=True)


class ScanOrchestrator:
    """Runs the mail scan over every linked account."""

    def __init__(self, store: AccountStore, broker: AuthBroker, scanner: MailScanner) -> None:
        self.store = store
        self.broker = broker
        self.scanner = scanner

    def scan_all(self, filter_email: str | None = None) -> list[OTPCandidate]:
        """Scan all accounts (or only ``filter_email``) and rank the codes found.

        Accounts are scanned one after another.  A failing account is
        logged and skipped so the others still report their codes.
        """
        accounts = self.store.list()
        if not accounts:
            raise NoAccountsError()

        if filter_email:
            accounts = [a for a in accounts if a.email == filter_email]

        all_codes: list[OTPCandidate] = []
        for account in accounts:
            try:
                token = self.broker.get_valid_token(account)
                all_codes.extend(self.scanner.scan(token, account.email))
            except Exception as exc:  # noqa: BLE001
                logger.warning("[OTP] {}: {}", account.email, exc)

        return rank_candidates(all_codes)


def poll(
    orchestrator: ScanOrchestrator,
    on_codes: Callable[[list[OTPCandidate]], None],
    stop_event: threading.Event,
    interval: float = POLL_INTERVAL_SECONDS,
    max_runs: int | None = None,
) -> int:
    """Scan every ``interval`` seconds until ``stop_event`` is set.

    Returns the number of scans performed.
    """
    runs = 0
    while not stop_event.is_set():
        try:
            codes = orchestrator.scan_all()
        except OTPAutofillError as exc:
            logger.info("Background scan skipped: {}", exc)
            codes = []

        if codes:
            on_codes(codes)

        runs += 1
        if max_runs is not None and runs >= max_runs:
            break
        stop_event.wait(interval)
    return runs
