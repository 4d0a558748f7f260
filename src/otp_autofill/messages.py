"""Request/response messaging between the CLI, the scanner and the page.

Every request is a dict with a ``type`` tag; every answer is
``{"ok": True, ...payload}`` or ``{"ok": False, "error": message}``.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import AbstractContextManager
from enum import Enum
from typing import Callable

from loguru import logger

from otp_autofill.auth import AuthBroker
from otp_autofill.constants import RESPONSE_TIMEOUT_SECONDS
from otp_autofill.dom import Document
from otp_autofill.errors import NoFieldFoundError
from otp_autofill.filler import FillController
from otp_autofill.scanner import ScanOrchestrator

NO_RESPONSE_ERROR = "No response from background. Try again."


class MessageType(str, Enum):
    GET_ACCOUNTS = "GET_ACCOUNTS"
    ADD_ACCOUNT = "ADD_ACCOUNT"
    REMOVE_ACCOUNT = "REMOVE_ACCOUNT"
    GET_OTP = "GET_OTP"
    FILL_CODE = "FILL_CODE"
    FILL_OTP = "FILL_OTP"


def _error(exc: BaseException) -> dict:
    return {"ok": False, "error": str(exc)}


def handle_page_message(document: Document, message: dict, auto_submit: bool = True) -> dict:
    """Answer a page-directed FILL_OTP request against ``document``."""
    if message.get("type") != MessageType.FILL_OTP:
        return {"ok": False, "error": f"Unknown message type: {message.get('type')}"}

    code = message.get("code") or ""
    try:
        outcome = FillController(document).fill(
            code,
            auto_submit=auto_submit,
            on_filled=lambda _: logger.info("Filled {}", code),
        )
    except NoFieldFoundError as exc:
        logger.info("No OTP field found on this page.")
        return _error(exc)
    return {"ok": True, "submitted": outcome.submitted}


class MessageRouter:
    """Dispatches typed requests to their handlers."""

    def __init__(
        self,
        broker: AuthBroker,
        orchestrator: ScanOrchestrator,
        page_opener: Callable[[], AbstractContextManager[Document]] | None = None,
        timeout: float = RESPONSE_TIMEOUT_SECONDS,
    ) -> None:
        self.broker = broker
        self.orchestrator = orchestrator
        self.page_opener = page_opener
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="otp-request")
        self._handlers: dict[MessageType, Callable[[dict], dict]] = {
            MessageType.GET_ACCOUNTS: self._get_accounts,
            MessageType.ADD_ACCOUNT: self._add_account,
            MessageType.REMOVE_ACCOUNT: self._remove_account,
            MessageType.GET_OTP: self._get_otp,
            MessageType.FILL_CODE: self._fill_code,
        }

    def dispatch(self, message: dict) -> dict:
        """Run the handler for ``message`` and wrap any failure as an error answer."""
        try:
            handler = self._handlers[MessageType(message.get("type"))]
        except (KeyError, ValueError):
            return {"ok": False, "error": f"Unknown message type: {message.get('type')}"}

        try:
            return handler(message)
        except Exception as exc:  # noqa: BLE001
            logger.debug("{} failed: {}", message.get("type"), exc)
            return _error(exc)

    def request(self, message: dict, timeout: float | None = None) -> dict:
        """Dispatch on a worker thread, giving up after ``timeout`` seconds.

        The handler keeps running after a timeout; only the caller stops
        waiting for it.
        """
        future = self._executor.submit(self.dispatch, message)
        try:
            return future.result(timeout=self.timeout if timeout is None else timeout)
        except FutureTimeoutError:
            logger.warning("{} timed out", message.get("type"))
            return {"ok": False, "error": NO_RESPONSE_ERROR}

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    # --- handlers ---

    def _get_accounts(self, message: dict) -> dict:
        return {"ok": True, "accounts": [a.summary() for a in self.broker.store.list()]}

    def _add_account(self, message: dict) -> dict:
        account = self.broker.add_account()
        return {"ok": True, "account": account.summary()}

    def _remove_account(self, message: dict) -> dict:
        self.broker.remove_account(message["email"])
        return {"ok": True}

    def _get_otp(self, message: dict) -> dict:
        codes = self.orchestrator.scan_all(message.get("filterEmail"))
        return {"ok": True, "codes": [c.to_dict() for c in codes]}

    def _fill_code(self, message: dict) -> dict:
        if self.page_opener is None:
            return {"ok": False, "error": "No active tab"}
        page_message = {"type": MessageType.FILL_OTP.value, "code": message["code"]}
        with self.page_opener() as document:
            return handle_page_message(document, page_message, message.get("autoSubmit", True))
