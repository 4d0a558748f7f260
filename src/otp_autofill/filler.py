"""Injects a chosen code into the page and submits it."""

from __future__ import annotations

from typing import Callable

from loguru import logger

from otp_autofill.constants import SUBMIT_DELAY_SECONDS
from otp_autofill.dom import Document, Element, describe
from otp_autofill.errors import NoFieldFoundError, NoSubmitFoundError
from otp_autofill.locator import find_otp_field, find_submit_button
from otp_autofill.models import FillOutcome, FillState


class FillController:
    """IDLE -> FIELD_LOCATED -> VALUE_INJECTED -> SUBMIT_ATTEMPTED -> DONE."""

    def __init__(self, document: Document, submit_delay: float = SUBMIT_DELAY_SECONDS) -> None:
        self.document = document
        self.submit_delay = submit_delay

    def fill(
        self,
        code: str,
        auto_submit: bool = True,
        on_filled: Callable[[FillOutcome], None] | None = None,
    ) -> FillOutcome:
        """Fill ``code`` into the OTP field and, after a short delay, submit it.

        Raises NoFieldFoundError when the page has no plausible field.  A
        missing or failing submit control is not an error.
        """
        outcome = FillOutcome(code=code)

        field = find_otp_field(self.document)
        if field is None:
            raise NoFieldFoundError()
        outcome.state = FillState.FIELD_LOCATED
        logger.debug("OTP field: {}", describe(field))

        self._inject(field, code)
        outcome.state = FillState.VALUE_INJECTED
        if on_filled:
            on_filled(outcome)

        # Lets reactive frameworks process the input before anything is clicked.
        self.document.wait(self.submit_delay)

        if auto_submit:
            try:
                self._submit(field)
                outcome.submitted = True
            except NoSubmitFoundError:
                logger.debug("No submit control near {}", describe(field))
            except Exception as exc:  # noqa: BLE001
                logger.debug("Submit attempt failed: {}", exc)
            outcome.state = FillState.SUBMIT_ATTEMPTED

        outcome.state = FillState.DONE
        return outcome

    @staticmethod
    def _inject(field: Element, code: str) -> None:
        field.focus()
        field.set_native_value(code)
        field.dispatch_event("input")
        field.dispatch_event("change")

    def _submit(self, field: Element) -> None:
        button = find_submit_button(field, self.document)
        if button is None:
            raise NoSubmitFoundError()
        logger.debug("Clicking {}", describe(button))
        button.click()
