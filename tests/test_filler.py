"""Tests for FillController and the page-side FILL_OTP handler."""

import pytest

from otp_autofill.dom import SoupDocument, SoupElement
from otp_autofill.errors import NoFieldFoundError
from otp_autofill.filler import FillController
from otp_autofill.messages import handle_page_message
from otp_autofill.models import FillState

LOGIN_PAGE = """
<html><body>
  <form>
    <label for="otp">Verification code</label>
    <input id="otp" type="text" autocomplete="one-time-code">
    <button id="verify" type="submit">Verify</button>
  </form>
</body></html>
"""


class RecordingDocument(SoupDocument):
    """SoupDocument that also records waits."""

    def __init__(self, html: str) -> None:
        super().__init__(html)
        self.waits: list[float] = []

    def wait(self, seconds: float) -> None:
        self.waits.append(seconds)
        self.events.append((None, "wait"))


def test_fill_and_submit():
    doc = RecordingDocument(LOGIN_PAGE)
    outcome = FillController(doc).fill("482913")

    field = doc.query_selector("#otp")
    button = doc.query_selector("#verify")
    assert field.value() == "482913"
    assert doc.events == [
        (field, "focus"),
        (field, "input"),
        (field, "change"),
        (None, "wait"),
        (button, "click"),
    ]
    assert doc.waits == [0.4]
    assert outcome.submitted is True
    assert outcome.state is FillState.DONE


def test_fill_without_submit():
    doc = SoupDocument(LOGIN_PAGE)
    outcome = FillController(doc).fill("482913", auto_submit=False)
    assert outcome.submitted is False
    assert [event for _, event in doc.events] == ["focus", "input", "change"]


def test_on_filled_called_before_submit():
    doc = RecordingDocument(LOGIN_PAGE)
    states = []

    def on_filled(outcome):
        states.append(outcome.state)
        assert doc.waits == []

    FillController(doc).fill("482913", on_filled=on_filled)
    assert states == [FillState.VALUE_INJECTED]


def test_missing_submit_is_not_an_error():
    doc = SoupDocument('<div><input id="otp" name="otp"></div>')
    outcome = FillController(doc).fill("1234")
    assert outcome.submitted is False
    assert outcome.state is FillState.DONE
    assert doc.query_selector("#otp").value() == "1234"


def test_no_field():
    doc = SoupDocument("<form><input type='email' name='email'></form>")
    with pytest.raises(NoFieldFoundError):
        FillController(doc).fill("1234")
    assert doc.events == []


def test_page_message_ok():
    doc = SoupDocument(LOGIN_PAGE)
    response = handle_page_message(doc, {"type": "FILL_OTP", "code": "555111"})
    assert response == {"ok": True, "submitted": True}
    assert doc.query_selector("#otp").value() == "555111"


def test_page_message_no_field():
    doc = SoupDocument("<p>Welcome back</p>")
    response = handle_page_message(doc, {"type": "FILL_OTP", "code": "555111"})
    assert response == {"ok": False, "error": "No OTP field found"}


def test_page_message_unknown_type():
    response = handle_page_message(SoupDocument(""), {"type": "PING"})
    assert response["ok"] is False


def test_failing_click_keeps_fill(monkeypatch):
    def detached(self):
        raise RuntimeError("Element is not attached to the DOM")

    monkeypatch.setattr(SoupElement, "click", detached)
    doc = SoupDocument(LOGIN_PAGE)
    outcome = FillController(doc).fill("482913")

    assert doc.query_selector("#otp").value() == "482913"
    assert outcome.submitted is False
    assert outcome.state is FillState.DONE
