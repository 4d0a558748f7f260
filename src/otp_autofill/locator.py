"""Heuristics for finding the OTP input and its submit control on a page."""

from __future__ import annotations

import re

from otp_autofill.constants import (
    CLICKABLE_SELECTOR,
    FALLBACK_MAX_LENGTH,
    FALLBACK_MIN_LENGTH,
    FORM_SUBMIT_FALLBACK_SELECTOR,
    GENERIC_INPUT_SELECTOR,
    NEARBY_FORM_TEXT_LIMIT,
    OTP_FIELD_SELECTORS,
    SUBMIT_TYPED_SELECTOR,
)
from otp_autofill.dom import Document, Element

_FIELD_HINT_RE = re.compile(r"code|otp|verif|pin|passcode|token")
_SUBMIT_WORDS_RE = re.compile(
    r"verify|submit|confirm|continue|sign.?in|log.?in|enter|next|done|send|go", re.IGNORECASE
)


def _max_length(element: Element) -> int | None:
    try:
        return int(element.get_attribute("maxlength") or "")
    except ValueError:
        return None


def nearby_text(element: Element, document: Document) -> str:
    """Text that describes an input: its <label for>, else its own hints and form text."""
    element_id = element.get_attribute("id")
    if element_id:
        # Compared in Python so odd ids never end up inside a selector.
        for label in document.query_selector_all("label[for]"):
            if label.get_attribute("for") == element_id:
                return label.text_content()

    form = element.closest("form")
    form_text = form.text_content()[:NEARBY_FORM_TEXT_LIMIT] if form else ""
    return (
        (element.get_attribute("aria-label") or "")
        + (element.get_attribute("placeholder") or "")
        + (element.get_attribute("name") or "")
        + form_text
    )


def find_otp_field(document: Document) -> Element | None:
    """Return the most likely OTP input on the page, or None."""
    for selector in OTP_FIELD_SELECTORS:
        for element in document.query_selector_all(selector):
            if element.is_visible():
                return element

    for element in document.query_selector_all(GENERIC_INPUT_SELECTOR):
        max_len = _max_length(element)
        if max_len is None or not FALLBACK_MIN_LENGTH <= max_len <= FALLBACK_MAX_LENGTH:
            continue
        if _FIELD_HINT_RE.search(nearby_text(element, document).lower()) and element.is_visible():
            return element
    return None


def _submit_container(field: Element, document: Document) -> Element | None:
    form = field.closest("form")
    if form is not None:
        return form
    classed = field.closest("[class]")
    container = classed.parent() if classed is not None else None
    return container or document.body()


def _button_label(button: Element) -> str:
    return (button.text_content() or button.value() or button.get_attribute("aria-label") or "").strip()


def find_submit_button(field: Element, document: Document) -> Element | None:
    """Return the control that most likely submits ``field``, or None.

    Explicit submit buttons come first, then any clickable element whose
    label reads like a submit action.  As a last resort the enclosing
    form's first submit or untyped button is used.
    """
    container = _submit_container(field, document)
    if container is None:
        return None

    candidates = container.query_selector_all(SUBMIT_TYPED_SELECTOR)
    for button in container.query_selector_all(CLICKABLE_SELECTOR):
        if _SUBMIT_WORDS_RE.search(_button_label(button)):
            candidates.append(button)

    for button in candidates:
        if button.is_visible():
            return button

    form = field.closest("form")
    if form is not None:
        submit = form.query_selector(FORM_SUBMIT_FALLBACK_SELECTOR)
        if submit is not None and submit.is_visible():
            return submit
    return None
