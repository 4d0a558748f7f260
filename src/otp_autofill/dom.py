"""Narrow access to an untrusted page: query, read, mutate, click.

Two backends implement the same small surface:

* ``PlaywrightDocument`` drives the live page of a running browser.
* ``SoupDocument`` reads a saved HTML file.  It has no layout engine, so
  visibility is approximated from ``hidden``, ``type="hidden"`` and inline
  ``display: none`` on the element and its ancestors.

Lookups return ``None`` or an empty list when nothing matches; a missing
element is an ordinary outcome, never an error.
"""

from __future__ import annotations

import re
from contextlib import contextmanager
from typing import Iterator, Protocol

from bs4 import BeautifulSoup, Tag
from loguru import logger
from playwright.sync_api import ElementHandle, Page, sync_playwright

from otp_autofill.errors import OTPAutofillError


class Element(Protocol):
    tag_name: str

    def get_attribute(self, name: str) -> str | None: ...

    def text_content(self) -> str: ...

    def value(self) -> str: ...

    def is_visible(self) -> bool: ...

    def closest(self, selector: str) -> Element | None: ...

    def parent(self) -> Element | None: ...

    def query_selector(self, selector: str) -> Element | None: ...

    def query_selector_all(self, selector: str) -> list[Element]: ...

    def focus(self) -> None: ...

    def set_native_value(self, value: str) -> None: ...

    def dispatch_event(self, event_type: str) -> None: ...

    def click(self) -> None: ...


class Document(Protocol):
    def query_selector(self, selector: str) -> Element | None: ...

    def query_selector_all(self, selector: str) -> list[Element]: ...

    def body(self) -> Element | None: ...

    def wait(self, seconds: float) -> None: ...


def describe(element: Element) -> str:
    """Short human-readable label such as ``input#otp[name=code]``."""
    label = element.tag_name
    if element.get_attribute("id"):
        label += f"#{element.get_attribute('id')}"
    name = element.get_attribute("name")
    if name:
        label += f"[name={name}]"
    return label


# --- Playwright backend ---

_IS_VISIBLE_JS = """
(el) => {
  const rect = el.getBoundingClientRect();
  return rect.width > 0 && rect.height > 0 && window.getComputedStyle(el).display !== "none";
}
"""

# Calls the prototype setter so React/Vue/Angular controlled inputs see the change.
_SET_NATIVE_VALUE_JS = """
(el, value) => {
  const proto = el instanceof HTMLTextAreaElement
    ? HTMLTextAreaElement.prototype
    : HTMLInputElement.prototype;
  const setter = Object.getOwnPropertyDescriptor(proto, "value")?.set;
  if (setter) setter.call(el, value);
  else el.value = value;
}
"""


class PlaywrightElement:
    def __init__(self, handle: ElementHandle) -> None:
        self._handle = handle
        self.tag_name = handle.evaluate("(el) => el.tagName.toLowerCase()")

    def _wrap_js(self, script: str, arg=None) -> PlaywrightElement | None:
        found = self._handle.evaluate_handle(script, arg).as_element()
        return PlaywrightElement(found) if found else None

    def get_attribute(self, name: str) -> str | None:
        return self._handle.get_attribute(name)

    def text_content(self) -> str:
        return self._handle.text_content() or ""

    def value(self) -> str:
        return self._handle.evaluate("(el) => (el.value == null ? '' : String(el.value))")

    def is_visible(self) -> bool:
        return bool(self._handle.evaluate(_IS_VISIBLE_JS))

    def closest(self, selector: str) -> PlaywrightElement | None:
        return self._wrap_js("(el, sel) => el.closest(sel)", selector)

    def parent(self) -> PlaywrightElement | None:
        return self._wrap_js("(el) => el.parentElement")

    def query_selector(self, selector: str) -> PlaywrightElement | None:
        found = self._handle.query_selector(selector)
        return PlaywrightElement(found) if found else None

    def query_selector_all(self, selector: str) -> list[PlaywrightElement]:
        return [PlaywrightElement(h) for h in self._handle.query_selector_all(selector)]

    def focus(self) -> None:
        self._handle.focus()

    def set_native_value(self, value: str) -> None:
        self._handle.evaluate(_SET_NATIVE_VALUE_JS, value)

    def dispatch_event(self, event_type: str) -> None:
        self._handle.evaluate(
            "(el, type) => el.dispatchEvent(new Event(type, { bubbles: true }))", event_type
        )

    def click(self) -> None:
        self._handle.evaluate("(el) => el.click()")


class PlaywrightDocument:
    def __init__(self, page: Page) -> None:
        self.page = page

    def query_selector(self, selector: str) -> PlaywrightElement | None:
        found = self.page.query_selector(selector)
        return PlaywrightElement(found) if found else None

    def query_selector_all(self, selector: str) -> list[PlaywrightElement]:
        return [PlaywrightElement(h) for h in self.page.query_selector_all(selector)]

    def body(self) -> PlaywrightElement | None:
        return self.query_selector("body")

    def wait(self, seconds: float) -> None:
        self.page.wait_for_timeout(seconds * 1000)


def _pick_active_page(pages: list[Page]) -> Page | None:
    for page in pages:
        try:
            if page.evaluate("document.visibilityState") == "visible":
                return page
        except Exception as exc:  # noqa: BLE001
            logger.debug("Skipping page {}: {}", page.url, exc)
    return pages[-1] if pages else None


@contextmanager
def open_active_page(cdp_url: str) -> Iterator[PlaywrightDocument]:
    """Attach to a running Chromium over CDP and yield its visible tab."""
    with sync_playwright() as pw:
        browser = pw.chromium.connect_over_cdp(cdp_url)
        try:
            pages = [p for ctx in browser.contexts for p in ctx.pages]
            page = _pick_active_page(pages)
            if page is None:
                raise OTPAutofillError("No active tab")
            logger.debug("Active tab: {}", page.url)
            yield PlaywrightDocument(page)
        finally:
            browser.close()


# --- Static HTML backend ---

_DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)


class SoupElement:
    def __init__(self, tag: Tag, events: list[tuple[SoupElement, str]]) -> None:
        self.tag = tag
        self.tag_name = tag.name
        self._events = events

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SoupElement) and other.tag is self.tag

    def __hash__(self) -> int:
        return id(self.tag)

    def get_attribute(self, name: str) -> str | None:
        value = self.tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    def text_content(self) -> str:
        return self.tag.get_text()

    def value(self) -> str:
        return self.tag.get("value", "")

    def is_visible(self) -> bool:
        if self.tag.name == "input" and (self.tag.get("type") or "").lower() == "hidden":
            return False
        node: Tag | None = self.tag
        while isinstance(node, Tag):
            if node.has_attr("hidden"):
                return False
            if _DISPLAY_NONE_RE.search(node.get("style") or ""):
                return False
            node = node.parent
        return True

    def closest(self, selector: str) -> SoupElement | None:
        found = self.tag.css.closest(selector)
        return SoupElement(found, self._events) if found else None

    def parent(self) -> SoupElement | None:
        parent = self.tag.parent
        if not isinstance(parent, Tag) or parent.name == "[document]":
            return None
        return SoupElement(parent, self._events)

    def query_selector(self, selector: str) -> SoupElement | None:
        found = self.tag.css.select_one(selector)
        return SoupElement(found, self._events) if found else None

    def query_selector_all(self, selector: str) -> list[SoupElement]:
        return [SoupElement(t, self._events) for t in self.tag.css.select(selector)]

    def focus(self) -> None:
        self._events.append((self, "focus"))

    def set_native_value(self, value: str) -> None:
        self.tag["value"] = value

    def dispatch_event(self, event_type: str) -> None:
        self._events.append((self, event_type))

    def click(self) -> None:
        self._events.append((self, "click"))


class SoupDocument:
    """A saved page.  Focus, events and clicks are recorded in ``events``."""

    def __init__(self, html: str) -> None:
        self.soup = BeautifulSoup(html, "html.parser")
        self.events: list[tuple[SoupElement, str]] = []

    def query_selector(self, selector: str) -> SoupElement | None:
        found = self.soup.css.select_one(selector)
        return SoupElement(found, self.events) if found else None

    def query_selector_all(self, selector: str) -> list[SoupElement]:
        return [SoupElement(t, self.events) for t in self.soup.css.select(selector)]

    def body(self) -> SoupElement | None:
        body = self.soup.body
        return SoupElement(body or self.soup, self.events)

    def wait(self, seconds: float) -> None:
        # Nothing reacts to input on a static page.
        pass
