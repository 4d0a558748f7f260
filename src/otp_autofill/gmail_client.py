"""Gmail API client: recent-message scanning and message text extraction."""

from __future__ import annotations

import base64
import binascii
import re
import time
from typing import Callable

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from loguru import logger

from otp_autofill.constants import MAX_EMAILS_TO_SCAN, MAX_PART_DEPTH, SCAN_WINDOW_SECONDS
from otp_autofill.errors import ProviderError
from otp_autofill.extractor import extract_otp, looks_like_otp_email
from otp_autofill.models import OTPCandidate

_ANGLE_ADDR_RE = re.compile(r"<([^>]+)>")
_BARE_ADDR_RE = re.compile(r"(\S+@\S+)")
_NAME_RE = re.compile(r'^"?([^"<]+)"?\s*<')
_DOMAIN_RE = re.compile(r"@(.+)")

_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_NBSP_RE = re.compile(r"&nbsp;", re.IGNORECASE)
_AMP_RE = re.compile(r"&amp;", re.IGNORECASE)
_LT_RE = re.compile(r"&lt;", re.IGNORECASE)
_GT_RE = re.compile(r"&gt;", re.IGNORECASE)
_ENTITY_RE = re.compile(r"&#?\w+;")
_WHITESPACE_RE = re.compile(r"\s+")


def parse_sender(from_value: str) -> tuple[str, str]:
    """Parse a From header into (display name, email address).

    Handles formats like:
      '"Acme" <no-reply@acme.com>' -> ("Acme", "no-reply@acme.com")
      "<no-reply@acme.com>"        -> ("acme.com", "no-reply@acme.com")
      "no-reply@acme.com"          -> ("acme.com", "no-reply@acme.com")
    """
    m = _ANGLE_ADDR_RE.search(from_value) or _BARE_ADDR_RE.search(from_value)
    email = m.group(1) if m else from_value

    name_match = _NAME_RE.match(from_value)
    name = name_match.group(1).strip() if name_match else ""
    if not name:
        domain = _DOMAIN_RE.search(email)
        name = domain.group(1) if domain else email
    return name, email


def decode_base64url(data: str) -> str:
    """Decode a base64url body, tolerating missing padding.

    Text that is not valid UTF-8 falls back to a raw byte-for-byte decode;
    undecodable base64 yields an empty string.
    """
    try:
        raw = base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
    except (binascii.Error, ValueError):
        return ""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def strip_html(html: str) -> str:
    """Reduce an HTML document to its visible text on one line."""
    text = _STYLE_RE.sub(" ", html)
    text = _SCRIPT_RE.sub(" ", text)
    text = _TAG_RE.sub(" ", text)
    text = _NBSP_RE.sub(" ", text)
    text = _AMP_RE.sub("&", text)
    text = _LT_RE.sub("<", text)
    text = _GT_RE.sub(">", text)
    text = _ENTITY_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def extract_text_from_payload(payload: dict, depth: int = 0) -> str:
    """Collect the text of every plain/HTML part of a message payload, in order."""
    if depth > MAX_PART_DEPTH:
        logger.debug("Skipping message parts nested deeper than {}", MAX_PART_DEPTH)
        return ""

    texts: list[str] = []
    for part in payload.get("parts") or [payload]:
        mime_type = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")
        if data and mime_type == "text/plain":
            texts.append(decode_base64url(data))
        elif data and mime_type == "text/html":
            texts.append(strip_html(decode_base64url(data)))
        if part.get("parts"):
            texts.append(extract_text_from_payload(part, depth + 1))
    return " ".join(texts)


def _header(headers: list[dict], name: str) -> str:
    for h in headers:
        if h.get("name") == name:
            return h.get("value", "")
    return ""


def build_gmail_service(token: str):
    """Return a Gmail API service authorized with a bare bearer token."""
    return build("gmail", "v1", credentials=Credentials(token=token), cache_discovery=False)


class MailScanner:
    """Finds verification codes in the last few minutes of one mailbox."""

    def __init__(
        self,
        service_factory: Callable[[str], object] = build_gmail_service,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._service_factory = service_factory
        self._clock = clock

    def list_recent_message_ids(self, service) -> list[str]:
        after = int(self._clock() - SCAN_WINDOW_SECONDS)
        resp = (
            service.users()
            .messages()
            .list(userId="me", q=f"after:{after}", maxResults=MAX_EMAILS_TO_SCAN)
            .execute()
        )
        return [m["id"] for m in resp.get("messages", [])]

    def scan(self, token: str, account_email: str) -> list[OTPCandidate]:
        """Return a candidate for every recent message that carries a code.

        Raises ProviderError when the API answers with an error status.
        """
        service = self._service_factory(token)
        try:
            ids = self.list_recent_message_ids(service)
            codes: list[OTPCandidate] = []
            for msg_id in ids:
                msg = service.users().messages().get(userId="me", id=msg_id, format="full").execute()
                candidate = self._candidate_from_message(msg, account_email)
                if candidate:
                    codes.append(candidate)
        except HttpError as exc:
            raise ProviderError(exc.resp.status) from exc

        logger.debug("{}: {} recent messages, {} codes", account_email, len(ids), len(codes))
        return codes

    def _candidate_from_message(self, msg: dict, account_email: str) -> OTPCandidate | None:
        payload = msg.get("payload") or {}
        headers = payload.get("headers") or []
        subject = _header(headers, "Subject")
        from_value = _header(headers, "From")
        snippet = msg.get("snippet") or ""

        if not looks_like_otp_email(subject, snippet):
            return None

        body = extract_text_from_payload(payload)
        code = extract_otp(f"{subject} {snippet} {body}")
        if not code:
            return None

        name, email = parse_sender(from_value)
        return OTPCandidate(
            code=code,
            sender_name=name,
            sender_email=email,
            account_email=account_email,
            timestamp_ms=int(msg.get("internalDate") or 0),
        )
