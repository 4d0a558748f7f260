"""Extraction of a single best verification code from email text.

Patterns are tried strictly in priority order and the first pattern with
any match decides the result; later patterns are never consulted.

  1-3  keyword before the code ("Your code: 761283", "PIN: 761 283")
  4-6  "is <code>" ("Your code is 761283", "code is 123-ABC")
  7-9  code before a keyword within 80 chars
       ("761283\\nPlease enter the above one-time password")

Each group has a contiguous alphanumeric form, a digits-only form and a
two-group form separated by one hyphen or space.  Patterns 1, 4 and 8 are
case-sensitive: the keyword must be lower case and letters in the code
must be upper case.  The other patterns ignore case.
"""

from __future__ import annotations

import re

_KEYWORD = r"(?:code|otp|passcode|password|token|verify|verification|\bpin\b|2fa|two.?factor)"

OTP_PATTERNS: list[re.Pattern[str]] = [
    re.compile(_KEYWORD + r"[^A-Za-z0-9]{0,5}([A-Z0-9]{4,10})\b"),
    re.compile(_KEYWORD + r"[^0-9]{0,5}([0-9]{4,8})\b", re.IGNORECASE),
    re.compile(_KEYWORD + r"[^A-Za-z0-9]{0,5}([A-Z0-9]{2,6}[-\s][A-Z0-9]{2,6})\b", re.IGNORECASE),
    re.compile(r"\bis\s+([A-Z0-9]{4,10})\b"),
    re.compile(r"\bis\s+([0-9]{4,8})\b", re.IGNORECASE),
    re.compile(r"\bis\s+([A-Z0-9]{2,6}[-\s][A-Z0-9]{2,6})\b", re.IGNORECASE),
    re.compile(
        r"\b([0-9]{4,8})\b(?=[^0-9]{0,80}"
        r"(?:password|one.?time|passcode|otp|\bcode\b|verify|2fa|two.?factor|\bpin\b))",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b([A-Z0-9]{4,10})\b(?=[^A-Z0-9]{0,80}"
        r"(?:one.?time|passcode|otp|\bcode\b|verify|2fa|two.?factor|\bpin\b))"
    ),
    re.compile(
        r"\b([A-Z0-9]{2,6}[-\s][A-Z0-9]{2,6})\b(?=[^A-Z0-9]{0,80}"
        r"(?:password|one.?time|passcode|otp|\bcode\b|verify|2fa|\bpin\b))",
        re.IGNORECASE,
    ),
]

# Cheap pre-filter applied to subject + snippet before any body is decoded.
OTP_EMAIL_RE = re.compile(
    r"verif|\bcode\b|otp|one.?time|passcode|\bpin\b|2fa|two.?factor", re.IGNORECASE
)

_SEPARATOR_RE = re.compile(r"[-\s]")

PREFERRED_LENGTH = 6


def looks_like_otp_email(subject: str, snippet: str) -> bool:
    """Return True when the header text hints at a verification email."""
    return OTP_EMAIL_RE.search(f"{subject} {snippet}") is not None


def clean_code(raw: str) -> str:
    """Drop hyphen/space separators from a captured code."""
    return _SEPARATOR_RE.sub("", raw)


def extract_otp(text: str) -> str | None:
    """Return the best code in ``text``, or None.

    Within the winning pattern a 6-character code is preferred over
    whichever candidate comes first.
    """
    for pattern in OTP_PATTERNS:
        cleaned = [clean_code(m.group(1)) for m in pattern.finditer(text)]
        if not cleaned:
            continue
        for code in cleaned:
            if len(code) == PREFERRED_LENGTH:
                return code
        return cleaned[0]
    return None
