"""Tests for the Gmail client: text extraction, sender parsing and scanning."""

import base64
from unittest.mock import MagicMock

import pytest
from googleapiclient.errors import HttpError

from otp_autofill import gmail_client
from otp_autofill.constants import MAX_PART_DEPTH
from otp_autofill.errors import ProviderError
from otp_autofill.gmail_client import (
    MailScanner,
    decode_base64url,
    extract_text_from_payload,
    parse_sender,
    strip_html,
)

from conftest import NOW, b64url, fake_gmail_service, make_message


def test_decode_base64url_without_padding():
    assert decode_base64url(b64url("Your code is 123456")) == "Your code is 123456"


def test_decode_base64url_utf8():
    assert decode_base64url(b64url("Código: 1234 ✓")) == "Código: 1234 ✓"


def test_decode_base64url_invalid_utf8_falls_back_to_raw():
    data = base64.urlsafe_b64encode(b"code \xff\xfe 1234").decode().rstrip("=")
    assert decode_base64url(data) == "code \xff\xfe 1234"


def test_decode_base64url_garbage_is_empty():
    assert decode_base64url("a") == ""


def test_strip_html():
    html = (
        "<html><head><style>.x { color: red }</style><script>var code = 999999;</script></head>"
        "<body><p>Your&nbsp;code&nbsp;is <b>482913</b></p><p>Tom &amp; Jerry &copy; &lt;3</p></body></html>"
    )
    assert strip_html(html) == "Your code is 482913 Tom & Jerry <3"


def test_extract_text_single_part_payload():
    payload = {"mimeType": "text/plain", "body": {"data": b64url("hello 1234")}}
    assert extract_text_from_payload(payload) == "hello 1234"


def test_extract_text_nested_parts_in_order():
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": b64url("plain text")}},
                    {"mimeType": "text/html", "body": {"data": b64url("<p>html <i>text</i></p>")}},
                ],
            },
            {"mimeType": "image/png", "body": {"attachmentId": "att1"}},
            {"mimeType": "text/plain", "body": {"data": b64url("footer")}},
        ],
    }
    text = extract_text_from_payload(payload)
    assert text.split() == ["plain", "text", "html", "text", "footer"]


def test_extract_text_depth_bound():
    leaf = {"mimeType": "text/plain", "body": {"data": b64url("deep")}}
    payload = leaf
    for _ in range(MAX_PART_DEPTH + 5):
        payload = {"mimeType": "multipart/mixed", "parts": [payload]}
    assert "deep" not in extract_text_from_payload(payload)


def test_extract_text_bad_data_is_empty():
    payload = {"mimeType": "text/plain", "body": {"data": "a"}}
    assert extract_text_from_payload(payload) == ""


@pytest.mark.parametrize(
    "header, expected",
    [
        ('"Acme Security" <no-reply@acme.com>', ("Acme Security", "no-reply@acme.com")),
        ("GitHub <noreply@github.com>", ("GitHub", "noreply@github.com")),
        ("<alerts@bank.example>", ("bank.example", "alerts@bank.example")),
        ("alerts@bank.example", ("bank.example", "alerts@bank.example")),
        ("Mailer Daemon", ("Mailer Daemon", "Mailer Daemon")),
        ("", ("", "")),
    ],
)
def test_parse_sender(header, expected):
    assert parse_sender(header) == expected


def _scanner(messages):
    service = fake_gmail_service(messages)
    return MailScanner(service_factory=lambda token: service, clock=lambda: NOW), service


def test_scan_emits_candidate():
    msg = make_message(
        "m1",
        subject="Your verification code",
        body="Use code 482913 to sign in.",
        sender='"Acme" <no-reply@acme.com>',
        internal_date=1_700_000_100_000,
    )
    scanner, _ = _scanner([msg])
    codes = scanner.scan("tok", "alice@gmail.com")
    assert len(codes) == 1
    c = codes[0]
    assert c.code == "482913"
    assert c.sender_name == "Acme"
    assert c.sender_email == "no-reply@acme.com"
    assert c.account_email == "alice@gmail.com"
    assert c.timestamp_ms == 1_700_000_100_000


def test_scan_queries_recent_window():
    scanner, service = _scanner([])
    assert scanner.scan("tok", "alice@gmail.com") == []
    list_call = service.users.return_value.messages.return_value.list
    list_call.assert_called_once_with(userId="me", q=f"after:{int(NOW) - 600}", maxResults=10)


def test_gate_skips_unrelated_subject(monkeypatch):
    """A message failing the header gate never reaches body decoding or extraction."""
    extract = MagicMock(return_value="999999")
    walk = MagicMock(return_value="")
    monkeypatch.setattr(gmail_client, "extract_otp", extract)
    monkeypatch.setattr(gmail_client, "extract_text_from_payload", walk)

    msg = make_message("m1", subject="Your invoice is ready", body="Your code: 123456")
    scanner, _ = _scanner([msg])
    assert scanner.scan("tok", "alice@gmail.com") == []
    extract.assert_not_called()
    walk.assert_not_called()


def test_gate_uses_snippet():
    msg = make_message(
        "m1", subject="Sign-in attempt", snippet="Your one-time code is 661204", body=""
    )
    scanner, _ = _scanner([msg])
    assert [c.code for c in scanner.scan("tok", "a@b.c")] == ["661204"]


def test_html_body_extracted():
    msg = make_message(
        "m1",
        subject="Verify your account",
        body="<html><body><p>Your code:</p><h1>735102</h1></body></html>",
        mime_type="text/html",
    )
    scanner, _ = _scanner([msg])
    assert [c.code for c in scanner.scan("tok", "a@b.c")] == ["735102"]


def test_message_without_code_dropped():
    msg = make_message("m1", subject="Your one-time link", body="Click the link below.")
    scanner, _ = _scanner([msg])
    assert scanner.scan("tok", "a@b.c") == []


def test_provider_error():
    service = MagicMock()
    resp = MagicMock(status=401, reason="Unauthorized")
    service.users.return_value.messages.return_value.list.return_value.execute.side_effect = (
        HttpError(resp, b"")
    )
    scanner = MailScanner(service_factory=lambda token: service, clock=lambda: NOW)
    with pytest.raises(ProviderError) as excinfo:
        scanner.scan("tok", "a@b.c")
    assert excinfo.value.status == 401
