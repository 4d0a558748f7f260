"""Tests for display helpers."""

import pytest

from otp_autofill.display import time_ago

NOW = 1_700_000_000.0


@pytest.mark.parametrize(
    "age,expected",
    [
        (0, "just now"),
        (29, "just now"),
        (30, "30s ago"),
        (59, "59s ago"),
        (60, "1 min ago"),
        (59 * 60, "59 min ago"),
        (2 * 3600 + 5, "2h ago"),
    ],
)
def test_time_ago(age, expected):
    assert time_ago(int((NOW - age) * 1000), now=NOW) == expected


def test_time_ago_missing_timestamp():
    assert time_ago(None, now=NOW) == ""
    assert time_ago(0, now=NOW) == ""
