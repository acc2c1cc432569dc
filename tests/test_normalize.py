"""
Tests for contact field normalization.
"""

import pytest

from directory.normalize import (
    extract_hostname,
    normalize_email,
    normalize_phone,
    normalize_text,
    normalize_url,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0412 345 678", "+61412345678"),
        ("0412-345-678", "+61412345678"),
        ("(03) 9123 4567", "+61391234567"),
        ("+61 412 345 678", "+61412345678"),
        ("61 3 9123 4567", "+61391234567"),
    ],
)
def test_australian_numbers_normalize_to_e164(raw, expected):
    """Mobile and landline formats all land on +61."""
    assert normalize_phone(raw) == expected


def test_unrecognized_phone_returns_digits():
    assert normalize_phone("1300 123 456") == "1300123456"
    assert normalize_phone("123") == "123"


def test_empty_phone_is_none():
    assert normalize_phone(None) is None
    assert normalize_phone("") is None
    assert normalize_phone("call us") is None


def test_normalize_url_adds_scheme():
    assert normalize_url("smithplumbing.com.au") == "https://smithplumbing.com.au"
    assert normalize_url("http://smithplumbing.com.au") == "http://smithplumbing.com.au"
    assert normalize_url("  ") is None
    assert normalize_url(None) is None


def test_extract_hostname_strips_www_and_case():
    assert extract_hostname("https://www.SmithPlumbing.com.au/contact") == "smithplumbing.com.au"
    assert extract_hostname("www.smithplumbing.com.au") == "smithplumbing.com.au"
    assert extract_hostname("smithplumbing.com.au/about?x=1") == "smithplumbing.com.au"


def test_extract_hostname_never_raises():
    """Garbage in gives None rather than an exception."""
    assert extract_hostname("not a website") is None
    assert extract_hostname("http://[broken") is None
    assert extract_hostname("") is None
    assert extract_hostname(None) is None


def test_normalize_email():
    assert normalize_email("  Info@Smith.COM.au ") == "info@smith.com.au"
    assert normalize_email("   ") is None
    assert normalize_email(None) is None


def test_normalize_text():
    assert normalize_text("  Smith's  Plumbing & Gas ") == "smiths plumbing gas"
    assert normalize_text("RICHMOND") == "richmond"
    assert normalize_text(None) == ""
