"""
Field normalization for business contact details.

All functions are total: any string (or None) in, a canonical string or
None out. Nothing here raises.
"""

import re
from typing import Optional
from urllib.parse import urlparse


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """
    Normalize an Australian phone number to E.164.

    - 61XXXXXXXXX  -> +61XXXXXXXXX (already international)
    - 04XXXXXXXX   -> +614XXXXXXXX (mobile)
    - 0XXXXXXXXX   -> +61XXXXXXXXX (landline)

    Unrecognized numbers come back as their bare digits.
    """
    if not phone:
        return None

    digits = re.sub(r"\D", "", phone)
    if not digits:
        return None

    if digits.startswith("61") and len(digits) == 11:
        return f"+{digits}"
    if digits.startswith("0") and len(digits) == 10:
        # Covers both 04 mobiles and 0[2378] landlines
        return f"+61{digits[1:]}"

    return digits


def normalize_url(url: Optional[str]) -> Optional[str]:
    """Prefix https:// when the URL has no http(s) scheme."""
    if not url:
        return None

    url = url.strip()
    if not url:
        return None

    if not url.lower().startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


def extract_hostname(url: Optional[str]) -> Optional[str]:
    """
    Extract the comparable hostname from a website string.

    Lower-cased with any leading www. removed. Returns None for anything
    that does not parse to a host.
    """
    normalized = normalize_url(url)
    if not normalized:
        return None

    try:
        hostname = urlparse(normalized).hostname
    except ValueError:
        return None

    if not hostname or "." not in hostname:
        return None

    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname or None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lower-case and trim an email address."""
    if not email:
        return None
    email = email.strip().lower()
    return email or None


def normalize_text(text: Optional[str]) -> str:
    """
    Normalize free text (names, suburbs) for comparison.

    - Lowercase
    - Drop anything but letters, digits and whitespace
    - Collapse whitespace
    """
    if not text:
        return ""

    normalized = text.lower().strip()
    normalized = re.sub(r"[^a-z0-9\s]", "", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized
