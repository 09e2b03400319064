"""
Contact field clean-up for client names, email addresses and phone numbers.

Numbers are Philippine mobiles and are stored in ``+639XXXXXXXXX`` form.
"""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Optional

from .exceptions import InvalidReservationError
from .models import ReservationDetails

CONTACT_FIELDS = frozenset({"client_name", "phone", "email"})

_TAGS = re.compile(r"<[^>]*>")
_NAME_JUNK = re.compile(r"[^\w\s'\-]|[\d_]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_PUNCTUATION = re.compile(r"[\s\-().]")
_PH_MOBILE = re.compile(r"^(?:\+63|63|0)(9\d{9})$")


def sanitize_name(raw: object) -> str:
    """
    Strip markup, digits and symbols from a name; keeps letters (accented
    too), apostrophes and hyphens, and collapses whitespace.
    """
    if not isinstance(raw, str):
        return ""
    text = _NAME_JUNK.sub("", _TAGS.sub("", raw))
    return " ".join(text.split())


def sanitize_email(raw: object) -> Optional[str]:
    """Lower-cased address, or None when it is not a plausible email."""
    if not isinstance(raw, str):
        return None
    text = raw.strip().lower()
    return text if _EMAIL.match(text) else None


def sanitize_phone(raw: object) -> Optional[str]:
    """
    Normalize ``09XXXXXXXXX``, ``639XXXXXXXXX`` and ``+639XXXXXXXXX`` to
    ``+639XXXXXXXXX``; anything else is None.
    """
    if not isinstance(raw, str):
        return None
    match = _PH_MOBILE.match(_PHONE_PUNCTUATION.sub("", raw))
    return f"+63{match.group(1)}" if match else None


def clean_contact(details: ReservationDetails, *, strict: bool = True) -> ReservationDetails:
    """
    Return ``details`` with sanitized contact fields.

    Blank phone and email are allowed. An invalid email always raises. An
    unrecognized phone raises with ``strict`` and is kept as written
    without it (spreadsheet rows often hold partial numbers).

    Raises:
        InvalidReservationError: Empty name after clean-up, an invalid
            email, or (strict) an invalid phone
    """
    name = sanitize_name(details.client_name)
    if not name:
        raise InvalidReservationError("A client name is required")

    phone = (details.phone or "").strip()
    if phone:
        normalized = sanitize_phone(phone)
        if normalized is not None:
            phone = normalized
        elif strict:
            raise InvalidReservationError(f"Invalid phone number '{phone}'")

    email = (details.email or "").strip()
    if email:
        normalized = sanitize_email(email)
        if normalized is None:
            raise InvalidReservationError(f"Invalid email address '{email}'")
        email = normalized

    return replace(details, client_name=name, phone=phone, email=email)
