"""Input validation rules for customer contact details.

The checks are loose: they catch obvious mistakes, not every
malformed address or number.
"""

from __future__ import annotations


def is_valid_email(email: str) -> bool:
    """An email is accepted if it contains an '@'."""
    return "@" in email


def is_valid_phone(phone: str) -> bool:
    """A phone number is accepted if it contains at least one numeric character."""
    return any(ch.isnumeric() for ch in phone)


def is_valid_contact(email: str, phone: str) -> bool:
    """Both the email and the phone number must pass."""
    return is_valid_email(email) and is_valid_phone(phone)
