"""Unit tests for contact validation rules."""

from __future__ import annotations

import pytest

from crm_store.domain.services import is_valid_contact, is_valid_email, is_valid_phone


@pytest.mark.unit
class TestValidation:
    """Tests for the contact validators."""

    @pytest.mark.parametrize(
        ("email", "valid"),
        [
            ("a@b.com", True),
            ("@", True),
            ("user.example.com", False),
            ("", False),
        ],
    )
    def test_email(self, email: str, valid: bool) -> None:
        """An email needs an '@' and nothing more."""
        assert is_valid_email(email) is valid

    @pytest.mark.parametrize(
        ("phone", "valid"),
        [
            ("555-0100", True),
            ("call me at 5", True),
            ("٣", True),  # Arabic-Indic digit three
            ("no digits", False),
            ("", False),
        ],
    )
    def test_phone(self, phone: str, valid: bool) -> None:
        """A phone number needs at least one numeric character."""
        assert is_valid_phone(phone) is valid

    def test_contact_requires_both(self) -> None:
        """Both rules must pass."""
        assert is_valid_contact("a@b.com", "1")
        assert not is_valid_contact("a@b.com", "x")
        assert not is_valid_contact("ab.com", "1")
