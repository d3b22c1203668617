"""
Tests for input validation and text scrubbing.

Testing philosophy:
- Each password rule reports independently
- Sanitizers are idempotent and never raise on odd input
- File names coming back are always safe to embed in an object path
"""

import pytest

from afsp.core.sanitize import sanitize_text
from afsp.core.validation import (
    MAX_FILE_NAME_LENGTH,
    get_file_extension,
    sanitize_file_name,
    sanitize_string,
    validate_email,
    validate_file_size,
    validate_file_type,
    validate_password,
    validate_phone_number,
)


# ---------------------------------------------------------------------------
# Password Tests
# ---------------------------------------------------------------------------

class TestValidatePassword:
    """Tests for the password rules."""

    def test_strong_password_passes(self):
        """A password meeting every rule has no errors."""
        result = validate_password("Str0ng!Pass")

        assert result.is_valid is True
        assert result.errors == []

    def test_every_failing_rule_is_reported(self):
        """A short lowercase password fails four rules at once."""
        result = validate_password("abc")

        assert result.is_valid is False
        assert len(result.errors) == 4
        assert "Password must be at least 8 characters long" in result.errors
        assert "Password must contain at least one uppercase letter" in result.errors
        assert "Password must contain at least one number" in result.errors

    def test_missing_special_character(self):
        """Letters and digits alone aren't enough."""
        result = validate_password("Password1")

        assert result.is_valid is False
        assert result.errors == [
            "Password must contain at least one special character (!@#$%^&*...)"
        ]

    def test_missing_lowercase(self):
        result = validate_password("PASSWORD1!")

        assert result.errors == ["Password must contain at least one lowercase letter"]


# ---------------------------------------------------------------------------
# Field Format Tests
# ---------------------------------------------------------------------------

class TestFieldFormats:
    """Tests for email and phone checks."""

    @pytest.mark.parametrize("email", ["a@b.co", "first.last@example.com"])
    def test_valid_emails(self, email):
        assert validate_email(email) is True

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "a b@c.com", "a@@b.com"])
    def test_invalid_emails(self, email):
        assert validate_email(email) is False

    def test_phone_ignores_punctuation(self):
        """Digits are counted after stripping formatting."""
        assert validate_phone_number("(555) 123-4567") is True
        assert validate_phone_number("+44 20 7946 0958") is True

    def test_phone_digit_bounds(self):
        """Fewer than 10 or more than 15 digits is invalid."""
        assert validate_phone_number("555-1234") is False
        assert validate_phone_number("1" * 16) is False


# ---------------------------------------------------------------------------
# String Cleanup Tests
# ---------------------------------------------------------------------------

class TestSanitizeString:
    """Tests for control character removal."""

    def test_removes_control_characters_and_trims(self):
        assert sanitize_string("  he\x00llo\x07  ") == "hello"

    def test_keeps_whitespace_controls_inside(self):
        """Tabs and newlines inside the text survive."""
        assert sanitize_string("line one\nline\ttwo") == "line one\nline\ttwo"

    def test_idempotent(self):
        value = "\x01 mixed \x1f input \n"
        once = sanitize_string(value)

        assert sanitize_string(once) == once


class TestSanitizeText:
    """Tests for markup stripping."""

    def test_strips_script_blocks(self):
        assert sanitize_text("Hi<script>alert(1)</script> there") == "Hi there"

    def test_strips_tags_and_handlers(self):
        cleaned = sanitize_text('<b onclick="evil()">bold</b> text')

        assert cleaned == "bold text"

    def test_strips_javascript_urls(self):
        assert "javascript:" not in sanitize_text("javascript:alert(1)")

    def test_empty_input(self):
        assert sanitize_text("") == ""

    def test_strips_style_blocks_and_data_urls(self):
        cleaned = sanitize_text("<style>p{}</style>see data:text/html,x")

        assert cleaned == "see text/html,x"


# ---------------------------------------------------------------------------
# File Tests
# ---------------------------------------------------------------------------

class TestFileHelpers:
    """Tests for upload name, type and size checks."""

    def test_extension_is_lowercased(self):
        assert get_file_extension("Photo.JPG") == "jpg"

    def test_no_extension(self):
        assert get_file_extension("README") == ""
        assert get_file_extension(".bashrc") == ""

    def test_sanitize_file_name_replaces_separators(self):
        assert sanitize_file_name("../etc/passwd") == "_etc_passwd"

    def test_sanitize_file_name_falls_back(self):
        """A name that sanitizes to nothing becomes 'file'."""
        assert sanitize_file_name("...") == "file"

    def test_sanitize_file_name_truncates_keeping_extension(self):
        name = sanitize_file_name("a" * 300 + ".png")

        assert len(name) == MAX_FILE_NAME_LENGTH
        assert name.endswith(".png")

    def test_file_type_wildcard(self):
        assert validate_file_type("image/png", ["image/*"]) is True
        assert validate_file_type("video/mp4", ["image/*"]) is False

    def test_file_type_exact(self):
        assert validate_file_type("application/pdf", ["application/pdf"]) is True
        assert validate_file_type("", ["application/pdf"]) is False

    def test_file_size_limit(self):
        assert validate_file_size(1024 * 1024, 1) is True
        assert validate_file_size(1024 * 1024 + 1, 1) is False
