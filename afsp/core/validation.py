"""
Input validation and cleanup for user-supplied values.

These checks run at the API boundary (signup, profile edits, uploads) and
in the client SDK before a request is made. They return results instead of
raising so callers can decide how to surface each failure.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable


MAX_FILE_NAME_LENGTH = 255

_SPECIAL_CHARACTER = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_CONTROL_CHARACTERS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_UNSAFE_FILE_NAME_CHARACTERS = re.compile(r"[/\\?%*:|\"<>]")


@dataclass
class PasswordValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def validate_password(password: str) -> PasswordValidationResult:
    """
    Check a password against the account rules.

    Every failing rule contributes its own message, so a short all-lowercase
    password reports length, uppercase, number and special character
    together.
    """
    errors = []

    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    if not _SPECIAL_CHARACTER.search(password):
        errors.append(
            "Password must contain at least one special character (!@#$%^&*...)"
        )

    return PasswordValidationResult(is_valid=not errors, errors=errors)


def validate_email(email: str) -> bool:
    return bool(_EMAIL.match(email))


def validate_phone_number(phone: str) -> bool:
    """A phone number is valid when it carries 10 to 15 digits, ignoring punctuation."""
    digits = re.sub(r"\D", "", phone)
    return 10 <= len(digits) <= 15


def sanitize_string(value: str) -> str:
    """
    Remove NUL and control characters, then trim.

    Tab, newline and carriage return survive. Applying this twice gives the
    same result as applying it once.
    """
    cleaned = _CONTROL_CHARACTERS.sub("", value.replace("\0", ""))
    return cleaned.strip()


def get_file_extension(file_name: str) -> str:
    """Lowercase extension without the dot; '' for dotfiles and names without one."""
    last_dot = file_name.rfind(".")
    if last_dot <= 0:
        return ""
    return file_name[last_dot + 1:].lower()


def sanitize_file_name(file_name: str) -> str:
    """
    Make a client-supplied file name safe to use inside an object path.

    Path separators and shell-hostile characters become underscores, leading
    and trailing dots and whitespace are stripped, and overlong names are cut
    to 255 characters while keeping the extension.
    """
    name = _UNSAFE_FILE_NAME_CHARACTERS.sub("_", file_name)
    name = name.strip().strip(".").strip()

    if len(name) > MAX_FILE_NAME_LENGTH:
        extension = get_file_extension(name)
        if extension and len(extension) < MAX_FILE_NAME_LENGTH - 1:
            stem_length = MAX_FILE_NAME_LENGTH - len(extension) - 1
            name = f"{name[:stem_length]}.{extension}"
        else:
            name = name[:MAX_FILE_NAME_LENGTH]

    return name or "file"


def validate_file_type(content_type: str, allowed: Iterable[str]) -> bool:
    """
    Match a MIME type against allowed types.

    Entries ending in '/*' accept any subtype ("image/*").
    """
    content_type = (content_type or "").lower()
    for pattern in allowed:
        pattern = pattern.lower()
        if pattern.endswith("/*"):
            if content_type.startswith(pattern[:-1]):
                return True
        elif content_type == pattern:
            return True
    return False


def validate_file_size(size_bytes: int, max_size_mb: int) -> bool:
    return 0 <= size_bytes <= max_size_mb * 1024 * 1024
