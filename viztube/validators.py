"""Input validation rules for account fields.

Each validator returns the normalized value or raises ``ValueError`` so it can
be used directly from pydantic ``field_validator`` hooks.
"""

import re

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
FULL_NAME_PATTERN = re.compile(r"^[a-zA-Z\s]+$")
SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

RESERVED_USERNAMES = frozenset({"admin", "user", "moderator", "system"})


def validate_username(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Username is required")
    if not 3 <= len(value) <= 30:
        raise ValueError("Username must be between 3 and 30 characters")
    if not USERNAME_PATTERN.match(value):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    if value.lower() in RESERVED_USERNAMES:
        raise ValueError("This username is reserved")
    return value.lower()


def validate_full_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Full name is required")
    if not 2 <= len(value) <= 50:
        raise ValueError("Full name must be between 2 and 50 characters")
    if not FULL_NAME_PATTERN.match(value):
        raise ValueError("Full name can only contain letters and spaces")
    return value


def normalize_email(value: str | None) -> str | None:
    """Lowercase an address that ``EmailStr`` already accepted."""
    return value.lower() if value is not None else None


def validate_password(value: str) -> str:
    """Enforce the strong-password policy used for registration and changes."""
    value = value.strip()
    if not value:
        raise ValueError("Password is required")
    if len(value) < 6:
        raise ValueError("Password must be at least 6 characters long")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise ValueError("Password must contain at least one number")
    if not SPECIAL_CHARS.search(value):
        raise ValueError("Password must contain at least one special character")
    return value


def validate_not_blank(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Field cannot be empty")
    return value
