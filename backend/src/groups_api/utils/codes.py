"""Invite code generation and format checks."""

import re
import uuid

INVITE_CODE_LENGTH = 8

# Short generated codes and the legacy segmented format
_SHORT_FORMAT = re.compile(r"^[A-Z0-9]{8}$")
_LONG_FORMAT = re.compile(r"^[A-Z2-9]{4}-[A-Z2-9]{4}-[A-Z2-9]{4}-[A-Z2-9]{4}$")


def generate_invite_code() -> str:
    """Generate an 8 character uppercase hexadecimal invite code."""
    return uuid.uuid4().hex[:INVITE_CODE_LENGTH].upper()


def normalize_invite_code(code: str) -> str:
    """Normalize user input so codes match case-insensitively."""
    return code.strip().upper()


def is_valid_invite_code_format(code: str) -> bool:
    """Check whether a string has the shape of an invite code."""
    normalized = normalize_invite_code(code)
    return bool(_SHORT_FORMAT.match(normalized) or _LONG_FORMAT.match(normalized))
