"""Input validation utilities."""

MAX_SEARCH_LENGTH = 200


def sanitize_search(search: str | None, max_length: int = MAX_SEARCH_LENGTH) -> str | None:
    """Sanitize search input.

    Args:
        search: Raw search string
        max_length: Maximum allowed length

    Returns:
        Sanitized search string or None
    """
    if search is None:
        return None

    search = search[:max_length]
    search = search.replace(";", "").replace("--", "")
    return search.strip() or None


def escape_like_wildcards(value: str) -> str:
    """Escape SQL LIKE wildcards so they match literally.

    Args:
        value: Raw string value to escape

    Returns:
        Escaped string for use in LIKE patterns with a backslash escape
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def require_text(value: str | None, field: str, max_length: int = 255) -> str:
    """Strip a required text field and enforce its bounds.

    Args:
        value: Raw value
        field: Field name used in the error message
        max_length: Maximum allowed length

    Returns:
        Stripped value

    Raises:
        ValidationError: If the value is blank or too long
    """
    from groups_api.exceptions import ValidationError

    stripped = (value or "").strip()
    if not stripped:
        raise ValidationError(f"{field} is required")
    if len(stripped) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return stripped
