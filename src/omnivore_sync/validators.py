"""
Input validation functions for omnivore-sync.

Provides validation for timezone names and note titles so bad settings
are rejected when the config is loaded rather than halfway through a run.
"""

import pytz

# Characters that cannot appear in a note file name on common filesystems.
_FORBIDDEN_TITLE_CHARS = frozenset('/\\:*?"<>|')


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Timezone")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_timezone(name: str) -> tuple[bool, str]:
    """
    Validate a timezone setting.

    Args:
        name: ``"local"`` or an IANA zone name such as ``"Europe/London"``

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not name or not name.strip():
        return (
            False,
            format_validation_error("Timezone", "cannot be empty"),
        )

    if name.strip().lower() == "local":
        return (True, "")

    try:
        pytz.timezone(name.strip())
    except pytz.UnknownTimeZoneError:
        return (
            False,
            format_validation_error(
                "Timezone",
                f"'{name}' is not a known IANA zone (use e.g. 'America/New_York' or 'local')",
            ),
        )

    return (True, "")


def validate_note_title(title: str, max_length: int = 200) -> tuple[bool, str]:
    """
    Validate a note title or title prefix.

    Args:
        title: The title to validate
        max_length: Maximum title length in characters (default: 200)

    Returns:
        Tuple of (is_valid, error_message).

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot exceed max_length characters
        - Cannot contain '..' (path traversal protection)
    """
    if not title or not title.strip():
        return (
            False,
            format_validation_error("Title", "cannot be empty"),
        )

    if len(title) > max_length:
        return (
            False,
            format_validation_error(
                "Title", f"exceeds maximum length of {max_length} characters"
            ),
        )

    if ".." in title:
        return (
            False,
            format_validation_error("Title", "cannot contain '..'"),
        )

    return (True, "")


def sanitize_title(title: str, max_length: int = 150) -> str:
    """Return *title* with filesystem-hostile characters replaced by ``-``.

    Whitespace runs collapse to a single space; an empty result becomes
    ``"Untitled"``.
    """
    cleaned = "".join(
        "-" if ch in _FORBIDDEN_TITLE_CHARS or ord(ch) < 32 else ch
        for ch in title
    )
    cleaned = " ".join(cleaned.split()).strip(" .")
    while ".." in cleaned:
        cleaned = cleaned.replace("..", ".")
    if not cleaned:
        return "Untitled"
    return cleaned[:max_length].rstrip(" .")
