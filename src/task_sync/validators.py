"""
Input validation functions for task fields.

Checks titles and descriptions before they reach the task store.
"""

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_SIZE = 100_000


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Title")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_title(title: str) -> tuple[bool, str]:
    """
    Validate a task title.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - At most MAX_TITLE_LENGTH characters
        - No line breaks
    """
    if not title or not title.strip():
        return (False, format_validation_error("Title", "cannot be empty"))

    if len(title) > MAX_TITLE_LENGTH:
        return (
            False,
            format_validation_error(
                "Title", f"exceeds maximum length of {MAX_TITLE_LENGTH} characters"
            ),
        )

    if "\n" in title or "\r" in title:
        return (
            False,
            format_validation_error("Title", "cannot contain line breaks"),
        )

    return (True, "")


def validate_description(
    description: str, max_size: int = MAX_DESCRIPTION_SIZE
) -> tuple[bool, str]:
    """
    Validate a task description.

    Empty descriptions are allowed; size is measured in UTF-8 bytes.
    """
    size = len(description.encode("utf-8"))
    if size > max_size:
        return (
            False,
            format_validation_error(
                "Description",
                f"exceeds maximum size of {max_size:,} bytes (got {size:,} bytes)",
            ),
        )
    return (True, "")
