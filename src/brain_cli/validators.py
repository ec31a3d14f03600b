"""
Input validation functions for brain_cli.

Provides validation for Notion object ids before they are sent to the API.
"""

import re

_HEX_ID = re.compile(r"^[0-9a-f]{32}$")


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Page id")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def normalize_notion_id(value: str) -> str:
    """Return *value* lower-cased without dashes.

    Notion accepts ids with or without dashes; comparisons between ids
    read from config files and ids returned by the API go through this.
    """
    return value.strip().replace("-", "").lower()


def validate_notion_id(value: str, field_name: str = "Notion id") -> tuple[bool, str]:
    """
    Validate a Notion page, block or database id.

    Args:
        value: The id to validate (dashed UUID or 32 hex characters)
        field_name: Name used in the error message

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.
    """
    if not value or not value.strip():
        return (False, format_validation_error(field_name, "cannot be empty"))

    if not _HEX_ID.match(normalize_notion_id(value)):
        return (
            False,
            format_validation_error(
                field_name, f"'{value}' is not a valid Notion id"
            ),
        )

    return (True, "")
