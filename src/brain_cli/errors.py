"""Error messages with corrective actions for CLI commands.

Every failure the CLI reports is rendered as::

    Error (<type>): <message>

    Action: <what the user can do about it>

so the user always gets a next step instead of a bare traceback.
"""

from __future__ import annotations

import requests

from .core.client import NotionAPIError


def format_error(error_type: str, message: str, corrective_action: str) -> str:
    """Build an error message with a corrective action.

    Args:
        error_type: Error category (unauthorized, not_found, rate_limited,
            validation_error, server_error, network, io_error, config_error)
        message: Human-readable error description
        corrective_action: Specific action the user can take to resolve the error

    Returns:
        Formatted multi-line message.

    Examples:
        >>> format_error("not_found", "Page abc not found", "Share the page with the integration.")
        'Error (not_found): Page abc not found\\n\\nAction: Share the page with the integration.'
    """
    return f"Error ({error_type}): {message}\n\nAction: {corrective_action}"


def _describe_api_error(error: NotionAPIError) -> str:
    match error.status:
        case 401:
            return format_error(
                "unauthorized",
                error.message,
                "Check NOTION_API_KEY (or ~/.config/notion/api_key) holds a valid integration token.",
            )
        case 403 | 404:
            return format_error(
                "not_found",
                error.message,
                "Open the database in Notion and share it with your integration "
                "(... menu > Connections), then check the database_id in config.yml.",
            )
        case 409:
            return format_error(
                "conflict",
                error.message,
                "The page was being edited concurrently. Retry the command.",
            )
        case 429:
            return format_error(
                "rate_limited",
                error.message,
                "Wait a minute and retry, or lower notion.requests_per_second.",
            )
        case 400:
            return format_error(
                "validation_error",
                error.message,
                "Check the property names in config.yml match the Notion database "
                "(title_property, status_property, status_type).",
            )
        case status if status >= 500:
            return format_error(
                "server_error",
                error.message,
                "Notion is having problems. Retry later.",
            )
        case _:
            return format_error(
                error.code,
                error.message,
                "Re-run with --debug for details.",
            )


def describe_error(error: BaseException) -> str:
    """Translate an exception raised by a command into a user-facing message.

    Args:
        error: Exception raised while running a command.

    Returns:
        Message from ``format_error`` with a corrective action suited to
        the error type.
    """
    # Startup wraps the underlying failure; describe that instead.
    if isinstance(error, RuntimeError) and error.__cause__ is not None:
        return describe_error(error.__cause__)

    match error:
        case NotionAPIError():
            return _describe_api_error(error)
        case requests.Timeout():
            return format_error(
                "network",
                f"Request to Notion timed out: {error}",
                "Check your connection and retry.",
            )
        case requests.RequestException():
            return format_error(
                "network",
                f"Could not reach Notion: {error}",
                "Check your network connection and proxy settings, then retry.",
            )
        case OSError():
            return format_error(
                "io_error",
                str(error),
                "Check the store and state directories exist and are writable.",
            )
        case ValueError() | RuntimeError():
            return format_error(
                "config_error",
                str(error),
                "Fix config.yml (run `brain init` to create a template) and retry.",
            )
        case _:
            return format_error(
                type(error).__name__,
                str(error),
                "Re-run with --debug for details.",
            )
