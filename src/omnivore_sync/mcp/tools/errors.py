"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...errors import (
    ConfigurationError,
    CorruptStateError,
    NoteWriteError,
    OmnivoreSyncError,
    TransientError,
    UnauthorizedError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (unauthorized, transient_error,
            validation_error, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("unauthorized", "Bad key", "Set OMNIVORE_API_KEY.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_error(error: OmnivoreSyncError) -> types.CallToolResult:
    """Translate a sync error to a structured error response."""
    match error:
        case UnauthorizedError():
            return build_error_response(
                "unauthorized",
                str(error),
                "Set a valid API key in OMNIVORE_API_KEY or omnivore.api_key in config.yml.",
            )
        case TransientError():
            return build_error_response(
                "transient_error",
                str(error),
                "Omnivore is unreachable or rate-limiting; retry later.",
            )
        case ConfigurationError():
            return build_error_response(
                "configuration_error",
                str(error),
                "Fix the configuration file (.omnivore_sync/config.yml) and retry.",
            )
        case CorruptStateError():
            return build_error_response(
                "corrupt_state",
                str(error),
                "Run omnivore_reset_sync_data with confirm=true to start over.",
            )
        case NoteWriteError():
            return build_error_response(
                "write_error",
                str(error),
                "Check that the notes directory is writable, then sync again.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Check the server log file and retry later.",
            )
