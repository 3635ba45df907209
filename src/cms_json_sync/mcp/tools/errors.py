"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so an agent can
recover without human intervention.
"""

import mcp.types as types

from ...errors import (
    CollectionNotFoundError,
    CommitError,
    RecordImportError,
    StoreError,
    SyncError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, import_failed,
            conflict_unresolved, validation_error, store_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Collection 'Posts' not found", "Use collection_list to see available collections.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def translate_sync_error(error: SyncError) -> types.CallToolResult:
    """Translate an import/export failure to a structured error response.

    Import failures are surfaced with their operator-facing message intact.

    Args:
        error: Any ``SyncError`` raised by the engine or the store.

    Returns:
        CallToolResult with isError=True and corrective action
    """
    match error:
        case CollectionNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Use collection_list to see available collections.",
            )
        case RecordImportError():
            return build_error_response(
                "import_failed",
                str(error),
                "Fix the JSON document, then check it with collection_import_preview.",
            )
        case CommitError():
            return build_error_response(
                "conflict_unresolved",
                str(error),
                "Pass on_conflict, or a decision for every conflicting slug.",
            )
        case StoreError():
            return build_error_response(
                "store_error",
                str(error),
                "Check that the workspace file is readable and valid, then retry.",
            )
        case _:
            return build_error_response(
                "server_error", str(error), "Retry, or check the server log."
            )
