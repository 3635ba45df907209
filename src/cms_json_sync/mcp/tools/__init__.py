"""MCP tool handlers for collection import and export.

This package contains MCP tool implementations that wrap the sync engines
with async handlers and structured error responses.
"""

from .collection import (
    COLLECTION_SPECS,
    COLLECTION_TOOLS,
    ExportSettings,
    set_export_settings,
)
from .errors import build_error_response, translate_sync_error
from .registry import ToolRegistry, ToolSpec, load_permissions_file

ALL_SPECS: list[ToolSpec] = list(COLLECTION_SPECS)

__all__ = [
    "build_error_response",
    "translate_sync_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    # Export layout
    "ExportSettings",
    "set_export_settings",
    # Spec lists
    "ALL_SPECS",
    "COLLECTION_SPECS",
    "COLLECTION_TOOLS",
]
