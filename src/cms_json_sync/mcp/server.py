"""MCP Server for collection import and export using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents list, export and import the collections of a workspace file.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..store import CollectionStore
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ExportSettings,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
    set_export_settings,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "cms-json-sync"

server = Server(SERVER_NAME)

# Initialized in main()
_store: CollectionStore | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_store() -> CollectionStore:
    """Get the global collection store.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _store is None:
        raise RuntimeError(
            "Collection store not initialized. Server lifespan not started."
        )
    return _store


def set_store(store: CollectionStore | None) -> None:
    """Set the global collection store, or None to clear it."""
    global _store
    _store = store


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear it."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List the registered (and permitted) tools."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    store = get_store()
    try:
        return await get_registry().call_tool(name, arguments, store)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the tool registry, restricted by *permissions_file* if given."""
    if not permissions_file:
        registry = ToolRegistry(ALL_SPECS)
    else:
        allowed = load_permissions_file(permissions_file)
        logger.info("Loaded %d permissions from %s", len(allowed), permissions_file)
        registry = ToolRegistry(ALL_SPECS, allowed)
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(ALL_SPECS)} tools enabled)",
            file=sys.stderr,
        )
    logger.info("Registered %d of %d tools", registry.tool_count(), len(ALL_SPECS))
    return registry


async def main(config_overrides: dict | None = None):
    """Serve the workspace over stdio until the client disconnects.

    Args:
        config_overrides: ``store_path`` goes to the layered config;
            ``log_file`` and ``permissions_file`` are consumed here.
    """
    overrides = dict(config_overrides or {})
    log_file = overrides.pop("log_file", None)
    permissions_file = overrides.pop("permissions_file", None)

    # stdout belongs to JSON-RPC from here on
    setup_logging(mode="mcp", log_file=log_file)
    set_registry(build_registry(permissions_file))

    # set_store() lives here rather than in the lifespan: under
    # `python -m cms_json_sync.mcp.server` this module is __main__.
    async with server_lifespan(config_overrides=overrides or None) as ctx:
        config = ctx["config"]
        set_store(ctx["store"])
        set_export_settings(
            ExportSettings(indent=config.export_indent, draft_key=config.draft_key)
        )
        options = InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=server.get_capabilities(
                notification_options=NotificationOptions(),
                experimental_capabilities={},
            ),
        )
        try:
            async with mcp.server.stdio.stdio_server() as streams:
                await server.run(*streams, options)
        finally:
            set_store(None)
            set_registry(None)
            set_export_settings(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cms-json-sync-mcp",
        description="Serve a collection workspace to MCP clients over stdio.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
examples:
  cms-json-sync-mcp
  cms-json-sync-mcp --store /srv/site/workspace.json
  cms-json-sync-mcp --permissions-file read-only.permissions

The workspace comes from --store, CMS_STORE_PATH or .cms_json_sync/config.yml.
Status lines go to stderr; logs go to {DEFAULT_MCP_LOG_FILE}.
        """,
    )
    parser.add_argument("--store", help="Workspace JSON file")
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="File listing the permissions to enable, one per line "
        "(COLLECTION_READ, COLLECTION_WRITE). Default: all tools.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"cms-json-sync-mcp {__version__}",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    """Map parsed flags onto ``main()`` overrides, dropping unset ones."""
    pairs = {
        "store_path": args.store,
        "log_file": args.log_file,
        "permissions_file": args.permissions_file,
    }
    return {key: value for key, value in pairs.items() if value}


def run(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(main(overrides_from_args(args) or None))
    except RuntimeError:
        # lifespan already reported the cause on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
