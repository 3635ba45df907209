"""Async helpers shared between the CLI and MCP server."""

from .async_utils import gather_all, run_sync

__all__ = ["gather_all", "run_sync"]
