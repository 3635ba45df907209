"""Tool registry with permission gating.

Each tool declares the permissions it needs.  An operator can hand the
server a permissions file to expose, say, exports but never imports:

- ``COLLECTION_READ``: list and export collections, preview imports.
- ``COLLECTION_WRITE``: commit imports.

Handlers share one signature, ``(store, args) -> CallToolResult``, and the
registry turns whatever they raise into an error result the agent can act
on.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types

from ...errors import SyncError
from ...store import CollectionStore
from .errors import build_error_response, translate_sync_error

logger = logging.getLogger(__name__)

KNOWN_PERMISSIONS = frozenset({"COLLECTION_READ", "COLLECTION_WRITE"})

_PERMISSION_RE = re.compile(r"^[A-Z]+(?:_[A-Z]+)*$")

ToolHandler = Callable[[CollectionStore, dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """A tool definition plus what it takes to call it.

    Attributes:
        tool: The MCP Tool shown to clients.
        permissions: Required permissions; empty means always available.
        handler: Coroutine run on each call.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: ToolHandler


class ToolRegistry:
    """The tools a server exposes.

    With ``allowed_permissions=None`` every spec is kept.  Otherwise a spec
    is kept when its permissions are a subset of the allowed set, which
    always holds for specs that need none.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {
            spec.tool.name: spec
            for spec in specs
            if allowed_permissions is None
            or spec.permissions <= allowed_permissions
        }

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        store: CollectionStore,
    ) -> types.CallToolResult:
        """Run tool *name* against *store*.

        Domain errors map through ``translate_sync_error``; a ``ValueError``
        from argument checking becomes ``validation_error``; anything else is
        logged with its traceback and reported as ``server_error``.

        Raises:
            ValueError: If *name* is unknown or filtered out.
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")

        try:
            return await spec.handler(store, arguments or {})
        except SyncError as e:
            logger.warning("%s failed: %s", name, e)
            return translate_sync_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error", str(e), "Check parameter values and retry."
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error", str(e), "Retry, or check the server log."
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Read the permissions to enable from *path*.

    One permission per line; blank lines and ``#`` comments are ignored.
    Names outside ``KNOWN_PERMISSIONS`` are kept but logged, since they
    cannot enable any tool.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: On a malformed name, or when no permission is listed.
    """
    path = Path(path)
    found: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        name = line.split("#", 1)[0].strip()
        if not name:
            continue
        if not _PERMISSION_RE.match(name):
            raise ValueError(
                f"Invalid permission '{name}' at line {line_num} in {path}. "
                "Expected UPPER_SNAKE_CASE (e.g., COLLECTION_READ)."
            )
        if name not in KNOWN_PERMISSIONS:
            logger.warning(
                "Unknown permission '%s' at line %d in %s", name, line_num, path
            )
        found.add(name)

    if not found:
        raise ValueError(
            f"No permissions found in {path}. File must contain at least one permission."
        )
    return frozenset(found)
