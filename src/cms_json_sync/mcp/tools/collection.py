"""MCP tool handlers for collection import and export.

Defines four tools:

- ``collection_list`` -- collections in the workspace, with counts.
- ``collection_export`` -- a collection as JSON, inline or to a file.
- ``collection_import_preview`` -- reconcile a JSON document without writing.
- ``collection_import`` -- reconcile, decide conflicts, and write.

Conflicts are decided by ``on_conflict`` (``update`` or ``skip``) and/or a
per-slug ``decisions`` map.  An import whose conflicts are not all covered
is rejected before anything is written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import mcp.types as types

from ...core.async_utils import gather_all, run_sync
from ...file_handler import read_file_async, with_json_suffix, write_file_async
from ...store import CollectionStore
from ...sync.engine import ExportEngine, ImportEngine
from ...sync.exporter import DEFAULT_DRAFT_KEY
from ...sync.models import ImportResult
from ...sync.reporter import (
    format_import_preview,
    result_to_json,
    summarize_names,
)
from ...sync.resolver import DecisionMapResolver
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportSettings:
    """JSON layout used by ``collection_export``."""

    indent: int = 2
    draft_key: str = DEFAULT_DRAFT_KEY


# Replaced from the loaded config in server.main()
_export_settings = ExportSettings()


def get_export_settings() -> ExportSettings:
    return _export_settings


def set_export_settings(settings: ExportSettings | None) -> None:
    """Set the export layout, or None to restore the defaults."""
    global _export_settings
    _export_settings = settings or ExportSettings()

_COLLECTION_PARAM = {
    "type": "string",
    "description": "Collection id or name (case-insensitive)",
}

_SOURCE_PARAMS = {
    "json": {
        "type": "string",
        "description": "JSON document: an array of flat objects",
    },
    "file_path": {
        "type": "string",
        "description": "Absolute path to a JSON file (used when json is not given)",
    },
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


COLLECTION_TOOLS: list[types.Tool] = [
    types.Tool(
        name="collection_list",
        description="List the collections in the workspace with their slug field, field count and item count.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="collection_export",
        description=(
            "Export a collection as a JSON array of records keyed by field name. "
            "Returns the JSON inline, or writes it to file_path."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "collection": _COLLECTION_PARAM,
                "file_path": {
                    "type": "string",
                    "description": "Absolute output path; .json is appended if missing",
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "Export only the first N items (preview)",
                },
            },
            "required": ["collection"],
        },
    ),
    types.Tool(
        name="collection_import_preview",
        description=(
            "Check a JSON document against a collection without writing: which "
            "records would be added, which conflict with existing items, and "
            "which values would be skipped."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"collection": _COLLECTION_PARAM, **_SOURCE_PARAMS},
            "required": ["collection"],
        },
    ),
    types.Tool(
        name="collection_import",
        description=(
            "Import a JSON document into a collection. Records with a new slug "
            "are added. Records whose slug already exists are updated (their "
            "field data replaced) or skipped, per on_conflict or decisions."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "collection": _COLLECTION_PARAM,
                **_SOURCE_PARAMS,
                "on_conflict": {
                    "type": "string",
                    "enum": ["update", "skip"],
                    "description": "Decision for conflicts not listed in decisions",
                },
                "decisions": {
                    "type": "object",
                    "additionalProperties": {
                        "type": "string",
                        "enum": ["update", "skip"],
                    },
                    "description": "Per-slug decision, e.g. {\"my-post\": \"update\"}",
                },
            },
            "required": ["collection"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_collection(args: dict[str, Any]) -> str:
    collection = args.get("collection")
    if not collection or not isinstance(collection, str):
        raise ValueError("collection is required")
    return collection


async def _read_source(args: dict[str, Any]) -> str:
    """Return the JSON text given inline or by file path."""
    text = args.get("json")
    if text is not None:
        return text
    file_path = args.get("file_path")
    if not file_path:
        raise ValueError("Provide either json or file_path")
    content, encoding, resolved = await read_file_async(file_path)
    logger.debug("Read %s (%s)", resolved, encoding)
    return content


def _parse_decisions(args: dict[str, Any]) -> dict[str, bool]:
    raw = args.get("decisions") or {}
    if not isinstance(raw, dict):
        raise ValueError("decisions must be an object of slug -> 'update' | 'skip'")
    decisions: dict[str, bool] = {}
    for slug, choice in raw.items():
        if choice not in ("update", "skip"):
            raise ValueError(
                f"Invalid decision '{choice}' for '{slug}': use 'update' or 'skip'"
            )
        decisions[slug] = choice == "update"
    return decisions


def _preview_result(result: ImportResult, collection_name: str) -> types.CallToolResult:
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=format_import_preview(result, collection_name)
            )
        ],
        structuredContent=result_to_json(result),
    )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_list(
    store: CollectionStore, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle ``collection_list``."""
    collections = await run_sync(store.list_collections)

    entries = []
    for collection in collections:
        fields, items = await gather_all(
            run_sync(collection.get_fields), run_sync(collection.get_items)
        )
        entries.append(
            {
                "id": collection.id,
                "name": collection.name,
                "slug_field_name": collection.slug_field_name,
                "fields": len(fields),
                "items": len(items),
            }
        )

    if entries:
        lines = [f"{len(entries)} collections:"]
        lines.extend(
            f"  {e['name']} (id: {e['id']}) -- {e['items']} items, {e['fields']} fields"
            for e in entries
        )
        text = "\n".join(lines)
    else:
        text = "The workspace has no collections."

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"collections": entries},
    )


async def _handle_export(
    store: CollectionStore, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle ``collection_export``."""
    collection_ref = _require_collection(args)
    limit = args.get("limit")
    if limit is not None and (not isinstance(limit, int) or limit < 1):
        raise ValueError("limit must be a positive integer")

    settings = get_export_settings()
    engine = ExportEngine(
        store,
        collection_ref,
        indent=settings.indent,
        draft_key=settings.draft_key,
    )
    json_text = await engine.run(limit=limit)

    file_path = args.get("file_path")
    if not file_path:
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=json_text)]
        )

    target = with_json_suffix(Path(file_path))
    resolved, size = await write_file_async(str(target), json_text)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=f"Exported {collection_ref} to {resolved}"
            )
        ],
        structuredContent={"file_path": str(resolved), "bytes_written": size},
    )


async def _handle_import_preview(
    store: CollectionStore, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle ``collection_import_preview``."""
    engine = ImportEngine(store, _require_collection(args))
    json_text = await _read_source(args)
    result = await engine.prepare(json_text)
    collection = await engine.collection()
    return _preview_result(result, collection.name)


async def _handle_import(
    store: CollectionStore, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle ``collection_import``."""
    engine = ImportEngine(store, _require_collection(args))
    on_conflict = args.get("on_conflict")
    if on_conflict not in (None, "update", "skip"):
        raise ValueError("on_conflict must be 'update' or 'skip'")
    decisions = _parse_decisions(args)

    json_text = await _read_source(args)
    result = await engine.prepare(json_text)

    undecided = [
        item.slug for item in result.conflicts if item.slug not in decisions
    ]
    if undecided and on_conflict is None:
        return build_error_response(
            "conflict_unresolved",
            f"{len(undecided)} records match existing items: "
            f"{summarize_names(undecided)}. Nothing was written.",
            "Pass on_conflict ('update' or 'skip'), or a decision for each of these slugs.",
        )

    resolver = DecisionMapResolver(
        decisions, default_update=on_conflict == "update"
    )
    result = resolver.resolve(result)
    summary = await engine.commit(result)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=summary)],
        structuredContent={"summary": summary, **result_to_json(result)},
    )


# ToolSpec list for registry-based dispatch
COLLECTION_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=COLLECTION_TOOLS[0],
        permissions=frozenset({"COLLECTION_READ"}),
        handler=_handle_list,
    ),
    ToolSpec(
        tool=COLLECTION_TOOLS[1],
        permissions=frozenset({"COLLECTION_READ"}),
        handler=_handle_export,
    ),
    ToolSpec(
        tool=COLLECTION_TOOLS[2],
        permissions=frozenset({"COLLECTION_READ"}),
        handler=_handle_import_preview,
    ),
    ToolSpec(
        tool=COLLECTION_TOOLS[3],
        permissions=frozenset({"COLLECTION_WRITE"}),
        handler=_handle_import,
    ),
]
