"""Import and export engines that orchestrate one operation end to end.

``ImportEngine`` splits an import into two steps so conflicts can be
decided in between:

1. ``prepare()`` -- parse the JSON, fetch fields and items concurrently,
   resolve referenced collections, and reconcile.  Nothing is written.
2. ``commit()`` -- validate that every conflict is decided, then apply the
   result in one batched ``add_or_update_items`` call.

A caller may drop the prepared ``ImportResult`` without committing it.  A
failed write propagates unchanged and is not retried; the decisions on the
result remain valid, so the same result can be committed again.

``ExportEngine`` reads fields and items concurrently and projects them to
JSON text.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cms_json_sync.core.async_utils import gather_all, run_sync
from cms_json_sync.errors import CommitError
from cms_json_sync.store.base import find_collection
from cms_json_sync.sync.exporter import DEFAULT_DRAFT_KEY, project, records_to_json
from cms_json_sync.sync.mapper import parse_json_records
from cms_json_sync.sync.models import (
    CollectionSchema,
    ImportAction,
    ImportResult,
    ItemInput,
)
from cms_json_sync.sync.reconciler import build_reference_lookup, reconcile
from cms_json_sync.sync.reporter import format_import_summary

if TYPE_CHECKING:
    from cms_json_sync.store.base import Collection, CollectionStore

logger = logging.getLogger(__name__)


class ImportEngine:
    """Import JSON records into one collection.

    Args:
        store: The collection store.
        collection_ref: Collection id or (case-insensitive) name.
    """

    def __init__(self, store: CollectionStore, collection_ref: str) -> None:
        self.store = store
        self.collection_ref = collection_ref
        self._collection: Collection | None = None

    async def collection(self) -> Collection:
        """Resolve and cache the target collection.

        Raises:
            CollectionNotFoundError: If the reference matches nothing.
        """
        if self._collection is None:
            self._collection = await run_sync(
                find_collection, self.store, self.collection_ref
            )
        return self._collection

    # ------------------------------------------------------------------
    # Step 1: reconcile
    # ------------------------------------------------------------------

    async def prepare(self, json_text: str) -> ImportResult:
        """Parse and reconcile *json_text* against the collection.

        Args:
            json_text: A JSON array of flat objects.

        Returns:
            The classified result; conflicts still carry action
            ``conflict``.

        Raises:
            RecordImportError: On invalid JSON, a schema without a slug
                field, no usable slug key, or a missing referenced
                collection.
        """
        records = parse_json_records(json_text)
        collection = await self.collection()

        fields, existing_items = await gather_all(
            run_sync(collection.get_fields),
            run_sync(collection.get_items),
        )
        schema = CollectionSchema(
            slug_field_name=collection.slug_field_name,
            slug_field_based_on=collection.slug_field_based_on,
            fields=fields,
        )
        ref_lookup = await build_reference_lookup(self.store, schema.fields)

        result = reconcile(schema, existing_items, records, ref_lookup)
        logger.info(
            "Prepared import into %s: %d items, %d conflicts",
            collection.name,
            len(result.items),
            len(result.conflicts),
        )
        return result

    # ------------------------------------------------------------------
    # Step 2: write
    # ------------------------------------------------------------------

    async def commit(self, result: ImportResult) -> str:
        """Write a fully decided result to the collection.

        Adds are created by slug, updates overwrite the existing item by id,
        and skipped records are left out of the write.

        Args:
            result: A result with no remaining ``conflict`` items.

        Returns:
            The human-readable import summary.

        Raises:
            CommitError: If conflicts are still undecided or the item
                counts do not add up.
            StoreError: If the write itself fails.
        """
        if result.has_conflicts:
            raise CommitError(
                f"{len(result.conflicts)} conflicts still need a decision"
            )

        added = result.added
        updated = result.updated
        skipped = result.skipped
        if len(result.items) != len(added) + len(updated) + len(skipped):
            raise CommitError("Total items mismatch")

        inputs = build_item_inputs(result)
        collection = await self.collection()
        if inputs:
            await run_sync(collection.add_or_update_items, inputs)

        logger.info(
            "Committed import into %s: %d added, %d updated, %d skipped",
            collection.name,
            len(added),
            len(updated),
            len(skipped),
        )
        return format_import_summary(result)


def build_item_inputs(result: ImportResult) -> list[ItemInput]:
    """Translate decided result items into store write requests."""
    inputs: list[ItemInput] = []
    for item in result.items:
        match item.action:
            case ImportAction.ADD:
                inputs.append(
                    ItemInput(slug=item.slug, field_data=item.field_data)
                )
            case ImportAction.ON_CONFLICT_UPDATE:
                if item.id is None:
                    raise CommitError(
                        f"Item '{item.slug}' is marked for update but has no id"
                    )
                inputs.append(
                    ItemInput(id=item.id, field_data=item.field_data)
                )
            case ImportAction.ON_CONFLICT_SKIP:
                continue
            case ImportAction.CONFLICT:
                raise CommitError(f"Item '{item.slug}' has no decision")
    return inputs


class ExportEngine:
    """Export one collection as JSON text.

    Args:
        store: The collection store.
        collection_ref: Collection id or (case-insensitive) name.
        indent: JSON indentation.
        draft_key: Key of the draft marker.
    """

    def __init__(
        self,
        store: CollectionStore,
        collection_ref: str,
        indent: int = 2,
        draft_key: str = DEFAULT_DRAFT_KEY,
    ) -> None:
        self.store = store
        self.collection_ref = collection_ref
        self.indent = indent
        self.draft_key = draft_key

    async def run(self, limit: int | None = None) -> str:
        """Project the collection's items and serialize them.

        Args:
            limit: Export only the first *limit* items (for previews).

        Returns:
            Indented JSON text with a trailing newline.

        Raises:
            CollectionNotFoundError: If the reference matches nothing.
        """
        collection = await run_sync(
            find_collection, self.store, self.collection_ref
        )
        fields, items = await gather_all(
            run_sync(collection.get_fields),
            run_sync(collection.get_items),
        )
        if limit is not None:
            items = items[:limit]

        records = project(
            collection.slug_field_name, fields, items, draft_key=self.draft_key
        )
        logger.info("Exported %d items from %s", len(records), collection.name)
        return records_to_json(records, indent=self.indent)
