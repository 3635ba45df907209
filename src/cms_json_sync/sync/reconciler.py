"""Record reconciliation: classify incoming JSON records against a collection.

``reconcile()`` is the pure core of an import.  For each raw record, in
input order, it:

1. Derives the slug from the slug-source key (see ``mapper``).
2. Drops records without a slug (``missing_slug_count``) and records whose
   slug was already accepted earlier in the same batch
   (``double_slug_count``).  Duplicates are checked *before* existing-item
   conflicts, so a repeated slug always counts as a duplicate.
3. Converts every importable field through ``coerce()``; a failed
   conversion omits the field and is counted as a skipped value.
4. Classifies the record ``conflict`` when its slug matches an existing
   item (carrying that item's id forward) and ``add`` otherwise.

Only fields whose display name appears in the JSON are imported; fields
absent from the document are left untouched on update.

``build_reference_lookup()`` is the one asynchronous step: it pre-resolves
the slug-to-id maps of every referenced collection before reconciliation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from cms_json_sync.core.async_utils import run_sync
from cms_json_sync.errors import ConversionError, RecordImportError
from cms_json_sync.sync.coercion import RefLookup, coerce
from cms_json_sync.sync.mapper import (
    JSONRecord,
    collect_json_keys,
    resolve_slug_key,
    slug_for_record,
)
from cms_json_sync.sync.models import (
    CollectionSchema,
    FieldDescriptor,
    FieldValue,
    ImportAction,
    ImportResult,
    ImportResultItem,
    ImportWarnings,
    Item,
    iter_reference_fields,
)

if TYPE_CHECKING:
    from cms_json_sync.store.base import CollectionStore

logger = logging.getLogger(__name__)


def importable_fields(
    schema: CollectionSchema, json_keys: Iterable[str]
) -> list[FieldDescriptor]:
    """Schema fields whose display name appears among *json_keys*."""
    keys = set(json_keys)
    return [field for field in schema.fields if field.name in keys]


def reconcile(
    schema: CollectionSchema,
    existing_items: list[Item],
    raw_records: list[JSONRecord],
    ref_lookup: RefLookup,
) -> ImportResult:
    """Convert and classify *raw_records* against *existing_items*.

    Args:
        schema: Slug settings and fields of the target collection.
        existing_items: Items currently persisted in the collection.
        raw_records: Parsed JSON records, in document order.
        ref_lookup: Slug-to-id maps for referenced collections.

    Returns:
        An ``ImportResult`` whose items follow input order, adds and
        conflicts interleaved as encountered.

    Raises:
        RecordImportError: If the schema has no slug field, or no JSON key
            can supply slugs.
    """
    json_keys = collect_json_keys(raw_records)
    slug_key = resolve_slug_key(schema, json_keys)
    fields = importable_fields(schema, json_keys)

    existing_by_slug = {item.slug: item for item in existing_items}
    accepted_slugs: set[str] = set()

    items: list[ImportResultItem] = []
    missing_slug_count = 0
    double_slug_count = 0
    skipped_value_count = 0
    skipped_field_names: dict[str, None] = {}

    for record in raw_records:
        slug = slug_for_record(record, slug_key)
        if not slug:
            missing_slug_count += 1
            continue
        if slug in accepted_slugs:
            double_slug_count += 1
            continue

        field_data: dict[str, FieldValue] = {}
        for field in fields:
            entry = coerce(field, record.get(field.name), ref_lookup)
            if isinstance(entry, ConversionError):
                skipped_value_count += 1
                skipped_field_names.setdefault(field.name, None)
                logger.debug("Skipped value for %s on %s: %s", field.name, slug, entry)
                continue
            field_data[field.id] = entry

        existing = existing_by_slug.get(slug)
        accepted_slugs.add(slug)
        items.append(
            ImportResultItem(
                id=existing.id if existing is not None else None,
                slug=slug,
                field_data=field_data,
                action=(
                    ImportAction.CONFLICT
                    if existing is not None
                    else ImportAction.ADD
                ),
            )
        )

    warnings = ImportWarnings(
        missing_slug_count=missing_slug_count,
        double_slug_count=double_slug_count,
        skipped_value_count=skipped_value_count,
        skipped_field_names=list(skipped_field_names),
    )
    logger.info(
        "Reconciled %d records: %d to add, %d conflicts, %d dropped",
        len(raw_records),
        sum(1 for i in items if i.action == ImportAction.ADD),
        sum(1 for i in items if i.action == ImportAction.CONFLICT),
        missing_slug_count + double_slug_count,
    )
    return ImportResult(items=items, warnings=warnings)


async def build_reference_lookup(
    store: CollectionStore, fields: list[FieldDescriptor]
) -> dict[str, dict[str, str]]:
    """Fetch slug-to-id maps for every collection *fields* reference.

    Each referenced collection is fetched once, sequentially, including
    collections referenced from inside array fields.

    Args:
        store: The collection store.
        fields: Fields of the collection being imported into.

    Returns:
        ``{collection_id: {slug: item_id}}``.

    Raises:
        RecordImportError: If a referenced collection no longer exists.
    """
    lookup: dict[str, dict[str, str]] = {}
    for field in iter_reference_fields(fields):
        if field.collection_id in lookup:
            continue

        collection = await run_sync(store.get_collection, field.collection_id)
        if collection is None:
            raise RecordImportError(
                f"Import failed. “{field.name}” references a Collection "
                "that doesn’t exist."
            )

        referenced_items = await run_sync(collection.get_items)
        lookup[field.collection_id] = {
            item.slug: item.id for item in referenced_items
        }
        logger.debug(
            "Resolved %d slugs for referenced collection %s",
            len(referenced_items),
            field.collection_id,
        )
    return lookup
