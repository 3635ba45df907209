"""File-backed collection store.

Keeps every collection of a workspace in one JSON document::

    {"collections": [{"id": "...", "name": "...", "slugFieldName": "Slug",
                      "slugFieldBasedOn": "<field id>", "fields": [...],
                      "items": [...]}]}

Key design choices:

* **Re-read on every call** -- the file is the source of truth, so a
  ``JsonFileCollection`` never caches fields or items.
* **Atomic writes** -- ``save()`` goes through ``file_handler.write_file``,
  so readers never see partial data.
* **One write per batch** -- ``add_or_update_items`` validates the whole
  batch before touching disk; a rejected batch leaves the file unchanged.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from pydantic import BaseModel, ValidationError

from cms_json_sync.errors import CollectionNotFoundError, StoreError
from cms_json_sync.file_handler import read_file_with_encoding, write_file
from cms_json_sync.sync.models import (
    MODEL_CONFIG,
    FieldDescriptor,
    Item,
    ItemInput,
)

logger = logging.getLogger(__name__)


class CollectionRecord(BaseModel):
    """One collection as stored in the workspace file."""

    id: str
    name: str
    slug_field_name: str | None = None
    slug_field_based_on: str | None = None
    fields: list[FieldDescriptor] = []
    items: list[Item] = []

    model_config = MODEL_CONFIG


class Workspace(BaseModel):
    """Root of the workspace file."""

    collections: list[CollectionRecord] = []

    model_config = MODEL_CONFIG


def new_item_id() -> str:
    """Return a short random item id."""
    return uuid.uuid4().hex[:9]


class JsonFileStore:
    """Collection store backed by a single JSON workspace file.

    Args:
        path: Workspace file.  A missing file reads as an empty workspace.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # ------------------------------------------------------------------
    # CollectionStore
    # ------------------------------------------------------------------

    def get_collection(self, collection_id: str) -> JsonFileCollection | None:
        for record in self.load().collections:
            if record.id == collection_id:
                return JsonFileCollection(self, record)
        return None

    def list_collections(self) -> list[JsonFileCollection]:
        return [
            JsonFileCollection(self, record)
            for record in self.load().collections
        ]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> Workspace:
        """Read and validate the workspace file.

        Raises:
            StoreError: If the file is not valid JSON or does not match the
                workspace format.
        """
        if not self.path.exists():
            return Workspace()

        content, _encoding = read_file_with_encoding(self.path)
        if not content.strip():
            return Workspace()
        try:
            return Workspace.model_validate_json(content)
        except ValidationError as exc:
            raise StoreError(
                f"Invalid workspace file {self.path}: {exc.error_count()} "
                f"validation error(s); first: {exc.errors()[0]['msg']}"
            ) from exc

    def save(self, workspace: Workspace) -> None:
        """Persist *workspace* atomically, creating the directory if needed."""
        payload = workspace.model_dump(
            mode="json", by_alias=True, exclude_none=True
        )
        write_file(
            self.path, json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
        )


class JsonFileCollection:
    """A collection view over a ``JsonFileStore``.

    Attributes are a snapshot taken when the view was created; fields and
    items are re-read from disk on each call.
    """

    def __init__(self, store: JsonFileStore, record: CollectionRecord) -> None:
        self._store = store
        self.id = record.id
        self.name = record.name
        self.slug_field_name = record.slug_field_name
        self.slug_field_based_on = record.slug_field_based_on

    def get_fields(self) -> list[FieldDescriptor]:
        return list(self._record().fields)

    def get_items(self) -> list[Item]:
        return list(self._record().items)

    def add_or_update_items(self, items: list[ItemInput]) -> None:
        """Create or overwrite items in one atomic write.

        Raises:
            StoreError: If an update targets an unknown id, or a created
                item's slug is already taken.
        """
        workspace = self._store.load()
        record = self._find(workspace)

        stored = list(record.items)
        index_by_id = {item.id: pos for pos, item in enumerate(stored)}
        taken_slugs = {item.slug for item in stored}
        created = updated = 0

        for entry in items:
            if entry.id is None:
                if entry.slug in taken_slugs:
                    raise StoreError(
                        f"Slug '{entry.slug}' already exists in '{self.name}'"
                    )
                stored.append(
                    Item(
                        id=new_item_id(),
                        slug=entry.slug,
                        field_data=entry.field_data,
                    )
                )
                taken_slugs.add(entry.slug)
                created += 1
                continue

            pos = index_by_id.get(entry.id)
            if pos is None:
                raise StoreError(
                    f"Item '{entry.id}' not found in '{self.name}'"
                )
            stored[pos] = stored[pos].model_copy(
                update={"field_data": dict(entry.field_data)}
            )
            updated += 1

        collections = [
            c.model_copy(update={"items": stored}) if c.id == self.id else c
            for c in workspace.collections
        ]
        self._store.save(workspace.model_copy(update={"collections": collections}))
        logger.info(
            "Wrote %s: %d created, %d updated", self.name, created, updated
        )

    def _record(self) -> CollectionRecord:
        return self._find(self._store.load())

    def _find(self, workspace: Workspace) -> CollectionRecord:
        for record in workspace.collections:
            if record.id == self.id:
                return record
        raise CollectionNotFoundError(self.id)
