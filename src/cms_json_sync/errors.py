"""Exception hierarchy shared by the sync engine, store adapters and surfaces.

Two tiers of failure exist during an import:

- **Hard errors** (``RecordImportError``) abort the whole import before any
  write happens.  Their message is shown to the operator verbatim.
- **Soft failures** (``ConversionError``) are *returned*, never raised, by
  the coercion engine and end up as warning counters on the import result.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all cms_json_sync errors."""


class RecordImportError(SyncError):
    """An import cannot proceed; nothing has been written."""


class CommitError(SyncError):
    """An import result is not in a committable state."""


class SequencerError(SyncError):
    """A conflict decision was requested on a resolved sequencer."""


class StoreError(SyncError):
    """The collection store failed to read or write data."""


class CollectionNotFoundError(StoreError):
    """A collection id (or name) does not exist in the store."""

    def __init__(self, collection_id: str) -> None:
        super().__init__(f"Collection '{collection_id}' not found")
        self.collection_id = collection_id


class ConversionError(SyncError):
    """A raw JSON value could not be converted for one field.

    Instances are returned by ``coerce()`` in place of a field value.
    """

    def __init__(self, field_name: str, message: str) -> None:
        super().__init__(message)
        self.field_name = field_name
