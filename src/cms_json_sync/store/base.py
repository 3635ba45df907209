"""Interfaces the sync engine consumes from a host collection store.

The store is the source of truth for fields and items and the only
component that mutates persisted state.  Adapters are synchronous; the
engine awaits them through ``core.async_utils.run_sync``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from cms_json_sync.errors import CollectionNotFoundError

if TYPE_CHECKING:
    from cms_json_sync.sync.models import FieldDescriptor, Item, ItemInput


class Collection(Protocol):
    """One typed collection in the store."""

    id: str
    name: str
    slug_field_name: str | None
    slug_field_based_on: str | None

    def get_fields(self) -> list[FieldDescriptor]:
        """Return the ordered field descriptors."""
        ...  # pragma: no cover

    def get_items(self) -> list[Item]:
        """Return the ordered items."""
        ...  # pragma: no cover

    def add_or_update_items(self, items: list[ItemInput]) -> None:
        """Apply one batched write.

        Items without an id are created (slug required).  Items with an id
        have their field data replaced wholesale; nothing is merged.
        """
        ...  # pragma: no cover


class CollectionStore(Protocol):
    """Lookup of collections by id."""

    def get_collection(self, collection_id: str) -> Collection | None:
        """Return the collection, or ``None`` if it does not exist."""
        ...  # pragma: no cover

    def list_collections(self) -> list[Collection]:
        """Return every collection in the store."""
        ...  # pragma: no cover


def find_collection(store: CollectionStore, ref: str) -> Collection:
    """Resolve *ref* as a collection id, falling back to its name.

    Name matching is case-insensitive so operators can type
    ``posts`` for a collection called ``Posts``.

    Raises:
        CollectionNotFoundError: If nothing matches.
    """
    collection = store.get_collection(ref)
    if collection is not None:
        return collection

    wanted = ref.casefold()
    for candidate in store.list_collections():
        if candidate.name.casefold() == wanted:
            return candidate
    raise CollectionNotFoundError(ref)
