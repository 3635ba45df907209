"""Collection store port and the bundled file-backed adapter."""

from .base import Collection, CollectionStore, find_collection
from .json_store import JsonFileCollection, JsonFileStore

__all__ = [
    "Collection",
    "CollectionStore",
    "JsonFileCollection",
    "JsonFileStore",
    "find_collection",
]
