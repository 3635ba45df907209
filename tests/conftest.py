"""Shared pytest fixtures for cms-json-sync tests."""

from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from cms_json_sync.errors import StoreError
from cms_json_sync.sync.models import (
    ArrayField,
    BooleanField,
    CollectionReferenceField,
    ColorField,
    DateField,
    DividerField,
    EnumCase,
    EnumField,
    FieldDescriptor,
    FileField,
    FormattedTextField,
    ImageField,
    Item,
    ItemInput,
    LinkField,
    MultiCollectionReferenceField,
    NumberField,
    StringField,
    UnsupportedField,
)

# ---------------------------------------------------------------------------
# In-memory collection store
# ---------------------------------------------------------------------------


@dataclass
class FakeCollection:
    """Collection kept in memory; records every batched write."""

    id: str
    name: str
    slug_field_name: str | None = "Slug"
    slug_field_based_on: str | None = None
    fields: list[FieldDescriptor] = field(default_factory=list)
    items: list[Item] = field(default_factory=list)
    writes: list[list[ItemInput]] = field(default_factory=list)
    fail_writes: bool = False

    def get_fields(self) -> list[FieldDescriptor]:
        return list(self.fields)

    def get_items(self) -> list[Item]:
        return list(self.items)

    def add_or_update_items(self, items: list[ItemInput]) -> None:
        if self.fail_writes:
            raise StoreError("disk full")
        self.writes.append(list(items))
        index_by_id = {item.id: pos for pos, item in enumerate(self.items)}
        for entry in items:
            if entry.id is None:
                self.items.append(
                    Item(
                        id=f"new-{len(self.items)}",
                        slug=entry.slug,
                        field_data=entry.field_data,
                    )
                )
            else:
                pos = index_by_id[entry.id]
                self.items[pos] = self.items[pos].model_copy(
                    update={"field_data": dict(entry.field_data)}
                )


class FakeStore:
    """CollectionStore over a dict of ``FakeCollection``."""

    def __init__(self, *collections: FakeCollection) -> None:
        self.collections = {c.id: c for c in collections}

    def get_collection(self, collection_id: str) -> FakeCollection | None:
        return self.collections.get(collection_id)

    def list_collections(self) -> list[FakeCollection]:
        return list(self.collections.values())


# ---------------------------------------------------------------------------
# Sample schema
# ---------------------------------------------------------------------------


def post_fields() -> list[FieldDescriptor]:
    """One field of every type, as in a blog ``Posts`` collection."""
    return [
        StringField(id="title", name="Title"),
        FormattedTextField(id="body", name="Body"),
        ColorField(id="accent", name="Accent"),
        LinkField(id="website", name="Website"),
        FileField(id="attachment", name="Attachment"),
        ImageField(id="cover", name="Cover"),
        NumberField(id="views", name="Views"),
        BooleanField(id="featured", name="Featured"),
        DateField(id="published", name="Published"),
        EnumField(
            id="category",
            name="Category",
            cases=[
                EnumCase(id="c-news", name="News"),
                EnumCase(id="c-guide", name="Guide"),
            ],
        ),
        CollectionReferenceField(
            id="author", name="Author", collection_id="authors"
        ),
        MultiCollectionReferenceField(
            id="tags", name="Tags", collection_id="tags"
        ),
        ArrayField(
            id="gallery",
            name="Gallery",
            fields=[
                StringField(id="caption", name="Caption"),
                ImageField(id="photo", name="Photo"),
            ],
        ),
        DividerField(id="divider", name="Divider"),
        UnsupportedField(id="legacy", name="Legacy"),
    ]


def make_store(existing_posts: list[Item] | None = None) -> FakeStore:
    """Store with ``posts``, ``authors`` and ``tags`` collections."""
    posts = FakeCollection(
        id="posts",
        name="Posts",
        slug_field_name="Slug",
        slug_field_based_on="title",
        fields=post_fields(),
        items=list(existing_posts or []),
    )
    authors = FakeCollection(
        id="authors",
        name="Authors",
        fields=[StringField(id="name", name="Name")],
        items=[
            Item(id="a-jane", slug="jane"),
            Item(id="a-omar", slug="omar"),
        ],
    )
    tags = FakeCollection(
        id="tags",
        name="Tags",
        fields=[StringField(id="label", name="Label")],
        items=[
            Item(id="t-news", slug="news"),
            Item(id="t-tech", slug="tech"),
        ],
    )
    return FakeStore(posts, authors, tags)


@pytest.fixture
def fields() -> list[FieldDescriptor]:
    return post_fields()


@pytest.fixture
def ref_lookup() -> dict[str, dict[str, str]]:
    return {
        "authors": {"jane": "a-jane", "omar": "a-omar"},
        "tags": {"news": "t-news", "tech": "t-tech"},
    }


@pytest.fixture
def store() -> FakeStore:
    return make_store()


@pytest.fixture
def store_factory():
    """``make_store`` itself, for tests that seed existing posts."""
    return make_store
