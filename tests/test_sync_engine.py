"""Tests for the import and export engines."""

from __future__ import annotations

import json

import pytest

from cms_json_sync.errors import (
    CollectionNotFoundError,
    CommitError,
    RecordImportError,
    StoreError,
)
from cms_json_sync.sync.engine import ExportEngine, ImportEngine, build_item_inputs
from cms_json_sync.sync.models import (
    ArrayItem,
    ArrayValue,
    BooleanValue,
    CollectionReferenceValue,
    ColorStyle,
    ColorValue,
    DateValue,
    EnumValue,
    FileValue,
    FormattedTextValue,
    ImageAsset,
    ImageValue,
    ImportAction,
    ImportResult,
    ImportResultItem,
    Item,
    LinkValue,
    MultiCollectionReferenceValue,
    NumberValue,
    StringValue,
)
from cms_json_sync.sync.resolver import (
    ConflictSequencer,
    SkipAllResolver,
    UpdateAllResolver,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _post(slug: str, item_id: str, title: str, **extra) -> Item:
    field_data = {"title": StringValue(value=title), **extra}
    return Item(id=item_id, slug=slug, field_data=field_data)


def _full_post() -> Item:
    return Item(
        id="p-1",
        slug="hello-world",
        draft=True,
        field_data={
            "title": StringValue(value="Hello World"),
            "body": FormattedTextValue(value="<p>Hi <em>there</em></p>"),
            "accent": ColorValue(value=ColorStyle(light="#ffffff", dark="#000000")),
            "website": LinkValue(value="https://example.com"),
            "attachment": FileValue(value="https://cdn.example.com/a.pdf"),
            "cover": ImageValue(
                value=ImageAsset(url="https://cdn.example.com/c.png", alt="Cover")
            ),
            "views": NumberValue(value=1250),
            "featured": BooleanValue(value=True),
            "published": DateValue(value="2024-03-05T00:00:00.000Z"),
            "category": EnumValue(value="c-guide"),
            "author": CollectionReferenceValue(value="a-jane"),
            "tags": MultiCollectionReferenceValue(value=["t-news", "t-tech"]),
            "gallery": ArrayValue(
                value=[
                    ArrayItem(
                        field_data={
                            "caption": StringValue(value="One"),
                            "photo": ImageValue(
                                value=ImageAsset(url="https://cdn.example.com/1.png")
                            ),
                        }
                    )
                ]
            ),
        },
    )


def _dump(records) -> str:
    return json.dumps(records)


# ---------------------------------------------------------------------------
# Prepare
# ---------------------------------------------------------------------------


class TestPrepare:
    async def test_classifies_against_existing(self, store_factory):
        store = store_factory([_post("hello", "p-1", "Hello")])
        engine = ImportEngine(store, "posts")

        result = await engine.prepare(
            _dump([{"Slug": "hello", "Title": "Hi"}, {"Slug": "new", "Title": "N"}])
        )

        assert [(i.slug, i.action) for i in result.items] == [
            ("hello", ImportAction.CONFLICT),
            ("new", ImportAction.ADD),
        ]
        assert result.items[0].id == "p-1"

    async def test_resolves_by_collection_name(self, store):
        engine = ImportEngine(store, "POSTS")
        await engine.prepare(_dump([{"Slug": "a"}]))
        assert (await engine.collection()).id == "posts"

    async def test_nothing_written(self, store):
        engine = ImportEngine(store, "posts")
        await engine.prepare(_dump([{"Slug": "a"}]))
        assert store.collections["posts"].writes == []

    async def test_invalid_json(self, store):
        with pytest.raises(RecordImportError, match="could not be parsed"):
            await ImportEngine(store, "posts").prepare("not json")

    async def test_unknown_collection(self, store):
        with pytest.raises(CollectionNotFoundError):
            await ImportEngine(store, "pages").prepare("[]")

    async def test_collection_without_slug_field(self, store):
        store.collections["posts"].slug_field_name = None
        with pytest.raises(RecordImportError, match="No slug field"):
            await ImportEngine(store, "posts").prepare(_dump([{"Slug": "a"}]))

    async def test_missing_referenced_collection(self, store):
        del store.collections["tags"]
        with pytest.raises(RecordImportError, match="“Tags” references"):
            await ImportEngine(store, "posts").prepare(_dump([{"Slug": "a"}]))

    async def test_duplicate_scenario(self, store):
        """"Foo Bar" and "foo-bar" are the same slug: one add, one duplicate."""
        result = await ImportEngine(store, "posts").prepare(
            _dump([{"Slug": "Foo Bar", "Title": "A"}, {"Slug": "foo-bar", "Title": "B"}])
        )
        assert len(result.items) == 1
        assert result.items[0].slug == "foo-bar"
        assert result.items[0].action == ImportAction.ADD
        assert result.warnings.double_slug_count == 1

    async def test_unconvertible_number_scenario(self, store):
        result = await ImportEngine(store, "posts").prepare(
            _dump([{"Slug": "a", "Views": "abc"}])
        )
        assert "views" not in result.items[0].field_data
        assert result.warnings.skipped_value_count == 1

    async def test_records_never_silently_lost(self, store_factory):
        store = store_factory([_post("dup", "p-1", "Dup")])
        records = [
            {"Slug": "a"},
            {"Slug": ""},
            {"Slug": "A"},
            {"Slug": "dup"},
            {"Slug": "dup"},
            {"Title": "no slug key"},
        ]
        result = await ImportEngine(store, "posts").prepare(_dump(records))
        warnings = result.warnings
        assert (
            warnings.missing_slug_count
            + warnings.double_slug_count
            + len(result.items)
            == len(records)
        )


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------


class TestCommit:
    async def test_single_batched_write(self, store_factory):
        store = store_factory(
            [_post("one", "p-1", "One"), _post("two", "p-2", "Two")]
        )
        engine = ImportEngine(store, "posts")
        result = await engine.prepare(
            _dump(
                [
                    {"Slug": "one", "Title": "One v2"},
                    {"Slug": "three", "Title": "Three"},
                    {"Slug": "two", "Title": "Two v2"},
                ]
            )
        )

        sequencer = ConflictSequencer(result)
        sequencer.choose_update()
        sequencer.choose_skip()
        summary = await engine.commit(sequencer.result())

        posts = store.collections["posts"]
        assert len(posts.writes) == 1
        (batch,) = posts.writes
        assert [(e.id, e.slug) for e in batch] == [("p-1", None), (None, "three")]
        assert posts.items[0].field_data["title"] == StringValue(value="One v2")
        assert posts.items[1].field_data["title"] == StringValue(value="Two")
        assert summary == "Added 1 item. Updated 1 item. Skipped 1 item."

    async def test_update_replaces_field_data(self, store_factory):
        existing = _post("one", "p-1", "One", views=NumberValue(value=9))
        store = store_factory([existing])
        engine = ImportEngine(store, "posts")

        result = await engine.prepare(_dump([{"Slug": "one", "Title": "New"}]))
        await engine.commit(UpdateAllResolver().resolve(result))

        # Views was not in the JSON: the wholesale write drops it.
        item = store.collections["posts"].items[0]
        assert item.field_data == {"title": StringValue(value="New")}

    async def test_skip_all_writes_nothing(self, store_factory):
        store = store_factory([_post("one", "p-1", "One")])
        engine = ImportEngine(store, "posts")

        result = await engine.prepare(_dump([{"Slug": "one", "Title": "X"}]))
        summary = await engine.commit(SkipAllResolver().resolve(result))

        assert store.collections["posts"].writes == []
        assert summary == "Skipped 1 item"

    async def test_summary_with_warnings(self, store):
        engine = ImportEngine(store, "posts")
        result = await engine.prepare(
            _dump(
                [
                    {"Slug": "a", "Views": "x", "Category": "Sports"},
                    {"Slug": "b", "Views": "y"},
                    {"Slug": ""},
                    {"Slug": "a"},
                ]
            )
        )
        summary = await engine.commit(result)
        assert summary == (
            "Added 2 items. "
            "Skipped 1 item because of missing slug field. "
            "Skipped 1 item because of duplicate slugs. "
            "Skipped 3 values for 2 fields (Views and Category)."
        )

    async def test_undecided_conflicts_rejected(self, store_factory):
        store = store_factory([_post("one", "p-1", "One")])
        engine = ImportEngine(store, "posts")
        result = await engine.prepare(_dump([{"Slug": "one"}]))

        with pytest.raises(CommitError, match="1 conflicts still need a decision"):
            await engine.commit(result)
        assert store.collections["posts"].writes == []

    async def test_failed_write_keeps_decisions(self, store_factory):
        store = store_factory([_post("one", "p-1", "One")])
        posts = store.collections["posts"]
        posts.fail_writes = True
        engine = ImportEngine(store, "posts")

        result = await engine.prepare(_dump([{"Slug": "one", "Title": "v2"}]))
        decided = UpdateAllResolver().resolve(result)
        with pytest.raises(StoreError, match="disk full"):
            await engine.commit(decided)

        # The same decided result commits once the store recovers.
        posts.fail_writes = False
        await engine.commit(decided)
        assert posts.items[0].field_data["title"] == StringValue(value="v2")

    async def test_empty_result(self, store):
        summary = await ImportEngine(store, "posts").commit(ImportResult())
        assert summary == "Successfully imported Collection"
        assert store.collections["posts"].writes == []


class TestBuildItemInputs:
    def test_update_without_id(self):
        result = ImportResult(
            items=[
                ImportResultItem(
                    slug="x", action=ImportAction.ON_CONFLICT_UPDATE
                )
            ]
        )
        with pytest.raises(CommitError, match="has no id"):
            build_item_inputs(result)

    def test_conflict_rejected(self):
        result = ImportResult(
            items=[
                ImportResultItem(id="p", slug="x", action=ImportAction.CONFLICT)
            ]
        )
        with pytest.raises(CommitError, match="no decision"):
            build_item_inputs(result)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


class TestExport:
    async def test_export_json(self, store_factory):
        store = store_factory([_post("one", "p-1", "One")])
        text = await ExportEngine(store, "posts").run()

        records = json.loads(text)
        assert records[0]["Slug"] == "one"
        assert records[0]["Title"] == "One"
        assert text.endswith("\n")

    async def test_limit(self, store_factory):
        store = store_factory(
            [_post(f"p{n}", f"id-{n}", f"P{n}") for n in range(7)]
        )
        text = await ExportEngine(store, "posts").run(limit=5)
        assert [r["Slug"] for r in json.loads(text)] == [
            "p0",
            "p1",
            "p2",
            "p3",
            "p4",
        ]

    async def test_indent(self, store):
        text = await ExportEngine(store, "posts", indent=4).run()
        assert text == "[]\n"

    async def test_idempotent(self, store_factory):
        store = store_factory([_full_post()])
        first = await ExportEngine(store, "posts").run()
        second = await ExportEngine(store, "posts").run()
        assert first == second

    async def test_unknown_collection(self, store):
        with pytest.raises(CollectionNotFoundError):
            await ExportEngine(store, "nope").run()


# ---------------------------------------------------------------------------
# Round trip
# ---------------------------------------------------------------------------


class TestRoundTrip:
    async def test_export_then_import_reproduces_values(self, store_factory):
        original = _full_post()
        store = store_factory([original])

        text = await ExportEngine(store, "posts").run()
        engine = ImportEngine(store, "posts")
        result = await engine.prepare(text)

        (item,) = result.items
        assert item.action == ImportAction.CONFLICT
        await engine.commit(UpdateAllResolver().resolve(result))

        stored = store.collections["posts"].items[0].field_data
        expected = dict(original.field_data)
        # Colors flatten to the light value on export.
        assert stored.pop("accent") == ColorValue(value="#ffffff")
        expected.pop("accent")
        assert stored == expected
        assert result.warnings.skipped_value_count == 0

    async def test_empty_values_round_trip(self, store_factory):
        bare = Item(id="p-1", slug="bare", field_data={})
        store = store_factory([bare])

        text = await ExportEngine(store, "posts").run()
        result = await ImportEngine(store, "posts").prepare(text)

        assert result.warnings.skipped_value_count == 0
        data = result.items[0].field_data
        assert data["published"] == DateValue(value=None)
        assert data["author"] == CollectionReferenceValue(value=None)
        assert data["cover"] == ImageValue(value=None)
