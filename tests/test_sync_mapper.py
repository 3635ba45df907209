"""Tests for record key mapping.

Covers:
- slugify: lower-casing, dash runs, parentheses, underscores, unicode
- scalar_text rendering of JSON scalars
- parse_json_records: arrays of objects only
- collect_json_keys keeps first-seen order
- resolve_slug_key: slug field name first, then the based-on field name
"""

from __future__ import annotations

import pytest

from cms_json_sync.errors import RecordImportError
from cms_json_sync.sync.mapper import (
    collect_json_keys,
    parse_json_records,
    resolve_slug_key,
    scalar_text,
    slug_for_record,
    slugify,
)
from cms_json_sync.sync.models import CollectionSchema, StringField


def _schema(
    slug_field_name: str | None = "Slug",
    slug_field_based_on: str | None = "title",
) -> CollectionSchema:
    return CollectionSchema(
        slug_field_name=slug_field_name,
        slug_field_based_on=slug_field_based_on,
        fields=[
            StringField(id="title", name="Title"),
            StringField(id="summary", name="Summary"),
        ],
    )


# ---------------------------------------------------------------------------
# slugify
# ---------------------------------------------------------------------------


class TestSlugify:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("Foo Bar", "foo-bar"),
            ("  Hello, World!! ", "hello-world"),
            ("snake_case_name", "snake-case-name"),
            ("Release (v2)", "release-(v2)"),
            ("Crème Brûlée", "crème-brûlée"),
            ("already-a-slug", "already-a-slug"),
            ("---", ""),
            ("", ""),
        ],
    )
    def test_slugify(self, value, expected):
        assert slugify(value) == expected

    def test_idempotent(self):
        """Slugifying a slug leaves it unchanged."""
        once = slugify("My First Post!")
        assert slugify(once) == once


# ---------------------------------------------------------------------------
# scalar_text / slug_for_record
# ---------------------------------------------------------------------------


class TestScalarText:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("text", "text"),
            (3, "3"),
            (1.0, "1"),
            (1.5, "1.5"),
            (True, "true"),
            (False, "false"),
            (None, None),
            ([1, 2], None),
            ({"a": 1}, None),
        ],
    )
    def test_rendering(self, value, expected):
        assert scalar_text(value) == expected


class TestSlugForRecord:
    def test_slugifies_value(self):
        assert slug_for_record({"Slug": "Hello World"}, "Slug") == "hello-world"

    def test_number_value(self):
        assert slug_for_record({"Slug": 42}, "Slug") == "42"

    @pytest.mark.parametrize("record", [{}, {"Slug": None}, {"Slug": ""}, {"Slug": "!!"}])
    def test_missing_slug_is_empty(self, record):
        assert slug_for_record(record, "Slug") == ""


# ---------------------------------------------------------------------------
# parse_json_records
# ---------------------------------------------------------------------------


class TestParseJsonRecords:
    def test_array_of_objects(self):
        records = parse_json_records('[{"Title": "A"}, {"Title": "B", "n": 1}]')
        assert records == [{"Title": "A"}, {"Title": "B", "n": 1}]

    def test_empty_array(self):
        assert parse_json_records("[]") == []

    def test_invalid_json(self):
        with pytest.raises(RecordImportError, match="could not be parsed"):
            parse_json_records("[{")

    def test_object_instead_of_array(self):
        with pytest.raises(RecordImportError, match="array of objects"):
            parse_json_records('{"Title": "A"}')

    def test_non_object_element(self):
        with pytest.raises(RecordImportError, match="Entry 2"):
            parse_json_records('[{"Title": "A"}, "B"]')


class TestCollectJsonKeys:
    def test_first_seen_order(self):
        records = [{"b": 1, "a": 2}, {"c": 3, "a": 4}, {}]
        assert collect_json_keys(records) == ["b", "a", "c"]


# ---------------------------------------------------------------------------
# resolve_slug_key
# ---------------------------------------------------------------------------


class TestResolveSlugKey:
    def test_prefers_slug_field_name(self):
        assert resolve_slug_key(_schema(), ["Title", "Slug"]) == "Slug"

    def test_falls_back_to_based_on_field(self):
        """Without a Slug key, the title the slug is based on is used."""
        assert resolve_slug_key(_schema(), ["Title", "Summary"]) == "Title"

    def test_no_slug_field_in_schema(self):
        with pytest.raises(RecordImportError, match="No slug field"):
            resolve_slug_key(_schema(slug_field_name=None), ["Slug"])

    def test_no_matching_key(self):
        with pytest.raises(RecordImportError, match="key named “Slug”"):
            resolve_slug_key(_schema(), ["Summary"])

    def test_based_on_missing_from_schema(self):
        schema = _schema(slug_field_based_on="gone")
        with pytest.raises(RecordImportError):
            resolve_slug_key(schema, ["Title"])
