"""Tests for the sync data models: wire format, unions and validators."""

import pytest
from pydantic import TypeAdapter, ValidationError

from cms_json_sync.sync.models import (
    ArrayField,
    CollectionSchema,
    EnumField,
    FieldDescriptor,
    ImportAction,
    ImportResult,
    ImportResultItem,
    ItemInput,
    NumberValue,
    StringField,
    is_field_supported,
    iter_reference_fields,
)

FIELD_ADAPTER = TypeAdapter(FieldDescriptor)


class TestFieldDescriptors:
    def test_parses_by_type(self):
        field = FIELD_ADAPTER.validate_python(
            {
                "id": "f-cat",
                "name": "Category",
                "type": "enum",
                "cases": [{"id": "c-1", "name": "News"}],
            }
        )
        assert isinstance(field, EnumField)
        assert field.cases[0].name == "News"

    def test_camel_case_wire_names(self):
        field = FIELD_ADAPTER.validate_python(
            {
                "id": "f-author",
                "name": "Author",
                "type": "collectionReference",
                "collectionId": "authors",
            }
        )
        assert field.collection_id == "authors"
        assert field.model_dump(by_alias=True)["collectionId"] == "authors"

    def test_nested_array_fields(self):
        field = FIELD_ADAPTER.validate_python(
            {
                "id": "g",
                "name": "Gallery",
                "type": "array",
                "fields": [{"id": "cap", "name": "Caption", "type": "string"}],
            }
        )
        assert isinstance(field, ArrayField)
        assert isinstance(field.fields[0], StringField)

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            FIELD_ADAPTER.validate_python({"id": "v", "name": "V", "type": "video"})

    def test_frozen(self):
        field = StringField(id="t", name="Title")
        with pytest.raises(ValidationError):
            field.name = "Other"

    @pytest.mark.parametrize(
        "field_type,supported",
        [("string", True), ("array", True), ("divider", False), ("unsupported", False)],
    )
    def test_is_field_supported(self, field_type, supported):
        field = FIELD_ADAPTER.validate_python({"id": "f", "name": "F", "type": field_type})
        assert is_field_supported(field) is supported

    def test_iter_reference_fields_descends_into_arrays(self, fields):
        assert [f.id for f in iter_reference_fields(fields)] == ["author", "tags"]

        nested = ArrayField(
            id="g",
            name="Credits",
            fields=[
                FIELD_ADAPTER.validate_python(
                    {
                        "id": "who",
                        "name": "Who",
                        "type": "collectionReference",
                        "collectionId": "authors",
                    }
                )
            ],
        )
        assert [f.id for f in iter_reference_fields([nested])] == ["who"]


class TestItemInput:
    def test_new_item_needs_slug(self):
        with pytest.raises(ValidationError, match="requires a slug"):
            ItemInput(field_data={"views": NumberValue(value=1)})

    def test_update_needs_only_id(self):
        assert ItemInput(id="p-1").slug is None


class TestCollectionSchema:
    def test_duplicate_field_ids_rejected(self):
        with pytest.raises(ValidationError, match="duplicate field id 'title'"):
            CollectionSchema(
                fields=[StringField(id="title", name="Title"), StringField(id="title", name="Name")]
            )


class TestImportResult:
    def test_action_views(self):
        result = ImportResult(
            items=[
                ImportResultItem(slug="a", action=ImportAction.ADD),
                ImportResultItem(id="1", slug="b", action=ImportAction.CONFLICT),
                ImportResultItem(id="2", slug="c", action=ImportAction.ON_CONFLICT_UPDATE),
                ImportResultItem(id="3", slug="d", action=ImportAction.ON_CONFLICT_SKIP),
            ]
        )
        assert [i.slug for i in result.added] == ["a"]
        assert [i.slug for i in result.conflicts] == ["b"]
        assert [i.slug for i in result.updated] == ["c"]
        assert [i.slug for i in result.skipped] == ["d"]
        assert result.has_conflicts is True

    def test_empty(self):
        result = ImportResult()
        assert result.has_conflicts is False
        assert result.warnings.skipped_field_names == []
