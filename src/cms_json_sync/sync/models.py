"""Pydantic models for the JSON import/export engine.

Defines the core data contracts used across all sync modules:

- ``FieldDescriptor``: Closed union of collection field types,
  discriminated on ``type``.
- ``FieldValue``: Closed union of typed field-data entries, mirroring the
  convertible field types.
- ``Item`` / ``ItemInput``: A stored collection item and a write request.
- ``ImportAction``, ``ImportResultItem``, ``ImportWarnings``,
  ``ImportResult``: The outcome of reconciling JSON records.
- ``CollectionSchema``: The slug settings plus fields of one collection.

All models are frozen (immutable).  Python attributes are snake_case; the
JSON wire names used by the collection store are camelCase aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
)


# ---------------------------------------------------------------------------
# Field descriptors
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Every field type a collection schema can declare."""

    STRING = "string"
    FORMATTED_TEXT = "formattedText"
    COLOR = "color"
    LINK = "link"
    FILE = "file"
    IMAGE = "image"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    ENUM = "enum"
    COLLECTION_REFERENCE = "collectionReference"
    MULTI_COLLECTION_REFERENCE = "multiCollectionReference"
    ARRAY = "array"
    DIVIDER = "divider"
    UNSUPPORTED = "unsupported"


#: Field types that carry no convertible value.
EXCLUDED_FIELD_TYPES = frozenset({FieldType.DIVIDER, FieldType.UNSUPPORTED})


class _FieldBase(BaseModel):
    id: str
    name: str

    model_config = MODEL_CONFIG


class StringField(_FieldBase):
    type: Literal["string"] = "string"


class FormattedTextField(_FieldBase):
    type: Literal["formattedText"] = "formattedText"


class ColorField(_FieldBase):
    type: Literal["color"] = "color"


class LinkField(_FieldBase):
    type: Literal["link"] = "link"


class FileField(_FieldBase):
    type: Literal["file"] = "file"


class ImageField(_FieldBase):
    type: Literal["image"] = "image"


class NumberField(_FieldBase):
    type: Literal["number"] = "number"


class BooleanField(_FieldBase):
    type: Literal["boolean"] = "boolean"


class DateField(_FieldBase):
    type: Literal["date"] = "date"


class EnumCase(BaseModel):
    """One declared case of an enum field."""

    id: str
    name: str

    model_config = MODEL_CONFIG


class EnumField(_FieldBase):
    type: Literal["enum"] = "enum"
    cases: list[EnumCase] = []


class CollectionReferenceField(_FieldBase):
    type: Literal["collectionReference"] = "collectionReference"
    collection_id: str


class MultiCollectionReferenceField(_FieldBase):
    type: Literal["multiCollectionReference"] = "multiCollectionReference"
    collection_id: str


class ArrayField(_FieldBase):
    """A repeated group of nested fields."""

    type: Literal["array"] = "array"
    fields: list[FieldDescriptor] = []


class DividerField(_FieldBase):
    type: Literal["divider"] = "divider"


class UnsupportedField(_FieldBase):
    type: Literal["unsupported"] = "unsupported"


FieldDescriptor = Annotated[
    Union[
        StringField,
        FormattedTextField,
        ColorField,
        LinkField,
        FileField,
        ImageField,
        NumberField,
        BooleanField,
        DateField,
        EnumField,
        CollectionReferenceField,
        MultiCollectionReferenceField,
        ArrayField,
        DividerField,
        UnsupportedField,
    ],
    Field(discriminator="type"),
]

ArrayField.model_rebuild()


def is_field_supported(field: FieldDescriptor) -> bool:
    """Return ``True`` if *field* carries a value that can be converted."""
    return FieldType(field.type) not in EXCLUDED_FIELD_TYPES


def iter_reference_fields(
    fields: list[FieldDescriptor],
) -> list[CollectionReferenceField | MultiCollectionReferenceField]:
    """Collect reference fields, descending into array fields."""
    found: list[CollectionReferenceField | MultiCollectionReferenceField] = []
    for field in fields:
        if isinstance(
            field, (CollectionReferenceField, MultiCollectionReferenceField)
        ):
            found.append(field)
        elif isinstance(field, ArrayField):
            found.extend(iter_reference_fields(field.fields))
    return found


# ---------------------------------------------------------------------------
# Typed field values
# ---------------------------------------------------------------------------


class ImageAsset(BaseModel):
    """A stored image: its URL plus optional alternative text."""

    url: str
    alt: str | None = None

    model_config = MODEL_CONFIG


class ColorStyle(BaseModel):
    """A theme-aware color with separate light and dark values."""

    light: str
    dark: str | None = None

    model_config = MODEL_CONFIG


class _ValueBase(BaseModel):
    model_config = MODEL_CONFIG


class StringValue(_ValueBase):
    type: Literal["string"] = "string"
    value: str = ""


class FormattedTextValue(_ValueBase):
    type: Literal["formattedText"] = "formattedText"
    value: str = ""


class ColorValue(_ValueBase):
    type: Literal["color"] = "color"
    value: ColorStyle | str | None = None


class LinkValue(_ValueBase):
    type: Literal["link"] = "link"
    value: str | None = None


class FileValue(_ValueBase):
    type: Literal["file"] = "file"
    value: str | None = None


class ImageValue(_ValueBase):
    type: Literal["image"] = "image"
    value: ImageAsset | None = None


class NumberValue(_ValueBase):
    type: Literal["number"] = "number"
    value: int | float = 0


class BooleanValue(_ValueBase):
    type: Literal["boolean"] = "boolean"
    value: bool = False


class DateValue(_ValueBase):
    type: Literal["date"] = "date"
    value: str | None = None


class EnumValue(_ValueBase):
    type: Literal["enum"] = "enum"
    value: str


class CollectionReferenceValue(_ValueBase):
    type: Literal["collectionReference"] = "collectionReference"
    value: str | None = None


class MultiCollectionReferenceValue(_ValueBase):
    type: Literal["multiCollectionReference"] = "multiCollectionReference"
    value: list[str] = []


class ArrayItem(BaseModel):
    """One sub-record of an array field, keyed by nested field id."""

    field_data: dict[str, FieldValue] = {}

    model_config = MODEL_CONFIG


class ArrayValue(_ValueBase):
    type: Literal["array"] = "array"
    value: list[ArrayItem] = []


FieldValue = Annotated[
    Union[
        StringValue,
        FormattedTextValue,
        ColorValue,
        LinkValue,
        FileValue,
        ImageValue,
        NumberValue,
        BooleanValue,
        DateValue,
        EnumValue,
        CollectionReferenceValue,
        MultiCollectionReferenceValue,
        ArrayValue,
    ],
    Field(discriminator="type"),
]

ArrayItem.model_rebuild()
ArrayValue.model_rebuild()


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class Item(BaseModel):
    """A persisted collection item.

    Attributes:
        id: Store identifier.
        slug: Natural key, unique within the collection.
        draft: Whether the item is unpublished.
        field_data: Field id to typed value.
    """

    id: str
    slug: str
    draft: bool = False
    field_data: dict[str, FieldValue] = {}

    model_config = MODEL_CONFIG


class ItemInput(BaseModel):
    """A write request for ``Collection.add_or_update_items``.

    Items without ``id`` are created (``slug`` is then required); items with
    an ``id`` have their field data replaced wholesale.
    """

    id: str | None = None
    slug: str | None = None
    field_data: dict[str, FieldValue] = {}

    model_config = MODEL_CONFIG

    @model_validator(mode="after")
    def _require_id_or_slug(self) -> ItemInput:
        if self.id is None and not self.slug:
            raise ValueError("a new item requires a slug")
        return self


class CollectionSchema(BaseModel):
    """Slug settings and ordered fields of one collection.

    Attributes:
        slug_field_name: Display name of the slug column, if any.
        slug_field_based_on: Id of the field the slug is derived from.
        fields: Ordered field descriptors.
    """

    slug_field_name: str | None = None
    slug_field_based_on: str | None = None
    fields: list[FieldDescriptor] = []

    model_config = MODEL_CONFIG

    @model_validator(mode="after")
    def _unique_field_ids(self) -> CollectionSchema:
        seen: set[str] = set()
        for field in self.fields:
            if field.id in seen:
                raise ValueError(f"duplicate field id '{field.id}'")
            seen.add(field.id)
        return self


# ---------------------------------------------------------------------------
# Import results
# ---------------------------------------------------------------------------


class ImportAction(str, Enum):
    """Classification of one incoming record."""

    ADD = "add"
    CONFLICT = "conflict"
    ON_CONFLICT_UPDATE = "onConflictUpdate"
    ON_CONFLICT_SKIP = "onConflictSkip"


class ImportResultItem(BaseModel):
    """An incoming record, converted and classified.

    Attributes:
        id: Id of the existing item for conflicts, ``None`` for adds.
        slug: Slugified natural key.
        field_data: Converted values of the fields present in the JSON.
        action: Current classification.
    """

    id: str | None = None
    slug: str
    field_data: dict[str, FieldValue] = {}
    action: ImportAction

    model_config = MODEL_CONFIG


class ImportWarnings(BaseModel):
    """Soft warnings aggregated during reconciliation.

    ``skipped_field_names`` is an ordered set: each name appears once, in
    the order it was first skipped.
    """

    missing_slug_count: int = 0
    double_slug_count: int = 0
    skipped_value_count: int = 0
    skipped_field_names: list[str] = []

    model_config = MODEL_CONFIG


class ImportResult(BaseModel):
    """Aggregate outcome of reconciling one JSON document."""

    items: list[ImportResultItem] = []
    warnings: ImportWarnings = ImportWarnings()

    model_config = MODEL_CONFIG

    def with_action(self, action: ImportAction) -> list[ImportResultItem]:
        """Items whose action equals *action*."""
        return [item for item in self.items if item.action == action]

    @property
    def added(self) -> list[ImportResultItem]:
        return self.with_action(ImportAction.ADD)

    @property
    def conflicts(self) -> list[ImportResultItem]:
        """Items still awaiting a conflict decision."""
        return self.with_action(ImportAction.CONFLICT)

    @property
    def updated(self) -> list[ImportResultItem]:
        return self.with_action(ImportAction.ON_CONFLICT_UPDATE)

    @property
    def skipped(self) -> list[ImportResultItem]:
        return self.with_action(ImportAction.ON_CONFLICT_SKIP)

    @property
    def has_conflicts(self) -> bool:
        return any(
            item.action == ImportAction.CONFLICT for item in self.items
        )
