"""Export projection: turn typed collection items back into plain JSON.

``project()`` maps each item to a record keyed by field display name.  Key
order is the slug first, the draft marker second (only for drafts), then
schema field order.  Divider and unsupported fields are left out.

Projection never raises: a stored value that does not match its field's
type, or that cannot be projected, comes out as ``null``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, assert_never

from cms_json_sync.sync.models import (
    ArrayField,
    ArrayValue,
    BooleanValue,
    CollectionReferenceValue,
    ColorStyle,
    ColorValue,
    DateValue,
    EnumValue,
    FieldDescriptor,
    FieldType,
    FieldValue,
    FileValue,
    FormattedTextValue,
    ImageValue,
    Item,
    LinkValue,
    MultiCollectionReferenceValue,
    NumberValue,
    StringValue,
    is_field_supported,
)

logger = logging.getLogger(__name__)

DEFAULT_SLUG_KEY = "Slug"
DEFAULT_DRAFT_KEY = ":draft"

JSONRecord = dict[str, Any]


def project(
    slug_field_name: str | None,
    fields: list[FieldDescriptor],
    items: list[Item],
    draft_key: str = DEFAULT_DRAFT_KEY,
) -> list[JSONRecord]:
    """Project *items* into plain JSON records.

    Args:
        slug_field_name: Key for the slug; ``"Slug"`` when unset.
        fields: Collection fields, in schema order.
        items: Items to project, in output order.
        draft_key: Key of the draft marker, emitted for drafts only.

    Returns:
        One record per item.
    """
    supported = [field for field in fields if is_field_supported(field)]
    slug_key = slug_field_name or DEFAULT_SLUG_KEY

    records: list[JSONRecord] = []
    for item in items:
        record: JSONRecord = {slug_key: item.slug}
        if item.draft:
            record[draft_key] = True
        record.update(_project_fields(supported, item.field_data))
        records.append(record)
    return records


def records_to_json(records: list[JSONRecord], indent: int = 2) -> str:
    """Serialize records as indented JSON with a trailing newline.

    Output is deterministic: identical records give identical text.
    """
    return json.dumps(records, indent=indent, ensure_ascii=False) + "\n"


def _project_fields(
    fields: list[FieldDescriptor], field_data: dict[str, FieldValue]
) -> JSONRecord:
    record: JSONRecord = {}
    for field in fields:
        entry = field_data.get(field.id)
        if entry is None:
            record[field.name] = _empty_value(field)
            continue
        if entry.type != field.type:
            logger.debug(
                "Stored %s value does not match %s field %s",
                entry.type,
                field.type,
                field.name,
            )
            record[field.name] = None
            continue
        try:
            record[field.name] = _project_value(field, entry)
        except (AttributeError, TypeError, ValueError) as exc:
            logger.debug("Could not project %s: %s", field.name, exc)
            record[field.name] = None
    return record


def _empty_value(field: FieldDescriptor) -> Any:
    match FieldType(field.type):
        case FieldType.IMAGE:
            return None
        case FieldType.MULTI_COLLECTION_REFERENCE | FieldType.ARRAY:
            return []
        case _:
            return ""


def _project_value(field: FieldDescriptor, entry: FieldValue) -> Any:
    match entry:
        case ImageValue():
            if entry.value is None:
                return None
            image: JSONRecord = {"url": entry.value.url}
            if entry.value.alt:
                image["alt"] = entry.value.alt
            return image

        case FileValue():
            return entry.value or ""

        case MultiCollectionReferenceValue():
            return list(entry.value)

        case EnumValue():
            return entry.value

        case ColorValue():
            if isinstance(entry.value, ColorStyle):
                return entry.value.light
            return "" if entry.value is None else entry.value

        case ArrayValue():
            if not isinstance(field, ArrayField):
                return None
            nested = [f for f in field.fields if is_field_supported(f)]
            return [
                _project_fields(nested, sub_record.field_data)
                for sub_record in entry.value
            ]

        case (
            StringValue()
            | FormattedTextValue()
            | LinkValue()
            | DateValue()
            | CollectionReferenceValue()
            | NumberValue()
            | BooleanValue()
        ):
            return "" if entry.value is None else entry.value

        case _:
            assert_never(entry)
