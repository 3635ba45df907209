"""Record key mapping for JSON imports.

Translates between the flat, string-keyed JSON records an operator supplies
and the collection schema they are imported into:

1. **Parsing** -- ``parse_json_records`` accepts a JSON array of objects.
2. **Key discovery** -- ``collect_json_keys`` gathers every key used by any
   record, in first-seen order.
3. **Slug source** -- ``resolve_slug_key`` picks the single JSON key whose
   value becomes each record's slug: the schema's slug field name, else the
   name of the field the slug is based on.
4. **Slugify** -- ``slugify`` turns a free-form value into a URL-safe key.
"""

from __future__ import annotations

import json
import re
from typing import Any

from cms_json_sync.errors import RecordImportError
from cms_json_sync.sync.models import CollectionSchema

# Runs of anything except letters, numbers and parentheses.  ``\w`` also
# matches the underscore, which is not a slug character.
_NON_SLUG_CHARACTERS = re.compile(r"(?:[^\w()]|_)+")

JSONRecord = dict[str, Any]


def slugify(value: str) -> str:
    """Lower-case *value* and join its letter/number runs with dashes.

    Parentheses are kept; leading and trailing dashes are trimmed.

    Examples:
        >>> slugify("Foo Bar")
        'foo-bar'
        >>> slugify("  Crème brûlée (v2)! ")
        'crème-brûlée-(v2)'
    """
    return _NON_SLUG_CHARACTERS.sub("-", value.lower()).strip("-")


def scalar_text(value: Any) -> str | None:
    """Render a JSON scalar the way it reads in the source document.

    Returns ``None`` for ``null`` and for structured values (lists and
    objects), which have no sensible text form.  Integral floats drop their
    fractional part so ``1.0`` reads as ``"1"``.
    """
    match value:
        case None | list() | dict():
            return None
        case bool():
            return "true" if value else "false"
        case float() if value.is_integer():
            return str(int(value))
        case _:
            return str(value)


def slug_for_record(record: JSONRecord, slug_key: str) -> str:
    """Return the slug for *record*, or ``""`` when it has none."""
    text = scalar_text(record.get(slug_key))
    if not text:
        return ""
    return slugify(text)


def parse_json_records(data: str) -> list[JSONRecord]:
    """Parse a JSON document into a list of flat records.

    No type casting happens here: values are converted later, based on the
    fields they go into.

    Args:
        data: JSON text.

    Returns:
        The parsed records, in document order.

    Raises:
        RecordImportError: If the text is not valid JSON, is not an array,
            or contains a non-object element.
    """
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as exc:
        raise RecordImportError(
            f"Import failed. The JSON could not be parsed: {exc}"
        ) from exc

    if not isinstance(parsed, list):
        raise RecordImportError(
            "Import failed. The JSON must be an array of objects."
        )

    for index, record in enumerate(parsed):
        if not isinstance(record, dict):
            raise RecordImportError(
                f"Import failed. Entry {index + 1} is not a JSON object."
            )
    return parsed


def collect_json_keys(records: list[JSONRecord]) -> list[str]:
    """Return every key present in any record, in first-seen order."""
    seen: dict[str, None] = {}
    for record in records:
        for key in record:
            seen.setdefault(key, None)
    return list(seen)


def resolve_slug_key(
    schema: CollectionSchema, json_keys: list[str] | set[str]
) -> str:
    """Determine which JSON key supplies each record's slug.

    Args:
        schema: Collection schema with slug settings.
        json_keys: Keys present across all records.

    Returns:
        The schema's slug field name if present among the keys, else the
        name of the field the slug is based on.

    Raises:
        RecordImportError: If the schema has no slug field, or neither
            candidate key is present.
    """
    if not schema.slug_field_name:
        raise RecordImportError(
            "Import failed. No slug field was found in your CMS Collection."
        )

    keys = set(json_keys)
    if schema.slug_field_name in keys:
        return schema.slug_field_name

    based_on = next(
        (f for f in schema.fields if f.id == schema.slug_field_based_on),
        None,
    )
    if based_on is not None and based_on.name in keys:
        return based_on.name

    raise RecordImportError(
        "Import failed. Ensure your JSON has a key named "
        f"“{schema.slug_field_name}”."
    )
