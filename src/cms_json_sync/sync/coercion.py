"""Field coercion: convert one raw JSON value into one typed field value.

``coerce()`` is pure and total.  It never raises; a value that cannot be
converted comes back as a ``ConversionError`` instance, which the
reconciler records as a skipped value.

Reference fields are resolved through *ref_lookup*, a mapping of
``collection id -> {slug: item id}`` built once per import by
``reconciler.build_reference_lookup``.
"""

from __future__ import annotations

import logging
import math
import re
import unicodedata
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, assert_never

from pydantic import ValidationError

from cms_json_sync.errors import ConversionError
from cms_json_sync.sync.mapper import scalar_text
from cms_json_sync.sync.models import (
    ArrayField,
    ArrayItem,
    ArrayValue,
    BooleanField,
    BooleanValue,
    CollectionReferenceField,
    CollectionReferenceValue,
    ColorField,
    ColorValue,
    DateField,
    DateValue,
    DividerField,
    EnumField,
    EnumValue,
    FieldDescriptor,
    FieldValue,
    FileField,
    FileValue,
    FormattedTextField,
    FormattedTextValue,
    ImageAsset,
    ImageField,
    ImageValue,
    LinkField,
    LinkValue,
    MultiCollectionReferenceField,
    MultiCollectionReferenceValue,
    NumberField,
    NumberValue,
    StringField,
    StringValue,
    UnsupportedField,
    is_field_supported,
)

logger = logging.getLogger(__name__)

RefLookup = Mapping[str, Mapping[str, str]]

_TRUTHY = re.compile(r"1|y(?:es)?|true", re.IGNORECASE)
_IMG_TAG = re.compile(
    r"<img[^>]+src=\"([^\"]+)\"[^>]*alt=\"([^\"]*)\"[^>]*>", re.IGNORECASE
)

# Formats tried after ISO-8601, for dates typed by hand in spreadsheets.
_DATE_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def coerce(
    field: FieldDescriptor, raw: Any, ref_lookup: RefLookup
) -> FieldValue | ConversionError:
    """Convert *raw* into the typed value for *field*.

    Args:
        field: Target field descriptor.
        raw: Value taken from a JSON record; ``None`` for null or absent.
        ref_lookup: Slug-to-id maps keyed by referenced collection id.

    Returns:
        The typed field value, or a ``ConversionError`` describing why the
        value was rejected.
    """
    try:
        return _coerce(field, raw, ref_lookup)
    except (ValueError, TypeError, OverflowError) as exc:
        # ValidationError is a ValueError; treat any parse failure the same.
        if isinstance(exc, ValidationError):
            message = f"Invalid value for field “{field.name}”"
        else:
            message = f"Invalid value for field “{field.name}”: {exc}"
        logger.debug("Conversion failed for %s: %s", field.name, exc)
        return ConversionError(field.name, message)


def _coerce(
    field: FieldDescriptor, raw: Any, ref_lookup: RefLookup
) -> FieldValue | ConversionError:
    match field:
        case StringField():
            return StringValue(value=_text_or_empty(raw))

        case FormattedTextField():
            return FormattedTextValue(value=_text_or_empty(raw))

        case ColorField():
            return ColorValue(value=_trimmed_or_none(raw))

        case LinkField():
            return LinkValue(value=_trimmed_or_none(raw))

        case FileField():
            return FileValue(value=_trimmed_or_none(raw))

        case ImageField():
            return ImageValue(value=_image_asset(raw))

        case NumberField():
            return _number(field, raw)

        case BooleanField():
            return BooleanValue(value=_boolean(raw))

        case DateField():
            return _date(field, raw)

        case EnumField():
            return _enum(field, raw)

        case CollectionReferenceField():
            return _reference(field, raw, ref_lookup)

        case MultiCollectionReferenceField():
            return _multi_reference(field, raw, ref_lookup)

        case ArrayField():
            return _array(field, raw, ref_lookup)

        case DividerField() | UnsupportedField():
            return ConversionError(
                field.name, f"Unsupported field type “{field.type}”"
            )

        case _:
            assert_never(field)


# ---------------------------------------------------------------------------
# Per-type helpers
# ---------------------------------------------------------------------------


def _is_blank(raw: Any) -> bool:
    # Export writes "" for an empty value; read it back as null.
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _text_or_empty(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    return scalar_text(raw) or ""


def _trimmed_or_none(raw: Any) -> str | None:
    text = raw if isinstance(raw, str) else scalar_text(raw)
    if not text:
        return None
    return text.strip()


def _image_asset(raw: Any) -> ImageAsset | None:
    if isinstance(raw, str):
        match = _IMG_TAG.search(raw)
        if match:
            return ImageAsset(url=match.group(1), alt=match.group(2) or None)
        url = raw.strip()
        return ImageAsset(url=url) if url else None

    if isinstance(raw, dict):
        url = raw.get("url")
        if not isinstance(url, str) or not url:
            return None
        alt = raw.get("alt") or raw.get("altText") or None
        return ImageAsset(url=url, alt=alt if isinstance(alt, str) else None)

    return None


def _number(field: NumberField, raw: Any) -> NumberValue | ConversionError:
    invalid = ConversionError(
        field.name, f"Invalid value for field “{field.name}” expected a number"
    )
    match raw:
        case None:
            number: int | float = 0
        case bool():
            number = int(raw)
        case int() | float():
            number = raw
        case str():
            text = raw.strip()
            if not text:
                number = 0
            elif "_" in text:
                return invalid
            else:
                try:
                    number = float(text)
                except ValueError:
                    return invalid
        case _:
            return invalid

    if isinstance(number, float):
        if not math.isfinite(number):
            return invalid
        if number.is_integer():
            number = int(number)
    return NumberValue(value=number)


def _boolean(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    # numbers go through their text form, so 2 and -1 are false like "2"
    text = scalar_text(raw)
    return text is not None and _TRUTHY.fullmatch(text.strip()) is not None


def _date(field: DateField, raw: Any) -> DateValue | ConversionError:
    if _is_blank(raw):
        return DateValue(value=None)

    day = _parse_day(raw)
    if day is None:
        return ConversionError(
            field.name,
            f"Invalid value for field “{field.name}” expected a valid date",
        )
    return DateValue(value=f"{day.isoformat()}T00:00:00.000Z")


def _parse_day(raw: Any) -> date | None:
    """Parse *raw* into the UTC calendar day it denotes."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        # Epoch milliseconds, as produced by JavaScript timestamps.
        try:
            return datetime.fromtimestamp(raw / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(raw, str):
        return None

    text = raw.strip()
    if not text:
        return None

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None

    if parsed is None:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def _base_fold(text: str) -> str:
    """Fold case and accents, so ``"Crème"`` compares equal to ``"creme"``."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.casefold()


def _enum(field: EnumField, raw: Any) -> EnumValue | ConversionError:
    if _is_blank(raw):
        if not field.cases:
            return ConversionError(
                field.name, f"Enum “{field.name}” has no cases"
            )
        return EnumValue(value=field.cases[0].id)

    text = scalar_text(raw)
    if text is not None:
        folded = _base_fold(text)
        for case in field.cases:
            if _base_fold(case.name) == folded:
                return EnumValue(value=case.id)
        for case in field.cases:
            if case.id == text:
                return EnumValue(value=case.id)

    return ConversionError(
        field.name, f"Invalid case “{raw}” for enum “{field.name}”"
    )


def _lookup_reference(known: Mapping[str, str], key: str) -> str | None:
    """Resolve *key* as a slug, then as an item id.

    Export writes stored ids, so both forms are accepted on import.
    """
    item_id = known.get(key)
    if item_id is None and key in known.values():
        return key
    return item_id


def _reference(
    field: CollectionReferenceField, raw: Any, ref_lookup: RefLookup
) -> CollectionReferenceValue | ConversionError:
    if _is_blank(raw):
        return CollectionReferenceValue(value=None)

    text = scalar_text(raw)
    slug = text.strip() if text is not None else ""
    item_id = _lookup_reference(ref_lookup.get(field.collection_id, {}), slug)
    if not item_id:
        return ConversionError(
            field.name, f"Invalid Collection reference “{raw}”"
        )
    return CollectionReferenceValue(value=item_id)


def _multi_reference(
    field: MultiCollectionReferenceField, raw: Any, ref_lookup: RefLookup
) -> MultiCollectionReferenceValue | ConversionError:
    match raw:
        case None:
            slugs: list[str] = []
        case list():
            slugs = [
                entry.strip()
                for entry in raw
                if isinstance(entry, str) and entry.strip()
            ]
        case str():
            slugs = [part.strip() for part in raw.split(",") if part.strip()]
        case _:
            return ConversionError(
                field.name,
                f"Invalid value for field “{field.name}” expected a list of slugs",
            )

    known = ref_lookup.get(field.collection_id, {})
    ids: list[str] = []
    for slug in slugs:
        item_id = _lookup_reference(known, slug)
        if not item_id:
            return ConversionError(
                field.name, f"Invalid Collection reference “{slug}”"
            )
        ids.append(item_id)
    return MultiCollectionReferenceValue(value=ids)


def _array(
    field: ArrayField, raw: Any, ref_lookup: RefLookup
) -> ArrayValue | ConversionError:
    if raw is None:
        return ArrayValue(value=[])
    if not isinstance(raw, list):
        return ConversionError(
            field.name, f"Invalid value for field “{field.name}” expected a list"
        )

    sub_records: list[ArrayItem] = []
    for position, element in enumerate(raw, start=1):
        if not isinstance(element, dict):
            return ConversionError(
                field.name,
                f"Invalid entry {position} for field “{field.name}” expected an object",
            )
        field_data: dict[str, FieldValue] = {}
        for nested in field.fields:
            if not is_field_supported(nested) or nested.name not in element:
                continue
            entry = coerce(nested, element[nested.name], ref_lookup)
            if isinstance(entry, ConversionError):
                return ConversionError(
                    field.name, f"{entry} (entry {position} of “{field.name}”)"
                )
            field_data[nested.id] = entry
        sub_records.append(ArrayItem(field_data=field_data))
    return ArrayValue(value=sub_records)
