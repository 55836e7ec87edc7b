"""Declarative field mappings from source payloads to ExternalMenuRecord.

Each source names its own fields differently (``menu_item_name`` at
Documenu, ``name`` at Zomato, ...). Instead of fallback chains inside each
adapter, every source gets one FieldMapping listing the candidate paths for
each record field. Paths are dotted and may index into lists
(``menu_item_pricing.0.price``); the first path that resolves to a
non-empty value wins.

Adding a source means adding an entry to SOURCE_FIELD_MAPPINGS.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from menu_sync_service.models.menu_models import DEFAULT_CATEGORY, ExternalMenuRecord
from menu_sync_service.models.sync_models import MenuSource

_PRICE_PATTERN = re.compile(r"\d+(?:\.\d+)?")


class MalformedRecordError(ValueError):
    """Raised when a raw source record cannot be mapped to a menu record."""


@dataclass(frozen=True)
class FieldMapping:
    """Candidate source paths for every ExternalMenuRecord field."""

    external_id: tuple[str, ...]
    name: tuple[str, ...]
    description: tuple[str, ...] = ()
    price: tuple[str, ...] = ()
    category: tuple[str, ...] = ()
    image: tuple[str, ...] = ()
    available: tuple[str, ...] = ()


SOURCE_FIELD_MAPPINGS: dict[MenuSource, FieldMapping] = {
    MenuSource.DOCUMENU: FieldMapping(
        external_id=("menu_item_id", "item_id", "id"),
        name=("menu_item_name", "name"),
        description=("menu_item_description", "description"),
        price=("menu_item_pricing.0.price", "menu_item_price", "price"),
        category=("menu_item_category", "subsection", "category"),
        image=("menu_item_image", "image"),
        available=("available",),
    ),
    MenuSource.ZOMATO: FieldMapping(
        external_id=("dish_id", "id"),
        name=("name",),
        description=("description",),
        price=("price",),
        category=("category",),
        image=("image",),
        available=("available",),
    ),
}


def resolve_path(raw: Any, path: str) -> Any:
    """Walk a dotted path through nested dicts and lists.

    Args:
        raw: Decoded JSON value
        path: Dotted path; numeric segments index into lists

    Returns:
        The value at the path, or None if any segment is missing
    """
    current = raw
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def _first_value(raw: dict[str, Any], paths: tuple[str, ...]) -> Any:
    for path in paths:
        value = resolve_path(raw, path)
        if value is not None and value != "":
            return value
    return None


def parse_price(value: Any) -> Decimal:
    """Parse a source price such as ``12.5``, ``"12.50"`` or ``"$12.50"``.

    Args:
        value: Raw price value

    Returns:
        Decimal: Parsed price, 0 when absent

    Raises:
        MalformedRecordError: If a non-empty value holds no number
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, int | float | Decimal):
        return Decimal(str(value))

    match = _PRICE_PATTERN.search(str(value).replace(",", ""))
    if match is None:
        raise MalformedRecordError(f"Unparseable price: {value!r}")
    try:
        return Decimal(match.group(0))
    except InvalidOperation as e:  # pragma: no cover
        raise MalformedRecordError(f"Unparseable price: {value!r}") from e


def normalize_record(source: MenuSource, raw: dict[str, Any]) -> ExternalMenuRecord:
    """Map one raw source record to an ExternalMenuRecord.

    Args:
        source: Source the record came from
        raw: Raw record as decoded from the source payload

    Returns:
        ExternalMenuRecord: Normalized record

    Raises:
        MalformedRecordError: If the record has no external id or name,
            or the source has no mapping
    """
    mapping = SOURCE_FIELD_MAPPINGS.get(source)
    if mapping is None:
        raise MalformedRecordError(f"No field mapping for source {source.value}")

    if not isinstance(raw, dict):
        raise MalformedRecordError(f"Expected an object, got {type(raw).__name__}")

    external_id = _first_value(raw, mapping.external_id)
    if external_id is None:
        raise MalformedRecordError("Record has no external id")

    name = _first_value(raw, mapping.name)
    if name is None:
        raise MalformedRecordError(f"Record {external_id} has no name")

    description = _first_value(raw, mapping.description)
    category = _first_value(raw, mapping.category)
    image = _first_value(raw, mapping.image)

    return ExternalMenuRecord(
        external_id=str(external_id),
        name=str(name),
        description=str(description) if description is not None else None,
        price=parse_price(_first_value(raw, mapping.price)),
        category=str(category) if category is not None else DEFAULT_CATEGORY,
        image=str(image) if image is not None else None,
        # Only an explicit false marks an item unavailable
        available=_first_value(raw, mapping.available) is not False,
    )


def normalize_records(source: MenuSource, raw_records: list[Any]) -> list[ExternalMenuRecord]:
    """Map a list of raw records, failing on the first malformed one."""
    return [normalize_record(source, raw) for raw in raw_records]
