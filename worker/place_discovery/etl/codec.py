"""CSV snapshot encoding and decoding for deduplicated place records."""

import csv
import io
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from place_discovery.core.errors import CodecError
from place_discovery.core.models import DEFAULT_REGISTRY_STATUS, PlaceRecord
from place_discovery.etl.transform import primary_category

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = (
    "name",
    "address",
    "city",
    "category",
    "site",
    "phone",
    "rating",
    "reviews_count",
    "latitude",
    "longitude",
    "categories",
    "opening_hours",
    "sources",
    "source_ids",
    "status",
)

LIST_SEPARATOR = "; "
SOURCES_SEPARATOR = "|"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def to_row(record: PlaceRecord) -> Dict[str, str]:
    """Flatten a record into snapshot column values."""
    return {
        "name": _text(record.name),
        "address": _text(record.address),
        "city": _text(record.locality),
        "category": _text(primary_category(record.categories)),
        "site": _text(record.website),
        "phone": _text(record.phone),
        "rating": _text(record.rating),
        "reviews_count": _text(record.review_count),
        "latitude": _text(record.latitude),
        "longitude": _text(record.longitude),
        "categories": LIST_SEPARATOR.join(record.categories),
        "opening_hours": LIST_SEPARATOR.join(record.opening_hours),
        "sources": SOURCES_SEPARATOR.join(record.sources),
        "source_ids": json.dumps(record.source_ids, sort_keys=True, separators=(",", ":")) if record.source_ids else "",
        "status": DEFAULT_REGISTRY_STATUS,
    }


def encode(records: Iterable[PlaceRecord]) -> str:
    """Header row plus one row per record; fields are quoted only when needed."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=SNAPSHOT_COLUMNS, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writeheader()
    for record in records:
        writer.writerow(to_row(record))
    return buffer.getvalue()


def decode(text: Optional[str]) -> List[Dict[str, str]]:
    """Parse snapshot text into row mappings keyed by the header.

    Rows shorter than the header simply lack the trailing keys; blank lines
    are ignored.
    """
    if not text:
        return []

    reader = csv.reader(io.StringIO(text.lstrip("\ufeff"), newline=""), strict=True)
    try:
        rows = [row for row in reader if row]
    except csv.Error as exc:
        raise CodecError(f"snapshot is not valid CSV: {exc}") from exc

    if not rows:
        return []

    header = [column.strip() for column in rows[0]]
    return [dict(zip(header, row)) for row in rows[1:]]


def count_rows(text: Optional[str]) -> int:
    return len(decode(text))


def _number(value: Optional[str], cast=float) -> Optional[Any]:
    if not value:
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        logger.debug("Unparseable numeric snapshot value %r", value)
        return None


def to_preview(row: Dict[str, str]) -> Dict[str, Any]:
    """Record view of a decoded snapshot row."""
    categories = [item for item in (row.get("categories") or "").split(LIST_SEPARATOR) if item]
    if not categories and row.get("category"):
        categories = [row["category"]]
    return {
        "name": row.get("name") or "",
        "address": row.get("address") or "",
        "city": row.get("city") or None,
        "phone": row.get("phone") or None,
        "website": row.get("site") or None,
        "rating": _number(row.get("rating")),
        "reviews_count": _number(row.get("reviews_count"), int),
        "lat": _number(row.get("latitude")),
        "lng": _number(row.get("longitude")),
        "categories": categories,
    }
