"""Two-pass deduplication of place records (exact key, then geo + name fuzzy match)."""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List

from place_discovery.core.geo import distance_meters, name_similarity, normalize_text, spatial_bucket
from place_discovery.core.models import PlaceRecord

logger = logging.getLogger(__name__)

FUZZY_DISTANCE_METERS = 50.0
FUZZY_NAME_SIMILARITY = 0.88


def dedup_key(record: PlaceRecord) -> str:
    return "|".join(
        (
            normalize_text(record.name),
            normalize_text(record.address),
            spatial_bucket(record.latitude, record.longitude),
        )
    )


def merge_into(target: PlaceRecord, incoming: PlaceRecord) -> None:
    """Fold ``incoming`` into ``target`` in place."""
    for source in incoming.sources:
        if source not in target.sources:
            target.sources.append(source)
    target.source_ids.update(incoming.source_ids)
    if not target.website and incoming.website:
        target.website = incoming.website
    if not target.phone and incoming.phone:
        target.phone = incoming.phone
    if (incoming.rating or 0) > (target.rating or 0):
        target.rating = incoming.rating


def _copy(record: PlaceRecord) -> PlaceRecord:
    return replace(
        record,
        opening_hours=list(record.opening_hours),
        categories=list(record.categories),
        source_ids=dict(record.source_ids),
        sources=list(dict.fromkeys(record.sources)),
    )


def _is_fuzzy_duplicate(candidate: PlaceRecord, accepted: PlaceRecord) -> bool:
    if distance_meters(candidate.coordinates, accepted.coordinates) > FUZZY_DISTANCE_METERS:
        return False
    return name_similarity(candidate.name, accepted.name) >= FUZZY_NAME_SIMILARITY


def dedupe(records: Iterable[PlaceRecord]) -> List[PlaceRecord]:
    """Merge duplicates; the first record seen is the canonical one.

    The fuzzy pass is order sensitive: a record folds into the first
    already-accepted record within 50 m whose name is similar enough, not
    into the best match.
    """
    exact: List[PlaceRecord] = []
    by_key: Dict[str, PlaceRecord] = {}
    dropped = 0

    for record in records:
        if not record.is_keyable:
            dropped += 1
            continue
        key = dedup_key(record)
        existing = by_key.get(key)
        if existing is not None:
            merge_into(existing, record)
            continue
        merged = _copy(record)
        by_key[key] = merged
        exact.append(merged)

    final: List[PlaceRecord] = []
    for record in exact:
        for accepted in final:
            if _is_fuzzy_duplicate(record, accepted):
                merge_into(accepted, record)
                break
        else:
            final.append(record)

    logger.info(
        "Deduplicated places: dropped=%d exact=%d final=%d",
        dropped,
        len(exact),
        len(final),
    )
    return final
