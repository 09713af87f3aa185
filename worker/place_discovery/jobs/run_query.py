"""CLI job to run one discovery search and print the deduplicated CSV snapshot."""

import argparse
import logging
import sys
from typing import Optional

from place_discovery.core.config import get_settings
from place_discovery.core.errors import MissingCredentialError, PlaceDiscoveryError
from place_discovery.etl import codec
from place_discovery.etl.dedupe import dedupe
from place_discovery.jobs.validation import parse_search_request
from place_discovery.vendors import google_places
from place_discovery.vendors.http import RetryPolicy

logger = logging.getLogger(__name__)


def run_query_job(
    *,
    query: str,
    lat: float,
    lng: float,
    radius_m: int,
    limit: Optional[int],
) -> str:
    """Search, dedupe and encode synchronously with the configured Places key."""
    settings = get_settings()
    api_key = settings.google_api_key
    if not api_key:
        raise MissingCredentialError("GOOGLE_API_KEY is required")

    params = parse_search_request({"query": query, "lat": lat, "lng": lng, "radius_m": radius_m, "limit": limit})
    logger.info("Running Places text search for query=%s", params.query)

    records = google_places.search_places(
        params.query,
        (params.lat, params.lng),
        params.radius_m,
        params.effective_limit,
        api_key,
        policy=RetryPolicy.from_settings(settings),
        warmup_seconds=settings.pagination_warmup_ms / 1000.0,
    )
    unique = dedupe(records)
    logger.info("Completed run: fetched=%d unique=%d", len(records), len(unique))
    return codec.encode(unique)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one Google Places discovery search")
    parser.add_argument("--query", dest="query", required=True, help="Free-text search, e.g. 'bakery'")
    parser.add_argument("--lat", dest="lat", type=float, required=True, help="Latitude of the search centre")
    parser.add_argument("--lng", dest="lng", type=float, required=True, help="Longitude of the search centre")
    parser.add_argument("--radius", dest="radius_m", type=int, default=1000, help="Search radius in meters")
    parser.add_argument("--limit", dest="limit", type=int, help="Maximum number of places to fetch")
    parser.add_argument("--output", dest="output", help="Write the CSV here instead of stdout")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        csv_text = run_query_job(
            query=args.query,
            lat=args.lat,
            lng=args.lng,
            radius_m=args.radius_m,
            limit=args.limit,
        )
    except PlaceDiscoveryError as exc:
        logger.error("Discovery run failed (%s): %s", exc.kind, exc)
        raise SystemExit(2 if exc.status_code < 500 else 1) from exc

    if args.output:
        with open(args.output, "w", encoding="utf-8", newline="") as fh:
            fh.write(csv_text)
        logger.info("Wrote snapshot to %s", args.output)
    else:
        sys.stdout.write(csv_text)


if __name__ == "__main__":
    main()
