#!/usr/bin/env python3
"""
Query amenities for one vertical inside a bounding box and print them nearest-first
"""

import asyncio
import json
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from amenities.filters import FilterState, visible_amenities
from amenities.models import BoundingBox, Vertical
from data_sources import async_osm_api
from data_sources.cache import get_default_cache
from data_sources.error_handling import GeodataFetchError
from data_sources.utils import directions_url, format_distance, sort_by_distance
from logging_config import setup_logging


async def run(vertical: Vertical, bbox: BoundingBox, flags, as_json: bool, limit: int) -> int:
    cache = get_default_cache()
    try:
        amenities = await cache.query(vertical, bbox)
    except GeodataFetchError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    finally:
        await async_osm_api.close_session()

    filters = FilterState.defaults([vertical])
    for flag in flags:
        filters = filters.set(flag, True)
    visible = visible_amenities(amenities, filters)
    rows = sort_by_distance(visible, bbox.center)[:limit]

    if as_json:
        print(json.dumps([dict(a.to_dict(), distanceKm=round(d, 3)) for a, d in rows],
                         indent=2, ensure_ascii=False))
        return 0

    print(f"{vertical.value}: {len(visible)} of {len(amenities)} visible in {bbox.to_overpass()}")
    print("=" * 60)
    for amenity, km in rows:
        print(f"  {format_distance(km * 1000):>8}  {amenity.name}  [{amenity.id}]")
        print(f"            {directions_url(bbox.center, amenity.position)}")
    return 0


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Query amenities inside a bounding box")
    parser.add_argument("vertical", type=str, help="Vertical, e.g. restroom, dog_park, skate-parks")
    parser.add_argument("south", type=float)
    parser.add_argument("west", type=float)
    parser.add_argument("north", type=float)
    parser.add_argument("east", type=float)
    parser.add_argument("--flag", action="append", default=[],
                        help="Attribute flag to switch on (repeatable), e.g. showWheelchairAccessible")
    parser.add_argument("--limit", type=int, default=20)
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    parser.add_argument("--log-level", type=str, default="WARNING")

    args = parser.parse_args()
    setup_logging(level=args.log_level, json_format=False)

    try:
        vertical = Vertical.parse(args.vertical)
        bbox = BoundingBox(south=args.south, west=args.west, north=args.north, east=args.east)
    except ValueError as e:
        parser.error(str(e))

    sys.exit(asyncio.run(run(vertical, bbox, args.flag, args.json, args.limit)))


if __name__ == "__main__":
    main()
