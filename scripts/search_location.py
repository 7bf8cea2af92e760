#!/usr/bin/env python3
"""
Search for a place the way the map search box does and print the hits
"""

import asyncio
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from amenities.labels import labels_for
from amenities.search import SearchGeocodeAdapter
from data_sources import async_geocoding
from logging_config import setup_logging


async def run(query: str, language: str) -> None:
    adapter = SearchGeocodeAdapter(language=language)
    labels = labels_for(language)
    print(labels.searching)
    try:
        results = await adapter.search(query).results()
    finally:
        await async_geocoding.close_session()

    labels = labels_for(adapter.language)
    if not results:
        print(labels.no_results)
        return

    print(f"Language: {adapter.language}")
    for result in results:
        print(f"  {result.lat:.6f}, {result.lng:.6f}  {result.display_name}")


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Search for a city or location")
    parser.add_argument("query", type=str)
    parser.add_argument("--lang", type=str, default="en", help="Initial UI language")
    parser.add_argument("--log-level", type=str, default="WARNING")

    args = parser.parse_args()
    setup_logging(level=args.log_level, json_format=False)
    asyncio.run(run(args.query, args.lang))


if __name__ == "__main__":
    main()
