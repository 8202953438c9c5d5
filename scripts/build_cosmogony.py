#!/usr/bin/env python3
"""
Build a cosmogony from a boundary extract and store it in SQLite.

Usage:
    python scripts/build_cosmogony.py --input data/extract.parquet [--country FR] [--no-geom]
"""

import sys
import os
import argparse
import logging

# Add parent directory to path to import modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cosmogony.builder import build_cosmogony
from cosmogony.config import DB_PATH, LOG_FORMAT, RULES_DIR
from cosmogony.errors import CosmogonyError
from cosmogony.storage import CosmogonyStorage


def print_report(cosmogony):
    """Print the run statistics."""
    stats = cosmogony.meta.stats

    print("=" * 60)
    print(f"COSMOGONY OF {cosmogony.meta.osm_filename}")
    print("=" * 60)
    print(f"  Zones kept:            {len(cosmogony.zones)}")
    print(f"  Zones with boundary:   {stats.zone_with_boundary}")
    print(f"  Zones with wikidata:   {stats.zone_with_wikidata}")
    print(f"  Zones without country: {stats.zone_without_country}")
    print()

    print("ZONE TYPES")
    print("-" * 60)
    for _, row in stats.type_distribution().iterrows():
        print(f"  {row['zone_type']:<20} {row['count']}")
    print()

    if stats.zone_with_unknown_country_rules:
        print("COUNTRIES WITHOUT RULES")
        print("-" * 60)
        for country, count in sorted(stats.zone_with_unknown_country_rules.items()):
            print(f"  {country:<20} {count}")
        print()

    unhandled = stats.unhandled_levels()
    if not unhandled.empty:
        print("UNHANDLED ADMIN LEVELS")
        print("-" * 60)
        for _, row in unhandled.iterrows():
            print(f"  {row['country']:<10} level {row['admin_level']:<4} {row['count']}")
        print()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Build a cosmogony from OSM administrative boundaries")
    parser.add_argument("-i", "--input", required=True, help="Parquet extract of boundary relations")
    parser.add_argument("-o", "--output", default=DB_PATH, help=f"SQLite output database (default: {DB_PATH})")
    parser.add_argument("--rules", default=RULES_DIR, help="Directory of per-country rule files")
    parser.add_argument("-c", "--country", default=None, help="Country code forced on every zone")
    parser.add_argument("--no-geom", action="store_true", help="Don't read nor keep boundaries")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format=LOG_FORMAT)

    try:
        cosmogony = build_cosmogony(
            args.input,
            with_geom=not args.no_geom,
            rules_dir=args.rules,
            country_code=args.country,
        )
    except CosmogonyError as e:
        print(f"✗ Cosmogony failed: {e}", file=sys.stderr)
        return 1

    print_report(cosmogony)

    with CosmogonyStorage(args.output) as storage:
        cosmogony_id = storage.save_cosmogony(cosmogony)
    print(f"✓ Cosmogony {cosmogony_id} saved to: {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
