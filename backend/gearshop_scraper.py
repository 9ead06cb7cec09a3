#!/usr/bin/env python3
"""
Gear Shop New Product Scraper

Scrapes the gear shop listing page, stores products that have not been
seen before and sends a new-product alert for each one.
Uses static HTML parsing (prices loaded by JavaScript show up as "N/A").

Usage:
    python gearshop_scraper.py                  # full run
    python gearshop_scraper.py --local          # SQLite + log-only alerts
    python gearshop_scraper.py --discovery-only # write listing to CSV, no DB
"""

import argparse
import json
import logging
import os
import sys
from datetime import datetime
from typing import List

import pandas as pd

from gearshop.config import configure_logging, load_settings
from gearshop.errors import GearShopError
from gearshop.models import ProductRecord
from gearshop.pipeline import build_pipeline
from gearshop.store import InMemoryProductStore


logger = logging.getLogger("gearshop_scraper")


def save_to_csv(records: List[ProductRecord], output_dir: str = "output") -> str:
    """Save discovered products to a timestamped CSV file."""
    os.makedirs(output_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
    filepath = os.path.join(output_dir, f"gearshop_discovered_{timestamp}.csv")

    df = pd.DataFrame([r.to_dict() for r in records], columns=['id', 'name', 'sku', 'price', 'url'])
    df.to_csv(filepath, index=False)
    return filepath


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description='Gear Shop New Product Scraper'
    )
    parser.add_argument('--local', action='store_true',
                        help='Local mode: SQLite store, alerts are logged instead of sent')
    parser.add_argument('--url', default=None,
                        help='Listing page URL (default: GEARSHOP_URL or the gear shop)')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Deadline for the whole run, in seconds')
    parser.add_argument('--discovery-only', action='store_true',
                        help='Only discover products and save them to CSV, do not touch the database')
    parser.add_argument('--output-dir', default='output',
                        help='Directory for CSV output (default: output)')
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    overrides = {'gearshop_url': args.url}
    if args.local:
        overrides['local'] = True
    try:
        settings = load_settings(**overrides)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    print("=" * 60, flush=True)
    print("Gear Shop New Product Scraper", flush=True)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", flush=True)
    print(f"Listing: {settings.gearshop_url}" + (" (local mode)" if settings.local else ""), flush=True)
    print("=" * 60, flush=True)

    pipeline = None
    try:
        if args.discovery_only:
            # Discovery never reads or writes the store
            pipeline = build_pipeline(settings, store=InMemoryProductStore())
            records = pipeline.discover(timeout=args.timeout)
            filepath = save_to_csv(records, args.output_dir)
            print(f"\nSaved {len(records)} discovered products to: {filepath}", flush=True)
            return 0

        pipeline = build_pipeline(settings)
        summary = pipeline.run(timeout=args.timeout)
    except GearShopError as e:
        logger.error("Error: %s", e)
        if pipeline is not None and pipeline.stats is not None:
            pipeline.stats.print_report()
        return 1
    finally:
        if pipeline is not None:
            pipeline.close()

    pipeline.stats.print_report()
    print(json.dumps(summary.to_response()), flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
