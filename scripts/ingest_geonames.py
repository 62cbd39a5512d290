#!/usr/bin/env python3
"""CLI script to seed the store from a GeoNames export."""
import argparse
import sys
from pathlib import Path
from geomerge.core.config import DUCKDB_PATH, LOG_LEVEL
from geomerge.core.duckdb_store import DuckDBStore
from geomerge.gazetteers.geonames import GeoNamesLoader
from geomerge.utils.logging import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Ingest GeoNames into DuckDB")
    parser.add_argument("file", type=Path, help="GeoNames TSV file (allCountries.txt or XX.txt)")
    parser.add_argument("--country", action="append", dest="countries",
                       help="Country code to keep (repeatable, default: all)")
    parser.add_argument("--db-path", type=Path, default=DUCKDB_PATH,
                       help="DuckDB database path")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level")

    args = parser.parse_args()
    setup_logging(args.log_level)

    if not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        sys.exit(1)

    print(f"Loading {args.file}...")
    loader = GeoNamesLoader(args.file, args.countries)
    df = loader.load()
    print(f"Loaded {len(df)} records")

    db_store = DuckDBStore(args.db_path)
    try:
        counts = loader.ingest(db_store)
        db_store.optimize()
    finally:
        db_store.close()
    for kind, count in counts.items():
        print(f"✅ {count} {kind} records ingested")


if __name__ == "__main__":
    main()
