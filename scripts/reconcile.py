#!/usr/bin/env python3
"""CLI script to reconcile map-extract TSV files into the gazetteer store."""
import argparse
import json
import sys
from pathlib import Path
from tqdm import tqdm
from geomerge.core.adm_levels import AdmLevelPolicy
from geomerge.core.config import BATCH_SIZE, DUCKDB_PATH, LOG_LEVEL
from geomerge.core.duckdb_store import DuckDBStore, DuckDBIdGenerator
from geomerge.core.engine import ReconciliationEngine
from geomerge.core.labels import DefaultLabelGenerator
from geomerge.core.models import RunSummary
from geomerge.core.municipality import DefaultMunicipalityDetector
from geomerge.utils.logging import setup_logging


def count_lines(path: Path) -> int:
    with open(path, "r", encoding="utf-8") as f:
        return sum(1 for _ in f)


def main():
    parser = argparse.ArgumentParser(description="Reconcile map-extract files with the gazetteer")
    parser.add_argument("files", type=Path, nargs="+", help="Map-extract TSV files, processed in order")
    parser.add_argument("--db-path", type=Path, default=DUCKDB_PATH,
                       help="DuckDB database path")
    parser.add_argument("--batch-size", type=int, default=BATCH_SIZE,
                       help=f"Rows between store flushes (default: {BATCH_SIZE})")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level")

    args = parser.parse_args()
    setup_logging(args.log_level)

    missing = [path for path in args.files if not path.exists()]
    if missing:
        print(f"Error: File not found: {', '.join(str(p) for p in missing)}", file=sys.stderr)
        sys.exit(1)

    db_store = DuckDBStore(args.db_path)
    total = RunSummary()
    try:
        for path in args.files:
            engine = ReconciliationEngine(
                store=db_store,
                search_service=db_store,
                id_generator=DuckDBIdGenerator(db_store),
                municipality_detector=DefaultMunicipalityDetector(),
                label_generator=DefaultLabelGenerator(),
                policy=AdmLevelPolicy(),
                batch_size=args.batch_size,
            )
            engine.process_file(
                path,
                progress=lambda lines, path=path: tqdm(lines, total=count_lines(path), desc=path.name)
            )
            total.merge(engine.summary)
    finally:
        db_store.close()

    print(json.dumps(total.to_dict(), indent=2))
    for warning in total.warnings[:20]:
        print(f"⚠️  {warning}")
    if len(total.warnings) > 20:
        print(f"... {len(total.warnings) - 20} more warnings")


if __name__ == "__main__":
    main()
