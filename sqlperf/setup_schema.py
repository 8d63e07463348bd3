"""
Results Table Setup Script

Builds the queryable results table over every experiment persisted under
RESULTS_LOCATION: one row per query result, with the run's timestamp,
iteration, tags, and configuration. The table is written as a single Parquet
file (rerunnable; the previous table is replaced):

    <RESULTS_LOCATION>/_table/<RESULTS_TABLE_NAME>.parquet

Usage:
    python -m sqlperf.setup_schema [--location DIR] [--name NAME]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

import pyarrow as pa
import pyarrow.parquet as pq

from sqlperf.config import settings
from sqlperf.core.results_store import ResultsStore

TABLE_DIR = "_table"


def table_path(store: ResultsStore) -> Path:
    return store.location / TABLE_DIR / f"{store.table_name}.parquet"


def create_results_table(
    location: Optional[str] = None,
    name: Optional[str] = None,
    *,
    write: bool = True,
) -> pa.Table:
    """
    Load every persisted experiment into one flattened table.

    Args:
        location: Results root (default: RESULTS_LOCATION).
        name: Table name (default: RESULTS_TABLE_NAME).
        write: Also write the table to `<location>/_table/<name>.parquet`.
    """
    store = ResultsStore(location, table_name=name)
    table = store.results_table()
    if write:
        path = table_path(store)
        path.parent.mkdir(parents=True, exist_ok=True)
        pq.write_table(table, path, compression="snappy")
    return table


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build the results table over all persisted experiments."
    )
    parser.add_argument(
        "--location",
        default=settings.RESULTS_LOCATION,
        help="Results root directory.",
    )
    parser.add_argument(
        "--name",
        default=settings.RESULTS_TABLE_NAME,
        help="Results table name.",
    )
    return parser


def setup_schema(argv: Optional[list[str]] = None) -> None:
    """Main setup function."""
    args = _build_parser().parse_args(argv)

    print("=" * 80)
    print("🏗️  sqlperf - Results Table Setup")
    print("=" * 80)
    print(f"\n📁 Results location: {args.location}")
    print(f"📋 Table name: {args.name}")

    try:
        store = ResultsStore(args.location, table_name=args.name)
        experiments = store.list_experiments()
        print(f"\n🔍 Found {len(experiments)} persisted experiments")

        table = create_results_table(args.location, args.name)
        print(f"  ✓ {table.num_rows} result rows written to {table_path(store)}")

        print("\n" + "=" * 80)
        print("✅ Results table setup complete!")
        print("=" * 80)

    except Exception as e:
        print(f"\n❌ Results table setup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    setup_schema()
