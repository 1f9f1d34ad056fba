#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from lfs_merge.config import PROCESSED_DATA_DIR, RAW_DATA_DIR, SURVEY_YEAR, master_stem

from ..validation.config import ValidationParams, benchmarks_for_year, load_benchmarks
from .config import PUBLISHED_KEY_FORMAT, default_modules
from .io import OUTPUT_FORMATS, load_partitions, to_sqlite, write_json, write_master
from .pipeline import run_merge


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Merge quarterly LFS modules into one person-level file and validate it"
    )
    ap.add_argument("--raw-dir", type=Path, default=RAW_DATA_DIR,
                    help="Folder with BBS_LFS_Q{q}_{year}_<module>.dta files")
    ap.add_argument("--year", type=int, default=SURVEY_YEAR, help="Survey year (default: %(default)s)")
    ap.add_argument("--out-dir", type=Path, default=PROCESSED_DATA_DIR, help="Output folder")
    ap.add_argument("--formats", nargs="+", default=["parquet", "csv"], choices=OUTPUT_FORMATS,
                    help="Master table formats to write (default: parquet csv)")
    ap.add_argument("--sqlite", type=Path, default=None, help="Also write the master table to this SQLite file")
    ap.add_argument("--benchmarks", type=Path, default=None,
                    help="JSON file with published values; defaults to the built-in set for --year")
    ap.add_argument("--pad-keys", action="store_true",
                    help="Zero-pad PSU/EAUM/HHNO/person line in keys (e.g. 2023_1_001_01_0001_01)")
    ap.add_argument("--skip-validation", action="store_true")
    ap.add_argument("--strict", action="store_true", help="Exit with status 2 when validation fails")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    modules = default_modules(args.year)
    benchmarks = load_benchmarks(args.benchmarks) if args.benchmarks else None
    if benchmarks is None and not args.skip_validation:
        benchmarks = benchmarks_for_year(args.year)

    partitions = load_partitions(args.raw_dir, args.year, modules)
    result = run_merge(
        partitions,
        modules=modules,
        key_format=PUBLISHED_KEY_FORMAT if args.pad_keys else None,
        params=ValidationParams.for_year(args.year),
        benchmarks=benchmarks,
        validate=not args.skip_validation,
    )

    stem = master_stem(args.year)
    written = write_master(result.master, args.out_dir, stem, args.formats)
    if args.sqlite:
        to_sqlite(result.master, args.sqlite, stem.lower())
        written.append(args.sqlite)

    summary_path = args.out_dir / f"{stem}_summary.json"
    write_json(result.summary(outputs=[str(p) for p in written]), summary_path)
    logger.info(f"[io] run summary -> {summary_path}")

    if result.validation is not None:
        print(result.validation.to_frame().to_string(index=False))

    if args.strict and not result.passed:
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
