#!/usr/bin/env python3
from __future__ import annotations
import json
import math
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

import pandas as pd
from loguru import logger
from sqlalchemy import create_engine
from tqdm import tqdm

from .config import QUARTERS, ModuleSpec

SUPPORTED_TABULAR = (".dta", ".csv", ".parquet", ".feather")
OUTPUT_FORMATS = ("parquet", "csv", "dta")


def mkdir_p(p: Path) -> None:
    p.mkdir(parents=True, exist_ok=True)


def read_any(path: Path) -> pd.DataFrame:
    ext = path.suffix.lower()
    if ext == ".dta":
        # keep coded values (BBS_lfs13 == 2) rather than value labels
        return pd.read_stata(path, convert_categoricals=False)
    if ext == ".csv":
        return pd.read_csv(path)
    if ext == ".parquet":
        return pd.read_parquet(path)
    if ext == ".feather":
        return pd.read_feather(path)
    raise ValueError(f"Unsupported input file type: {path}")


# -----------------------------
# Partition discovery
# -----------------------------
def partition_path(raw_dir: Path, year: int, quarter: int, module: ModuleSpec, ext: str = ".dta") -> Path:
    return raw_dir / f"BBS_LFS_Q{quarter}_{year}_{module.file_stem}{ext}"


def find_partition(raw_dir: Path, year: int, quarter: int, module: ModuleSpec) -> Path:
    for ext in SUPPORTED_TABULAR:
        p = partition_path(raw_dir, year, quarter, module, ext)
        if p.exists():
            return p
    raise FileNotFoundError(
        f"No Q{quarter} file for module {module.name!r} in {raw_dir} "
        f"(expected {partition_path(raw_dir, year, quarter, module).name} or "
        f"{'/'.join(SUPPORTED_TABULAR)} variants)"
    )


def load_partitions(
    raw_dir: Path,
    year: int,
    modules: Sequence[ModuleSpec],
    quarters: Iterable[int] = QUARTERS,
) -> Dict[str, Dict[int, pd.DataFrame]]:
    """{module name: {quarter: table}} for every module × quarter."""
    jobs = [(m, q) for m in modules for q in quarters]
    out: Dict[str, Dict[int, pd.DataFrame]] = {m.name: {} for m in modules}
    for m, q in tqdm(jobs, desc="Loading partitions", leave=False):
        path = find_partition(raw_dir, year, q, m)
        out[m.name][q] = read_any(path)
        logger.debug(f"[io] {path.name}: {len(out[m.name][q])} rows")
    logger.info(f"[io] loaded {len(jobs)} partitions from {raw_dir}")
    return out


# -----------------------------
# Writers
# -----------------------------
def write_parquet(df: pd.DataFrame, out_path: Path) -> None:
    mkdir_p(out_path.parent)
    df.to_parquet(out_path, engine="pyarrow", index=False)


def write_csv(df: pd.DataFrame, out_path: Path) -> None:
    mkdir_p(out_path.parent)
    df.to_csv(out_path, index=False)


def write_dta(df: pd.DataFrame, out_path: Path) -> None:
    mkdir_p(out_path.parent)
    df.to_stata(out_path, write_index=False, version=118)


WRITERS = {"parquet": write_parquet, "csv": write_csv, "dta": write_dta}


def write_master(df: pd.DataFrame, out_dir: Path, stem: str, formats: Sequence[str]) -> List[Path]:
    unknown = [f for f in formats if f not in WRITERS]
    if unknown:
        raise ValueError(f"Unknown output format(s): {unknown}; choose from {list(OUTPUT_FORMATS)}")
    written = []
    for fmt in formats:
        path = out_dir / f"{stem}.{fmt}"
        WRITERS[fmt](df, path)
        logger.info(f"[io] saved {path}")
        written.append(path)
    return written


def to_sqlite(df: pd.DataFrame, sqlite_path: Path, table: str) -> None:
    mkdir_p(sqlite_path.parent)
    eng = create_engine(f"sqlite:///{sqlite_path}")
    try:
        with eng.begin() as conn:
            df.to_sql(table, conn, if_exists="replace", index=False)
    finally:
        eng.dispose()
    logger.info(f"[io] saved {table} -> {sqlite_path}")


def _json_safe(obj: Any) -> Any:
    # NaN statistics (empty denominators) become null
    if isinstance(obj, Mapping):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, float) and math.isnan(obj):
        return None
    return obj


def write_json(obj: Mapping[str, Any], path: Path) -> None:
    mkdir_p(path.parent)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(_json_safe(obj), f, indent=2, default=str, allow_nan=False)
