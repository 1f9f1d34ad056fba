from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Sequence

import duckdb
import pandas as pd
from loguru import logger

from .config import PERSON_KEY_COL


@dataclass(frozen=True)
class QualityCheck:
    name: str
    passed: bool
    detail: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _as_text(df: pd.DataFrame, cols: Sequence[str]) -> pd.DataFrame:
    # duckdb scans object columns by value; give it uniform strings
    return pd.DataFrame({c: df[c].astype("string").fillna("").astype(object) for c in cols})


def check_unique_persons(df: pd.DataFrame, key: str = PERSON_KEY_COL) -> QualityCheck:
    if key not in df.columns:
        return QualityCheck("unique_persons", False, {"missing_key_column": key})

    con = duckdb.connect()
    try:
        con.register("tmp_master", _as_text(df, [key]))
        n_dup = con.execute(f"""
            SELECT COUNT(*) FROM (
                SELECT "{key}", COUNT(*) AS n
                FROM tmp_master
                GROUP BY "{key}"
                HAVING COUNT(*) > 1
            )
        """).fetchone()[0]
        con.unregister("tmp_master")
    finally:
        con.close()

    return QualityCheck("unique_persons", n_dup == 0, {"duplicate_keys": int(n_dup)})


def check_key_presence(df: pd.DataFrame, required: Sequence[str]) -> QualityCheck:
    missing = [c for c in required if c not in df.columns]
    return QualityCheck("key_variables_present", not missing, {"missing": missing})


def household_quarter_coverage(df: pd.DataFrame) -> QualityCheck:
    """How many households (PSU_EAUM_HHNO) show up in 1, 2, 3 and 4 distinct quarters."""
    cols = ["PSU", "EAUM", "HHNO", "QUARTER"]
    missing = [c for c in cols if c not in df.columns]
    if missing:
        return QualityCheck("household_quarter_coverage", True, {"skipped_missing": missing})

    con = duckdb.connect()
    try:
        con.register("tmp_master", _as_text(df, cols))
        counts = con.execute("""
            SELECT n_quarters, COUNT(*) AS n_households
            FROM (
                SELECT PSU || '_' || EAUM || '_' || HHNO AS hh_base,
                       COUNT(DISTINCT QUARTER) AS n_quarters
                FROM tmp_master
                GROUP BY hh_base
            )
            GROUP BY n_quarters
            ORDER BY n_quarters
        """).df()
        con.unregister("tmp_master")
    finally:
        con.close()

    by_n = {int(r.n_quarters): int(r.n_households) for r in counts.itertuples(index=False)}
    return QualityCheck(
        "household_quarter_coverage",
        True,
        {"households_by_quarters": {n: by_n.get(n, 0) for n in (1, 2, 3, 4)}},
    )


def run_quality_checks(df: pd.DataFrame, required: Sequence[str]) -> List[QualityCheck]:
    checks = [
        check_unique_persons(df),
        check_key_presence(df, required),
        household_quarter_coverage(df),
    ]
    for c in checks:
        status = "PASS" if c.passed else "FAIL"
        logger.info(f"[sanity] {c.name}: {status} {c.detail}")
    return checks
