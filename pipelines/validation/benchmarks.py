from __future__ import annotations
import math
import warnings
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from ..merge.errors import MissingWeightWarning, ValidationMismatch
from .config import (
    YOUTH_SHARE_OF_UNEMPLOYED,
    YOUTH_UNEMPLOYMENT_RATE,
    Benchmark,
    ValidationParams,
    benchmarks_for_year,
)


@dataclass(frozen=True)
class StatisticResult:
    statistic_name: str
    label: str
    calculated_value: float
    published_value: float
    absolute_difference: float
    tolerance: float
    pass_flag: bool

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValidationReport:
    results: Tuple[StatisticResult, ...]
    working_age_rows: int
    youth_rows: int
    excluded_rows: int

    @property
    def passed(self) -> bool:
        return all(r.pass_flag for r in self.results)

    def result(self, name: str) -> StatisticResult:
        for r in self.results:
            if r.statistic_name == name:
                return r
        raise KeyError(name)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([{
            "Indicator": r.label,
            "Calculated": round(r.calculated_value, 2),
            "Published": r.published_value,
            "Difference": round(r.calculated_value - r.published_value, 2),
            "Status": "PASS" if r.pass_flag else "WARNING",
        } for r in self.results])

    def as_dict(self) -> Dict[str, Any]:
        return {
            "statistics": [r.as_dict() for r in self.results],
            "working_age_rows": self.working_age_rows,
            "youth_rows": self.youth_rows,
            "excluded_rows": self.excluded_rows,
            "overall_pass": self.passed,
        }


# ------------------------------
# Row selection
# ------------------------------
def select_weight(df: pd.DataFrame, params: ValidationParams) -> pd.Series:
    """Per-row weight from the quarter-specific weight column; NaN when unresolvable."""
    quarter = pd.to_numeric(df[params.quarter_col], errors="coerce")
    conds, choices = [], []
    for q, col in sorted(params.weight_cols.items()):
        conds.append((quarter == q).to_numpy())
        if col in df.columns:
            choices.append(pd.to_numeric(df[col], errors="coerce").to_numpy(dtype=float))
        else:
            choices.append(np.full(len(df), np.nan))
    return pd.Series(np.select(conds, choices, default=np.nan), index=df.index, name="weight")


def prepare_validation_frame(df: pd.DataFrame, params: ValidationParams) -> Tuple[pd.DataFrame, int]:
    """
    Working-age rows (age >= working_age_min) with a resolved `weight` and an
    `is_youth` flag. Returns the frame and the number of working-age rows dropped
    for lack of a weight.
    """
    for c in (params.age_col, params.status_col, params.quarter_col):
        if c not in df.columns:
            raise KeyError(f"Validation needs column {c!r}, not found in master table")

    age = pd.to_numeric(df[params.age_col], errors="coerce")
    mask = age >= params.working_age_min
    working = df.loc[mask]

    out = pd.DataFrame({
        "age": age.loc[mask].to_numpy(),
        "status": pd.to_numeric(working[params.status_col], errors="coerce").to_numpy(),
        "weight": select_weight(working, params).to_numpy(),
    }, index=working.index)
    lo, hi = params.youth_ages
    out["is_youth"] = (out["age"] >= lo) & (out["age"] <= hi)

    excluded = int(out["weight"].isna().sum())
    if excluded:
        warnings.warn(MissingWeightWarning(excluded))
    return out.loc[out["weight"].notna()], excluded


# ------------------------------
# Statistics
# ------------------------------
def _ratio_pct(num: float, den: float) -> float:
    return (num / den) * 100 if den > 0 else math.nan


def youth_unemployment_rate(v: pd.DataFrame, params: ValidationParams) -> float:
    codes = [params.employed_code, params.unemployed_code]
    lf = v.loc[v["is_youth"] & v["status"].isin(codes)]
    total_labor_force = float(lf["weight"].sum())
    unemployed = float(lf.loc[lf["status"] == params.unemployed_code, "weight"].sum())
    return _ratio_pct(unemployed, total_labor_force)


def youth_share_of_unemployed(v: pd.DataFrame, params: ValidationParams) -> float:
    unemp = v.loc[v["status"] == params.unemployed_code]
    total_unemployed = float(unemp["weight"].sum())
    youth_unemployed = float(unemp.loc[unemp["is_youth"], "weight"].sum())
    return _ratio_pct(youth_unemployed, total_unemployed)


STATISTICS: Dict[str, Callable[[pd.DataFrame, ValidationParams], float]] = {
    YOUTH_UNEMPLOYMENT_RATE: youth_unemployment_rate,
    YOUTH_SHARE_OF_UNEMPLOYED: youth_share_of_unemployed,
}


def compare(calculated: float, bench: Benchmark) -> StatisticResult:
    diff = abs(calculated - bench.published)
    ok = bool(diff < bench.tolerance)   # NaN compares False
    if not ok:
        warnings.warn(ValidationMismatch(bench.name, calculated, bench.published, bench.tolerance))
    return StatisticResult(
        statistic_name=bench.name,
        label=bench.label,
        calculated_value=calculated,
        published_value=bench.published,
        absolute_difference=diff,
        tolerance=bench.tolerance,
        pass_flag=ok,
    )


def validate_master(
    df: pd.DataFrame,
    params: Optional[ValidationParams] = None,
    benchmarks: Optional[Sequence[Benchmark]] = None,
) -> ValidationReport:
    """Read-only: computes the benchmark statistics on `df` and compares them to published values."""
    params = params or ValidationParams()
    benchmarks = benchmarks if benchmarks is not None else benchmarks_for_year(2023)

    v, excluded = prepare_validation_frame(df, params)
    logger.info(f"[validate] working age population (15+): {len(v):,} persons")
    logger.info(f"[validate] youth population: {int(v['is_youth'].sum()):,} persons")

    results: List[StatisticResult] = []
    for b in benchmarks:
        if b.name not in STATISTICS:
            raise KeyError(f"Unknown benchmark statistic {b.name!r}; known: {sorted(STATISTICS)}")
        res = compare(STATISTICS[b.name](v, params), b)
        status = "PASS" if res.pass_flag else "WARNING"
        logger.info(
            f"[validate] {b.label}: calculated {res.calculated_value:.2f}, "
            f"published {b.published}, difference {res.absolute_difference:.2f} pp -> {status}"
        )
        results.append(res)

    return ValidationReport(
        results=tuple(results),
        working_age_rows=len(v),
        youth_rows=int(v["is_youth"].sum()),
        excluded_rows=excluded,
    )
