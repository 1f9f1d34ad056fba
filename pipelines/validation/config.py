from __future__ import annotations
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Sequence, Tuple

from ..merge.config import weight_fields

YOUTH_UNEMPLOYMENT_RATE = "youth_unemployment_rate"
YOUTH_SHARE_OF_UNEMPLOYED = "youth_share_of_unemployed"


@dataclass(frozen=True)
class Benchmark:
    name: str
    label: str
    published: float
    tolerance: float
    source: str = ""


@dataclass(frozen=True)
class ValidationParams:
    age_col: str = "HR_04"
    status_col: str = "BBS_lfs13"
    quarter_col: str = "QUARTER"
    weight_cols: Dict[int, str] = field(default_factory=lambda: weight_fields(2023))

    employed_code: int = 1
    unemployed_code: int = 2

    working_age_min: int = 15
    youth_ages: Tuple[int, int] = (15, 29)   # inclusive

    @classmethod
    def for_year(cls, year: int) -> "ValidationParams":
        return cls(weight_cols=weight_fields(year))


BENCHMARKS_BY_YEAR: Dict[int, Sequence[Benchmark]] = {
    2023: (
        Benchmark(
            YOUTH_UNEMPLOYMENT_RATE,
            "Youth unemployment rate (%)",
            7.2,
            0.1,
            "BBS LFS 2023 Report, Table 4.5",
        ),
        Benchmark(
            YOUTH_SHARE_OF_UNEMPLOYED,
            "Youth share of unemployed (%)",
            78.9,
            0.2,
            "BBS LFS 2023 Report",
        ),
    ),
}


def benchmarks_for_year(year: int) -> Sequence[Benchmark]:
    try:
        return BENCHMARKS_BY_YEAR[year]
    except KeyError:
        raise KeyError(
            f"No published benchmarks registered for survey year {year}; "
            "pass a benchmarks JSON file instead."
        ) from None


def load_benchmarks(path: str | Path) -> Sequence[Benchmark]:
    """
    Read benchmarks from JSON:

        {"benchmarks": [{"name": "youth_unemployment_rate", "label": "...",
                         "published": 7.2, "tolerance": 0.1, "source": "..."}, ...]}
    """
    with open(path, "r", encoding="utf-8") as f:
        obj = json.load(f)

    out = []
    for b in obj["benchmarks"]:
        missing = {"name", "published", "tolerance"} - set(b)
        if missing:
            raise ValueError(f"Benchmark entry missing fields: {sorted(missing)}")
        out.append(Benchmark(
            name=b["name"],
            label=b.get("label", b["name"]),
            published=float(b["published"]),
            tolerance=float(b["tolerance"]),
            source=b.get("source", ""),
        ))
    return tuple(out)
