"""Small synthetic LFS partitions shared across tests."""

from __future__ import annotations

from typing import Dict

import pandas as pd
import pytest

from pipelines.merge.config import default_modules

# (HHNO, person line, age) per quarter; HHNO 1 has two members, HHNO 2 one child
PERSONS = [(1, 1, 24), (1, 2, 45), (2, 1, 12)]
WEIGHTS = {f"wgt_2023q{q}": 10.0 for q in (1, 2, 3, 4)}


def _geo(q: int, hhno: int) -> dict:
    return {"YEAR": 2023, "QUARTER": q, "PSU": 1, "EAUM": 1, "HHNO": hhno}


def make_partitions(quarters=(1, 2, 3, 4)) -> Dict[str, Dict[int, pd.DataFrame]]:
    out: Dict[str, Dict[int, pd.DataFrame]] = {
        "roster": {}, "employment": {}, "migration": {}, "household": {}
    }
    for q in quarters:
        roster = [
            {**_geo(q, hh), "HR_LN": ln, "HR_04": age, "RU": 1, "BBS_geo": 10, "BBSn": 5, **WEIGHTS}
            for hh, ln, age in PERSONS
        ]
        employment = [
            {**_geo(q, 1), "EMP_HRLN": 1, "EMP_01": 1, "BBS_lfs13": 2, "BBSn": 5},
            {**_geo(q, 1), "EMP_HRLN": 2, "EMP_01": 1, "BBS_lfs13": 1, "BBSn": 5},
        ]
        migration = [{**_geo(q, 1), "MGT_LN": 2, "MGT_01A": 3, **WEIGHTS}]
        household = [
            {**_geo(q, 1), "HI1": 7, "RU": 1, "BBS_geo": 10},
            {**_geo(q, 2), "HI1": 4, "RU": 1, "BBS_geo": 10},
        ]
        out["roster"][q] = pd.DataFrame(roster)
        out["employment"][q] = pd.DataFrame(employment)
        out["migration"][q] = pd.DataFrame(migration)
        out["household"][q] = pd.DataFrame(household)
    return out


@pytest.fixture
def partitions() -> Dict[str, Dict[int, pd.DataFrame]]:
    return make_partitions()


@pytest.fixture
def modules():
    return default_modules(2023)
