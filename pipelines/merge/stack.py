from __future__ import annotations
from typing import Dict, Mapping, Optional

import numpy as np
import pandas as pd

from .config import QUARTERS
from .errors import SchemaConflictError


def type_family(s: pd.Series) -> Optional[str]:
    """
    Coarse type of a column: numeric / string / boolean / datetime / mixed.
    All-missing columns return None and are compatible with anything.
    """
    if s.isna().all():
        return None
    if pd.api.types.is_bool_dtype(s):
        return "boolean"
    if pd.api.types.is_numeric_dtype(s):
        return "numeric"
    if pd.api.types.is_datetime64_any_dtype(s):
        return "datetime"
    if pd.api.types.is_string_dtype(s) or pd.api.types.is_object_dtype(s):
        kinds = set()
        for v in s.dropna():
            if isinstance(v, str):
                kinds.add("string")
            elif isinstance(v, (bool, np.bool_)):
                kinds.add("boolean")
            elif isinstance(v, (int, float, np.number)):
                kinds.add("numeric")
            else:
                kinds.add(type(v).__name__)
        return kinds.pop() if len(kinds) == 1 else "mixed"
    return str(s.dtype)


def check_schema(partitions: Mapping[int, pd.DataFrame], module: str = "table") -> None:
    families: Dict[str, Dict[int, str]] = {}
    for q, df in partitions.items():
        for c in df.columns:
            fam = type_family(df[c])
            if fam is not None:
                families.setdefault(c, {})[q] = fam

    for col, by_q in families.items():
        if len(set(by_q.values())) > 1:
            detail = ", ".join(f"Q{q}={fam}" for q, fam in sorted(by_q.items()))
            raise SchemaConflictError(f"{module}: column {col!r} has incompatible types ({detail})")


def stack_quarters(partitions: Mapping[int, pd.DataFrame], module: str = "table") -> pd.DataFrame:
    """
    Append quarterly partitions of one module: Q1 rows first, then Q2..Q4, each block
    in file order. Columns are the union; cells a partition lacks are NA.
    """
    if not partitions:
        raise ValueError(f"{module}: no quarterly partitions to stack")
    bad = [q for q in partitions if q not in QUARTERS]
    if bad:
        raise ValueError(f"{module}: quarter labels must be in 1-4, got {bad}")

    check_schema(partitions, module)

    ordered = [partitions[q] for q in sorted(partitions)]
    return pd.concat(ordered, ignore_index=True, sort=False)


def quarter_counts(df: pd.DataFrame, col: str = "QUARTER") -> Dict[int, int]:
    if col not in df.columns:
        return {}
    q = pd.to_numeric(df[col], errors="coerce")
    return {int(k): int((q == k).sum()) for k in QUARTERS}
