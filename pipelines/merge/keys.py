from __future__ import annotations
from typing import Any, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .config import (
    HOUSEHOLD_KEY_COL,
    HOUSEHOLD_KEY_FIELDS,
    KEY_DELIMITER,
    PERSON_KEY_COL,
    KeyFormat,
)
from .errors import KeyConstructionError


def _is_missing(v: Any) -> bool:
    # covers numpy float32/float16 NaN as read from Stata float columns
    if v is None:
        return True
    return pd.api.types.is_scalar(v) and bool(pd.isna(v))


def canonical_str(v: Any) -> str:
    """String form of a key component: integral numbers lose a trailing '.0', strings pass through."""
    if isinstance(v, str):
        return v
    if isinstance(v, (bool, np.bool_)):
        return str(v)
    if isinstance(v, (int, np.integer)):
        return str(int(v))
    if isinstance(v, (float, np.floating)) and float(v).is_integer():
        return str(int(v))
    return str(v)


def _pad(s: str, width: Optional[int]) -> str:
    if width and s.isdigit():
        return s.zfill(width)
    return s


def _component_fields(line_field: Optional[str]) -> list[str]:
    return [*HOUSEHOLD_KEY_FIELDS, line_field] if line_field else list(HOUSEHOLD_KEY_FIELDS)


# ------------------------------
# Single-record keys
# ------------------------------
def _record_key(
    record: Mapping[str, Any],
    line_field: Optional[str],
    key_format: Optional[KeyFormat],
) -> str:
    parts = []
    for f in _component_fields(line_field):
        v = record.get(f)
        if _is_missing(v):
            raise KeyConstructionError(f"Key field {f!r} is missing from record")
        s = canonical_str(v)
        if key_format is not None:
            s = _pad(s, key_format.width_for(f, is_line=(f == line_field)))
        parts.append(s)
    return KEY_DELIMITER.join(parts)


def person_key(
    record: Mapping[str, Any],
    line_field: str,
    key_format: Optional[KeyFormat] = None,
) -> str:
    return _record_key(record, line_field, key_format)


def household_key(record: Mapping[str, Any], key_format: Optional[KeyFormat] = None) -> str:
    return _record_key(record, None, key_format)


# ------------------------------
# Table keys
# ------------------------------
def _describe_rows(df: pd.DataFrame, bad: pd.Series) -> str:
    if "QUARTER" in df.columns:
        quarters = sorted({canonical_str(q) for q in df.loc[bad, "QUARTER"] if not _is_missing(q)})
        if quarters:
            return f"{int(bad.sum())} row(s), quarter(s) {', '.join(quarters)}"
    return f"{int(bad.sum())} row(s)"


def _component(
    df: pd.DataFrame,
    field: str,
    width: Optional[int],
    module: str,
) -> pd.Series:
    if field not in df.columns:
        raise KeyConstructionError(f"{module}: key field {field!r} not in columns")
    col = df[field]
    bad = col.isna()
    if bad.any():
        raise KeyConstructionError(
            f"{module}: key field {field!r} missing in {_describe_rows(df, bad)}"
        )
    s = col.map(canonical_str).astype(object)
    if width:
        s = s.map(lambda x: _pad(x, width)).astype(object)
    return s


def _build_key(
    df: pd.DataFrame,
    line_field: Optional[str],
    key_format: Optional[KeyFormat],
    module: str,
) -> pd.Series:
    fields = _component_fields(line_field)
    out = pd.Series([""] * len(df), index=df.index, dtype=object)
    for i, f in enumerate(fields):
        width = key_format.width_for(f, is_line=(f == line_field)) if key_format else None
        comp = _component(df, f, width, module)
        out = comp if i == 0 else out + KEY_DELIMITER + comp
    return out.astype(object)


def build_person_key(
    df: pd.DataFrame,
    line_field: str,
    key_format: Optional[KeyFormat] = None,
    module: str = "table",
) -> pd.Series:
    """YEAR_QUARTER_PSU_EAUM_HHNO_<line_field> for every row."""
    return _build_key(df, line_field, key_format, module)


def build_household_key(
    df: pd.DataFrame,
    key_format: Optional[KeyFormat] = None,
    module: str = "table",
) -> pd.Series:
    return _build_key(df, None, key_format, module)


def with_person_key(
    df: pd.DataFrame,
    line_field: str,
    key_format: Optional[KeyFormat] = None,
    module: str = "table",
    col: str = PERSON_KEY_COL,
) -> pd.DataFrame:
    out = df.copy()
    out[col] = build_person_key(df, line_field, key_format, module)
    return out


def with_household_key(
    df: pd.DataFrame,
    key_format: Optional[KeyFormat] = None,
    module: str = "table",
    col: str = HOUSEHOLD_KEY_COL,
) -> pd.DataFrame:
    out = df.copy()
    out[col] = build_household_key(df, key_format, module)
    return out


def duplicated_keys(keys: pd.Series) -> Sequence[str]:
    """Distinct key values that occur more than once."""
    dup = keys[keys.duplicated(keep=False)]
    return list(pd.unique(dup))
