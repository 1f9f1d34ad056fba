from __future__ import annotations
import warnings
from dataclasses import dataclass, asdict
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from loguru import logger

from .config import HOUSEHOLD_KEY_COL, KeyFormat, ModuleSpec
from .errors import DuplicateKeyWarning
from .keys import build_household_key, duplicated_keys, with_household_key, with_person_key

_MERGE_IND = "_merge_lfs"


@dataclass(frozen=True)
class JoinStats:
    module: str
    key: str
    rows_before: int
    rows_after: int
    matched_rows: int
    duplicate_keys: int

    def as_dict(self) -> Dict[str, object]:
        return asdict(self)


def key_modules(
    stacked: Mapping[str, pd.DataFrame],
    modules: Sequence[ModuleSpec],
    key_format: Optional[KeyFormat] = None,
) -> Dict[str, pd.DataFrame]:
    """Attach person_id (or hh_id for the household module) to every stacked table."""
    out = {}
    for m in modules:
        df = stacked[m.name]
        if m.is_household:
            out[m.name] = with_household_key(df, key_format, module=m.name)
        else:
            out[m.name] = with_person_key(df, m.line_field, key_format, module=m.name)
    return out


def left_join_module(
    base: pd.DataFrame,
    other: pd.DataFrame,
    key: str,
    suffix: str,
    module: str = "table",
) -> Tuple[pd.DataFrame, JoinStats]:
    """
    base ⟕ other on `key`. Every base row survives in its original order.
    Colliding columns from `other` get `suffix`; duplicate keys in `other`
    fan out and are reported, never deduplicated.
    """
    if key not in base.columns:
        raise ValueError(f"Join key {key!r} missing from base table")
    if key not in other.columns:
        raise ValueError(f"Join key {key!r} missing from {module} table")

    dups = duplicated_keys(other[key])
    if dups:
        base_keys = set(base[key])
        fanned = [k for k in dups if k in base_keys]
        sample = (fanned or dups)[:5]
        warnings.warn(
            DuplicateKeyWarning(module, key, len(dups), [str(k) for k in sample], len(fanned))
        )

    merged = base.merge(
        other,
        how="left",
        on=key,
        suffixes=("", suffix),
        sort=False,
        indicator=_MERGE_IND,
    )
    matched = int((merged[_MERGE_IND] == "both").sum())
    merged = merged.drop(columns=[_MERGE_IND])

    stats = JoinStats(
        module=module,
        key=key,
        rows_before=len(base),
        rows_after=len(merged),
        matched_rows=matched,
        duplicate_keys=len(dups),
    )
    logger.info(
        f"[join] {module}: rows {stats.rows_before} -> {stats.rows_after}, "
        f"persons with {module} data: {stats.matched_rows}"
    )
    return merged, stats


def merge_modules(
    keyed: Mapping[str, pd.DataFrame],
    modules: Sequence[ModuleSpec],
    key_format: Optional[KeyFormat] = None,
) -> Tuple[pd.DataFrame, List[JoinStats]]:
    """
    roster ⟕ employment ⟕ migration on person_id, then ⟕ household on the hh_id
    each master row derives from its own YEAR/QUARTER/PSU/EAUM/HHNO.
    """
    base_spec, *joined = modules
    master = keyed[base_spec.name]
    logger.info(f"[join] base: {base_spec.name} ({len(master)} rows)")

    stats = []
    for m in joined:
        if m.is_household and HOUSEHOLD_KEY_COL not in master.columns:
            master = master.assign(
                **{HOUSEHOLD_KEY_COL: build_household_key(master, key_format, module=base_spec.name)}
            )
        master, st = left_join_module(master, keyed[m.name], m.key_col, m.suffix, m.name)
        stats.append(st)
    return master, stats
