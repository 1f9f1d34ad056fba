from __future__ import annotations
from typing import Iterable, List, Sequence

import pandas as pd
from loguru import logger

from .config import HOUSEHOLD_KEY_FIELDS, ModuleSpec


def redundant_columns(modules: Sequence[ModuleSpec]) -> List[str]:
    """
    Suffixed duplicates to drop after the join: each joined module's copy of the
    household key fields plus its declared geography/weight duplicates.
    """
    drop = []
    for m in modules:
        if not m.suffix:
            continue
        drop += [f"{c}{m.suffix}" for c in HOUSEHOLD_KEY_FIELDS]
        drop += [f"{c}{m.suffix}" for c in m.extra_drop]
    return drop


def suffixed_columns(df: pd.DataFrame, suffixes: Iterable[str]) -> List[str]:
    sfx = tuple(s for s in suffixes if s)
    if not sfx:
        return []
    return [c for c in df.columns if str(c).endswith(sfx)]


def drop_redundant_columns(df: pd.DataFrame, drop_cols: Iterable[str]) -> pd.DataFrame:
    """Drop listed columns that are present. Unlisted columns, suffixed or not, are kept."""
    present = [c for c in drop_cols if c in df.columns]
    return df.drop(columns=present)


def reconcile(df: pd.DataFrame, modules: Sequence[ModuleSpec]) -> pd.DataFrame:
    suffixes = [m.suffix for m in modules]
    found = suffixed_columns(df, suffixes)
    logger.info(f"[reconcile] found {len(found)} duplicate columns")

    out = drop_redundant_columns(df, redundant_columns(modules))

    kept = suffixed_columns(out, suffixes)
    if kept:
        logger.info(f"[reconcile] retained suffixed columns: {kept}")
    logger.info(
        f"[reconcile] columns before: {df.shape[1]}, after: {out.shape[1]}, "
        f"dropped: {df.shape[1] - out.shape[1]}"
    )
    return out
