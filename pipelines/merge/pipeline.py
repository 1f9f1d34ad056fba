from __future__ import annotations
import warnings
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd
from loguru import logger

from lfs_merge.report import build_summary

from ..validation.benchmarks import ValidationReport, validate_master
from ..validation.config import Benchmark, ValidationParams
from .config import HOUSEHOLD_KEY_COL, KeyFormat, ModuleSpec, default_modules, required_key_fields
from .errors import DuplicateKeyWarning, MissingWeightWarning, ValidationMismatch
from .join import JoinStats, key_modules, merge_modules
from .reconcile import reconcile
from .sanity import QualityCheck, run_quality_checks
from .stack import quarter_counts, stack_quarters

DATA_QUALITY_WARNINGS = (DuplicateKeyWarning, MissingWeightWarning, ValidationMismatch)


@dataclass(frozen=True)
class StageCount:
    stage: str
    rows: int
    columns: int


@dataclass(frozen=True)
class MergeResult:
    master: pd.DataFrame
    stages: List[StageCount]
    joins: List[JoinStats]
    quality: List[QualityCheck]
    warnings: List[str] = field(default_factory=list)
    validation: Optional[ValidationReport] = None

    @property
    def passed(self) -> bool:
        return self.validation is None or self.validation.passed

    def summary(self, outputs: Optional[List[str]] = None) -> Dict[str, Any]:
        return build_summary(
            stage_counts=[asdict(s) for s in self.stages],
            joins=[j.as_dict() for j in self.joins],
            quality=[q.as_dict() for q in self.quality],
            warnings=self.warnings,
            validation=self.validation.as_dict() if self.validation else None,
            outputs=outputs,
        )


def stack_modules(
    partitions: Mapping[str, Mapping[int, pd.DataFrame]],
    modules: Sequence[ModuleSpec],
) -> Dict[str, pd.DataFrame]:
    """Stack every module before any join so schema conflicts surface first."""
    stacked = {}
    for m in modules:
        if m.name not in partitions:
            raise KeyError(f"No partitions supplied for module {m.name!r}")
        stacked[m.name] = stack_quarters(partitions[m.name], module=m.name)
        logger.info(
            f"[stack] {m.name}: {len(stacked[m.name])} rows, "
            f"by quarter {quarter_counts(stacked[m.name])}"
        )
    return stacked


def _collect(caught: List[warnings.WarningMessage]) -> List[str]:
    ours = []
    for w in caught:
        if issubclass(w.category, DATA_QUALITY_WARNINGS):
            logger.warning(str(w.message))
            ours.append(str(w.message))
        else:
            warnings.warn_explicit(w.message, w.category, w.filename, w.lineno)
    return ours


def run_merge(
    partitions: Mapping[str, Mapping[int, pd.DataFrame]],
    modules: Optional[Sequence[ModuleSpec]] = None,
    key_format: Optional[KeyFormat] = None,
    params: Optional[ValidationParams] = None,
    benchmarks: Optional[Sequence[Benchmark]] = None,
    validate: bool = True,
) -> MergeResult:
    """
    Stack -> key -> join -> reconcile -> quality checks -> validation.

    Structural errors (KeyConstructionError, SchemaConflictError) propagate.
    Data-quality warnings are logged and returned in MergeResult.warnings.
    """
    modules = list(modules) if modules is not None else default_modules()
    stages: List[StageCount] = []

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")

        stacked = stack_modules(partitions, modules)
        for m in modules:
            df = stacked[m.name]
            stages.append(StageCount(f"stack:{m.name}", len(df), df.shape[1]))

        keyed = key_modules(stacked, modules, key_format)
        for m in modules:
            logger.info(f"[keys] {m.name}: {keyed[m.name][m.key_col].nunique()} unique {m.key_col}")

        master, joins = merge_modules(keyed, modules, key_format)
        stages.append(StageCount("join", len(master), master.shape[1]))

        clean = reconcile(master, modules)
        stages.append(StageCount("reconcile", len(clean), clean.shape[1]))

        quality = run_quality_checks(clean, required_key_fields(modules))

        report = None
        if validate:
            report = validate_master(clean, params, benchmarks)

    found = _collect(caught)

    n_hh = clean[HOUSEHOLD_KEY_COL].nunique() if HOUSEHOLD_KEY_COL in clean.columns else 0
    logger.info(
        f"[summary] rows (persons): {len(clean):,}, columns: {clean.shape[1]}, "
        f"unique households: {n_hh:,}"
    )
    if report is not None:
        logger.info(f"[summary] validation {'PASS' if report.passed else 'needs review'}")

    return MergeResult(
        master=clean,
        stages=stages,
        joins=joins,
        quality=quality,
        warnings=found,
        validation=report,
    )
