"""End-to-end tests: partitions on disk -> merged master -> outputs and run summary."""

from __future__ import annotations

import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from lfs_merge.config import DATA_DIR, PROCESSED_DATA_DIR, RAW_DATA_DIR, master_stem
from pipelines.merge.cli import main
from pipelines.merge.config import PUBLISHED_KEY_FORMAT, default_modules
from pipelines.merge.errors import KeyConstructionError, SchemaConflictError
from pipelines.merge.io import find_partition, load_partitions, partition_path, write_json, write_master
from pipelines.merge.pipeline import run_merge


def _write_raw(partitions, raw_dir: Path, ext: str = ".csv") -> None:
    raw_dir.mkdir(parents=True, exist_ok=True)
    for m in default_modules(2023):
        for q, df in partitions[m.name].items():
            path = partition_path(raw_dir, 2023, q, m, ext)
            if ext == ".csv":
                df.to_csv(path, index=False)
            else:
                df.to_parquet(path, index=False)


def test_run_merge_builds_clean_master(partitions) -> None:
    result = run_merge(partitions, validate=False)
    master = result.master

    assert len(master) == 12
    assert master["person_id"].is_unique
    assert not [c for c in master.columns if c.endswith(("_emp", "_mig", "_hh"))]
    assert [s.stage for s in result.stages] == [
        "stack:roster", "stack:employment", "stack:migration", "stack:household", "join", "reconcile",
    ]
    assert all(q.passed for q in result.quality)
    assert result.warnings == []
    assert result.validation is None
    assert result.passed


def test_run_merge_collects_data_quality_warnings(partitions) -> None:
    partitions["household"][2] = pd.concat(
        [partitions["household"][2], partitions["household"][2].iloc[[1]]], ignore_index=True
    )
    result = run_merge(partitions)

    # household 2 in Q2 has one member, so the fan-out adds one row
    assert len(result.master) == 13
    assert any("duplicate hh_id" in w for w in result.warnings)
    unique = next(q for q in result.quality if q.name == "unique_persons")
    assert not unique.passed
    # youth unemployment in the fixture is 100 %, far from the published 7.2
    assert result.validation is not None and not result.validation.passed
    assert any("youth_unemployment_rate" in w for w in result.warnings)
    assert not result.passed


def test_schema_conflict_aborts_before_join(partitions) -> None:
    partitions["migration"][3] = partitions["migration"][3].assign(MGT_01A="three")
    with pytest.raises(SchemaConflictError, match="migration"):
        run_merge(partitions)


def test_missing_key_aborts_the_run(partitions) -> None:
    partitions["employment"][4] = partitions["employment"][4].assign(HHNO=[1, None])
    with pytest.raises(KeyConstructionError, match=r"employment.*quarter\(s\) 4"):
        run_merge(partitions)


def test_padded_keys_are_applied_to_every_module(partitions) -> None:
    result = run_merge(partitions, key_format=PUBLISHED_KEY_FORMAT, validate=False)
    assert result.master.loc[0, "person_id"] == "2023_1_001_01_0001_01"
    assert result.master.loc[0, "hh_id"] == "2023_1_001_01_0001"
    assert result.master["HI1"].notna().all()


def test_summary_is_json_serializable(partitions) -> None:
    result = run_merge(partitions)
    summary = json.loads(json.dumps(result.summary(), default=str))
    assert set(summary) == {"stages", "joins", "quality_checks", "warnings", "validation", "outputs"}
    assert summary["validation"]["overall_pass"] is False
    assert len(summary["validation"]["statistics"]) == 2


def test_load_partitions_reads_sixteen_files(partitions, tmp_path: Path) -> None:
    raw = tmp_path / "raw"
    _write_raw(partitions, raw, ext=".parquet")
    loaded = load_partitions(raw, 2023, default_modules(2023))
    assert set(loaded) == {"roster", "employment", "migration", "household"}
    assert all(sorted(v) == [1, 2, 3, 4] for v in loaded.values())
    assert len(loaded["roster"][1]) == 3


def test_missing_partition_names_module_and_quarter(tmp_path: Path) -> None:
    roster = default_modules(2023)[0]
    with pytest.raises(FileNotFoundError, match="Q2.*roster"):
        find_partition(tmp_path, 2023, 2, roster)


def test_cli_writes_outputs_and_summary(partitions, tmp_path: Path) -> None:
    raw, out = tmp_path / "raw", tmp_path / "processed"
    _write_raw(partitions, raw)

    code = main([
        "--raw-dir", str(raw),
        "--out-dir", str(out),
        "--year", "2023",
        "--sqlite", str(tmp_path / "warehouse.sqlite"),
    ])
    assert code == 0

    pq = out / "LFS_2023_Master_AllPersons.parquet"
    csv = out / "LFS_2023_Master_AllPersons.csv"
    assert pq.exists() and csv.exists()
    assert (tmp_path / "warehouse.sqlite").exists()

    master = pd.read_parquet(pq)
    assert len(master) == 12
    assert "person_id" in master.columns

    summary = json.loads((out / "LFS_2023_Master_AllPersons_summary.json").read_text())
    assert summary["stages"][-1] == {"stage": "reconcile", "rows": 12, "columns": master.shape[1]}
    assert len(summary["outputs"]) == 3


def test_cli_strict_flags_validation_failure(partitions, tmp_path: Path) -> None:
    raw = tmp_path / "raw"
    _write_raw(partitions, raw)
    args = ["--raw-dir", str(raw), "--out-dir", str(tmp_path / "out"), "--formats", "csv"]
    assert main(args + ["--strict"]) == 2
    assert main(args + ["--strict", "--skip-validation"]) == 0


def test_dta_output_round_trips(partitions, tmp_path: Path) -> None:
    master = run_merge(partitions, validate=False).master
    (path,) = write_master(master, tmp_path, "LFS_2023_Master_AllPersons", ["dta"])
    assert path.name == "LFS_2023_Master_AllPersons.dta"

    back = pd.read_stata(path, convert_categoricals=False)
    assert back.shape == master.shape
    assert back["person_id"].tolist() == master["person_id"].tolist()


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def test_write_json_maps_nan_to_null(tmp_path: Path) -> None:
    path = tmp_path / "summary.json"
    write_json({"value": float("nan"), "rows": [1, np.nan], "ok": True}, path)
    data = json.loads(path.read_text(), parse_constant=_reject_constant)
    assert data == {"value": None, "rows": [1, None], "ok": True}


def test_cli_summary_is_strict_json_when_a_statistic_is_undefined(partitions, tmp_path: Path) -> None:
    # nobody unemployed: youth share of unemployed has an empty denominator
    for q, df in partitions["employment"].items():
        partitions["employment"][q] = df.assign(BBS_lfs13=1)
    raw, out = tmp_path / "raw", tmp_path / "out"
    _write_raw(partitions, raw)

    assert main(["--raw-dir", str(raw), "--out-dir", str(out), "--formats", "csv"]) == 0
    text = (out / "LFS_2023_Master_AllPersons_summary.json").read_text()
    summary = json.loads(text, parse_constant=_reject_constant)
    share = next(
        s for s in summary["validation"]["statistics"] if s["statistic_name"] == "youth_share_of_unemployed"
    )
    assert share["calculated_value"] is None
    assert share["pass_flag"] is False


def test_data_dirs_live_under_data_root() -> None:
    assert RAW_DATA_DIR.parent == DATA_DIR
    assert PROCESSED_DATA_DIR.parent == DATA_DIR
    assert master_stem(2024) == "LFS_2024_Master_AllPersons"
