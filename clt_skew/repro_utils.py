"""Utilities for reproducible runs (run IDs, manifests, result-table CSV files)."""
from __future__ import annotations

import csv
import hashlib
import json
import os
import platform
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .analysis import RESULT_FIELDS, ResultRow

THREAD_ENV_VARS = [
    "OMP_NUM_THREADS",
    "MKL_NUM_THREADS",
    "OPENBLAS_NUM_THREADS",
    "NUMEXPR_NUM_THREADS",
]

INT_FIELDS = {"sample_size"}
TEXT_FIELDS = {"distribution"}

SUMMARY_HEADER = ["run_id", "config", "base_seed", "statistic", "repetitions", "rows", "outputs_path", "notes"]


def compute_config_hash(config_path: str) -> str:
    h = hashlib.sha256()
    with open(config_path, "rb") as f:
        h.update(f.read())
    return h.hexdigest()


def compute_run_id(config_path: str, base_seed: int, prefix: str = "run") -> str:
    stem = os.path.splitext(os.path.basename(config_path))[0]
    h = compute_config_hash(config_path)[:8]
    return f"{prefix}_{stem}_seed{base_seed}_hash{h}"


def _cmd_output(cmd: list[str]) -> Optional[str]:
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL)
    except (OSError, subprocess.CalledProcessError):
        return None
    return out.decode("utf-8").strip()


def collect_versions() -> Dict[str, Any]:
    versions: Dict[str, Any] = {"python": platform.python_version()}
    import matplotlib
    import numpy
    import scipy

    for module in (numpy, scipy, matplotlib):
        versions[module.__name__] = module.__version__
    return versions


def collect_git_info(repo_root: str) -> Dict[str, Any]:
    if not os.path.isdir(os.path.join(repo_root, ".git")):
        return {"commit": None, "dirty": None}
    commit = _cmd_output(["git", "-C", repo_root, "rev-parse", "HEAD"])
    status = _cmd_output(["git", "-C", repo_root, "status", "--porcelain"])
    dirty = bool(status) if status is not None else None
    return {"commit": commit, "dirty": dirty}


def collect_platform_info() -> Dict[str, Any]:
    return {
        "system": platform.system(),
        "release": platform.release(),
        "machine": platform.machine(),
        "cpu_count": os.cpu_count(),
    }


def collect_thread_env() -> Dict[str, Optional[str]]:
    return {key: os.environ.get(key) for key in THREAD_ENV_VARS}


def ensure_dir(path: str) -> None:
    if path:
        os.makedirs(path, exist_ok=True)


def write_json(path: str, payload: Dict[str, Any]) -> None:
    ensure_dir(os.path.dirname(path))
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)


@dataclass
class RunPaths:
    run_id: str
    outputs_dir: str
    plots_dir: str
    logs_dir: str

    @property
    def results_csv(self) -> str:
        return os.path.join(self.outputs_dir, "results.csv")


def build_run_paths(root: str, experiment: str, run_id: str) -> RunPaths:
    outputs_dir = os.path.join(root, "outputs", experiment, run_id, "tables")
    plots_dir = os.path.join(root, "plots", experiment, run_id, "figs")
    logs_dir = os.path.join(root, "logs", run_id)
    return RunPaths(run_id=run_id, outputs_dir=outputs_dir, plots_dir=plots_dir, logs_dir=logs_dir)


def write_manifest(
    manifest_path: str,
    *,
    run_id: str,
    config_path: str,
    base_seed: int,
    analysis: Dict[str, Any],
    command: list[str],
    repo_root: str,
) -> None:
    payload: Dict[str, Any] = {
        "run_id": run_id,
        "config_path": config_path,
        "config_hash": compute_config_hash(config_path),
        "base_seed": base_seed,
        "analysis": analysis,
        "command": command,
        "versions": collect_versions(),
        "git": collect_git_info(repo_root),
        "platform": collect_platform_info(),
        "thread_env": collect_thread_env(),
    }
    write_json(manifest_path, payload)


def write_results_csv(path: str, rows: Iterable[ResultRow]) -> int:
    """Write result rows with the stable ``RESULT_FIELDS`` header; returns the row count."""
    ensure_dir(os.path.dirname(path))
    count = 0
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(RESULT_FIELDS))
        writer.writeheader()
        for row in rows:
            writer.writerow(row.as_dict())
            count += 1
    return count


def read_results_csv(path: str) -> List[Dict[str, Any]]:
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        if tuple(reader.fieldnames or ()) != RESULT_FIELDS:
            raise ValueError(f"{path}: header {reader.fieldnames} does not match {list(RESULT_FIELDS)}")
        rows = []
        for raw in reader:
            row: Dict[str, Any] = {}
            for key in RESULT_FIELDS:
                value = raw[key]
                if key in TEXT_FIELDS:
                    row[key] = value
                elif key in INT_FIELDS:
                    row[key] = int(value)
                else:
                    row[key] = float(value)
            rows.append(row)
    return rows


def append_summary(path: str, row: List[str]) -> None:
    ensure_dir(os.path.dirname(path))
    exists = os.path.exists(path)
    with open(path, "a", newline="") as f:
        writer = csv.writer(f)
        if not exists:
            writer.writerow(SUMMARY_HEADER)
        writer.writerow(row)
