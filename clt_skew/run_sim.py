#!/usr/bin/env python3
"""Run a skewness/CLT sweep from a TOML config and write the result table."""
from __future__ import annotations

import argparse
import os
import sys
import tomllib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .analysis import adequacy_summary, analyze
from .errors import ConfigError
from .populations import DEFAULT_POPULATIONS, DEFAULT_SAMPLE_SIZES, Population, parse_populations
from .repro_utils import append_summary, build_run_paths, compute_run_id, write_manifest, write_results_csv
from .statistics import Statistic, get_critical, get_statistic


@dataclass
class RunConfig:
    experiment: str
    base_seed: int
    repetitions: int
    statistic: Statistic
    critical: str = "normal"
    alpha: float = 0.05
    jobs: int = 0
    use_parameterized_reducer: bool = False
    sample_sizes: List[int] = field(default_factory=lambda: list(DEFAULT_SAMPLE_SIZES))
    populations: List[Population] = field(default_factory=lambda: list(DEFAULT_POPULATIONS))

    def describe(self) -> Dict[str, Any]:
        return {
            "experiment": self.experiment,
            "statistic": self.statistic.name,
            "critical": self.critical,
            "alpha": self.alpha,
            "repetitions": self.repetitions,
            "use_parameterized_reducer": self.use_parameterized_reducer,
            "sample_sizes": list(self.sample_sizes),
            "populations": [p.label for p in self.populations],
        }


def parse_config(cfg: Dict[str, Any]) -> RunConfig:
    meta = cfg.get("meta", {})
    section = cfg.get("analysis", {})
    statistic = get_statistic(section.get("statistic", "mean"))
    try:
        rc = RunConfig(
            experiment=str(meta.get("experiment", statistic.name)),
            base_seed=int(meta.get("base_seed", 0)),
            repetitions=int(meta["repetitions"]),
            statistic=statistic,
            critical=str(section.get("critical", "normal")),
            alpha=float(section.get("alpha", 0.05)),
            jobs=int(meta.get("jobs", 0)),
            use_parameterized_reducer=bool(section.get("use_parameterized_reducer", bool(statistic.params))),
        )
    except KeyError as exc:
        raise ConfigError(f"missing config key {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid config value: {exc}") from exc
    if "sample_sizes" in section:
        rc.sample_sizes = list(section["sample_sizes"])
    if "populations" in cfg:
        rc.populations = parse_populations(cfg["populations"])
    get_critical(rc.critical, rc.alpha)
    return rc


def load_config(path: str) -> RunConfig:
    with open(path, "rb") as f:
        try:
            cfg = tomllib.load(f)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"{path}: {exc}") from exc
    return parse_config(cfg)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Skewness vs CLT sampling-distribution sweep")
    parser.add_argument("--config", required=True, help="TOML config path")
    parser.add_argument("--seed", type=int, help="override base seed")
    parser.add_argument("--run-id", help="override run ID")
    parser.add_argument("--repetitions", type=int, help="override repetitions per (distribution, n)")
    parser.add_argument("--jobs", type=int, help="number of worker threads (0=auto)")
    parser.add_argument("--output-root", default=os.getcwd(), help="root for outputs/, plots/ and logs/")
    parser.add_argument("--quiet", action="store_true", help="suppress progress lines")
    return parser.parse_args(argv)


def run(argv: Optional[List[str]] = None) -> str:
    args = parse_args(argv)
    config_path = os.path.abspath(args.config)
    if not os.path.isfile(config_path):
        raise SystemExit(f"Config not found: {config_path}")
    rc = load_config(config_path)
    if args.seed is not None:
        rc.base_seed = args.seed
    if args.repetitions is not None:
        rc.repetitions = args.repetitions
    if args.jobs is not None:
        rc.jobs = args.jobs

    run_id = args.run_id or compute_run_id(config_path, rc.base_seed)
    root = os.path.abspath(args.output_root)
    paths = build_run_paths(root, rc.experiment, run_id)
    table = analyze(
        rc.statistic,
        rc.repetitions,
        rc.sample_sizes,
        get_critical(rc.critical, rc.alpha),
        rc.populations,
        use_parameterized_reducer=rc.use_parameterized_reducer,
        seed=rc.base_seed,
        jobs=rc.jobs,
        progress=not args.quiet,
    )

    count = write_results_csv(paths.results_csv, table)
    write_manifest(
        os.path.join(paths.logs_dir, "manifest.json"),
        run_id=run_id,
        config_path=config_path,
        base_seed=rc.base_seed,
        analysis=rc.describe(),
        command=sys.argv if argv is None else list(argv),
        repo_root=os.path.abspath(os.path.join(os.path.dirname(__file__), "..")),
    )
    append_summary(
        os.path.join(root, "outputs", rc.experiment, "summary.csv"),
        [
            run_id,
            os.path.relpath(config_path, root),
            str(rc.base_seed),
            rc.statistic.name,
            str(rc.repetitions),
            str(count),
            os.path.relpath(paths.outputs_dir, root),
            "completed",
        ],
    )

    if not args.quiet:
        for label, first_n in adequacy_summary(table).items():
            status = f"adequate from n={first_n}" if first_n is not None else "not adequate in grid"
            print(f"[{rc.experiment}] {label}: {status}", flush=True)
        print(f"[{rc.experiment}] wrote {count} rows to {paths.results_csv}", flush=True)
    return paths.results_csv


def main(argv: Optional[List[str]] = None) -> None:
    run(argv)


if __name__ == "__main__":
    main()
