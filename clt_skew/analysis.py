"""Batch orchestration over a distributions x sample sizes grid."""
from __future__ import annotations

import math
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import asdict, dataclass, fields
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import BatchError, ConfigError, TaskError
from .populations import DEFAULT_POPULATIONS, Population
from .sim_core import build_sampling_distribution, check_positive_int, diagnose, is_adequately_normal, reference_for
from .statistics import Statistic, normal_critical

ON_ERROR = ("raise", "collect")


@dataclass(frozen=True)
class ResultRow:
    distribution: str
    skewness: float
    sample_size: int
    upper_tail: float
    lower_tail: float
    tail_sum: float
    tail_difference: float
    sampling_mean: float
    sampling_sd: float
    sampling_skewness: float
    sampling_kurtosis: float
    population_mean: float
    population_sd: float

    @property
    def key(self) -> Tuple[str, int]:
        return self.distribution, self.sample_size

    def as_dict(self) -> Dict:
        return asdict(self)


RESULT_FIELDS: Tuple[str, ...] = tuple(f.name for f in fields(ResultRow))


@dataclass
class ResultTable:
    rows: List[ResultRow]
    failures: List[TaskError]

    def __iter__(self) -> Iterator[ResultRow]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def to_dicts(self) -> List[Dict]:
        return [row.as_dict() for row in self.rows]

    def keys(self) -> List[Tuple[str, int]]:
        return [row.key for row in self.rows]


def _format_seconds(seconds: float) -> str:
    if not math.isfinite(seconds):
        return "inf"
    seconds = max(0.0, seconds)
    h = int(seconds // 3600)
    m = int((seconds % 3600) // 60)
    s = int(seconds % 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


class ModuleProgress:
    """Prints START/done/progress/DONE lines; only the collecting thread calls it."""

    def __init__(self, label: str, total_tasks: int, cadence_seconds: int = 60, enabled: bool = True) -> None:
        self.label = label
        self.total_tasks = max(0, total_tasks)
        self.cadence_seconds = cadence_seconds
        self.enabled = enabled
        self.start_ts = time.time()
        self.last_report = self.start_ts
        self.completed_tasks = 0
        self.failed_tasks = 0
        self.completed_task_times: List[float] = []
        start_str = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(self.start_ts))
        self._emit(f"[{self.label}] START {start_str} | tasks={self.total_tasks}")

    def _emit(self, line: str) -> None:
        if self.enabled:
            print(line, flush=True)

    def note(self, message: str) -> None:
        self._emit(f"[{self.label}] {message}")

    def finish_task(self, task_label: str, elapsed: float, ok: bool = True) -> None:
        self.completed_tasks += 1
        if ok:
            self.completed_task_times.append(elapsed)
        else:
            self.failed_tasks += 1
        status = "done" if ok else "FAILED"
        self._emit(
            f"[{self.label}] {status} {task_label} | task_time={_format_seconds(elapsed)} | "
            f"tasks={self.completed_tasks}/{self.total_tasks}"
        )
        now = time.time()
        if (now - self.last_report) >= self.cadence_seconds:
            self._report(now)
            self.last_report = now

    def finish(self) -> None:
        now = time.time()
        end_str = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(now))
        self._emit(
            f"[{self.label}] DONE {end_str} | total_time={_format_seconds(now - self.start_ts)} | "
            f"failed={self.failed_tasks}"
        )

    def _estimate_eta(self) -> float:
        remaining = max(0, self.total_tasks - self.completed_tasks)
        if remaining == 0:
            return 0.0
        if not self.completed_task_times:
            return float("inf")
        return remaining * sum(self.completed_task_times) / len(self.completed_task_times)

    def _report(self, now: float) -> None:
        self._emit(
            f"[{self.label}] progress {self.completed_tasks}/{self.total_tasks} | "
            f"elapsed={_format_seconds(now - self.start_ts)} | eta={_format_seconds(self._estimate_eta())}"
        )


def _validate(
    statistic: Statistic,
    repetitions: int,
    sample_sizes: Sequence[int],
    distributions: Sequence[Population],
    use_parameterized_reducer: bool,
    on_error: str,
) -> None:
    check_positive_int("repetitions", repetitions)
    if not sample_sizes:
        raise ConfigError("sample_sizes must not be empty")
    for n in sample_sizes:
        check_positive_int("sample size", n)
    if len(set(sample_sizes)) != len(sample_sizes):
        raise ConfigError(f"sample sizes must be unique, got {list(sample_sizes)}")
    if not distributions:
        raise ConfigError("distributions must not be empty")
    labels = []
    for d in distributions:
        d.validate()
        labels.append(d.label)
    if len(set(labels)) != len(labels):
        raise ConfigError(f"distribution labels must be unique, got {labels}")
    if statistic.params and not use_parameterized_reducer:
        raise ConfigError(f"{statistic.name} takes {list(statistic.params)}; set use_parameterized_reducer")
    if on_error not in ON_ERROR:
        raise ConfigError(f"on_error must be one of {ON_ERROR}, got {on_error!r}")


def _run_task(
    statistic: Statistic,
    population: Population,
    moments: Tuple[float, float, float],
    n: int,
    repetitions: int,
    critical_value_fn: Callable[[int], float],
    params: Optional[Dict[str, float]],
    seed: int,
) -> Tuple[ResultRow, float]:
    t0 = time.time()
    mu, sigma, skew = moments
    critical = critical_value_fn(n)
    values = build_sampling_distribution(statistic, population, n, repetitions, seed=seed, params=params)
    centre, scale, n_eff = reference_for(statistic, population, n, values)
    diag = diagnose(values, centre, scale, n_eff, critical)
    row = ResultRow(
        distribution=population.label,
        skewness=skew,
        sample_size=n,
        upper_tail=diag.upper_tail,
        lower_tail=diag.lower_tail,
        tail_sum=diag.tail_sum,
        tail_difference=diag.tail_difference,
        sampling_mean=diag.mean,
        sampling_sd=diag.sd,
        sampling_skewness=diag.skewness,
        sampling_kurtosis=diag.kurtosis,
        population_mean=mu,
        population_sd=sigma,
    )
    return row, time.time() - t0


def analyze(
    statistic: Statistic,
    repetitions: int,
    sample_sizes: Sequence[int],
    critical_value_fn: Optional[Callable[[int], float]] = None,
    distributions: Optional[Sequence[Population]] = None,
    use_parameterized_reducer: bool = False,
    seed: int = 0,
    jobs: int = 0,
    on_error: str = "raise",
    progress: bool = True,
) -> ResultTable:
    """Run ``statistic`` over every (distribution, sample size) pair.

    Sample sizes of one distribution run concurrently on a thread pool; each
    task reseeds its own generator with ``seed`` so a row never depends on
    scheduling. Rows are collected on the calling thread and sorted by
    (distribution label, sample size). With ``on_error="raise"`` the first
    failure stops scheduling and a ``BatchError`` is raised once in-flight
    tasks finish; with ``"collect"`` failures are recorded on the table.
    """
    sample_sizes = list(sample_sizes)
    distributions = list(DEFAULT_POPULATIONS if distributions is None else distributions)
    if critical_value_fn is None:
        critical_value_fn = normal_critical()
    _validate(statistic, repetitions, sample_sizes, distributions, use_parameterized_reducer, on_error)
    repetitions = int(repetitions)
    sample_sizes = [int(n) for n in sample_sizes]

    workers = jobs if jobs > 0 else min(len(sample_sizes), os.cpu_count() or 1)
    rows: List[ResultRow] = []
    failures: List[TaskError] = []
    tracker = ModuleProgress(statistic.name, len(distributions) * len(sample_sizes), enabled=progress)
    tracker.note(f"repetitions={repetitions} sample_sizes={len(sample_sizes)} workers={workers}")

    with ThreadPoolExecutor(max_workers=workers) as ex:
        for population in distributions:
            label = population.label
            moments = (population.mean, population.sd, population.skewness)
            params = {"mu": moments[0]} if use_parameterized_reducer else None
            tracker.note(f"{label} mean={moments[0]:.6g} sd={moments[1]:.6g} skewness={moments[2]:.6g}")

            pending: Dict[Future, int] = {}
            for n in sample_sizes:
                fut = ex.submit(
                    _run_task, statistic, population, moments, n, repetitions, critical_value_fn, params, seed
                )
                pending[fut] = n

            stop = False
            for fut in as_completed(pending):
                n = pending[fut]
                if fut.cancelled():
                    continue
                exc = fut.exception()
                if exc is not None:
                    failures.append(TaskError(label, n, exc))
                    tracker.finish_task(f"{label} n={n}", 0.0, ok=False)
                    if on_error == "raise" and not stop:
                        stop = True
                        for other in pending:
                            other.cancel()
                    continue
                row, elapsed = fut.result()
                rows.append(row)
                tracker.finish_task(f"{label} n={n}", elapsed)
            if stop:
                break

    tracker.finish()
    if failures and on_error == "raise":
        raise BatchError(failures) from failures[0].cause
    rows.sort(key=lambda r: (r.distribution, r.sample_size))
    return ResultTable(rows=rows, failures=failures)


def adequacy_summary(table: ResultTable, nominal: float = 0.025, tolerance: float = 0.2) -> Dict[str, Optional[int]]:
    """Smallest sample size per distribution from which every larger n keeps both tails in the band."""
    by_label: Dict[str, List[ResultRow]] = {}
    for row in table.rows:
        by_label.setdefault(row.distribution, []).append(row)
    summary: Dict[str, Optional[int]] = {}
    for label, rows in by_label.items():
        first: Optional[int] = None
        for row in sorted(rows, key=lambda r: r.sample_size):
            if is_adequately_normal(row, nominal, tolerance):
                if first is None:
                    first = row.sample_size
            else:
                first = None
        summary[label] = first
    return summary
