#!/usr/bin/env python3
"""Plots from a result table, skewness-vs-n slope fits, and raw sampling-distribution figures."""
from __future__ import annotations

import argparse
import csv
import math
import os
from typing import Dict, List, Optional, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from scipy import stats as sps

from .errors import ConfigError
from .populations import Population, parse_population
from .repro_utils import ensure_dir, read_results_csv
from .sim_core import sampling_distribution
from .statistics import Statistic, get_statistic

ADEQUACY_BAND = (0.02, 0.03)
SLOPE_FIELDS = ["distribution", "skewness", "slope", "theory_slope", "intercept", "n_points"]


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plot a skewness/CLT result table")
    parser.add_argument("--results", help="results.csv written by clt-skew-run")
    parser.add_argument("--out-dir", help="figure directory (default: plots/ beside the run's tables)")
    parser.add_argument("--min-n", type=int, default=5, help="smallest n used in slope fits")
    parser.add_argument("--qq", help="population for a raw sampling-distribution figure, e.g. 'exponential:rate=1'")
    parser.add_argument("--statistic", default="mean", help="statistic for --qq")
    parser.add_argument("--n", type=int, default=5, help="sample size for --qq")
    parser.add_argument("--repetitions", type=int, default=100000, help="repetitions for --qq")
    parser.add_argument("--seed", type=int, default=0, help="seed for --qq")
    return parser.parse_args(argv)


def parse_population_arg(text: str) -> Population:
    family, _, rest = text.partition(":")
    entry: Dict[str, object] = {"family": family}
    for item in filter(None, (p.strip() for p in rest.split(","))):
        key, sep, value = item.partition("=")
        if not sep:
            raise ConfigError(f"expected key=value in {text!r}, got {item!r}")
        entry[key.strip()] = value.strip()
    return parse_population(entry)


def _group(rows: List[Dict]) -> Dict[str, List[Dict]]:
    out: Dict[str, List[Dict]] = {}
    for row in rows:
        out.setdefault(row["distribution"], []).append(row)
    for pts in out.values():
        pts.sort(key=lambda r: r["sample_size"])
    return out


def loglog_fit(xs: List[float], ys: List[float]) -> Tuple[float, float, int]:
    pairs = [(x, y) for x, y in zip(xs, ys) if x > 0 and y > 0 and math.isfinite(y)]
    if len(pairs) < 2:
        return math.nan, math.nan, len(pairs)
    logx = [math.log(x) for x, _ in pairs]
    logy = [math.log(y) for _, y in pairs]
    mean_x = sum(logx) / len(logx)
    mean_y = sum(logy) / len(logy)
    num = sum((x - mean_x) * (y - mean_y) for x, y in zip(logx, logy))
    den = sum((x - mean_x) ** 2 for x in logx)
    if den == 0:
        return math.nan, math.nan, len(pairs)
    slope = num / den
    return slope, mean_y - slope * mean_x, len(pairs)


def skewness_slopes(rows: List[Dict], min_n: int = 5) -> List[Dict]:
    """Log-log fit of sampling skewness against n; CLT theory for the mean gives slope -1/2."""
    slope_rows = []
    for label, pts in _group(rows).items():
        pts = [p for p in pts if p["sample_size"] >= min_n]
        slope, intercept, k = loglog_fit([p["sample_size"] for p in pts], [p["sampling_skewness"] for p in pts])
        slope_rows.append(
            {
                "distribution": label,
                "skewness": pts[0]["skewness"] if pts else math.nan,
                "slope": slope,
                "theory_slope": -0.5,
                "intercept": intercept,
                "n_points": k,
            }
        )
    return slope_rows


def write_slopes(path: str, slope_rows: List[Dict]) -> None:
    ensure_dir(os.path.dirname(path))
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=SLOPE_FIELDS)
        writer.writeheader()
        for row in slope_rows:
            writer.writerow(row)


def plot_tail_weights(rows: List[Dict], out_dir: str) -> str:
    groups = _group(rows)
    fig, axes = plt.subplots(1, 2, figsize=(12, 4.5), sharey=True)
    for label, pts in groups.items():
        xs = [p["sample_size"] for p in pts]
        axes[0].plot(xs, [p["upper_tail"] for p in pts], marker="o", markersize=3, label=label)
        axes[1].plot(xs, [p["lower_tail"] for p in pts], marker="o", markersize=3, label=label)
    for ax, title in zip(axes, ("Upper tail", "Lower tail")):
        ax.axhline(0.025, color="black", linewidth=1)
        ax.axhspan(*ADEQUACY_BAND, color="grey", alpha=0.2)
        ax.set_xscale("log")
        ax.set_xlabel("sample size n")
        ax.set_title(title)
        ax.grid(True, alpha=0.3)
    axes[0].set_ylabel("tail weight")
    axes[1].legend(fontsize=7)
    path = os.path.join(out_dir, "tail_weights.png")
    ensure_dir(out_dir)
    fig.tight_layout()
    fig.savefig(path, dpi=200)
    plt.close(fig)
    return path


def plot_sampling_skewness(rows: List[Dict], slope_rows: List[Dict], out_dir: str) -> str:
    groups = _group(rows)
    fits = {r["distribution"]: r for r in slope_rows}
    fig, ax = plt.subplots(figsize=(7, 4.5))
    for label, pts in groups.items():
        pts = [p for p in pts if p["sampling_skewness"] > 0]
        if not pts:
            continue
        xs = [p["sample_size"] for p in pts]
        line = ax.plot(xs, [p["sampling_skewness"] for p in pts], marker="o", markersize=3, label=label)[0]
        fit = fits.get(label)
        if fit and math.isfinite(fit["slope"]):
            ax.plot(xs, [math.exp(fit["intercept"]) * x ** fit["slope"] for x in xs], linestyle="--", color=line.get_color(), linewidth=1)
    ax.set_xscale("log")
    ax.set_yscale("log")
    ax.set_xlabel("sample size n")
    ax.set_ylabel("sampling-distribution skewness")
    ax.set_title("Skewness of the sampling distribution")
    ax.legend(fontsize=7)
    ax.grid(True, alpha=0.3)
    path = os.path.join(out_dir, "sampling_skewness.png")
    ensure_dir(out_dir)
    fig.tight_layout()
    fig.savefig(path, dpi=200)
    plt.close(fig)
    return path


def qq_points(z: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    ordered = np.sort(z)
    k = ordered.size
    probs = (np.arange(1, k + 1) - 0.5) / k
    return sps.norm.ppf(probs), ordered


def plot_sampling_distribution(
    statistic: Statistic,
    population: Population,
    n: int,
    repetitions: int,
    out_dir: str,
    seed: int = 0,
) -> str:
    params = {"mu": population.mean} if statistic.params else None
    z = sampling_distribution(statistic, population, n, repetitions, seed=seed, params=params, standardize_values=True)
    theory, observed = qq_points(z)

    fig, (ax_h, ax_q) = plt.subplots(1, 2, figsize=(11, 4.5))
    ax_h.hist(z, bins=100, density=True, alpha=0.7)
    grid = np.linspace(-4, 4, 400)
    ax_h.plot(grid, sps.norm.pdf(grid), color="black", linewidth=1)
    ax_h.set_xlabel("standardized statistic")
    ax_h.set_title(f"{statistic.name}, {population.label}, n={n}")
    step = max(1, observed.size // 5000)
    ax_q.plot(theory[::step], observed[::step], ".", markersize=2)
    ax_q.plot([-4, 4], [-4, 4], color="black", linewidth=1)
    ax_q.set_xlabel("standard normal quantile")
    ax_q.set_ylabel("sample quantile")
    ax_q.set_title("Normal Q-Q")
    for ax in (ax_h, ax_q):
        ax.grid(True, alpha=0.3)

    stem = f"qq_{statistic.name}_{type(population).__name__.lower()}_n{n}"
    path = os.path.join(out_dir, f"{stem}.png")
    ensure_dir(out_dir)
    fig.tight_layout()
    fig.savefig(path, dpi=200)
    plt.close(fig)

    with open(os.path.join(out_dir, f"{stem}.csv"), "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["standardized_statistic"])
        writer.writerows([v] for v in z.tolist())
    return path


def _default_out_dir(results_path: str) -> str:
    # outputs/<experiment>/<run_id>/tables/results.csv -> plots/<experiment>/<run_id>/figs
    tables = os.path.dirname(os.path.abspath(results_path))
    run_dir = os.path.dirname(tables)
    exp_dir = os.path.dirname(run_dir)
    outputs = os.path.dirname(exp_dir)
    if os.path.basename(tables) == "tables" and os.path.basename(outputs) == "outputs":
        root = os.path.dirname(outputs)
        return os.path.join(root, "plots", os.path.basename(exp_dir), os.path.basename(run_dir), "figs")
    return os.path.join(tables, "figs")


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    if not args.results and not args.qq:
        raise SystemExit("Nothing to do: pass --results and/or --qq")

    if args.results:
        results_path = os.path.abspath(args.results)
        if not os.path.isfile(results_path):
            raise SystemExit(f"Result table not found: {results_path}")
        out_dir = args.out_dir or _default_out_dir(results_path)
        rows = read_results_csv(results_path)
        slope_rows = skewness_slopes(rows, args.min_n)
        write_slopes(os.path.join(os.path.dirname(results_path), "skewness_slopes.csv"), slope_rows)
        print(f"[plots] {plot_tail_weights(rows, out_dir)}", flush=True)
        print(f"[plots] {plot_sampling_skewness(rows, slope_rows, out_dir)}", flush=True)

    if args.qq:
        out_dir = args.out_dir or os.path.join(os.getcwd(), "plots", "sampling_distributions")
        population = parse_population_arg(args.qq)
        path = plot_sampling_distribution(get_statistic(args.statistic), population, args.n, args.repetitions, out_dir, args.seed)
        print(f"[plots] {path}", flush=True)


if __name__ == "__main__":
    main()
