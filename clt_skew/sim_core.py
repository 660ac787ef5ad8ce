"""Core simulation utilities: RNG sessions, sampling, sampling distributions, diagnostics."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
from numpy.random import Generator, Philox, SeedSequence

from .errors import ConfigError, DomainError
from .populations import Population
from .statistics import Z_HIGH, Statistic

BLOCK_ELEMENTS = 1 << 20


def rng_for(seed: int) -> Generator:
    return Generator(Philox(SeedSequence(seed)))


def check_positive_int(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
        raise ConfigError(f"{name} must be a positive integer, got {value!r}")


def sample(population: Population, n: int, rng: Generator) -> np.ndarray:
    check_positive_int("sample size", n)
    out = np.empty(n, dtype=float)
    population.fill(rng, out)
    return out


class SampleBuffer:
    """A (rows, n) block of samples owned by one task and refilled in place."""

    def __init__(self, population: Population, n: int, rows: int) -> None:
        check_positive_int("sample size", n)
        check_positive_int("block rows", rows)
        self.population = population
        self.n = n
        self.rows = rows
        self.values = np.empty((rows, n), dtype=float)

    def refill(self, rng: Generator, count: Optional[int] = None) -> np.ndarray:
        count = self.rows if count is None else count
        if not 0 < count <= self.rows:
            raise ValueError(f"count must be in [1, {self.rows}], got {count}")
        block = self.values[:count]
        self.population.fill(rng, block)
        return block


def default_block_rows(n: int, r: int) -> int:
    return max(1, min(r, BLOCK_ELEMENTS // n))


def build_sampling_distribution(
    statistic: Statistic,
    population: Population,
    n: int,
    r: int,
    seed: int = 0,
    params: Optional[Dict[str, float]] = None,
    block_rows: Optional[int] = None,
) -> np.ndarray:
    check_positive_int("sample size", n)
    check_positive_int("repetitions", r)
    statistic.check(n)
    bound = statistic.bind(params)

    rng = rng_for(seed)
    rows = default_block_rows(n, r) if block_rows is None else block_rows
    buf = SampleBuffer(population, n, rows)
    values = np.empty(r, dtype=float)

    start = 0
    while start < r:
        count = min(rows, r - start)
        block = buf.refill(rng, count)
        statistic(block, out=values[start:start + count], **bound)
        start += count
    return values


def skewness(x: np.ndarray) -> float:
    if x.size == 0:
        raise DomainError("skewness of an empty sampling distribution")
    mean = float(x.mean())
    m2 = float(np.mean((x - mean) ** 2))
    if m2 <= 0:
        return 0.0
    m3 = float(np.mean((x - mean) ** 3))
    return m3 / (m2 ** 1.5)


def kurtosis_excess(x: np.ndarray) -> float:
    if x.size == 0:
        raise DomainError("kurtosis of an empty sampling distribution")
    mean = float(x.mean())
    m2 = float(np.mean((x - mean) ** 2))
    if m2 <= 0:
        return 0.0
    m4 = float(np.mean((x - mean) ** 4))
    return m4 / (m2 ** 2) - 3.0


@dataclass(frozen=True)
class Diagnostics:
    upper_tail: float
    lower_tail: float
    skewness: float
    kurtosis: float
    mean: float
    sd: float

    @property
    def tail_sum(self) -> float:
        return self.upper_tail + self.lower_tail

    @property
    def tail_difference(self) -> float:
        return self.upper_tail - self.lower_tail


def standardize(values: np.ndarray, population_mean: float, population_sd: float, n: int) -> np.ndarray:
    if not math.isfinite(population_sd) or population_sd <= 0:
        raise DomainError(f"population sd must be positive and finite, got {population_sd!r}")
    if not math.isfinite(population_mean):
        raise DomainError(f"population mean must be finite, got {population_mean!r}")
    if n < 1:
        raise DomainError(f"n must be at least 1, got {n}")
    z = values - population_mean
    z /= population_sd / math.sqrt(n)
    return z


def diagnose(
    values: np.ndarray,
    population_mean: float,
    population_sd: float,
    n: int,
    critical_value: float = Z_HIGH,
) -> Diagnostics:
    values = np.asarray(values, dtype=float)
    r = values.size
    if r == 0:
        raise DomainError("cannot diagnose an empty sampling distribution")
    if not math.isfinite(critical_value) or critical_value <= 0:
        raise DomainError(f"critical value must be positive and finite, got {critical_value!r}")
    bad = r - np.count_nonzero(np.isfinite(values))
    if bad:
        raise DomainError(f"sampling distribution has {bad} non-finite values")
    z = standardize(values, population_mean, population_sd, n)
    upper = float(np.count_nonzero(z >= critical_value) / r)
    lower = float(np.count_nonzero(z <= -critical_value) / r)
    sd = float(values.std(ddof=1)) if r > 1 else 0.0
    return Diagnostics(
        upper_tail=upper,
        lower_tail=lower,
        skewness=skewness(values),
        kurtosis=kurtosis_excess(values),
        mean=float(values.mean()),
        sd=sd,
    )


def reference_for(statistic: Statistic, population: Population, n: int, values: np.ndarray) -> Tuple[float, float, int]:
    """Centre, scale and effective n that put the statistic on a z scale."""
    if statistic.reference == "population":
        return population.mean, population.sd, n
    if statistic.reference == "standard":
        return 0.0, 1.0, 1
    if values.size < 2:
        raise DomainError("empirical standardization needs at least 2 repetitions")
    return float(values.mean()), float(values.std(ddof=1)), 1


def is_adequately_normal(diag: Diagnostics, nominal: float = 0.025, tolerance: float = 0.2) -> bool:
    lo = nominal * (1.0 - tolerance)
    hi = nominal * (1.0 + tolerance)

    def inside(tail: float) -> bool:
        # closed band; the bounds carry float rounding (0.025 * 0.8 != 0.02)
        return (lo <= tail or math.isclose(tail, lo)) and (tail <= hi or math.isclose(tail, hi))

    return inside(diag.upper_tail) and inside(diag.lower_tail)


def sampling_distribution(
    statistic: Statistic,
    population: Population,
    n: int,
    repetitions: int,
    seed: int = 0,
    params: Optional[Dict[str, float]] = None,
    standardize_values: bool = False,
) -> np.ndarray:
    """Raw (or z-scaled) sampling distribution, for plotting collaborators."""
    population.validate()
    values = build_sampling_distribution(statistic, population, n, repetitions, seed=seed, params=params)
    if not standardize_values:
        return values
    centre, scale, n_eff = reference_for(statistic, population, n, values)
    return standardize(values, centre, scale, n_eff)
