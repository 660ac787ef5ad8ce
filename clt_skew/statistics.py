"""Statistic reducers and critical-value functions.

Every reducer works along the last axis, so the same function reduces a single
sample (1-D) or a block of samples (2-D, one sample per row) and can write the
block's results straight into a preallocated ``out`` slice.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import numpy as np
from scipy import stats as sps

from .errors import ConfigError, DegenerateStatisticError

Z_HIGH = 1.959963984540054

REFERENCES = ("population", "standard", "empirical")


def _check_size(name: str, n: int, min_n: int) -> None:
    if n < min_n:
        raise DegenerateStatisticError(f"{name} needs at least {min_n} observations per sample, got {n}")


def mean(sample: np.ndarray, out: Optional[np.ndarray] = None):
    sample = np.asarray(sample, dtype=float)
    _check_size("mean", sample.shape[-1], 1)
    return np.mean(sample, axis=-1, out=out)


def t_statistic(sample: np.ndarray, mu: float, out: Optional[np.ndarray] = None):
    sample = np.asarray(sample, dtype=float)
    n = sample.shape[-1]
    _check_size("t_statistic", n, 2)
    centre = np.mean(sample, axis=-1)
    se = np.std(sample, axis=-1, ddof=1)
    se /= math.sqrt(n)
    centre -= mu
    return np.divide(centre, se, out=out)


def adjusted_skewness(sample: np.ndarray, out: Optional[np.ndarray] = None):
    """Bias-corrected sample skewness G1 = g1 * sqrt(n(n-1)) / (n-2)."""
    sample = np.asarray(sample, dtype=float)
    n = sample.shape[-1]
    _check_size("adjusted_skewness", n, 3)
    dev = sample - np.mean(sample, axis=-1, keepdims=True)
    sq = dev * dev
    m2 = np.mean(sq, axis=-1)
    sq *= dev
    m3 = np.mean(sq, axis=-1)
    g1 = np.divide(m3, m2 ** 1.5, out=np.zeros_like(m3), where=m2 > 0)
    g1 *= math.sqrt(n * (n - 1.0)) / (n - 2.0)
    if out is None:
        return g1
    out[...] = g1
    return out


@dataclass(frozen=True)
class Statistic:
    """A reducer plus what the engine needs to know to drive and diagnose it.

    ``reference`` tells the diagnostics how to standardize the sampling
    distribution: ``population`` uses the population mean and sd/sqrt(n),
    ``standard`` means values are already on a z-like scale, ``empirical``
    uses the sampling distribution's own mean and SD.
    """

    name: str
    reduce: Callable[..., np.ndarray]
    min_n: int = 1
    params: Tuple[str, ...] = ()
    reference: str = "population"

    def __post_init__(self) -> None:
        if self.reference not in REFERENCES:
            raise ConfigError(f"Unknown reference {self.reference!r} for statistic {self.name}")

    def check(self, n: int) -> None:
        _check_size(self.name, n, self.min_n)

    def bind(self, params: Optional[Dict[str, float]] = None) -> Dict[str, float]:
        params = dict(params or {})
        missing = [p for p in self.params if p not in params]
        if missing:
            raise ConfigError(f"{self.name} requires parameter(s) {missing}")
        return {k: params[k] for k in self.params}

    def __call__(self, sample: np.ndarray, out: Optional[np.ndarray] = None, **params):
        return self.reduce(sample, out=out, **params)


MEAN = Statistic("mean", mean)
T_STATISTIC = Statistic("t_statistic", t_statistic, min_n=2, params=("mu",), reference="standard")
ADJUSTED_SKEWNESS = Statistic("adjusted_skewness", adjusted_skewness, min_n=3, reference="empirical")

STATISTICS: Dict[str, Statistic] = {s.name: s for s in (MEAN, T_STATISTIC, ADJUSTED_SKEWNESS)}


def get_statistic(name: str) -> Statistic:
    try:
        return STATISTICS[name]
    except KeyError:
        raise ConfigError(f"Unknown statistic {name!r}; expected one of {sorted(STATISTICS)}") from None


def _check_alpha(alpha: float) -> None:
    if not 0.0 < alpha < 1.0:
        raise ConfigError(f"alpha must be in (0,1), got {alpha!r}")


def normal_critical(alpha: float = 0.05) -> Callable[[int], float]:
    _check_alpha(alpha)
    z = Z_HIGH if alpha == 0.05 else float(sps.norm.ppf(1.0 - alpha / 2.0))
    return lambda n: z


def t_critical(alpha: float = 0.05) -> Callable[[int], float]:
    _check_alpha(alpha)

    def critical(n: int) -> float:
        if n < 2:
            raise DegenerateStatisticError(f"t critical value needs n >= 2, got {n}")
        return float(sps.t.ppf(1.0 - alpha / 2.0, n - 1))

    return critical


CRITICAL_VALUES: Dict[str, Callable[[float], Callable[[int], float]]] = {
    "normal": normal_critical,
    "t": t_critical,
}


def get_critical(name: str, alpha: float = 0.05) -> Callable[[int], float]:
    try:
        factory = CRITICAL_VALUES[name]
    except KeyError:
        raise ConfigError(f"Unknown critical value {name!r}; expected one of {sorted(CRITICAL_VALUES)}") from None
    return factory(alpha)
