"""Tests for the population families: analytic moments, labels, validation, sampling."""

import math

import numpy as np
import pytest
from scipy import stats as sps

from clt_skew.errors import ConfigError
from clt_skew.populations import (
    DEFAULT_POPULATIONS,
    Beta,
    Exponential,
    Gamma,
    LogNormal,
    Normal,
    parse_population,
    parse_populations,
)
from clt_skew.sim_core import rng_for, sample


def _scipy_frozen(pop):
    if isinstance(pop, Gamma):
        return sps.gamma(pop.shape, scale=pop.scale)
    if isinstance(pop, LogNormal):
        return sps.lognorm(s=pop.sigma, scale=math.exp(pop.mu))
    if isinstance(pop, Exponential):
        return sps.expon(scale=1.0 / pop.rate)
    if isinstance(pop, Normal):
        return sps.norm(loc=pop.mu, scale=pop.sigma)
    return sps.beta(pop.a, pop.b)


def test_analytic_moments_match_scipy(all_families):
    for pop in all_families:
        m, v, s, k = _scipy_frozen(pop).stats(moments="mvsk")
        assert pop.mean == pytest.approx(float(m), rel=1e-10)
        assert pop.sd == pytest.approx(math.sqrt(float(v)), rel=1e-10)
        assert pop.skewness == pytest.approx(float(s), rel=1e-9, abs=1e-12)
        assert pop.excess_kurtosis == pytest.approx(float(k), rel=1e-9, abs=1e-12)


def test_exponential_rate_one_moments():
    pop = Exponential(1.0)
    assert (pop.mean, pop.sd, pop.skewness) == (1.0, 1.0, 2.0)


def test_labels_are_stable_strings():
    assert Gamma(16.0).label == "Gamma(shape=16, scale=1)"
    assert LogNormal(0.0, 0.25).label == "LogNormal(mu=0, sigma=0.25)"
    assert Exponential(1.0).label == "Exponential(rate=1)"
    assert Normal().label == "Normal(mu=0, sigma=1)"
    assert Beta(2.0, 5.0).label == "Beta(a=2, b=5)"
    assert str(Gamma(2.0)) == Gamma(2.0).label


def test_default_populations_are_valid_and_unique():
    for pop in DEFAULT_POPULATIONS:
        pop.validate()
    labels = [p.label for p in DEFAULT_POPULATIONS]
    assert len(set(labels)) == len(labels) == 8


@pytest.mark.parametrize(
    "pop",
    [Gamma(0.0), Gamma(2.0, -1.0), LogNormal(0.0, 0.0), LogNormal(float("nan"), 1.0),
     Exponential(0.0), Normal(0.0, -1.0), Normal(float("inf"), 1.0), Beta(0.0, 1.0), Beta(1.0, float("inf"))],
)
def test_invalid_parameters_rejected(pop):
    with pytest.raises(ConfigError):
        pop.validate()


def test_parse_population():
    assert parse_population({"family": "Gamma", "shape": 4}) == Gamma(4.0)
    assert parse_population({"family": "lognormal", "sigma": 0.5}) == LogNormal(0.0, 0.5)
    assert parse_population({"family": "beta", "a": 2, "b": 3}) == Beta(2.0, 3.0)
    assert parse_populations([{"family": "exponential"}, {"family": "normal"}]) == [Exponential(), Normal()]


@pytest.mark.parametrize(
    "entry",
    [
        {"family": "weibull", "shape": 1.0},
        {"family": "gamma", "shape": 1.0, "rate": 2.0},
        {"family": "gamma"},
        {"family": "gamma", "shape": "wide"},
        {"family": "gamma", "shape": -2.0},
    ],
)
def test_parse_population_errors(entry):
    with pytest.raises(ConfigError):
        parse_population(entry)


def test_fill_draws_match_population_moments(all_families):
    for pop in all_families:
        x = sample(pop, 200_000, rng_for(7))
        assert x.shape == (200_000,)
        assert x.mean() == pytest.approx(pop.mean, abs=5 * pop.sd / math.sqrt(x.size))
        assert x.std() == pytest.approx(pop.sd, rel=0.02)


def test_beta_draws_stay_in_unit_interval():
    x = sample(Beta(0.5, 0.5), 10_000, rng_for(1))
    assert np.all((x >= 0.0) & (x <= 1.0))


def test_beta_small_shapes_stay_finite():
    # both gamma draws underflow to 0 at these shapes, so a gamma ratio gives 0/0
    x = sample(Beta(0.01, 0.01), 100_000, rng_for(2))
    assert np.all(np.isfinite(x))
    assert np.all((x >= 0.0) & (x <= 1.0))
    assert x.mean() == pytest.approx(0.5, abs=0.02)


def test_labels_keep_full_precision():
    assert Gamma(1.0000001).label == "Gamma(shape=1.0000001, scale=1)"
    assert Gamma(1.0).label != Gamma(1.0000001).label
    assert LogNormal(0.0, 1e-05).label == "LogNormal(mu=0, sigma=1e-05)"
