"""Tests for sampling, the sampling-distribution builder and the diagnostics."""

import math

import numpy as np
import pytest
from scipy import stats as sps

from clt_skew.errors import ConfigError, DegenerateStatisticError, DomainError
from clt_skew.populations import Beta, Exponential, Gamma, Normal
from clt_skew.sim_core import (
    BLOCK_ELEMENTS,
    Diagnostics,
    SampleBuffer,
    build_sampling_distribution,
    default_block_rows,
    diagnose,
    is_adequately_normal,
    kurtosis_excess,
    reference_for,
    rng_for,
    sampling_distribution,
    skewness,
)
from clt_skew.statistics import ADJUSTED_SKEWNESS, MEAN, T_STATISTIC


class TestBuilder:
    def test_reproducible_for_fixed_seed(self, all_families):
        for pop in all_families:
            a = build_sampling_distribution(MEAN, pop, 7, 500, seed=11)
            b = build_sampling_distribution(MEAN, pop, 7, 500, seed=11)
            np.testing.assert_array_equal(a, b)

    def test_seed_changes_output(self):
        a = build_sampling_distribution(MEAN, Gamma(2.0), 5, 100, seed=0)
        b = build_sampling_distribution(MEAN, Gamma(2.0), 5, 100, seed=1)
        assert not np.array_equal(a, b)

    @pytest.mark.parametrize("n", [1, 2, 7])
    @pytest.mark.parametrize("r", [1, 3, 1000])
    def test_length_invariant(self, n, r):
        values = build_sampling_distribution(MEAN, Beta(2.0, 3.0), n, r)
        assert values.shape == (r,)
        assert np.all(np.isfinite(values))

    def test_partial_final_block(self):
        values = build_sampling_distribution(MEAN, Normal(), 3, 10, block_rows=4)
        assert values.shape == (10,)

    @pytest.mark.parametrize("pop", [Normal(2.0, 3.0), Exponential(0.5)])
    def test_block_size_does_not_change_stream(self, pop):
        one = build_sampling_distribution(MEAN, pop, 4, 50, block_rows=1)
        many = build_sampling_distribution(MEAN, pop, 4, 50)
        np.testing.assert_allclose(one, many, rtol=0, atol=1e-12)

    def test_matches_per_repetition_reduction(self):
        rng = rng_for(5)
        expected = [rng.standard_normal(6).mean() for _ in range(20)]
        values = build_sampling_distribution(MEAN, Normal(), 6, 20, seed=5)
        np.testing.assert_allclose(values, expected, atol=1e-12)

    @pytest.mark.parametrize("n, r", [(0, 10), (5, 0), (-1, 10), (5, 2.5), (True, 10)])
    def test_rejects_degenerate_sizes(self, n, r):
        with pytest.raises(ConfigError):
            build_sampling_distribution(MEAN, Normal(), n, r)

    def test_statistic_needing_variance_rejects_n1(self):
        with pytest.raises(DegenerateStatisticError):
            build_sampling_distribution(T_STATISTIC, Normal(), 1, 10, params={"mu": 0.0})

    def test_parameterized_statistic_needs_params(self):
        with pytest.raises(ConfigError):
            build_sampling_distribution(T_STATISTIC, Normal(), 5, 10)

    def test_default_block_rows(self):
        assert default_block_rows(1, 10) == 10
        assert default_block_rows(1, 10**8) == BLOCK_ELEMENTS
        assert default_block_rows(10**7, 5) == 1


class TestSampleBuffer:
    def test_refill_reuses_storage(self):
        buf = SampleBuffer(Beta(2.0, 2.0), 4, 8)
        first = buf.refill(rng_for(0))
        second = buf.refill(rng_for(1), 3)
        assert first.base is buf.values or first is buf.values
        assert np.shares_memory(second, buf.values)
        assert second.shape == (3, 4)

    def test_refill_bounds(self):
        buf = SampleBuffer(Normal(), 2, 4)
        with pytest.raises(ValueError):
            buf.refill(rng_for(0), 5)
        with pytest.raises(ValueError):
            buf.refill(rng_for(0), 0)


class TestMoments:
    def test_skewness_and_kurtosis_match_scipy(self):
        x = np.random.default_rng(2).gamma(2.0, size=5000)
        assert skewness(x) == pytest.approx(float(sps.skew(x)))
        assert kurtosis_excess(x) == pytest.approx(float(sps.kurtosis(x)))

    def test_constant_values(self):
        x = np.full(10, 3.0)
        assert skewness(x) == 0.0
        assert kurtosis_excess(x) == 0.0

    def test_empty_is_domain_error(self):
        with pytest.raises(DomainError):
            skewness(np.array([]))
        with pytest.raises(DomainError):
            kurtosis_excess(np.array([]))


class TestDiagnose:
    def test_known_values(self):
        d = diagnose(np.array([-3.0, -1.0, 0.0, 1.0, 3.0]), 0.0, 1.0, 1, critical_value=2.0)
        assert d.upper_tail == 0.2
        assert d.lower_tail == 0.2
        assert d.tail_sum == pytest.approx(0.4)
        assert d.tail_difference == 0.0
        assert d.skewness == pytest.approx(0.0)
        assert d.kurtosis == pytest.approx(32.8 / 16.0 - 3.0)
        assert d.mean == 0.0
        assert d.sd == pytest.approx(math.sqrt(5.0))

    def test_standardizes_with_population_sd_over_sqrt_n(self):
        # z = (x - 1) / (2 / sqrt(4)) = [0, 1]
        d = diagnose(np.array([1.0, 2.0]), 1.0, 2.0, 4, critical_value=1.0)
        assert d.upper_tail == 0.5
        assert d.lower_tail == 0.0

    @pytest.mark.parametrize("sd", [0.0, -1.0, float("nan"), float("inf")])
    def test_bad_population_sd(self, sd):
        with pytest.raises(DomainError):
            diagnose(np.array([1.0, 2.0]), 0.0, sd, 5)

    def test_empty_sampling_distribution(self):
        with pytest.raises(DomainError):
            diagnose(np.array([]), 0.0, 1.0, 5)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf")])
    def test_non_finite_values_rejected(self, bad):
        with pytest.raises(DomainError):
            diagnose(np.array([1.0, bad, 2.0]), 0.0, 1.0, 5)

    def test_tails_are_plain_floats(self):
        d = diagnose(np.array([-3.0, 0.0, 3.0]), 0.0, 1.0, 1)
        assert type(d.upper_tail) is float
        assert type(d.lower_tail) is float

    @pytest.mark.parametrize("c", [0.0, -1.96, float("nan")])
    def test_bad_critical_value(self, c):
        with pytest.raises(DomainError):
            diagnose(np.array([1.0, 2.0]), 0.0, 1.0, 5, critical_value=c)

    def test_adequacy_band(self):
        ok = Diagnostics(0.021, 0.029, 0.0, 0.0, 0.0, 1.0)
        low = Diagnostics(0.019, 0.025, 0.0, 0.0, 0.0, 1.0)
        high = Diagnostics(0.025, 0.031, 0.0, 0.0, 0.0, 1.0)
        edges = Diagnostics(0.02, 0.03, 0.0, 0.0, 0.0, 1.0)
        assert is_adequately_normal(ok)
        assert not is_adequately_normal(low)
        assert not is_adequately_normal(high)
        assert is_adequately_normal(edges)
        assert is_adequately_normal(Diagnostics(0.03, 0.02, 0.0, 0.0, 0.0, 1.0))


class TestReference:
    def test_population_reference(self):
        pop = Gamma(4.0)
        assert reference_for(MEAN, pop, 9, np.zeros(3)) == (4.0, 2.0, 9)

    def test_standard_reference(self):
        assert reference_for(T_STATISTIC, Normal(), 9, np.zeros(3)) == (0.0, 1.0, 1)

    def test_empirical_reference(self):
        values = np.array([1.0, 2.0, 3.0])
        assert reference_for(ADJUSTED_SKEWNESS, Normal(), 9, values) == (2.0, 1.0, 1)
        with pytest.raises(DomainError):
            reference_for(ADJUSTED_SKEWNESS, Normal(), 9, np.array([1.0]))

    def test_standardized_sampling_distribution(self):
        z = sampling_distribution(MEAN, Exponential(2.0), 10, 20_000, standardize_values=True)
        assert z.mean() == pytest.approx(0.0, abs=0.05)
        assert z.std() == pytest.approx(1.0, abs=0.03)
        raw = sampling_distribution(MEAN, Exponential(2.0), 10, 20_000)
        np.testing.assert_allclose(z, (raw - 0.5) / (0.5 / math.sqrt(10)))

    def test_sampling_distribution_validates_population(self):
        with pytest.raises(ConfigError):
            sampling_distribution(MEAN, Gamma(-1.0), 5, 10)


class TestStatisticalProperties:
    def test_normal_tails_are_symmetric(self):
        values = build_sampling_distribution(MEAN, Normal(), 3, 1_000_000)
        d = diagnose(values, 0.0, 1.0, 3)
        assert d.upper_tail == pytest.approx(0.025, abs=0.005)
        assert d.lower_tail == pytest.approx(0.025, abs=0.005)

    def test_normal_n5_scenario(self):
        values = build_sampling_distribution(MEAN, Normal(0.0, 1.0), 5, 100_000)
        d = diagnose(values, 0.0, 1.0, 5, critical_value=1.96)
        assert d.upper_tail == pytest.approx(0.025, abs=0.005)
        assert d.lower_tail == pytest.approx(0.025, abs=0.005)
        assert abs(d.skewness) < 0.05

    def test_exponential_n30_scenario(self):
        pop = Exponential(1.0)
        values = build_sampling_distribution(MEAN, pop, 30, 200_000)
        d = diagnose(values, pop.mean, pop.sd, 30, critical_value=1.96)
        # exact tails of Gamma(30, 1/30): upper ~0.034, lower ~0.014
        assert 0.02 <= d.upper_tail <= 0.04
        assert 0.010 <= d.lower_tail <= 0.019
        assert d.lower_tail < d.upper_tail
        assert d.skewness == pytest.approx(2.0 / math.sqrt(30), abs=0.05)

    def test_exponential_tails_converge_with_n(self):
        pop = Exponential(1.0)
        upper_dev, lower_dev = [], []
        for n in (5, 30, 150, 500):
            values = build_sampling_distribution(MEAN, pop, n, 100_000)
            d = diagnose(values, pop.mean, pop.sd, n)
            upper_dev.append(abs(d.upper_tail - 0.025))
            lower_dev.append(abs(d.lower_tail - 0.025))
        for devs in (upper_dev, lower_dev):
            for prev, cur in zip(devs, devs[1:]):
                assert cur <= prev + 0.0015

    def test_t_statistic_for_normal_matches_t_distribution(self):
        values = build_sampling_distribution(T_STATISTIC, Normal(3.0, 2.0), 8, 50_000, params={"mu": 3.0})
        d = diagnose(values, 0.0, 1.0, 1, critical_value=float(sps.t.ppf(0.975, 7)))
        assert d.upper_tail == pytest.approx(0.025, abs=0.004)
        assert d.lower_tail == pytest.approx(0.025, abs=0.004)
