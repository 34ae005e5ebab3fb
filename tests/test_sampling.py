"""Tests for sampling.py: normal, gamma and beta variate generators."""

from __future__ import annotations

import random
import statistics

import pytest

from finance_coach import sampling
from finance_coach.sampling import (
    GAMMA_EPSILON,
    MAX_GAMMA_ITERATIONS,
    beta_sample,
    gamma_variate,
    standard_normal,
)


class _ZeroThenHalf(random.Random):
    """Returns 0.0 first, then 0.5 forever."""

    def __init__(self) -> None:
        super().__init__(0)
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        return 0.0 if self.calls == 1 else 0.5


class TestStandardNormal:
    def test_moments_roughly_standard(self):
        rng = random.Random(42)
        draws = [standard_normal(rng) for _ in range(20_000)]
        assert abs(statistics.fmean(draws)) < 0.05
        assert abs(statistics.pstdev(draws) - 1.0) < 0.05

    def test_zero_uniform_is_redrawn(self):
        rng = _ZeroThenHalf()
        value = standard_normal(rng)
        # u = v = 0.5 -> sqrt(-2 ln 0.5) * cos(pi)
        assert value == pytest.approx(-(2 * 0.6931471805599453) ** 0.5)
        assert rng.calls == 3

    def test_seeded_is_deterministic(self):
        assert standard_normal(random.Random(7)) == standard_normal(random.Random(7))


class TestGammaVariate:
    def test_non_positive_shape_returns_epsilon(self):
        assert gamma_variate(0) == GAMMA_EPSILON
        assert gamma_variate(-3.5) == GAMMA_EPSILON

    def test_always_non_negative(self):
        rng = random.Random(1)
        for shape in (0.001, 0.3, 0.99, 1.0, 2.5, 10.0):
            for _ in range(200):
                assert gamma_variate(shape, rng=rng) >= 0.0

    @pytest.mark.parametrize("shape", [0.5, 1.0, 3.0, 8.0])
    def test_mean_matches_shape(self, shape):
        rng = random.Random(123)
        draws = [gamma_variate(shape, rng=rng) for _ in range(20_000)]
        assert statistics.fmean(draws) == pytest.approx(shape, rel=0.05)

    def test_scale_multiplies_mean(self):
        rng = random.Random(5)
        draws = [gamma_variate(2.0, 3.0, rng) for _ in range(20_000)]
        assert statistics.fmean(draws) == pytest.approx(6.0, rel=0.05)

    def test_iteration_cap_falls_back_to_mean(self, monkeypatch):
        # A large normal draw with u near 1 fails both acceptance checks.
        class NearOne(random.Random):
            def random(self) -> float:
                return 0.9999

        monkeypatch.setattr(sampling, "standard_normal", lambda _rng=None: 5.0)
        assert gamma_variate(2.0, 1.5, NearOne(0)) == pytest.approx(2.0 * 1.5)
        assert MAX_GAMMA_ITERATIONS == 1000


class TestBetaSample:
    def test_output_in_unit_interval(self):
        rng = random.Random(99)
        for alpha, beta in [(1, 1), (0.5, 0.5), (10, 1), (1, 10), (0.001, 0.001), (50, 50)]:
            for _ in range(200):
                assert 0.0 <= beta_sample(alpha, beta, rng) <= 1.0

    @pytest.mark.parametrize("alpha,beta", [(0, 0), (-1, 2), (2, -5), (0, 1)])
    def test_non_positive_parameters_are_clamped(self, alpha, beta):
        rng = random.Random(3)
        for _ in range(100):
            assert 0.0 <= beta_sample(alpha, beta, rng) <= 1.0

    def test_mean_matches_posterior(self):
        rng = random.Random(2024)
        draws = [beta_sample(8, 2, rng) for _ in range(20_000)]
        assert statistics.fmean(draws) == pytest.approx(0.8, abs=0.02)

    def test_uniform_prior_mean_is_half(self):
        rng = random.Random(11)
        draws = [beta_sample(1, 1, rng) for _ in range(20_000)]
        assert statistics.fmean(draws) == pytest.approx(0.5, abs=0.02)

    def test_seeded_is_deterministic(self):
        a = [beta_sample(3, 4, random.Random(8)) for _ in range(3)]
        b = [beta_sample(3, 4, random.Random(8)) for _ in range(3)]
        assert a == b
