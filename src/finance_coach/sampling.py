"""Random variate generators used by Thompson sampling.

All samplers draw from an injectable ``random.Random`` so that callers can
seed them for reproducible runs. Without one they share a module-level
generator.
"""

from __future__ import annotations

import math
import random

GAMMA_EPSILON = 0.001
BETA_MIN_PARAM = 0.001
MAX_GAMMA_ITERATIONS = 1000

_default_rng = random.Random()


def _uniform_nonzero(rng: random.Random) -> float:
    """Uniform draw in (0, 1)."""
    value = 0.0
    while value == 0.0:
        value = rng.random()
    return value


def standard_normal(rng: random.Random | None = None) -> float:
    """Box-Muller transform: one standard normal draw from two uniforms."""
    rng = rng or _default_rng
    u = _uniform_nonzero(rng)
    v = _uniform_nonzero(rng)
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def gamma_variate(
    shape: float,
    scale: float = 1.0,
    rng: random.Random | None = None,
) -> float:
    """Gamma(shape, scale) via Marsaglia-Tsang.

    Shapes below 1 are boosted: ``Gamma(a) = Gamma(a + 1) * U**(1/a)``.
    Non-positive shapes return ``GAMMA_EPSILON``. If the rejection loop does
    not accept within ``MAX_GAMMA_ITERATIONS`` the mean ``shape * scale`` is
    returned.
    """
    rng = rng or _default_rng
    if shape <= 0:
        return GAMMA_EPSILON

    if shape < 1:
        u = _uniform_nonzero(rng)
        return gamma_variate(shape + 1.0, scale, rng) * math.pow(u, 1.0 / shape)

    d = shape - 1.0 / 3.0
    c = 1.0 / math.sqrt(9.0 * d)

    for _ in range(MAX_GAMMA_ITERATIONS):
        while True:
            x = standard_normal(rng)
            v = 1.0 + c * x
            if v > 0:
                break
        v = v * v * v
        u = _uniform_nonzero(rng)
        x_squared = x * x
        if u < 1.0 - 0.0331 * x_squared * x_squared:
            return d * v * scale
        if math.log(u) < 0.5 * x_squared + d * (1.0 - v + math.log(v)):
            return d * v * scale

    return shape * scale


def beta_sample(
    alpha: float,
    beta: float,
    rng: random.Random | None = None,
) -> float:
    """Beta(alpha, beta) as ``Ga / (Ga + Gb)``; parameters floor at 0.001."""
    rng = rng or _default_rng
    alpha = max(alpha, BETA_MIN_PARAM) if not math.isnan(alpha) else BETA_MIN_PARAM
    beta = max(beta, BETA_MIN_PARAM) if not math.isnan(beta) else BETA_MIN_PARAM

    gamma_a = gamma_variate(alpha, 1.0, rng)
    gamma_b = gamma_variate(beta, 1.0, rng)
    total = gamma_a + gamma_b
    if total == 0:
        return 0.5
    return gamma_a / total


__all__ = [
    "BETA_MIN_PARAM",
    "GAMMA_EPSILON",
    "MAX_GAMMA_ITERATIONS",
    "beta_sample",
    "gamma_variate",
    "standard_normal",
]
