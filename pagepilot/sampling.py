"""
Gamma/Beta Sampling for PagePilot.

The single statistical primitive behind every Thompson-sampling bandit.
Beta(a, b) draws are built from two Gamma draws; Gamma draws use the
Marsaglia-Tsang squeeze/acceptance-rejection method, boosted for shape < 1.

All functions take an optional numpy Generator so callers (and tests) can
make bandit decisions reproducible.
"""

import math
from typing import Optional

import numpy as np

# Shapes at or below this are clamped; Gamma(0) is undefined.
MIN_SHAPE = 1e-6

_default_rng: Optional[np.random.Generator] = None


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create a Generator; ``seed=None`` draws fresh OS entropy."""
    return np.random.default_rng(seed)


def get_rng() -> np.random.Generator:
    """Get the process-wide Generator used when no rng is passed."""
    global _default_rng
    if _default_rng is None:
        _default_rng = make_rng()
    return _default_rng


def reset_rng(seed: Optional[int] = None) -> None:
    """Re-seed the process-wide Generator (mainly for testing)."""
    global _default_rng
    _default_rng = make_rng(seed)


def _clean_shape(shape: float) -> float:
    try:
        value = float(shape)
    except (TypeError, ValueError):
        return 1.0
    except OverflowError:
        return 1e6 if shape > 0 else MIN_SHAPE
    if not math.isfinite(value):
        return 1.0 if math.isnan(value) else 1e6
    return max(MIN_SHAPE, value)


def gamma_sample(shape: float, rng: Optional[np.random.Generator] = None) -> float:
    """
    Draw from Gamma(shape, 1).

    Args:
        shape: Shape parameter k. Values below MIN_SHAPE are clamped,
               NaN is treated as 1.
        rng: Optional Generator (process default if None)

    Returns:
        A non-negative float
    """
    rng = rng or get_rng()
    k = _clean_shape(shape)

    if k < 1.0:
        # Gamma(k) = Gamma(k + 1) * U^(1/k)
        u = rng.random()
        while u <= 0.0:
            u = rng.random()
        return gamma_sample(k + 1.0, rng) * u ** (1.0 / k)

    d = k - 1.0 / 3.0
    c = 1.0 / math.sqrt(9.0 * d)
    while True:
        x = rng.standard_normal()
        v = 1.0 + c * x
        if v <= 0.0:
            continue
        v = v * v * v
        u = rng.random()
        # Squeeze test first, then the exact log test
        if u < 1.0 - 0.0331 * (x * x) * (x * x):
            return d * v
        if u > 0.0 and math.log(u) < 0.5 * x * x + d * (1.0 - v + math.log(v)):
            return d * v


def beta_sample(a: float, b: float, rng: Optional[np.random.Generator] = None) -> float:
    """
    Draw from Beta(a, b) as X / (X + Y), X ~ Gamma(a), Y ~ Gamma(b).

    Returns:
        A float in [0, 1]; 0.5 when both Gamma draws underflow to zero
    """
    rng = rng or get_rng()
    x = gamma_sample(a, rng)
    y = gamma_sample(b, rng)
    total = x + y
    if total <= 0.0 or not math.isfinite(total):
        return 0.5
    return min(1.0, max(0.0, x / total))


def beta_mean(a: float, b: float) -> float:
    """Posterior mean a / (a + b) with the same shape cleaning as the samplers."""
    a = _clean_shape(a)
    b = _clean_shape(b)
    return a / (a + b)
