"""Library size factors for simulated samples."""

import logging

import numpy as np
from numpy.random import Generator

from ..config import SizeFactorSpec

logger = logging.getLogger(__name__)


def simulate_size_factors(
    rng: Generator,
    nsamples: int,
    mode: str,
    size_factors: SizeFactorSpec = None,
) -> np.ndarray:
    """Sample one library size factor per sample.

    Modes:
        - "equal": all factors are 1.
        - "given" with a callable: ``size_factors(nsamples, rng)``.
        - "given" with a vector: sampled with replacement to ``nsamples``.
        - "given" with a constant: that constant for every sample.
        - "given" without a specification: all factors are 1.

    Args:
        rng: NumPy random generator.
        nsamples: Number of samples.
        mode: "equal" or "given".
        size_factors: Size factor specification used in "given" mode.

    Returns:
        Positive array of length ``nsamples``.
    """
    if mode == "equal" or size_factors is None:
        return np.ones(nsamples)
    if mode != "given":
        raise ValueError(f"Unknown size factor mode: {mode!r}")

    if callable(size_factors):
        factors = np.asarray(size_factors(nsamples, rng), dtype=float).ravel()
        if factors.size != nsamples:
            raise ValueError(
                f"size factor function returned {factors.size} values, "
                f"expected {nsamples}"
            )
        if not np.all(np.isfinite(factors)) or np.any(factors <= 0):
            raise ValueError("size factor function returned non-positive values")
    elif np.ndim(size_factors) == 0:
        factors = np.full(nsamples, float(size_factors))
    else:
        factors = rng.choice(np.asarray(size_factors, dtype=float), size=nsamples)

    logger.debug("Size factors range %.3f-%.3f", factors.min(), factors.max())
    return factors
