"""Differential expression ground truth for one simulation replicate."""

import numpy as np
from numpy.random import Generator

from ..config import LFCSpec


def draw_lfc(rng: Generator, lfc: LFCSpec, n: int) -> np.ndarray:
    """Draw ``n`` log2 fold changes from an LFC specification.

    Args:
        rng: NumPy random generator.
        lfc: Constant, vector sampled with replacement, or ``lfc(n, rng)``.
        n: Number of values to draw.

    Returns:
        Array of length ``n``.
    """
    if callable(lfc):
        values = np.asarray(lfc(n, rng), dtype=float).ravel()
        if values.size != n:
            raise ValueError(
                f"lfc function returned {values.size} values, expected {n}"
            )
        return values
    if np.ndim(lfc) == 0:
        return np.full(n, float(lfc))
    pool = np.asarray(lfc, dtype=float).ravel()
    if pool.size == 1:
        return np.full(n, pool[0])
    return rng.choice(pool, size=n, replace=True)


def simulate_de_genes(
    rng: Generator,
    ngenes: int,
    p_de: float,
    lfc: LFCSpec,
) -> tuple[np.ndarray, np.ndarray]:
    """Select DE genes and assign their log2 fold changes.

    ``round(p_de * ngenes)`` genes are chosen uniformly without replacement.
    Non-DE genes get an effect of exactly zero.

    Args:
        rng: NumPy random generator of the replicate's effect stream.
        ngenes: Total number of genes.
        p_de: Fraction of DE genes.
        lfc: Log2 fold change specification.

    Returns:
        Tuple of (sorted DE gene indices, effect vector of length ngenes).
    """
    nde = int(round(p_de * ngenes))
    de_ids = np.sort(rng.choice(ngenes, size=nde, replace=False))

    effects = np.zeros(ngenes)
    if nde > 0:
        effects[de_ids] = draw_lfc(rng, lfc, nde)

    return de_ids, effects
