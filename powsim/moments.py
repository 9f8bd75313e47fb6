"""Per-gene moment estimation from simulated counts."""

import numpy as np
import pandas as pd


def total_count_size_factors(counts: pd.DataFrame) -> np.ndarray:
    """Library sizes relative to their geometric mean.

    Samples without any reads get a factor of 1.
    """
    libsize = counts.sum(axis=0).values.astype(float)
    factors = np.ones_like(libsize)
    observed = libsize > 0
    if observed.any():
        logsize = np.log(libsize[observed])
        factors[observed] = np.exp(logsize - logsize.mean())
    return factors


def normalize_counts(counts: pd.DataFrame) -> pd.DataFrame:
    """Divide each sample's counts by its total count size factor."""
    return counts.div(total_count_size_factors(counts), axis=1)


def estimate_moments(counts: pd.DataFrame) -> pd.DataFrame:
    """Estimate mean, NB dispersion and dropout of each gene.

    Dispersion is the method of moments estimate (var - mean) / mean^2 of the
    normalized counts, floored at zero and undefined for genes without reads.
    Dropout is the fraction of samples with a zero count.

    Args:
        counts: Count matrix with genes as rows and samples as columns.

    Returns:
        DataFrame indexed like ``counts`` with columns means, dispersion and
        dropout.
    """
    norm = normalize_counts(counts).values
    means = norm.mean(axis=1)
    if norm.shape[1] > 1:
        var = norm.var(axis=1, ddof=1)
    else:
        var = np.full(norm.shape[0], np.nan)

    with np.errstate(divide="ignore", invalid="ignore"):
        dispersion = (var - means) / means**2
    dispersion = np.where(means > 0, np.clip(dispersion, 0, None), np.nan)

    dropout = (counts.values == 0).mean(axis=1)

    return pd.DataFrame(
        {"means": means, "dispersion": dispersion, "dropout": dropout},
        index=counts.index,
    )
