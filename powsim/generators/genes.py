"""Gene parameter generation for RNA-seq count simulation."""

import logging

import numpy as np
import pandas as pd
from numpy.random import Generator

from ..config import EstimatedParams, InSilicoParams, ParameterBundle

logger = logging.getLogger(__name__)


def _gene_vector(values, ngenes: int, name: str) -> np.ndarray:
    """Coerce a user-supplied per-gene vector, broadcasting length one."""
    values = np.asarray(values, dtype=float).ravel()
    if values.size == 1:
        return np.full(ngenes, values[0])
    if values.size != ngenes:
        raise ValueError(f"{name} has {values.size} values, expected 1 or {ngenes}")
    return values


def predict_nb_size(
    rng: Generator, params: EstimatedParams, true_means: np.ndarray
) -> np.ndarray:
    """Draw a log2 NB size per gene around the mean-dispersion fit.

    The fit and its standard deviation band are interpolated at
    log2(mean + 1); outside the fitted range the boundary values are used.
    """
    fit = params.meandispfit
    lmu = np.log2(true_means + 1)
    pred_mean = np.interp(lmu, fit.x, fit.y)
    pred_sd = np.clip(np.interp(lmu, fit.x, fit.sd), 0, None)
    return rng.normal(loc=pred_mean, scale=pred_sd)


def _estimated_gene_params(
    rng: Generator, params: EstimatedParams, ngenes: int
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    true_means = rng.choice(params.means, size=ngenes, replace=True)
    nb_size = 2 ** predict_nb_size(rng, params, true_means)

    dropout = np.zeros(ngenes)
    if params.rnaseq == "bulk" and params.dropout is not None:
        # Only genes below the expression cutoff can drop out. Each gets its
        # own rate from the pool rather than one rate shared by all of them.
        low = np.log2(true_means + 1) < params.dropout.cutoff
        dropout[low] = rng.choice(params.dropout.rates, size=low.sum(), replace=True)

    return true_means, nb_size, dropout


def _insilico_gene_params(
    rng: Generator, params: InSilicoParams, ngenes: int
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    true_means = _gene_vector(params.means(ngenes, rng), ngenes, "means")
    if not np.all(np.isfinite(true_means)) or np.any(true_means < 0):
        raise ValueError("means must be finite and non-negative")

    if callable(params.dispersion):
        dispersion = _gene_vector(params.dispersion(true_means), ngenes, "dispersion")
    else:
        dispersion = np.full(ngenes, params.dispersion)
    if np.any(~(dispersion > 0)):
        raise ValueError("dispersion must be positive")
    nb_size = 1 / dispersion

    dropout = np.zeros(ngenes)
    if params.rnaseq == "bulk" and params.dropout is not None:
        dropout = _gene_vector(params.dropout(ngenes, rng), ngenes, "dropout")
        if np.any((dropout < 0) | (dropout > 1)):
            raise ValueError("dropout probabilities must be between 0 and 1")

    return true_means, nb_size, dropout


def simulate_gene_params(
    rng: Generator,
    params: ParameterBundle,
    ngenes: int,
) -> tuple[pd.DataFrame, list[str]]:
    """Resolve true means, NB size and dropout probability per gene.

    Estimated bundles draw means with replacement from the observed means and
    a Gaussian-perturbed log2 size from the mean-dispersion fit; in-silico
    bundles evaluate their functions. Dropout is zero for single cell data.

    Args:
        rng: NumPy random generator.
        params: Estimated or in-silico parameter bundle.
        ngenes: Number of genes to simulate.

    Returns:
        Tuple of (gene parameters DataFrame, gene names list).

    Raises:
        TypeError: If ``params`` is not a known parameter bundle.
        ValueError: If the resolved parameters are invalid.
    """
    if isinstance(params, EstimatedParams):
        true_means, nb_size, dropout = _estimated_gene_params(rng, params, ngenes)
    elif isinstance(params, InSilicoParams):
        true_means, nb_size, dropout = _insilico_gene_params(rng, params, ngenes)
    else:
        raise TypeError(f"Unknown parameter bundle: {type(params).__name__}")

    if not np.all(np.isfinite(nb_size)) or np.any(nb_size <= 0):
        nbad = int(np.sum(~np.isfinite(nb_size) | (nb_size <= 0)))
        raise ValueError(
            f"NB size parameter is not finite and positive for {nbad} genes"
        )

    genenames = [f"G{i}" for i in range(1, ngenes + 1)]
    geneparams = pd.DataFrame(
        {
            "true_mean": true_means,
            "dispersion": 1 / nb_size,
            "nb_size": nb_size,
            "dropout": dropout,
        },
        index=genenames,
    )
    logger.debug("Simulated gene params for %d genes", ngenes)

    return geneparams, genenames
