"""Count generation for two-group RNA-seq simulation."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import numpy as np
import pandas as pd
from numpy.random import Generator

from ..config import SimulationSettings
from ..seeding import COUNT_STREAM, replicate_rng
from .genes import simulate_gene_params
from .libsize import simulate_size_factors

if TYPE_CHECKING:
    import anndata

logger = logging.getLogger(__name__)


def make_design(n1: int, n2: int) -> np.ndarray:
    """Group labels: -1 for the ``n1`` group-1 samples, +1 for group 2."""
    return np.concatenate([np.full(n1, -1), np.full(n2, 1)])


def model_matrix(design: np.ndarray) -> np.ndarray:
    """Build the effect model matrix from group labels.

    The matrix holds the labels as a single column without an intercept.
    Constant columns are equivalent to an intercept and are dropped, so a
    design with only one group yields a matrix without columns.

    Args:
        design: Group labels of length nsamples.

    Returns:
        Array of shape (nsamples, k) with k in {0, 1}.
    """
    mod = np.asarray(design, dtype=float).reshape(-1, 1)
    keep = ~np.all(mod == mod[:1, :], axis=0)
    return mod[:, keep]


def get_mean_matrix(
    true_means: np.ndarray,
    size_factors: np.ndarray,
    lfc: np.ndarray,
    modelmatrix: np.ndarray,
) -> np.ndarray:
    """Calculate the log2 mean of each gene in each sample.

    Means are scaled by the sample size factors, log2(x + 1) transformed, and
    shifted by the effect of each gene on every model matrix column.
    Negative values are floored at zero.

    Args:
        true_means: True gene means (ngenes).
        size_factors: Library size factors (nsamples).
        lfc: Log2 fold change per gene (ngenes).
        modelmatrix: Effect model matrix (nsamples x k).

    Returns:
        Array of shape (ngenes, nsamples).
    """
    effective_means = np.outer(true_means, size_factors)
    mumat = np.log2(effective_means + 1)

    lfc = np.asarray(lfc, dtype=float).reshape(-1, 1)
    beta = np.tile(lfc, (1, modelmatrix.shape[1]))
    mumat = mumat + beta @ modelmatrix.T
    mumat[mumat < 0] = 0

    return mumat


def simulate_counts(
    rng: Generator,
    mumat: np.ndarray,
    nb_size: np.ndarray,
) -> np.ndarray:
    """Sample read counts from a negative binomial distribution.

    Args:
        rng: NumPy random generator.
        mumat: log2(mean + 1) matrix (ngenes x nsamples).
        nb_size: NB size parameter per gene.

    Returns:
        Integer count matrix with the shape of ``mumat``.
    """
    mean = 2**mumat - 1
    size = np.broadcast_to(np.asarray(nb_size, dtype=float).reshape(-1, 1), mean.shape)
    prob = size / (size + mean)
    return rng.negative_binomial(size, prob)


def apply_dropout(
    rng: Generator,
    counts: np.ndarray,
    dropout: np.ndarray,
) -> np.ndarray:
    """Zero out counts with a per-gene dropout probability.

    Each gene-sample entry is kept with probability ``1 - dropout[gene]``.
    """
    keep_prob = 1 - np.asarray(dropout, dtype=float).reshape(-1, 1)
    detected = rng.binomial(1, np.broadcast_to(keep_prob, counts.shape))
    return counts * detected


@dataclass
class SimulatedCounts:
    """One simulated two-group dataset.

    Attributes:
        counts: Integer counts, genes as rows and samples as columns.
        design: Group label of each sample (-1 or +1).
        geneparams: Per-gene true mean, NB size, dropout and DE effect.
        sampleparams: Per-sample group and size factor.
        seed: Replicate seed the dataset was generated from.
    """

    counts: pd.DataFrame
    design: np.ndarray
    geneparams: pd.DataFrame
    sampleparams: pd.DataFrame
    seed: Optional[int] = None

    def subset(self, n1: int, n2: int) -> tuple[pd.DataFrame, np.ndarray]:
        """Take the first ``n1`` samples of group 1 and first ``n2`` of group 2.

        Smaller sample sizes are therefore nested within larger ones.

        Raises:
            ValueError: If more samples are requested than were simulated.
        """
        ngroup1 = int(np.sum(self.design == -1))
        ngroup2 = self.design.size - ngroup1
        if n1 > ngroup1 or n2 > ngroup2:
            raise ValueError(
                f"Cannot take {n1} + {n2} samples from {ngroup1} + {ngroup2}"
            )
        idx = np.concatenate([np.arange(n1), ngroup1 + np.arange(n2)])
        return self.counts.iloc[:, idx], self.design[idx]

    def to_anndata(self) -> "anndata.AnnData":
        """Export the dataset to an AnnData object (samples x genes).

        Requires the `anndata` package to be installed.
        Install with: `pip install powsim[anndata]`
        """
        from ..exporters import to_anndata

        return to_anndata(self)


def simulate_rnaseq(
    settings: SimulationSettings,
    replicate: int,
    n1: int,
    n2: int,
) -> SimulatedCounts:
    """Simulate the count matrix of one replicate.

    The replicate's seed, DE genes and effect vector are taken from the
    settings, so calling this twice with the same arguments returns
    identical counts.

    Args:
        settings: Simulation settings.
        replicate: Zero-based replicate index.
        n1: Number of samples in group 1.
        n2: Number of samples in group 2.

    Returns:
        SimulatedCounts with ``ngenes`` rows and ``n1 + n2`` columns.
    """
    seed = int(settings.sim_seeds[replicate])
    rng = replicate_rng(seed, COUNT_STREAM)
    logger.debug("Simulating counts of replicate %d with seed %d", replicate, seed)

    geneparams, genenames = simulate_gene_params(
        rng=rng,
        params=settings.params,
        ngenes=settings.ngenes,
    )
    lfc = np.asarray(settings.lfcs[replicate], dtype=float)
    geneparams["lfc"] = lfc
    is_de = np.zeros(settings.ngenes, dtype=bool)
    is_de[np.asarray(settings.de_ids[replicate], dtype=int)] = True
    geneparams["is_de"] = is_de

    nsamples = n1 + n2
    size_factors = simulate_size_factors(
        rng=rng,
        nsamples=nsamples,
        mode=settings.size_factors,
        size_factors=settings.params.size_factors,
    )

    design = make_design(n1, n2)
    mumat = get_mean_matrix(
        true_means=geneparams["true_mean"].values,
        size_factors=size_factors,
        lfc=lfc,
        modelmatrix=model_matrix(design),
    )

    counts = simulate_counts(rng=rng, mumat=mumat, nb_size=geneparams["nb_size"].values)
    if settings.rnaseq == "bulk":
        counts = apply_dropout(
            rng=rng, counts=counts, dropout=geneparams["dropout"].values
        )

    samplenames = [f"S{i}" for i in range(1, nsamples + 1)]
    counts = pd.DataFrame(counts.astype(np.int64), index=genenames, columns=samplenames)
    sampleparams = pd.DataFrame(
        {"group": design, "size_factor": size_factors},
        index=samplenames,
    )

    return SimulatedCounts(
        counts=counts,
        design=design,
        geneparams=geneparams,
        sampleparams=sampleparams,
        seed=seed,
    )
