"""Construction of simulation settings from a DE setup and NB parameters."""

import logging

import numpy as np

from .config import DESetup, ParameterBundle, SimulationSettings
from .generators import simulate_de_genes
from .seeding import EFFECT_STREAM, replicate_rng

logger = logging.getLogger(__name__)

MAX_SEED = 1_000_000


def sim_setup(
    desetup: DESetup,
    params: ParameterBundle,
    size_factors: str = "equal",
) -> SimulationSettings:
    """Combine a DE setup with NB parameters into simulation settings.

    One seed is drawn per replicate. The DE genes and fold changes of each
    replicate come from that replicate's effect stream, so they are fixed
    before any sample size is chosen and are shared by every sample size
    evaluated for the replicate.

    Args:
        desetup: DESetup with number of genes, replicates and DE specification.
        params: Estimated or in-silico parameter bundle.
        size_factors: "equal" for identical library sizes, "given" to use the
            size factors of the parameter bundle.

    Returns:
        SimulationSettings ready for ``simulate_de``.

    Example:
        >>> desetup = DESetup(ngenes=1000, nsims=10, p_de=0.1, lfc=1.0, seed=1)
        >>> settings = sim_setup(desetup, params)
    """
    rng = np.random.default_rng(desetup.seed)
    sim_seeds = rng.choice(MAX_SEED, size=desetup.nsims, replace=False) + 1

    de_ids, lfcs = [], []
    for seed in sim_seeds:
        ids, lfc = simulate_de_genes(
            rng=replicate_rng(seed, EFFECT_STREAM),
            ngenes=desetup.ngenes,
            p_de=desetup.p_de,
            lfc=desetup.lfc,
        )
        de_ids.append(ids)
        lfcs.append(lfc)

    logger.debug(
        "Set up %d replicates with %d DE genes each",
        desetup.nsims,
        len(de_ids[0]),
    )

    return SimulationSettings(
        ngenes=desetup.ngenes,
        nsims=desetup.nsims,
        p_de=desetup.p_de,
        params=params,
        size_factors=size_factors,
        sim_seeds=sim_seeds,
        de_ids=de_ids,
        lfcs=lfcs,
    )
