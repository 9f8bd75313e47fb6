"""Repeated two-group RNA-seq simulation with differential expression testing."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .backends import DEInput, get_method
from .config import SimulationSettings
from .errors import ConfigurationError
from .generators import SimulatedCounts, simulate_rnaseq

# Configure module logger
logger = logging.getLogger(__name__)

TIMING_STAGES = ("params", "DE", "NB")


@dataclass
class SimulationResult:
    """DE results of all replicates and sample sizes.

    Per-gene arrays have shape (ngenes, number of sample sizes, nsims) and
    are NaN for genes that had no reads at a given sample size.

    Attributes:
        pvalue: Raw p-values.
        fdr: Adjusted p-values as reported by the DE method.
        mu: Estimated mean of the normalized counts.
        disp: Estimated dispersion.
        dropout: Estimated dropout rate.
        time_taken: Seconds per stage (see ``TIMING_STAGES``), with shape
            (3, number of sample sizes, nsims).
        n1: Samples in group 1 per sample size configuration.
        n2: Samples in group 2 per sample size configuration.
        method: Name of the DE method.
        settings: Settings the results were simulated with.
    """

    pvalue: np.ndarray
    fdr: np.ndarray
    mu: np.ndarray
    disp: np.ndarray
    dropout: np.ndarray
    time_taken: np.ndarray
    n1: np.ndarray
    n2: np.ndarray
    method: str
    settings: SimulationSettings

    def __post_init__(self) -> None:
        per_gene = (self.pvalue, self.fdr, self.mu, self.disp, self.dropout)
        for arr in per_gene + (self.time_taken, self.n1, self.n2):
            arr.setflags(write=False)


def _check_sample_sizes(
    n1: Sequence[int], n2: Sequence[int]
) -> tuple[np.ndarray, np.ndarray]:
    n1 = np.array(n1, dtype=int, ndmin=1)
    n2 = np.array(n2, dtype=int, ndmin=1)
    if len(n1) != len(n2):
        raise ConfigurationError("n1 and n2 must have the same length!")
    if len(n1) == 0:
        raise ConfigurationError("at least one sample size is required")
    if np.any(n1 <= 0) or np.any(n2 <= 0):
        raise ConfigurationError("sample sizes must be positive")
    return n1, n2


class DESimulator:
    """Simulate count matrices and test them for differential expression.

    For every replicate, one count matrix with ``max(n1, n2)`` samples per
    group is simulated. Each sample size configuration takes the first
    samples of both groups from it, drops genes without reads and hands the
    rest to the DE method. DE genes, fold changes and size factors of a
    replicate are therefore the same at every sample size.

    Example:
        >>> settings = sim_setup(DESetup(ngenes=1000, nsims=5, seed=1), params)
        >>> sim = DESimulator(settings, method="ttest")
        >>> res = sim.run(n1=[5, 10], n2=[5, 10])
        >>> res.pvalue.shape
        (1000, 2, 5)
    """

    def __init__(
        self,
        settings: SimulationSettings,
        method: str,
        ncores: Optional[int] = None,
        verbose: bool = True,
    ) -> None:
        """Initialize the simulator.

        Args:
            settings: SimulationSettings from ``sim_setup``.
            method: Name of a registered DE method.
            ncores: Number of workers the DE method may use.
            verbose: Log progress per replicate at INFO level.

        Raises:
            ConfigurationError: If the method is unknown, has no
                implementation, or cannot be used for this kind of data.
        """
        self.settings = settings
        self.method = get_method(method)
        self.verbose = verbose

        if ncores is not None and ncores < 1:
            raise ConfigurationError("ncores must be positive")
        if ncores is not None and not self.method.parallel:
            logger.info(
                "%s has no parallel computation option. "
                "Number of cores will be set to 1!",
                self.method.name,
            )
            ncores = 1
        self.ncores = ncores or 1

        self.method.check_domain(settings.rnaseq)
        if self.method.run is None:
            raise ConfigurationError(
                f"No implementation registered for {self.method.name}; "
                f"bind one with register_method()"
            )

    def simulate_replicate(
        self, replicate: int, n1: Sequence[int], n2: Sequence[int]
    ) -> SimulatedCounts:
        """Simulate the maximal count matrix of one replicate.

        Args:
            replicate: Zero-based replicate index.
            n1: Group 1 sample sizes that will be evaluated.
            n2: Group 2 sample sizes that will be evaluated.

        Returns:
            SimulatedCounts with ``max(n1, n2)`` samples in each group.
        """
        n1, n2 = _check_sample_sizes(n1, n2)
        max_n = int(max(n1.max(), n2.max()))
        return simulate_rnaseq(self.settings, replicate, max_n, max_n)

    def run(self, n1: Sequence[int], n2: Sequence[int]) -> SimulationResult:
        """Run all replicates at all sample sizes.

        Args:
            n1: Number of samples in group 1 per configuration.
            n2: Number of samples in group 2 per configuration.

        Returns:
            SimulationResult with read-only result arrays.

        Raises:
            ConfigurationError: If n1 and n2 differ in length or contain
                non-positive sizes.
        """
        n1, n2 = _check_sample_sizes(n1, n2)
        cfg = self.settings
        shape = (cfg.ngenes, len(n1), cfg.nsims)

        pvalue = np.full(shape, np.nan)
        fdr = np.full(shape, np.nan)
        mu = np.full(shape, np.nan)
        disp = np.full(shape, np.nan)
        dropout = np.full(shape, np.nan)
        time_taken = np.full((len(TIMING_STAGES), len(n1), cfg.nsims), np.nan)

        log = logger.info if self.verbose else logger.debug
        for i in range(cfg.nsims):
            log("Simulation number %d", i + 1)
            dat = self.simulate_replicate(i, n1, n2)

            for j, (nrep1, nrep2) in enumerate(zip(n1, n2)):
                counts, design = dat.subset(nrep1, nrep2)
                valid = (counts.sum(axis=1) > 0).values
                logger.debug(
                    "Testing %d of %d genes with %d vs %d samples",
                    valid.sum(),
                    cfg.ngenes,
                    nrep1,
                    nrep2,
                )

                output = self.method(
                    DEInput(
                        counts=counts.loc[valid],
                        design=design,
                        p_de=cfg.p_de,
                        rnaseq=cfg.rnaseq,
                        ncores=self.ncores,
                    )
                )

                res = output.result
                pvalue[valid, j, i] = res["pval"].values
                fdr[valid, j, i] = res["fdr"].values
                mu[valid, j, i] = res["means"].values
                disp[valid, j, i] = res["dispersion"].values
                dropout[valid, j, i] = res["dropout"].values
                time_taken[:, j, i] = output.timing

        return SimulationResult(
            pvalue=pvalue,
            fdr=fdr,
            mu=mu,
            disp=disp,
            dropout=dropout,
            time_taken=time_taken,
            n1=n1,
            n2=n2,
            method=self.method.name,
            settings=cfg,
        )


def simulate_de(
    n1: Sequence[int] = (20, 50, 100),
    n2: Sequence[int] = (30, 60, 120),
    settings: Optional[SimulationSettings] = None,
    method: str = "ttest",
    ncores: Optional[int] = None,
    verbose: bool = True,
) -> SimulationResult:
    """Simulate differential expression over replicates and sample sizes.

    Configuration is checked before any simulation: mismatched n1/n2 or a
    method exclusive to the other kind of RNA-seq raise ConfigurationError,
    a method developed for the other kind only warns. Errors raised by the
    DE method abort the whole run.

    Args:
        n1: Number of samples in group 1 per configuration.
        n2: Number of samples in group 2 per configuration.
        settings: SimulationSettings from ``sim_setup``.
        method: Name of a registered DE method.
        ncores: Number of workers the DE method may use.
        verbose: Log progress per replicate at INFO level.

    Returns:
        SimulationResult.
    """
    if settings is None:
        raise ConfigurationError("settings are required; create them with sim_setup()")
    _check_sample_sizes(n1, n2)
    simulator = DESimulator(settings, method=method, ncores=ncores, verbose=verbose)
    return simulator.run(n1, n2)
