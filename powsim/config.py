"""Configuration classes for RNA-seq differential expression simulation."""

from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union

import numpy as np
from numpy.random import Generator

from .errors import ConfigurationError

RNASEQ_TYPES = ("bulk", "singlecell")
SIZE_FACTOR_MODES = ("equal", "given")

LFCSpec = Union[float, Sequence[float], Callable[[int, Generator], np.ndarray]]
SizeFactorSpec = Union[
    None, float, Sequence[float], Callable[[int, Generator], np.ndarray]
]


def _check_rnaseq(rnaseq: str) -> None:
    if rnaseq not in RNASEQ_TYPES:
        raise ConfigurationError(
            f"rnaseq must be one of {RNASEQ_TYPES}, got {rnaseq!r}"
        )


def _check_size_factor_spec(size_factors: SizeFactorSpec) -> SizeFactorSpec:
    """Normalize a size factor specification, returning arrays for sequences."""
    if size_factors is None or callable(size_factors):
        return size_factors
    if np.ndim(size_factors) == 0:
        if not float(size_factors) > 0:
            raise ConfigurationError("size factors must be positive")
        return float(size_factors)
    factors = np.asarray(size_factors, dtype=float).ravel()
    if factors.size == 0:
        raise ConfigurationError("size factor vector must not be empty")
    if not np.all(np.isfinite(factors)) or np.any(factors <= 0):
        raise ConfigurationError("size factors must be finite and positive")
    return factors


@dataclass
class MeanDispersionFit:
    """Smoothed relation between log2(mean + 1) and log2 NB size.

    Attributes:
        x: Grid of log2(mean + 1) values, strictly increasing.
        y: Fitted log2 NB size parameter at each grid point.
        sd: Standard deviation of the fit at each grid point.
    """

    x: np.ndarray
    y: np.ndarray
    sd: np.ndarray

    def __post_init__(self) -> None:
        self.x = np.asarray(self.x, dtype=float).ravel()
        self.y = np.asarray(self.y, dtype=float).ravel()
        self.sd = np.asarray(self.sd, dtype=float).ravel()
        self._validate()

    def _validate(self) -> None:
        if self.x.size == 0:
            raise ConfigurationError("mean-dispersion fit must not be empty")
        if not self.x.size == self.y.size == self.sd.size:
            raise ConfigurationError(
                f"mean-dispersion fit arrays differ in length "
                f"(x={self.x.size}, y={self.y.size}, sd={self.sd.size})"
            )
        if np.any(np.diff(self.x) <= 0):
            raise ConfigurationError(
                "mean-dispersion fit x must be strictly increasing"
            )


@dataclass
class DropoutFit:
    """Empirical dropout pool for lowly expressed genes.

    Attributes:
        cutoff: log2(mean + 1) below which genes are subject to dropout.
        rates: Observed dropout probabilities to sample from.
    """

    cutoff: float
    rates: np.ndarray

    def __post_init__(self) -> None:
        self.rates = np.asarray(self.rates, dtype=float).ravel()
        if self.rates.size == 0:
            raise ConfigurationError("dropout rates must not be empty")
        if np.any((self.rates < 0) | (self.rates > 1)):
            raise ConfigurationError("dropout rates must be between 0 and 1")


@dataclass
class EstimatedParams:
    """NB parameters estimated from a real count table.

    Attributes:
        means: Observed normalized per-gene means.
        meandispfit: Mean-dispersion fit with its variability band.
        dropout: Dropout pool used for bulk data (None means no dropout).
        size_factors: Size factors observed in the source data, used when
            size factors are "given".
        rnaseq: Either "bulk" or "singlecell".
    """

    means: np.ndarray
    meandispfit: MeanDispersionFit
    dropout: Optional[DropoutFit] = None
    size_factors: SizeFactorSpec = None
    rnaseq: str = "bulk"

    def __post_init__(self) -> None:
        self.means = np.asarray(self.means, dtype=float).ravel()
        if self.means.size == 0:
            raise ConfigurationError("estimated means must not be empty")
        if not np.all(np.isfinite(self.means)) or np.any(self.means < 0):
            raise ConfigurationError("estimated means must be finite and non-negative")
        _check_rnaseq(self.rnaseq)
        self.size_factors = _check_size_factor_spec(self.size_factors)


@dataclass
class InSilicoParams:
    """NB parameters given as closed-form functions.

    Callables receive the replicate generator as their last argument so that
    they are reproducible given the replicate seed.

    Attributes:
        means: ``means(ngenes, rng)`` returning the true gene means.
        dispersion: Positive constant, or ``dispersion(true_means)``.
        dropout: Optional ``dropout(ngenes, rng)`` returning dropout
            probabilities (bulk only).
        size_factors: None, a constant, a vector to sample from, or
            ``size_factors(nsamples, rng)``.
        rnaseq: Either "bulk" or "singlecell".
    """

    means: Callable[[int, Generator], np.ndarray]
    dispersion: Union[float, Callable[[np.ndarray], np.ndarray]]
    dropout: Optional[Callable[[int, Generator], np.ndarray]] = None
    size_factors: SizeFactorSpec = None
    rnaseq: str = "bulk"

    def __post_init__(self) -> None:
        if not callable(self.means):
            raise ConfigurationError("means must be a callable of (ngenes, rng)")
        if not callable(self.dispersion):
            if np.ndim(self.dispersion) != 0 or not float(self.dispersion) > 0:
                raise ConfigurationError(
                    "dispersion must be a positive constant or a callable"
                )
            self.dispersion = float(self.dispersion)
        if self.dropout is not None and not callable(self.dropout):
            raise ConfigurationError("dropout must be None or a callable")
        _check_rnaseq(self.rnaseq)
        self.size_factors = _check_size_factor_spec(self.size_factors)


ParameterBundle = Union[EstimatedParams, InSilicoParams]


def insilico_nb_params(
    means: Callable[[int, Generator], np.ndarray],
    dispersion: Union[float, Callable[[np.ndarray], np.ndarray]],
    dropout: Optional[Callable[[int, Generator], np.ndarray]] = None,
    size_factors: SizeFactorSpec = None,
    rnaseq: str = "bulk",
) -> InSilicoParams:
    """Specify NB parameters in silico.

    Example:
        >>> params = insilico_nb_params(
        ...     means=lambda n, rng: 2 ** rng.normal(5, 2, size=n),
        ...     dispersion=lambda m: 2 + 100 / m,
        ... )
    """
    if dropout is not None and rnaseq == "singlecell":
        raise ConfigurationError(
            "dropout is only modelled for bulk RNA-seq; drop it for single cell"
        )
    return InSilicoParams(
        means=means,
        dispersion=dispersion,
        dropout=dropout,
        size_factors=size_factors,
        rnaseq=rnaseq,
    )


@dataclass
class DESetup:
    """Differential expression setup shared by all replicates.

    Attributes:
        ngenes: Number of genes to simulate.
        nsims: Number of simulation replicates.
        p_de: Fraction of genes that are differentially expressed.
        lfc: Log2 fold change: a constant, a vector to sample from, or a
            callable ``lfc(n, rng)``.
        seed: Seed from which the replicate seeds are drawn.
    """

    ngenes: int = 10000
    nsims: int = 25
    p_de: float = 0.1
    lfc: LFCSpec = 1.0
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        if self.ngenes <= 0:
            raise ConfigurationError("ngenes must be positive")
        if self.nsims <= 0:
            raise ConfigurationError("nsims must be positive")
        if not 0 <= self.p_de <= 1:
            raise ConfigurationError(f"p_de must be between 0 and 1, got {self.p_de}")
        if not callable(self.lfc) and np.ndim(self.lfc) != 0:
            if np.size(self.lfc) == 0:
                raise ConfigurationError("lfc vector must not be empty")


@dataclass
class SimulationSettings:
    """Everything needed to generate the count matrices of a simulation run.

    Per-replicate fields hold one entry per replicate; the DE genes, their
    effects and the size factors of a replicate do not depend on the sample
    sizes evaluated for it.

    Attributes:
        ngenes: Number of genes.
        nsims: Number of replicates.
        p_de: Fraction of DE genes.
        params: Estimated or in-silico NB parameter bundle.
        size_factors: "equal" or "given".
        sim_seeds: Seed of each replicate.
        de_ids: Indices of the DE genes of each replicate.
        lfcs: Effect vector (length ngenes) of each replicate.
    """

    ngenes: int
    nsims: int
    p_de: float
    params: ParameterBundle
    size_factors: str = "equal"
    sim_seeds: np.ndarray = field(default_factory=lambda: np.empty(0, dtype=int))
    de_ids: list[np.ndarray] = field(default_factory=list)
    lfcs: list[np.ndarray] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.sim_seeds = np.asarray(self.sim_seeds, dtype=np.int64).ravel()
        self._validate()

    @property
    def rnaseq(self) -> str:
        return self.params.rnaseq

    def _validate(self) -> None:
        if self.ngenes <= 0:
            raise ConfigurationError("ngenes must be positive")
        if self.nsims <= 0:
            raise ConfigurationError("nsims must be positive")
        if not 0 <= self.p_de <= 1:
            raise ConfigurationError(f"p_de must be between 0 and 1, got {self.p_de}")
        if not isinstance(self.params, (EstimatedParams, InSilicoParams)):
            raise ConfigurationError(
                f"params must be EstimatedParams or InSilicoParams, "
                f"got {type(self.params).__name__}"
            )
        if self.size_factors not in SIZE_FACTOR_MODES:
            raise ConfigurationError(
                f"size_factors must be one of {SIZE_FACTOR_MODES}, "
                f"got {self.size_factors!r}"
            )
        lengths = {
            "sim_seeds": len(self.sim_seeds),
            "de_ids": len(self.de_ids),
            "lfcs": len(self.lfcs),
        }
        for name, length in lengths.items():
            if length != self.nsims:
                raise ConfigurationError(
                    f"{name} has {length} entries but nsims is {self.nsims}"
                )
        for i, (de_ids, lfc) in enumerate(zip(self.de_ids, self.lfcs)):
            if len(lfc) != self.ngenes:
                raise ConfigurationError(
                    f"effect vectors must have length ngenes ({self.ngenes})"
                )
            de_ids = np.asarray(de_ids, dtype=int)
            if np.any((de_ids < 0) | (de_ids >= self.ngenes)):
                raise ConfigurationError(
                    f"DE gene indices of replicate {i} must lie in [0, {self.ngenes})"
                )
            # Genes outside the DE set carry no effect
            is_de = np.zeros(self.ngenes, dtype=bool)
            is_de[de_ids] = True
            if np.any(np.asarray(lfc)[~is_de] != 0):
                raise ConfigurationError(
                    f"effect vector of replicate {i} is nonzero for non-DE genes"
                )
