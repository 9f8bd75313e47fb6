"""Registry of differential expression methods.

A method receives the filtered count matrix of one sample size configuration
and returns per-gene p-values and moment estimates together with the time
spent in each stage. Only the reference ``ttest`` method ships with an
implementation; the catalogue of published methods carries their domain and
parallelisation traits, and an implementation is bound with
``register_method``.
"""

import logging
import time
import warnings
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .errors import ConfigurationError
from .moments import estimate_moments, normalize_counts

logger = logging.getLogger(__name__)

DOMAINS = ("bulk", "singlecell", "any")
RESULT_COLUMNS = ("pval", "fdr", "means", "dispersion", "dropout")


@dataclass
class DEInput:
    """Data handed to a DE method.

    Attributes:
        counts: Counts of genes with at least one read (genes x samples).
        design: Group label of each sample (-1 or +1).
        p_de: Simulated fraction of DE genes.
        rnaseq: Either "bulk" or "singlecell".
        ncores: Number of workers the method may use.
    """

    counts: pd.DataFrame
    design: np.ndarray
    p_de: float
    rnaseq: str
    ncores: int = 1


@dataclass
class DEOutput:
    """Result of a DE method.

    Attributes:
        result: One row per input gene, in input order, with columns
            pval, fdr, means, dispersion and dropout.
        timing: Seconds spent on parameter setup, DE testing and moment
            estimation.
    """

    result: pd.DataFrame
    timing: Sequence[float]


@dataclass(frozen=True)
class DEMethod:
    """A DE method and the data it was developed for.

    Attributes:
        name: Method name used for lookup.
        domain: "bulk", "singlecell" or "any".
        exclusive: Whether the method only works for its own domain.
        parallel: Whether the method can use several workers.
        run: Implementation taking a DEInput and returning a DEOutput.
    """

    name: str
    domain: str = "any"
    exclusive: bool = False
    parallel: bool = False
    run: Optional[Callable[[DEInput], DEOutput]] = None

    def __post_init__(self) -> None:
        if self.domain not in DOMAINS:
            raise ConfigurationError(
                f"domain must be one of {DOMAINS}, got {self.domain!r}"
            )

    def check_domain(self, rnaseq: str) -> None:
        """Fail or warn when the method targets other data than ``rnaseq``.

        Raises:
            ConfigurationError: If the method is exclusive to another domain.
        """
        if self.domain == "any" or self.domain == rnaseq:
            return
        if self.exclusive:
            raise ConfigurationError(
                f"{self.name} is only developed and implemented for "
                f"{self.domain} RNA-seq experiments."
            )
        warnings.warn(
            f"{self.name} is developed for {self.domain} RNA-seq experiments.",
            UserWarning,
            stacklevel=3,
        )

    def __call__(self, data: DEInput) -> DEOutput:
        if self.run is None:
            raise ConfigurationError(f"No implementation registered for {self.name}")
        output = self.run(data)

        missing = [col for col in RESULT_COLUMNS if col not in output.result.columns]
        if missing:
            raise ValueError(f"{self.name} result lacks columns {missing}")
        if len(output.result) != len(data.counts):
            raise ValueError(
                f"{self.name} returned {len(output.result)} rows for "
                f"{len(data.counts)} genes"
            )
        if len(output.timing) != 3:
            raise ValueError(f"{self.name} must report timing for 3 stages")
        return output


def _run_ttest(data: DEInput) -> DEOutput:
    """Welch t-test on log2 normalized counts with BH adjusted p-values."""
    start = time.perf_counter()
    lnorm = np.log2(normalize_counts(data.counts).values + 1)
    params_time = time.perf_counter() - start

    start = time.perf_counter()
    group1 = lnorm[:, data.design == -1]
    group2 = lnorm[:, data.design == 1]
    with np.errstate(divide="ignore", invalid="ignore"):
        pval = np.asarray(
            stats.ttest_ind(group1, group2, axis=1, equal_var=False).pvalue,
            dtype=float,
        )
    fdr = np.full_like(pval, np.nan)
    tested = np.isfinite(pval)
    if tested.any():
        fdr[tested] = stats.false_discovery_control(pval[tested], method="bh")
    de_time = time.perf_counter() - start

    start = time.perf_counter()
    moments = estimate_moments(data.counts)
    nb_time = time.perf_counter() - start

    result = moments.assign(pval=pval, fdr=fdr)
    return DEOutput(result=result, timing=[params_time, de_time, nb_time])


# name, domain, exclusive, parallel
_CATALOGUE = [
    ("edgeR", "bulk", False, False),
    ("DESeq2", "bulk", False, True),
    ("baySeq", "bulk", False, True),
    ("NOISeq", "bulk", False, False),
    ("DSS", "bulk", False, False),
    ("EBSeq", "bulk", False, False),
    ("limma", "any", False, False),
    ("ROTS", "any", False, False),
    ("MAST", "singlecell", False, True),
    ("BPSC", "singlecell", False, True),
    ("scde", "singlecell", True, True),
    ("scDD", "singlecell", True, True),
]

_METHODS: dict[str, DEMethod] = {
    name: DEMethod(name=name, domain=domain, exclusive=exclusive, parallel=parallel)
    for name, domain, exclusive, parallel in _CATALOGUE
}
_METHODS["ttest"] = DEMethod(name="ttest", run=_run_ttest)


def register_method(
    name: str,
    run: Callable[[DEInput], DEOutput],
    *,
    domain: Optional[str] = None,
    exclusive: Optional[bool] = None,
    parallel: Optional[bool] = None,
) -> DEMethod:
    """Bind an implementation to a catalogued method or add a new method.

    Traits that are not given keep their catalogued values; new methods
    default to domain "any", not exclusive and not parallel.

    Example:
        >>> register_method("edgeR", run_edger_via_rpy2)
        >>> register_method("mymethod", my_run, domain="singlecell")
    """
    traits = dict(domain=domain, exclusive=exclusive, parallel=parallel)
    traits = {key: value for key, value in traits.items() if value is not None}
    if name in _METHODS:
        method = replace(_METHODS[name], run=run, **traits)
    else:
        method = DEMethod(name=name, run=run, **traits)

    _METHODS[name] = method
    logger.debug("Registered DE method %s", name)
    return method


def get_method(name: str) -> DEMethod:
    """Look up a DE method by name.

    Raises:
        ConfigurationError: If no method with this name is registered.
    """
    try:
        return _METHODS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown DE method {name!r}; available: {', '.join(available_methods())}"
        ) from None


def available_methods() -> list[str]:
    """Names of all registered methods."""
    return sorted(_METHODS)
