"""Shared fixtures for powsim tests."""

import numpy as np
import pandas as pd
import pytest

from powsim import backends
from powsim.backends import DEOutput
from powsim.config import (
    DESetup,
    DropoutFit,
    EstimatedParams,
    MeanDispersionFit,
    insilico_nb_params,
)
from powsim.settings import sim_setup


@pytest.fixture
def insilico_params():
    """Constant mean 50 and dispersion 0.1, no dropout."""
    return insilico_nb_params(
        means=lambda n, rng: np.full(n, 50.0),
        dispersion=0.1,
        rnaseq="bulk",
    )


@pytest.fixture
def estimated_params():
    """Estimated bundle with low and high expressed genes and a dropout pool."""
    return EstimatedParams(
        means=np.array([1.0, 3.0, 100.0, 1000.0]),
        meandispfit=MeanDispersionFit(
            x=np.linspace(0, 12, 13),
            y=np.full(13, 2.0),
            sd=np.full(13, 0.2),
        ),
        dropout=DropoutFit(cutoff=4.0, rates=np.array([0.2, 0.5])),
        rnaseq="bulk",
    )


@pytest.fixture
def make_settings():
    """Factory for simulation settings."""

    def _make(
        params, ngenes=100, nsims=2, p_de=0.2, lfc=1.0, seed=1, size_factors="equal"
    ):
        desetup = DESetup(ngenes=ngenes, nsims=nsims, p_de=p_de, lfc=lfc, seed=seed)
        return sim_setup(desetup, params, size_factors=size_factors)

    return _make


@pytest.fixture
def isolated_methods(monkeypatch):
    """Keep method registrations local to one test."""
    monkeypatch.setattr(backends, "_METHODS", dict(backends._METHODS))
    return backends


def _fake_run(calls=None):
    """DE method returning fixed p-values and simple moments."""

    def run(data):
        if calls is not None:
            calls.append(data)
        n = len(data.counts)
        result = pd.DataFrame(
            {
                "pval": np.full(n, 0.5),
                "fdr": np.full(n, 0.5),
                "means": data.counts.mean(axis=1).values,
                "dispersion": np.full(n, 0.1),
                "dropout": (data.counts.values == 0).mean(axis=1),
            },
            index=data.counts.index,
        )
        return DEOutput(result=result, timing=[0.0, 0.0, 0.0])

    return run


@pytest.fixture
def fake_run():
    """Factory for a DE method that optionally records its inputs."""
    return _fake_run
