"""Power simulations for two-group RNA-seq differential expression."""

from .backends import (
    DEInput,
    DEMethod,
    DEOutput,
    available_methods,
    get_method,
    register_method,
)
from .config import (
    DESetup,
    DropoutFit,
    EstimatedParams,
    InSilicoParams,
    MeanDispersionFit,
    SimulationSettings,
    insilico_nb_params,
)
from .errors import ConfigurationError
from .generators import SimulatedCounts, simulate_rnaseq
from .settings import sim_setup
from .simulator import DESimulator, SimulationResult, simulate_de

__all__ = [
    "ConfigurationError",
    "DEInput",
    "DEMethod",
    "DEOutput",
    "DESetup",
    "DESimulator",
    "DropoutFit",
    "EstimatedParams",
    "InSilicoParams",
    "MeanDispersionFit",
    "SimulatedCounts",
    "SimulationResult",
    "SimulationSettings",
    "available_methods",
    "get_method",
    "insilico_nb_params",
    "register_method",
    "sim_setup",
    "simulate_de",
    "simulate_rnaseq",
]
