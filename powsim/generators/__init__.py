"""Generator modules for RNA-seq count simulation."""

from .counts import (
    SimulatedCounts,
    apply_dropout,
    get_mean_matrix,
    make_design,
    model_matrix,
    simulate_counts,
    simulate_rnaseq,
)
from .effects import draw_lfc, simulate_de_genes
from .genes import simulate_gene_params
from .libsize import simulate_size_factors

__all__ = [
    "SimulatedCounts",
    "apply_dropout",
    "draw_lfc",
    "get_mean_matrix",
    "make_design",
    "model_matrix",
    "simulate_counts",
    "simulate_de_genes",
    "simulate_gene_params",
    "simulate_rnaseq",
    "simulate_size_factors",
]
