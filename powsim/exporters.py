"""Export functionality for simulated RNA-seq datasets."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import anndata

    from .generators import SimulatedCounts


def to_anndata(simulated: "SimulatedCounts") -> "anndata.AnnData":
    """Export one simulated dataset to an AnnData object.

    Requires the `anndata` package to be installed.
    Install with: `pip install powsim[anndata]`

    Args:
        simulated: Dataset returned by ``simulate_rnaseq``.

    Returns:
        AnnData object with:
        - X: count matrix (samples x genes)
        - obs: sample metadata with 'group' and 'size_factor' columns
        - var: gene metadata including true means, 'lfc' and 'is_de'
        - uns["powsim"]: replicate seed

    Raises:
        ImportError: If anndata is not installed.
    """
    try:
        import anndata
    except ImportError as e:
        raise ImportError(
            "anndata is required for to_anndata(). "
            "Install with: pip install powsim[anndata]"
        ) from e

    adata = anndata.AnnData(
        X=simulated.counts.T.values,
        obs=simulated.sampleparams.copy(),
        var=simulated.geneparams.copy(),
    )
    adata.uns["powsim"] = {"seed": simulated.seed}
    return adata
