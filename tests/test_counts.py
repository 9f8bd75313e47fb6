import numpy as np
import pandas as pd
import pytest

from powsim.config import InSilicoParams, insilico_nb_params
from powsim.generators.counts import (
    apply_dropout,
    get_mean_matrix,
    make_design,
    model_matrix,
    simulate_counts,
    simulate_rnaseq,
)


def test_design_and_model_matrix():
    design = make_design(2, 3)
    np.testing.assert_array_equal(design, [-1, -1, 1, 1, 1])

    mod = model_matrix(design)
    assert mod.shape == (5, 1)
    np.testing.assert_array_equal(mod[:, 0], design)


def test_single_group_model_matrix_has_no_effect_columns():
    assert model_matrix(make_design(4, 0)).shape == (4, 0)
    assert model_matrix(make_design(0, 4)).shape == (4, 0)


def test_mean_matrix_without_effects_is_group_independent():
    true_means = np.array([0.0, 10.0, 100.0])
    mumat = get_mean_matrix(
        true_means, np.ones(6), np.zeros(3), model_matrix(make_design(3, 3))
    )
    assert mumat.shape == (3, 6)
    expected = np.log2(true_means + 1)[:, None].repeat(6, axis=1)
    np.testing.assert_allclose(mumat, expected)


def test_mean_matrix_effect_and_floor():
    true_means = np.array([0.0, 15.0])
    lfc = np.array([1.0, 1.0])
    mod = model_matrix(make_design(1, 1))
    mumat = get_mean_matrix(true_means, np.ones(2), lfc, mod)

    # zero-mean gene would be negative in group 1 and is floored
    np.testing.assert_allclose(mumat[0], [0.0, 1.0])
    np.testing.assert_allclose(mumat[1], [3.0, 5.0])


def test_mean_matrix_single_group_effect_is_noop():
    true_means = np.array([7.0, 31.0])
    lfc = np.array([2.0, -2.0])
    mod = model_matrix(make_design(3, 0))
    mumat = get_mean_matrix(true_means, np.ones(3), lfc, mod)
    expected = np.log2(true_means + 1)[:, None].repeat(3, axis=1)
    np.testing.assert_allclose(mumat, expected)


def test_mean_matrix_scales_with_size_factors():
    mumat = get_mean_matrix(
        np.array([9.0]), np.array([1.0, 3.0]), np.zeros(1), np.empty((2, 0))
    )
    np.testing.assert_allclose(mumat, np.log2([[10.0, 28.0]]))


def test_simulate_counts_zero_mean_gives_zero():
    counts = simulate_counts(
        np.random.default_rng(0), np.zeros((2, 5)), np.array([1.0, 10.0])
    )
    np.testing.assert_array_equal(counts, 0)


def test_apply_dropout_extremes():
    counts = np.full((2, 10), 7)
    out = apply_dropout(np.random.default_rng(0), counts, np.array([0.0, 1.0]))
    np.testing.assert_array_equal(out[0], 7)
    np.testing.assert_array_equal(out[1], 0)


def test_end_to_end_insilico_bulk(insilico_params, make_settings):
    settings = make_settings(insilico_params, ngenes=100, nsims=1, p_de=0.2)
    dat = simulate_rnaseq(settings, 0, 10, 10)

    assert dat.counts.shape == (100, 20)
    assert pd.api.types.is_integer_dtype(dat.counts.values.dtype)
    assert (dat.counts.values >= 0).all()
    assert list(dat.counts.columns[:2]) == ["S1", "S2"]
    assert list(dat.counts.index[:2]) == ["G1", "G2"]

    assert dat.geneparams["is_de"].sum() == 20
    np.testing.assert_array_equal(dat.geneparams["dropout"], 0.0)
    np.testing.assert_array_equal(dat.sampleparams["size_factor"], 1.0)

    not_de = ~dat.geneparams["is_de"].values
    assert abs(dat.counts.values[not_de].mean() - 50) < 5
    row_means = dat.counts.values[not_de].mean(axis=1)
    assert np.all((row_means > 25) & (row_means < 75))


def test_effects_shift_group_means(make_settings):
    params = insilico_nb_params(means=lambda n, rng: np.full(n, 50.0), dispersion=0.05)
    settings = make_settings(params, ngenes=60, nsims=1, p_de=0.5, lfc=2.0)
    dat = simulate_rnaseq(settings, 0, 10, 10)

    de = dat.geneparams["is_de"].values
    group1 = dat.counts.values[de][:, dat.design == -1].mean()
    group2 = dat.counts.values[de][:, dat.design == 1].mean()
    assert group2 > 5 * group1


def test_simulate_rnaseq_deterministic(estimated_params, make_settings):
    settings = make_settings(estimated_params, ngenes=80, nsims=2)
    a = simulate_rnaseq(settings, 1, 6, 6)
    b = simulate_rnaseq(settings, 1, 6, 6)
    pd.testing.assert_frame_equal(a.counts, b.counts)
    pd.testing.assert_frame_equal(a.geneparams, b.geneparams)

    other = simulate_rnaseq(settings, 0, 6, 6)
    assert not a.counts.equals(other.counts)


def test_full_dropout_zeroes_bulk_counts(make_settings):
    params = insilico_nb_params(
        means=lambda n, rng: np.full(n, 100.0),
        dispersion=0.1,
        dropout=lambda n, rng: np.ones(n),
    )
    dat = simulate_rnaseq(make_settings(params, ngenes=20, nsims=1), 0, 4, 4)
    assert (dat.counts.values == 0).all()


def test_singlecell_skips_dropout(make_settings):
    params = InSilicoParams(
        means=lambda n, rng: np.full(n, 100.0),
        dispersion=0.1,
        dropout=lambda n, rng: np.ones(n),
        rnaseq="singlecell",
    )
    dat = simulate_rnaseq(make_settings(params, ngenes=20, nsims=1), 0, 4, 4)
    assert dat.counts.values.sum() > 0
    np.testing.assert_array_equal(dat.geneparams["dropout"], 0.0)


def test_given_size_factors_scale_samples(make_settings):
    params = insilico_nb_params(
        means=lambda n, rng: np.full(n, 100.0),
        dispersion=0.01,
        size_factors=[0.5, 4.0],
    )
    settings = make_settings(
        params, ngenes=200, nsims=1, p_de=0.0, size_factors="given"
    )
    dat = simulate_rnaseq(settings, 0, 8, 8)

    sf = dat.sampleparams["size_factor"].values
    assert np.all(np.isin(sf, [0.5, 4.0]))
    col_means = dat.counts.values.mean(axis=0)
    if (sf == 0.5).any() and (sf == 4.0).any():
        assert col_means[sf == 4.0].min() > col_means[sf == 0.5].max()


def test_subset_is_nested_prefix(insilico_params, make_settings):
    dat = simulate_rnaseq(make_settings(insilico_params, nsims=1), 0, 6, 6)

    small, small_design = dat.subset(2, 3)
    large, _ = dat.subset(4, 5)
    assert list(small.columns) == ["S1", "S2", "S7", "S8", "S9"]
    np.testing.assert_array_equal(small_design, [-1, -1, 1, 1, 1])
    assert set(small.columns) < set(large.columns)
    pd.testing.assert_frame_equal(small, large[small.columns])


def test_subset_rejects_oversized_request(insilico_params, make_settings):
    dat = simulate_rnaseq(make_settings(insilico_params, nsims=1), 0, 3, 3)
    with pytest.raises(ValueError, match="Cannot take"):
        dat.subset(4, 1)
