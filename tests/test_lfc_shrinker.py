"""
Tests for log2 fold-change shrinkage that do not need a fitted model.
"""

import numpy as np
import pandas as pd
import pytest

from rnaseq_de.domain.models import DEResultTable, ShrinkagePrior
from rnaseq_de.domain.services.lfc_shrinker import LFCShrinker
from rnaseq_de.domain.services.significance_filter import SignificanceFilter


@pytest.fixture
def effects():
    """190 null genes with noisy estimates and 10 strong, precise effects"""
    rng = np.random.default_rng(3)
    beta = np.concatenate([rng.normal(0.0, 0.5, 190), np.full(10, 4.0)])
    se = np.concatenate([np.full(190, 0.5), np.full(10, 0.2)])
    return beta, se


@pytest.fixture
def results(effects):
    beta, se = effects
    genes = [f"g{i:03d}" for i in range(len(beta))]
    pvalues = np.linspace(1e-6, 0.9, len(beta))
    data = pd.DataFrame(
        {
            "baseMean": np.linspace(10, 1000, len(beta)),
            "log2FoldChange": beta,
            "lfcSE": se,
            "stat": beta / se,
            "pvalue": pvalues,
            "padj": np.minimum(pvalues * 2, 1.0),
        },
        index=genes,
    )
    data.iloc[5, data.columns.get_loc("lfcSE")] = np.nan
    return DEResultTable(data, contrast=("condition", "B", "A"))


class TestNormalPrior:
    def test_shrinks_toward_zero(self, effects):
        beta, se = effects
        shrunk, shrunk_se = LFCShrinker().normal_prior(beta, se)
        assert np.all(np.abs(shrunk) <= np.abs(beta) + 1e-12)
        assert np.all(np.sign(shrunk[beta != 0]) == np.sign(beta[beta != 0]))
        assert np.all(shrunk_se <= se + 1e-12)

    def test_missing_estimate_stays_missing(self):
        beta = np.array([1.0, np.nan, 2.0])
        se = np.array([0.5, 0.5, np.nan])
        shrunk, shrunk_se = LFCShrinker().normal_prior(beta, se)
        assert np.isfinite(shrunk[0]) and np.isnan(shrunk[1])
        assert shrunk[2] == 2.0
        assert np.isnan(shrunk_se[2])


class TestAdaptiveMixture:
    def test_strong_effects_survive(self, effects):
        beta, se = effects
        shrunk, _ = LFCShrinker().adaptive_mixture(beta, se)
        assert np.all(np.abs(shrunk[-10:] - 4.0) < 0.3)

    def test_noise_is_shrunk(self, effects):
        beta, se = effects
        shrunk, shrunk_se = LFCShrinker().adaptive_mixture(beta, se)
        assert np.mean(np.abs(shrunk[:190])) < 0.5 * np.mean(np.abs(beta[:190]))
        assert np.all(shrunk_se >= 0)

    def test_grid_starts_with_point_mass(self, effects):
        beta, se = effects
        grid = LFCShrinker._mixture_grid(beta, se)
        assert grid[0] == 0.0
        assert np.all(np.diff(grid[1:]) > 0)


class TestShrinkPreservesCalls:
    """Only effect sizes and their standard errors change."""

    @pytest.mark.parametrize(
        "prior", [ShrinkagePrior.NORMAL, ShrinkagePrior.ADAPTIVE_HEAVY_TAILED]
    )
    def test_testing_columns_unchanged(self, results, prior):
        shrunken = LFCShrinker().shrink(None, results, prior)
        for column in ["baseMean", "stat", "pvalue", "padj"]:
            pd.testing.assert_series_equal(shrunken.data[column], results.data[column])
        assert shrunken.shrinkage is prior
        assert shrunken.contrast == results.contrast

    @pytest.mark.parametrize(
        "prior", [ShrinkagePrior.NORMAL, ShrinkagePrior.ADAPTIVE_HEAVY_TAILED]
    )
    def test_significance_calls_unchanged(self, results, prior):
        significance = SignificanceFilter()
        shrunken = LFCShrinker().shrink(None, results, prior)
        before = significance.filter_significant(results, 0.05, 0.0).index.tolist()
        after = significance.filter_significant(shrunken, 0.05, 0.0).index.tolist()
        assert "g005" in before
        assert before == after

    @pytest.mark.parametrize(
        "prior", [ShrinkagePrior.NORMAL, ShrinkagePrior.ADAPTIVE_HEAVY_TAILED]
    )
    def test_missing_se_keeps_estimate(self, results, prior):
        shrunken = LFCShrinker().shrink(None, results, prior)
        row = shrunken.data.loc["g005"]
        assert row["log2FoldChange"] == results.data.loc["g005", "log2FoldChange"]
        assert np.isnan(row["lfcSE"])

    def test_missing_estimate_stays_missing(self, results):
        data = results.data.copy()
        data.loc["g007", "log2FoldChange"] = np.nan
        shrunken = LFCShrinker().shrink(
            None, results.with_data(data), ShrinkagePrior.ADAPTIVE_HEAVY_TAILED
        )
        assert np.isnan(shrunken.data.loc["g007", "log2FoldChange"])
