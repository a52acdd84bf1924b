"""
Tests for shared statistical helpers.
"""

import numpy as np
import pandas as pd
import pytest

from rnaseq_de.domain.errors import InputShapeError
from rnaseq_de.domain.services.statistical_analyzer import StatisticalAnalyzer


@pytest.fixture
def analyzer():
    return StatisticalAnalyzer()


class TestMedianOfRatios:
    def test_doubled_library(self, analyzer):
        """A sample sequenced twice as deep gets twice the size factor."""
        counts = pd.DataFrame({"S1": [10, 20, 40], "S2": [20, 40, 80]}, index=["a", "b", "c"])
        size_factors = analyzer.median_of_ratios(counts)
        assert size_factors["S2"] / size_factors["S1"] == pytest.approx(2.0)
        assert size_factors.prod() == pytest.approx(1.0)

    def test_genes_with_zeros_ignored(self, analyzer):
        counts = pd.DataFrame({"S1": [10, 0], "S2": [10, 500]}, index=["a", "b"])
        size_factors = analyzer.median_of_ratios(counts)
        assert size_factors.tolist() == pytest.approx([1.0, 1.0])

    def test_all_genes_with_zero_rejected(self, analyzer):
        counts = pd.DataFrame({"S1": [0, 5], "S2": [5, 0]}, index=["a", "b"])
        with pytest.raises(InputShapeError):
            analyzer.median_of_ratios(counts)


class TestPvalueAdjustment:
    def test_nan_preserved(self, analyzer):
        pvalues = pd.Series([0.01, np.nan, 0.04, 0.5], index=list("abcd"))
        adjusted = analyzer.adjust_pvalues(pvalues, "fdr_bh")
        assert np.isnan(adjusted["b"])
        assert adjusted["a"] == pytest.approx(0.03)
        assert adjusted["c"] == pytest.approx(0.06)
        assert adjusted["d"] == pytest.approx(0.5)

    def test_bonferroni_clipped(self, analyzer):
        adjusted = analyzer.adjust_pvalues(pd.Series([0.5, 0.01]), "bonferroni")
        assert adjusted.tolist() == pytest.approx([1.0, 0.02])


class TestDispersionHelpers:
    def test_upper_quantile_variance_positive(self, analyzer):
        values = np.array([0.1, -0.2, 0.3, np.nan, 2.0])
        assert analyzer.match_upper_quantile_variance(values) > 0

    def test_constant_input_floored(self, analyzer):
        assert analyzer.match_upper_quantile_variance(np.zeros(5)) == pytest.approx(1e-6)

    def test_trend_falls_back_to_mean(self, analyzer):
        """Too few usable genes for the parametric fit."""
        means = pd.Series([10.0, 100.0], index=["a", "b"])
        dispersions = pd.Series([0.2, 0.4], index=["a", "b"])
        trend, coefs = analyzer.parametric_dispersion_trend(means, dispersions)
        assert trend.tolist() == pytest.approx([0.3, 0.3])
        assert coefs == (pytest.approx(0.3), 0.0)
