"""
Tests for normalization and the log2 / VST / rlog transforms.
"""

import numpy as np
import pytest

from rnaseq_de.domain.models import DesignSpec, TransformMode
from rnaseq_de.domain.services.expression_transformer import ExpressionTransformer


@pytest.fixture
def transformer():
    return ExpressionTransformer()


@pytest.fixture
def design():
    return DesignSpec(factors=("condition",))


def _group_difference(transformed, gene):
    values = transformed.loc[gene]
    return values[["S4", "S5", "S6"]].mean() - values[["S1", "S2", "S3"]].mean()


class TestNormalization:
    def test_size_factors_positive(self, transformer, synthetic_counts):
        size_factors = transformer.size_factors(synthetic_counts)
        assert (size_factors > 0).all()
        assert size_factors.index.tolist() == synthetic_counts.samples

    def test_normalize_divides_by_size_factor(self, transformer, scenario_counts):
        size_factors = transformer.size_factors(scenario_counts)
        normalized = transformer.normalize(scenario_counts, size_factors)
        expected = scenario_counts.data.loc["G1", "S2"] / size_factors["S2"]
        assert normalized.loc["G1", "S2"] == pytest.approx(expected)


class TestTransforms:
    """Every mode keeps gene and sample identifiers."""

    def test_log2_values(self, transformer, scenario_counts):
        transformed = transformer.transform(scenario_counts, mode=TransformMode.LOG2)
        size_factors = transformer.size_factors(scenario_counts)
        expected = np.log2(scenario_counts.data.loc["G2", "S1"] / size_factors["S1"] + 1)
        assert transformed.loc["G2", "S1"] == pytest.approx(expected)

    @pytest.mark.parametrize("mode", [TransformMode.LOG2, TransformMode.VST, TransformMode.RLOG])
    def test_identifiers_preserved(
        self, transformer, synthetic_counts, synthetic_metadata, design, mode
    ):
        transformed = transformer.transform(
            synthetic_counts, mode=mode, blind=True, metadata=synthetic_metadata, design=design
        )
        assert transformed.index.tolist() == synthetic_counts.genes
        assert transformed.columns.tolist() == synthetic_counts.samples
        assert np.isfinite(transformed.to_numpy()).all()

    @pytest.mark.parametrize("mode", [TransformMode.VST, TransformMode.RLOG])
    def test_direction_of_change_kept(
        self, transformer, synthetic_counts, synthetic_metadata, design, mode
    ):
        """gene000 is 4-fold up in group B, gene001 4-fold down."""
        transformed = transformer.transform(
            synthetic_counts, mode=mode, blind=True, metadata=synthetic_metadata, design=design
        )
        assert _group_difference(transformed, "gene000") > 0.5
        assert _group_difference(transformed, "gene001") < -0.5

    def test_rlog_close_to_log2_for_high_counts(self, transformer, synthetic_counts):
        rlog = transformer.transform(synthetic_counts, mode=TransformMode.RLOG)
        log2 = transformer.transform(synthetic_counts, mode=TransformMode.LOG2)
        high = synthetic_counts.data.mean(axis=1) > 500
        difference = (rlog.loc[high] - log2.loc[high]).abs().to_numpy()
        assert np.median(difference) < 0.5

    def test_non_blind_requires_model(self, transformer, scenario_counts):
        with pytest.raises(ValueError, match="fitted model"):
            transformer.transform(scenario_counts, mode=TransformMode.VST, blind=False)

    def test_vst_without_design_rejected(self, transformer, scenario_counts):
        with pytest.raises(ValueError, match="metadata and design"):
            transformer.transform(scenario_counts, mode=TransformMode.VST, blind=True)
