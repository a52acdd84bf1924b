"""
Tests for command line parsing into WorkflowConfig.
"""

import pytest

from rnaseq_de.domain.models import ShrinkagePrior, TransformMode
from rnaseq_de.infrastructure.argument_parser import ArgumentParser


@pytest.fixture
def base_args(scenario_files, tmp_path):
    counts_file, metadata_file = scenario_files
    return [
        "-c", counts_file,
        "-m", metadata_file,
        "-o", str(tmp_path / "out"),
        "--design", "condition",
    ]


class TestParseArguments:
    def test_defaults(self, base_args):
        config = ArgumentParser().parse_arguments(base_args)
        assert config.name == "deseq"
        assert config.design.factors == ("condition",)
        assert config.design.contrast is None
        assert config.min_total_count == 10
        assert config.transform is TransformMode.VST
        assert config.blind is True
        assert config.shrinkage is ShrinkagePrior.ADAPTIVE_T
        assert config.alpha == 0.05
        assert config.lfc_cutoff == 1.0
        assert config.p_adjust_method == "fdr_bh"
        assert config.top_n == 50
        assert config.cooks_filter and config.independent_filter
        assert config.gene_class_files == []

    def test_design_and_contrast(self, base_args):
        args = base_args[:-1] + [
            "batch, condition",
            "--interaction",
            "--contrast", "condition,B,A",
        ]
        config = ArgumentParser().parse_arguments(args)
        assert config.design.factors == ("batch", "condition")
        assert config.design.interaction
        assert config.design.contrast == ("condition", "B", "A")

    def test_modes_and_switches(self, base_args):
        config = ArgumentParser().parse_arguments(
            base_args
            + [
                "--transform", "rlog",
                "--no-blind",
                "--shrinkage", "none",
                "--no-cooks-filter",
                "--no-independent-filter",
                "--reorder-samples",
                "--p-adjust", "bonferroni",
                "--offline",
                "--skip-plots",
            ]
        )
        assert config.transform is TransformMode.RLOG
        assert config.blind is False
        assert config.shrinkage is None
        assert not config.cooks_filter
        assert not config.independent_filter
        assert config.reorder_samples
        assert config.p_adjust_method == "bonferroni"
        assert config.offline and config.skip_plots

    def test_repeatable_gene_classes(self, base_args, tmp_path):
        first = tmp_path / "a.txt"
        second = tmp_path / "b.txt"
        first.write_text("G1 x\n")
        second.write_text("G2 y\n")
        config = ArgumentParser().parse_arguments(
            base_args + ["--gene-classes", str(first), "--gene-classes", str(second)]
        )
        assert config.gene_class_files == [str(first), str(second)]


class TestValidation:
    """Invalid configurations raise ValueError after logging."""

    def test_malformed_contrast(self, base_args):
        with pytest.raises(ValueError, match="Invalid configuration"):
            ArgumentParser().parse_arguments(base_args + ["--contrast", "condition,B"])

    def test_missing_input_file(self, base_args, tmp_path):
        args = list(base_args)
        args[1] = str(tmp_path / "absent.tsv")
        with pytest.raises(ValueError, match="Invalid configuration"):
            ArgumentParser().parse_arguments(args)

    @pytest.mark.parametrize(
        "extra",
        [["--alpha", "1.5"], ["--min-count", "-1"], ["--lfc-cutoff", "-0.5"], ["--top-n", "-3"]],
    )
    def test_out_of_range_values(self, base_args, extra):
        with pytest.raises(ValueError, match="Invalid configuration"):
            ArgumentParser().parse_arguments(base_args + extra)

    def test_unknown_choice_exits(self, base_args):
        with pytest.raises(SystemExit) as excinfo:
            ArgumentParser().parse_arguments(base_args + ["--transform", "sqrt"])
        assert excinfo.value.code == 2

    def test_interaction_with_single_factor(self, base_args):
        with pytest.raises(ValueError, match="Invalid configuration"):
            ArgumentParser().parse_arguments(base_args + ["--interaction"])
