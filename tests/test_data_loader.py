"""
Tests for loading count matrices, metadata and classifier gene lists.
"""

import pytest

from rnaseq_de.domain.errors import InputShapeError
from rnaseq_de.domain.models import WorkflowConfig, DesignSpec
from rnaseq_de.infrastructure.data.data_loader import DataLoader


@pytest.fixture
def loader():
    return DataLoader()


class TestLoadCounts:
    def test_tab_delimited_counts(self, loader, tmp_path):
        path = tmp_path / "counts.tsv"
        path.write_text("gene\tS1\tS2\nG1\t10\t20\nG2\t0\t5\n")
        counts = loader.load_counts(str(path))
        assert counts.genes == ["G1", "G2"]
        assert counts.samples == ["S1", "S2"]
        assert counts.data.loc["G1", "S2"] == 20

    def test_missing_file(self, loader, tmp_path):
        with pytest.raises(FileNotFoundError):
            loader.load_counts(str(tmp_path / "missing.tsv"))

    def test_non_numeric_counts(self, loader, tmp_path):
        path = tmp_path / "counts.tsv"
        path.write_text("gene\tS1\tS2\nG1\t10\tabc\n")
        with pytest.raises(InputShapeError):
            loader.load_counts(str(path))

    def test_empty_file(self, loader, tmp_path):
        path = tmp_path / "counts.tsv"
        path.write_text("")
        with pytest.raises(InputShapeError):
            loader.load_counts(str(path))


class TestLoadMetadata:
    def test_levels_read_as_strings(self, loader, tmp_path):
        path = tmp_path / "metadata.csv"
        path.write_text("sample,batch,condition\nS1,1,ctrl\nS2, 2 ,treated\n")
        metadata = loader.load_metadata(str(path))
        assert metadata.samples == ["S1", "S2"]
        assert metadata.data["batch"].tolist() == ["1", "2"]
        assert metadata.levels("condition") == ["ctrl", "treated"]

    def test_load_inputs(self, loader, scenario_files, tmp_path):
        counts_file, metadata_file = scenario_files
        config = WorkflowConfig(
            counts_file=counts_file,
            metadata_file=metadata_file,
            out_dir=str(tmp_path / "out"),
            design=DesignSpec(factors=("condition",)),
        )
        counts, metadata = loader.load_inputs(config)
        assert counts.shape == (4, 4)
        assert metadata.samples == counts.samples


class TestLoadGeneClasses:
    """Tab, comma or whitespace separated pairs with an optional header."""

    def test_header_skipped(self, loader, tmp_path):
        path = tmp_path / "classes.tsv"
        path.write_text("gene_id\tclass\nG1\thousekeeping\nG2\tmarker\n")
        classes = loader.load_gene_classes(str(path))
        assert classes["gene_id"].tolist() == ["G1", "G2"]
        assert classes["class_label"].tolist() == ["housekeeping", "marker"]

    def test_mixed_separators(self, loader, tmp_path):
        path = tmp_path / "classes.txt"
        path.write_text("G1 housekeeping\nG2,marker\n\n# comment\nG3\ttranscription factor\n")
        classes = loader.load_gene_classes(str(path))
        assert classes["gene_id"].tolist() == ["G1", "G2", "G3"]
        assert classes["class_label"].tolist() == ["housekeeping", "marker", "transcription factor"]

    def test_short_lines_skipped(self, loader, tmp_path):
        path = tmp_path / "classes.txt"
        path.write_text("G1\nG2 marker\n")
        classes = loader.load_gene_classes(str(path))
        assert classes["gene_id"].tolist() == ["G2"]
