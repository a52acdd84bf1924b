"""
Tests for result table and run summary persistence.
"""

import numpy as np
import pandas as pd
import pytest

from rnaseq_de.infrastructure.data.data_saver import DataSaver


@pytest.fixture
def saver():
    return DataSaver()


class TestSaveTable:
    def test_tab_delimited_with_na(self, saver, tmp_path):
        table = pd.DataFrame(
            {"log2FoldChange": [1.5, np.nan], "padj": [0.01, np.nan]},
            index=pd.Index(["G1", "G2"], name="gene_id"),
        )
        path = saver.save_table(table, str(tmp_path / "nested" / "results.tsv"))

        lines = open(path).read().splitlines()
        assert lines[0] == "gene_id\tlog2FoldChange\tpadj"
        assert lines[2] == "G2\tNA\tNA"

        reread = pd.read_csv(path, sep="\t", index_col=0)
        assert reread.loc["G1", "padj"] == pytest.approx(0.01)
        assert np.isnan(reread.loc["G2", "padj"])


class TestSaveSummary:
    """Append mode with a single header row."""

    def test_appends_runs(self, saver, tmp_path):
        saver.save_summary({"Run": "first", "genes_significant": 3}, str(tmp_path))
        path = saver.save_summary({"Run": "second", "genes_significant": 5}, str(tmp_path))

        lines = open(path).read().splitlines()
        assert len(lines) == 3
        assert lines[0] == "Run\tgenes_significant"

        summary = pd.read_csv(path, sep="\t")
        assert summary["Run"].tolist() == ["first", "second"]
        assert summary["genes_significant"].tolist() == [3, 5]
