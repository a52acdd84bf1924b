"""
Significance filtering and deterministic ranking of result tables.
"""

from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from rnaseq_de.domain.models import DEResultTable
from rnaseq_de.infrastructure.logger import Logger

TableLike = Union[DEResultTable, pd.DataFrame]


def _frame(results: TableLike) -> pd.DataFrame:
    return results.data if isinstance(results, DEResultTable) else results


class SignificanceFilter:
    """Cutoff filtering, ranking and top-N extraction"""

    def __init__(self):
        self.logger = Logger()

    def filter_significant(
        self, results: TableLike, padj_cutoff: float = 0.05, lfc_cutoff: float = 1.0
    ) -> pd.DataFrame:
        """
        Genes passing both cutoffs: padj < padj_cutoff AND |log2FC| >= lfc_cutoff.

        Genes with a missing adjusted p-value never pass.

        Returns:
            pd.DataFrame: Ranked subset of the input rows
        """
        self.logger.log_threshold("padj cutoff", padj_cutoff)
        self.logger.log_threshold("|log2FC| cutoff", lfc_cutoff)
        df = _frame(results)
        mask = (df["padj"] < padj_cutoff) & (df["log2FoldChange"].abs() >= lfc_cutoff)
        significant = self.rank(df.loc[mask.fillna(False)])
        self.logger.log_step(
            "Significance filter",
            f"{len(significant)} genes with padj < {padj_cutoff} and |log2FC| >= {lfc_cutoff}",
        )
        return significant

    def rank(self, results: TableLike) -> pd.DataFrame:
        """
        Stable ranking by ascending padj, ties broken by ascending gene identifier.

        Genes without an adjusted p-value are ranked last.
        """
        df = _frame(results)
        order = pd.DataFrame(
            {
                "_missing": df["padj"].isna().to_numpy(),
                "_padj": df["padj"].fillna(np.inf).to_numpy(),
                "_gene": df.index.astype(str),
                "_position": np.arange(len(df)),
            }
        ).sort_values(["_missing", "_padj", "_gene"], kind="mergesort")
        return df.iloc[order["_position"].to_numpy()]

    def top_n(self, results: TableLike, n: int = 50) -> pd.DataFrame:
        """First ``n`` genes of the ranking"""
        if n < 0:
            raise ValueError(f"n must be non-negative, got {n}")
        return self.rank(results).head(n)

    def summarize(
        self,
        results: TableLike,
        padj_cutoff: float = 0.05,
        lfc_cutoff: float = 1.0,
        significant: Optional[pd.DataFrame] = None,
    ) -> Dict[str, int]:
        """
        Counts of tested, up-, down-regulated and not-computed genes.

        ``significant`` is the output of filter_significant when the caller
        already has it; otherwise the cutoffs are applied here.
        """
        df = _frame(results)
        if significant is None:
            significant = self.filter_significant(df, padj_cutoff, lfc_cutoff)
        summary = {
            "genes_tested": int(len(df)),
            "genes_significant": int(len(significant)),
            "genes_up": int((significant["log2FoldChange"] > 0).sum()),
            "genes_down": int((significant["log2FoldChange"] < 0).sum()),
            "genes_padj_na": int(df["padj"].isna().sum()),
            "genes_pvalue_na": int(df["pvalue"].isna().sum()),
        }
        self.logger.log_step(
            "Result summary",
            f"{summary['genes_up']} up, {summary['genes_down']} down, "
            f"{summary['genes_padj_na']} without padj",
        )
        return summary
