"""
Visualization and plotting services for the differential expression workflow.
"""

import os
from typing import Any, Callable, Dict, Iterable, List, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from adjustText import adjust_text

from rnaseq_de.domain.models import FittedModel, WorkflowConfig, WorkflowResult
from rnaseq_de.domain.services.clustering_analyzer import ClusteringAnalyzer
from rnaseq_de.infrastructure.logger import Logger

UP_COLOR = "#E74C3C"
DOWN_COLOR = "#3498DB"
NS_COLOR = "lightgray"


class PlotGenerator:
    """Visualization and plotting services"""

    def __init__(
        self,
        logger: Optional[Logger] = None,
        clustering_analyzer: Optional[ClusteringAnalyzer] = None,
        formats: Iterable[str] = ("pdf", "png"),
        dpi: int = 150,
    ):
        self.logger = logger if logger is not None else Logger()
        self.clustering_analyzer = clustering_analyzer or ClusteringAnalyzer()
        self.formats = list(formats)
        self.dpi = dpi

    def _save_figure(self, fig, output_path: str) -> List[str]:
        """Save a figure in every configured format; ``output_path`` ends in .png"""
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
        saved = []
        for ext in self.formats:
            path = output_path.replace(".png", f".{ext}")
            fig.savefig(path, dpi=self.dpi, bbox_inches="tight")
            saved.append(path)
        plt.close(fig)
        self.logger.log_save(output_path)
        return saved

    @staticmethod
    def _regulation(
        lfc: pd.Series, significant_genes: Iterable[str]
    ) -> pd.Series:
        significant = lfc.index.isin(list(significant_genes))
        status = pd.Series("Not Significant", index=lfc.index)
        status[significant & (lfc > 0).to_numpy()] = "Up"
        status[significant & (lfc < 0).to_numpy()] = "Down"
        return status

    def create_ma_plot(
        self,
        results: pd.DataFrame,
        significant_genes: Iterable[str],
        output_path: str,
        title: str = "MA Plot",
    ) -> List[str]:
        """Mean of normalized counts vs log2 fold change"""
        df = results.dropna(subset=["log2FoldChange"])
        df = df[df["baseMean"] > 0]
        status = self._regulation(df["log2FoldChange"], significant_genes)
        colors = {"Not Significant": NS_COLOR, "Up": UP_COLOR, "Down": DOWN_COLOR}

        fig, ax = plt.subplots(figsize=(8, 6))
        for label, color in colors.items():
            subset = df[status == label]
            ax.scatter(subset["baseMean"], subset["log2FoldChange"], c=color, s=10, alpha=0.6, label=label)
        ax.set_xscale("log")
        ax.axhline(0, color="black", linewidth=0.8)
        ax.set_xlabel("Mean of normalized counts")
        ax.set_ylabel("log2 Fold Change")
        ax.set_title(title)
        ax.legend(loc="upper right")
        return self._save_figure(fig, output_path)

    def create_volcano_plot(
        self,
        results: pd.DataFrame,
        significant_genes: Iterable[str],
        output_path: str,
        padj_cutoff: float = 0.05,
        lfc_cutoff: float = 1.0,
        label_genes: Optional[List[str]] = None,
        gene_labels: Optional[Dict[str, str]] = None,
        title: str = "Volcano Plot",
    ) -> List[str]:
        """
        log2 fold change vs -log10 adjusted p-value.

        Args:
            results: Result table indexed by gene identifier
            significant_genes: Genes called significant
            output_path: Output .png path (a .pdf is written beside it)
            padj_cutoff: Horizontal guide line
            lfc_cutoff: Vertical guide lines
            label_genes: Genes to label, repelled with adjustText
            gene_labels: Display names (e.g. symbols) by gene identifier
        """
        df = results.dropna(subset=["log2FoldChange", "padj"]).copy()
        df["neg_log10_padj"] = -np.log10(df["padj"].clip(lower=1e-300))
        status = self._regulation(df["log2FoldChange"], significant_genes)
        colors = {"Not Significant": NS_COLOR, "Up": UP_COLOR, "Down": DOWN_COLOR}

        fig, ax = plt.subplots(figsize=(8, 7))
        for label, color in colors.items():
            subset = df[status == label]
            ax.scatter(subset["log2FoldChange"], subset["neg_log10_padj"], c=color, s=12, alpha=0.6, label=label)

        ax.axhline(-np.log10(padj_cutoff), color="gray", linestyle="--", alpha=0.5)
        ax.axvline(lfc_cutoff, color="gray", linestyle="--", alpha=0.5)
        ax.axvline(-lfc_cutoff, color="gray", linestyle="--", alpha=0.5)

        gene_labels = gene_labels or {}
        texts = []
        for gene in label_genes or []:
            if gene not in df.index:
                continue
            x = df.at[gene, "log2FoldChange"]
            y = df.at[gene, "neg_log10_padj"]
            texts.append(ax.text(x, y, gene_labels.get(gene) or gene, fontsize=8))
        if texts:
            adjust_text(texts, ax=ax, arrowprops=dict(arrowstyle="-", color="gray", lw=0.5))

        ax.text(
            0.02,
            0.98,
            f"Up: {int((status == 'Up').sum())}\nDown: {int((status == 'Down').sum())}",
            transform=ax.transAxes,
            verticalalignment="top",
            bbox=dict(boxstyle="round", facecolor="white", alpha=0.8),
        )
        ax.set_xlabel("log2 Fold Change")
        ax.set_ylabel("-log10 Adjusted P-value")
        ax.set_title(title)
        ax.legend(loc="upper right")
        return self._save_figure(fig, output_path)

    def create_top_genes_heatmap(
        self,
        transformed: pd.DataFrame,
        genes: List[str],
        output_path: str,
        sample_groups: Optional[pd.Series] = None,
        gene_labels: Optional[Dict[str, str]] = None,
        title: str = "Top genes",
    ) -> List[str]:
        """Clustered heatmap of row z-scored transformed counts"""
        genes = [g for g in genes if g in transformed.index]
        if len(genes) < 2 or transformed.shape[1] < 2:
            self.logger.log_warning(f"Skipping heatmap: {len(genes)} genes available")
            return []

        zscores = self.clustering_analyzer.zscore_rows(transformed.loc[genes])
        if gene_labels:
            zscores.index = [gene_labels.get(g) or g for g in zscores.index]

        col_colors = None
        if sample_groups is not None:
            levels = sorted(sample_groups.astype(str).unique())
            palette = dict(zip(levels, sns.color_palette("Set2", len(levels))))
            col_colors = sample_groups.astype(str).map(palette).reindex(zscores.columns)

        grid = sns.clustermap(
            zscores,
            cmap="RdBu_r",
            center=0,
            col_colors=col_colors,
            yticklabels=len(genes) <= 60,
            figsize=(max(6, 0.5 * zscores.shape[1] + 4), max(6, 0.15 * len(genes) + 3)),
            cbar_kws={"label": "Z-score"},
        )
        grid.fig.suptitle(title, y=1.02)
        return self._save_figure(grid.fig, output_path)

    def create_sample_distance_heatmap(
        self, distances: pd.DataFrame, output_path: str, title: str = "Sample distances"
    ) -> List[str]:
        fig, ax = plt.subplots(figsize=(max(5, 0.5 * len(distances) + 3),) * 2)
        sns.heatmap(distances, cmap="Blues_r", square=True, annot=len(distances) <= 12, fmt=".1f", ax=ax)
        ax.set_title(title)
        return self._save_figure(fig, output_path)

    def create_pca_plot(
        self,
        pca_result: Dict[str, Any],
        output_path: str,
        sample_groups: Optional[pd.Series] = None,
        title: str = "PCA",
    ) -> List[str]:
        """Samples on the first two principal components, coloured by group"""
        coordinates = pca_result["coordinates"]
        explained = pca_result["explained_variance"]
        y_column = "PC2" if "PC2" in coordinates.columns else None

        fig, ax = plt.subplots(figsize=(7, 6))
        plot_df = coordinates.copy()
        if y_column is None:
            plot_df["PC2"] = 0.0
        hue = None
        if sample_groups is not None:
            plot_df["group"] = sample_groups.reindex(plot_df.index).astype(str)
            hue = "group"
        sns.scatterplot(data=plot_df, x="PC1", y="PC2", hue=hue, s=100, ax=ax)

        for sample, row in plot_df.iterrows():
            ax.annotate(sample, (row["PC1"], row["PC2"]), fontsize=8, ha="center", va="bottom")

        ax.set_xlabel(f"PC1 ({explained['PC1'] * 100:.1f}%)")
        if y_column is not None:
            ax.set_ylabel(f"PC2 ({explained['PC2'] * 100:.1f}%)")
        ax.set_title(title)
        return self._save_figure(fig, output_path)

    def create_dispersion_plot(
        self, model: FittedModel, base_mean: pd.Series, output_path: str
    ) -> List[str]:
        """Gene-wise, trend and final dispersions against mean normalized count"""
        df = pd.DataFrame(
            {
                "baseMean": base_mean,
                "genewise": model.genewise_dispersions,
                "trend": model.trend_dispersions,
                "final": model.dispersions,
            }
        )
        df = df[(df["baseMean"] > 0) & (df["genewise"] > 0)].sort_values("baseMean")

        fig, ax = plt.subplots(figsize=(7, 6))
        ax.scatter(df["baseMean"], df["genewise"], s=6, c="black", alpha=0.4, label="gene-wise")
        ax.scatter(df["baseMean"], df["final"], s=6, c=DOWN_COLOR, alpha=0.4, label="final")
        ax.plot(df["baseMean"], df["trend"], c=UP_COLOR, linewidth=2, label="trend")
        ax.set_xscale("log")
        ax.set_yscale("log")
        ax.set_xlabel("Mean of normalized counts")
        ax.set_ylabel("Dispersion")
        ax.set_title("Dispersion estimates")
        ax.legend(loc="upper right")
        return self._save_figure(fig, output_path)

    def create_all_visualizations(
        self, result: WorkflowResult, config: WorkflowConfig
    ) -> List[str]:
        """
        Render every plot into ``<out_dir>/plots``.

        A failing plot is logged and skipped; the remaining plots still run.

        Returns:
            List[str]: Paths written
        """
        plots_dir = os.path.join(config.out_dir, "plots")
        os.makedirs(plots_dir, exist_ok=True)
        prefix = os.path.join(plots_dir, config.name)

        display = result.shrunken if result.shrunken is not None else result.results
        significant_genes = result.significant.index.tolist()
        top_genes = result.top_genes.index.tolist()
        groups = result.metadata.data[result.model.contrast[0]]
        gene_labels = self._gene_labels(result.annotated)

        plots: Dict[str, Callable[[], List[str]]] = {
            "MA plot": lambda: self.create_ma_plot(
                display.data, significant_genes, f"{prefix}_MA.png"
            ),
            "Volcano plot": lambda: self.create_volcano_plot(
                display.data,
                significant_genes,
                f"{prefix}_Volcano.png",
                padj_cutoff=config.alpha,
                lfc_cutoff=config.lfc_cutoff,
                label_genes=top_genes[:20],
                gene_labels=gene_labels,
            ),
            "Top genes heatmap": lambda: self.create_top_genes_heatmap(
                result.transformed,
                top_genes,
                f"{prefix}_Top{config.top_n}_Heatmap.png",
                sample_groups=groups,
                gene_labels=gene_labels,
                title=f"Top {len(top_genes)} genes ({config.transform.value})",
            ),
            "Sample distance heatmap": lambda: self.create_sample_distance_heatmap(
                self.clustering_analyzer.sample_distances(result.transformed),
                f"{prefix}_Sample_Distances.png",
            ),
            "PCA plot": lambda: self.create_pca_plot(
                self.clustering_analyzer.perform_pca(result.transformed),
                f"{prefix}_PCA.png",
                sample_groups=groups,
            ),
            "Dispersion plot": lambda: self.create_dispersion_plot(
                result.model, result.results.data["baseMean"], f"{prefix}_Dispersion.png"
            ),
        }

        saved = []
        for name, render in plots.items():
            try:
                saved.extend(render())
            except Exception as e:
                plt.close("all")
                self.logger.log_error(e, name)
        self.logger.log_success(f"Saved {len(saved)} plot files to {plots_dir}")
        return saved

    @staticmethod
    def _gene_labels(annotated: Optional[pd.DataFrame]) -> Dict[str, str]:
        if annotated is None or "symbol" not in annotated.columns:
            return {}
        symbols = annotated["symbol"].dropna()
        symbols = symbols[~symbols.index.duplicated()]
        return symbols.astype(str).to_dict()
