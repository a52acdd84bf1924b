"""
Sample-level clustering summaries of transformed expression.
"""

from typing import Dict, Any

import numpy as np
import pandas as pd
from scipy.cluster.hierarchy import leaves_list, linkage
from scipy.spatial.distance import pdist, squareform
from sklearn.decomposition import PCA

from rnaseq_de.infrastructure.logger import Logger


class ClusteringAnalyzer:
    """PCA, sample distances and gene selection on transformed counts"""

    def __init__(self):
        self.logger = Logger()

    def select_variable_genes(self, transformed: pd.DataFrame, n_genes: int = 500) -> pd.DataFrame:
        """Rows with the highest variance across samples"""
        variances = transformed.var(axis=1)
        keep = variances.sort_values(ascending=False, kind="mergesort").index[:n_genes]
        return transformed.loc[keep]

    def perform_pca(
        self, transformed: pd.DataFrame, n_genes: int = 500, n_components: int = 2
    ) -> Dict[str, Any]:
        """
        PCA of samples on the most variable genes.

        Args:
            transformed: Genes x samples transformed matrix
            n_genes: Number of most variable genes used
            n_components: Requested components (capped by data shape)

        Returns:
            Dict with ``coordinates`` (samples x PCs) and ``explained_variance``
        """
        selected = self.select_variable_genes(transformed, n_genes)
        n_components = max(1, min(n_components, selected.shape[0], selected.shape[1]))

        # Samples are observations
        pca = PCA(n_components=n_components, random_state=42)
        coordinates = pca.fit_transform(selected.T.to_numpy(dtype=np.float64))
        columns = [f"PC{i + 1}" for i in range(n_components)]

        explained = pca.explained_variance_ratio_
        self.logger.log_step(
            "PCA",
            ", ".join(f"{c}: {v:.1%}" for c, v in zip(columns, explained)),
        )
        return {
            "coordinates": pd.DataFrame(coordinates, index=transformed.columns, columns=columns),
            "explained_variance": pd.Series(explained, index=columns),
        }

    def sample_distances(self, transformed: pd.DataFrame) -> pd.DataFrame:
        """Euclidean distances between samples, ordered by average-linkage clustering"""
        values = transformed.T.to_numpy(dtype=np.float64)
        condensed = pdist(values, metric="euclidean")
        distances = pd.DataFrame(
            squareform(condensed), index=transformed.columns, columns=transformed.columns
        )
        if len(distances) > 2:
            order = leaves_list(linkage(condensed, method="average"))
            distances = distances.iloc[order, order]
        self.logger.log_step("Sample distances", f"{len(distances)} samples")
        return distances

    def zscore_rows(self, transformed: pd.DataFrame) -> pd.DataFrame:
        """Row-wise z-scores; constant rows become zero"""
        means = transformed.mean(axis=1)
        sds = transformed.std(axis=1).replace(0, np.nan)
        return transformed.sub(means, axis=0).div(sds, axis=0).fillna(0.0)
