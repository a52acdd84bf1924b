"""
Normalization and variance-stabilizing transforms for visualization.

Transformed matrices feed clustering and plots only; hypothesis testing always
runs on raw counts.
"""

from typing import Optional

import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet

from rnaseq_de.domain.models import (
    CountMatrix,
    DesignSpec,
    FittedModel,
    SampleMetadata,
    TransformMode,
)
from rnaseq_de.domain.services.statistical_analyzer import StatisticalAnalyzer
from rnaseq_de.infrastructure.logger import Logger

MIN_MU = 0.5
INTERCEPT_PRIOR_VARIANCE = 1e6


class ExpressionTransformer:
    """Size-factor normalization and log-like transforms"""

    def __init__(self):
        self.logger = Logger()
        self.statistical_analyzer = StatisticalAnalyzer()

    def size_factors(self, counts: CountMatrix) -> pd.Series:
        """Median-of-ratios size factors"""
        return self.statistical_analyzer.median_of_ratios(counts.data)

    def normalize(self, counts: CountMatrix, size_factors: pd.Series) -> pd.DataFrame:
        """Divide each sample's counts by its size factor"""
        size_factors = size_factors.reindex(counts.data.columns)
        normalized = counts.data.div(size_factors, axis=1).astype(np.float64)
        self.logger.log_matrix_shape("Normalized counts", normalized.shape)
        return normalized

    def transform(
        self,
        counts: CountMatrix,
        mode: TransformMode = TransformMode.VST,
        blind: bool = True,
        model: Optional[FittedModel] = None,
        metadata: Optional[SampleMetadata] = None,
        design: Optional[DesignSpec] = None,
    ) -> pd.DataFrame:
        """
        Transform counts for clustering and visualization.

        Args:
            counts: Filtered counts
            mode: LOG2, VST or RLOG
            blind: Re-estimate dispersion ignoring the design (exploratory) when
                True; reuse the fitted model's dispersion when False
            model: Fitted model, required when ``blind`` is False
            metadata: Sample metadata (VST without a model)
            design: Design (VST without a model)

        Returns:
            pd.DataFrame: Same gene index and sample columns as ``counts``
        """
        if not blind and model is None and mode is not TransformMode.LOG2:
            raise ValueError("A fitted model is required for a non-blind transform")

        self.logger.log_step(
            "Transform", f"Mode {mode.value} ({'blind' if blind else 'design-aware'})"
        )

        if mode is TransformMode.LOG2:
            size_factors = model.size_factors if model is not None else self.size_factors(counts)
            transformed = np.log2(self.normalize(counts, size_factors) + 1.0)
        elif mode is TransformMode.VST:
            transformed = self._vst(counts, blind, model, metadata, design)
        elif mode is TransformMode.RLOG:
            transformed = self._rlog(counts, blind, model)
        else:
            raise ValueError(f"Unknown transform mode: {mode}")

        transformed = pd.DataFrame(
            np.asarray(transformed, dtype=np.float64),
            index=counts.data.index,
            columns=counts.data.columns,
        )
        self.logger.log_matrix_shape(f"{mode.value} matrix", transformed.shape)
        return transformed

    def _vst(
        self,
        counts: CountMatrix,
        blind: bool,
        model: Optional[FittedModel],
        metadata: Optional[SampleMetadata],
        design: Optional[DesignSpec],
    ) -> np.ndarray:
        if model is not None:
            design = model.design
            # Categoricals keep the model's reference levels
            design_metadata = model.dds.obs[list(design.factors)].copy()
        elif metadata is None or design is None:
            raise ValueError("VST needs either a fitted model or metadata and design")
        else:
            design_metadata = metadata.data[list(design.factors)].astype(str)

        # The fitted model's dataset is never written to
        dds = DeseqDataSet(
            counts=counts.data.T,
            metadata=design_metadata,
            design=design.formula(),
            quiet=True,
        )
        dds.vst(use_design=not blind)
        return np.asarray(dds.layers["vst_counts"]).T

    def _rlog(
        self, counts: CountMatrix, blind: bool, model: Optional[FittedModel]
    ) -> np.ndarray:
        if blind:
            size_factors = self.size_factors(counts)
            normalized = self.normalize(counts, size_factors)
            genewise = self.statistical_analyzer.moments_dispersions(normalized, size_factors)
            trend, _ = self.statistical_analyzer.parametric_dispersion_trend(
                normalized.mean(axis=1), genewise
            )
        else:
            size_factors = model.size_factors
            normalized = model.normalized_counts
            trend = model.trend_dispersions

        return self.regularized_log(
            counts.data.to_numpy(dtype=np.float64),
            size_factors.reindex(counts.data.columns).to_numpy(dtype=np.float64),
            trend.reindex(counts.data.index).to_numpy(dtype=np.float64),
            normalized.to_numpy(dtype=np.float64),
        )

    def regularized_log(
        self,
        counts: np.ndarray,
        size_factors: np.ndarray,
        dispersions: np.ndarray,
        normalized: np.ndarray,
        max_iter: int = 100,
        tol: float = 1e-6,
    ) -> np.ndarray:
        """
        Regularized log2 counts.

        Per gene fits log(mu_ij) = log(sf_j) + b0 + b_j under the negative
        binomial likelihood with a zero-mean normal prior on the per-sample
        terms b_j, by penalized IRLS vectorised across genes.

        Returns:
            np.ndarray: (b0 + b_j) / ln 2, genes x samples
        """
        n_genes, n_samples = counts.shape
        dispersions = np.where(np.isfinite(dispersions), np.maximum(dispersions, 1e-8), 0.1)

        # Prior variance from the spread of log counts around each gene's mean
        base_mean = normalized.mean(axis=1)
        log_fold_changes = np.log2(normalized + 0.5) - np.log2(base_mean + 0.5)[:, None]
        prior_var_log2 = self.statistical_analyzer.match_upper_quantile_variance(
            log_fold_changes.ravel()
        )
        prior_var = prior_var_log2 * np.log(2) ** 2
        self.logger.log_statistics("rlog prior variance (log2)", prior_var_log2)

        design = np.hstack([np.ones((n_samples, 1)), np.eye(n_samples)])
        penalty = np.diag(
            np.concatenate([[1.0 / INTERCEPT_PRIOR_VARIANCE], np.full(n_samples, 1.0 / prior_var)])
        )

        beta = np.zeros((n_genes, n_samples + 1))
        beta[:, 0] = np.log(base_mean + 0.1)

        for iteration in range(max_iter):
            eta = np.clip(beta @ design.T, -30, 30)
            mu = np.maximum(size_factors * np.exp(eta), MIN_MU)
            weights = mu / (1.0 + dispersions[:, None] * mu)
            working = eta + (counts - mu) / mu

            xtwx = np.einsum("jp,ij,jq->ipq", design, weights, design) + penalty
            xtwz = np.einsum("jp,ij->ip", design, weights * working)
            new_beta = np.linalg.solve(xtwx, xtwz[..., None])[..., 0]

            delta = np.max(np.abs(new_beta - beta))
            beta = new_beta
            if delta < tol:
                self.logger.log_step("rlog", f"IRLS converged after {iteration + 1} iterations")
                break
        else:
            self.logger.log_warning(f"rlog IRLS did not converge in {max_iter} iterations")

        return (beta @ design.T) / np.log(2)
