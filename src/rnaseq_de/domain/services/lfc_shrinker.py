"""
Log2 fold-change shrinkage under a selectable prior.

Shrinkage re-estimates effect sizes and their standard errors for ranking and
visualization. Base means, test statistics and (adjusted) p-values are copied
from the unshrunken table, so significance calls are never changed.
"""

from typing import Tuple

import numpy as np
import pandas as pd
from scipy.stats import norm

from rnaseq_de.domain.models import DEResultTable, FittedModel, ShrinkagePrior
from rnaseq_de.domain.services.de_model import DifferentialExpressionModel
from rnaseq_de.domain.services.statistical_analyzer import StatisticalAnalyzer
from rnaseq_de.infrastructure.logger import Logger

# Weight on the null component, as in ashr's default "nullbiased" penalty
NULL_WEIGHT = 10.0
GRID_MULTIPLIER = np.sqrt(2.0)


def keep_unshrinkable(
    beta: np.ndarray, shrunk: np.ndarray, shrunk_se: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Genes with an estimate but no usable standard error keep the MLE estimate.

    Their shrunken standard error stays NaN; only a missing estimate stays
    missing, so the significant set is the same before and after shrinkage.
    """
    beta = np.asarray(beta, dtype=np.float64)
    shrunk = np.array(shrunk, dtype=np.float64)
    shrunk_se = np.array(shrunk_se, dtype=np.float64)
    unshrinkable = np.isfinite(beta) & ~np.isfinite(shrunk)
    shrunk[unshrinkable] = beta[unshrinkable]
    shrunk_se[unshrinkable] = np.nan
    return shrunk, shrunk_se


class LFCShrinker:
    """Shrinks log2 fold changes toward zero"""

    def __init__(self, de_model: DifferentialExpressionModel = None):
        self.logger = Logger()
        self.de_model = de_model
        self.statistical_analyzer = StatisticalAnalyzer()

    def shrink(
        self,
        model: FittedModel,
        results: DEResultTable,
        prior: ShrinkagePrior = ShrinkagePrior.ADAPTIVE_T,
    ) -> DEResultTable:
        """
        Recompute log2 fold changes under the chosen prior.

        Args:
            model: Fitted model the results were produced from
            results: Unshrunken result table
            prior: NORMAL, ADAPTIVE_T or ADAPTIVE_HEAVY_TAILED

        Returns:
            DEResultTable: New table; only log2FoldChange and lfcSE differ
        """
        self.logger.log_step("LFC shrinkage", f"Prior: {prior.value}")
        data = results.data
        beta = data["log2FoldChange"].to_numpy(dtype=np.float64)
        se = data["lfcSE"].to_numpy(dtype=np.float64)

        if prior is ShrinkagePrior.NORMAL:
            shrunk, shrunk_se = self.normal_prior(beta, se)
        elif prior is ShrinkagePrior.ADAPTIVE_T:
            shrunk, shrunk_se = keep_unshrinkable(beta, *self._adaptive_t(model, results))
        elif prior is ShrinkagePrior.ADAPTIVE_HEAVY_TAILED:
            shrunk, shrunk_se = self.adaptive_mixture(beta, se)
        else:
            raise ValueError(f"Unknown shrinkage prior: {prior}")

        shrunken = data.copy()
        shrunken["log2FoldChange"] = shrunk
        shrunken["lfcSE"] = shrunk_se

        moved = np.nanmedian(np.abs(beta - shrunk)) if np.isfinite(shrunk).any() else 0.0
        self.logger.log_statistics("Median |LFC change|", float(moved))
        return results.with_data(shrunken, shrinkage=prior)

    def normal_prior(self, beta: np.ndarray, se: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Zero-centred normal prior with empirically matched variance.

        Returns posterior mean and standard deviation per gene. A missing
        estimate stays NaN; a missing standard error keeps the estimate.
        """
        usable = np.isfinite(beta) & np.isfinite(se)
        prior_var = self.statistical_analyzer.match_upper_quantile_variance(beta[usable])
        self.logger.log_statistics("Normal prior variance", prior_var)

        se2 = se**2
        shrunk = np.full_like(beta, np.nan)
        shrunk_se = np.full_like(se, np.nan)
        shrunk[usable] = beta[usable] * prior_var / (prior_var + se2[usable])
        shrunk_se[usable] = np.sqrt(prior_var * se2[usable] / (prior_var + se2[usable]))
        return keep_unshrinkable(beta, shrunk, shrunk_se)

    def _adaptive_t(
        self, model: FittedModel, results: DEResultTable
    ) -> Tuple[pd.Series, pd.Series]:
        """apeglm-style adaptive Cauchy prior through PyDESeq2"""
        de_model = self.de_model or DifferentialExpressionModel()
        stats = de_model.build_stats(model)
        coefficient = de_model.coefficient_name(model.contrast)
        stats.lfc_shrink(coeff=coefficient, adapt=True)

        shrunk_df = stats.results_df.copy()
        shrunk_df.index = model.counts.data.index
        shrunk_df = shrunk_df.reindex(results.data.index)
        return (
            shrunk_df["log2FoldChange"].to_numpy(dtype=np.float64),
            shrunk_df["lfcSE"].to_numpy(dtype=np.float64),
        )

    def adaptive_mixture(
        self,
        beta: np.ndarray,
        se: np.ndarray,
        max_iter: int = 500,
        tol: float = 1e-8,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        ashr-style adaptive shrinkage with a zero-centred scale mixture of normals.

        The mixture is a point mass at zero plus normals on a geometric grid of
        standard deviations; weights are fitted by EM on the marginal likelihood
        N(beta | 0, sd_k^2 + se^2) with a null-biased Dirichlet penalty.

        Returns:
            Tuple[np.ndarray, np.ndarray]: Posterior mean and sd per gene
        """
        usable = np.isfinite(beta) & np.isfinite(se) & (se > 0)
        shrunk = np.full_like(beta, np.nan)
        shrunk_se = np.full_like(se, np.nan)
        if not usable.any():
            return keep_unshrinkable(beta, shrunk, shrunk_se)

        b = beta[usable]
        s = se[usable]
        grid = self._mixture_grid(b, s)
        prior_var = grid**2

        # Marginal likelihood of each gene under each component
        marginal_sd = np.sqrt(prior_var[None, :] + s[:, None] ** 2)
        likelihood = norm.pdf(b[:, None], loc=0.0, scale=marginal_sd)
        likelihood = np.maximum(likelihood, 1e-300)

        penalty = np.zeros(len(grid))
        penalty[0] = NULL_WEIGHT - 1.0
        weights = np.full(len(grid), 1.0 / len(grid))

        for iteration in range(max_iter):
            joint = likelihood * weights
            responsibilities = joint / joint.sum(axis=1, keepdims=True)
            new_weights = (responsibilities.sum(axis=0) + penalty) / (
                len(b) + penalty.sum()
            )
            converged = np.max(np.abs(new_weights - weights)) < tol
            weights = new_weights
            if converged:
                self.logger.log_step(
                    "Adaptive shrinkage", f"EM converged after {iteration + 1} iterations"
                )
                break

        joint = likelihood * weights
        responsibilities = joint / joint.sum(axis=1, keepdims=True)

        # Component posteriors are normal; the null component contributes zero
        shrink_factor = prior_var[None, :] / (prior_var[None, :] + s[:, None] ** 2)
        post_mean = b[:, None] * shrink_factor
        post_var = s[:, None] ** 2 * shrink_factor

        mean = np.sum(responsibilities * post_mean, axis=1)
        second_moment = np.sum(responsibilities * (post_var + post_mean**2), axis=1)
        sd = np.sqrt(np.maximum(second_moment - mean**2, 0.0))

        self.logger.log_statistics("Null component weight", float(weights[0]))
        shrunk[usable] = mean
        shrunk_se[usable] = sd
        return keep_unshrinkable(beta, shrunk, shrunk_se)

    @staticmethod
    def _mixture_grid(beta: np.ndarray, se: np.ndarray) -> np.ndarray:
        """Point mass at zero followed by a geometric grid of standard deviations"""
        sd_min = np.min(se) / 10.0
        excess = beta**2 - se**2
        if np.any(excess > 0):
            sd_max = 2.0 * np.sqrt(np.max(excess))
        else:
            sd_max = 8.0 * sd_min
        sd_max = max(sd_max, sd_min * GRID_MULTIPLIER)
        n_steps = int(np.ceil(np.log(sd_max / sd_min) / np.log(GRID_MULTIPLIER)))
        grid = sd_min * GRID_MULTIPLIER ** np.arange(n_steps + 1)
        return np.concatenate([[0.0], grid])
