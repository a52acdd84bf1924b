"""
Statistical helpers shared by the normalization, transform and shrinkage stages.
"""

from typing import Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.stats import norm
from statsmodels.stats.multitest import multipletests

from rnaseq_de.domain.errors import InputShapeError
from rnaseq_de.infrastructure.logger import Logger

MIN_DISPERSION = 1e-8


class StatisticalAnalyzer:
    """Statistical analysis and calculations"""

    def __init__(self):
        self.logger = Logger()

    def median_of_ratios(self, counts: pd.DataFrame) -> pd.Series:
        """
        Median-of-ratios size factors (genes x samples input).

        Only genes with a non-zero count in every sample contribute to the
        geometric-mean reference.

        Args:
            counts: Raw counts, genes as rows

        Returns:
            pd.Series: Strictly positive size factor per sample

        Raises:
            InputShapeError: If every gene contains at least one zero
        """
        values = counts.to_numpy(dtype=np.float64)
        usable = np.all(values > 0, axis=1)
        if not usable.any():
            raise InputShapeError(
                "Every gene contains a zero count; median-of-ratios size factors are undefined"
            )

        log_values = np.log(values[usable])
        log_geo_means = log_values.mean(axis=1)
        size_factors = np.exp(np.median(log_values - log_geo_means[:, None], axis=0))

        self.logger.log_step(
            "Size factors",
            f"Estimated from {int(usable.sum())} genes without zero counts",
        )
        return pd.Series(size_factors, index=counts.columns, name="size_factor")

    def match_upper_quantile_variance(
        self, values: np.ndarray, upper_quantile: float = 0.05
    ) -> float:
        """
        Variance of a zero-centred normal whose upper quantile matches the data.

        Args:
            values: Observations (non-finite values ignored)
            upper_quantile: Tail probability to match

        Returns:
            float: Matched variance
        """
        finite = np.asarray(values, dtype=np.float64)
        finite = finite[np.isfinite(finite)]
        if finite.size == 0:
            return 1.0
        sd = np.quantile(np.abs(finite), 1 - upper_quantile) / norm.ppf(
            1 - upper_quantile / 2
        )
        variance = float(sd**2)
        # All-identical inputs would give a degenerate prior
        return max(variance, 1e-6)

    def moments_dispersions(
        self, normalized: pd.DataFrame, size_factors: pd.Series
    ) -> pd.Series:
        """Design-free method-of-moments dispersion per gene"""
        values = normalized.to_numpy(dtype=np.float64)
        means = values.mean(axis=1)
        variances = values.var(axis=1, ddof=1) if values.shape[1] > 1 else np.zeros_like(means)
        xim = np.mean(1.0 / size_factors.to_numpy(dtype=np.float64))
        with np.errstate(divide="ignore", invalid="ignore"):
            disp = (variances - xim * means) / means**2
        disp = np.where(np.isfinite(disp), disp, MIN_DISPERSION)
        return pd.Series(np.maximum(disp, MIN_DISPERSION), index=normalized.index)

    def parametric_dispersion_trend(
        self, means: pd.Series, dispersions: pd.Series, max_iter: int = 10
    ) -> Tuple[pd.Series, Tuple[float, float]]:
        """
        Fit dispersion = a0 + a1 / mean with a Gamma-family identity-link GLM.

        Genes whose residual ratio falls outside (1e-4, 15) are excluded at each
        iteration. Falls back to the mean dispersion when the fit does not give
        positive coefficients.

        Args:
            means: Mean of normalized counts per gene
            dispersions: Gene-wise dispersion estimates

        Returns:
            Tuple[pd.Series, Tuple[float, float]]: Trend per gene and (a0, a1)
        """
        mu = means.to_numpy(dtype=np.float64)
        disp = dispersions.to_numpy(dtype=np.float64)
        usable = (disp > 100 * MIN_DISPERSION) & (mu > 0) & np.isfinite(disp)

        coefs = np.array([0.1, 1.0])
        fitted = None
        if usable.sum() >= 3:
            for _ in range(max_iter):
                residuals = disp / (coefs[0] + coefs[1] / np.where(mu > 0, mu, np.nan))
                good = usable & (residuals > 1e-4) & (residuals < 15)
                if good.sum() < 3:
                    break
                exog = sm.add_constant(1.0 / mu[good], has_constant="add")
                try:
                    result = sm.GLM(
                        disp[good],
                        exog,
                        family=sm.families.Gamma(link=sm.families.links.Identity()),
                    ).fit(start_params=coefs)
                except (ValueError, np.linalg.LinAlgError) as e:
                    self.logger.log_warning(f"Parametric dispersion fit failed: {e}")
                    break
                new_coefs = np.asarray(result.params, dtype=np.float64)
                if not np.all(new_coefs > 0):
                    break
                converged = np.sum(np.log(new_coefs / coefs) ** 2) < 1e-6
                coefs = new_coefs
                fitted = coefs
                if converged:
                    break

        if fitted is None:
            mean_disp = float(np.mean(disp[usable])) if usable.any() else 0.1
            self.logger.log_warning(
                f"Using mean dispersion {mean_disp:.4f} as the dispersion trend"
            )
            trend = np.full_like(mu, mean_disp)
            return pd.Series(trend, index=means.index), (mean_disp, 0.0)

        a0, a1 = float(fitted[0]), float(fitted[1])
        with np.errstate(divide="ignore"):
            trend = a0 + a1 / np.where(mu > 0, mu, np.inf)
        self.logger.log_step("Dispersion trend", f"a0={a0:.4g}, a1={a1:.4g}")
        return pd.Series(trend, index=means.index), (a0, a1)

    def adjust_pvalues(self, pvalues: pd.Series, method: str = "fdr_bh") -> pd.Series:
        """
        Multiple-testing adjustment leaving NaN entries untouched.

        Args:
            pvalues: Raw p-values (NaN = not tested)
            method: Any statsmodels ``multipletests`` method

        Returns:
            pd.Series: Adjusted p-values clipped to [0, 1]
        """
        adjusted = pd.Series(np.nan, index=pvalues.index, dtype=np.float64)
        tested = pvalues.notna()
        if tested.any():
            _, corrected, _, _ = multipletests(
                pvalues[tested].to_numpy(dtype=np.float64), method=method
            )
            adjusted[tested] = np.clip(corrected, 0.0, 1.0)
        self.logger.log_step(
            "P-value adjustment", f"{method} over {int(tested.sum())} tested genes"
        )
        return adjusted
