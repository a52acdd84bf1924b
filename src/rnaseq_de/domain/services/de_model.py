"""
Negative binomial GLM fitting and Wald testing via PyDESeq2.
"""

from typing import Tuple

import numpy as np
import pandas as pd
from pydeseq2.dds import DeseqDataSet
from pydeseq2.default_inference import DefaultInference
from pydeseq2.ds import DeseqStats

from rnaseq_de.domain.errors import DegenerateDesignError
from rnaseq_de.domain.models import (
    RESULT_COLUMNS,
    CountMatrix,
    DEResultTable,
    DesignSpec,
    FittedModel,
    SampleMetadata,
)
from rnaseq_de.domain.services.statistical_analyzer import StatisticalAnalyzer
from rnaseq_de.infrastructure.logger import Logger


def sample_vector(dds, key: str) -> pd.Series:
    """Per-sample quantity stored on a DeseqDataSet (obs column or obsm entry)"""
    if key in dds.obs.columns:
        return pd.Series(np.asarray(dds.obs[key], dtype=np.float64), index=dds.obs_names)
    return pd.Series(np.asarray(dds.obsm[key], dtype=np.float64), index=dds.obs_names)


def gene_vector(dds, key: str) -> pd.Series:
    """Per-gene quantity stored on a DeseqDataSet (var column or varm entry)"""
    if key in dds.var.columns:
        return pd.Series(np.asarray(dds.var[key], dtype=np.float64), index=dds.var_names)
    return pd.Series(np.asarray(dds.varm[key], dtype=np.float64), index=dds.var_names)


class DifferentialExpressionModel:
    """Fits size factors, dispersions and coefficients, then tests one contrast"""

    def __init__(self, n_cpus: int = 1):
        self.logger = Logger()
        self.n_cpus = n_cpus
        self.inference = DefaultInference(n_cpus=n_cpus)
        self.statistical_analyzer = StatisticalAnalyzer()

    def resolve_contrast(
        self, metadata: SampleMetadata, design: DesignSpec
    ) -> Tuple[str, str, str]:
        """
        Contrast to report: explicit one, else the final listed factor.

        For the default contrast the reference is ``design.reference_level``
        when given, otherwise the first sorted level; the tested level is the
        last sorted level that is not the reference.
        """
        if design.contrast is not None:
            return design.contrast

        factor = design.factors[-1]
        levels = metadata.levels(factor)
        if len(levels) < 2:
            raise DegenerateDesignError(
                f"Design factor '{factor}' has fewer than two observed levels: {levels}"
            )
        reference = design.reference_level or levels[0]
        tested = [level for level in levels if level != reference][-1]
        return factor, tested, reference

    def prepare_metadata(
        self,
        metadata: SampleMetadata,
        design: DesignSpec,
        contrast: Tuple[str, str, str],
    ) -> pd.DataFrame:
        """Design factors as categoricals with the reference level first"""
        factor, _, reference = contrast
        prepared = metadata.data[list(design.factors)].astype(str)
        for column in design.factors:
            levels = sorted(prepared[column].unique().tolist())
            if column == factor:
                levels = [reference] + [level for level in levels if level != reference]
            prepared[column] = pd.Categorical(prepared[column], categories=levels)
        return prepared

    def fit(
        self, counts: CountMatrix, metadata: SampleMetadata, design: DesignSpec
    ) -> FittedModel:
        """
        Fit the negative binomial GLM for every gene.

        Args:
            counts: Filtered counts, aligned with metadata
            metadata: Sample metadata
            design: Model design

        Returns:
            FittedModel: Size factors, dispersions and coefficients
        """
        contrast = self.resolve_contrast(metadata, design)
        formula = design.formula()
        self.logger.log_step(
            "Model fitting",
            f"Design {formula}, contrast {contrast[0]}: {contrast[1]} vs {contrast[2]}",
        )

        dds = DeseqDataSet(
            counts=counts.data.T,
            metadata=self.prepare_metadata(metadata, design, contrast),
            design=formula,
            refit_cooks=True,
            inference=self.inference,
            quiet=True,
        )
        dds.deseq2()

        size_factors = sample_vector(dds, "size_factors")
        if not (size_factors > 0).all():
            raise ValueError("Estimated size factors must be strictly positive")

        normalized = pd.DataFrame(
            np.asarray(dds.layers["normed_counts"]).T,
            index=counts.data.index,
            columns=counts.data.columns,
        )
        coefficients = pd.DataFrame(dds.varm["LFC"])
        coefficients.index = counts.data.index

        model = FittedModel(
            dds=dds,
            design=design,
            contrast=contrast,
            size_factors=size_factors.rename("size_factor"),
            dispersions=gene_vector(dds, "dispersions").clip(lower=0).rename("dispersion"),
            genewise_dispersions=gene_vector(dds, "genewise_dispersions").rename(
                "genewise_dispersion"
            ),
            trend_dispersions=gene_vector(dds, "fitted_dispersions").rename(
                "trend_dispersion"
            ),
            normalized_counts=normalized,
            coefficients=coefficients,
            counts=counts,
            metadata=metadata,
        )

        self.logger.log_statistics("Median size factor", float(size_factors.median()))
        self.logger.log_statistics(
            "Median dispersion", float(np.nanmedian(model.dispersions))
        )
        self.logger.log_success(f"Fitted model for {counts.shape[0]} genes")
        return model

    def build_stats(
        self,
        model: FittedModel,
        alpha: float = 0.05,
        cooks_filter: bool = True,
        independent_filter: bool = True,
    ) -> DeseqStats:
        """Fresh DeseqStats for the model's contrast, summary already computed"""
        stats = DeseqStats(
            model.dds,
            contrast=list(model.contrast),
            alpha=alpha,
            cooks_filter=cooks_filter,
            independent_filter=independent_filter,
            inference=self.inference,
            quiet=True,
        )
        stats.summary()
        return stats

    def test(
        self,
        model: FittedModel,
        alpha: float = 0.05,
        cooks_filter: bool = True,
        independent_filter: bool = True,
        p_adjust_method: str = "fdr_bh",
    ) -> DEResultTable:
        """
        Wald test of the model contrast.

        Args:
            model: Fitted model
            alpha: Target FDR used by independent filtering
            cooks_filter: Flag outlier genes as not computed
            independent_filter: Mean-based independent filtering
            p_adjust_method: ``fdr_bh`` keeps PyDESeq2's adjustment; any other
                statsmodels method re-adjusts the genes PyDESeq2 tested

        Returns:
            DEResultTable: One row per gene in the fitted model
        """
        stats = self.build_stats(model, alpha, cooks_filter, independent_filter)
        table = stats.results_df[RESULT_COLUMNS].astype(np.float64).copy()
        table.index = model.counts.data.index

        if p_adjust_method != "fdr_bh":
            tested = table["padj"].notna()
            table["padj"] = self.statistical_analyzer.adjust_pvalues(
                table["pvalue"].where(tested), method=p_adjust_method
            )

        not_computed = int(table["pvalue"].isna().sum())
        if not_computed:
            self.logger.log_warning(
                f"{not_computed} genes have no p-value (outliers or all-zero counts)"
            )
        self.logger.log_step(
            "Wald test",
            f"{len(table)} genes tested, {int((table['padj'] < alpha).sum())} with padj < {alpha}",
        )
        return DEResultTable(data=table, contrast=model.contrast)

    @staticmethod
    def coefficient_name(contrast: Tuple[str, str, str]) -> str:
        factor, tested, _ = contrast
        return f"{factor}[T.{tested}]"

    def describe(self, model: FittedModel) -> str:
        """Human-readable model description for the run summary"""
        factor, tested, reference = model.contrast
        return f"{model.design.formula()} | {factor}: {tested} vs {reference}"
