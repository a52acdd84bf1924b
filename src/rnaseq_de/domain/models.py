"""
Core domain models for the RNA-Seq differential expression workflow.
Contains typed records for inputs, fitted models, results and configuration.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .errors import InputShapeError

RESULT_COLUMNS = ["baseMean", "log2FoldChange", "lfcSE", "stat", "pvalue", "padj"]

ANNOTATION_COLUMNS = ["gene_id", "symbol", "name", "go_terms"]


class TransformMode(Enum):
    """Transform applied to counts for visualization and clustering"""

    LOG2 = "log2"  # log2(normalized + 1)
    VST = "vst"  # variance-stabilizing transform
    RLOG = "rlog"  # regularized log


class ShrinkagePrior(Enum):
    """Prior used when re-estimating log2 fold changes"""

    NORMAL = "normal"  # zero-centred normal, empirical variance
    ADAPTIVE_T = "adaptive-t"  # apeglm-style adaptive Cauchy prior
    ADAPTIVE_HEAVY_TAILED = "adaptive-heavy-tailed"  # ashr-style normal mixture


@dataclass(frozen=True)
class CountMatrix:
    """Genes (rows) x samples (columns) of non-negative integer counts"""

    data: pd.DataFrame

    def __post_init__(self):
        df = self.data
        if df.shape[0] == 0 or df.shape[1] == 0:
            raise InputShapeError(f"Count matrix is empty (shape {df.shape})")
        if not df.index.is_unique:
            dupes = df.index[df.index.duplicated()].unique().tolist()
            raise InputShapeError(f"Duplicate gene identifiers: {dupes[:10]}")
        if not df.columns.is_unique:
            dupes = df.columns[df.columns.duplicated()].unique().tolist()
            raise InputShapeError(f"Duplicate sample identifiers: {dupes}")

        try:
            values = df.to_numpy(dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InputShapeError(f"Count matrix contains non-numeric values: {e}")
        if np.isnan(values).any():
            raise InputShapeError("Count matrix contains missing values")
        if (values < 0).any():
            raise InputShapeError("Count matrix contains negative counts")
        if not np.all(np.equal(np.mod(values, 1), 0)):
            raise InputShapeError("Count matrix contains non-integer counts")

        data = pd.DataFrame(
            values.astype(np.int64),
            index=df.index.astype(str),
            columns=df.columns.astype(str),
        )
        data.index.name = "gene_id"
        object.__setattr__(self, "data", data)

    @property
    def genes(self) -> List[str]:
        return self.data.index.tolist()

    @property
    def samples(self) -> List[str]:
        return self.data.columns.tolist()

    @property
    def shape(self) -> Tuple[int, int]:
        return self.data.shape

    def total_counts(self) -> pd.Series:
        """Per-gene count summed across samples"""
        return self.data.sum(axis=1)


@dataclass(frozen=True)
class SampleMetadata:
    """Samples (rows) x categorical covariates (columns)"""

    data: pd.DataFrame

    def __post_init__(self):
        df = self.data
        if df.shape[0] == 0:
            raise InputShapeError("Sample metadata is empty")
        if not df.index.is_unique:
            dupes = df.index[df.index.duplicated()].unique().tolist()
            raise InputShapeError(f"Duplicate sample identifiers in metadata: {dupes}")
        data = df.copy()
        data.index = data.index.astype(str)
        data.index.name = "sample_id"
        object.__setattr__(self, "data", data)

    @property
    def samples(self) -> List[str]:
        return self.data.index.tolist()

    def levels(self, factor: str) -> List[str]:
        """Sorted distinct observed levels of a covariate"""
        return sorted(self.data[factor].dropna().astype(str).unique().tolist())


@dataclass(frozen=True)
class DesignSpec:
    """
    Model design: ordered factors, optional interaction and contrast.

    The final listed factor is the one tested by default.
    """

    factors: Tuple[str, ...]
    interaction: bool = False
    contrast: Optional[Tuple[str, str, str]] = None  # (factor, tested, reference)
    reference_level: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "factors", tuple(self.factors))
        if not self.factors:
            raise ValueError("Design requires at least one factor")
        if self.interaction and len(self.factors) < 2:
            raise ValueError("An interaction term requires at least two factors")
        if self.contrast is not None:
            if len(self.contrast) != 3:
                raise ValueError("Contrast must be (factor, tested_level, reference_level)")
            object.__setattr__(self, "contrast", tuple(self.contrast))

    @property
    def tested_factor(self) -> str:
        if self.contrast is not None:
            return self.contrast[0]
        return self.factors[-1]

    def formula(self) -> str:
        terms = list(self.factors)
        if self.interaction:
            terms.append(":".join(self.factors))
        return "~" + " + ".join(terms)


@dataclass
class FittedModel:
    """Per-gene fit produced by the negative binomial GLM"""

    dds: Any  # pydeseq2.dds.DeseqDataSet
    design: DesignSpec
    contrast: Tuple[str, str, str]
    size_factors: pd.Series
    dispersions: pd.Series
    genewise_dispersions: pd.Series
    trend_dispersions: pd.Series
    normalized_counts: pd.DataFrame
    coefficients: pd.DataFrame
    counts: CountMatrix
    metadata: SampleMetadata

    @property
    def coefficient_name(self) -> str:
        factor, tested, _ = self.contrast
        return f"{factor}[T.{tested}]"


@dataclass(frozen=True)
class DEResultTable:
    """
    Per-gene differential expression results.

    NaN p-values mean "not computed" (outlier, all-zero or independently
    filtered gene) and are never replaced with a number.
    """

    data: pd.DataFrame
    contrast: Tuple[str, str, str]
    shrinkage: Optional[ShrinkagePrior] = None

    def __post_init__(self):
        missing = [c for c in RESULT_COLUMNS if c not in self.data.columns]
        if missing:
            raise ValueError(f"Result table missing columns: {missing}")
        padj = self.data["padj"].dropna()
        if ((padj < 0) | (padj > 1)).any():
            raise ValueError("Adjusted p-values must lie in [0, 1]")
        data = self.data.copy()
        data.index = data.index.astype(str)
        data.index.name = "gene_id"
        object.__setattr__(self, "data", data)

    @property
    def genes(self) -> List[str]:
        return self.data.index.tolist()

    def __len__(self) -> int:
        return len(self.data)

    def with_data(
        self, data: pd.DataFrame, shrinkage: Optional[ShrinkagePrior] = None
    ) -> "DEResultTable":
        """Derive a new table carrying the same contrast"""
        return DEResultTable(
            data=data,
            contrast=self.contrast,
            shrinkage=shrinkage if shrinkage is not None else self.shrinkage,
        )


@dataclass
class WorkflowConfig:
    """Configuration for the differential expression workflow"""

    counts_file: str
    metadata_file: str
    out_dir: str
    design: DesignSpec
    name: str = "deseq"
    min_total_count: int = 10
    transform: TransformMode = TransformMode.VST
    blind: bool = True
    shrinkage: Optional[ShrinkagePrior] = ShrinkagePrior.ADAPTIVE_T
    alpha: float = 0.05
    lfc_cutoff: float = 1.0
    p_adjust_method: str = "fdr_bh"
    top_n: int = 50
    cooks_filter: bool = True
    independent_filter: bool = True
    reorder_samples: bool = False
    gene_class_files: List[str] = field(default_factory=list)
    annotation_file: Optional[str] = None
    annotation_cache: Optional[str] = None
    species: str = "human"
    offline: bool = False
    skip_annotation: bool = False
    skip_plots: bool = False
    n_cpus: int = 1
    log_file: Optional[str] = None


@dataclass
class WorkflowResult:
    """Auditable chain of tables produced by one workflow run"""

    raw_counts: CountMatrix
    metadata: SampleMetadata
    filtered_counts: CountMatrix
    model: FittedModel
    transformed: pd.DataFrame
    results: DEResultTable
    shrunken: Optional[DEResultTable]
    significant: pd.DataFrame
    top_genes: pd.DataFrame
    annotated: Optional[pd.DataFrame]
    summary: Dict[str, Any]
    output_files: Dict[str, str] = field(default_factory=dict)
