"""
Pipeline-stage services for the differential expression workflow.
"""

from .annotation_joiner import AnnotationJoiner
from .clustering_analyzer import ClusteringAnalyzer
from .count_filter import CountFilter
from .de_model import DifferentialExpressionModel
from .expression_transformer import ExpressionTransformer
from .lfc_shrinker import LFCShrinker
from .sample_aligner import SampleAligner
from .significance_filter import SignificanceFilter
from .statistical_analyzer import StatisticalAnalyzer

__all__ = [
    "AnnotationJoiner",
    "ClusteringAnalyzer",
    "CountFilter",
    "DifferentialExpressionModel",
    "ExpressionTransformer",
    "LFCShrinker",
    "SampleAligner",
    "SignificanceFilter",
    "StatisticalAnalyzer",
]
