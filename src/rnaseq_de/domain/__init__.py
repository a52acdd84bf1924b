"""
This package contains the domain layer for the differential expression workflow.

The domain layer holds the typed records and the pure pipeline stages.
"""

from .errors import (
    DegenerateDesignError,
    InputShapeError,
    SampleMismatchError,
    WorkflowError,
)
from .models import (
    CountMatrix,
    DEResultTable,
    DesignSpec,
    FittedModel,
    SampleMetadata,
    ShrinkagePrior,
    TransformMode,
    WorkflowConfig,
    WorkflowResult,
)

__all__ = [
    "CountMatrix",
    "DEResultTable",
    "DegenerateDesignError",
    "DesignSpec",
    "FittedModel",
    "InputShapeError",
    "SampleMetadata",
    "SampleMismatchError",
    "ShrinkagePrior",
    "TransformMode",
    "WorkflowConfig",
    "WorkflowError",
    "WorkflowResult",
]
