"""
This package contains the application layer for the differential expression workflow.

The application layer is responsible for orchestrating the pipeline stages.
"""

from .de_workflow_service import DifferentialExpressionService

__all__ = ["DifferentialExpressionService"]
