"""
Error taxonomy for the differential expression workflow.

Input-shape and degenerate-design problems are fatal and raised before any
computation. Per-gene numeric failures and annotation misses are never raised;
they surface as NaN / null fields in the result tables.
"""

from typing import Iterable, List


class WorkflowError(ValueError):
    """Base class for configuration and data errors raised by the workflow"""


class InputShapeError(WorkflowError):
    """A count matrix or metadata table is malformed"""


class SampleMismatchError(InputShapeError):
    """Sample identifiers differ between the count matrix and the metadata"""

    def __init__(
        self,
        missing_in_counts: Iterable[str] = (),
        missing_in_metadata: Iterable[str] = (),
        misordered: bool = False,
    ):
        self.missing_in_counts: List[str] = sorted(missing_in_counts)
        self.missing_in_metadata: List[str] = sorted(missing_in_metadata)
        self.misordered = misordered

        parts = []
        if self.missing_in_counts:
            parts.append(
                f"metadata samples missing from count matrix: {self.missing_in_counts}"
            )
        if self.missing_in_metadata:
            parts.append(
                f"count matrix samples missing from metadata: {self.missing_in_metadata}"
            )
        if misordered and not parts:
            parts.append(
                "count matrix columns are not in metadata row order "
                "(use an explicit reordering step)"
            )
        super().__init__("Sample mismatch: " + "; ".join(parts))


class DegenerateDesignError(WorkflowError):
    """A design factor is missing or cannot support a contrast"""
