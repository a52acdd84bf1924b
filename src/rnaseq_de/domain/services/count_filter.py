"""
Low-count gene filtering.
"""

from rnaseq_de.domain.models import CountMatrix
from rnaseq_de.infrastructure.logger import Logger


class CountFilter:
    """Removes genes whose total count is below a threshold"""

    def __init__(self):
        self.logger = Logger()

    def filter_low_counts(
        self, counts: CountMatrix, min_total_count: int = 10
    ) -> CountMatrix:
        """
        Drop genes whose count summed across samples is below the threshold.

        Re-applying the filter to its own output returns the same genes.

        Args:
            counts: Count matrix
            min_total_count: Minimum total count a gene needs to be kept

        Returns:
            CountMatrix: New matrix with the surviving genes, original order kept
        """
        if min_total_count < 0:
            raise ValueError(f"min_total_count must be non-negative, got {min_total_count}")

        totals = counts.total_counts()
        keep = totals >= min_total_count
        filtered = CountMatrix(counts.data.loc[keep])

        removed = int((~keep).sum())
        self.logger.log_step(
            "Low-count filter",
            f"Removed {removed} genes with total count < {min_total_count}",
        )
        self.logger.log_matrix_shape("Filtered counts", filtered.shape)
        return filtered
