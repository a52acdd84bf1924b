"""
Identifier alignment between the count matrix and the sample metadata.
"""

from rnaseq_de.domain.errors import DegenerateDesignError, SampleMismatchError
from rnaseq_de.domain.models import CountMatrix, DesignSpec, SampleMetadata
from rnaseq_de.infrastructure.logger import Logger


class SampleAligner:
    """Checks that counts and metadata describe the same samples"""

    def __init__(self):
        self.logger = Logger()

    def check_alignment(self, counts: CountMatrix, metadata: SampleMetadata) -> None:
        """
        Fail unless count columns and metadata rows match exactly, in order.

        Raises:
            SampleMismatchError: On any missing identifier or ordering difference
        """
        count_samples = counts.samples
        meta_samples = metadata.samples

        missing_in_counts = set(meta_samples) - set(count_samples)
        missing_in_metadata = set(count_samples) - set(meta_samples)
        if missing_in_counts or missing_in_metadata:
            raise SampleMismatchError(missing_in_counts, missing_in_metadata)

        if count_samples != meta_samples:
            raise SampleMismatchError(misordered=True)

        self.logger.log_success(f"Sample identifiers aligned ({len(count_samples)} samples)")

    def align(self, counts: CountMatrix, metadata: SampleMetadata) -> CountMatrix:
        """
        Explicitly reorder count columns to metadata row order.

        Sets must still match; only the ordering is repaired, and the
        reordering is logged.

        Returns:
            CountMatrix: New matrix with columns in metadata order
        """
        missing_in_counts = set(metadata.samples) - set(counts.samples)
        missing_in_metadata = set(counts.samples) - set(metadata.samples)
        if missing_in_counts or missing_in_metadata:
            raise SampleMismatchError(missing_in_counts, missing_in_metadata)

        if counts.samples == metadata.samples:
            return counts

        self.logger.log_warning(
            f"Reordering count columns {counts.samples} -> {metadata.samples}"
        )
        return CountMatrix(counts.data[metadata.samples])

    def validate_design(self, metadata: SampleMetadata, design: DesignSpec) -> None:
        """
        Check every design factor is present with at least two observed levels.

        Raises:
            DegenerateDesignError: If a factor or contrast level is unusable
        """
        for factor in design.factors:
            if factor not in metadata.data.columns:
                raise DegenerateDesignError(
                    f"Design factor '{factor}' not found in metadata columns "
                    f"{metadata.data.columns.tolist()}"
                )
            if metadata.data[factor].isna().any():
                raise DegenerateDesignError(f"Design factor '{factor}' has missing values")
            levels = metadata.levels(factor)
            if len(levels) < 2:
                raise DegenerateDesignError(
                    f"Design factor '{factor}' has fewer than two observed levels: {levels}"
                )

        if design.contrast is not None:
            factor, tested, reference = design.contrast
            if factor not in design.factors:
                raise DegenerateDesignError(
                    f"Contrast factor '{factor}' is not part of the design {design.factors}"
                )
            levels = metadata.levels(factor)
            for level in (tested, reference):
                if level not in levels:
                    raise DegenerateDesignError(
                        f"Contrast level '{level}' not observed for '{factor}' ({levels})"
                    )
            if tested == reference:
                raise DegenerateDesignError("Contrast compares a level with itself")
        elif design.reference_level is not None:
            levels = metadata.levels(design.tested_factor)
            if design.reference_level not in levels:
                raise DegenerateDesignError(
                    f"Reference level '{design.reference_level}' not observed for "
                    f"'{design.tested_factor}' ({levels})"
                )

        self.logger.log_success(f"Design {design.formula()} validated")
