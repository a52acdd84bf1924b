"""
Data loading and initial validation for the differential expression workflow.
"""

import os
import re
from typing import Tuple

import pandas as pd

from rnaseq_de.domain.errors import InputShapeError
from rnaseq_de.domain.models import CountMatrix, SampleMetadata, WorkflowConfig
from rnaseq_de.infrastructure.logger import Logger


class DataLoader:
    """Responsible for loading and initial validation of input tables"""

    def __init__(self):
        self.logger = Logger()

    def load_counts(self, file_path: str) -> CountMatrix:
        """
        Load a tab-delimited feature-count matrix.

        The header row holds sample identifiers; the first column holds gene
        identifiers.

        Args:
            file_path: Path to the count matrix

        Returns:
            CountMatrix: Validated genes x samples counts

        Raises:
            FileNotFoundError: If file doesn't exist
            InputShapeError: If the table cannot be parsed as counts
        """
        self._require(file_path)
        try:
            df = pd.read_csv(file_path, sep="\t", index_col=0, comment="#")
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            self.logger.log_error(e, f"Loading count matrix from {file_path}")
            raise InputShapeError(f"Invalid count matrix file: {file_path}") from e

        counts = CountMatrix(df)
        self.logger.log_matrix_shape("Loaded count matrix", counts.shape)
        self.logger.log_success(f"Successfully loaded counts from {file_path}")
        return counts

    def load_metadata(self, file_path: str) -> SampleMetadata:
        """
        Load comma-delimited sample metadata (sample identifiers in the first column).

        All covariates are read as strings so numeric-looking levels stay categorical.
        """
        self._require(file_path)
        try:
            df = pd.read_csv(file_path, index_col=0, dtype=str, skipinitialspace=True)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            self.logger.log_error(e, f"Loading metadata from {file_path}")
            raise InputShapeError(f"Invalid metadata file: {file_path}") from e

        df.columns = [str(c).strip() for c in df.columns]
        df = df.apply(lambda column: column.str.strip())
        metadata = SampleMetadata(df)

        self.logger.log_step(
            "Metadata loaded",
            f"{len(metadata.samples)} samples, covariates: {metadata.data.columns.tolist()}",
        )
        return metadata

    def load_gene_classes(self, file_path: str) -> pd.DataFrame:
        """
        Load a classifier gene list of (gene identifier, class label) pairs.

        Tabs, commas or whitespace separate the fields; a leading header row
        starting with ``gene`` or ``gene_id`` is skipped.

        Returns:
            pd.DataFrame: ``gene_id, class_label``
        """
        self._require(file_path)
        rows = []
        with open(file_path, "r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                fields = [f for f in re.split(r"[\t,]|\s+", line) if f]
                if line_number == 1 and fields[0].lower() in ("gene", "gene_id", "geneid"):
                    continue
                if len(fields) < 2:
                    self.logger.log_warning(
                        f"{file_path}:{line_number}: expected 'gene_id class_label', got '{line}'"
                    )
                    continue
                rows.append((fields[0], " ".join(fields[1:])))

        classes = pd.DataFrame(rows, columns=["gene_id", "class_label"])
        self.logger.log_step(
            "Gene classes loaded",
            f"{len(classes)} entries, {classes['class_label'].nunique()} classes from {file_path}",
        )
        return classes

    def load_inputs(self, config: WorkflowConfig) -> Tuple[CountMatrix, SampleMetadata]:
        """Load counts and metadata named by the configuration"""
        counts = self.load_counts(config.counts_file)
        metadata = self.load_metadata(config.metadata_file)
        return counts, metadata

    def _require(self, file_path: str) -> None:
        if not os.path.exists(file_path):
            error = FileNotFoundError(f"File not found: {file_path}")
            self.logger.log_error(error, "Data loading")
            raise error
