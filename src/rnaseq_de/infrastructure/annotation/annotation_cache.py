"""
Local tab-delimited cache of gene annotation lookups.
"""

import os
from typing import Iterable, List, Tuple

import pandas as pd

from rnaseq_de.domain.models import ANNOTATION_COLUMNS
from rnaseq_de.infrastructure.logger import Logger


class AnnotationCache:
    """
    Gene identifier -> annotation rows persisted between runs.

    Identifiers that were looked up without a match are stored with empty
    annotation fields so they are not queried again.
    """

    def __init__(self, file_path: str):
        self.file_path = file_path
        self.logger = Logger()

    def load(self) -> pd.DataFrame:
        if not os.path.exists(self.file_path):
            return pd.DataFrame(columns=ANNOTATION_COLUMNS)
        cached = pd.read_csv(self.file_path, sep="\t", dtype=str, keep_default_na=False)
        cached = cached.mask(cached == "")
        for column in ANNOTATION_COLUMNS:
            if column not in cached.columns:
                cached[column] = None
        return cached[ANNOTATION_COLUMNS]

    def lookup(self, gene_ids: Iterable[str]) -> Tuple[pd.DataFrame, List[str]]:
        """
        Split identifiers into cached annotation rows and identifiers still to fetch.

        Returns:
            Tuple of (cached rows for the requested genes, uncached identifiers)
        """
        gene_ids = [str(g) for g in gene_ids]
        cached = self.load()
        known = set(cached["gene_id"])
        hits = cached[cached["gene_id"].isin(gene_ids)]
        missing = [g for g in dict.fromkeys(gene_ids) if g not in known]
        self.logger.log_step(
            "Annotation cache",
            f"{len(gene_ids) - len(missing)} cached, {len(missing)} to fetch ({self.file_path})",
        )
        return hits.reset_index(drop=True), missing

    def store(self, annotation: pd.DataFrame) -> None:
        """Add rows for identifiers not yet in the cache"""
        if annotation.empty:
            return
        cached = self.load()
        new_rows = annotation.loc[~annotation["gene_id"].isin(set(cached["gene_id"])), ANNOTATION_COLUMNS]
        if new_rows.empty:
            return

        directory = os.path.dirname(self.file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        combined = pd.concat([cached, new_rows], ignore_index=True)
        combined.to_csv(self.file_path, sep="\t", index=False)
        self.logger.log_save(self.file_path)
