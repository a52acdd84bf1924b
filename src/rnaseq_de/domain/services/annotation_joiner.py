"""
Left-outer joins of result/count tables against gene annotation.
"""

import pandas as pd

from rnaseq_de.domain.models import ANNOTATION_COLUMNS
from rnaseq_de.infrastructure.logger import Logger


class AnnotationJoiner:
    """Attach symbols, ontology terms and class labels without dropping rows"""

    def __init__(self):
        self.logger = Logger()

    def join(self, table: pd.DataFrame, annotation: pd.DataFrame) -> pd.DataFrame:
        """
        Left-outer join on the gene identifier index.

        Genes with several mappings appear once per mapping; genes without a
        mapping keep their data with null annotation fields.

        Args:
            table: Gene-indexed table (results or counts)
            annotation: Long table with ``gene_id, symbol, name, go_terms``

        Returns:
            pd.DataFrame: Joined table indexed by gene identifier
        """
        annotation = self._normalize(annotation, ANNOTATION_COLUMNS)
        joined = self._left_join(table, annotation)

        matched = joined["symbol"].notna().groupby(level=0).any()
        self.logger.log_step(
            "Annotation join",
            f"{int(matched.sum())}/{len(matched)} genes annotated, "
            f"{len(joined) - len(table)} extra rows from multiple mappings",
        )
        return joined

    def join_classes(self, table: pd.DataFrame, classes: pd.DataFrame) -> pd.DataFrame:
        """Left-outer join against ``gene_id, class_label`` classifier lists"""
        classes = self._normalize(classes, ["gene_id", "class_label"])
        joined = self._left_join(table, classes)
        self.logger.log_step(
            "Class join",
            f"{int(joined['class_label'].notna().sum())} rows with a class label",
        )
        return joined

    @staticmethod
    def _normalize(mapping: pd.DataFrame, columns) -> pd.DataFrame:
        mapping = mapping.copy()
        for column in columns:
            if column not in mapping.columns:
                mapping[column] = None
        mapping = mapping[columns]
        mapping["gene_id"] = mapping["gene_id"].astype(str)
        return mapping.drop_duplicates()

    @staticmethod
    def _left_join(table: pd.DataFrame, mapping: pd.DataFrame) -> pd.DataFrame:
        # Existing annotation columns are replaced rather than suffixed
        overlap = [c for c in mapping.columns if c != "gene_id" and c in table.columns]
        left = table.drop(columns=overlap)
        index_name = left.index.name or "gene_id"

        left = left.reset_index().rename(columns={left.index.name or "index": "gene_id"})
        left["gene_id"] = left["gene_id"].astype(str)
        joined = left.merge(mapping, on="gene_id", how="left", sort=False)
        joined = joined.set_index("gene_id")
        joined.index.name = index_name
        return joined
