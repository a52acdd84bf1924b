"""
Main application service orchestrating the differential expression workflow.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from rnaseq_de.domain.models import (
    CountMatrix,
    DEResultTable,
    SampleMetadata,
    WorkflowConfig,
    WorkflowResult,
)
from rnaseq_de.domain.services import (
    AnnotationJoiner,
    ClusteringAnalyzer,
    CountFilter,
    DifferentialExpressionModel,
    ExpressionTransformer,
    LFCShrinker,
    SampleAligner,
    SignificanceFilter,
)
from rnaseq_de.infrastructure.annotation import AnnotationCache, AnnotationClient
from rnaseq_de.infrastructure.data import DataLoader, DataSaver
from rnaseq_de.infrastructure.logger import Logger
from rnaseq_de.presentation.visualization import PlotGenerator


class DifferentialExpressionService:
    """Main application service orchestrating the entire workflow"""

    def __init__(self, config: WorkflowConfig):
        self.config = config
        self.logger = Logger(log_file=config.log_file)

        # Initialize all services
        self.data_loader = DataLoader()
        self.data_saver = DataSaver()
        self.sample_aligner = SampleAligner()
        self.count_filter = CountFilter()
        self.de_model = DifferentialExpressionModel(n_cpus=config.n_cpus)
        self.lfc_shrinker = LFCShrinker(self.de_model)
        self.expression_transformer = ExpressionTransformer()
        self.significance_filter = SignificanceFilter()
        self.annotation_joiner = AnnotationJoiner()
        self.clustering_analyzer = ClusteringAnalyzer()
        self.annotation_client = AnnotationClient(
            species=config.species,
            cache=AnnotationCache(config.annotation_cache) if config.annotation_cache else None,
            offline=config.offline,
        )
        self.plot_generator = PlotGenerator(clustering_analyzer=self.clustering_analyzer)

    def run(self) -> WorkflowResult:
        """
        Main processing pipeline.

        Returns:
            WorkflowResult: Every intermediate table of the run
        """
        config = self.config
        self.logger.log_step("Workflow", f"Starting differential expression run '{config.name}'")

        # Step 1: Load inputs and check them against each other
        raw_counts, metadata = self._load_and_check()

        # Step 2: Drop low-count genes
        filtered = self.count_filter.filter_low_counts(raw_counts, config.min_total_count)

        # Step 3: Fit the negative binomial GLM and test the contrast
        model = self.de_model.fit(filtered, metadata, config.design)
        self.logger.log_step("Model", self.de_model.describe(model))
        results = self.de_model.test(
            model,
            alpha=config.alpha,
            cooks_filter=config.cooks_filter,
            independent_filter=config.independent_filter,
            p_adjust_method=config.p_adjust_method,
        )

        # Step 4: Shrink fold changes for ranking and display
        shrunken = None
        if config.shrinkage is not None:
            shrunken = self.lfc_shrinker.shrink(model, results, config.shrinkage)

        # Step 5: Transform counts for clustering and plots
        transformed = self.expression_transformer.transform(
            filtered,
            mode=config.transform,
            blind=config.blind,
            model=model,
            metadata=metadata,
            design=config.design,
        )

        # Step 6: Significance calls on the unshrunken table, then ranking
        significant = self._with_shrunken_lfc(
            self.significance_filter.filter_significant(results, config.alpha, config.lfc_cutoff),
            shrunken,
        )
        ranked = self._with_shrunken_lfc(self.significance_filter.rank(results), shrunken)
        top_genes = self.significance_filter.top_n(ranked, config.top_n)
        counts_summary = self.significance_filter.summarize(
            results, config.alpha, config.lfc_cutoff, significant=significant
        )

        # Step 7: Annotation
        annotated = self._annotate(ranked)

        result = WorkflowResult(
            raw_counts=raw_counts,
            metadata=metadata,
            filtered_counts=filtered,
            model=model,
            transformed=transformed,
            results=results,
            shrunken=shrunken,
            significant=significant,
            top_genes=top_genes,
            annotated=annotated,
            summary={},
        )

        # Step 8: Save tables and plots
        result.output_files = self.data_saver.save_results(result, config)
        if not config.skip_plots:
            self.plot_generator.create_all_visualizations(result, config)

        # Step 9: Run summary
        result.summary = self._build_summary(result, counts_summary)
        result.output_files["run_summary"] = self.data_saver.save_summary(
            result.summary, config.out_dir
        )

        self.logger.log_success(
            f"Workflow complete: {counts_summary['genes_significant']} significant genes "
            f"({counts_summary['genes_up']} up, {counts_summary['genes_down']} down)"
        )
        return result

    def _load_and_check(self) -> Tuple[CountMatrix, SampleMetadata]:
        """Load inputs; mismatches and degenerate designs raise before any computation"""
        counts, metadata = self.data_loader.load_inputs(self.config)

        if self.config.reorder_samples:
            counts = self.sample_aligner.align(counts, metadata)
        else:
            self.sample_aligner.check_alignment(counts, metadata)

        self.sample_aligner.validate_design(metadata, self.config.design)
        return counts, metadata

    @staticmethod
    def _with_shrunken_lfc(
        table: pd.DataFrame, shrunken: Optional[DEResultTable]
    ) -> pd.DataFrame:
        """Add the shrunken estimate beside the unshrunken columns"""
        if shrunken is None:
            return table
        table = table.copy()
        table["log2FoldChange_shrunken"] = shrunken.data["log2FoldChange"].reindex(table.index)
        table["lfcSE_shrunken"] = shrunken.data["lfcSE"].reindex(table.index)
        return table

    def _annotate(self, ranked: pd.DataFrame) -> Optional[pd.DataFrame]:
        """Join symbols and classifier labels onto the ranked result table"""
        config = self.config
        if config.skip_annotation and not config.gene_class_files:
            self.logger.log_step("Annotation", "Skipped")
            return None

        annotated = ranked
        if not config.skip_annotation:
            if config.annotation_file:
                mapping = self.annotation_client.load_mapping_file(config.annotation_file)
            else:
                mapping = self.annotation_client.annotate(ranked.index)
            annotated = self.annotation_joiner.join(annotated, mapping)

        if config.gene_class_files:
            classes = pd.concat(
                [self.data_loader.load_gene_classes(path) for path in config.gene_class_files],
                ignore_index=True,
            )
            annotated = self.annotation_joiner.join_classes(annotated, classes)

        return annotated

    def _build_summary(
        self, result: WorkflowResult, counts_summary: Dict[str, int]
    ) -> Dict[str, Any]:
        config = self.config
        factor, tested, reference = result.model.contrast
        summary = {
            "Run": config.name,
            "Timestamp": datetime.now().isoformat(timespec="seconds"),
            "CountsFile": config.counts_file,
            "MetadataFile": config.metadata_file,
            "Design": config.design.formula(),
            "Contrast": f"{factor}:{tested}_vs_{reference}",
            "Samples": result.raw_counts.shape[1],
            "GenesInput": result.raw_counts.shape[0],
            "GenesAfterFilter": result.filtered_counts.shape[0],
            "MinTotalCount": config.min_total_count,
            "Transform": config.transform.value,
            "Blind": config.blind,
            "Shrinkage": config.shrinkage.value if config.shrinkage is not None else "none",
            "Alpha": config.alpha,
            "LFCCutoff": config.lfc_cutoff,
            "PAdjust": config.p_adjust_method,
            "CooksFilter": config.cooks_filter,
            "IndependentFilter": config.independent_filter,
            "MedianSizeFactor": float(result.model.size_factors.median()),
        }
        summary.update(counts_summary)
        return summary
