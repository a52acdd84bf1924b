"""
Command line argument parsing and validation for the differential expression workflow.
"""

import argparse
import os
from typing import List, Optional, Sequence, Tuple, Union

from rnaseq_de.domain.models import DesignSpec, ShrinkagePrior, TransformMode, WorkflowConfig
from rnaseq_de.infrastructure.logger import Logger

P_ADJUST_METHODS = ["fdr_bh", "fdr_by", "bonferroni", "holm", "hommel", "sidak"]


class ArgumentParser:
    """Command line argument parsing and validation"""

    def __init__(self):
        self.logger = Logger()
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create and configure the argument parser"""
        parser = argparse.ArgumentParser(
            prog="rnaseq-de",
            description="RNA-Seq differential expression workflow (negative binomial GLM)",
        )

        # Required arguments
        parser.add_argument(
            "-c", "--counts",
            type=str,
            required=True,
            help="Tab-delimited count matrix: genes in rows, samples in columns",
        )
        parser.add_argument(
            "-m", "--metadata",
            type=str,
            required=True,
            help="Comma-delimited sample metadata; first column holds sample identifiers",
        )
        parser.add_argument(
            "-o", "--out_dir",
            type=str,
            required=True,
            help="Output directory for saving results",
        )
        parser.add_argument(
            "--design",
            type=str,
            required=True,
            help="Comma-separated design factors (e.g. 'batch,condition'). The last factor is tested by default.",
        )

        # Optional arguments with defaults
        parser.add_argument(
            "-n", "--name",
            type=str,
            default="deseq",
            help="Prefix for output files (default: deseq)",
        )
        parser.add_argument(
            "--interaction",
            action="store_true",
            help="Add the interaction of the listed design factors",
        )
        parser.add_argument(
            "--contrast",
            type=str,
            help="Contrast as 'factor,tested_level,reference_level'",
        )
        parser.add_argument(
            "--reference-level",
            type=str,
            help="Reference level of the tested factor when no contrast is given",
        )
        parser.add_argument(
            "--min-count",
            type=int,
            default=10,
            help="Genes with fewer total counts across samples are removed (default: 10)",
        )
        parser.add_argument(
            "--transform",
            choices=[mode.value for mode in TransformMode],
            default=TransformMode.VST.value,
            help="Transform for visualization and clustering (default: vst)",
        )
        parser.add_argument(
            "--blind",
            action=argparse.BooleanOptionalAction,
            default=True,
            help="Transform blind to the design (default: blind)",
        )
        parser.add_argument(
            "--shrinkage",
            choices=["none"] + [prior.value for prior in ShrinkagePrior],
            default=ShrinkagePrior.ADAPTIVE_T.value,
            help="Prior for log2 fold-change shrinkage (default: adaptive-t)",
        )
        parser.add_argument(
            "-a", "--alpha",
            type=float,
            default=0.05,
            help="Adjusted p-value cutoff (default: 0.05)",
        )
        parser.add_argument(
            "--lfc-cutoff",
            type=float,
            default=1.0,
            help="Minimum absolute log2 fold change for significance (default: 1.0)",
        )
        parser.add_argument(
            "--p-adjust",
            choices=P_ADJUST_METHODS,
            default="fdr_bh",
            help="Multiple-testing correction (default: fdr_bh)",
        )
        parser.add_argument(
            "--top-n",
            type=int,
            default=50,
            help="Number of top-ranked genes for the table and heatmap (default: 50)",
        )
        parser.add_argument(
            "--no-cooks-filter",
            action="store_true",
            help="Disable Cook's distance outlier filtering",
        )
        parser.add_argument(
            "--no-independent-filter",
            action="store_true",
            help="Disable independent filtering of low-mean genes",
        )
        parser.add_argument(
            "--reorder-samples",
            action="store_true",
            help="Reorder count columns to metadata order instead of failing on an order mismatch",
        )
        parser.add_argument(
            "--gene-classes",
            type=str,
            action="append",
            default=[],
            help="Classifier gene list of 'gene_id class_label' pairs (repeatable)",
        )
        parser.add_argument(
            "--annotation-file",
            type=str,
            help="Local gene_id -> symbol mapping table; bypasses the annotation service",
        )
        parser.add_argument(
            "--annotation-cache",
            type=str,
            help="Tab-delimited cache file for annotation service lookups",
        )
        parser.add_argument(
            "--species",
            type=str,
            default="human",
            help="Species for annotation lookups (default: human)",
        )
        parser.add_argument(
            "--offline",
            action="store_true",
            help="Never query the annotation service; use the cache only",
        )
        parser.add_argument(
            "--skip-annotation",
            action="store_true",
            help="Skip the annotation join",
        )
        parser.add_argument(
            "--skip-plots",
            action="store_true",
            help="Skip plot generation",
        )
        parser.add_argument(
            "--n-cpus",
            type=int,
            default=1,
            help="Worker processes for per-gene model fitting (default: 1)",
        )
        parser.add_argument(
            "--log-file",
            type=str,
            help="Additional log file",
        )

        return parser

    def parse_arguments(self, args: Optional[Sequence[str]] = None) -> WorkflowConfig:
        """Parse command line arguments and return WorkflowConfig"""
        args = self.parser.parse_args(args)

        try:
            design = DesignSpec(
                factors=tuple(self._parse_list(args.design)),
                interaction=args.interaction,
                contrast=self._parse_contrast(args.contrast),
                reference_level=args.reference_level,
            )
        except ValueError as e:
            self.logger.log_error(e, "Design parsing")
            raise ValueError("Invalid configuration") from e

        config = WorkflowConfig(
            counts_file=args.counts,
            metadata_file=args.metadata,
            out_dir=args.out_dir,
            design=design,
            name=args.name,
            min_total_count=args.min_count,
            transform=TransformMode(args.transform),
            blind=args.blind,
            shrinkage=None if args.shrinkage == "none" else ShrinkagePrior(args.shrinkage),
            alpha=args.alpha,
            lfc_cutoff=args.lfc_cutoff,
            p_adjust_method=args.p_adjust,
            top_n=args.top_n,
            cooks_filter=not args.no_cooks_filter,
            independent_filter=not args.no_independent_filter,
            reorder_samples=args.reorder_samples,
            gene_class_files=list(args.gene_classes),
            annotation_file=args.annotation_file,
            annotation_cache=args.annotation_cache,
            species=args.species,
            offline=args.offline,
            skip_annotation=args.skip_annotation,
            skip_plots=args.skip_plots,
            n_cpus=args.n_cpus,
            log_file=args.log_file,
        )

        # Validate configuration
        if not self.validate_config(config):
            raise ValueError("Invalid configuration")

        return config

    def _parse_list(self, values: Union[str, List[str], None]) -> List[str]:
        """Parse a comma-separated string (quotes stripped) into items"""
        if values is None:
            return []
        if isinstance(values, str):
            values = values.strip('"').strip("'").split(",")
        return [v.strip().strip('"').strip("'") for v in values if v.strip()]

    def _parse_contrast(self, contrast: Optional[str]) -> Optional[Tuple[str, str, str]]:
        if contrast is None:
            return None
        parts = self._parse_list(contrast)
        if len(parts) != 3:
            raise ValueError(
                f"Contrast must be 'factor,tested_level,reference_level', got '{contrast}'"
            )
        return tuple(parts)

    def validate_config(self, config: WorkflowConfig) -> bool:
        """Validate the workflow configuration"""
        valid = True
        try:
            # Check if output directory can be created
            os.makedirs(config.out_dir, exist_ok=True)

            # Check input files exist
            input_files = [config.counts_file, config.metadata_file] + list(config.gene_class_files)
            if config.annotation_file:
                input_files.append(config.annotation_file)
            for path in input_files:
                if not os.path.exists(path):
                    self.logger.log_error(
                        FileNotFoundError(f"Input file not found: {path}"),
                        "Configuration validation",
                    )
                    valid = False

            # Validate numeric parameters
            if not 0 < config.alpha < 1:
                self.logger.log_warning(f"Alpha value {config.alpha} is outside (0, 1)")
                valid = False

            if config.min_total_count < 0:
                self.logger.log_warning(f"Minimum count {config.min_total_count} is negative")
                valid = False

            if config.lfc_cutoff < 0:
                self.logger.log_warning(f"Log2 fold-change cutoff {config.lfc_cutoff} is negative")
                valid = False

            if config.top_n < 0:
                self.logger.log_warning(f"Top-N {config.top_n} is negative")
                valid = False

            if config.n_cpus < 1:
                self.logger.log_warning(f"n_cpus {config.n_cpus} is below 1; using 1")
                config.n_cpus = 1

            if config.offline and not (config.annotation_cache or config.annotation_file):
                self.logger.log_warning(
                    "Offline mode without an annotation cache or file: genes stay unannotated"
                )

            if config.design.contrast and config.design.reference_level:
                self.logger.log_warning(
                    "--reference-level is ignored when an explicit --contrast is given"
                )

            if valid:
                self.logger.log_success("Configuration validation passed")
            return valid

        except OSError as e:
            self.logger.log_error(e, "Configuration validation")
            return False
