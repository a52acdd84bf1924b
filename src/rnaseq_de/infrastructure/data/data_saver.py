"""
Data saving functionality for the differential expression workflow.
"""

import csv
import os
from typing import Any, Dict

import pandas as pd

from rnaseq_de.domain.models import WorkflowConfig, WorkflowResult
from rnaseq_de.infrastructure.logger import Logger


class DataSaver:
    """Responsible for saving result tables and the run summary"""

    SUMMARY_FILE = "run_summary.tsv"

    def __init__(self):
        self.logger = Logger()

    def save_table(self, df: pd.DataFrame, file_path: str, index: bool = True) -> str:
        """
        Save a table as tab-delimited text.

        Args:
            df: Table to save
            file_path: Output file path
            index: Whether the index (gene or sample identifiers) is written

        Returns:
            str: The path written
        """
        try:
            # Ensure directory exists
            directory = os.path.dirname(file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            df.to_csv(file_path, sep="\t", index=index, na_rep="NA", float_format="%.8g")
            self.logger.log_save(file_path)
            return file_path

        except Exception as e:
            self.logger.log_error(e, f"Saving table to {file_path}")
            raise

    def output_path(self, config: WorkflowConfig, kind: str) -> str:
        return os.path.join(config.out_dir, f"{config.name}_{kind}.tsv")

    def save_results(self, results: WorkflowResult, config: WorkflowConfig) -> Dict[str, str]:
        """
        Save every result table of a run.

        Args:
            results: Workflow results
            config: Workflow configuration

        Returns:
            Dict[str, str]: Output kind -> written path
        """
        try:
            model = results.model
            tables = {
                "Filtered_Counts": results.filtered_counts.data,
                "Normalized_Counts": model.normalized_counts,
                "Transformed_Counts": results.transformed,
                "Size_Factors": model.size_factors.rename("size_factor").to_frame(),
                "Dispersions": pd.DataFrame(
                    {
                        "baseMean": results.results.data["baseMean"],
                        "genewise": model.genewise_dispersions,
                        "trend": model.trend_dispersions,
                        "final": model.dispersions,
                    }
                ),
                "DE_Results": results.results.data,
            }
            if results.shrunken is not None:
                tables["DE_Results_Shrunken"] = results.shrunken.data
            tables["DE_Significant"] = results.significant
            tables[f"DE_Top{config.top_n}"] = results.top_genes
            if results.annotated is not None:
                tables["DE_Annotated"] = results.annotated

            written = {}
            for kind, df in tables.items():
                written[kind] = self.save_table(df, self.output_path(config, kind))

            self.logger.log_success(f"Saved {len(written)} result tables to {config.out_dir}")
            return written

        except Exception as e:
            self.logger.log_error(e, "Saving results")
            raise

    def save_summary(self, summary: Dict[str, Any], out_dir: str) -> str:
        """
        Append a one-row run summary; the header is written only once.

        Args:
            summary: Parameters and counts of the run
            out_dir: Output directory holding the summary file

        Returns:
            str: Path of the summary file
        """
        try:
            os.makedirs(out_dir, exist_ok=True)
            summary_file = os.path.join(out_dir, self.SUMMARY_FILE)

            write_header = not os.path.exists(summary_file)
            df = pd.DataFrame({key: [value] for key, value in summary.items()})
            df.to_csv(
                summary_file,
                sep="\t",
                mode="a",
                header=write_header,
                index=False,
                quoting=csv.QUOTE_MINIMAL,
            )
            self.logger.log_save(summary_file)
            return summary_file

        except Exception as e:
            self.logger.log_error(e, "Saving summary")
            raise
