"""
Command line entry point for the differential expression workflow.

This module holds no business logic; all processing is delegated to
DifferentialExpressionService.
"""

import sys
from typing import Optional, Sequence

from rnaseq_de.application.de_workflow_service import DifferentialExpressionService
from rnaseq_de.domain.errors import WorkflowError
from rnaseq_de.infrastructure.argument_parser import ArgumentParser
from rnaseq_de.infrastructure.logger import Logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INPUT_ERROR = 2
EXIT_INTERRUPTED = 130


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point - no business logic"""
    logger = Logger()

    try:
        logger.log_step("Starting", "RNA-Seq differential expression workflow")

        # Parse and validate arguments
        logger.log_step("Parsing", "Command line arguments")
        parser = ArgumentParser()
        try:
            config = parser.parse_arguments(argv)
        except ValueError as e:
            logger.log_warning(f"Configuration rejected: {e}")
            print(f"❌ Invalid configuration: {e}")
            return EXIT_INPUT_ERROR

        # Initialize and run the workflow
        logger.log_step("Initializing", "Workflow service")
        service = DifferentialExpressionService(config)

        logger.log_step("Processing", "Differential expression")
        service.run()

        logger.log_success("Processing completed successfully")
        print("✅ Processing completed successfully")
        return EXIT_OK

    except KeyboardInterrupt:
        logger.log_warning("Processing interrupted by user")
        print("⚠️ Processing interrupted by user")
        return EXIT_INTERRUPTED

    except (WorkflowError, FileNotFoundError) as e:
        logger.log_error(e, "Input validation")
        print(f"❌ Input error: {e}")
        return EXIT_INPUT_ERROR

    except Exception as e:
        logger.log_error(e, "Main execution")
        print(f"❌ Processing failed: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
