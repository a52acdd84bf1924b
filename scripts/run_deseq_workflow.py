#!/usr/bin/env python3
"""
RNA-Seq Differential Expression Workflow - Main Entry Point

This script serves as the main entry point with zero business logic.
All processing is delegated to specialized services.
"""

import sys
from pathlib import Path

# Allow running from a source checkout without installing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rnaseq_de.cli import main


if __name__ == "__main__":
    sys.exit(main())
