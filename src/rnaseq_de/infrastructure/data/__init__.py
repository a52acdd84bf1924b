"""
Data access package for the differential expression workflow.

This package contains loading and saving components for count matrices,
sample metadata, classifier gene lists and result tables.
"""

from .data_loader import DataLoader
from .data_saver import DataSaver

__all__ = ["DataLoader", "DataSaver"]
