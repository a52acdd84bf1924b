"""
Visualization package for the differential expression workflow.
"""

from .plot_generator import PlotGenerator

__all__ = ["PlotGenerator"]
