"""
RNA-Seq differential expression workflow.

Count matrix and sample metadata in; filtered, normalized, tested, shrunken,
ranked and annotated gene tables and plots out.
"""

__version__ = "0.1.0"
