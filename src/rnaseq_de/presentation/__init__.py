"""
This package contains the presentation layer for the differential expression workflow.
"""
