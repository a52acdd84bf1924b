"""
Infrastructure package for the differential expression workflow.

This package contains infrastructure components including data access, logging,
annotation lookups, and configuration management.
"""
