"""
Gene annotation package: MyGene.info client, local mapping files and a lookup cache.
"""

from .annotation_cache import AnnotationCache
from .annotation_client import AnnotationClient, detect_scope, strip_version

__all__ = ["AnnotationCache", "AnnotationClient", "detect_scope", "strip_version"]
