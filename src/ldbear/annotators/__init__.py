"""
Ldbear annotation plugins.

This package provides the per-record plugin interface used by the host
pipeline and the LD plugin built on it.
"""

from ldbear.annotators.base_annotator import Annotator
from ldbear.annotators.ld_annotator import LDAnnotator

__all__ = ["Annotator", "LDAnnotator"]
