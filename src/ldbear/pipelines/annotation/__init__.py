"""Annotation pipelines for VEP output files."""

from ldbear.pipelines.annotation.runners import AnnotationPipelines
from ldbear.pipelines.annotation.vep_tab import (
    annotate_vep_table,
    load_vep_table,
    parse_extra,
    parse_location,
    plugin_header_lines,
    save_vep_table,
)

__all__ = [
    "AnnotationPipelines",
    "annotate_vep_table",
    "load_vep_table",
    "parse_extra",
    "parse_location",
    "plugin_header_lines",
    "save_vep_table",
]
