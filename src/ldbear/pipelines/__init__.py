"""Host pipelines that drive ldbear plugins."""

from ldbear.pipelines.annotation import AnnotationPipelines

__all__ = ["AnnotationPipelines"]
