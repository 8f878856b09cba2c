"""
Annotation pipelines for VEP tab-delimited output.

This module wires the VEP table steps into a pipefunc pipeline and runs a
plugin over a file.
"""

from pathlib import Path
from typing import Optional

from pipefunc import Pipeline
from eliot import start_action

from ldbear.annotators.base_annotator import Annotator
from ldbear.config import HostConfig
from ldbear.pipelines.annotation.vep_tab import (
    annotate_vep_table,
    load_vep_table,
    plugin_header_lines,
    save_vep_table,
)


class AnnotationPipelines:
    """Pipelines for annotating VEP output with a per-record plugin.

    This class provides static methods for:
    - Building the load / annotate / save pipeline
    - Executing it sequentially, one record at a time
    - Annotating a file in one call
    """

    @staticmethod
    def _annotation_base() -> Pipeline:
        """Internal: base annotation pipeline."""
        return Pipeline(
            [
                load_vep_table,
                plugin_header_lines,
                annotate_vep_table,
            ]
        )

    @staticmethod
    def vep_annotation(with_save: bool = True) -> Pipeline:
        """Get a pipeline for annotating a VEP table with a plugin.

        Args:
            with_save: If True, includes writing the annotated table

        Returns:
            Configured pipeline
        """
        pipeline = AnnotationPipelines._annotation_base()
        if with_save:
            pipeline = pipeline | Pipeline([save_vep_table])
        return pipeline

    @staticmethod
    def execute(pipeline: Pipeline, inputs: dict, output_name: str):
        """Run `pipeline` sequentially and return the value of `output_name`."""
        # plugins call blocking services once per record, so no executors here
        with start_action(action_type="execute_annotation_pipeline", output_name=output_name):
            return pipeline.run(output_name, kwargs=inputs)

    @staticmethod
    def annotate_vep(
        vep_path: Path,
        plugin: Annotator,
        host_config: Optional[HostConfig] = None,
        output_path: Optional[Path] = None,
    ):
        """Annotate a VEP tab-delimited file with `plugin`.

        High-level convenience method that builds and executes the pipeline.

        Args:
            vep_path: Path to the VEP `--tab` output
            plugin: Initialized plugin; it must have been created with the same `host_config`
            host_config: Host settings (defaults when None)
            output_path: Where to write the result; when None the annotated
                polars DataFrame is returned instead of a path

        Returns:
            The written path, or the annotated DataFrame
        """
        host_config = host_config if host_config is not None else HostConfig()
        with start_action(
            action_type="annotate_vep",
            vep_path=str(vep_path),
            output_path=str(output_path) if output_path else None,
            plugin=plugin.name,
        ):
            with_save = output_path is not None
            pipeline = AnnotationPipelines.vep_annotation(with_save=with_save)
            inputs = {
                "vep_path": Path(vep_path),
                "plugin": plugin,
                "host_config": host_config,
            }
            if with_save:
                inputs["output_path"] = Path(output_path)
                return AnnotationPipelines.execute(pipeline, inputs, "annotated_vep_path")
            return AnnotationPipelines.execute(pipeline, inputs, "annotated_frame")
