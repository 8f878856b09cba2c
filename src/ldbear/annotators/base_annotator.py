from typing import Any, Mapping, Optional

from eliot import start_action

from ldbear.models import AnnotationContext, FeatureType

# --- Plugin Base Annotator ---


class Annotator:
    """
    A per-record annotation plugin loaded by a host pipeline.

    The host consults `feature_types` before each call, then calls the plugin
    with the per-allele context and the fields computed so far. The plugin
    returns the extra fields it contributes, or an empty mapping.
    """

    VERSION = "0.0"

    def __init__(self, name: str):
        """
        Initializes the annotator with its name.

        Args:
            name: The unique name for this annotator.
        """
        if not name:
            raise ValueError("Annotator name cannot be empty.")
        self._name = name

    @property
    def name(self) -> str:
        """Returns the unique name of the annotator."""
        return self._name

    def version(self) -> str:
        """Version string reported to the host."""
        return self.VERSION

    def feature_types(self) -> frozenset[FeatureType]:
        """Feature kinds this annotator should be invoked for."""
        return frozenset({FeatureType.TRANSCRIPT})

    def applies_to(self, feature_type: Optional[FeatureType]) -> bool:
        return feature_type is not None and feature_type in self.feature_types()

    def header_info(self) -> dict[str, str]:
        """Descriptions of the fields this annotator can emit, keyed by field name."""
        return {}

    def annotate(self, context: AnnotationContext, fields: Mapping[str, Any]) -> dict[str, str]:
        """
        The specific annotation logic for this annotator.

        Subclasses must implement this method.

        Args:
            context: The per-allele context of the record being annotated.
            fields: Fields already computed for the record by the host.

        Returns:
            The fields to add to the record; empty when there is nothing to add.
        """
        raise NotImplementedError("Each annotator must implement the 'annotate' method.")

    def __call__(self, context: AnnotationContext, fields: Mapping[str, Any]) -> dict[str, str]:
        with start_action(
            action_type="run_annotator",
            annotator=self.name,
            variation=context.variation_feature.variation_name,
        ) as action:
            result = self.annotate(context, fields)
            action.add_success_fields(emitted=sorted(result))
            return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', version='{self.version()}')"
