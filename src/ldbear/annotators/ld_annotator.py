"""
LD plugin: variants in linkage disequilibrium with overlapping existing variants.

For every known variant listed in a record's `Existing_variation` field the
plugin asks the LD service for r2 values against the configured population and
reports the partners at or above the cutoff as one extra field:

    LinkedVariants=rs123:0.879,rs234:0.943

Calculating LD is slow, so consider filtering records with another plugin
before this one when annotating many variants.
"""

import warnings
from typing import Any, Mapping, Optional, Sequence

from eliot import start_action

from ldbear.annotators.base_annotator import Annotator
from ldbear.config import HostConfig, LDConfig
from ldbear.models import AnnotationContext, FeatureType, LDValue, Population
from ldbear.registry import PopulationNotFoundError, Registry

LINKED_VARIANTS = "LinkedVariants"
EXISTING_VARIATION = "Existing_variation"

OFFLINE_WARNING = "a connection to the database is required to calculate LD"


class LDAnnotator(Annotator):
    """
    Reports variants in LD with the record's overlapping existing variants.

    Construction resolves the population and fetches every adaptor up front, so
    a misconfigured run fails before the first record is read.

    Args:
        config: Population name and r2 cutoff
        registry: Source of the population, variation, variation feature and LD adaptors
        host_config: Settings of the host; `check_existing` is switched on here
        name: Name reported in logs
    """

    VERSION = "2.3"

    def __init__(
        self,
        config: LDConfig,
        registry: Registry,
        host_config: Optional[HostConfig] = None,
        name: str = "LD",
    ) -> None:
        super().__init__(name)
        self.config = config
        self.host_config = host_config if host_config is not None else HostConfig()

        with start_action(
            action_type="ld_annotator_init",
            population_name=config.population_name,
            r2_cutoff=config.r2_cutoff,
        ) as action:
            if self.host_config.offline:
                action.log(message_type="warning", warning=OFFLINE_WARNING)
                warnings.warn(f"Warning: {OFFLINE_WARNING}", RuntimeWarning, stacklevel=2)

            # the plugin reads Existing_variation, so the host has to fill it in
            self.host_config.check_existing = True

            population_adaptor = registry.require_adaptor("population")
            population = population_adaptor.fetch_by_name(config.population_name)
            if population is None:
                raise PopulationNotFoundError(
                    f"Failed to fetch population for name '{config.population_name}'"
                )
            self.population: Population = population

            self.ld_adaptor = registry.require_adaptor("ldfeaturecontainer")
            self.variation_adaptor = registry.require_adaptor("variation")
            self.variation_feature_adaptor = registry.require_adaptor("variationfeature")

            action.add_success_fields(population=population.name)

    @classmethod
    def initialize(
        cls,
        params: Sequence[Optional[str]],
        registry: Registry,
        host_config: Optional[HostConfig] = None,
    ) -> "LDAnnotator":
        """Create the plugin from positional parameters `[population_name, r2_cutoff]`."""
        return cls(LDConfig.from_params(params), registry, host_config)

    def feature_types(self) -> frozenset[FeatureType]:
        return frozenset({
            FeatureType.TRANSCRIPT,
            FeatureType.REGULATORY_FEATURE,
            FeatureType.MOTIF_FEATURE,
        })

    def header_info(self) -> dict[str, str]:
        return {
            LINKED_VARIANTS: (
                f"Variants in LD (r2 >= {self.config.r2_cutoff}) with overlapping "
                f"existing variants from the {self.population.name} population"
            ),
        }

    def annotate(self, context: AnnotationContext, fields: Mapping[str, Any]) -> dict[str, str]:
        existing = fields.get(EXISTING_VARIATION)
        if not existing:
            return {}

        site_region = context.variation_feature.slice.name
        linked: list[str] = []

        with start_action(action_type="ld_annotate", existing_variation=existing, region=site_region) as action:
            for query in (name for name in existing.split(",") if name):
                variation = self.variation_adaptor.fetch_by_name(query)
                if variation is None:
                    action.log(message_type="skip", reason="unknown_variant", variant=query)
                    continue

                placements = [
                    vf for vf in self.variation_feature_adaptor.fetch_all_by_variation(variation)
                    if vf.slice.name == site_region
                ]
                if not placements:
                    action.log(message_type="skip", reason="no_matching_placement", variant=query)
                    continue

                for placement in placements:
                    values = self.ld_adaptor.fetch_by_variation_feature(placement, self.population)
                    if values is None:
                        action.log(message_type="skip", reason="no_ld_data", variant=query)
                        continue
                    for value in values:
                        if value.r2 < self.config.r2_cutoff:
                            continue
                        partner = self.linked_name(query, value, action)
                        if partner is not None:
                            linked.append(f"{partner}:{value.r2:.3f}")

            action.add_success_fields(linked_count=len(linked))

        if not linked:
            return {}
        return {LINKED_VARIANTS: ",".join(linked)}

    @staticmethod
    def linked_name(query: str, value: LDValue, action=None) -> Optional[str]:
        """
        Pick the partner of `query` in an LD pair.

        The field matching `query` is the query itself and the other one is the
        partner. When neither matches, `variation_name1` is used; when both
        match the pair is a self pair and `None` is returned.
        """
        first, second = value.variation_name1, value.variation_name2
        if first == query and second == query:
            if action is not None:
                action.log(message_type="skip", reason="self_pair", variant=query)
            return None
        if first == query:
            return second
        if second == query:
            return first
        if action is not None:
            action.log(
                message_type="warning",
                reason="query_not_in_pair",
                variant=query,
                variation_name1=first,
                variation_name2=second,
            )
        return first
