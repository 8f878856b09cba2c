"""In-memory variation registry used by the test suites."""

from typing import Optional

import pytest

from ldbear.models import (
    AnnotationContext,
    FeatureType,
    LDValue,
    Population,
    Slice,
    Variation,
    VariationFeature,
)
from ldbear.registry import Registry


class FakePopulationAdaptor:
    def __init__(self, populations: list[Population]):
        self.populations = {population.name: population for population in populations}

    def fetch_by_name(self, name: str) -> Optional[Population]:
        return self.populations.get(name)


class FakeVariationAdaptor:
    def __init__(self, known: set[str]):
        self.known = known
        self.requested: list[str] = []

    def fetch_by_name(self, name: str) -> Optional[Variation]:
        self.requested.append(name)
        return Variation(name=name) if name in self.known else None


class FakeVariationFeatureAdaptor:
    def __init__(self, placements: dict[str, list[VariationFeature]]):
        self.placements = placements

    def fetch_all_by_variation(self, variation: Variation) -> list[VariationFeature]:
        return list(self.placements.get(variation.name, []))


class FakeLDAdaptor:
    """LD values keyed by (variation name, seq region); missing keys mean no container."""

    def __init__(self, values: dict[tuple[str, str], list[LDValue]]):
        self.values = values
        self.calls: list[tuple[str, str, str]] = []

    def fetch_by_variation_feature(self, variation_feature: VariationFeature, population: Population):
        self.calls.append((variation_feature.variation_name, variation_feature.slice.seq_region_name, population.name))
        return self.values.get((variation_feature.variation_name, variation_feature.slice.seq_region_name))


def placement(name: str, seq_region_name: str = "1", start: int = 1000, assembly: str = "GRCh38") -> VariationFeature:
    return VariationFeature(
        variation_name=name,
        slice=Slice(assembly=assembly, seq_region_name=seq_region_name),
        start=start,
        end=start,
    )


def ld(name1: str, name2: str, r2: float) -> LDValue:
    return LDValue(variation_name1=name1, variation_name2=name2, r2=r2)


def context(seq_region_name: str = "1", feature_type: FeatureType = FeatureType.TRANSCRIPT) -> AnnotationContext:
    return AnnotationContext(
        variation_feature=placement("input_variant", seq_region_name, start=1000),
        feature_type=feature_type,
    )


DEFAULT_POPULATION = "1000GENOMES:pilot_1_CEU_low_coverage_panel"
YRI_POPULATION = "1000GENOMES:phase_3:YRI"


@pytest.fixture
def populations() -> FakePopulationAdaptor:
    return FakePopulationAdaptor([
        Population(name=DEFAULT_POPULATION, description="CEU pilot 1", size=60),
        Population(name=YRI_POPULATION, description="Yoruba in Ibadan", size=108),
    ])


@pytest.fixture
def variations() -> FakeVariationAdaptor:
    return FakeVariationAdaptor({"rs1", "rs2", "rs3"})


@pytest.fixture
def variation_features() -> FakeVariationFeatureAdaptor:
    return FakeVariationFeatureAdaptor({
        "rs1": [placement("rs1", "1", 1000)],
        "rs2": [placement("rs2", "1", 1200)],
        "rs3": [placement("rs3", "2", 5000), placement("rs3", "1", 1500)],
    })


@pytest.fixture
def ld_values() -> FakeLDAdaptor:
    return FakeLDAdaptor({
        ("rs1", "1"): [ld("rs1", "rs5", 0.85), ld("rs1", "rs6", 0.42)],
        ("rs2", "1"): [ld("rs7", "rs2", 0.3)],
        ("rs3", "1"): [ld("rs3", "rs8", 0.94261), ld("rs9", "rs3", 0.8)],
        ("rs3", "2"): [ld("rs3", "rs99", 1.0)],
    })


@pytest.fixture
def registry(populations, variations, variation_features, ld_values) -> Registry:
    return Registry(
        population=populations,
        variation=variations,
        variationfeature=variation_features,
        ldfeaturecontainer=ld_values,
    )
