"""
Data types exchanged between the LD plugin, its host and the variation registry.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FeatureType(str, Enum):
    """Kinds of overlapped features a host can hand to a plugin."""

    TRANSCRIPT = "Transcript"
    REGULATORY_FEATURE = "RegulatoryFeature"
    MOTIF_FEATURE = "MotifFeature"
    INTERGENIC = "Intergenic"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["FeatureType"]:
        """Map a VEP `Feature_type` cell onto a member, `None` for `-` or unknown kinds."""
        if not value or value == "-":
            return None
        try:
            return cls(value)
        except ValueError:
            return None


class Population(BaseModel):
    """A reference cohort LD values are computed against."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None
    size: Optional[int] = None


class Slice(BaseModel):
    """The sequence region a placement sits on."""

    model_config = ConfigDict(frozen=True)

    coord_system: str = "chromosome"
    assembly: str
    seq_region_name: str

    @property
    def name(self) -> str:
        return f"{self.coord_system}:{self.assembly}:{self.seq_region_name}"


class VariationFeature(BaseModel):
    """A placement of a variation at genomic coordinates."""

    model_config = ConfigDict(frozen=True)

    variation_name: str
    slice: Slice
    start: int
    end: int
    strand: int = 1
    allele_string: Optional[str] = None


class Variation(BaseModel):
    """
    A known variant identified by a stable name such as `rs699`.

    `placements` holds the mappings a registry returned together with the
    variation, when it returns them in the same lookup.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    placements: tuple[VariationFeature, ...] = ()


class LDValue(BaseModel):
    """One pairwise LD result returned by the LD service."""

    model_config = ConfigDict(frozen=True)

    variation_name1: str
    variation_name2: str
    r2: float
    d_prime: Optional[float] = None
    population_name: Optional[str] = None


class AnnotationContext(BaseModel):
    """Per-allele context the host passes with each record."""

    model_config = ConfigDict(frozen=True)

    variation_feature: VariationFeature
    feature_type: Optional[FeatureType] = None
