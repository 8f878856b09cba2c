"""
Collaborator interfaces the LD plugin depends on, and the registry that hands them out.

The plugin never looks adaptors up globally: a `Registry` is passed in when the
plugin is initialized, so any implementation of these protocols (the Ensembl
REST client, an in-memory fake in tests) can back it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ldbear.models import LDValue, Population, Variation, VariationFeature


class LDPluginError(Exception):
    """Base class for errors raised by the LD plugin and its host."""


class RegistryUnavailableError(LDPluginError):
    """An adaptor could not be obtained from the registry."""


class PopulationNotFoundError(LDPluginError):
    """No population matches the configured name."""


class MissingColumnError(LDPluginError):
    """The host input lacks a column the plugin depends on."""


class PopulationAdaptor(Protocol):
    def fetch_by_name(self, name: str) -> Optional[Population]: ...


class VariationAdaptor(Protocol):
    def fetch_by_name(self, name: str) -> Optional[Variation]: ...


class VariationFeatureAdaptor(Protocol):
    def fetch_all_by_variation(self, variation: Variation) -> list[VariationFeature]: ...


class LDFeatureContainerAdaptor(Protocol):
    def fetch_by_variation_feature(
        self, variation_feature: VariationFeature, population: Population
    ) -> Optional[list[LDValue]]: ...


ADAPTOR_KINDS = ("population", "variation", "variationfeature", "ldfeaturecontainer")


@dataclass
class Registry:
    """Bundle of the adaptors a plugin may request. Missing adaptors are `None`."""

    population: Optional[PopulationAdaptor] = None
    variation: Optional[VariationAdaptor] = None
    variationfeature: Optional[VariationFeatureAdaptor] = None
    ldfeaturecontainer: Optional[LDFeatureContainerAdaptor] = None

    def get_adaptor(self, kind: str):
        """Return the adaptor registered for `kind`, or `None` if it is unavailable."""
        if kind not in ADAPTOR_KINDS:
            raise ValueError(f"Unknown adaptor kind '{kind}', expected one of {ADAPTOR_KINDS}")
        return getattr(self, kind)

    def require_adaptor(self, kind: str):
        """Return the adaptor for `kind` or raise `RegistryUnavailableError`."""
        adaptor = self.get_adaptor(kind)
        if adaptor is None:
            raise RegistryUnavailableError(f"Failed to get {kind} adaptor")
        return adaptor
