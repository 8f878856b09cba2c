"""
Variation registry adaptors backed by the Ensembl REST API.

Each adaptor issues one blocking JSON request per call. Nothing is cached and
nothing is retried: a failed request either means "not found" (HTTP 400/404 on
a lookup endpoint) or propagates as `EnsemblRestError`.
"""

from __future__ import annotations

from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from eliot import start_action
from pydantic import BaseModel, TypeAdapter

from ldbear.config import DEFAULT_REST_SERVER, DEFAULT_SPECIES, HostConfig
from ldbear.models import LDValue, Population, Slice, Variation, VariationFeature
from ldbear.registry import LDPluginError, Registry


NOT_FOUND_STATUSES = (400, 404)


class EnsemblRestError(LDPluginError):
    """A request to the Ensembl REST API failed."""


class _MappingRecord(BaseModel):
    coord_system: str = "chromosome"
    assembly_name: str
    seq_region_name: str
    start: int
    end: int
    strand: int = 1
    allele_string: Optional[str] = None


class _VariationRecord(BaseModel):
    name: str
    mappings: list[_MappingRecord] = []


class _LDRecord(BaseModel):
    variation1: str
    variation2: str
    r2: float
    d_prime: Optional[float] = None
    population_name: Optional[str] = None


_populations_adapter = TypeAdapter(list[Population])
_ld_adapter = TypeAdapter(list[_LDRecord])


class EnsemblRestClient:
    """Thin synchronous JSON client for one Ensembl REST server."""

    def __init__(
        self,
        server: str = DEFAULT_REST_SERVER,
        species: str = DEFAULT_SPECIES,
        timeout: float = 60.0,
    ) -> None:
        self.server = server.rstrip("/")
        self.species = species
        self.timeout = timeout

    def get(self, path: str, params: Optional[dict] = None, not_found_ok: bool = False) -> Optional[bytes]:
        """
        GET `path` and return the raw JSON body.

        Args:
            path: Endpoint path starting with `/`, already quoted
            params: Optional query parameters; `None` values are dropped
            not_found_ok: Return `None` instead of raising on HTTP 400/404

        Returns:
            Response body bytes, or `None` for a tolerated "not found"
        """
        query = {key: value for key, value in (params or {}).items() if value is not None}
        url = f"{self.server}{path}"
        if query:
            url = f"{url}?{urlencode(query)}"

        with start_action(action_type="ensembl_rest_get", url=url) as action:
            request = Request(url, headers={"Content-Type": "application/json", "Accept": "application/json"})
            try:
                with urlopen(request, timeout=self.timeout) as response:
                    body = response.read()
            except HTTPError as error:
                if not_found_ok and error.code in NOT_FOUND_STATUSES:
                    action.log(message_type="info", not_found=True, status=error.code)
                    return None
                raise EnsemblRestError(f"Ensembl REST request failed with HTTP {error.code}: {url}") from error
            except URLError as error:
                raise EnsemblRestError(f"Ensembl REST server unreachable: {url} ({error.reason})") from error

            action.add_success_fields(response_bytes=len(body))
            return body


class EnsemblPopulationAdaptor:
    def __init__(self, client: EnsemblRestClient) -> None:
        self.client = client

    def fetch_by_name(self, name: str) -> Optional[Population]:
        """Return the LD-capable population called `name`, or `None`."""
        body = self.client.get(
            f"/info/variation/populations/{quote(self.client.species)}",
            params={"filter": "LD"},
        )
        for population in _populations_adapter.validate_json(body):
            if population.name == name:
                return population
        return None


class EnsemblVariationAdaptor:
    def __init__(self, client: EnsemblRestClient) -> None:
        self.client = client

    def fetch_by_name(self, name: str) -> Optional[Variation]:
        """Look a variant up by identifier; unknown identifiers give `None`."""
        body = self.client.get(
            f"/variation/{quote(self.client.species)}/{quote(name, safe='')}",
            not_found_ok=True,
        )
        if body is None:
            return None
        record = _VariationRecord.model_validate_json(body)
        return Variation(name=record.name, placements=tuple(_to_placements(record)))


class EnsemblVariationFeatureAdaptor:
    def __init__(self, client: EnsemblRestClient) -> None:
        self.client = client

    def fetch_all_by_variation(self, variation: Variation) -> list[VariationFeature]:
        """Return every mapping of `variation`, reusing those fetched with it."""
        if variation.placements:
            return list(variation.placements)
        body = self.client.get(
            f"/variation/{quote(self.client.species)}/{quote(variation.name, safe='')}",
            not_found_ok=True,
        )
        if body is None:
            return []
        return _to_placements(_VariationRecord.model_validate_json(body))


class EnsemblLDFeatureContainerAdaptor:
    """
    LD values around a placement for one population.

    Args:
        client: REST client to query
        window_size: Window in kb around the variant (server default when None)
        d_prime: Server side D' lower bound (none when None)
    """

    def __init__(
        self,
        client: EnsemblRestClient,
        window_size: Optional[int] = None,
        d_prime: Optional[float] = None,
    ) -> None:
        self.client = client
        self.window_size = window_size
        self.d_prime = d_prime

    def fetch_by_variation_feature(
        self, variation_feature: VariationFeature, population: Population
    ) -> Optional[list[LDValue]]:
        """Return the LD values for the placement, or `None` when no LD data exists."""
        body = self.client.get(
            f"/ld/{quote(self.client.species)}/{quote(variation_feature.variation_name, safe='')}"
            f"/{quote(population.name, safe=':')}",
            params={"window_size": self.window_size, "d_prime": self.d_prime},
            not_found_ok=True,
        )
        if body is None:
            return None
        records = _ld_adapter.validate_json(body)
        if not records:
            return None
        return [
            LDValue(
                variation_name1=record.variation1,
                variation_name2=record.variation2,
                r2=record.r2,
                d_prime=record.d_prime,
                population_name=record.population_name,
            )
            for record in records
        ]


def _to_placements(record: _VariationRecord) -> list[VariationFeature]:
    return [
        VariationFeature(
            variation_name=record.name,
            slice=Slice(
                coord_system=mapping.coord_system,
                assembly=mapping.assembly_name,
                seq_region_name=mapping.seq_region_name,
            ),
            start=mapping.start,
            end=mapping.end,
            strand=mapping.strand,
            allele_string=mapping.allele_string,
        )
        for mapping in record.mappings
    ]


class EnsemblRestRegistry:
    """Builds a `Registry` whose adaptors all talk to one Ensembl REST server."""

    @staticmethod
    def from_host_config(
        host_config: HostConfig,
        window_size: Optional[int] = None,
        d_prime: Optional[float] = None,
    ) -> Registry:
        """
        Create the registry for the host's server and species.

        Offline hosts still get a registry; requests then fail on first use.
        """
        with start_action(
            action_type="ensembl_rest_registry",
            server=host_config.rest_server,
            species=host_config.species,
            offline=host_config.offline,
        ):
            client = EnsemblRestClient(
                server=host_config.rest_server,
                species=host_config.species,
                timeout=host_config.timeout,
            )
            return Registry(
                population=EnsemblPopulationAdaptor(client),
                variation=EnsemblVariationAdaptor(client),
                variationfeature=EnsemblVariationFeatureAdaptor(client),
                ldfeaturecontainer=EnsemblLDFeatureContainerAdaptor(
                    client, window_size=window_size, d_prime=d_prime
                ),
            )
