import os
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_POPULATION = "1000GENOMES:pilot_1_CEU_low_coverage_panel"
DEFAULT_R2_CUTOFF = 0.8
DEFAULT_REST_SERVER = "https://rest.ensembl.org"
DEFAULT_ASSEMBLY = "GRCh38"
DEFAULT_SPECIES = "homo_sapiens"


def get_default_rest_server() -> str:
    """Return the Ensembl REST server from LDBEAR_REST_SERVER or the public one."""
    value = os.getenv("LDBEAR_REST_SERVER")
    if value:
        return value.rstrip("/")
    return DEFAULT_REST_SERVER


def get_default_assembly() -> str:
    """Return the assembly from LDBEAR_ASSEMBLY or GRCh38."""
    return os.getenv("LDBEAR_ASSEMBLY") or DEFAULT_ASSEMBLY


class LDConfig(BaseModel):
    """
    Immutable plugin configuration, set once when the plugin starts.

    The cutoff accepts anything pydantic can coerce to a float; its range is
    not checked.
    """

    model_config = ConfigDict(frozen=True)

    population_name: str = DEFAULT_POPULATION
    r2_cutoff: float = DEFAULT_R2_CUTOFF

    @classmethod
    def from_params(cls, params: Sequence[Optional[str]]) -> "LDConfig":
        """
        Build the configuration from positional plugin parameters.

        Args:
            params: `[population_name, r2_cutoff]`, both optional. Missing or
                empty entries fall back to the defaults.

        Returns:
            The frozen configuration.
        """
        values: dict = {}
        if len(params) > 0 and params[0]:
            values["population_name"] = params[0]
        if len(params) > 1 and params[1] is not None and str(params[1]).strip() != "":
            values["r2_cutoff"] = str(params[1]).strip()
        return cls(**values)


class HostConfig(BaseModel):
    """Settings of the host pipeline a plugin is loaded into."""

    offline: bool = False
    check_existing: bool = False
    assembly: str = Field(default_factory=get_default_assembly)
    species: str = DEFAULT_SPECIES
    rest_server: str = Field(default_factory=get_default_rest_server)
    timeout: float = 60.0


def parse_plugin_string(plugin: str) -> tuple[str, list[str]]:
    """
    Split a `--plugin` style string into the plugin name and its parameters.

    Example:
        >>> parse_plugin_string("LD,1000GENOMES:phase_3:CEU,0.9")
        ('LD', ['1000GENOMES:phase_3:CEU', '0.9'])
    """
    parts = [part.strip() for part in plugin.split(",")]
    if not parts[0]:
        raise ValueError(f"Plugin string has no plugin name: '{plugin}'")
    return parts[0], parts[1:]
