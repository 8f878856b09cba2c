"""Top-level API for ldbear.

Expose the LD plugin, its configuration and the pipelines that run it over
VEP output.
"""

from ldbear.annotators import Annotator, LDAnnotator
from ldbear.cli import app
from ldbear.config import HostConfig, LDConfig, parse_plugin_string
from ldbear.ensembl_rest import EnsemblRestRegistry
from ldbear.pipelines import AnnotationPipelines
from ldbear.registry import (
    LDPluginError,
    MissingColumnError,
    PopulationNotFoundError,
    Registry,
    RegistryUnavailableError,
)

__all__ = [
    "Annotator",
    "LDAnnotator",
    "HostConfig",
    "LDConfig",
    "parse_plugin_string",
    "EnsemblRestRegistry",
    "AnnotationPipelines",
    "Registry",
    "LDPluginError",
    "MissingColumnError",
    "PopulationNotFoundError",
    "RegistryUnavailableError",
    "app",
]
