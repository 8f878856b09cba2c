from __future__ import annotations

from pathlib import Path
from typing import Optional
import sys

import typer
from dotenv import load_dotenv
from eliot import start_action
from platformdirs import user_log_dir
from pycomfort.logging import to_nice_file, to_nice_stdout
from pydantic import ValidationError
from rich.console import Console

from ldbear.annotators.ld_annotator import LDAnnotator
from ldbear.config import HostConfig, LDConfig, parse_plugin_string
from ldbear.ensembl_rest import EnsemblRestRegistry
from ldbear.pipelines.annotation.runners import AnnotationPipelines
from ldbear.registry import LDPluginError

# Create the main CLI app
app = typer.Typer(
    name="ldbear",
    help="Linkage disequilibrium annotation of VEP output",
    rich_markup_mode="rich"
)

console = Console()

PLUGIN_OPTION = typer.Option(
    None,
    "--plugin", "-p",
    help="Plugin string in VEP style: LD,<population>,<r2 cutoff>"
)
POPULATION_OPTION = typer.Option(
    None,
    "--population",
    help="Population used to calculate r2 (overrides --plugin)"
)
CUTOFF_OPTION = typer.Option(
    None,
    "--r2-cutoff",
    help="Minimum r2 for a variant to be reported (overrides --plugin)"
)
OFFLINE_OPTION = typer.Option(
    False,
    "--offline",
    help="Host runs without database access; LD lookups will fail"
)
SERVER_OPTION = typer.Option(
    None,
    "--server",
    help="Ensembl REST server. Can also be set via LDBEAR_REST_SERVER environment variable"
)
ASSEMBLY_OPTION = typer.Option(
    None,
    "--assembly",
    help="Assembly of the input coordinates. Can also be set via LDBEAR_ASSEMBLY environment variable"
)


def _ld_params(plugin: Optional[str], population: Optional[str], r2_cutoff: Optional[str]) -> list[Optional[str]]:
    params: list[Optional[str]] = [None, None]
    if plugin:
        name, plugin_params = parse_plugin_string(plugin)
        if name != "LD":
            raise typer.BadParameter(f"Only the LD plugin is available, got '{name}'", param_hint="--plugin")
        for index, value in enumerate(plugin_params[:2]):
            params[index] = value
    if population:
        params[0] = population
    if r2_cutoff:
        params[1] = r2_cutoff
    return params


def _host_config(offline: bool, server: Optional[str], assembly: Optional[str]) -> HostConfig:
    values: dict = {"offline": offline}
    if server:
        values["rest_server"] = server.rstrip("/")
    if assembly:
        values["assembly"] = assembly
    return HostConfig(**values)


def _build_plugin(params: list[Optional[str]], host_config: HostConfig, window_size: Optional[int] = None) -> LDAnnotator:
    registry = EnsemblRestRegistry.from_host_config(host_config, window_size=window_size)
    return LDAnnotator(LDConfig.from_params(params), registry, host_config)


@app.command()
def annotate(
    vep_path: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="VEP tab-delimited output (run VEP with --tab --check_existing)"
    ),
    output_path: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Where to write the annotated table. Defaults to <input>.ld.txt"
    ),
    plugin: Optional[str] = PLUGIN_OPTION,
    population: Optional[str] = POPULATION_OPTION,
    r2_cutoff: Optional[str] = CUTOFF_OPTION,
    window_size: Optional[int] = typer.Option(
        None,
        "--window-size",
        help="LD window around each variant in kb (server default if not set)"
    ),
    offline: bool = OFFLINE_OPTION,
    server: Optional[str] = SERVER_OPTION,
    assembly: Optional[str] = ASSEMBLY_OPTION,
    log_dir: Optional[Path] = typer.Option(
        None,
        "--log-dir",
        help="Directory for JSON and rendered logs. Defaults to the user log directory"
    ),
):
    """
    Add LinkedVariants to the Extra column of a VEP tab-delimited file.

    Every existing variant overlapping a record is looked up in the Ensembl
    variation database and its LD partners at or above the r2 cutoff are listed.
    """
    load_dotenv()
    _setup_logging(log_dir)
    output_path = output_path or vep_path.with_name(f"{vep_path.stem}.ld.txt")

    with start_action(action_type="annotate_command", vep_path=str(vep_path), output_path=str(output_path)) as action:
        try:
            host_config = _host_config(offline, server, assembly)
            console.print(f"🔧 Connecting to [bold blue]{host_config.rest_server}[/bold blue]...")
            ld_plugin = _build_plugin(_ld_params(plugin, population, r2_cutoff), host_config, window_size)
            console.print(f"🧬 {ld_plugin.header_info()['LinkedVariants']}")

            written = AnnotationPipelines.annotate_vep(
                vep_path=vep_path,
                plugin=ld_plugin,
                host_config=host_config,
                output_path=output_path,
            )
            console.print(f"✅ Annotated table written to [bold blue]{written}[/bold blue]")
            action.log(message_type="success", output_path=str(written))
        except (LDPluginError, ValidationError) as e:
            action.log(message_type="error", error=str(e))
            console.print(f"❌ Error: {e}", style="red")
            sys.exit(1)


@app.command()
def header(
    plugin: Optional[str] = PLUGIN_OPTION,
    population: Optional[str] = POPULATION_OPTION,
    r2_cutoff: Optional[str] = CUTOFF_OPTION,
    offline: bool = OFFLINE_OPTION,
    server: Optional[str] = SERVER_OPTION,
):
    """Print the header lines the configured LD plugin adds to VEP output."""
    load_dotenv()
    try:
        ld_plugin = _build_plugin(_ld_params(plugin, population, r2_cutoff), _host_config(offline, server, None))
    except (LDPluginError, ValidationError) as e:
        console.print(f"❌ Error: {e}", style="red")
        sys.exit(1)
    for key, description in ld_plugin.header_info().items():
        typer.echo(f"## {key} : {description}")


@app.command()
def version():
    """Show version information."""
    try:
        import importlib.metadata
        version = importlib.metadata.version("ldbear")
        console.print(f"ldbear version: [bold green]{version}[/bold green]")
    except importlib.metadata.PackageNotFoundError:
        console.print("ldbear version: [yellow]development[/yellow]")
    console.print(f"LD plugin version: [bold green]{LDAnnotator.VERSION}[/bold green]")


def _setup_logging(log_dir: Optional[Path]) -> None:
    logs = log_dir if log_dir is not None else Path(user_log_dir("ldbear"))
    logs.mkdir(parents=True, exist_ok=True)
    to_nice_file(logs / "annotate.json", logs / "annotate.log")
    to_nice_stdout()


if __name__ == "__main__":
    app()
