"""Read VEP tab-delimited output, run a plugin over its rows and write the result back."""

from pathlib import Path
from typing import Any, Optional

import polars as pl
from eliot import start_action
from pipefunc import pipefunc

from ldbear.annotators.base_annotator import Annotator
from ldbear.annotators.ld_annotator import EXISTING_VARIATION
from ldbear.config import HostConfig
from ldbear.models import AnnotationContext, FeatureType, Slice, VariationFeature
from ldbear.registry import MissingColumnError

EMPTY = "-"
HEADER_PREFIX = "#Uploaded_variation"


def parse_location(location: str, assembly: str) -> tuple[Slice, int, int]:
    """
    Parse a VEP `Location` cell into its slice and coordinates.

    Example:
        >>> slice_, start, end = parse_location("1:230710048-230710050", "GRCh38")
        >>> slice_.name, start, end
        ('chromosome:GRCh38:1', 230710048, 230710050)
    """
    seq_region_name, _, span = location.rpartition(":")
    if not seq_region_name or not span:
        raise ValueError(f"Malformed Location '{location}', expected chr:pos or chr:start-end")
    start_text, _, end_text = span.partition("-")
    start = int(start_text)
    end = int(end_text) if end_text else start
    return Slice(assembly=assembly, seq_region_name=seq_region_name), start, end


def parse_extra(extra: Optional[str]) -> dict[str, str]:
    """Split an `Extra` cell (`KEY=value;FLAG;...`) into an ordered dict."""
    if not extra or extra == EMPTY:
        return {}
    parsed: dict[str, str] = {}
    for item in extra.split(";"):
        if not item:
            continue
        key, _, value = item.partition("=")
        parsed[key] = value
    return parsed


def format_extra(extra: dict[str, str]) -> str:
    if not extra:
        return EMPTY
    return ";".join(f"{key}={value}" if value else key for key, value in extra.items())


@pipefunc(output_name=("vep_frame", "vep_meta_lines"), cache=False)
def load_vep_table(vep_path: Path) -> tuple[pl.DataFrame, list[str]]:
    """
    Load a VEP tab-delimited file.

    Args:
        vep_path: Path to the VEP `--tab` output

    Returns:
        The table with every column as string, and the `##` meta lines
    """
    with start_action(action_type="load_vep_table", vep_path=str(vep_path)) as action:
        vep_path = Path(vep_path)
        meta_lines: list[str] = []
        with vep_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                if not line.startswith("##"):
                    break
                meta_lines.append(line.rstrip("\n"))

        frame = pl.read_csv(
            vep_path,
            separator="\t",
            comment_prefix="##",
            quote_char=None,
            infer_schema=False,
        )
        frame = frame.rename({column: column.lstrip("#") for column in frame.columns if column.startswith("#")})

        action.add_success_fields(rows=frame.height, columns=frame.columns, meta_lines=len(meta_lines))
        return frame, meta_lines


@pipefunc(output_name="header_lines", cache=False)
def plugin_header_lines(plugin: Annotator) -> list[str]:
    """Header lines describing the fields `plugin` may add to `Extra`."""
    return [f"## {key} : {description}" for key, description in plugin.header_info().items()]


@pipefunc(output_name="annotated_frame", cache=False)
def annotate_vep_table(vep_frame: pl.DataFrame, plugin: Annotator, host_config: HostConfig) -> pl.DataFrame:
    """
    Run `plugin` on every applicable row and merge its output into `Extra`.

    Rows whose `Feature_type` the plugin does not declare are passed through
    untouched. A `-` in `Existing_variation` means no overlapping variants.

    Args:
        vep_frame: Table produced by `load_vep_table`
        plugin: Initialized annotation plugin
        host_config: Host settings; `check_existing` requires an `Existing_variation` column

    Returns:
        The table with an updated `Extra` column
    """
    with start_action(
        action_type="annotate_vep_table",
        plugin=plugin.name,
        rows=vep_frame.height,
    ) as action:
        if host_config.check_existing and EXISTING_VARIATION not in vep_frame.columns:
            raise MissingColumnError(
                f"Plugin '{plugin.name}' needs the {EXISTING_VARIATION} column; "
                "run VEP with --check_existing"
            )

        extras: list[str] = []
        invoked = 0
        annotated = 0
        for row in vep_frame.iter_rows(named=True):
            extra = parse_extra(row.get("Extra"))
            feature_type = FeatureType.parse(row.get("Feature_type"))
            if plugin.applies_to(feature_type):
                invoked += 1
                result = plugin(_row_context(row, feature_type, host_config), _row_fields(row, extra))
                if result:
                    annotated += 1
                    extra.update(result)
            extras.append(format_extra(extra))

        action.add_success_fields(invoked=invoked, annotated=annotated)
        return vep_frame.with_columns(pl.Series("Extra", extras, dtype=pl.String))


@pipefunc(output_name="annotated_vep_path", cache=False)
def save_vep_table(
    annotated_frame: pl.DataFrame,
    output_path: Path,
    vep_meta_lines: list[str],
    header_lines: list[str],
) -> Path:
    """
    Write the annotated table in VEP tab format.

    Args:
        annotated_frame: Table produced by `annotate_vep_table`
        output_path: Destination file
        vep_meta_lines: `##` lines of the input, written first
        header_lines: Plugin field descriptions, written after them

    Returns:
        Path to the written file
    """
    with start_action(action_type="save_vep_table", output_path=str(output_path)) as action:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        body = annotated_frame.write_csv(
            separator="\t",
            include_header=False,
            quote_style="never",
            null_value=EMPTY,
        )
        with output_path.open("w", encoding="utf-8") as handle:
            for line in [*vep_meta_lines, *header_lines]:
                handle.write(f"{line}\n")
            handle.write("#" + "\t".join(annotated_frame.columns) + "\n")
            handle.write(body)
        action.add_success_fields(rows=annotated_frame.height)
        return output_path


def _row_context(row: dict[str, Any], feature_type: Optional[FeatureType], host_config: HostConfig) -> AnnotationContext:
    slice_, start, end = parse_location(row["Location"], host_config.assembly)
    return AnnotationContext(
        variation_feature=VariationFeature(
            variation_name=row.get("Uploaded_variation") or EMPTY,
            slice=slice_,
            start=start,
            end=end,
            allele_string=row.get("Allele"),
        ),
        feature_type=feature_type,
    )


def _row_fields(row: dict[str, Any], extra: dict[str, str]) -> dict[str, Any]:
    fields = {key: (None if value == EMPTY else value) for key, value in row.items() if key != "Extra"}
    fields.update(extra)
    if fields.get(EXISTING_VARIATION) is None:
        fields[EXISTING_VARIATION] = ""
    return fields
