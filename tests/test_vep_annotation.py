"""
Test suite for the VEP tab annotation pipeline and the command line interface.
"""

from pathlib import Path

import polars as pl
import pytest
from typer.testing import CliRunner

import ldbear.cli as cli
from conftest import DEFAULT_POPULATION, context
from ldbear.annotators.base_annotator import Annotator
from ldbear.annotators.ld_annotator import LDAnnotator
from ldbear.config import HostConfig, LDConfig, parse_plugin_string
from ldbear.models import FeatureType
from ldbear.pipelines.annotation import (
    AnnotationPipelines,
    annotate_vep_table,
    load_vep_table,
    parse_extra,
    parse_location,
)
from ldbear.registry import MissingColumnError, Registry

COLUMNS = [
    "#Uploaded_variation", "Location", "Allele", "Gene", "Feature", "Feature_type",
    "Consequence", "cDNA_position", "CDS_position", "Protein_position", "Amino_acids",
    "Codons", "Existing_variation", "Extra",
]

ROWS = [
    ["var1", "1:1000", "T", "ENSG01", "ENST01", "Transcript", "missense_variant",
     "100", "90", "30", "A/V", "gCc/gTc", "rs1", "IMPACT=MODERATE;STRAND=1"],
    ["var1", "1:1000", "T", "-", "-", "-", "intergenic_variant",
     "-", "-", "-", "-", "-", "rs1", "IMPACT=MODIFIER"],
    ["var2", "1:1200-1201", "-", "ENSG01", "ENST01", "Transcript", "intron_variant",
     "-", "-", "-", "-", "-", "rs2", "IMPACT=MODIFIER"],
    ["var3", "1:1500", "G", "ENSG01", "ENSR01", "RegulatoryFeature", "regulatory_region_variant",
     "-", "-", "-", "-", "-", "rs3,rs404", "-"],
    ["var4", "2:7000", "A", "ENSG02", "ENST02", "Transcript", "synonymous_variant",
     "12", "10", "4", "L", "ctA/ctG", "-", "IMPACT=LOW"],
]

META = [
    "## ENSEMBL VARIANT EFFECT PREDICTOR v110.0",
    "## Extra column keys:",
    "## IMPACT : Subjective impact classification of consequence type",
]


def write_vep(path: Path, columns: list[str] = COLUMNS, rows: list[list[str]] = ROWS) -> Path:
    lines = META + ["\t".join(columns)] + ["\t".join(row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def vep_path(tmp_path: Path) -> Path:
    return write_vep(tmp_path / "variants.txt")


@pytest.fixture
def host_config() -> HostConfig:
    return HostConfig(assembly="GRCh38")


@pytest.fixture
def plugin(registry: Registry, host_config: HostConfig) -> LDAnnotator:
    return LDAnnotator(LDConfig(), registry, host_config)


class TestParsing:
    def test_location_point(self):
        slice_, start, end = parse_location("1:1000", "GRCh38")
        assert (slice_.name, start, end) == ("chromosome:GRCh38:1", 1000, 1000)

    def test_location_range(self):
        slice_, start, end = parse_location("HLA-A*01:01:01:01:10-12", "GRCh38")
        assert (slice_.seq_region_name, start, end) == ("HLA-A*01:01:01:01", 10, 12)

    def test_location_malformed(self):
        with pytest.raises(ValueError):
            parse_location("1000", "GRCh38")

    def test_extra(self):
        assert parse_extra("IMPACT=LOW;STRAND=-1;FLAG") == {"IMPACT": "LOW", "STRAND": "-1", "FLAG": ""}
        assert parse_extra("-") == {}
        assert parse_extra(None) == {}

    def test_plugin_string(self):
        assert parse_plugin_string("LD") == ("LD", [])
        assert parse_plugin_string("LD,1000GENOMES:phase_3:YRI,0.9") == ("LD", ["1000GENOMES:phase_3:YRI", "0.9"])
        with pytest.raises(ValueError):
            parse_plugin_string(",0.9")

    def test_feature_type(self):
        assert FeatureType.parse("MotifFeature") is FeatureType.MOTIF_FEATURE
        assert FeatureType.parse("-") is None
        assert FeatureType.parse("Exon") is None


class TestVEPTable:
    def test_load(self, vep_path: Path):
        frame, meta = load_vep_table(vep_path)
        assert meta == META
        assert frame.columns[0] == "Uploaded_variation"
        assert frame.height == len(ROWS)
        assert all(dtype == pl.String for dtype in frame.dtypes)

    def test_annotate_rows(self, vep_path: Path, plugin: LDAnnotator, host_config: HostConfig):
        frame, _ = load_vep_table(vep_path)
        annotated = annotate_vep_table(frame, plugin, host_config)
        assert annotated.get_column("Extra").to_list() == [
            "IMPACT=MODERATE;STRAND=1;LinkedVariants=rs5:0.850",
            "IMPACT=MODIFIER",
            "IMPACT=MODIFIER",
            "LinkedVariants=rs8:0.943,rs9:0.800",
            "IMPACT=LOW",
        ]

    def test_requires_existing_variation(self, tmp_path: Path, plugin: LDAnnotator, host_config: HostConfig):
        columns = [c for c in COLUMNS if c != "Existing_variation"]
        rows = [row[:12] + row[13:] for row in ROWS]
        frame, _ = load_vep_table(write_vep(tmp_path / "no_existing.txt", columns, rows))
        with pytest.raises(MissingColumnError, match="check_existing"):
            annotate_vep_table(frame, plugin, host_config)

    def test_plugin_only_sees_applicable_rows(self, vep_path: Path, host_config: HostConfig):
        class RecordingAnnotator(Annotator):
            def __init__(self):
                super().__init__("recording")
                self.seen = []

            def feature_types(self):
                return frozenset({FeatureType.REGULATORY_FEATURE})

            def annotate(self, context, fields):
                self.seen.append((context.variation_feature.slice.name, fields["Existing_variation"]))
                return {"Seen": "yes"}

        recorder = RecordingAnnotator()
        frame, _ = load_vep_table(vep_path)
        annotated = annotate_vep_table(frame, recorder, host_config)
        assert recorder.seen == [("chromosome:GRCh38:1", "rs3,rs404")]
        assert annotated.get_column("Extra").to_list()[3] == "Seen=yes"

    def test_dash_means_no_existing_variation(self, host_config: HostConfig, vep_path: Path):
        class FieldsAnnotator(Annotator):
            def __init__(self):
                super().__init__("fields")
                self.existing = []

            def annotate(self, context, fields):
                self.existing.append(fields["Existing_variation"])
                return {}

        recorder = FieldsAnnotator()
        frame, _ = load_vep_table(vep_path)
        annotate_vep_table(frame, recorder, host_config)
        assert recorder.existing == ["rs1", "rs2", ""]

    def test_pipeline_writes_file(self, vep_path: Path, tmp_path: Path, plugin: LDAnnotator, host_config: HostConfig):
        output_path = tmp_path / "out" / "annotated.txt"
        written = AnnotationPipelines.annotate_vep(vep_path, plugin, host_config, output_path)
        assert written == output_path

        lines = output_path.read_text(encoding="utf-8").splitlines()
        assert lines[:3] == META
        assert lines[3] == (
            "## LinkedVariants : Variants in LD (r2 >= 0.8) with overlapping existing "
            f"variants from the {DEFAULT_POPULATION} population"
        )
        assert lines[4] == "\t".join(COLUMNS)
        assert lines[5].split("\t")[-1] == "IMPACT=MODERATE;STRAND=1;LinkedVariants=rs5:0.850"
        assert len(lines) == 5 + len(ROWS)

    def test_pipeline_returns_frame(self, vep_path: Path, plugin: LDAnnotator, host_config: HostConfig):
        annotated = AnnotationPipelines.annotate_vep(vep_path, plugin, host_config)
        assert isinstance(annotated, pl.DataFrame)
        assert annotated.height == len(ROWS)


class TestAnnotatorBase:
    def test_name_required(self):
        with pytest.raises(ValueError):
            Annotator("")

    def test_annotate_not_implemented(self):
        with pytest.raises(NotImplementedError):
            Annotator("base").annotate(context(), {})


class TestCLI:
    @pytest.fixture(autouse=True)
    def fake_registry(self, monkeypatch, registry: Registry):
        monkeypatch.setattr(
            cli.EnsemblRestRegistry,
            "from_host_config",
            staticmethod(lambda host_config, window_size=None, d_prime=None: registry),
        )
        monkeypatch.setattr(cli, "_setup_logging", lambda log_dir: None)
        monkeypatch.setattr(cli, "load_dotenv", lambda: None)
        monkeypatch.delenv("LDBEAR_ASSEMBLY", raising=False)

    def test_annotate(self, vep_path: Path, tmp_path: Path):
        output_path = tmp_path / "cli_out.txt"
        result = CliRunner().invoke(cli.app, ["annotate", str(vep_path), "-o", str(output_path)])
        assert result.exit_code == 0, result.output
        assert "LinkedVariants=rs5:0.850" in output_path.read_text(encoding="utf-8")

    def test_annotate_default_output(self, vep_path: Path):
        result = CliRunner().invoke(cli.app, ["annotate", str(vep_path), "--plugin", "LD,,0.9"])
        assert result.exit_code == 0, result.output
        text = (vep_path.parent / "variants.ld.txt").read_text(encoding="utf-8")
        assert "LinkedVariants=rs8:0.943" in text
        assert "rs5:0.850" not in text

    def test_unknown_population_exits(self, vep_path: Path):
        result = CliRunner().invoke(cli.app, ["annotate", str(vep_path), "--population", "nowhere"])
        assert result.exit_code == 1
        assert "Failed to fetch population for name 'nowhere'" in result.output

    def test_header(self):
        result = CliRunner().invoke(cli.app, ["header", "--plugin", "LD,1000GENOMES:phase_3:YRI,0.95"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == (
            "## LinkedVariants : Variants in LD (r2 >= 0.95) with overlapping existing "
            "variants from the 1000GENOMES:phase_3:YRI population"
        )

    def test_version(self):
        result = CliRunner().invoke(cli.app, ["version"])
        assert result.exit_code == 0
        assert "2.3" in result.output
