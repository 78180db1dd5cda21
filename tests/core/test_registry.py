"""
Tests for the metadata registry.
"""

import csv
from pathlib import Path

import pytest

from swatprep.core.errors import MissingUpstreamArtifact, PipelineError
from swatprep.core.registry import Artifact, ArtifactType, MetadataRegistry


@pytest.fixture
def registry(tmp_path: Path) -> MetadataRegistry:
    """Registry rooted at a temporary project directory."""
    return MetadataRegistry(tmp_path)


class TestDeclare:
    """Tests for writing stage tables."""

    def test_declare_then_lookup(self, registry: MetadataRegistry):
        """Test the basic declare/lookup round."""
        registry.declare("get_dem", [("dem", "data/dem.tif", "raster", "DEM")])

        assert registry.lookup("get_dem", "dem") == "data/dem.tif"

    def test_metadata_table_layout(self, registry: MetadataRegistry, tmp_path: Path):
        """Test the CSV file name and columns."""
        registry.declare(
            "get_dem",
            [
                Artifact("ned", "data/source/ned.tif", ArtifactType.SOURCE, "raw DEM"),
                Artifact("dem", "data/dem.tif", ArtifactType.RASTER, "DEM"),
            ],
        )

        table = tmp_path / "data" / "get_dem_metadata.csv"
        assert table.exists()

        with open(table, newline="") as f:
            rows = list(csv.DictReader(f))

        assert list(rows[0]) == ["key", "path", "type", "description"]
        assert [r["key"] for r in rows] == ["ned", "dem"]
        assert rows[0]["type"] == "source-file"

    def test_absolute_paths_stored_relative(self, registry: MetadataRegistry, tmp_path: Path):
        """Test that absolute paths under the root are stored relative to it."""
        registry.declare("get_dem", [("dem", tmp_path / "data" / "dem.tif", "raster", "")])

        assert registry.lookup("get_dem", "dem") == "data/dem.tif"
        assert registry.resolve("get_dem", "dem") == tmp_path.resolve() / "data" / "dem.tif"

    def test_path_outside_root_rejected(self, registry: MetadataRegistry, tmp_path: Path):
        """Test that paths outside the project root are rejected."""
        outside = tmp_path.parent / "elsewhere" / "dem.tif"
        with pytest.raises(ValueError, match="outside the project root"):
            registry.declare("get_dem", [("dem", outside, "raster", "")])

    def test_duplicate_keys_rejected(self, registry: MetadataRegistry):
        """Test that a key can only be declared once per stage."""
        with pytest.raises(ValueError, match="Duplicate artifact keys"):
            registry.declare(
                "get_dem",
                [("dem", "a.tif", "raster", ""), ("dem", "b.tif", "raster", "")],
            )
        assert not registry.has_stage("get_dem")

    def test_unknown_type_rejected(self, registry: MetadataRegistry):
        """Test that type tags must be known artifact types."""
        with pytest.raises(ValueError):
            registry.declare("get_dem", [("dem", "dem.tif", "spreadsheet", "")])

    def test_redeclare_replaces_snapshot(self, registry: MetadataRegistry):
        """Test that a second declaration replaces the first entirely."""
        registry.declare("get_dem", [("dem", "old.tif", "raster", ""), ("img_dem", "dem.png", "graphic", "")])
        registry.declare("get_dem", [("dem", "new.tif", "raster", "")])

        snapshot = registry.load_snapshot("get_dem")
        assert list(snapshot) == ["dem"]
        assert snapshot["dem"].path == "new.tif"


class TestLookup:
    """Tests for reading stage tables."""

    def test_unknown_key(self, registry: MetadataRegistry):
        """Test that an undeclared key raises MissingUpstreamArtifact."""
        registry.declare("get_dem", [("dem", "data/dem.tif", "raster", "DEM")])

        with pytest.raises(MissingUpstreamArtifact) as exc_info:
            registry.lookup("get_dem", "slope")

        assert exc_info.value.stage == "get_dem"
        assert exc_info.value.key == "slope"

    def test_unknown_stage(self, registry: MetadataRegistry):
        """Test that a stage that never ran raises MissingUpstreamArtifact."""
        with pytest.raises(MissingUpstreamArtifact, match="never declared"):
            registry.lookup("get_soils", "soils")

    def test_missing_artifact_is_lookup_error(self, registry: MetadataRegistry):
        """Test the exception hierarchy."""
        with pytest.raises(LookupError):
            registry.lookup("get_soils", "soils")
        with pytest.raises(PipelineError):
            registry.lookup("get_soils", "soils")

    def test_require_checks_disk(self, registry: MetadataRegistry, tmp_path: Path):
        """Test that require fails for declared but absent files."""
        registry.declare("get_dem", [("dem", "data/dem.tif", "raster", "")])

        with pytest.raises(MissingUpstreamArtifact, match="absent"):
            registry.require("get_dem", "dem")

        (tmp_path / "data" / "dem.tif").write_bytes(b"tif")
        assert registry.require("get_dem", "dem").exists()

    def test_snapshot_round_trip(self, registry: MetadataRegistry):
        """Test that load_snapshot returns what declare wrote."""
        declared = registry.declare(
            "get_basins",
            [
                Artifact("boundary", "data/boundary.gpkg", ArtifactType.VECTOR, "watershed, dissolved"),
                Artifact("crs", "data/crs.json", ArtifactType.DOCUMENT, 'has "quotes"'),
            ],
        )
        assert registry.load_snapshot("get_basins") == declared

    def test_declared_stages(self, registry: MetadataRegistry):
        """Test listing of declared stages."""
        assert registry.declared_stages() == []

        registry.declare("get_soils", [])
        registry.declare("get_basins", [])

        assert registry.declared_stages() == ["get_basins", "get_soils"]

    def test_custom_metadata_dir(self, tmp_path: Path):
        """Test that the metadata directory is configurable."""
        registry = MetadataRegistry(tmp_path, metadata_dir="meta")
        registry.declare("get_dem", [("dem", "data/dem.tif", "raster", "")])

        assert (tmp_path / "meta" / "get_dem_metadata.csv").exists()
