"""
Tests for the QGIS project package builder.
"""

import zipfile
from pathlib import Path

import pytest

from swatprep.core.package import build_project_package


class TestBuildProjectPackage:
    """Tests for build_project_package."""

    def test_placeholder_replaced(self, tmp_path: Path, template_qgz: Path):
        """Test that every placeholder occurrence becomes the project name."""
        dst = build_project_package(template_qgz, tmp_path / "uyrw.qgz", "uyrw", "QSWATPROJECT")

        with zipfile.ZipFile(dst) as archive:
            text = archive.read("uyrw.qgs").decode("utf-8")

        assert "QSWATPROJECT" not in text
        assert text.count("uyrw") == 3
        assert 'projectname="uyrw"' in text

    def test_members_renamed(self, tmp_path: Path, template_qgz: Path):
        """Test that the descriptor and sidecar are named after the project."""
        dst = build_project_package(template_qgz, tmp_path / "uyrw.qgz", "uyrw", "QSWATPROJECT")

        with zipfile.ZipFile(dst) as archive:
            assert sorted(archive.namelist()) == ["uyrw.qgd", "uyrw.qgs"]

    def test_sidecar_copied_unchanged(self, tmp_path: Path, template_qgz: Path):
        """Test that the binary sidecar bytes are untouched."""
        dst = build_project_package(template_qgz, tmp_path / "uyrw.qgz", "uyrw", "QSWATPROJECT")

        with zipfile.ZipFile(template_qgz) as template, zipfile.ZipFile(dst) as archive:
            assert archive.read("uyrw.qgd") == template.read("template.qgd")

    def test_template_without_descriptor(self, tmp_path: Path):
        """Test that a template with no .qgs member is rejected."""
        template = tmp_path / "bad.qgz"
        with zipfile.ZipFile(template, "w") as archive:
            archive.writestr("readme.txt", "no project here")

        with pytest.raises(ValueError, match="exactly one .qgs"):
            build_project_package(template, tmp_path / "out.qgz", "uyrw", "QSWATPROJECT")
        assert not (tmp_path / "out.qgz").exists()

    def test_template_with_two_descriptors(self, tmp_path: Path):
        """Test that an ambiguous template is rejected."""
        template = tmp_path / "two.qgz"
        with zipfile.ZipFile(template, "w") as archive:
            archive.writestr("a.qgs", "<qgis/>")
            archive.writestr("b.qgs", "<qgis/>")

        with pytest.raises(ValueError, match="found 2"):
            build_project_package(template, tmp_path / "out.qgz", "uyrw", "QSWATPROJECT")

    def test_corrupt_archive(self, tmp_path: Path):
        """Test that a corrupt template propagates BadZipFile."""
        template = tmp_path / "corrupt.qgz"
        template.write_bytes(b"this is not a zip file")

        with pytest.raises(zipfile.BadZipFile):
            build_project_package(template, tmp_path / "out.qgz", "uyrw", "QSWATPROJECT")
