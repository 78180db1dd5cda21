"""
Tests for cache checks, atomic writes and input fingerprints.
"""

from pathlib import Path

import pytest

from swatprep.core.cache import (
    atomic_bundle,
    atomic_output,
    fingerprint_files,
    load_fingerprint,
    needs_run,
    save_fingerprint,
)


class TestNeedsRun:
    """Tests for the presence check."""

    def test_all_present(self, tmp_path: Path):
        """Test that a step with every output present does not run."""
        paths = [tmp_path / "a.tif", tmp_path / "b.csv"]
        for p in paths:
            p.write_text("x")

        assert needs_run(paths) is False

    def test_one_missing(self, tmp_path: Path):
        """Test that one missing output triggers a run."""
        (tmp_path / "a.tif").write_text("x")

        assert needs_run([tmp_path / "a.tif", tmp_path / "b.csv"]) is True

    def test_empty_list(self):
        """Test that a step with no declared outputs always runs."""
        assert needs_run([]) is True


class TestAtomicOutput:
    """Tests for single-file atomic writes."""

    def test_success_moves_into_place(self, tmp_path: Path):
        """Test that the file appears only after the block succeeds."""
        target = tmp_path / "out" / "dem.tif"

        with atomic_output(target) as tmp:
            tmp.write_bytes(b"raster")
            assert not target.exists()
            assert tmp.parent == target.parent
            assert tmp.suffix == ".tif"

        assert target.read_bytes() == b"raster"
        assert list(target.parent.iterdir()) == [target]

    def test_failure_leaves_nothing(self, tmp_path: Path):
        """Test that a failing writer leaves no partial file behind."""
        target = tmp_path / "dem.tif"

        with pytest.raises(RuntimeError), atomic_output(target) as tmp:
            tmp.write_bytes(b"half a rast")
            raise RuntimeError("disk full")

        assert list(tmp_path.iterdir()) == []

    def test_failure_keeps_previous_file(self, tmp_path: Path):
        """Test that an existing file survives a failed rewrite."""
        target = tmp_path / "dem.tif"
        target.write_bytes(b"old")

        with pytest.raises(RuntimeError), atomic_output(target) as tmp:
            tmp.write_bytes(b"new")
            raise RuntimeError("boom")

        assert target.read_bytes() == b"old"

    def test_writer_that_writes_nothing(self, tmp_path: Path):
        """Test that a writer producing no file is an error."""
        with pytest.raises(FileNotFoundError), atomic_output(tmp_path / "dem.tif"):
            pass


class TestAtomicBundle:
    """Tests for multi-file atomic writes."""

    def test_bundle_members_moved(self, tmp_path: Path):
        """Test that every member is moved next to the primary file."""
        target = tmp_path / "streams.shp"

        with atomic_bundle(target) as tmp:
            for suffix in (".shp", ".shx", ".dbf", ".prj"):
                tmp.with_suffix(suffix).write_text(suffix)

        assert sorted(p.name for p in tmp_path.iterdir()) == [
            "streams.dbf",
            "streams.prj",
            "streams.shp",
            "streams.shx",
        ]

    def test_bundle_failure_leaves_nothing(self, tmp_path: Path):
        """Test that a failing bundle writer leaves no files or temp dirs."""
        with pytest.raises(RuntimeError), atomic_bundle(tmp_path / "streams.shp") as tmp:
            tmp.with_suffix(".dbf").write_text("dbf")
            raise RuntimeError("bad geometry")

        assert list(tmp_path.iterdir()) == []

    def test_bundle_without_primary(self, tmp_path: Path):
        """Test that a bundle missing its primary file is an error."""
        with pytest.raises(FileNotFoundError), atomic_bundle(tmp_path / "streams.shp") as tmp:
            tmp.with_suffix(".dbf").write_text("dbf")

        assert not (tmp_path / "streams.dbf").exists()


class TestFingerprint:
    """Tests for input fingerprints."""

    def test_stable_and_order_independent(self, tmp_path: Path):
        """Test that the digest ignores argument order."""
        a = tmp_path / "a.csv"
        b = tmp_path / "b.csv"
        a.write_text("1")
        b.write_text("2")

        assert fingerprint_files([a, b]) == fingerprint_files([b, a])

    def test_content_change_detected(self, tmp_path: Path):
        """Test that changing a byte changes the digest."""
        a = tmp_path / "a.csv"
        a.write_text("1")
        before = fingerprint_files([a])

        a.write_text("2")
        assert fingerprint_files([a]) != before

    def test_directory_contents_hashed(self, tmp_path: Path):
        """Test that files inside a directory input are hashed."""
        folder = tmp_path / "tiles"
        folder.mkdir()
        (folder / "t1.tif").write_text("1")
        before = fingerprint_files([folder])

        (folder / "t2.tif").write_text("2")
        assert fingerprint_files([folder]) != before

    def test_save_and_load(self, tmp_path: Path):
        """Test fingerprint persistence."""
        path = tmp_path / "get_dem_fingerprint.json"
        assert load_fingerprint(path) is None

        save_fingerprint(path, "abc123")
        assert load_fingerprint(path) == "abc123"
