"""
Tests for lookup-table reconciliation.
"""

from pathlib import Path

import pandas as pd
import pytest

from swatprep.core.errors import UnmappedClassCode
from swatprep.core.lookup import (
    read_lookup_table,
    read_reference_table,
    reconcile_lookup,
    write_lookup_table,
)


@pytest.fixture
def reference() -> pd.DataFrame:
    """Land-use reference rows for five NLCD classes."""
    return pd.DataFrame(
        {
            "code": [11, 21, 41, 42, 82],
            "label": ["WATR", "URLD", "FRSD", "FRSE", "AGRR"],
            "template": ["", "", "FRSD", "FRSE", "AGRL"],
        }
    )


class TestReconcileLookup:
    """Tests for reconcile_lookup."""

    def test_superset_of_raster_codes(self, reference: pd.DataFrame):
        """Test that every raster code gets exactly one row."""
        codes = {82, 42, 11}
        lookup = reconcile_lookup(codes, reference)

        assert set(lookup["code"]) == codes
        assert len(lookup) == len(codes)

    def test_rows_sorted_by_code(self, reference: pd.DataFrame):
        """Test that output rows are ordered by code."""
        lookup = reconcile_lookup([82, 11, 42], reference)

        assert list(lookup["code"]) == [11, 42, 82]
        assert list(lookup["label"]) == ["WATR", "FRSE", "AGRR"]

    def test_extra_columns_carried(self, reference: pd.DataFrame):
        """Test that reference attributes travel with the rows."""
        lookup = reconcile_lookup([42], reference)

        assert lookup.loc[0, "template"] == "FRSE"

    def test_unmapped_code_is_fatal(self, reference: pd.DataFrame, caplog):
        """Test that a code missing from the reference stops reconciliation."""
        with pytest.raises(UnmappedClassCode) as exc_info:
            reconcile_lookup([11, 95, 90], reference, table_name="NLCD table")

        assert exc_info.value.codes == [90, 95]
        assert "90" in str(exc_info.value)
        assert any(r.levelname == "CRITICAL" for r in caplog.records)

    def test_empty_codes(self, reference: pd.DataFrame):
        """Test that a raster with no classes gives an empty table."""
        assert reconcile_lookup([], reference).empty


class TestReferenceTable:
    """Tests for reading and writing tables."""

    def test_read_reference_table(self, tmp_path: Path, reference: pd.DataFrame):
        """Test that codes are parsed as integers and labels stripped."""
        path = tmp_path / "landuse.csv"
        reference.assign(label=" " + reference["label"]).to_csv(path, index=False)

        table = read_reference_table(path)

        assert table["code"].dtype == "int64"
        assert table.loc[0, "label"] == "WATR"

    def test_missing_columns(self, tmp_path: Path):
        """Test that code and label columns are required."""
        path = tmp_path / "bad.csv"
        pd.DataFrame({"value": [1], "name": ["x"]}).to_csv(path, index=False)

        with pytest.raises(ValueError, match="missing column"):
            read_reference_table(path)

    def test_duplicate_codes(self, tmp_path: Path):
        """Test that a code may only appear once."""
        path = tmp_path / "dup.csv"
        pd.DataFrame({"code": [1, 1], "label": ["a", "b"]}).to_csv(path, index=False)

        with pytest.raises(ValueError, match="duplicate codes"):
            read_reference_table(path)

    def test_write_with_plugin_columns(self, tmp_path: Path, reference: pd.DataFrame):
        """Test that rename writes only the mapped columns, in order."""
        rename = {"code": "LANDUSE_ID", "label": "SWAT_CODE"}
        dst = write_lookup_table(reference, tmp_path / "lookup.csv", rename=rename)

        written = read_lookup_table(dst)
        assert list(written.columns) == ["LANDUSE_ID", "SWAT_CODE"]
        assert list(written["LANDUSE_ID"]) == [11, 21, 41, 42, 82]
