"""
Pytest configuration and shared fixtures for the test suite.

The synthetic project lives in UTM zone 12N (EPSG:32612) around
x=500000, y=5000000: two adjacent 1 km square sub-watersheds, one
west-east stream through their middle, ten gauging stations just north of
the stream, and 20 m rasters covering the padded study area.
"""

import logging
import sqlite3
import zipfile
from collections.abc import Callable, Iterator
from pathlib import Path

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
import rasterio
from rasterio.transform import from_origin
from shapely.geometry import LineString, Point, box

PROJECT_EPSG = 32612
X0, Y0 = 500000.0, 5000000.0
CELL = 20.0

# raster extent: the 2 km x 1 km watershed plus 300 m on every side
RASTER_WEST, RASTER_NORTH = X0 - 300, Y0 + 1300
RASTER_COLS, RASTER_ROWS = 130, 80

STATION_CODES = ["dv", "qw", "iv", "pk", "qw", "id", "pk", "qw", "pk", "qw"]


@pytest.fixture(autouse=True)
def setup_logging() -> Iterator[None]:
    """Configure logging for tests and restore the root level afterwards."""
    logging.basicConfig(
        level=logging.WARNING,  # Reduce noise during tests
        format="%(name)s - %(levelname)s - %(message)s",
    )
    root = logging.getLogger()
    level = root.level
    yield
    root.setLevel(level)


@pytest.fixture(autouse=True)
def clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's environment from leaking into config tests."""
    monkeypatch.delenv("SWATPREP_PROJECT_ROOT", raising=False)
    monkeypatch.delenv("SWATPREP_LOG_FILE", raising=False)


def write_raster(
    path: Path,
    data: np.ndarray,
    west: float = RASTER_WEST,
    north: float = RASTER_NORTH,
    cell: float = CELL,
    crs: str = f"EPSG:{PROJECT_EPSG}",
    nodata: float | None = None,
) -> Path:
    """Write a single-band GeoTIFF from a 2D array."""
    path.parent.mkdir(parents=True, exist_ok=True)
    profile = {
        "driver": "GTiff",
        "height": data.shape[0],
        "width": data.shape[1],
        "count": 1,
        "dtype": str(data.dtype),
        "crs": crs,
        "transform": from_origin(west, north, cell, cell),
    }
    if nodata is not None:
        profile["nodata"] = nodata

    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data, 1)
    return path


@pytest.fixture
def raster_writer() -> Callable[..., Path]:
    """Return the GeoTIFF writing helper."""
    return write_raster


@pytest.fixture
def watershed_gdf() -> gpd.GeoDataFrame:
    """Two adjacent 1 km square sub-watersheds."""
    return gpd.GeoDataFrame(
        {"huc12": ["140100010101", "140100010102"]},
        geometry=[box(X0, Y0, X0 + 1000, Y0 + 1000), box(X0 + 1000, Y0, X0 + 2000, Y0 + 1000)],
        crs=f"EPSG:{PROJECT_EPSG}",
    )


@pytest.fixture
def flowlines_gdf() -> gpd.GeoDataFrame:
    """A west-east stream crossing the watershed at mid-height."""
    return gpd.GeoDataFrame(
        {"gnis_name": ["Test Creek", "Test Creek"]},
        geometry=[
            LineString([(X0 - 200, Y0 + 500), (X0 + 1000, Y0 + 500)]),
            LineString([(X0 + 1000, Y0 + 500), (X0 + 2200, Y0 + 500)]),
        ],
        crs=f"EPSG:{PROJECT_EPSG}",
    )


@pytest.fixture
def stations_gdf() -> gpd.GeoDataFrame:
    """Ten stations 4 m north of the stream; three carry outlet codes."""
    return gpd.GeoDataFrame(
        {
            "site_no": [f"0900{i:04d}" for i in range(10)],
            "data_type_cd": STATION_CODES,
        },
        geometry=[Point(X0 + 100 + 180 * i, Y0 + 504) for i in range(10)],
        crs=f"EPSG:{PROJECT_EPSG}",
    )


@pytest.fixture
def dem_array() -> np.ndarray:
    """Elevation sloping down from north to south."""
    rows = np.arange(RASTER_ROWS, dtype="float32")[:, None]
    return np.broadcast_to(2000.0 - rows, (RASTER_ROWS, RASTER_COLS)).copy()


@pytest.fixture
def soils_array() -> np.ndarray:
    """Soil code 1 in the western half of the raster, 2 in the eastern half."""
    data = np.ones((RASTER_ROWS, RASTER_COLS), dtype="uint8")
    data[:, RASTER_COLS // 2 :] = 2
    return data


@pytest.fixture
def landuse_array() -> np.ndarray:
    """Land-use code 42 (forest) in the north, 82 (crops) in the south."""
    data = np.full((RASTER_ROWS, RASTER_COLS), 42, dtype="uint8")
    data[RASTER_ROWS // 2 :, :] = 82
    return data


def make_reference_db(path: Path) -> Path:
    """SQLite reference database with small crop and usersoil tables."""
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE crop (OBJECTID INTEGER, ICNUM INTEGER, CPNM VARCHAR(4), BIO_E DOUBLE);
        INSERT INTO crop VALUES (1, 1, 'AGRL', 33.5);
        INSERT INTO crop VALUES (2, 2, 'FRSE', 15.0);
        CREATE TABLE usersoil (OBJECTID INTEGER, SNAM VARCHAR(30), NLAYERS INTEGER, HYDGRP VARCHAR(1));
        INSERT INTO usersoil VALUES (1, 'TX047', 3, 'B');
        """
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def reference_db(tmp_path: Path) -> Path:
    """A fresh SQLite reference database."""
    return make_reference_db(tmp_path / "QSWATRef2012.sqlite")


def make_template_qgz(path: Path, placeholder: str = "QSWATPROJECT") -> Path:
    """Template project archive with one .qgs descriptor and a .qgd sidecar."""
    descriptor = (
        f'<qgis projectname="{placeholder}" version="3.28">\n'
        f"  <title>{placeholder}</title>\n"
        f"  <datasource>./{placeholder}/Watershed/Rasters/DEM/dem.tif</datasource>\n"
        "</qgis>\n"
    )
    with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr("template.qgs", descriptor)
        archive.writestr("template.qgd", b"\x00\x01SQLite-ish sidecar\x02")
    return path


@pytest.fixture
def template_qgz(tmp_path: Path) -> Path:
    """A template archive using the default placeholder."""
    return make_template_qgz(tmp_path / "template.qgz")


@pytest.fixture
def synthetic_project(
    tmp_path: Path,
    watershed_gdf: gpd.GeoDataFrame,
    flowlines_gdf: gpd.GeoDataFrame,
    stations_gdf: gpd.GeoDataFrame,
    dem_array: np.ndarray,
    soils_array: np.ndarray,
    landuse_array: np.ndarray,
) -> Path:
    """
    Raw inputs plus a swatprep.toml pointing at them.

    Returns:
        Path to the configuration file; the project root is ``tmp_path/project``
    """
    raw = tmp_path / "raw"
    raw.mkdir()

    watershed_gdf.to_file(raw / "watershed.shp", driver="ESRI Shapefile")
    flowlines_gdf.to_file(raw / "flowlines.gpkg", driver="GPKG")
    stations_gdf.to_file(raw / "stations.gpkg", driver="GPKG")

    write_raster(raw / "ned.tif", dem_array)
    write_raster(raw / "soils.tif", soils_array)
    write_raster(raw / "landuse.tif", landuse_array)

    pd.DataFrame(
        {
            "code": [1, 2, 3],
            "label": ["TX047", "TX112", "TX999"],
            "NLAYERS": [3, 2, 1],
            "HYDGRP": ["B", "C", "D"],
        }
    ).to_csv(raw / "usersoil.csv", index=False)

    pd.DataFrame(
        {
            "code": [11, 42, 82],
            "label": ["WATR", "FRSE", "CRPS"],
            "template": ["", "", "AGRL"],
        }
    ).to_csv(raw / "landuse.csv", index=False)

    make_reference_db(tmp_path / "QSWATRef2012.sqlite")
    make_template_qgz(tmp_path / "template.qgz")

    config_path = tmp_path / "swatprep.toml"
    config_path.write_text(
        """
[project]
name = "testshed"
root = "project"
epsg = 32612
padding = 200
snap_tolerance = 10

[sources]
watershed = "raw/watershed.shp"
flowlines = "raw/flowlines.gpkg"
stations = "raw/stations.gpkg"
dem = "raw/ned.tif"
soils = "raw/soils.tif"
soils_table = "raw/usersoil.csv"
landuse = "raw/landuse.tif"
landuse_table = "raw/landuse.csv"

[refdb]
path = "QSWATRef2012.sqlite"

[package]
template = "template.qgz"
"""
    )
    return config_path
