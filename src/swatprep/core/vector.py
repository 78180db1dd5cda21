"""
Vector conversion steps for boundaries, streams and outlet points.

Reading, reprojection, clipping, dissolving and nearest-line queries are all
done by geopandas and shapely. The functions here encode what the modeling
plugin expects from its inputs:

- a shapefile holds a single geometry type, so stream networks are reduced to
  plain LineString features before writing;
- outlets are gauging stations with a usable time series, snapped onto the
  stream network and carrying exactly the ID, RES, INLET, PTSOURCE columns.
"""

import logging
from pathlib import Path

import geopandas as gpd
import pandas as pd
from shapely.geometry import (
    GeometryCollection,
    LinearRing,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Point,
    Polygon,
)
from shapely.ops import nearest_points

from swatprep.core.cache import atomic_bundle, atomic_output
from swatprep.core.errors import FormatConstraintViolation

logger = logging.getLogger(__name__)

POINT_TYPES = {"Point", "MultiPoint"}

# Attribute schema of the QSWAT+ inlets/outlets shapefile, in order
OUTLET_COLUMNS = ["ID", "RES", "INLET", "PTSOURCE"]


def read_vector(path: Path, crs: str | int | None = None) -> gpd.GeoDataFrame:
    """
    Read a vector file, optionally reprojecting it.

    Args:
        path: Any format geopandas can read (GeoPackage, Shapefile, GeoJSON, ...)
        crs: Target CRS; None keeps the file's CRS

    Returns:
        GeoDataFrame
    """
    gdf = gpd.read_file(path)
    if crs is not None:
        gdf = gdf.to_crs(crs)
    logger.debug(f"Read {len(gdf)} feature(s) from {Path(path).name}")
    return gdf


def write_vector(gdf: gpd.GeoDataFrame, dst_path: Path) -> Path:
    """
    Write a GeoDataFrame atomically, choosing the driver from the suffix.

    ``.shp`` outputs are written as a bundle (.shp/.shx/.dbf/.prj/.cpg) with
    the .shp moved into place last; everything else goes to a GeoPackage.
    """
    dst_path = Path(dst_path)

    if dst_path.suffix.lower() == ".shp":
        with atomic_bundle(dst_path) as tmp_path:
            gdf.to_file(tmp_path, driver="ESRI Shapefile")
    else:
        # layer named after the final file
        with atomic_output(dst_path) as tmp_path:
            gdf.to_file(tmp_path, driver="GPKG", layer=dst_path.stem)

    logger.info(f"Wrote {len(gdf)} feature(s) to {dst_path}")
    return dst_path


def _buffer(geom: Polygon | MultiPolygon, dist: float) -> Polygon | MultiPolygon:
    # out-then-in buffer removes slivers and dangles left by the union
    return geom.buffer(dist, join_style=2).buffer(-dist, join_style=2)


def dissolve_boundary(gdf: gpd.GeoDataFrame, clean_dist: float = 0.01) -> gpd.GeoDataFrame:
    """
    Merge watershed polygons into a single boundary feature.

    Args:
        gdf: One or more (sub)watershed polygons
        clean_dist: Buffer distance used to fix topology, in CRS units

    Returns:
        GeoDataFrame with one row holding the dissolved boundary

    Raises:
        ValueError: If the input has no features
    """
    if gdf.empty:
        raise ValueError("Cannot dissolve an empty set of watershed polygons")

    merged = _buffer(gdf.geometry.union_all(), clean_dist)
    logger.info(f"Dissolved {len(gdf)} polygon(s) into one boundary ({merged.area:.1f} square units)")

    return gpd.GeoDataFrame(index=[0], geometry=[merged], crs=gdf.crs)


def pad_boundary(boundary: gpd.GeoDataFrame, distance: float) -> gpd.GeoDataFrame:
    """
    Buffer a boundary outward, for data that should extend past the watershed.

    Args:
        boundary: Boundary polygon(s), in a projected CRS
        distance: Buffer distance in CRS units

    Returns:
        GeoDataFrame with the padded boundary
    """
    if boundary.crs is not None and boundary.crs.is_geographic:
        logger.warning("Padding a boundary in a geographic CRS: distance is in degrees")

    padded = boundary.geometry.buffer(distance)
    return gpd.GeoDataFrame(index=boundary.index, geometry=padded, crs=boundary.crs)


def load_region(path: Path, crs: str | int) -> gpd.GeoDataFrame:
    """Read watershed polygons and dissolve them to one boundary in ``crs``."""
    return dissolve_boundary(read_vector(path, crs=crs))


def clip_to_region(gdf: gpd.GeoDataFrame, region: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Clip features to a region polygon, reprojecting the features first if needed."""
    if gdf.crs != region.crs:
        gdf = gdf.to_crs(region.crs)

    clipped = gpd.clip(gdf, region)
    logger.debug(f"Clipped {len(gdf)} feature(s) to {len(clipped)}")
    return clipped


def _line_parts(geom) -> list[LineString]:
    """Split a geometry into LineString parts; point parts are dropped."""
    if geom is None or geom.is_empty:
        return []

    if isinstance(geom, (Point, MultiPoint)):
        return []
    if isinstance(geom, LinearRing):
        return [LineString(geom.coords)]
    if isinstance(geom, LineString):
        return [geom]
    if isinstance(geom, MultiLineString):
        return list(geom.geoms)
    if isinstance(geom, Polygon):
        return [LineString(geom.exterior.coords)] + [LineString(ring.coords) for ring in geom.interiors]
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        return [part for sub_geom in geom.geoms for part in _line_parts(sub_geom)]

    raise FormatConstraintViolation(f"Cannot cast geometry of type {geom.geom_type} to LineString")


def cast_to_linestrings(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """
    Reduce a mixed geometry collection to LineString features only.

    Point features are dropped. Multi-part lines are exploded into one
    feature per part (attributes repeated), and polygon rings become lines.

    Args:
        gdf: Features of any geometry type

    Returns:
        GeoDataFrame where every geometry is a LineString

    Raises:
        FormatConstraintViolation: If a geometry type cannot be cast
    """
    is_point = gdf.geom_type.isin(POINT_TYPES)
    if is_point.any():
        logger.info(f"Dropping {int(is_point.sum())} point feature(s) from stream network")
    lines = gdf[~is_point]

    geometry_name = lines.geometry.name
    parts = lines.geometry.apply(_line_parts)

    exploded = (
        pd.DataFrame(lines.drop(columns=geometry_name))
        .assign(_parts=parts.values)
        .explode("_parts")
    )
    exploded = exploded[exploded["_parts"].notna()]

    result = gpd.GeoDataFrame(
        exploded.drop(columns="_parts").reset_index(drop=True),
        geometry=list(exploded["_parts"]),
        crs=gdf.crs,
    )

    bad_types = set(result.geom_type) - {"LineString"}
    if bad_types:
        raise FormatConstraintViolation(f"Stream network still holds non-line geometry: {sorted(bad_types)}")

    return result


def export_streams(lines: gpd.GeoDataFrame, dst_path: Path) -> Path:
    """
    Write a stream network as a single-type LineString shapefile.

    Args:
        lines: Stream features, possibly mixed with points or multi-part lines
        dst_path: Output .shp path

    Returns:
        Path to the written shapefile

    Raises:
        FormatConstraintViolation: If no line features remain, or a geometry cannot be cast
    """
    streams = cast_to_linestrings(lines)
    if streams.empty:
        raise FormatConstraintViolation("Stream network has no line features to write")

    logger.info(f"Exporting {len(streams)} stream line(s) from {len(lines)} input feature(s)")
    return write_vector(streams, dst_path)


def select_outlets(points: gpd.GeoDataFrame, codes: list[str], code_field: str) -> gpd.GeoDataFrame:
    """
    Keep only stations with a recognized time-series data-type code.

    Raises:
        ValueError: If the code attribute is missing
    """
    if code_field not in points.columns:
        raise ValueError(f"Station layer has no '{code_field}' attribute; columns are {list(points.columns)}")

    selected = points[points[code_field].astype(str).str.strip().isin(codes)]
    logger.info(f"Selected {len(selected)} of {len(points)} station(s) with codes {codes}")
    return selected


def snap_points(points: gpd.GeoDataFrame, lines: gpd.GeoDataFrame, tolerance: float) -> gpd.GeoDataFrame:
    """
    Move points onto the nearest line when one lies within tolerance.

    Points farther than ``tolerance`` from every line keep their position.

    Args:
        points: Point features
        lines: Line network (its CRS is used for the result)
        tolerance: Maximum snapping distance in CRS units

    Returns:
        Copy of ``points`` in the line CRS with snapped geometries
    """
    points = points.to_crs(lines.crs).reset_index(drop=True)
    if points.empty or lines.empty:
        return points

    line_geoms = lines.geometry.reset_index(drop=True)
    point_idx, line_idx = lines.sindex.nearest(points.geometry, return_all=False, max_distance=tolerance)

    snapped = points.geometry.copy()
    for p, ln in zip(point_idx, line_idx, strict=True):
        snapped.iloc[p] = nearest_points(line_geoms.iloc[ln], points.geometry.iloc[p])[0]

    unsnapped = len(points) - len(set(point_idx))
    if unsnapped:
        logger.warning(f"{unsnapped} point(s) have no stream within {tolerance} units and were not snapped")

    return points.set_geometry(snapped)


def export_outlets(
    points: gpd.GeoDataFrame,
    streams: gpd.GeoDataFrame,
    dst_path: Path,
    codes: list[str],
    code_field: str,
    tolerance: float,
) -> Path:
    """
    Write the inlets/outlets shapefile for the modeling plugin.

    Stations are filtered by data-type code, snapped to the stream network,
    and given the integer attributes ID (1..n), RES, INLET and PTSOURCE (all
    flags 0, i.e. plain outlets), in that order.

    Args:
        points: Candidate station points
        streams: Stream network the outlets are snapped to
        dst_path: Output .shp path
        codes: Recognized data-type codes
        code_field: Attribute holding the data-type code
        tolerance: Snapping distance in stream CRS units

    Returns:
        Path to the written shapefile
    """
    selected = select_outlets(points, codes, code_field)
    if selected.empty:
        raise ValueError(f"No stations carry any of the outlet codes {codes}")

    snapped = snap_points(selected, streams, tolerance)

    n = len(snapped)
    outlets = gpd.GeoDataFrame(
        {
            "ID": pd.array(range(1, n + 1), dtype="int32"),
            "RES": pd.array([0] * n, dtype="int32"),
            "INLET": pd.array([0] * n, dtype="int32"),
            "PTSOURCE": pd.array([0] * n, dtype="int32"),
        },
        geometry=list(snapped.geometry),
        crs=streams.crs,
    )[OUTLET_COLUMNS + ["geometry"]]

    return write_vector(outlets, dst_path)
