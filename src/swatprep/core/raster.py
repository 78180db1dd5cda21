"""
Raster conversion steps: warping, cropping and masking.

All grid operations are delegated to rasterio (GDAL). This module only chains
them in the order the modeling plugin needs and makes sure the NoData
sentinel ends up in every masked cell and in the GeoTIFF NoData tag.

Masking is two operations, not one: cropping to the bounding box of the
region polygon restricts the extent, and masking sets every cell outside the
polygon outline to the sentinel. ``rasterio.mask.mask`` with ``crop=True``
does both in a single call.
"""

import logging
import shutil
from pathlib import Path

import geopandas as gpd
import numpy as np
import rasterio
import rasterio.mask
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.warp import calculate_default_transform, reproject

from swatprep.core.cache import atomic_output

logger = logging.getLogger(__name__)


def _dtype_for_nodata(dtype: str, nodata: float) -> str:
    """
    Return a dtype able to hold both the data and the sentinel.

    Unsigned or narrow integer rasters (e.g. uint8 land cover) cannot store
    -9999, so they are promoted to int32. Float rasters are kept as they are.
    """
    np_dtype = np.dtype(dtype)
    if np.issubdtype(np_dtype, np.floating):
        return dtype

    info = np.iinfo(np_dtype)
    if float(nodata).is_integer() and info.min <= nodata <= info.max:
        return dtype
    if float(nodata).is_integer():
        return "int32"
    return "float32"


def warp_raster(
    src_path: Path,
    dst_path: Path,
    dst_crs: str | int | CRS,
    resampling: Resampling = Resampling.bilinear,
) -> Path:
    """
    Reproject a raster to another coordinate reference system.

    A raster already in the target CRS is copied unchanged.

    Args:
        src_path: Input raster
        dst_path: Output GeoTIFF
        dst_crs: Target CRS (EPSG code, string, or rasterio CRS)
        resampling: Resampling method; use nearest for categorical rasters

    Returns:
        Path to the written raster
    """
    if isinstance(dst_crs, int):
        dst_crs = CRS.from_epsg(dst_crs)
    else:
        dst_crs = CRS.from_user_input(dst_crs)

    with rasterio.open(src_path) as src:
        if src.crs == dst_crs:
            logger.info(f"{Path(src_path).name} already in {dst_crs}, copying")
            with atomic_output(dst_path) as tmp_path:
                shutil.copyfile(src_path, tmp_path)
            return Path(dst_path)

        logger.info(f"Warping {Path(src_path).name} from {src.crs} to {dst_crs} ({resampling.name})")

        transform, width, height = calculate_default_transform(
            src.crs, dst_crs, src.width, src.height, *src.bounds
        )

        profile = src.profile.copy()
        profile.update(
            {
                "driver": "GTiff",
                "crs": dst_crs,
                "transform": transform,
                "width": width,
                "height": height,
            }
        )

        with atomic_output(dst_path) as tmp_path:
            with rasterio.open(tmp_path, "w", **profile) as dst:
                for band in range(1, src.count + 1):
                    reproject(
                        source=rasterio.band(src, band),
                        destination=rasterio.band(dst, band),
                        src_transform=src.transform,
                        src_crs=src.crs,
                        src_nodata=src.nodata,
                        dst_transform=transform,
                        dst_crs=dst_crs,
                        dst_nodata=src.nodata,
                        resampling=resampling,
                    )

    logger.info(f"Wrote warped raster: {dst_path}")
    return Path(dst_path)


def crop_and_mask(
    src_path: Path,
    dst_path: Path,
    region: gpd.GeoDataFrame,
    nodata: float,
) -> Path:
    """
    Crop a raster to a region's bounding box and mask cells outside the region.

    The region is reprojected to the raster's CRS first. Source cells that
    were NoData in the input are also set to the sentinel, so the output has a
    single NoData value.

    Args:
        src_path: Input raster
        dst_path: Output GeoTIFF
        region: Polygon(s) defining the region of interest
        nodata: Sentinel for every cell outside the region

    Returns:
        Path to the written raster

    Raises:
        ValueError: If the region is empty or does not overlap the raster
    """
    if region.empty:
        raise ValueError("Cannot mask raster to an empty region")

    with rasterio.open(src_path) as src:
        shapes = region.to_crs(src.crs).geometry

        out_dtype = _dtype_for_nodata(src.dtypes[0], nodata)

        # unfilled result masks both outside-polygon and source NoData cells;
        # cast before filling since the source dtype may not hold the sentinel
        data, transform = rasterio.mask.mask(
            src,
            shapes,
            crop=True,
            filled=False,
            all_touched=False,
        )
        filled = data.astype(out_dtype).filled(nodata)

        profile = src.profile.copy()
        profile.update(
            {
                "driver": "GTiff",
                "dtype": out_dtype,
                "nodata": nodata,
                "height": filled.shape[1],
                "width": filled.shape[2],
                "transform": transform,
            }
        )

    with atomic_output(dst_path) as tmp_path:
        with rasterio.open(tmp_path, "w", **profile) as dst:
            dst.write(filled)

    masked_cells = int(np.count_nonzero(filled == nodata))
    logger.info(f"Wrote masked raster {dst_path} ({filled.shape[2]}x{filled.shape[1]}, {masked_cells} NoData cells)")
    return Path(dst_path)


def class_codes(raster_path: Path) -> set[int]:
    """
    Distinct class codes present in a categorical raster, excluding NoData.

    Args:
        raster_path: Categorical raster (soil map units, land cover classes)

    Returns:
        Set of integer codes
    """
    with rasterio.open(raster_path) as src:
        data = src.read(1, masked=True)

    values = np.unique(data.compressed())
    codes = {int(v) for v in values}
    logger.debug(f"Found {len(codes)} class code(s) in {Path(raster_path).name}")
    return codes


def raster_bounds(raster_path: Path) -> tuple[float, float, float, float]:
    """Bounds (left, bottom, right, top) of a raster in its own CRS."""
    with rasterio.open(raster_path) as src:
        return tuple(src.bounds)
