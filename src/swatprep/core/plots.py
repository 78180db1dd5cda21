"""
PNG previews of prepared rasters.
"""

import logging
from pathlib import Path

import geopandas as gpd
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import rasterio  # noqa: E402
from rasterio.plot import plotting_extent  # noqa: E402

from swatprep.core.cache import atomic_output  # noqa: E402

logger = logging.getLogger(__name__)

FIGURE_SIZE = (8, 9)
DPI = 150


def plot_raster(
    raster_path: Path,
    boundary: gpd.GeoDataFrame,
    dst_path: Path,
    title: str,
    label: str,
    cmap: str = "viridis",
) -> Path:
    """
    Render a single-band raster with a boundary outline to PNG.

    Args:
        raster_path: Raster to draw (NoData cells left blank)
        boundary: Outline drawn on top, reprojected to the raster CRS
        dst_path: Output PNG
        title: Figure title
        label: Colour bar label
        cmap: Matplotlib colour map

    Returns:
        Path to the written PNG
    """
    with rasterio.open(raster_path) as src:
        data = src.read(1, masked=True)
        extent = plotting_extent(src)
        crs = src.crs

    fig, ax = plt.subplots(figsize=FIGURE_SIZE)
    try:
        image = ax.imshow(np.ma.filled(data.astype(float), np.nan), extent=extent, cmap=cmap)
        boundary.to_crs(crs).boundary.plot(ax=ax, color="white", linewidth=1)
        fig.colorbar(image, ax=ax, label=label, shrink=0.7)
        ax.set_title(title)
        ax.set_axis_off()

        with atomic_output(dst_path) as tmp_path:
            fig.savefig(tmp_path, dpi=DPI, bbox_inches="tight", format="png")
    finally:
        plt.close(fig)

    logger.info(f"Wrote plot: {dst_path}")
    return Path(dst_path)
