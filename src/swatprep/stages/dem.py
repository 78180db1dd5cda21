"""
get_dem: digital elevation model for the padded study area.
"""

import logging
import tempfile
from pathlib import Path

from rasterio.enums import Resampling

from swatprep.config.defaults import STAGE_BASINS, STAGE_DEM
from swatprep.core.plots import plot_raster
from swatprep.core.raster import crop_and_mask, warp_raster
from swatprep.core.registry import Artifact, ArtifactType
from swatprep.core.stage import Stage, StageContext
from swatprep.core.vector import read_vector
from swatprep.download import fetch_source, source_filename

logger = logging.getLogger(__name__)


class DemStage(Stage):
    """Fetches the elevation source, warps it to the project CRS and masks it."""

    name = STAGE_DEM
    requires = (STAGE_BASINS,)
    sources = ("dem",)
    description = "elevation raster warped to the project CRS and masked to the padded boundary"

    def artifacts(self, ctx: StageContext) -> list[Artifact]:
        paths = ctx.config.paths
        return [
            Artifact(
                "ned",
                f"{paths.source_dir}/{source_filename(ctx.config.source('dem'))}",
                ArtifactType.SOURCE,
                "elevation source as downloaded (unchanged)",
            ),
            Artifact(
                "dem",
                f"{paths.prepared_dir}/dem.tif",
                ArtifactType.RASTER,
                "elevation in the project CRS, masked to the padded boundary",
            ),
            Artifact(
                "img_dem",
                f"{paths.graphics_dir}/dem.png",
                ArtifactType.GRAPHIC,
                "map of the elevation raster",
            ),
        ]

    def run(self, ctx: StageContext) -> None:
        project = ctx.config.project

        ned_path = fetch_source(ctx.config.source("dem"), self.output(ctx, "ned"), overwrite=True)
        padded = read_vector(ctx.registry.require(STAGE_BASINS, "boundary_padded"))

        with tempfile.TemporaryDirectory(dir=self.output(ctx, "dem").parent) as tmp_dir:
            warped = warp_raster(ned_path, Path(tmp_dir) / "dem_warped.tif", project.epsg, Resampling.bilinear)
            crop_and_mask(warped, self.output(ctx, "dem"), padded, project.nodata)

        plot_raster(
            self.output(ctx, "dem"),
            read_vector(ctx.registry.require(STAGE_BASINS, "boundary")),
            self.output(ctx, "img_dem"),
            title=f"{project.name}: elevation",
            label="elevation (m)",
            cmap="terrain",
        )
