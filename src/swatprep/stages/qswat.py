"""
make_qswatplus: the QSWAT+ project folder.

The plugin expects its inputs in a fixed layout under the project folder::

    <qswat_dir>/<project>/
        Watershed/Rasters/DEM/dem.tif
        Watershed/Rasters/Landuse/landuse.tif
        Watershed/Rasters/Soil/soil.tif
        Watershed/Shapes/streams.shp
        Watershed/Shapes/outlets.shp
        landuse_lookup.csv
        soil_lookup.csv

All rasters are masked to the watershed boundary with the project NoData
sentinel, and the lookup tables use the plugin's column names.
"""

import logging

from swatprep.config.defaults import STAGE_BASINS, STAGE_DEM, STAGE_LANDUSE, STAGE_QSWAT, STAGE_SOILS
from swatprep.core.lookup import read_lookup_table, write_lookup_table
from swatprep.core.raster import crop_and_mask
from swatprep.core.registry import Artifact, ArtifactType
from swatprep.core.stage import Stage, StageContext
from swatprep.core.vector import clip_to_region, export_outlets, export_streams, read_vector

logger = logging.getLogger(__name__)

# Plugin column names for the lookup tables
LANDUSE_LOOKUP_COLUMNS = {"code": "LANDUSE_ID", "label": "SWAT_CODE"}
SOIL_LOOKUP_COLUMNS = {"code": "SOIL_ID", "label": "SNAM"}


class QswatStage(Stage):
    """Writes the plugin-ready rasters, shapefiles and lookup tables."""

    name = STAGE_QSWAT
    requires = (STAGE_BASINS, STAGE_DEM, STAGE_SOILS, STAGE_LANDUSE)
    description = "QSWAT+ project folder with rasters, streams, outlets and lookups"

    def artifacts(self, ctx: StageContext) -> list[Artifact]:
        project_dir = f"{ctx.config.paths.qswat_dir}/{ctx.config.project.name}"
        rasters = f"{project_dir}/Watershed/Rasters"
        shapes = f"{project_dir}/Watershed/Shapes"

        return [
            Artifact("project_dir", project_dir, ArtifactType.DIRECTORY, "QSWAT+ project folder"),
            Artifact("dem", f"{rasters}/DEM/dem.tif", ArtifactType.RASTER, "DEM masked to the watershed"),
            Artifact(
                "landuse",
                f"{rasters}/Landuse/landuse.tif",
                ArtifactType.RASTER,
                "land-use classes masked to the watershed",
            ),
            Artifact("soils", f"{rasters}/Soil/soil.tif", ArtifactType.RASTER, "soil classes masked to the watershed"),
            Artifact(
                "streams",
                f"{shapes}/streams.shp",
                ArtifactType.VECTOR,
                "stream network as LineString features",
            ),
            Artifact(
                "outlets",
                f"{shapes}/outlets.shp",
                ArtifactType.VECTOR,
                "gauging-station outlets snapped to the streams",
            ),
            Artifact(
                "landuse_lookup",
                f"{project_dir}/landuse_lookup.csv",
                ArtifactType.LOOKUP,
                "LANDUSE_ID to SWAT_CODE",
            ),
            Artifact("soil_lookup", f"{project_dir}/soil_lookup.csv", ArtifactType.LOOKUP, "SOIL_ID to SNAM"),
        ]

    def run(self, ctx: StageContext) -> None:
        project = ctx.config.project
        registry = ctx.registry

        boundary = read_vector(registry.require(STAGE_BASINS, "boundary"))

        logger.info("Masking rasters to the watershed boundary")
        crop_and_mask(registry.require(STAGE_DEM, "dem"), self.output(ctx, "dem"), boundary, project.nodata)
        crop_and_mask(
            registry.require(STAGE_LANDUSE, "landuse"), self.output(ctx, "landuse"), boundary, project.nodata
        )
        crop_and_mask(registry.require(STAGE_SOILS, "soils"), self.output(ctx, "soils"), boundary, project.nodata)

        flowlines = read_vector(registry.require(STAGE_BASINS, "flowlines"))
        export_streams(clip_to_region(flowlines, boundary), self.output(ctx, "streams"))

        # snap against the file the plugin will read, not the raw flowlines
        streams = read_vector(self.output(ctx, "streams"))
        stations = read_vector(registry.require(STAGE_BASINS, "stations"), crs=streams.crs)
        export_outlets(
            stations,
            streams,
            self.output(ctx, "outlets"),
            codes=project.outlet_codes,
            code_field=project.outlet_code_field,
            tolerance=project.snap_tolerance,
        )

        write_lookup_table(
            read_lookup_table(registry.require(STAGE_LANDUSE, "landuse_lookup")),
            self.output(ctx, "landuse_lookup"),
            rename=LANDUSE_LOOKUP_COLUMNS,
        )
        write_lookup_table(
            read_lookup_table(registry.require(STAGE_SOILS, "soils_lookup")),
            self.output(ctx, "soil_lookup"),
            rename=SOIL_LOOKUP_COLUMNS,
        )
