"""
get_basins: watershed boundary, stream flowlines and gauging stations.

Everything downstream is cropped to the boundary polygons written here, and
the CRS document fixes the projection every other stage warps to.
"""

import json
import logging

from pyproj import CRS

from swatprep.config.defaults import STAGE_BASINS
from swatprep.core.cache import atomic_output
from swatprep.core.registry import Artifact, ArtifactType
from swatprep.core.stage import Stage, StageContext
from swatprep.core.vector import clip_to_region, load_region, pad_boundary, read_vector, write_vector
from swatprep.download import fetch_source, source_filename

logger = logging.getLogger(__name__)


class BasinsStage(Stage):
    """Builds the study-area boundary and clips the source vector layers to it."""

    name = STAGE_BASINS
    requires = ()
    sources = ("watershed", "flowlines", "stations")
    description = "watershed boundary, padded boundary, flowlines and stations"

    def artifacts(self, ctx: StageContext) -> list[Artifact]:
        paths = ctx.config.paths
        return [
            Artifact(
                "watershed_src",
                f"{paths.source_dir}/{source_filename(ctx.config.source('watershed'))}",
                ArtifactType.SOURCE,
                "watershed polygons as downloaded (unchanged)",
            ),
            Artifact(
                "flowlines_src",
                f"{paths.source_dir}/{source_filename(ctx.config.source('flowlines'))}",
                ArtifactType.SOURCE,
                "stream flowlines as downloaded (unchanged)",
            ),
            Artifact(
                "stations_src",
                f"{paths.source_dir}/{source_filename(ctx.config.source('stations'))}",
                ArtifactType.SOURCE,
                "gauging station points as downloaded (unchanged)",
            ),
            Artifact(
                "boundary",
                f"{paths.prepared_dir}/boundary.gpkg",
                ArtifactType.VECTOR,
                "watershed boundary polygon in the project CRS",
            ),
            Artifact(
                "boundary_padded",
                f"{paths.prepared_dir}/boundary_padded.gpkg",
                ArtifactType.VECTOR,
                "watershed boundary buffered by the padding distance",
            ),
            Artifact(
                "flowlines",
                f"{paths.prepared_dir}/flowlines.gpkg",
                ArtifactType.VECTOR,
                "stream flowlines clipped to the padded boundary",
            ),
            Artifact(
                "stations",
                f"{paths.prepared_dir}/stations.gpkg",
                ArtifactType.VECTOR,
                "gauging stations inside the watershed boundary",
            ),
            Artifact(
                "crs",
                f"{paths.prepared_dir}/crs.json",
                ArtifactType.DOCUMENT,
                "project coordinate reference system (EPSG code, WKT, units)",
            ),
        ]

    def run(self, ctx: StageContext) -> None:
        project = ctx.config.project
        crs = CRS.from_epsg(project.epsg)

        for key in self.sources:
            fetch_source(ctx.config.source(key), self.output(ctx, f"{key}_src"), overwrite=True)

        boundary = load_region(self.output(ctx, "watershed_src"), project.epsg)
        write_vector(boundary, self.output(ctx, "boundary"))

        padded = pad_boundary(boundary, project.padding)
        write_vector(padded, self.output(ctx, "boundary_padded"))

        flowlines = read_vector(self.output(ctx, "flowlines_src"), crs=project.epsg)
        write_vector(clip_to_region(flowlines, padded), self.output(ctx, "flowlines"))

        stations = read_vector(self.output(ctx, "stations_src"), crs=project.epsg)
        write_vector(clip_to_region(stations, boundary), self.output(ctx, "stations"))

        crs_info = {
            "epsg": project.epsg,
            "name": crs.name,
            "units": crs.axis_info[0].unit_name if crs.axis_info else None,
            "wkt": crs.to_wkt(),
        }
        with atomic_output(self.output(ctx, "crs")) as tmp_path, open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(crs_info, f, indent=2)

        logger.info(f"Boundary prepared in {crs.name}")
