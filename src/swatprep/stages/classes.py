"""
get_soils and get_landuse: categorical rasters with their lookup tables.

Both stages follow the same steps: fetch the class raster and its reference
table, warp the raster to the project CRS with nearest-neighbour resampling
(class codes must never be averaged), mask it to the watershed boundary, and
reconcile the codes left inside the watershed against the reference table.
A code with no row in the reference table stops the run.
"""

import logging
import tempfile
from pathlib import Path

from rasterio.enums import Resampling

from swatprep.config.defaults import STAGE_BASINS, STAGE_LANDUSE, STAGE_SOILS
from swatprep.core.lookup import read_reference_table, reconcile_lookup, write_lookup_table
from swatprep.core.plots import plot_raster
from swatprep.core.raster import class_codes, crop_and_mask, warp_raster
from swatprep.core.registry import Artifact, ArtifactType
from swatprep.core.stage import Stage, StageContext
from swatprep.core.vector import read_vector
from swatprep.download import fetch_source, source_filename

logger = logging.getLogger(__name__)


class ClassRasterStage(Stage):
    """
    Shared steps for a categorical raster plus reference table.

    Subclasses set ``source_key`` (the raster source; its table is
    ``<source_key>_table``) and ``label`` for log messages and maps.
    """

    requires = (STAGE_BASINS,)
    source_key: str = ""
    label: str = ""
    cmap: str = "tab20"

    @property
    def table_key(self) -> str:
        return f"{self.source_key}_table"

    @property
    def sources(self) -> tuple[str, ...]:
        return (self.source_key, self.table_key)

    def artifacts(self, ctx: StageContext) -> list[Artifact]:
        paths = ctx.config.paths
        key = self.source_key

        return [
            Artifact(
                f"{key}_src",
                f"{paths.source_dir}/{source_filename(ctx.config.source(key))}",
                ArtifactType.SOURCE,
                f"{self.label} raster as downloaded (unchanged)",
            ),
            Artifact(
                f"{self.table_key}_src",
                f"{paths.source_dir}/{source_filename(ctx.config.source(self.table_key))}",
                ArtifactType.SOURCE,
                f"{self.label} reference table as downloaded (unchanged)",
            ),
            Artifact(
                key,
                f"{paths.prepared_dir}/{key}.tif",
                ArtifactType.RASTER,
                f"{self.label} classes in the project CRS, masked to the boundary",
            ),
            Artifact(
                f"{key}_lookup",
                f"{paths.prepared_dir}/{key}_lookup.csv",
                ArtifactType.LOOKUP,
                f"reference rows for the {self.label} codes present in the watershed",
            ),
            Artifact(
                f"img_{key}",
                f"{paths.graphics_dir}/{key}.png",
                ArtifactType.GRAPHIC,
                f"map of the {self.label} classes",
            ),
        ]

    def run(self, ctx: StageContext) -> None:
        project = ctx.config.project
        key = self.source_key

        raster_src = fetch_source(ctx.config.source(key), self.output(ctx, f"{key}_src"), overwrite=True)
        table_src = fetch_source(
            ctx.config.source(self.table_key), self.output(ctx, f"{self.table_key}_src"), overwrite=True
        )
        boundary = read_vector(ctx.registry.require(STAGE_BASINS, "boundary"))

        raster_path = self.output(ctx, key)
        with tempfile.TemporaryDirectory(dir=raster_path.parent) as tmp_dir:
            warped = warp_raster(raster_src, Path(tmp_dir) / f"{key}_warped.tif", project.epsg, Resampling.nearest)
            crop_and_mask(warped, raster_path, boundary, project.nodata)

        codes = class_codes(raster_path)
        logger.info(f"{len(codes)} {self.label} class(es) inside the watershed")

        reference = read_reference_table(table_src)
        lookup = reconcile_lookup(codes, reference, table_name=f"{self.label} reference table")
        write_lookup_table(lookup, self.output(ctx, f"{key}_lookup"))

        plot_raster(
            raster_path,
            boundary,
            self.output(ctx, f"img_{key}"),
            title=f"{project.name}: {self.label}",
            label=f"{self.label} code",
            cmap=self.cmap,
        )


class SoilsStage(ClassRasterStage):
    """Soil map units and their usersoil parameters."""

    name = STAGE_SOILS
    description = "soils raster, soils reference table and reconciled lookup"
    source_key = "soils"
    label = "soils"


class LanduseStage(ClassRasterStage):
    """Land-use classes and their crop names."""

    name = STAGE_LANDUSE
    description = "land-use raster, land-use reference table and reconciled lookup"
    source_key = "landuse"
    label = "land use"
