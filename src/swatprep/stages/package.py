"""
package_project: the QGIS project archive opened by QSWAT+.
"""

import logging
from pathlib import Path

from swatprep.config.defaults import STAGE_PACKAGE, STAGE_QSWAT
from swatprep.core.package import build_project_package
from swatprep.core.registry import Artifact, ArtifactType
from swatprep.core.stage import Stage, StageContext

logger = logging.getLogger(__name__)


class PackageStage(Stage):
    """Writes ``<qswat_dir>/<project>.qgz`` from the configured template archive."""

    name = STAGE_PACKAGE
    requires = (STAGE_QSWAT,)
    description = "QGIS project archive named after the project"

    def artifacts(self, ctx: StageContext) -> list[Artifact]:
        name = ctx.config.project.name
        return [
            Artifact(
                "project_file",
                f"{ctx.config.paths.qswat_dir}/{name}.qgz",
                ArtifactType.PROJECT,
                f"QGIS project archive for {name}",
            )
        ]

    def inputs(self, ctx: StageContext) -> list[Path]:
        paths = super().inputs(ctx)
        if ctx.config.package is not None:
            paths.append(Path(ctx.config.package.template))
        return paths

    def run(self, ctx: StageContext) -> None:
        if ctx.config.package is None:
            raise ValueError(f"Stage '{self.name}' needs a [package] section in the configuration")

        build_project_package(
            ctx.config.package.template,
            self.output(ctx, "project_file"),
            project_name=ctx.config.project.name,
            placeholder=ctx.config.package.placeholder,
        )
