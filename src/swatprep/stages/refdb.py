"""
patch_refdb: teach the plugin's reference database the project's classes.
"""

import logging

from swatprep.config.defaults import STAGE_LANDUSE, STAGE_REFDB, STAGE_SOILS
from swatprep.core.lookup import read_lookup_table
from swatprep.core.refdb import CROP_TABLE, USERSOIL_TABLE, patch_reference_db
from swatprep.core.registry import Artifact, ArtifactType
from swatprep.core.stage import Stage, StageContext

logger = logging.getLogger(__name__)


class RefDbStage(Stage):
    """
    Adds missing crop and usersoil rows to the configured reference database.

    The database itself usually lives outside the project (it ships with the
    plugin), so only the audit tables are declared: the two ``*_before.csv``
    snapshots and the migration log. A table can be put back with
    ``swatprep.core.refdb.restore_table`` and its snapshot.
    """

    name = STAGE_REFDB
    requires = (STAGE_SOILS, STAGE_LANDUSE)
    description = "reference database migration with before-snapshots and a migration log"

    def artifacts(self, ctx: StageContext) -> list[Artifact]:
        audit_dir = f"{ctx.config.paths.prepared_dir}/refdb"
        return [
            Artifact(
                "crop_before",
                f"{audit_dir}/{CROP_TABLE}_before.csv",
                ArtifactType.LOOKUP,
                "crop table as it was before the migration",
            ),
            Artifact(
                "usersoil_before",
                f"{audit_dir}/{USERSOIL_TABLE}_before.csv",
                ArtifactType.LOOKUP,
                "usersoil table as it was before the migration",
            ),
            Artifact(
                "migration_log",
                f"{audit_dir}/migration_log.csv",
                ArtifactType.LOOKUP,
                "rows added per table by the migration",
            ),
        ]

    def run(self, ctx: StageContext) -> None:
        if ctx.config.refdb is None:
            raise ValueError(f"Stage '{self.name}' needs a [refdb] section in the configuration")

        db_path = ctx.config.refdb.path
        logger.info(f"Patching reference database {db_path}")

        migrations = patch_reference_db(
            db_path,
            landuse_lookup=read_lookup_table(ctx.registry.require(STAGE_LANDUSE, "landuse_lookup")),
            soils_lookup=read_lookup_table(ctx.registry.require(STAGE_SOILS, "soils_lookup")),
            snapshot_dir=self.output(ctx, "crop_before").parent,
            log_path=self.output(ctx, "migration_log"),
            default_template=ctx.config.refdb.crop_template,
        )

        for migration in migrations:
            if migration.is_noop:
                logger.info(f"Table '{migration.table}' already up to date")
            else:
                logger.info(f"Table '{migration.table}': added {migration.rows_added} row(s)")
