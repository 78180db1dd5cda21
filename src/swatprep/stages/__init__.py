"""
Pipeline stages for preparing a QSWAT+ project.

Each stage declares its artifacts in the metadata registry and reads its
inputs through the registry entries of the stages it requires.
"""

from swatprep.config.schema import PipelineConfig
from swatprep.core.stage import Stage

from .basins import BasinsStage
from .classes import ClassRasterStage, LanduseStage, SoilsStage
from .dem import DemStage
from .package import PackageStage
from .qswat import QswatStage
from .refdb import RefDbStage


def default_stages(config: PipelineConfig | None = None) -> list[Stage]:
    """
    The standard stages, in registration order.

    The reference database and packaging stages are only included when the
    configuration has a ``[refdb]`` / ``[package]`` section (always included
    when no configuration is given).
    """
    stages: list[Stage] = [BasinsStage(), DemStage(), SoilsStage(), LanduseStage(), QswatStage()]

    if config is None or config.refdb is not None:
        stages.append(RefDbStage())
    if config is None or config.package is not None:
        stages.append(PackageStage())

    return stages


__all__ = [
    "BasinsStage",
    "ClassRasterStage",
    "DemStage",
    "LanduseStage",
    "PackageStage",
    "QswatStage",
    "RefDbStage",
    "SoilsStage",
    "default_stages",
]
