"""
Configuration management for swatprep.

This module provides Pydantic-based configuration schemas for validating
and loading the TOML configuration file that drives a pipeline run.

Key exports:
- PipelineConfig: Root configuration from swatprep.toml
- ProjectConfig, PathsConfig, RefDbConfig, PackageConfig: sections
- load_config(): Load and validate a configuration file
"""

from .defaults import (
    DEFAULT_METADATA_DIR,
    DEFAULT_METADATA_SUFFIX,
    DEFAULT_NODATA,
    DEFAULT_OUTLET_CODES,
    DEFAULT_SNAP_TOLERANCE,
    ENV_LOG_FILE,
    ENV_PROJECT_ROOT,
    STAGE_BASINS,
    STAGE_DEM,
    STAGE_LANDUSE,
    STAGE_PACKAGE,
    STAGE_QSWAT,
    STAGE_REFDB,
    STAGE_SOILS,
)
from .schema import (
    PackageConfig,
    PathsConfig,
    PipelineConfig,
    ProjectConfig,
    RefDbConfig,
    is_url,
    load_config,
)

__all__ = [
    # Main models
    "PipelineConfig",
    "ProjectConfig",
    "PathsConfig",
    "RefDbConfig",
    "PackageConfig",
    # Loaders
    "load_config",
    "is_url",
    # Defaults
    "DEFAULT_METADATA_DIR",
    "DEFAULT_METADATA_SUFFIX",
    "DEFAULT_NODATA",
    "DEFAULT_OUTLET_CODES",
    "DEFAULT_SNAP_TOLERANCE",
    # Stage names
    "STAGE_BASINS",
    "STAGE_DEM",
    "STAGE_SOILS",
    "STAGE_LANDUSE",
    "STAGE_QSWAT",
    "STAGE_REFDB",
    "STAGE_PACKAGE",
    # Environment variables
    "ENV_PROJECT_ROOT",
    "ENV_LOG_FILE",
]
