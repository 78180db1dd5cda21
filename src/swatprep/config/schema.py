"""
Pydantic models for swatprep configuration files.

This module defines the configuration schema for the swatprep pipeline using
Pydantic v2. It validates TOML configuration files and provides type-safe
access to configuration values.

The configuration hierarchy:
- PipelineConfig (swatprep.toml): root object handed to the pipeline driver
- ProjectConfig ([project]): project name, root, CRS, sentinel and tolerances
- PathsConfig ([paths]): directory layout under the project root
- sources ([sources]): raw input locations, local paths or URLs
- RefDbConfig ([refdb]): reference database to patch
- PackageConfig ([package]): project archive template
"""

import logging
import os
import re
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator
from pyproj import CRS
from pyproj.exceptions import CRSError

from .defaults import (
    DEFAULT_CACHE_MODE,
    DEFAULT_CROP_TEMPLATE,
    DEFAULT_GRAPHICS_DIR,
    DEFAULT_METADATA_DIR,
    DEFAULT_NODATA,
    DEFAULT_OUTLET_CODE_FIELD,
    DEFAULT_OUTLET_CODES,
    DEFAULT_PADDING,
    DEFAULT_PLACEHOLDER,
    DEFAULT_PREPARED_DIR,
    DEFAULT_PROJECT_ROOT,
    DEFAULT_QSWAT_DIR,
    DEFAULT_SNAP_TOLERANCE,
    DEFAULT_SOURCE_DIR,
    ENV_PROJECT_ROOT,
)

logger = logging.getLogger(__name__)


def is_url(location: str) -> bool:
    """Check whether a source location is a remote http(s) URL."""
    return location.startswith(("http://", "https://"))


class ProjectConfig(BaseModel):
    """
    Project-wide settings.

    All distances (padding, snap tolerance) are in units of the project CRS.
    """

    name: str = Field(..., description="Project name, used for the QSWAT+ project files")
    root: str = Field(default=DEFAULT_PROJECT_ROOT, description="Project root directory")
    epsg: int = Field(..., description="EPSG code of the project coordinate reference system")
    nodata: float = Field(default=DEFAULT_NODATA, description="NoData sentinel written to masked rasters")
    padding: float = Field(default=DEFAULT_PADDING, ge=0, description="Buffer distance for the padded boundary")
    snap_tolerance: float = Field(
        default=DEFAULT_SNAP_TOLERANCE, ge=0, description="Maximum distance for snapping outlets to streams"
    )
    outlet_codes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_OUTLET_CODES),
        description="Time-series data-type codes that mark a station as an outlet",
    )
    outlet_code_field: str = Field(
        default=DEFAULT_OUTLET_CODE_FIELD, description="Station attribute holding the data-type code"
    )
    cache_mode: str = Field(default=DEFAULT_CACHE_MODE, description="'presence' or 'fingerprint'")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Project names end up in file names, so they must be identifiers."""
        if not v or not v.strip():
            raise ValueError("Project name cannot be empty")

        v = v.strip()
        if not re.match(r"^[a-zA-Z][a-zA-Z0-9_]*$", v):
            raise ValueError(
                f"Project name '{v}' must be a valid identifier "
                "(start with letter, contain only letters, numbers, and underscores)"
            )
        return v

    @field_validator("epsg")
    @classmethod
    def validate_epsg(cls, v: int) -> int:
        """Ensure the EPSG code is known to pyproj."""
        try:
            CRS.from_epsg(v)
        except CRSError as e:
            raise ValueError(f"Unknown EPSG code {v}: {e}") from e
        return v

    @field_validator("outlet_codes")
    @classmethod
    def validate_outlet_codes(cls, v: list[str]) -> list[str]:
        """Strip codes and require at least one."""
        codes = [code.strip() for code in v if code and code.strip()]
        if not codes:
            raise ValueError("At least one outlet code must be configured")
        return codes

    @field_validator("cache_mode")
    @classmethod
    def validate_cache_mode(cls, v: str) -> str:
        """Only the two supported cache modes are allowed."""
        v = v.strip().lower()
        if v not in ("presence", "fingerprint"):
            raise ValueError(f"cache_mode must be 'presence' or 'fingerprint', got '{v}'")
        return v


class PathsConfig(BaseModel):
    """Directory layout, relative to the project root."""

    metadata_dir: str = Field(default=DEFAULT_METADATA_DIR, description="Metadata CSV tables")
    source_dir: str = Field(default=DEFAULT_SOURCE_DIR, description="Raw downloads, kept unchanged")
    prepared_dir: str = Field(default=DEFAULT_PREPARED_DIR, description="Reprojected and cropped datasets")
    graphics_dir: str = Field(default=DEFAULT_GRAPHICS_DIR, description="PNG plots")
    qswat_dir: str = Field(default=DEFAULT_QSWAT_DIR, description="QSWAT+ project directory")

    @field_validator("*")
    @classmethod
    def validate_relative(cls, v: str) -> str:
        """Layout paths must stay inside the project root."""
        if not v or not v.strip():
            raise ValueError("Directory paths cannot be empty")
        v = v.strip()
        if Path(v).is_absolute():
            raise ValueError(f"Directory '{v}' must be relative to the project root")
        return v


class RefDbConfig(BaseModel):
    """Reference database shipped with the modeling plugin."""

    path: str = Field(..., description="Reference database (.mdb/.accdb via ODBC, or .sqlite)")
    crop_template: str = Field(
        default=DEFAULT_CROP_TEMPLATE, description="Crop cloned for land uses without a template column"
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure the database path is not empty and has a supported suffix."""
        if not v or not v.strip():
            raise ValueError("Reference database path cannot be empty")
        v = v.strip()
        if Path(v).suffix.lower() not in (".mdb", ".accdb", ".sqlite", ".db"):
            raise ValueError(f"Unsupported reference database type: {v}")
        return v


class PackageConfig(BaseModel):
    """Template for the QGIS project archive."""

    template: str = Field(..., description="Template .qgz archive")
    placeholder: str = Field(default=DEFAULT_PLACEHOLDER, description="Token replaced by the project name")

    @field_validator("placeholder")
    @classmethod
    def validate_placeholder(cls, v: str) -> str:
        """An empty placeholder would match everywhere."""
        if not v:
            raise ValueError("placeholder cannot be empty")
        return v


class PipelineConfig(BaseModel):
    """
    Root configuration for a swatprep pipeline run.

    This is loaded from swatprep.toml and passed to the pipeline driver. After
    ``load_config`` the root, source and template paths are absolute.
    """

    project: ProjectConfig
    paths: PathsConfig = Field(default_factory=PathsConfig)
    sources: dict[str, str] = Field(default_factory=dict, description="Raw input locations by source key")
    refdb: RefDbConfig | None = None
    package: PackageConfig | None = None

    @field_validator("sources")
    @classmethod
    def validate_sources(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no source location is empty."""
        empty = [key for key, location in v.items() if not location or not location.strip()]
        if empty:
            raise ValueError(f"Empty source location(s): {empty}")
        return {key: location.strip() for key, location in v.items()}

    @model_validator(mode="after")
    def validate_distinct_dirs(self) -> "PipelineConfig":
        """The source and prepared directories must not collide."""
        if Path(self.paths.source_dir) == Path(self.paths.prepared_dir):
            raise ValueError("source_dir and prepared_dir must be different directories")
        return self

    @property
    def root_path(self) -> Path:
        """Project root as a Path."""
        return Path(self.project.root)

    def source(self, key: str) -> str:
        """
        Location configured for a source key.

        Raises:
            KeyError: If the source is not configured
        """
        if key not in self.sources:
            raise KeyError(f"Source '{key}' is not configured in [sources]")
        return self.sources[key]


def _resolve(location: str, base_dir: Path) -> str:
    if is_url(location):
        return location
    path = Path(location).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return str(path)


def load_config(config_path: Path) -> PipelineConfig:
    """
    Load and validate a pipeline configuration file.

    This function reads a TOML configuration file, validates it using Pydantic,
    and resolves relative paths (project root, local sources, reference
    database, package template) against the config file location. The
    SWATPREP_PROJECT_ROOT environment variable overrides ``project.root``.

    Args:
        config_path: Path to the configuration TOML file (swatprep.toml)

    Returns:
        Validated PipelineConfig instance with resolved paths

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the TOML file is malformed
        pydantic.ValidationError: If the configuration is invalid

    Example:
        >>> config = load_config(Path("swatprep.toml"))
        >>> print(config.project.name)
        uyrw
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in configuration file: {e}") from e

    config = PipelineConfig.model_validate(data)

    config_dir = config_path.parent.resolve()

    env_root = os.getenv(ENV_PROJECT_ROOT)
    if env_root:
        logger.info(f"Project root overridden by {ENV_PROJECT_ROOT}: {env_root}")
        config.project.root = env_root
    config.project.root = _resolve(config.project.root, config_dir)

    for key, location in config.sources.items():
        config.sources[key] = _resolve(location, config_dir)
        logger.debug(f"Resolved source '{key}': {config.sources[key]}")

    if config.refdb is not None:
        config.refdb.path = _resolve(config.refdb.path, config_dir)
    if config.package is not None:
        config.package.template = _resolve(config.package.template, config_dir)

    logger.info(f"Successfully loaded configuration for project '{config.project.name}'")

    return config
