"""
Default values and environment variables for swatprep configuration.

This module centralizes all default values, environment variable names,
stage names and file naming conventions used throughout swatprep.
"""

# Environment variable names
ENV_PROJECT_ROOT = "SWATPREP_PROJECT_ROOT"
ENV_LOG_FILE = "SWATPREP_LOG_FILE"

# Default project settings
DEFAULT_PROJECT_ROOT = "."
DEFAULT_NODATA = -9999
DEFAULT_PADDING = 5000.0  # CRS units (metres for UTM)
DEFAULT_SNAP_TOLERANCE = 10.0  # CRS units
DEFAULT_CACHE_MODE = "presence"

# USGS NWIS time-series codes: daily values, instantaneous values, historical instantaneous values
DEFAULT_OUTLET_CODES = ["dv", "iv", "id"]
DEFAULT_OUTLET_CODE_FIELD = "data_type_cd"

# Default directory layout (relative to project root)
DEFAULT_METADATA_DIR = "data"
DEFAULT_SOURCE_DIR = "data/source"
DEFAULT_PREPARED_DIR = "data/prepared"
DEFAULT_GRAPHICS_DIR = "graphics"
DEFAULT_QSWAT_DIR = "qswat"

# Naming conventions
DEFAULT_METADATA_SUFFIX = "_metadata.csv"
DEFAULT_FINGERPRINT_SUFFIX = "_fingerprint.json"

# Reference database and project package
DEFAULT_PLACEHOLDER = "QSWATPROJECT"
DEFAULT_CROP_TEMPLATE = "AGRL"

# Stage names
STAGE_BASINS = "get_basins"
STAGE_DEM = "get_dem"
STAGE_SOILS = "get_soils"
STAGE_LANDUSE = "get_landuse"
STAGE_QSWAT = "make_qswatplus"
STAGE_REFDB = "patch_refdb"
STAGE_PACKAGE = "package_project"
