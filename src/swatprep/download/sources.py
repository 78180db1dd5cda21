"""
Fetching of configured source datasets.

A source location in the ``[sources]`` table is either an http(s) URL or a
local path. Either way the file is brought into the project's source
directory unchanged, so every later step reads from inside the project root
and the registry can record it with a relative path.
"""

import logging
import shutil
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

from swatprep.config.schema import is_url
from swatprep.core.cache import atomic_output
from swatprep.download.http_client import download_file

logger = logging.getLogger(__name__)

# Sidecar files that travel with a shapefile
SHAPEFILE_SIDECARS = (".shx", ".dbf", ".prj", ".cpg", ".sbn", ".sbx", ".qix")


def source_filename(location: str) -> str:
    """File name of a source location (URL path or local path)."""
    if is_url(location):
        name = PurePosixPath(urlparse(location).path).name
        if not name:
            raise ValueError(f"Cannot derive a file name from URL: {location}")
        return name
    return Path(location).name


def copy_source(src: Path, dest_path: Path, overwrite: bool = False) -> Path:
    """
    Copy a local source file into the project, with shapefile sidecars.

    Raises:
        FileNotFoundError: If the source file does not exist
    """
    src = Path(src)
    dest_path = Path(dest_path)

    if not src.exists():
        raise FileNotFoundError(f"Source file not found: {src}")

    if dest_path.exists() and not overwrite:
        logger.info(f"File already exists: {dest_path}")
        return dest_path

    # sidecars first, so the .shp only appears once its bundle is complete
    if src.suffix.lower() == ".shp":
        for suffix in SHAPEFILE_SIDECARS:
            sidecar = src.with_suffix(suffix)
            if sidecar.exists():
                with atomic_output(dest_path.with_suffix(suffix)) as tmp_path:
                    shutil.copyfile(sidecar, tmp_path)

    with atomic_output(dest_path) as tmp_path:
        shutil.copyfile(src, tmp_path)

    logger.info(f"Copied source {src} to {dest_path}")
    return dest_path


def fetch_source(location: str, dest_path: Path, overwrite: bool = False) -> Path:
    """
    Bring a source dataset into the project directory.

    Args:
        location: URL or local path
        dest_path: Destination inside the project's source directory
        overwrite: Replace an existing copy

    Returns:
        Path to the local copy
    """
    if is_url(location):
        return download_file(location, dest_path, overwrite=overwrite)
    return copy_source(Path(location), dest_path, overwrite=overwrite)
