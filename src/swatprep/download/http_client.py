"""
HTTP download client for raw source data.

This module downloads source files (elevation tiles, land cover, soils
tables) over HTTP with a progress bar. Downloads are written to a temporary
file and moved into place only when complete, so an interrupted download
never leaves a file the pipeline would mistake for a finished one.

Failed downloads are not retried: the error propagates and aborts the run.
"""

import logging
from collections.abc import Callable
from pathlib import Path

import httpx
from tqdm import tqdm

from swatprep.core.cache import atomic_output

# Configure logging
logger = logging.getLogger(__name__)

# Download configuration
CHUNK_SIZE = 8192  # 8KB chunks
TIMEOUT = 3600.0  # 1 hour for large files


def download_file(
    url: str,
    dest_path: Path,
    overwrite: bool = False,
    progress_callback: Callable[[int, int], None] | None = None,
) -> Path:
    """
    Download a file from URL to destination path.

    Args:
        url: URL to download from
        dest_path: Path to save the file
        overwrite: If True, re-download even if file exists
        progress_callback: Optional callback(bytes_downloaded, total_bytes)

    Returns:
        Path to downloaded file

    Raises:
        httpx.HTTPError: Download failed
    """
    dest_path = Path(dest_path)

    if dest_path.exists() and not overwrite:
        logger.info(f"File already exists: {dest_path}")
        return dest_path

    logger.info(f"Downloading {url} to {dest_path}")

    with atomic_output(dest_path) as tmp_path:
        _download_file(url, tmp_path, progress_callback)

    logger.info(f"Successfully downloaded {dest_path.name}")
    return dest_path


def _download_file(
    url: str,
    dest_path: Path,
    progress_callback: Callable[[int, int], None] | None = None,
) -> None:
    """
    Stream a URL to a local path with progress tracking.

    Args:
        url: URL to download from
        dest_path: Path to save the file
        progress_callback: Optional callback(bytes_downloaded, total_bytes)

    Raises:
        httpx.HTTPError: Download failed
    """
    with httpx.Client(timeout=TIMEOUT, follow_redirects=True) as client, client.stream("GET", url) as response:
        response.raise_for_status()

        total_size = int(response.headers.get("content-length", 0))

        # Use tqdm if no callback provided
        if progress_callback is None and total_size > 0:
            progress_bar = tqdm(
                total=total_size,
                unit="B",
                unit_scale=True,
                desc=dest_path.name,
            )
        else:
            progress_bar = None

        bytes_downloaded = 0

        try:
            with open(dest_path, "wb") as f:
                for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
                    bytes_downloaded += len(chunk)

                    if progress_callback:
                        progress_callback(bytes_downloaded, total_size)
                    elif progress_bar:
                        progress_bar.update(len(chunk))
        finally:
            if progress_bar:
                progress_bar.close()
