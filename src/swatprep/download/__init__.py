"""
Download module for raw source data.

This module brings the configured source datasets into the project:
- remote files over HTTP (httpx, with tqdm progress bars)
- local files, copied with their shapefile sidecars
"""

from .http_client import download_file
from .sources import copy_source, fetch_source, source_filename

__all__ = [
    "download_file",
    "copy_source",
    "fetch_source",
    "source_filename",
]
