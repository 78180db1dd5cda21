"""
File-presence cache checks and atomic output helpers.

The pipeline treats an output file on disk as proof that the step producing
it already ran: artifacts are expensive to build and deterministic given their
inputs, so ``needs_run`` only checks presence. Stale outputs are not detected
by default. Projects that need that can switch to fingerprint mode, where a
stage also re-runs when the SHA-256 digest of its input files changes.

Because presence is the cache signal, outputs must never appear on disk half
written. ``atomic_output`` and ``atomic_bundle`` write into temporary names and
move the result into place only after the writer finished without error.
"""

import hashlib
import json
import logging
import os
import shutil
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from uuid import uuid4

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class CacheMode(str, Enum):
    """How the driver decides whether a stage is up to date."""

    PRESENCE = "presence"
    FINGERPRINT = "fingerprint"


def needs_run(output_paths: Iterable[Path | str]) -> bool:
    """
    Decide whether a step must (re)generate its outputs.

    Args:
        output_paths: Every path the step writes

    Returns:
        True if any path is absent (or none were given), False only when all exist
    """
    paths = [Path(p) for p in output_paths]
    if not paths:
        return True

    missing = [p for p in paths if not p.exists()]
    for path in missing:
        logger.debug(f"Output missing: {path}")

    return len(missing) > 0


def _partial_name(path: Path) -> Path:
    # keep the real suffix so format drivers that sniff extensions still work
    return path.with_name(f".{path.stem}.{uuid4().hex[:8]}.partial{path.suffix}")


@contextmanager
def atomic_output(path: Path | str) -> Iterator[Path]:
    """
    Yield a temporary path that replaces ``path`` when the block succeeds.

    The temporary file lives in the same directory so the final rename is
    atomic. On error it is removed and ``path`` is left untouched.

    Example:
        >>> with atomic_output(Path("data/dem.tif")) as tmp:
        ...     write_raster(tmp)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _partial_name(path)

    try:
        yield tmp_path
    except BaseException:
        if tmp_path.exists():
            tmp_path.unlink()
        raise

    if not tmp_path.exists():
        raise FileNotFoundError(f"Writer did not produce any output for {path}")

    os.replace(tmp_path, path)
    logger.debug(f"Moved {tmp_path.name} into place as {path}")


@contextmanager
def atomic_bundle(path: Path | str) -> Iterator[Path]:
    """
    Atomic writes for multi-file formats such as ESRI Shapefile.

    Yields a path with the same file name inside a temporary directory. Once
    the block succeeds, every file written there is moved next to ``path``,
    with the primary file (``path`` itself) moved last, so a presence check on
    the primary file only passes when the whole bundle is in place.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_dir = path.parent / f".{path.stem}.{uuid4().hex[:8]}.partial"
    tmp_dir.mkdir()

    try:
        yield tmp_dir / path.name

        written = sorted(tmp_dir.iterdir())
        if not any(p.name == path.name for p in written):
            raise FileNotFoundError(f"Writer did not produce {path.name}")

        for member in sorted(written, key=lambda p: p.name == path.name):
            os.replace(member, path.parent / member.name)
            logger.debug(f"Moved bundle member into place: {member.name}")
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)


def _hash_file(digest, path: Path) -> None:
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)


def fingerprint_files(paths: Iterable[Path | str]) -> str:
    """
    SHA-256 digest over the names and bytes of a set of input files.

    Directories are hashed through every file they contain. Missing paths
    contribute only their name, so a disappearing input changes the digest.
    """
    digest = hashlib.sha256()

    for path in sorted(Path(p) for p in paths):
        files = sorted(f for f in path.rglob("*") if f.is_file()) if path.is_dir() else [path]
        for file_path in files:
            digest.update(str(file_path.name).encode("utf-8"))
            if file_path.exists():
                _hash_file(digest, file_path)

    return digest.hexdigest()


def load_fingerprint(path: Path) -> str | None:
    """Read a stored fingerprint, or None if none was recorded."""
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        return json.load(f).get("fingerprint")


def save_fingerprint(path: Path, fingerprint: str) -> None:
    """Store the input fingerprint of a completed stage."""
    with atomic_output(path) as tmp_path, open(tmp_path, "w", encoding="utf-8") as f:
        json.dump({"fingerprint": fingerprint}, f, indent=2)
