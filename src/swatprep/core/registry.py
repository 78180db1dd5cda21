"""
Metadata registry for pipeline artifacts.

Every stage declares the files it produces as a flat table with one row per
artifact (key, path, type, description). The table is written to
``<metadata_dir>/<stage>_metadata.csv`` and fully replaced on each declaration,
so it always describes the stage's most recent run. Later stages look up their
inputs by (stage, key) instead of hard-coding paths.

Paths are stored relative to the project root so that a project directory can
be moved or shared without invalidating its registry.
"""

import csv
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath

from swatprep.config.defaults import DEFAULT_METADATA_DIR, DEFAULT_METADATA_SUFFIX
from swatprep.core.cache import atomic_output
from swatprep.core.errors import MissingUpstreamArtifact

logger = logging.getLogger(__name__)

METADATA_COLUMNS = ["key", "path", "type", "description"]


class ArtifactType(str, Enum):
    """Type tags recorded for each artifact."""

    DIRECTORY = "directory"
    RASTER = "raster"
    VECTOR = "vector-geometry-collection"
    LOOKUP = "tabular-lookup"
    PROJECT = "project-file"
    GRAPHIC = "graphic"
    DOCUMENT = "json-document"
    SOURCE = "source-file"


@dataclass(frozen=True)
class Artifact:
    """
    A single file (or directory) produced by a pipeline stage.

    Attributes:
        key: Symbolic name, unique within the declaring stage
        path: Location relative to the project root, POSIX separators
        type: Type tag
        description: Free text shown in status listings
    """

    key: str
    path: str
    type: ArtifactType
    description: str = ""

    def absolute(self, root: Path) -> Path:
        """Return the artifact location under a project root."""
        return Path(root) / PurePosixPath(self.path)


ArtifactEntry = Artifact | tuple[str, str | Path, ArtifactType | str, str]


class MetadataRegistry:
    """
    Reads and writes per-stage artifact tables for one project.

    Not safe for concurrent writers: a pipeline run is a single process that
    overwrites each stage's table in turn.
    """

    def __init__(
        self,
        root: Path,
        metadata_dir: str | Path = DEFAULT_METADATA_DIR,
        suffix: str = DEFAULT_METADATA_SUFFIX,
    ):
        """
        Initialize registry for a project.

        Args:
            root: Project root directory; all stored paths are relative to it
            metadata_dir: Directory (relative to root) holding the CSV tables
            suffix: File name suffix appended to the stage name
        """
        self.root = Path(root).resolve()
        self.metadata_dir = self.root / metadata_dir
        self.suffix = suffix

    def metadata_path(self, stage: str) -> Path:
        """Path of the CSV table for a stage."""
        return self.metadata_dir / f"{stage}{self.suffix}"

    def relative_path(self, path: str | Path) -> str:
        """
        Express a path relative to the project root.

        Relative inputs are taken as already relative to the root. Absolute
        paths outside the root are rejected, since they would make the
        registry non-portable.

        Raises:
            ValueError: If an absolute path is not under the project root
        """
        path = Path(path)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(self.root)
            except ValueError:
                raise ValueError(f"Artifact path {path} is outside the project root {self.root}") from None
        return path.as_posix()

    def _to_artifact(self, entry: ArtifactEntry) -> Artifact:
        if isinstance(entry, Artifact):
            return Artifact(entry.key, self.relative_path(entry.path), ArtifactType(entry.type), entry.description)

        key, path, type_tag, description = entry
        return Artifact(
            key=key,
            path=self.relative_path(path),
            type=ArtifactType(type_tag),
            description=description,
        )

    def declare(self, stage: str, entries: Iterable[ArtifactEntry]) -> dict[str, Artifact]:
        """
        Write the artifact table for a stage, replacing any previous one.

        Args:
            stage: Stage name
            entries: Artifacts, or (key, path, type, description) tuples

        Returns:
            The declared snapshot, keyed by artifact key

        Raises:
            ValueError: If a key appears more than once, or a path lies outside the root
        """
        artifacts = [self._to_artifact(entry) for entry in entries]

        keys = [artifact.key for artifact in artifacts]
        duplicates = sorted({key for key in keys if keys.count(key) > 1})
        if duplicates:
            raise ValueError(f"Duplicate artifact keys declared for stage '{stage}': {duplicates}")

        table_path = self.metadata_path(stage)
        table_path.parent.mkdir(parents=True, exist_ok=True)

        with atomic_output(table_path) as tmp_path, open(tmp_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(METADATA_COLUMNS)
            for artifact in artifacts:
                writer.writerow([artifact.key, artifact.path, artifact.type.value, artifact.description])

        logger.info(f"Declared {len(artifacts)} artifact(s) for stage '{stage}' in {table_path}")
        return {artifact.key: artifact for artifact in artifacts}

    def has_stage(self, stage: str) -> bool:
        """Check whether a stage has ever been declared."""
        return self.metadata_path(stage).exists()

    def load_snapshot(self, stage: str) -> dict[str, Artifact]:
        """
        Read the artifact table for a stage.

        Raises:
            MissingUpstreamArtifact: If the stage has never been declared
        """
        table_path = self.metadata_path(stage)
        if not table_path.exists():
            raise MissingUpstreamArtifact(stage, "*", reason=f"stage never declared (no {table_path.name})")

        snapshot: dict[str, Artifact] = {}
        with open(table_path, newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                snapshot[row["key"]] = Artifact(
                    key=row["key"],
                    path=row["path"],
                    type=ArtifactType(row["type"]),
                    description=row["description"],
                )

        logger.debug(f"Loaded {len(snapshot)} artifact(s) for stage '{stage}'")
        return snapshot

    def get(self, stage: str, key: str) -> Artifact:
        """
        Return the full artifact record for (stage, key).

        Raises:
            MissingUpstreamArtifact: If the stage or key is unknown
        """
        snapshot = self.load_snapshot(stage)
        if key not in snapshot:
            raise MissingUpstreamArtifact(stage, key)
        return snapshot[key]

    def lookup(self, stage: str, key: str) -> str:
        """
        Return the root-relative path declared for (stage, key).

        Example:
            >>> registry.declare("get_dem", [("dem", "data/dem.tif", "raster", "DEM")])
            >>> registry.lookup("get_dem", "dem")
            'data/dem.tif'
        """
        return self.get(stage, key).path

    def resolve(self, stage: str, key: str) -> Path:
        """Return the absolute path declared for (stage, key)."""
        return self.get(stage, key).absolute(self.root)

    def require(self, stage: str, key: str) -> Path:
        """
        Return the absolute path for (stage, key), checking that it exists.

        Raises:
            MissingUpstreamArtifact: If undeclared, or declared but absent on disk
        """
        path = self.resolve(stage, key)
        if not path.exists():
            raise MissingUpstreamArtifact(stage, key, reason=f"declared but file is absent: {path}")
        return path

    def declared_stages(self) -> list[str]:
        """Names of all stages with a metadata table, sorted."""
        if not self.metadata_dir.exists():
            return []
        return sorted(p.name[: -len(self.suffix)] for p in self.metadata_dir.glob(f"*{self.suffix}"))
