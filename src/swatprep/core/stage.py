"""
Base class for pipeline stages.

A stage is a named unit of work that declares the artifacts it produces,
names the stages it depends on, and runs the conversion steps that write
those artifacts. Stages never hard-code the paths of upstream data: they look
them up in the metadata registry, which fails loudly when an upstream stage
has not run.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from swatprep.config.schema import PipelineConfig
from swatprep.core.registry import Artifact, ArtifactType, MetadataRegistry

logger = logging.getLogger(__name__)


@dataclass
class StageContext:
    """Everything a stage needs at run time."""

    config: PipelineConfig
    registry: MetadataRegistry

    @property
    def root(self) -> Path:
        return self.registry.root


class Stage(ABC):
    """
    A node of the pipeline DAG.

    Subclasses set ``name`` and ``requires`` (and ``sources``, the keys of the
    configured sources they fetch) and implement ``artifacts`` and ``run``.
    The driver declares ``artifacts`` in the registry before calling ``run``
    and again after it returns, so ``run`` can resolve its own output paths
    with ``self.output(ctx, key)``.
    """

    name: str = ""
    requires: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    description: str = ""

    @abstractmethod
    def artifacts(self, ctx: StageContext) -> list[Artifact]:
        """Full list of artifacts this stage declares."""

    @abstractmethod
    def run(self, ctx: StageContext) -> None:
        """Produce every declared artifact."""

    def outputs(self, ctx: StageContext) -> list[Path]:
        """
        Paths whose presence marks the stage as complete.

        Directories are excluded: an empty directory says nothing about
        whether the files in it were written.
        """
        return [a.absolute(ctx.root) for a in self.artifacts(ctx) if a.type != ArtifactType.DIRECTORY]

    def inputs(self, ctx: StageContext) -> list[Path]:
        """
        Files this stage reads, used for input fingerprints.

        Defaults to the configured sources named in ``sources`` plus every file
        artifact declared by the required stages. A remote source contributes
        only its name.
        """
        paths: list[Path] = [Path(ctx.config.source(key)) for key in self.sources]
        for upstream in self.requires:
            if not ctx.registry.has_stage(upstream):
                continue
            for artifact in ctx.registry.load_snapshot(upstream).values():
                if artifact.type != ArtifactType.DIRECTORY:
                    paths.append(artifact.absolute(ctx.root))
        return paths

    def output(self, ctx: StageContext, key: str) -> Path:
        """Absolute path of one of this stage's own declared artifacts."""
        return ctx.registry.resolve(self.name, key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, requires={self.requires!r})"
