"""
Pipeline driver: runs stages in dependency order, skipping finished ones.

Stages form a directed acyclic graph through their ``requires`` lists. The
driver orders them topologically (ties broken by registration order) and,
for each stage, checks whether every declared output already exists. A stage
whose outputs all exist is skipped with no side effects: nothing is written
and its registry table is left exactly as its last real run wrote it.

In fingerprint cache mode a stage with all outputs present still runs when
the SHA-256 fingerprint of its input files (configured sources and upstream
artifacts) differs from the one stored after its previous run.

Any exception aborts the run. There is no retry and no rollback; completed
stages keep their outputs and are skipped on the next run.
"""

import logging
import time
from dataclasses import dataclass, field
from graphlib import TopologicalSorter
from pathlib import Path

from swatprep.config.defaults import DEFAULT_FINGERPRINT_SUFFIX
from swatprep.config.schema import PipelineConfig
from swatprep.core.cache import CacheMode, fingerprint_files, load_fingerprint, needs_run, save_fingerprint
from swatprep.core.registry import ArtifactType, MetadataRegistry
from swatprep.core.stage import Stage, StageContext

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    """Outcome of one stage in a pipeline run."""

    name: str
    status: str  # "ran" or "skipped"
    reason: str
    duration: float = 0.0
    outputs: list[Path] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Validate stage result fields."""
        if self.status not in ("ran", "skipped"):
            raise ValueError(f"status must be 'ran' or 'skipped', got '{self.status}'")


@dataclass
class StagePlan:
    """Whether a stage would run, and why."""

    stage: Stage
    will_run: bool
    reason: str


class PipelineDriver:
    """
    Runs a set of stages against one project.

    Example:
        >>> config = load_config(Path("swatprep.toml"))
        >>> driver = PipelineDriver(config)
        >>> results = driver.run()
        >>> [r.status for r in results]
        ['ran', 'ran', 'ran', 'ran', 'ran', 'ran', 'ran']
    """

    def __init__(
        self,
        config: PipelineConfig,
        stages: list[Stage] | None = None,
        registry: MetadataRegistry | None = None,
    ):
        """
        Initialize driver.

        Args:
            config: Validated pipeline configuration
            stages: Stages to run; defaults to the standard QSWAT+ preparation stages
            registry: Metadata registry; defaults to one rooted at the project root

        Raises:
            ValueError: If stage names repeat, a dependency is unknown, or dependencies form a cycle
        """
        if stages is None:
            from swatprep.stages import default_stages

            stages = default_stages(config)

        self.config = config
        self.registry = registry or MetadataRegistry(config.root_path, config.paths.metadata_dir)
        self.context = StageContext(config=config, registry=self.registry)
        self.cache_mode = CacheMode(config.project.cache_mode)

        names = [stage.name for stage in stages]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate stage names: {duplicates}")

        self.stages = {stage.name: stage for stage in stages}
        self._order = self._topological_order()

    def _topological_order(self) -> list[Stage]:
        registration = list(self.stages)

        for stage in self.stages.values():
            unknown = [dep for dep in stage.requires if dep not in self.stages]
            if unknown:
                raise ValueError(f"Stage '{stage.name}' depends on unknown stage(s): {unknown}")

        sorter = TopologicalSorter({stage.name: stage.requires for stage in self.stages.values()})
        sorter.prepare()  # raises graphlib.CycleError (a ValueError) on cycles

        order: list[Stage] = []
        while sorter.is_active():
            ready = sorted(sorter.get_ready(), key=registration.index)
            for name in ready:
                order.append(self.stages[name])
                sorter.done(name)

        return order

    def order(self) -> list[Stage]:
        """Stages in execution order."""
        return list(self._order)

    def _fingerprint_path(self, stage: Stage) -> Path:
        return self.registry.metadata_dir / f"{stage.name}{DEFAULT_FINGERPRINT_SUFFIX}"

    def check(self, stage: Stage) -> tuple[bool, str]:
        """
        Decide whether a stage needs to run.

        Returns:
            (needs_run, reason)
        """
        outputs = stage.outputs(self.context)
        if needs_run(outputs):
            missing = [p for p in outputs if not p.exists()]
            return True, f"{len(missing)} of {len(outputs)} output(s) missing"

        if self.cache_mode == CacheMode.FINGERPRINT:
            stored = load_fingerprint(self._fingerprint_path(stage))
            current = fingerprint_files(stage.inputs(self.context))
            if stored != current:
                return True, "input fingerprint changed"

        return False, "all outputs present"

    def plan(self, only: list[str] | None = None) -> list[StagePlan]:
        """Report which stages a run would execute, without running anything."""
        return [StagePlan(stage, *self.check(stage)) for stage in self._select(only)]

    def _select(self, only: list[str] | None) -> list[Stage]:
        if not only:
            return self.order()

        unknown = [name for name in only if name not in self.stages]
        if unknown:
            raise ValueError(f"Unknown stage(s): {unknown}. Available: {list(self.stages)}")
        return [stage for stage in self._order if stage.name in only]

    def run_stage(self, stage: Stage, reason: str = "requested") -> StageResult:
        """Declare, run and re-declare one stage unconditionally."""
        logger.info("=" * 60)
        logger.info(f"RUNNING STAGE {stage.name}")
        logger.info("=" * 60)

        start = time.perf_counter()
        artifacts = stage.artifacts(self.context)
        self.registry.declare(stage.name, artifacts)

        for artifact in artifacts:
            path = artifact.absolute(self.context.root)
            target = path if artifact.type == ArtifactType.DIRECTORY else path.parent
            target.mkdir(parents=True, exist_ok=True)

        stage.run(self.context)

        self.registry.declare(stage.name, artifacts)
        if self.cache_mode == CacheMode.FINGERPRINT:
            save_fingerprint(self._fingerprint_path(stage), fingerprint_files(stage.inputs(self.context)))

        duration = time.perf_counter() - start
        logger.info(f"Stage {stage.name} finished in {duration:.1f}s")
        return StageResult(
            name=stage.name,
            status="ran",
            reason=reason,
            duration=duration,
            outputs=stage.outputs(self.context),
        )

    def run(self, only: list[str] | None = None, force: bool = False) -> list[StageResult]:
        """
        Run the pipeline.

        Args:
            only: Restrict the run to these stage names (still in dependency order)
            force: Run selected stages even if their outputs exist

        Returns:
            One StageResult per selected stage, in execution order
        """
        results: list[StageResult] = []

        for stage in self._select(only):
            should_run, reason = (True, "forced") if force else self.check(stage)

            if not should_run:
                logger.info(f"Skipping stage {stage.name}: {reason}")
                results.append(StageResult(name=stage.name, status="skipped", reason=reason))
                continue

            logger.info(f"Stage {stage.name} needs to run: {reason}")
            results.append(self.run_stage(stage, reason))

        ran = sum(1 for r in results if r.status == "ran")
        logger.info(f"Pipeline complete: {ran} stage(s) ran, {len(results) - ran} skipped")
        return results
