"""
Core pipeline machinery and conversion steps.

This module contains core functionality for:
- The metadata registry of declared artifacts
- Cache checks and atomic writes
- The stage base class and the pipeline driver
- Raster, vector and lookup-table conversion steps
- Reference database migration and project packaging
"""

from .cache import CacheMode, atomic_bundle, atomic_output, fingerprint_files, needs_run
from .errors import FormatConstraintViolation, MissingUpstreamArtifact, PipelineError, UnmappedClassCode
from .lookup import read_lookup_table, read_reference_table, reconcile_lookup, write_lookup_table
from .package import build_project_package
from .pipeline import PipelineDriver, StagePlan, StageResult
from .refdb import TableMigration, patch_reference_db, restore_table
from .registry import Artifact, ArtifactType, MetadataRegistry
from .stage import Stage, StageContext

__all__ = [
    # Registry
    "Artifact",
    "ArtifactType",
    "MetadataRegistry",
    # Cache
    "CacheMode",
    "atomic_bundle",
    "atomic_output",
    "fingerprint_files",
    "needs_run",
    # Errors
    "PipelineError",
    "MissingUpstreamArtifact",
    "UnmappedClassCode",
    "FormatConstraintViolation",
    # Pipeline
    "Stage",
    "StageContext",
    "PipelineDriver",
    "StagePlan",
    "StageResult",
    # Lookup tables
    "read_reference_table",
    "reconcile_lookup",
    "write_lookup_table",
    "read_lookup_table",
    # Reference database and packaging
    "TableMigration",
    "patch_reference_db",
    "restore_table",
    "build_project_package",
]
