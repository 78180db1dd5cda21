"""
Exception types for the swatprep pipeline.

Failures raised by the geospatial and database libraries (rasterio, geopandas,
pyodbc, httpx, zipfile) are not wrapped here: they propagate unchanged and
abort the run like any of the errors below.
"""


class PipelineError(Exception):
    """Base class for errors raised by swatprep itself."""

    pass


class MissingUpstreamArtifact(PipelineError, LookupError):
    """
    Raised when a required artifact was never declared or is absent on disk.

    This always means the pipeline was run out of order (or an upstream file
    was deleted), so there is no default to fall back on.
    """

    def __init__(self, stage: str, key: str, reason: str = "not declared") -> None:
        self.stage = stage
        self.key = key
        self.reason = reason
        super().__init__(f"Missing upstream artifact '{key}' from stage '{stage}': {reason}")


class UnmappedClassCode(PipelineError):
    """Raised when a raster holds class codes that have no lookup table row."""

    def __init__(self, codes: list[int], table: str = "reference table") -> None:
        self.codes = sorted(codes)
        self.table = table
        super().__init__(f"{len(self.codes)} class code(s) missing from {table}: {self.codes}")


class FormatConstraintViolation(PipelineError):
    """Raised when features cannot be made to fit a single-geometry-type output."""

    pass
