"""
Typer CLI for swatprep.

This module exports the Typer application that runs and inspects the QSWAT+
preparation pipeline.
"""

from .main import app

__all__ = ["app"]
