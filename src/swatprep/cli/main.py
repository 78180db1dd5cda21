"""
Main Typer CLI application for swatprep.

This module provides the command-line interface with four subcommands:
- run: Run the preparation pipeline (or selected stages)
- status: Show declared artifacts and whether they exist
- lookup: Print the path of one declared artifact
- stages: Show the stage execution order
"""

import logging
import os
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from swatprep.config import ENV_LOG_FILE, PipelineConfig, load_config
from swatprep.core import MetadataRegistry, PipelineDriver, PipelineError, UnmappedClassCode

from .output import ArtifactStatus, OutputFormatter

# Initialize Typer app
app = typer.Typer(
    name="swatprep",
    help="Prepare QSWAT+ watershed model inputs from public geodata",
    no_args_is_help=True,
    add_completion=False,
)

# Initialize Rich console for formatted output
console = Console()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ConfigArgument = Annotated[
    Path,
    typer.Argument(
        help="Path to pipeline configuration file (swatprep.toml)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
]


def _setup_logging(verbose: bool, quiet: bool) -> None:
    """
    Configure logging level based on verbosity flags.

    Also attaches a file handler when SWATPREP_LOG_FILE is set.

    Args:
        verbose: Enable debug logging
        quiet: Suppress all logging except errors
    """
    root = logging.getLogger()
    if quiet:
        root.setLevel(logging.ERROR)
    elif verbose:
        root.setLevel(logging.DEBUG)
    else:
        root.setLevel(logging.INFO)

    log_file = os.getenv(ENV_LOG_FILE)
    if log_file and not any(isinstance(h, logging.FileHandler) for h in root.handlers):
        handler = logging.FileHandler(log_file)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root.addHandler(handler)


def _load(config_file: Path, formatter: OutputFormatter) -> PipelineConfig:
    try:
        return load_config(config_file)
    except ValidationError as e:
        formatter.print_error(f"Invalid configuration in {config_file}:\n{e}")
        raise typer.Exit(1) from None
    except (FileNotFoundError, ValueError) as e:
        formatter.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("run")
def run_command(
    config_file: ConfigArgument,
    stage: Annotated[
        list[str] | None,
        typer.Option("--stage", "-s", help="Run only this stage (repeatable)"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Run selected stages even if their outputs exist"),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show which stages would run without running them"),
    ] = False,
    output_format: Annotated[
        str,
        typer.Option("--output-format", help="Output format: text or json"),
    ] = "text",
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Suppress progress output"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show detailed progress"),
    ] = False,
) -> None:
    """
    Run the preparation pipeline defined by CONFIG_FILE.

    \b
    Stages whose declared outputs already exist are skipped, so an
    interrupted run picks up where it stopped. Use --force to rebuild.

    \b
    EXAMPLES:
        swatprep run swatprep.toml
        swatprep run swatprep.toml --dry-run
        swatprep run swatprep.toml --stage get_dem --force
    """
    _setup_logging(verbose=verbose, quiet=quiet)

    if output_format not in ["text", "json"]:
        console.print(f"[red]Error:[/red] Invalid output format '{output_format}'. Must be 'text' or 'json'.")
        raise typer.Exit(1)

    formatter = OutputFormatter(output_format=output_format, quiet=quiet)
    config = _load(config_file, formatter)

    try:
        driver = PipelineDriver(config)

        if dry_run:
            formatter.print_plan(driver.plan(stage))
            raise typer.Exit(0)

        results = driver.run(only=stage, force=force)
        formatter.print_results(results)

    except typer.Exit:
        raise
    except UnmappedClassCode as e:
        logger.critical(str(e))
        formatter.print_error(str(e), hint="Add the missing codes to the reference table and re-run")
        raise typer.Exit(1) from None
    except PipelineError as e:
        logger.error(str(e))
        formatter.print_error(str(e))
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        logger.warning("Process interrupted by user")
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise typer.Exit(130) from None
    except Exception as e:
        logger.exception("Unexpected error during run command")
        formatter.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("status")
def status_command(
    config_file: ConfigArgument,
    output_format: Annotated[
        str,
        typer.Option("--output-format", help="Output format: text or json"),
    ] = "text",
) -> None:
    """
    Show every declared artifact and whether it exists on disk.
    """
    if output_format not in ["text", "json"]:
        console.print(f"[red]Error:[/red] Invalid output format '{output_format}'. Must be 'text' or 'json'.")
        raise typer.Exit(1)

    formatter = OutputFormatter(output_format=output_format)
    config = _load(config_file, formatter)
    registry = MetadataRegistry(config.root_path, config.paths.metadata_dir)

    rows: list[ArtifactStatus] = []
    for stage_name in registry.declared_stages():
        for artifact in registry.load_snapshot(stage_name).values():
            rows.append(
                ArtifactStatus(
                    stage=stage_name,
                    key=artifact.key,
                    path=artifact.path,
                    type=artifact.type.value,
                    present=artifact.absolute(registry.root).exists(),
                )
            )

    formatter.print_status(rows)


@app.command("lookup")
def lookup_command(
    config_file: ConfigArgument,
    stage: Annotated[str, typer.Argument(help="Stage name (e.g. get_dem)")],
    key: Annotated[str, typer.Argument(help="Artifact key (e.g. dem)")],
    absolute: Annotated[
        bool,
        typer.Option("--absolute", "-a", help="Print the absolute path"),
    ] = False,
) -> None:
    """
    Print the declared path of one artifact.

    \b
    EXAMPLES:
        swatprep lookup swatprep.toml get_dem dem
    """
    formatter = OutputFormatter()
    config = _load(config_file, formatter)
    registry = MetadataRegistry(config.root_path, config.paths.metadata_dir)

    try:
        path = registry.resolve(stage, key) if absolute else registry.lookup(stage, key)
    except PipelineError as e:
        formatter.print_error(str(e))
        raise typer.Exit(1) from None

    typer.echo(str(path))


@app.command("stages")
def stages_command(config_file: ConfigArgument) -> None:
    """
    Show the stages in execution order with their dependencies.
    """
    formatter = OutputFormatter()
    config = _load(config_file, formatter)

    try:
        driver = PipelineDriver(config)
    except ValueError as e:
        formatter.print_error(str(e))
        raise typer.Exit(1) from None

    table = Table(title="Pipeline stages", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage", style="cyan")
    table.add_column("Requires")
    table.add_column("Description")

    for idx, stage in enumerate(driver.order(), 1):
        table.add_row(str(idx), stage.name, ", ".join(stage.requires) or "-", stage.description)

    console.print(table)


if __name__ == "__main__":
    app()
