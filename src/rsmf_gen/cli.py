"""Command-line interface for building and checking RSMF files."""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .archive import open_archive
from .body import build_body
from .config import GenerationOptions, Settings, get_settings
from .errors import InputError, RsmfError
from .generator import generate_rsmf, locate_manifest
from .manifest import derive_headers, parse_manifest
from .validator import ValidatorResult, ZipStructureValidator

console = Console()
err_console = Console(stderr=True)

_LOGGING_CONFIGURED = False

app = typer.Typer(
    help="Convert a directory holding rsmf_manifest.json and its attachments into an RSMF file.",
    no_args_is_help=True,
)


def _configure_logging(settings: Settings) -> None:
    """Initialize structlog and stdlib logging formatting."""
    # Idempotent setup
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if settings.log_json_enabled:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.processors.KeyValueRenderer(key_order=["event", "input_dir", "output"]))
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=level, format="%(message)s")
    _LOGGING_CONFIGURED = True


def _fail(prefix: str, exc: Exception) -> typer.Exit:
    err_console.print(f"[red]{prefix}[/] {escape(str(exc))}")
    return typer.Exit(code=1)


def _check_output_location(input_dir: Path, output_file: Path) -> None:
    parent = output_file.expanduser().resolve().parent
    if not parent.is_dir():
        raise InputError(f"Output directory {parent} doesn't exist.")
    if parent == input_dir.expanduser().resolve():
        raise InputError("Output RSMF should not be created in the input directory.")


# Option names are matched case-insensitively, so -VALIDATE works like -validate
@app.command("generate", context_settings={"token_normalize_func": str.lower})
def generate(
    input_dir: Annotated[Path, typer.Argument(help="Directory containing rsmf_manifest.json and any attachments it references.")],
    output_file: Annotated[Path, typer.Argument(help="RSMF file to write; must not be inside the input directory.")],
    validate: Annotated[
        Optional[bool],
        typer.Option(
            "--validate/--no-validate",
            "-validate",
            help="Validate the zip layer first; on validation errors no RSMF is created.",
        ),
    ] = None,
    generator: Annotated[Optional[str], typer.Option("--generator", help="Value of the X-RSMF-Generator header.")] = None,
    custodian_display: Annotated[Optional[str], typer.Option("--custodian-display", help="Display name for the From header.")] = None,
    custodian_email: Annotated[
        Optional[str],
        typer.Option("--custodian-email", help="Email for the From header; without one no From header is written."),
    ] = None,
    include_conversation: Annotated[
        Optional[bool],
        typer.Option("--include-conversation/--no-include-conversation", help="Write conversation titles into the body text."),
    ] = None,
    include_timestamp: Annotated[
        Optional[bool],
        typer.Option("--include-timestamp/--no-include-timestamp", help="Write event timestamps into the body text."),
    ] = None,
) -> None:
    """Generate an RSMF file from INPUT_DIR."""
    settings = get_settings()
    _configure_logging(settings)

    options = GenerationOptions.from_settings(settings)
    overrides = {
        "validate": validate,
        "generator": generator,
        "custodian_display": custodian_display,
        "custodian_email": custodian_email,
        "include_conversation": include_conversation,
        "include_timestamp": include_timestamp,
    }
    options = replace(options, **{key: value for key, value in overrides.items() if value is not None})

    try:
        _check_output_location(input_dir, output_file)
        report = generate_rsmf(input_dir, output_file, options)
    except RsmfError as exc:
        raise _fail("Failed to create RSMF file:", exc) from exc

    console.print(f"[green]✓ Wrote RSMF:[/] {escape(str(report.output_path))}")
    console.print(
        f"[dim]events={report.headers.event_count if report.headers.event_count is not None else '-'} "
        f"participants={len(report.headers.recipients)} archive={report.archive_size} bytes "
        f"validated={'yes' if report.validated else 'no'}[/]"
    )


def _issues_table(result: ValidatorResult) -> Table:
    table = Table(title="Validation issues", show_lines=False)
    table.add_column("Level", style="bold")
    table.add_column("Location", style="cyan")
    table.add_column("Message", overflow="fold")
    for issue in result.errors:
        table.add_row("[red]error[/]", escape(issue.location or ""), escape(issue.message))
    for issue in result.warnings:
        table.add_row("[yellow]warning[/]", escape(issue.location or ""), escape(issue.message))
    return table


@app.command("validate")
def validate_command(
    input_dir: Annotated[Path, typer.Argument(help="Directory containing rsmf_manifest.json and its attachments.")],
) -> None:
    """Package INPUT_DIR as rsmf.zip and report validation errors and warnings."""
    _configure_logging(get_settings())
    try:
        locate_manifest(input_dir)
        with open_archive(input_dir) as archive:
            result = ZipStructureValidator().validate(archive)
    except RsmfError as exc:
        raise _fail("Validation could not run:", exc) from exc

    if result.errors or result.warnings:
        console.print(_issues_table(result))
    if not result.passed:
        err_console.print(f"[red]✗ Validation failed with {len(result.errors)} error(s).[/]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ Validation passed[/] ({len(result.warnings)} warning(s)).")


@app.command("preview")
def preview(
    input_dir: Annotated[Path, typer.Argument(help="Directory containing rsmf_manifest.json.")],
) -> None:
    """Show the headers and body text an RSMF file for INPUT_DIR would carry."""
    settings = get_settings()
    _configure_logging(settings)
    options = GenerationOptions.from_settings(settings)
    try:
        manifest = parse_manifest(locate_manifest(input_dir))
    except RsmfError as exc:
        raise _fail("Failed to read manifest:", exc) from exc

    headers = derive_headers(manifest, options)
    table = Table(show_header=False)
    table.add_column("Header", style="bold bright_yellow")
    table.add_column("Value", overflow="fold")
    for name, value in headers.items():
        table.add_row(name, escape(value))
    if headers.sender is not None:
        table.add_row("From", escape(f"{headers.sender.display} <{headers.sender.email}>"))
    for contact in headers.recipients:
        table.add_row("To", escape(f"{contact.display} <{contact.email}>"))
    console.print(table)
    console.rule("Body")
    console.print(build_body(manifest, options), markup=False, highlight=False)
