"""CLI de nr-audit (Typer).

La CLI solo resuelve configuración e input y presenta resultados; toda la
lógica de la ejecución vive en `core.services.audit_pipeline`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from adapters.input_loader import load_customers
from cli import doctor
from cli.ui_components import build_counts_table, build_validation_table, print_banner
from core.config import AppSettings
from core.domain.identifier import InvalidFormat, validate
from core.domain.models import Customer, CustomerBatch, CustomerWriteResult
from core.exceptions import AuditAborted, NRAuditError
from core.logging import configure_logging
from core.services.audit_pipeline import PipelineHooks, run_audit

app = typer.Typer(no_args_is_help=True, help="Audit national-registry identifiers against the public API.")
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)

EXIT_OUTPUT_FAILED = 1
EXIT_FATAL = 2


@app.command(name="run")
def audit(
    paths: List[Path] = typer.Argument(..., help="Identifier files (one per customer) or directories of *.txt."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", "-c", min=1, help="Concurrent workers."),
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Reuse payloads downloaded by earlier runs."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, ...)."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines."),
    no_banner: bool = typer.Option(False, "--no-banner", help="Do not print the banner."),
) -> None:
    """Validate, fetch and package the identifiers of every customer."""

    settings = AppSettings()
    overrides: dict[str, object] = {}
    if output is not None:
        overrides["output_dir"] = output
    if concurrency is not None:
        overrides["max_concurrency"] = concurrency
    if cache_dir is not None:
        overrides["cache_dir"] = cache_dir
    if log_level is not None:
        overrides["log_level"] = log_level
    if overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(settings.log_level, json_output=json_logs)
    if not no_banner:
        print_banner(_console)

    def on_finished(batch: CustomerBatch, written: CustomerWriteResult) -> None:
        state = "[green]ok[/green]" if written.ok else f"[red]{written.error}[/red]"
        _console.print(f"[cyan]{batch.customer_id}[/cyan]: {len(batch.outcomes)} identifiers -> {state}")

    def on_started(customer: Customer) -> None:
        _console.print(f"[dim]Processing {customer.customer_id} ({len(customer.identifiers)} identifiers)[/dim]")

    try:
        customers = load_customers(paths)
        audit_run = asyncio.run(
            run_audit(
                settings=settings,
                customers=customers,
                hooks=PipelineHooks(customer_started=on_started, customer_finished=on_finished),
            )
        )
    except AuditAborted as exc:
        _err_console.print(f"[bold red]Fatal:[/bold red] {exc.message}")
        if exc.written:
            _err_console.print(f"[dim]Output already written for {len(exc.written)} customer(s).[/dim]")
        raise typer.Exit(code=EXIT_FATAL) from exc
    except NRAuditError as exc:
        _err_console.print(f"[bold red]Error:[/bold red] {exc.message}")
        raise typer.Exit(code=EXIT_FATAL) from exc

    _console.print(build_counts_table(audit_run.result, audit_run.report))
    if not audit_run.report.ok:
        raise typer.Exit(code=EXIT_OUTPUT_FAILED)


@app.command(name="validate")
def validate_command(
    values: List[str] = typer.Argument(..., help="Identifiers to check (no network access)."),
) -> None:
    """Check identifiers offline; exit code 1 when any is invalid."""

    results = [(value, validate(value)) for value in values]
    _console.print(build_validation_table(results))
    if any(isinstance(item, InvalidFormat) for _, item in results):
        raise typer.Exit(code=1)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
