"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.identifier import Identifier, InvalidFormat
from core.domain.models import AuditResult, WriteReport


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida (se omite con `--no-banner`)."""

    title = Text("NR-AUDIT", style="bold cyan")
    subtitle = Text("Validación • Descarga • Evidencia por cliente", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_counts_table(result: AuditResult, report: WriteReport) -> Table:
    """Tabla por cliente: conteos y estado de escritura."""

    outputs = {c.customer_id: c for c in report.customers}

    table = Table(title="Audit Summary")
    table.add_column("Customer", style="cyan", no_wrap=True)
    table.add_column("Valid", style="green", justify="right")
    table.add_column("Invalid", style="yellow", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Archive", style="magenta")
    table.add_column("Error", style="red")

    for counts in result.counts:
        written = outputs.get(counts.customer_id)
        archive = str(written.archive_path) if written and written.archive_path else "-"
        error = written.error if written and written.error else ""
        table.add_row(
            counts.customer_id,
            str(counts.valid),
            str(counts.invalid),
            str(counts.failed),
            archive,
            error,
        )

    table.add_section()
    table.add_row(
        "total",
        str(result.total_valid),
        str(result.total_invalid),
        str(result.total_failed),
        str(report.summary_path) if report.summary_path else "-",
        report.summary_error or "",
        style="bold",
    )
    return table


def build_validation_table(results: list[tuple[str, Identifier | InvalidFormat]]) -> Table:
    table = Table(title="NR Validation")
    table.add_column("Input", style="white")
    table.add_column("Status", no_wrap=True)
    table.add_column("Detail", style="dim")
    for raw, item in results:
        if isinstance(item, Identifier):
            table.add_row(raw, "[green]valid[/green]", item.value)
        else:
            table.add_row(raw, "[yellow]invalid[/yellow]", item.reason)
    return table
