"""Escritura de resultados de auditoría (CSV + archivos por cliente).

Layout bajo `output_root`:
- `summary.csv`: todas las filas de la ejecución.
- `customers/<slug>.csv` y `customers/<slug>.zip` por cliente.

Un fallo de escritura de un cliente se reporta en su `CustomerWriteResult`
y no impide escribir a los demás.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from loguru import logger

from adapters.archive_exporter import export_customer_archive
from adapters.csv_exporter import export_rows_csv
from core.domain.models import AuditResult, CustomerBatch, CustomerWriteResult, WriteReport
from core.exceptions import OutputSetupError

SUMMARY_FILENAME = "summary.csv"
CUSTOMERS_DIRNAME = "customers"


def sanitize_for_filename(value: str) -> str:
    """Genera un slug apto para nombres de archivo a partir del id de cliente."""

    out: list[str] = []
    for ch in value.strip():
        if ch.isascii() and (ch.isalnum() or ch in ("-", "_", ".")):
            out.append(ch)
        elif ch in ("@", "+"):
            out.append("_")
        else:
            out.append("-")
    cleaned = "".join(out).strip("-_.")
    return cleaned or "customer"


def customer_paths(output_root: Path, customer_id: str) -> tuple[Path, Path]:
    slug = sanitize_for_filename(customer_id)
    base = output_root / CUSTOMERS_DIRNAME
    return base / f"{slug}.csv", base / f"{slug}.zip"


def prepare_output_root(output_root: Path) -> Path:
    try:
        (output_root / CUSTOMERS_DIRNAME).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputSetupError(
            f"cannot create output directory {output_root}: {exc}",
            details={"output_root": str(output_root)},
        ) from exc
    return output_root


def write_customer_batch(batch: CustomerBatch, output_root: Path) -> CustomerWriteResult:
    csv_path, archive_path = customer_paths(output_root, batch.customer_id)
    errors: list[str] = []
    written_csv: Path | None = None
    written_archive: Path | None = None
    archived: list[str] = []

    try:
        written_csv = export_rows_csv(rows=batch.summary_rows(), output_path=csv_path)
    except OSError as exc:
        errors.append(f"csv: {exc}")

    try:
        archived = export_customer_archive(batch=batch, output_path=archive_path)
        written_archive = archive_path
    except OSError as exc:
        errors.append(f"archive: {exc}")

    error = "; ".join(errors) or None
    if error:
        logger.warning("customer {}: output failed: {}", batch.customer_id, error)
    else:
        logger.info(
            "customer {}: wrote {} and {} ({} payloads)",
            batch.customer_id,
            csv_path.name,
            archive_path.name,
            len(archived),
        )
    return CustomerWriteResult(
        customer_id=batch.customer_id,
        csv_path=written_csv,
        archive_path=written_archive,
        archived=tuple(archived),
        error=error,
    )


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("cannot remove stale output {}: {}", path, exc)
    else:
        logger.debug("removed stale output {}", path)


def discard_summary(output_root: Path) -> None:
    """Borra el `summary.csv` de una ejecución anterior.

    Mientras la ejecución actual no termine, ningún resumen en disco debe
    parecer evidencia vigente.
    """

    _discard(output_root / SUMMARY_FILENAME)


def discard_customer_outputs(output_root: Path, customer_ids: Iterable[str]) -> None:
    """Borra CSV y zip previos de clientes que esta ejecución no llegó a escribir."""

    for customer_id in customer_ids:
        for path in customer_paths(output_root, customer_id):
            _discard(path)


def write_summary(result: AuditResult, output_root: Path) -> tuple[Path | None, str | None]:
    path = output_root / SUMMARY_FILENAME
    try:
        export_rows_csv(rows=result.summary_rows(), output_path=path)
    except OSError as exc:
        logger.warning("summary: cannot write {}: {}", path, exc)
        return None, str(exc)
    return path, None


def write_audit(result: AuditResult, output_root: Path) -> WriteReport:
    """Escribe todas las salidas de un `AuditResult` ya agregado."""

    prepare_output_root(output_root)
    customers = tuple(write_customer_batch(batch, output_root) for batch in result.batches)
    summary_path, summary_error = write_summary(result, output_root)
    return WriteReport(
        output_root=output_root,
        customers=customers,
        summary_path=summary_path,
        summary_error=summary_error,
    )
