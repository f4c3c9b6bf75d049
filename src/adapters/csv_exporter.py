"""Exportación CSV del resumen de auditoría.

Formato estable:
- UTF-8, separador coma, fin de línea `\n`.
- Header `customer_id,identifier,status,reason,retrieved_at`.
- Filas en el orden recibido (cliente, luego posición de entrada).
"""

from __future__ import annotations

import csv
import io
import os
import tempfile
from pathlib import Path
from typing import Iterable

from core.domain.models import SummaryRow

CSV_HEADER = ("customer_id", "identifier", "status", "reason", "retrieved_at")


def render_csv(rows: Iterable[SummaryRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in rows:
        writer.writerow(row.as_tuple())
    return buffer.getvalue()


def write_atomic(path: Path, data: bytes) -> Path:
    """Escribe en un temporal del mismo directorio y lo reemplaza con `os.replace`."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def export_rows_csv(*, rows: Iterable[SummaryRow], output_path: Path) -> Path:
    """Exporta filas a CSV UTF-8 con formato estable."""

    return write_atomic(output_path, render_csv(rows).encode("utf-8"))
