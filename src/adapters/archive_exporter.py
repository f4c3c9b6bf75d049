"""Archivo comprimido de payloads por cliente.

Reglas:
- Se construye solo desde el lote en memoria; nunca listando el directorio
  de salida, así que archivos de ejecuciones previas no pueden colarse.
- Se escribe a un temporal y se reemplaza atómicamente.
- La fecha de cada entrada es `retrieved_at`: mismos resultados, mismo zip.
"""

from __future__ import annotations

import io
import zipfile
from datetime import datetime, timezone
from pathlib import Path

from adapters.csv_exporter import write_atomic
from core.domain.models import CustomerBatch, Valid

_ZIP_MIN_DATE = (1980, 1, 1, 0, 0, 0)


def _zip_date_time(value: datetime) -> tuple[int, int, int, int, int, int]:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    stamp = (value.year, value.month, value.day, value.hour, value.minute, value.second)
    return max(stamp, _ZIP_MIN_DATE)


def build_archive(payloads: list[Valid]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as archive:
        for outcome in payloads:
            info = zipfile.ZipInfo(outcome.file_name, date_time=_zip_date_time(outcome.retrieved_at))
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            archive.writestr(info, outcome.payload)
    return buffer.getvalue()


def export_customer_archive(*, batch: CustomerBatch, output_path: Path) -> list[str]:
    """Escribe el zip del cliente y devuelve los identificadores incluidos."""

    payloads = batch.valid_outcomes()
    write_atomic(output_path, build_archive(payloads))
    return [outcome.identifier.value for outcome in payloads]
