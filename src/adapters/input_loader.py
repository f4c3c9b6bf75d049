"""Carga de listas de identificadores.

Formato:
- Un archivo por cliente; el id de cliente es el nombre del archivo sin extensión.
- Un identificador por línea; se ignoran líneas vacías y comentarios `#`.
- Un directorio se expande a sus `*.txt` en orden alfabético.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from core.domain.models import Customer
from core.exceptions import InputError


def read_identifiers(text: str) -> list[str]:
    values: list[str] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        values.append(line)
    return values


def _expand(paths: Iterable[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(p for p in path.glob("*.txt") if p.is_file()))
        elif path.is_file():
            files.append(path)
        else:
            raise InputError(f"input not found: {path}", details={"path": str(path)})
    return files


def load_customer(path: Path) -> Customer:
    try:
        raw = path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(f"cannot read {path}: {exc}", details={"path": str(path)}) from exc
    return Customer(customer_id=path.stem, identifiers=tuple(read_identifiers(raw)))


def load_customers(paths: Iterable[Path]) -> list[Customer]:
    customers: list[Customer] = []
    seen: set[str] = set()
    for path in _expand(paths):
        customer = load_customer(path)
        if customer.customer_id in seen:
            raise InputError(
                f"duplicate customer id {customer.customer_id!r} ({path})",
                details={"customer_id": customer.customer_id},
            )
        seen.add(customer.customer_id)
        customers.append(customer)
    return customers
