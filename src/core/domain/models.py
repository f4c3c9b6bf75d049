"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta y documentación autocontenida (Field) sin acoplar el
  Core a librerías de I/O.
- Los modelos son inmutables (`frozen`): cada etapa entrega el resultado a la
  siguiente sin conservar un handle mutable.

Nota:
- Estos modelos describen *qué* es un resultado de auditoría, no *cómo* se obtiene.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.domain.identifier import Identifier

_FROZEN = ConfigDict(frozen=True)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 en UTC con segundos y sufijo `Z` (formato del CSV)."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class RawIdentifier(BaseModel):
    """Valor sin validar tal como llegó en la lista del cliente."""

    model_config = _FROZEN

    customer_id: str
    position: int = Field(..., ge=0)
    value: str


class Customer(BaseModel):
    """Un cliente y su lista ordenada de identificadores enviados juntos."""

    model_config = _FROZEN

    customer_id: str = Field(
        ...,
        min_length=1,
        max_length=256,
        description="Identificador del cliente auditado.",
    )
    identifiers: tuple[str, ...] = Field(
        default=(),
        description="Identificadores crudos, en el orden recibido.",
    )

    def raw_identifiers(self) -> Iterator[RawIdentifier]:
        for position, value in enumerate(self.identifiers):
            yield RawIdentifier(customer_id=self.customer_id, position=position, value=value)


class Valid(BaseModel):
    """Registro descargado correctamente."""

    model_config = _FROZEN

    status: Literal["valid"] = "valid"
    identifier: Identifier
    payload: bytes = Field(..., repr=False)
    media_type: str = "application/json"
    retrieved_at: datetime
    from_cache: bool = False

    @property
    def file_extension(self) -> str:
        return "json" if "json" in self.media_type.lower() else "bin"

    @property
    def file_name(self) -> str:
        return f"{self.identifier.value}.{self.file_extension}"


class Invalid(BaseModel):
    """Entrada rechazada por el validador; nunca llegó a la API."""

    model_config = _FROZEN

    status: Literal["invalid"] = "invalid"
    raw: str
    reason: str


class Failed(BaseModel):
    """Identificador válido cuya descarga no se pudo completar."""

    model_config = _FROZEN

    status: Literal["failed"] = "failed"
    identifier: Identifier
    reason: str
    attempts: int = Field(..., ge=1)


FetchOutcome = Annotated[Union[Valid, Invalid, Failed], Field(discriminator="status")]


class PositionedOutcome(BaseModel):
    model_config = _FROZEN

    position: int = Field(..., ge=0)
    outcome: FetchOutcome


class SummaryRow(BaseModel):
    """Una línea del CSV, derivada 1:1 de un `FetchOutcome`."""

    model_config = _FROZEN

    customer_id: str
    identifier: str
    status: str
    reason: str = ""
    retrieved_at: str = ""

    @classmethod
    def from_outcome(cls, customer_id: str, outcome: Valid | Invalid | Failed) -> "SummaryRow":
        if isinstance(outcome, Valid):
            return cls(
                customer_id=customer_id,
                identifier=outcome.identifier.value,
                status=outcome.status,
                retrieved_at=format_timestamp(outcome.retrieved_at),
            )
        if isinstance(outcome, Invalid):
            return cls(
                customer_id=customer_id,
                identifier=outcome.raw.strip(),
                status=outcome.status,
                reason=outcome.reason,
            )
        return cls(
            customer_id=customer_id,
            identifier=outcome.identifier.value,
            status=outcome.status,
            reason=outcome.reason,
        )

    def as_tuple(self) -> tuple[str, str, str, str, str]:
        return (self.customer_id, self.identifier, self.status, self.reason, self.retrieved_at)


class CustomerBatch(BaseModel):
    """Resultados completos de un cliente en una ejecución, en orden de entrada."""

    model_config = _FROZEN

    customer_id: str
    outcomes: tuple[PositionedOutcome, ...] = ()

    def summary_rows(self) -> list[SummaryRow]:
        return [SummaryRow.from_outcome(self.customer_id, item.outcome) for item in self.outcomes]

    def valid_outcomes(self) -> list[Valid]:
        """Payloads válidos, sin repetir identificadores, en orden de entrada."""

        seen: set[str] = set()
        out: list[Valid] = []
        for item in self.outcomes:
            outcome = item.outcome
            if not isinstance(outcome, Valid) or outcome.identifier.value in seen:
                continue
            seen.add(outcome.identifier.value)
            out.append(outcome)
        return out


class CustomerCounts(BaseModel):
    model_config = _FROZEN

    customer_id: str
    valid: int = 0
    invalid: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.valid + self.invalid + self.failed


class AuditResult(BaseModel):
    """Agregado de la ejecución: lotes por cliente en orden de envío."""

    model_config = _FROZEN

    batches: tuple[CustomerBatch, ...] = ()
    counts: tuple[CustomerCounts, ...] = ()

    @property
    def total_valid(self) -> int:
        return sum(c.valid for c in self.counts)

    @property
    def total_invalid(self) -> int:
        return sum(c.invalid for c in self.counts)

    @property
    def total_failed(self) -> int:
        return sum(c.failed for c in self.counts)

    @property
    def total(self) -> int:
        return sum(c.total for c in self.counts)

    def summary_rows(self) -> list[SummaryRow]:
        rows: list[SummaryRow] = []
        for batch in self.batches:
            rows.extend(batch.summary_rows())
        return rows


class CustomerWriteResult(BaseModel):
    """Qué se escribió (o falló) para un cliente."""

    model_config = _FROZEN

    customer_id: str
    csv_path: Path | None = None
    archive_path: Path | None = None
    archived: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class WriteReport(BaseModel):
    model_config = _FROZEN

    output_root: Path
    customers: tuple[CustomerWriteResult, ...] = ()
    summary_path: Path | None = None
    summary_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.summary_error is None and all(c.ok for c in self.customers)

    @property
    def failed_customers(self) -> list[str]:
        return [c.customer_id for c in self.customers if not c.ok]
