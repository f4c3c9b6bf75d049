"""Validación de identificadores NR.

Formato:
- 11 dígitos: cuerpo de 10 dígitos + 1 dígito verificador.
- El verificador es `(suma ponderada del cuerpo + 5) mod 11`, con pesos 1, 3, 7
  repetidos de izquierda a derecha. Un resultado 10 significa que ese cuerpo
  no admite identificador válido.

Función pura: sin I/O ni red. Se ejecuta antes de gastar cuota de la API.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

NR_LENGTH = 11
NR_BODY_LENGTH = NR_LENGTH - 1
NR_WEIGHTS: tuple[int, ...] = (1, 3, 7)
NR_CHECK_SEED = 5
NR_MODULUS = 11

CHECKSUM_MISMATCH = "checksum mismatch"


def compute_check_digit(body: str) -> int | None:
    """Calcula el dígito verificador de un cuerpo de 10 dígitos.

    Devuelve None cuando el cuerpo no tiene verificador posible (resto 10).
    """

    if len(body) != NR_BODY_LENGTH or not body.isascii() or not body.isdigit():
        raise ValueError(f"body must be {NR_BODY_LENGTH} ASCII digits")

    total = sum(
        int(digit) * NR_WEIGHTS[index % len(NR_WEIGHTS)]
        for index, digit in enumerate(body)
    )
    check = (total + NR_CHECK_SEED) % NR_MODULUS
    if check == 10:
        return None
    return check


def _checksum_ok(value: str) -> bool:
    expected = compute_check_digit(value[:NR_BODY_LENGTH])
    return expected is not None and expected == int(value[NR_BODY_LENGTH])


class Identifier(BaseModel):
    """Identificador NR normalizado y válido."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(
        ...,
        min_length=NR_LENGTH,
        max_length=NR_LENGTH,
        description="Forma canónica: 11 dígitos ASCII.",
    )

    @field_validator("value")
    @classmethod
    def _must_be_valid(cls, value: str) -> str:
        if not value.isascii() or not value.isdigit() or not _checksum_ok(value):
            raise ValueError(f"{value!r} is not a valid NR identifier")
        return value

    @property
    def body(self) -> str:
        return self.value[:NR_BODY_LENGTH]

    @property
    def check_digit(self) -> int:
        return int(self.value[NR_BODY_LENGTH])

    def __str__(self) -> str:
        return self.value


class InvalidFormat(BaseModel):
    """Entrada rechazada por el validador, con motivo auditable."""

    model_config = ConfigDict(frozen=True)

    raw: str
    reason: str = Field(..., min_length=1)

    @property
    def is_checksum_mismatch(self) -> bool:
        return self.reason == CHECKSUM_MISMATCH


def validate(raw: str) -> Identifier | InvalidFormat:
    """Convierte un string crudo en `Identifier` o devuelve `InvalidFormat`.

    "malformed" (tipeo/formato) y "checksum mismatch" (número inventado) se
    distinguen para que la auditoría pueda separarlos.
    """

    candidate = raw.strip()
    if not candidate:
        return InvalidFormat(raw=raw, reason="malformed: empty identifier")
    # isdigit() acepta dígitos Unicode (p.ej. "١"); solo admitimos ASCII.
    if not candidate.isascii() or not candidate.isdigit():
        return InvalidFormat(raw=raw, reason="malformed: non-digit characters")
    if len(candidate) != NR_LENGTH:
        return InvalidFormat(
            raw=raw,
            reason=f"malformed: expected {NR_LENGTH} digits, got {len(candidate)}",
        )
    if not _checksum_ok(candidate):
        return InvalidFormat(raw=raw, reason=CHECKSUM_MISMATCH)
    return Identifier(value=candidate)
