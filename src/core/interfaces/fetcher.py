"""Contrato de descarga de registros NR.

Por qué Protocol:
- Contrato estructural (duck typing) sin herencia rígida.
- El orquestador trabaja igual con el cliente HTTP real, con el cache de
  payloads o con un stub en tests.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.identifier import Identifier
from core.domain.models import Failed, Valid


@runtime_checkable
class RecordFetcher(Protocol):
    """Contrato mínimo para descargar un registro.

    Reglas de diseño:
    - `fetch` es asíncrono porque típicamente hará I/O (HTTP).
    - Los errores por identificador vuelven como `Failed`; solo
      `AuthenticationError` se lanza.
    """

    async def fetch(self, identifier: Identifier) -> Valid | Failed:
        """Descarga el registro de `identifier` y devuelve el resultado normalizado."""

        ...
