"""Cache local de payloads ya descargados.

Un payload descargado hace menos de `maximum_age_days` días se reutiliza en
lugar de volver a pedirlo: los datos del registro cambian poco y distintos
clientes pueden compartir identificadores. El cache solo evita peticiones;
el archivo de cada cliente se arma siempre desde el lote en memoria.
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from loguru import logger

from core.domain.identifier import Identifier
from core.domain.models import Failed, Valid
from core.interfaces.fetcher import RecordFetcher

_SECONDS_PER_DAY = 86_400

_MEDIA_TYPES = {
    ".json": "application/json",
    ".bin": "application/octet-stream",
}


def age_in_days(seconds: float) -> int:
    """Edad en días completos; una fecha futura cuenta como 0."""

    return max(0, int(seconds // _SECONDS_PER_DAY))


class PayloadCache:
    def __init__(
        self,
        directory: Path,
        maximum_age_days: int = 30,
        *,
        now: Callable[[], float] = time.time,
    ) -> None:
        self.directory = directory
        self.maximum_age_days = maximum_age_days
        self._now = now

    def is_stale(self, mtime: float) -> bool:
        return age_in_days(self._now() - mtime) > self.maximum_age_days

    def load(self, identifier: Identifier) -> Valid | None:
        for suffix, media_type in _MEDIA_TYPES.items():
            path = self.directory / f"{identifier.value}{suffix}"
            try:
                stat = path.stat()
                if self.is_stale(stat.st_mtime):
                    logger.debug("cache: {} is older than {} days", path.name, self.maximum_age_days)
                    return None
                payload = path.read_bytes()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("cache: cannot read {}: {}", path, exc)
                return None
            return Valid(
                identifier=identifier,
                payload=payload,
                media_type=media_type,
                retrieved_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                from_cache=True,
            )
        return None

    def store(self, outcome: Valid) -> Path | None:
        path = self.directory / outcome.file_name
        tmp = path.with_name(f".{path.name}.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(outcome.payload)
            os.replace(tmp, path)
        except OSError as exc:
            logger.warning("cache: cannot store {}: {}", path, exc)
            tmp.unlink(missing_ok=True)
            return None
        return path


class CachedFetcher(RecordFetcher):
    """Consulta el cache y delega en `inner` cuando no hay payload fresco."""

    def __init__(self, inner: RecordFetcher, cache: PayloadCache) -> None:
        self._inner = inner
        self._cache = cache

    async def fetch(self, identifier: Identifier) -> Valid | Failed:
        cached = self._cache.load(identifier)
        if cached is not None:
            logger.debug("cache hit for {}", identifier)
            return cached
        outcome = await self._inner.fetch(identifier)
        if isinstance(outcome, Valid):
            self._cache.store(outcome)
        return outcome
