"""Cliente de la API pública del registro NR.

Responsabilidad:
- Construir la petición autenticada para un identificador.
- Respetar el rate limiter compartido antes de cada intento (incluye reintentos).
- Mapear status/errores de red a la taxonomía de `core.exceptions` y
  devolver `Valid` o `Failed`; solo `AuthenticationError` se propaga.
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime, timezone
from typing import Awaitable, Callable

import httpx
from loguru import logger
from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from core.config import AppSettings
from core.domain.identifier import Identifier
from core.domain.models import Failed, Valid
from core.exceptions import (
    AuthenticationError,
    ClientError,
    ConfigurationError,
    FetchError,
    FetchTimeout,
    NetworkError,
    RateLimitExceeded,
    ServerError,
)
from core.services.rate_limiter import RateLimiter


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiCredentials(BaseModel):
    """API key del llamador y el header donde viaja."""

    model_config = ConfigDict(frozen=True)

    api_key: str = Field(..., min_length=1, repr=False)
    header_name: str = Field(default="X-API-Key", min_length=1)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ApiCredentials":
        if not settings.api_key:
            raise ConfigurationError("API key is not configured (NR_AUDIT_API_KEY)")
        return cls(api_key=settings.api_key, header_name=settings.api_key_header)

    def headers(self) -> dict[str, str]:
        return {self.header_name: self.api_key}


class RetryPolicy(BaseModel):
    """Presupuestos de reintento independientes para red/5xx y para HTTP 429."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    rate_limit_max_retries: int = Field(default=3, ge=0)
    backoff_base_seconds: float = Field(default=1.0, ge=0)
    backoff_max_seconds: float = Field(default=30.0, ge=0)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            rate_limit_max_retries=settings.rate_limit_max_retries,
            backoff_base_seconds=settings.backoff_base_seconds,
            backoff_max_seconds=settings.backoff_max_seconds,
        )

    def backoff(self, failures: int) -> float:
        """Espera tras el fallo número `failures` (1, 2, 4, ... veces la base)."""

        if failures < 1:
            return 0.0
        return min(self.backoff_base_seconds * 2 ** (failures - 1), self.backoff_max_seconds)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        # Formato fecha HTTP: usamos el backoff propio.
        return None
    if not math.isfinite(seconds):
        return None
    return max(0.0, seconds)


def _attempts_label(attempts: int) -> str:
    return "1 attempt" if attempts == 1 else f"{attempts} attempts"


class NRApiClient:
    """Implementa `core.interfaces.fetcher.RecordFetcher` sobre HTTP."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        base_url: str,
        credentials: ApiCredentials,
        limiter: RateLimiter,
        policy: RetryPolicy | None = None,
        timeout: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._limiter = limiter
        self._policy = policy or RetryPolicy()
        self._timeout = timeout
        self._sleep = sleep
        self._now = now

    def url_for(self, identifier: Identifier) -> str:
        return f"{self._base_url}/{identifier.value}"

    async def fetch(self, identifier: Identifier) -> Valid | Failed:
        attempts = 0
        transient_failures = 0
        rate_limited = 0

        while True:
            await self._limiter.acquire()
            attempts += 1
            try:
                return await self._attempt(identifier)
            except AuthenticationError:
                logger.error("{}: API rejected the credentials", identifier)
                raise
            except RateLimitExceeded as exc:
                rate_limited += 1
                if rate_limited > self._policy.rate_limit_max_retries:
                    return self._give_up(identifier, exc, attempts)
                if exc.retry_after is None:
                    delay = self._policy.backoff(rate_limited)
                else:
                    # El servidor no puede estirar la espera más allá del tope propio.
                    delay = min(exc.retry_after, self._policy.backoff_max_seconds)
            except FetchError as exc:
                if not exc.retryable:
                    logger.warning("{}: {}", identifier, exc.describe())
                    return Failed(identifier=identifier, reason=exc.describe(), attempts=attempts)
                transient_failures += 1
                if transient_failures >= self._policy.max_attempts:
                    return self._give_up(identifier, exc, attempts)
                delay = self._policy.backoff(transient_failures)

            logger.warning(
                "{}: attempt {} failed, retrying in {:.2f}s",
                identifier,
                attempts,
                delay,
            )
            await self._sleep(delay)

    def _give_up(self, identifier: Identifier, exc: FetchError, attempts: int) -> Failed:
        reason = f"{exc.describe()} after {_attempts_label(attempts)}"
        logger.warning("{}: {}", identifier, reason)
        return Failed(identifier=identifier, reason=reason, attempts=attempts)

    async def _attempt(self, identifier: Identifier) -> Valid:
        url = self.url_for(identifier)
        timeout = self._timeout if self._timeout is not None else httpx.USE_CLIENT_DEFAULT
        logger.debug("GET {}", url)
        try:
            response = await self._client.get(
                url,
                headers=self._credentials.headers(),
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise FetchTimeout(details={"error": str(exc)}) from exc
        except httpx.RequestError as exc:
            # Transporte, bucle de redirects o cuerpo imposible de decodificar.
            raise NetworkError(details={"error": str(exc)}) from exc

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(status)
        if status == 429:
            raise RateLimitExceeded(_parse_retry_after(response.headers.get("Retry-After")))
        if status >= 500:
            raise ServerError(status)
        if not 200 <= status < 300:
            raise ClientError(status)

        content_type = response.headers.get("content-type") or "application/octet-stream"
        media_type = content_type.split(";", 1)[0].strip() or "application/octet-stream"
        return Valid(
            identifier=identifier,
            payload=response.content,
            media_type=media_type,
            retrieved_at=self._now(),
        )
