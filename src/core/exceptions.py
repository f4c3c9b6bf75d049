"""Jerarquía de errores del auditor.

Regla:
- Los errores por identificador (`FetchError`) nunca salen del cliente API:
  se convierten en un `Failed` dentro del lote.
- Solo los errores de alcance de ejecución (`AuthenticationError`,
  `OutputSetupError`, `AuditAborted`) se propagan al llamador.
"""

from __future__ import annotations

from typing import Any


class NRAuditError(Exception):
    """Excepción base del proyecto."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(NRAuditError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", details)


class InputError(NRAuditError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "INPUT_ERROR", details)


class FetchError(NRAuditError):
    """Fallo de un intento de descarga para un identificador."""

    retryable: bool = False

    def describe(self) -> str:
        """Texto corto usado en la columna `reason` del CSV."""

        return self.message


class NetworkError(FetchError):
    retryable = True

    def __init__(self, message: str = "network error", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "NETWORK_ERROR", details)

    def describe(self) -> str:
        return "network error"


class FetchTimeout(FetchError):
    retryable = True

    def __init__(self, message: str = "timeout", details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "TIMEOUT_ERROR", details)

    def describe(self) -> str:
        return "timeout"


class ServerError(FetchError):
    retryable = True

    def __init__(self, status_code: int, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"server error (HTTP {status_code})", "SERVER_ERROR", details)
        self.status_code = status_code


class RateLimitExceeded(FetchError):
    """HTTP 429: se reintenta con un presupuesto propio."""

    retryable = True

    def __init__(self, retry_after: float | None = None, details: dict[str, Any] | None = None) -> None:
        super_details = details or {}
        if retry_after is not None:
            super_details["retry_after"] = retry_after
        super().__init__("rate limited", "RATE_LIMIT_EXCEEDED", super_details)
        self.retry_after = retry_after


class ClientError(FetchError):
    """4xx distinto de 401/403/429: terminal tras un intento."""

    def __init__(self, status_code: int, details: dict[str, Any] | None = None) -> None:
        message = "not found" if status_code == 404 else f"client error (HTTP {status_code})"
        super().__init__(message, "CLIENT_ERROR", details)
        self.status_code = status_code


class AuthenticationError(NRAuditError):
    """Credenciales rechazadas (401/403). Invalida toda la ejecución."""

    def __init__(self, status_code: int, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            f"authentication failed (HTTP {status_code}); check the API key",
            "AUTHENTICATION_FAILED",
            details,
        )
        self.status_code = status_code


class OutputSetupError(NRAuditError):
    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, "OUTPUT_SETUP_ERROR", details)


class AuditAborted(NRAuditError):
    """Ejecución abortada por una condición fatal.

    `written` enumera las salidas por cliente que ya quedaron escritas antes del aborto.
    """

    def __init__(
        self,
        message: str,
        *,
        customer_id: str,
        written: list[Any] | None = None,
        cause: NRAuditError | None = None,
    ) -> None:
        super().__init__(message, "AUDIT_ABORTED", {"customer_id": customer_id})
        self.customer_id = customer_id
        self.written = written or []
        self.cause = cause
