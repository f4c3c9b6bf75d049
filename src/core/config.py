"""Configuración de nr-audit.

Fuentes, en orden de prioridad:
- Variables de entorno `NR_AUDIT_*`.
- `.env` del directorio de trabajo.
- `.env` de usuario (lo escribe `nr-audit doctor setup-api`).

El pipeline recibe un `AppSettings` ya validado y nunca lee el entorno por su cuenta.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIRNAME = "nr-audit"
ENV_FILE_HEADER = "# nr-audit user config, written by `nr-audit doctor setup-api`"


def get_user_config_dir() -> Path:
    """Carpeta de configuración del usuario según la plataforma."""

    if sys.platform.startswith("win"):
        root = Path(os.environ.get("APPDATA") or Path.home())
    elif sys.platform == "darwin":
        root = Path.home() / "Library" / "Application Support"
    else:
        root = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return root / APP_DIRNAME


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def read_env_file(path: Path) -> dict[str, str]:
    """Lee pares `KEY=value`; ignora comentarios y líneas sin `=`."""

    if not path.exists():
        return {}
    entries: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        key, sep, value = line.strip().partition("=")
        if not sep or key.startswith("#") or not key.strip():
            continue
        entries[key.strip()] = value.strip().strip("\"'")
    return entries


def write_user_env_vars(values: dict[str, str | None], *, env_path: Path | None = None) -> Path:
    """Actualiza el `.env` de usuario conservando las claves que ya tenía."""

    target = env_path or get_user_env_file()
    merged = read_env_file(target)
    merged.update({key: value for key, value in values.items() if value is not None})

    target.parent.mkdir(parents=True, exist_ok=True)
    body = [ENV_FILE_HEADER, *(f"{key}={merged[key]}" for key in sorted(merged))]
    target.write_text("\n".join(body) + "\n", encoding="utf-8")
    return target


class AppSettings(BaseSettings):
    """Configuración central de la auditoría.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) antes de que arranque el pipeline.
    - Un único contrato de configuración para CLI/adapters/servicios.
    """

    model_config = SettingsConfigDict(
        env_prefix="NR_AUDIT_",
        extra="ignore",
        case_sensitive=False,
        # El último archivo gana: el .env del proyecto pisa al de usuario.
        env_file=(str(get_user_env_file()), ".env"),
        env_file_encoding="utf-8",
    )

    api_base_url: str | None = Field(
        default=None,
        min_length=8,
        description="URL base de la API del registro; el identificador se agrega como path.",
    )
    api_key: str | None = Field(
        default=None,
        repr=False,
        description="API key del plan contratado.",
    )
    api_key_header: str = Field(
        default="X-API-Key",
        min_length=1,
        description="Header HTTP que transporta la API key.",
    )
    user_agent: str = Field(
        default="nr-audit/0.1 (+https://local)",
        min_length=1,
        description="User-Agent para las peticiones a la API.",
    )
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Timeout por intento (segundos).",
    )

    max_concurrency: int = Field(
        default=4,
        ge=1,
        le=100,
        description="Workers concurrentes por cliente.",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Intentos máximos ante fallos transitorios (red, timeout, 5xx).",
    )
    rate_limit_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Reintentos máximos ante HTTP 429, contados aparte de los fallos de red.",
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Espera base del backoff exponencial.",
    )
    backoff_max_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Tope de espera entre reintentos.",
    )

    limit_per_minute: int = Field(
        default=3,
        ge=1,
        description="Límite de peticiones por minuto según el plan contratado.",
    )
    margin_of_error_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Margen extra (segundos) entre peticiones para no rozar el límite.",
    )

    output_dir: Path = Field(
        default=Path("downloads"),
        description="Directorio donde se escriben CSV y archivos por cliente.",
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Directorio de payloads ya descargados (opcional).",
    )
    maximum_age_days: int = Field(
        default=30,
        ge=0,
        description="Edad máxima (días) de un payload cacheado antes de volver a pedirlo.",
    )

    log_level: str = Field(
        default="INFO",
        description="Nivel de logging (loguru).",
    )

    @property
    def request_interval_seconds(self) -> float:
        """Intervalo entre peticiones derivado del límite por minuto y el margen."""

        return 60.0 / self.limit_per_minute + self.margin_of_error_seconds
