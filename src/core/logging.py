"""Logging unificado con loguru.

Las librerías del Core solo emiten registros (`from loguru import logger`);
la configuración de sinks la hace la CLI una vez por proceso.
"""

from __future__ import annotations

import sys

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - <level>{message}</level>"
)


def configure_logging(level: str = "INFO", *, json_output: bool = False) -> None:
    """Reemplaza el sink por defecto de loguru por uno en stderr."""

    logger.remove()
    if json_output:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, level=level.upper(), format=_CONSOLE_FORMAT)
