"""
Utilitarios de configuración y manejo de logging.

Rol: Configurar logging centralizado para todo el ejercitador.
Define formateadores, handlers y niveles de logging.
Provee funciones helper para logging de operaciones remotas.

Depende de: logging library, configuración de entorno.
"""

import json
import logging
import os
import sys
from typing import Any, Optional

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging_config(level: Optional[str] = None) -> None:
    """
    Configura el logging básico para toda la aplicación.
    Debe llamarse una sola vez al inicio.

    Args:
        level: Nivel de logging (opcional, por defecto LOG_LEVEL o INFO)
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        log_level = "INFO"

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Reducir verbosidad de librerías externas
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def mask_sensitive_data(data: Optional[str], mask_char: str = "*", visible_chars: int = 4) -> str:
    """
    Enmascara datos sensibles en logs.

    Args:
        data: Dato sensible (token, webhook secret, etc.)
        mask_char: Carácter para enmascarar
        visible_chars: Caracteres visibles al inicio

    Returns:
        Dato enmascarado
    """
    if not data or len(data) <= visible_chars:
        return mask_char * 8

    return data[:visible_chars] + mask_char * (len(data) - visible_chars)


def format_payload(payload: Any) -> str:
    """
    Serializa una respuesta remota como JSON indentado.

    Acepta modelos pydantic, listas de modelos o estructuras planas.
    """
    def _plain(value: Any) -> Any:
        if hasattr(value, "model_dump"):
            return value.model_dump(mode="json")
        if isinstance(value, (list, tuple)):
            return [_plain(item) for item in value]
        return value

    return json.dumps(_plain(payload), indent=2, default=str)


def log_payload(logger: logging.Logger, operation: str, payload: Any) -> None:
    """Registra en DEBUG el cuerpo completo de una respuesta."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"RESPUESTA | {operation} |\n{format_payload(payload)}")


def log_operation_start(logger: logging.Logger, operation: str, **kwargs) -> None:
    """
    Registra inicio de operación con contexto.

    Args:
        logger: Logger a usar
        operation: Descripción de operación
        **kwargs: Contexto adicional
    """
    context = " | ".join([f"{k}={v}" for k, v in kwargs.items()])
    logger.info(f"INICIO | {operation} | {context}")


def log_operation_success(logger: logging.Logger, operation: str, **kwargs) -> None:
    """
    Registra éxito de operación con contexto.

    Args:
        logger: Logger a usar
        operation: Descripción de operación
        **kwargs: Contexto adicional
    """
    context = " | ".join([f"{k}={v}" for k, v in kwargs.items()])
    logger.info(f"ÉXITO | {operation} | {context}")


def log_operation_error(logger: logging.Logger, operation: str, error: Exception, **kwargs) -> None:
    """
    Registra error de operación con contexto.

    Args:
        logger: Logger a usar
        operation: Descripción de operación
        error: Excepción capturada
        **kwargs: Contexto adicional
    """
    context = " | ".join([f"{k}={v}" for k, v in kwargs.items()])
    logger.error(f"ERROR | {operation} | {type(error).__name__}: {str(error)} | {context}")
