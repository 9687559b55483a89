"""
Excepciones específicas de infraestructura técnica.

Rol: Definir excepciones para errores técnicos externos.
RemoteError, ConfigurationError.
Excepciones que representan fallas en dependencias externas.

Depende de: excepciones base de Python.
"""

import logging
from typing import Dict, Any, Optional

from .domain_exceptions import DomainError, PollCancelledError, PollTimeoutError

logger = logging.getLogger(__name__)


# Códigos de salida del proceso
EXIT_OK = 0
EXIT_REMOTE_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_POLL_ERROR = 3
EXIT_PRECONDITION_ERROR = 4


# Excepciones base de infraestructura
class InfrastructureError(Exception):
    """Error base de infraestructura técnica."""
    pass


class RemoteError(InfrastructureError):
    """
    Error de la API del control plane.

    Cubre tanto fallas de transporte (status_code None) como
    respuestas fuera del rango 2xx.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, method: Optional[str] = None,
                 path: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.method = method
        self.path = path
        prefix = f"[{status_code}] " if status_code is not None else ""
        target = f" ({method} {path})" if method and path else ""
        super().__init__(f"{prefix}{message}{target}")

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None


class ConfigurationError(InfrastructureError):
    """Error de configuración del sistema."""
    pass


class ErrorHandler:
    """Manejador centralizado de errores para el punto de entrada."""

    @staticmethod
    def exit_code_for(error: Exception) -> int:
        """
        Mapea una excepción al código de salida del proceso.

        Args:
            error: Excepción que abortó la ejecución

        Returns:
            Código de salida distinto de cero
        """
        if isinstance(error, ConfigurationError):
            return EXIT_CONFIGURATION_ERROR
        if isinstance(error, (PollTimeoutError, PollCancelledError)):
            return EXIT_POLL_ERROR
        if isinstance(error, DomainError):
            return EXIT_PRECONDITION_ERROR
        return EXIT_REMOTE_ERROR

    @staticmethod
    def log_error(
        error: Exception,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        level: str = "error",
    ) -> None:
        """
        Registra error con contexto detallado.

        Args:
            error: Excepción capturada
            operation: Descripción de la operación
            context: Contexto adicional (opcional)
            level: Nivel de logging (error, warning, info)
        """
        log_func = getattr(logger, level)

        error_type = type(error).__name__
        error_msg = str(error)

        log_msg = f"Error en {operation}: {error_type} - {error_msg}"

        if context:
            log_msg += f" | Contexto: {context}"

        log_func(log_msg)
