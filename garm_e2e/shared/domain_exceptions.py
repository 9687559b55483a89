"""
Excepciones específicas del dominio de orquestación.

Rol: Definir excepciones para errores de la lógica de orquestación.
PollTimeoutError, PollCancelledError, SessionStateError, ScenarioError.
Excepciones que representan esperas fallidas y precondiciones violadas.

Depende de: excepciones base de Python.
"""

from typing import Optional


# Excepciones base del dominio
class DomainError(Exception):
    """Error base del dominio de orquestación."""
    pass


class PollTimeoutError(DomainError):
    """La condición esperada no se observó dentro del límite configurado."""

    def __init__(self, description: str, attempts: int, elapsed: Optional[float] = None):
        self.description = description
        self.attempts = attempts
        self.elapsed = elapsed
        message = f"Timeout esperando '{description}' tras {attempts} intentos"
        if elapsed is not None:
            message += f" ({elapsed:.1f}s)"
        super().__init__(message)


class PollCancelledError(DomainError):
    """La espera o el paso en curso fue cancelado mediante la señal de cancelación."""

    def __init__(self, description: str, attempts: int):
        self.description = description
        self.attempts = attempts
        super().__init__(f"Espera de '{description}' cancelada tras {attempts} intentos")


class SessionStateError(DomainError):
    """Se usó una referencia que ningún paso previo estableció."""
    pass


class ScenarioError(DomainError):
    """Error en la definición o selección de un escenario."""
    pass
