"""
Utilitarios de validación reutilizables.

Rol: Proveer funciones de validación comunes para toda la aplicación.
Validar nombres de scope, límites de pools, tags y parámetros de polling.
Funciones puras sin dependencias externas.

Depende de: expresiones regulares, tipos de datos.
"""

import re
from typing import List, Optional

from .constants import SCOPE_NAME_PATTERN, TAG_PATTERN


def validate_scope_name(name: str) -> str:
    """
    Valida nombre de repositorio u organización.

    Args:
        name: Nombre a validar (sin owner)

    Returns:
        Nombre validado

    Raises:
        ValueError: Si el nombre es inválido
    """
    if not name:
        raise ValueError("el nombre del scope no puede estar vacío")

    if not re.match(SCOPE_NAME_PATTERN, name):
        raise ValueError(f"nombre de scope inválido: {name}")

    return name


def validate_owner(owner: str) -> str:
    """Valida el owner de un repositorio (mismas reglas que un nombre)."""
    if not owner:
        raise ValueError("el owner no puede estar vacío")

    if not re.match(SCOPE_NAME_PATTERN, owner):
        raise ValueError(f"owner inválido: {owner}")

    return owner


def validate_pool_bounds(min_idle_runners: Optional[int], max_runners: Optional[int]) -> None:
    """
    Valida los límites de tamaño de un pool.

    Raises:
        ValueError: Si algún límite es negativo o min_idle > max
    """
    if min_idle_runners is not None and min_idle_runners < 0:
        raise ValueError("min_idle_runners no puede ser negativo")

    if max_runners is not None and max_runners < 0:
        raise ValueError("max_runners no puede ser negativo")

    if min_idle_runners is not None and max_runners is not None and min_idle_runners > max_runners:
        raise ValueError(
            f"min_idle_runners ({min_idle_runners}) no puede exceder max_runners ({max_runners})"
        )


def validate_tags(tags: List[str]) -> List[str]:
    """
    Valida y normaliza tags de un pool.

    Args:
        tags: Lista de tags

    Returns:
        Tags sin espacios y sin duplicados, en el orden original

    Raises:
        ValueError: Si la lista está vacía o algún tag es inválido
    """
    if not tags:
        raise ValueError("un pool requiere al menos un tag")

    validated: List[str] = []
    for tag in tags:
        tag = tag.strip()
        if not re.match(TAG_PATTERN, tag):
            raise ValueError(f"tag inválido: {tag!r}")
        if tag not in validated:
            validated.append(tag)

    return validated


def validate_interval(interval: float) -> float:
    """Valida un intervalo de polling en segundos."""
    if interval < 0:
        raise ValueError("el intervalo de polling no puede ser negativo")
    return float(interval)


def validate_max_attempts(max_attempts: Optional[int]) -> Optional[int]:
    """Valida el número máximo de intentos (None significa sin límite)."""
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("max_attempts debe ser >= 1")
    return max_attempts


def validate_timeout(timeout: Optional[float]) -> Optional[float]:
    """Valida un timeout en segundos (None significa sin límite)."""
    if timeout is not None and timeout <= 0:
        raise ValueError("el timeout debe ser mayor que 0")
    return timeout
