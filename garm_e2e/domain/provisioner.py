"""
Provisionador idempotente de scopes y pools.

Rol: Hacer seguro llamar repetidamente a "asegurar que X existe con la
configuración C". El control plane no ofrece búsqueda por clave natural
ni upsert: se lista el tipo de recurso y, si hay alguno, se reutiliza el
primero en el orden del listado sin crear nada.

La configuración del recurso reutilizado no se corrige; las diferencias
con lo solicitado solo se registran como advertencia.

Depende de: FleetAPI (contrato del adaptador).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

from ..shared.constants import ScopeKind
from ..shared.logging_utils import log_operation_start, log_operation_success
from .contracts import FleetAPI
from .entities import CreatePoolParams, CreateScopeParams, Pool, Scope, to_payload

logger = logging.getLogger(__name__)

ResourceT = TypeVar("ResourceT")


@dataclass
class Provisioned(Generic[ResourceT]):
    """Recurso asegurado y si fue creado en esta llamada."""

    resource: ResourceT
    created: bool

    @property
    def id(self) -> str:
        return self.resource.id


class IdempotentProvisioner:
    """Crea recursos solo cuando el listado correspondiente está vacío."""

    def __init__(self, api: FleetAPI):
        self.api = api

    def ensure(
        self,
        resource: str,
        list_fn: Callable[[], List[ResourceT]],
        create_fn: Callable[[], ResourceT],
        match: Optional[Callable[[ResourceT], bool]] = None,
        requested: Optional[BaseModel] = None,
    ) -> Provisioned[ResourceT]:
        """
        Asegura que exista un recurso.

        Args:
            resource: Nombre del tipo de recurso (para logs)
            list_fn: Lista los recursos candidatos en el orden del servidor
            create_fn: Crea el recurso con los parámetros del llamador
            match: Filtro opcional sobre los candidatos
            requested: Parámetros solicitados, para advertir diferencias

        Returns:
            El primer candidato existente o el recurso recién creado
        """
        operation = f"ensure_{resource}"
        log_operation_start(logger, operation)

        candidates = list_fn()
        if match is not None:
            candidates = [candidate for candidate in candidates if match(candidate)]

        if candidates:
            existing = candidates[0]
            logger.info(f"{resource} ya existe ({existing.id}), se omite la creación")
            if len(candidates) > 1:
                logger.info(f"{len(candidates)} candidatos para {resource}; se reutiliza el primero")
            if requested is not None:
                warn_on_drift(resource, existing, requested)
            log_operation_success(logger, operation, id=existing.id, created=False)
            return Provisioned(existing, created=False)

        created = create_fn()
        log_operation_success(logger, operation, id=created.id, created=True)
        return Provisioned(created, created=True)

    def ensure_scope(self, kind: ScopeKind, params: CreateScopeParams) -> Provisioned[Scope]:
        """Reutiliza el primer scope del tipo o registra uno nuevo."""
        return self.ensure(
            kind.value,
            lambda: self.api.list_scopes(kind),
            lambda: self.api.create_scope(kind, params),
            requested=params,
        )

    def ensure_scope_pool(self, kind: ScopeKind, scope_id: str, params: CreatePoolParams) -> Provisioned[Pool]:
        """Reutiliza el primer pool del scope o crea uno nuevo."""
        return self.ensure(
            f"{kind.value}_pool",
            lambda: self.api.list_scope_pools(kind, scope_id),
            lambda: self.api.create_scope_pool(kind, scope_id, params),
            requested=params,
        )

    def ensure_pool_by_image(self, kind: ScopeKind, scope_id: str, params: CreatePoolParams) -> Provisioned[Pool]:
        """
        Asegura el pool adicional que luego se elimina por /pools.

        Busca en el listado global un pool con la misma imagen; si no hay,
        lo crea bajo el scope indicado.
        """
        return self.ensure(
            "pool",
            self.api.list_pools,
            lambda: self.api.create_scope_pool(kind, scope_id, params),
            match=lambda pool: pool.image == params.image,
            requested=params,
        )


def _comparable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def warn_on_drift(resource: str, existing: Any, requested: BaseModel) -> Dict[str, Any]:
    """
    Compara los campos solicitados con el recurso reutilizado.

    Solo se comparan campos que el snapshot remoto expone; los secretos
    nunca se devuelven y quedan fuera.

    Returns:
        Diferencias encontradas como {campo: (solicitado, actual)}
    """
    differences: Dict[str, Any] = {}
    for key, wanted in to_payload(requested).items():
        if key == "tags" and isinstance(existing, Pool):
            current = existing.tag_names()
            if sorted(current) != sorted(wanted):
                differences[key] = (wanted, current)
            continue
        if not hasattr(existing, key):
            continue
        current = _comparable(getattr(existing, key))
        if current != wanted:
            differences[key] = (wanted, current)

    if differences:
        detail = ", ".join(f"{k}: solicitado={w!r} actual={c!r}" for k, (w, c) in differences.items())
        logger.warning(f"{resource} {existing.id} reutilizado con configuración distinta | {detail}")
    return differences
