"""
Contratos/interfaces para dependencias externas del dominio.

Rol: Definir la superficie del control plane que el núcleo necesita.
Permite que provisioner, poller y teardown permanezcan aislados del
transporte HTTP.
Usa ABC para definir contratos que deben cumplir las implementaciones.

Implementado por: GarmClient en infrastructure.
"""

from abc import ABC, abstractmethod
from typing import List

from ..shared.constants import ScopeKind
from .entities import (
    CreatePoolParams,
    CreateScopeParams,
    Instance,
    Pool,
    Scope,
    UpdateEntityParams,
    UpdatePoolParams,
)


class FleetAPI(ABC):
    """Contrato para la API de scopes, pools e instancias."""

    # ----- Scopes (repositorios u organizaciones) -----

    @abstractmethod
    def list_scopes(self, kind: ScopeKind) -> List[Scope]:
        """Lista los scopes de un tipo."""
        pass

    @abstractmethod
    def create_scope(self, kind: ScopeKind, params: CreateScopeParams) -> Scope:
        """Registra un scope."""
        pass

    @abstractmethod
    def get_scope(self, kind: ScopeKind, scope_id: str) -> Scope:
        """Obtiene un scope por ID."""
        pass

    @abstractmethod
    def update_scope(self, kind: ScopeKind, scope_id: str, params: UpdateEntityParams) -> Scope:
        """Actualiza parcialmente un scope."""
        pass

    @abstractmethod
    def delete_scope(self, kind: ScopeKind, scope_id: str) -> None:
        """Elimina un scope."""
        pass

    @abstractmethod
    def list_scope_pools(self, kind: ScopeKind, scope_id: str) -> List[Pool]:
        """Lista los pools de un scope."""
        pass

    @abstractmethod
    def create_scope_pool(self, kind: ScopeKind, scope_id: str, params: CreatePoolParams) -> Pool:
        """Crea un pool bajo un scope."""
        pass

    @abstractmethod
    def get_scope_pool(self, kind: ScopeKind, scope_id: str, pool_id: str) -> Pool:
        """Obtiene un pool de un scope."""
        pass

    @abstractmethod
    def update_scope_pool(self, kind: ScopeKind, scope_id: str, pool_id: str, params: UpdatePoolParams) -> Pool:
        """Actualiza parcialmente un pool de un scope."""
        pass

    @abstractmethod
    def delete_scope_pool(self, kind: ScopeKind, scope_id: str, pool_id: str) -> None:
        """Elimina un pool de un scope."""
        pass

    @abstractmethod
    def list_scope_instances(self, kind: ScopeKind, scope_id: str) -> List[Instance]:
        """Lista las instancias de todos los pools de un scope."""
        pass

    # ----- Pools (endpoints globales) -----

    @abstractmethod
    def list_pools(self) -> List[Pool]:
        pass

    @abstractmethod
    def get_pool(self, pool_id: str) -> Pool:
        pass

    @abstractmethod
    def update_pool(self, pool_id: str, params: UpdatePoolParams) -> Pool:
        pass

    @abstractmethod
    def delete_pool(self, pool_id: str) -> None:
        pass

    # ----- Instancias -----

    @abstractmethod
    def list_instances(self) -> List[Instance]:
        pass

    @abstractmethod
    def get_instance(self, name: str) -> Instance:
        pass

    @abstractmethod
    def delete_instance(self, name: str) -> None:
        pass
