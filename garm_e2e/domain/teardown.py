"""
Secuenciador de teardown respetando el grafo de pertenencia.

Rol: Garantizar un orden de borrado en el que ningún recurso se elimina
antes de que sus dependientes lo liberen, ya que la API no borra en
cascada (eliminar un pool no elimina sus instancias).

Fases, aplicadas a todos los objetivos antes de pasar a la siguiente:
deshabilitar pools -> eliminar instancias -> esperar drenaje ->
eliminar pools -> eliminar scopes.

Cualquier error aborta la secuencia; el estado parcial queda para
limpieza manual. La cancelación se comprueba antes de cada llamada
mutante.

Depende de: FleetAPI, LifecyclePoller.
"""

import logging
from enum import Enum
from typing import Dict, List, Set, Tuple

from ..shared.logging_utils import log_operation_error, log_operation_start, log_operation_success
from .contracts import FleetAPI
from .entities import Pool, UpdatePoolParams
from .poller import LifecyclePoller
from .session import ScopeBinding

logger = logging.getLogger(__name__)


class TeardownStage(Enum):
    """Estados del teardown de un objetivo scope + pool + instancias."""
    ACTIVE = "active"
    DISABLING = "disabling"
    DRAINING = "draining"
    DRAINED = "drained"
    POOL_DELETED = "pool_deleted"
    DONE = "done"


class TeardownSequencer:
    """Ejecuta el teardown ordenado de los objetivos de un escenario."""

    def __init__(self, api: FleetAPI, poller: LifecyclePoller):
        self.api = api
        self.poller = poller
        self.stages: Dict[str, TeardownStage] = {}

    def teardown(self, targets: List[ScopeBinding]) -> Dict[str, TeardownStage]:
        """
        Desmantela los objetivos en orden de dependencias.

        Args:
            targets: Bindings en el orden deseado dentro de cada fase

        Returns:
            Etapa final de cada objetivo (DONE si todo salió bien)
        """
        operation = "teardown"
        log_operation_start(logger, operation, targets=[t.label for t in targets])
        self.stages = {target.label: TeardownStage.ACTIVE for target in targets}

        try:
            with_pool = [target for target in targets if target.pool_id]
            for target in targets:
                if not target.pool_id:
                    self.stages[target.label] = TeardownStage.POOL_DELETED

            for target in with_pool:
                self.poller.check_cancelled(f"deshabilitar pool {target.label}")
                self._disable_pool(target)

            for target in with_pool:
                self.poller.check_cancelled(f"eliminar instancias {target.label}")
                self._delete_instances(target)

            for target in with_pool:
                self.poller.check_cancelled(f"esperar drenaje {target.label}")
                self._wait_drained(target)

            for target in with_pool:
                self.poller.check_cancelled(f"eliminar pool {target.label}")
                self._delete_pool(target)

            self._delete_scopes(targets)
        except Exception as e:
            log_operation_error(logger, operation, e, stages={k: v.value for k, v in self.stages.items()})
            raise

        log_operation_success(logger, operation, targets=len(targets))
        return dict(self.stages)

    # ===== FASES =====

    def _disable_pool(self, target: ScopeBinding) -> None:
        self._update_pool(target, UpdatePoolParams(enabled=False))
        logger.info(f"Pool {target.pool_id} ({target.label}) deshabilitado")
        self.stages[target.label] = TeardownStage.DISABLING

    def _delete_instances(self, target: ScopeBinding) -> None:
        names = list(target.instance_names)
        for name in self._get_pool(target).instance_names():
            if name not in names:
                names.append(name)

        for name in names:
            self.poller.check_cancelled(f"eliminar instancia {name}")
            self.api.delete_instance(name)
            self.poller.wait_for_absence(self.api.list_instances, name)
            logger.info(f"Instancia {name} eliminada")

        self.stages[target.label] = TeardownStage.DRAINING

    def _wait_drained(self, target: ScopeBinding) -> None:
        self.poller.wait_for_drain(lambda: self._get_pool(target), f"pool {target.pool_id} sin instancias")
        self.stages[target.label] = TeardownStage.DRAINED

    def _delete_pool(self, target: ScopeBinding) -> None:
        pool_id = target.require_pool()
        if target.scopeless:
            self.api.delete_pool(pool_id)
        else:
            self.api.delete_scope_pool(target.kind, target.require_scope(), pool_id)
        logger.info(f"Pool {pool_id} ({target.label}) eliminado")
        self.stages[target.label] = TeardownStage.POOL_DELETED

    def _delete_scopes(self, targets: List[ScopeBinding]) -> None:
        deleted: Set[Tuple[str, str]] = set()
        for target in targets:
            # El scope padre de un pool sin scope pertenece a otro objetivo
            if target.scopeless or not target.scope_id:
                self.stages[target.label] = TeardownStage.DONE
                continue
            key = (target.kind.value, target.scope_id)
            if key not in deleted:
                self.poller.check_cancelled(f"eliminar scope {target.scope_id}")
                self.api.delete_scope(target.kind, target.scope_id)
                deleted.add(key)
                logger.info(f"{target.kind.value} {target.scope_id} eliminado")
            self.stages[target.label] = TeardownStage.DONE

    # ===== ACCESO AL POOL =====

    def _get_pool(self, target: ScopeBinding) -> Pool:
        pool_id = target.require_pool()
        if target.scopeless:
            return self.api.get_pool(pool_id)
        return self.api.get_scope_pool(target.kind, target.require_scope(), pool_id)

    def _update_pool(self, target: ScopeBinding, params: UpdatePoolParams) -> Pool:
        pool_id = target.require_pool()
        if target.scopeless:
            return self.api.update_pool(pool_id, params)
        return self.api.update_scope_pool(target.kind, target.require_scope(), pool_id, params)
