"""
Caso de uso para limpieza manual de recursos de prueba.

Rol: Desmantelar lo que un escenario abortado dejó en el control plane.
Identifica los scopes de prueba por nombre, recolecta sus pools y
delega el borrado ordenado en el TeardownSequencer.
Nunca se invoca automáticamente tras una falla.

Depende de: FleetAPI, TeardownSequencer.
"""

import logging
from typing import Any, Dict, List

from ..domain.contracts import FleetAPI
from ..domain.entities import Organization, Repository
from ..domain.session import ScopeBinding
from ..domain.teardown import TeardownSequencer
from ..infrastructure.config import ScenarioSettings
from ..shared.constants import ScopeKind
from ..shared.logging_utils import log_operation_error, log_operation_start, log_operation_success

logger = logging.getLogger(__name__)


class CleanupScopes:
    """Caso de uso para limpieza de scopes de prueba."""

    def __init__(self, api: FleetAPI, sequencer: TeardownSequencer, settings: ScenarioSettings):
        """Inicializa caso de uso."""
        self.api = api
        self.sequencer = sequencer
        self.settings = settings

    def execute(self, dry_run: bool = False) -> Dict[str, Any]:
        """
        Ejecuta la limpieza de los scopes de prueba.

        Args:
            dry_run: Si es True, solo reporta los objetivos sin eliminar

        Returns:
            Resultado de la limpieza
        """
        operation = "cleanup_scopes"
        log_operation_start(logger, operation, dry_run=dry_run)

        try:
            targets = self.identify_targets()
            plan = [self._describe(target) for target in targets]

            if dry_run:
                log_operation_success(logger, operation, dry_run=True, targets=len(targets))
                return {
                    "success": True,
                    "dry_run": True,
                    "targets": plan,
                    "message": f"Se identificaron {len(targets)} objetivos para limpieza (dry run)",
                }

            stages = self.sequencer.teardown(targets) if targets else {}

            log_operation_success(logger, operation, dry_run=False, targets=len(targets))
            return {
                "success": True,
                "dry_run": False,
                "targets": plan,
                "stages": {label: stage.value for label, stage in stages.items()},
                "message": f"Se limpiaron {len(targets)} objetivos",
            }

        except Exception as e:
            log_operation_error(logger, operation, e, dry_run=dry_run)
            raise

    def identify_targets(self) -> List[ScopeBinding]:
        """
        Construye un objetivo por cada pool de los scopes de prueba.

        Un scope sin pools produce un objetivo sin pool, de modo que el
        scope también se elimine.
        """
        targets: List[ScopeBinding] = []
        order = 0

        scopes = [
            (ScopeKind.REPOSITORY, scope) for scope in self.api.list_scopes(ScopeKind.REPOSITORY)
            if self._is_test_repo(scope)
        ]
        scopes += [
            (ScopeKind.ORGANIZATION, scope) for scope in self.api.list_scopes(ScopeKind.ORGANIZATION)
            if self._is_test_org(scope)
        ]

        for kind, scope in scopes:
            pools = self.api.list_scope_pools(kind, scope.id)
            if not pools:
                targets.append(ScopeBinding(label=f"{kind.value}:{scope.id}", kind=kind, scope_id=scope.id,
                                            scope_name=scope.full_name, teardown_order=order))
                order += 1
                continue
            for pool in pools:
                targets.append(ScopeBinding(label=f"{kind.value}:{scope.id}:{pool.id}", kind=kind,
                                            scope_id=scope.id, scope_name=scope.full_name, pool_id=pool.id,
                                            teardown_order=order))
                order += 1

        return targets

    def _is_test_repo(self, scope: Repository) -> bool:
        return scope.owner == self.settings.org_name and scope.name == self.settings.repo_name

    def _is_test_org(self, scope: Organization) -> bool:
        return scope.name == self.settings.org_name

    @staticmethod
    def _describe(target: ScopeBinding) -> Dict[str, Any]:
        return {
            "label": target.label,
            "kind": target.kind.value,
            "scope_id": target.scope_id,
            "scope_name": target.scope_name,
            "pool_id": target.pool_id,
        }
