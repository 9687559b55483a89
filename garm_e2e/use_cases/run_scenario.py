"""
Caso de uso para ejecutar un escenario end-to-end completo.

Rol: Componer provisionador, poller y secuenciador de teardown en el
guion crear -> verificar -> mutar -> desmantelar.
Los escenarios se declaran como una tabla de entradas (tipo de scope,
configuración de pool, orden de teardown) en lugar de guiones copiados.
El primer error aborta la ejecución; no se agregan fallas.

Depende de: FleetAPI, IdempotentProvisioner, LifecyclePoller, TeardownSequencer.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..domain.contracts import FleetAPI
from ..domain.entities import (
    CreateOrgParams,
    CreatePoolParams,
    CreateRepoParams,
    CreateScopeParams,
    UpdateEntityParams,
    UpdatePoolParams,
)
from ..domain.poller import LifecyclePoller
from ..domain.provisioner import IdempotentProvisioner
from ..domain.session import ScenarioSession, ScopeBinding
from ..domain.teardown import TeardownSequencer, TeardownStage
from ..infrastructure.config import ScenarioSettings
from ..shared.constants import (
    CREDENTIALS_CLONE_SUFFIX,
    DEFAULT_FLAVOR,
    DEFAULT_IMAGE,
    DEFAULT_MAX_RUNNERS,
    DEFAULT_MIN_IDLE_RUNNERS,
    DEFAULT_POOL_TAGS,
    EXTRA_POOL_IMAGE,
    ORG_POOL_TAGS,
    UPDATED_MAX_RUNNERS,
    UPDATED_MIN_IDLE_RUNNERS,
    OSArch,
    OSType,
    ScopeKind,
)
from ..shared.domain_exceptions import ScenarioError, SessionStateError
from ..shared.logging_utils import log_operation_error, log_operation_start, log_operation_success

logger = logging.getLogger(__name__)


@dataclass
class ScenarioEntry:
    """Fila de la tabla de escenario: un scope (o pool sin scope) y su pool."""

    label: str
    kind: ScopeKind
    pool_params: CreatePoolParams
    scope_params: Optional[CreateScopeParams] = None
    scope_update: Optional[UpdateEntityParams] = None
    pool_update: Optional[UpdatePoolParams] = None
    teardown_order: int = 0
    wait_for_instance: bool = True
    # Pools sin scope: se crean bajo el scope de `parent` y se gestionan por /pools
    scopeless: bool = False
    parent: Optional[str] = None


@dataclass
class ScenarioReport:
    """Resultado de un escenario ejecutado sin errores."""

    name: str
    steps: List[str] = field(default_factory=list)
    bindings: Dict[str, ScopeBinding] = field(default_factory=dict)
    teardown: Dict[str, TeardownStage] = field(default_factory=dict)


# ===== TABLA DE ESCENARIOS =====

def pool_params(settings: ScenarioSettings, tags: List[str], image: str = DEFAULT_IMAGE) -> CreatePoolParams:
    return CreatePoolParams(
        provider_name=settings.provider_name,
        max_runners=DEFAULT_MAX_RUNNERS,
        min_idle_runners=DEFAULT_MIN_IDLE_RUNNERS,
        image=image,
        flavor=DEFAULT_FLAVOR,
        os_type=OSType.LINUX,
        os_arch=OSArch.AMD64,
        tags=tags,
        enabled=True,
    )


def repo_entry(settings: ScenarioSettings, teardown_order: int = 0) -> ScenarioEntry:
    return ScenarioEntry(
        label="repo",
        kind=ScopeKind.REPOSITORY,
        scope_params=CreateRepoParams(
            owner=settings.org_name,
            name=settings.repo_name,
            credentials_name=settings.credentials_name,
            webhook_secret=settings.repo_webhook_secret,
        ),
        scope_update=UpdateEntityParams(credentials_name=f"{settings.credentials_name}{CREDENTIALS_CLONE_SUFFIX}"),
        pool_params=pool_params(settings, DEFAULT_POOL_TAGS),
        pool_update=UpdatePoolParams(max_runners=UPDATED_MAX_RUNNERS, min_idle_runners=UPDATED_MIN_IDLE_RUNNERS),
        teardown_order=teardown_order,
    )


def org_entry(settings: ScenarioSettings, teardown_order: int = 1) -> ScenarioEntry:
    return ScenarioEntry(
        label="org",
        kind=ScopeKind.ORGANIZATION,
        scope_params=CreateOrgParams(
            name=settings.org_name,
            credentials_name=settings.credentials_name,
            webhook_secret=settings.org_webhook_secret,
        ),
        scope_update=UpdateEntityParams(credentials_name=f"{settings.credentials_name}{CREDENTIALS_CLONE_SUFFIX}"),
        pool_params=pool_params(settings, ORG_POOL_TAGS),
        pool_update=UpdatePoolParams(max_runners=UPDATED_MAX_RUNNERS, min_idle_runners=UPDATED_MIN_IDLE_RUNNERS),
        teardown_order=teardown_order,
    )


def extra_pool_entry(settings: ScenarioSettings, teardown_order: int = 2) -> ScenarioEntry:
    return ScenarioEntry(
        label="pool",
        kind=ScopeKind.REPOSITORY,
        pool_params=pool_params(settings, DEFAULT_POOL_TAGS, image=EXTRA_POOL_IMAGE),
        teardown_order=teardown_order,
        wait_for_instance=False,
        scopeless=True,
        parent="repo",
    )


SCENARIOS: Dict[str, Callable[[ScenarioSettings], List[ScenarioEntry]]] = {
    "repo": lambda s: [repo_entry(s)],
    "repo-org": lambda s: [repo_entry(s), org_entry(s)],
    "full": lambda s: [repo_entry(s), org_entry(s), extra_pool_entry(s)],
}


def build_scenario(name: str, settings: ScenarioSettings) -> List[ScenarioEntry]:
    """
    Construye las entradas de un escenario registrado.

    Raises:
        ScenarioError: Si el escenario no existe o la tabla es inconsistente
    """
    if name not in SCENARIOS:
        raise ScenarioError(f"Escenario desconocido: {name} (disponibles: {', '.join(SCENARIOS)})")
    entries = SCENARIOS[name](settings)
    validate_entries(entries)
    return entries


def validate_entries(entries: List[ScenarioEntry]) -> None:
    """Verifica etiquetas únicas y que cada pool sin scope tenga un padre previo."""
    seen: Dict[str, ScenarioEntry] = {}
    for entry in entries:
        if entry.label in seen:
            raise ScenarioError(f"Etiqueta duplicada en el escenario: {entry.label}")
        if entry.scopeless:
            parent = seen.get(entry.parent or "")
            if parent is None or parent.scopeless:
                raise ScenarioError(f"{entry.label}: el padre '{entry.parent}' debe ser un scope declarado antes")
        elif entry.scope_params is None:
            raise ScenarioError(f"{entry.label}: falta scope_params")
        seen[entry.label] = entry


class ScenarioDriver:
    """Ejecuta un escenario declarativo contra el control plane."""

    def __init__(
        self,
        api: FleetAPI,
        poller: LifecyclePoller,
        provisioner: Optional[IdempotentProvisioner] = None,
        sequencer: Optional[TeardownSequencer] = None,
    ):
        self.api = api
        self.poller = poller
        self.provisioner = provisioner or IdempotentProvisioner(api)
        self.sequencer = sequencer or TeardownSequencer(api, poller)

    def execute(self, entries: List[ScenarioEntry], name: str = "custom") -> ScenarioReport:
        """
        Ejecuta el escenario completo.

        Orden: provisionar scopes y pools -> esperar instancias listas ->
        operaciones de lectura/actualización -> pools sin scope -> teardown.

        Returns:
            Reporte con pasos ejecutados, referencias y etapas de teardown
        """
        operation = "run_scenario"
        log_operation_start(logger, operation, scenario=name, entries=[e.label for e in entries])
        validate_entries(entries)

        session = ScenarioSession()
        scoped = [entry for entry in entries if not entry.scopeless]
        scopeless = [entry for entry in entries if entry.scopeless]

        try:
            for entry in scoped:
                self.poller.check_cancelled(f"provisionar {entry.label}")
                self._provision(session, entry)

            for entry in scoped:
                if entry.wait_for_instance:
                    self.poller.check_cancelled(f"esperar instancia {entry.label}")
                    self._wait_instance(session, entry)

            for entry in scoped:
                self.poller.check_cancelled(f"ejercitar {entry.label}")
                self._exercise(session, entry)

            if any(session.get(entry.label).instance_names for entry in scoped):
                self.poller.check_cancelled("ejercitar instancias")
                self._exercise_instances(session)

            for entry in scopeless:
                self.poller.check_cancelled(f"provisionar {entry.label}")
                self._provision_scopeless(session, entry)

            self.poller.check_cancelled("teardown")
            stages = self.sequencer.teardown(session.teardown_targets())
            session.record("teardown")
        except Exception as e:
            log_operation_error(logger, operation, e, scenario=name, last_step=session.steps[-1:] or None)
            raise

        log_operation_success(logger, operation, scenario=name, steps=len(session.steps))
        return ScenarioReport(name=name, steps=list(session.steps), bindings=dict(session.bindings),
                              teardown=stages)

    # ===== PASOS =====

    def _provision(self, session: ScenarioSession, entry: ScenarioEntry) -> None:
        binding = session.bind(entry.label, entry.kind, entry.teardown_order)

        scope = self.provisioner.ensure_scope(entry.kind, entry.scope_params)
        binding.scope_id = scope.id
        binding.scope_name = scope.resource.full_name
        session.record(f"ensure_scope:{entry.label}")

        pool = self.provisioner.ensure_scope_pool(entry.kind, binding.require_scope(), entry.pool_params)
        binding.pool_id = pool.id
        session.record(f"ensure_pool:{entry.label}")

    def _wait_instance(self, session: ScenarioSession, entry: ScenarioEntry) -> None:
        binding = session.get(entry.label)
        scope_id = binding.require_scope()
        instance = self.poller.wait_for_ready_instance(
            lambda: self.api.list_scope_instances(entry.kind, scope_id),
            f"instancia running/idle en {entry.label} {binding.scope_name}",
        )
        binding.remember_instance(instance.name)
        session.record(f"wait_instance:{entry.label}")

    def _exercise(self, session: ScenarioSession, entry: ScenarioEntry) -> None:
        binding = session.get(entry.label)
        scope_id = binding.require_scope()
        pool_id = binding.require_pool()

        scopes = self.api.list_scopes(entry.kind)
        logger.info(f"{len(scopes)} {entry.kind.value} registrados")
        if entry.scope_update is not None:
            self.api.update_scope(entry.kind, scope_id, entry.scope_update)
            session.record(f"update_scope:{entry.label}")
        self.api.get_scope(entry.kind, scope_id)

        pools = self.api.list_scope_pools(entry.kind, scope_id)
        logger.info(f"{len(pools)} pools en {entry.label}")
        self.api.get_scope_pool(entry.kind, scope_id, pool_id)
        if entry.pool_update is not None:
            self.api.update_scope_pool(entry.kind, scope_id, pool_id, entry.pool_update)
            session.record(f"update_pool:{entry.label}")

        instances = self.api.list_scope_instances(entry.kind, scope_id)
        logger.info(f"{len(instances)} instancias en {entry.label}")
        session.record(f"exercise:{entry.label}")

    def _exercise_instances(self, session: ScenarioSession) -> None:
        instances = self.api.list_instances()
        if not instances:
            raise SessionStateError("El listado global de instancias está vacío")
        self.api.get_instance(instances[0].name)
        session.record("exercise:instances")

    def _provision_scopeless(self, session: ScenarioSession, entry: ScenarioEntry) -> None:
        parent = session.get(entry.parent)
        binding = session.bind(entry.label, parent.kind, entry.teardown_order, scopeless=True)
        binding.scope_id = parent.require_scope()
        binding.scope_name = parent.scope_name

        pool = self.provisioner.ensure_pool_by_image(parent.kind, binding.scope_id, entry.pool_params)
        binding.pool_id = pool.id
        session.record(f"ensure_pool:{entry.label}")

        pools = self.api.list_pools()
        logger.info(f"{len(pools)} pools registrados")
        self.api.get_pool(binding.pool_id)
        session.record(f"exercise:{entry.label}")
