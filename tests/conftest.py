"""Fixtures compartidas: control plane en memoria y poller sin esperas reales."""

import itertools
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pytest

from garm_e2e.domain.contracts import FleetAPI
from garm_e2e.domain.entities import (
    CreatePoolParams,
    Instance,
    Organization,
    Pool,
    Repository,
    Tag,
    UpdateEntityParams,
    UpdatePoolParams,
    to_payload,
)
from garm_e2e.domain.poller import LifecyclePoller
from garm_e2e.infrastructure.config import ScenarioSettings
from garm_e2e.shared.constants import InstanceStatus, RunnerStatus, ScopeKind
from garm_e2e.shared.infrastructure_exceptions import RemoteError


class FakeGarmAPI(FleetAPI):
    """
    Control plane en memoria que registra el orden de las llamadas.

    Cada tick() (disparado por el sleep del poller) avanza el estado:
    las instancias pending_create pasan a running/idle y las que están en
    pending_delete desaparecen.
    """

    def __init__(self, spawn_images: Iterable[str] = ()):
        # Imágenes cuyos pools arrancan una instancia al crearse
        self.spawn_images = set(spawn_images)
        self.calls: List[Tuple] = []
        # (posición en calls, instancias visibles) de cada lectura de pool
        self.pool_reads: List[Tuple[int, int]] = []
        self.scopes: Dict[ScopeKind, List] = {ScopeKind.REPOSITORY: [], ScopeKind.ORGANIZATION: []}
        self.pools: Dict[str, Pool] = {}
        self.instances: Dict[str, Instance] = {}
        self.failures: Dict[str, RemoteError] = {}
        self.ticks = 0
        self._scheduled: Dict[int, List[Callable[[], None]]] = {}
        self._ids = itertools.count(1)

    # ----- control de la simulación -----

    def tick(self) -> None:
        self.ticks += 1
        for name, instance in list(self.instances.items()):
            if instance.status == InstanceStatus.PENDING_DELETE.value:
                del self.instances[name]
            elif instance.status == InstanceStatus.PENDING_CREATE.value:
                instance.status = InstanceStatus.RUNNING.value
                instance.runner_status = RunnerStatus.IDLE.value
        for action in self._scheduled.pop(self.ticks, []):
            action()

    def at_tick(self, tick: int, action: Callable[[], None]) -> None:
        self._scheduled.setdefault(tick, []).append(action)

    def add_scope(self, kind: ScopeKind, name: str, owner: str = "acme", credentials_name: str = "creds"):
        scope_id = f"{kind.value[:4]}-{next(self._ids)}"
        if kind == ScopeKind.REPOSITORY:
            scope = Repository(id=scope_id, owner=owner, name=name, credentials_name=credentials_name)
        else:
            scope = Organization(id=scope_id, name=name, credentials_name=credentials_name)
        self.scopes[kind].append(scope)
        return scope

    def add_pool(self, kind: ScopeKind, scope_id: str, image: str = "ubuntu:22.04", max_runners: int = 2,
                 min_idle_runners: int = 0, tags: Optional[List[str]] = None, enabled: bool = True) -> Pool:
        pool_id = f"pool-{next(self._ids)}"
        pool = Pool(
            id=pool_id,
            repo_id=scope_id if kind == ScopeKind.REPOSITORY else None,
            org_id=scope_id if kind == ScopeKind.ORGANIZATION else None,
            image=image,
            flavor="garm",
            tags=[Tag(name=tag) for tag in (tags or ["ubuntu"])],
            max_runners=max_runners,
            min_idle_runners=min_idle_runners,
            enabled=enabled,
        )
        self.pools[pool_id] = pool
        return pool

    def add_instance(self, pool_id: str, name: str, status: str = InstanceStatus.RUNNING.value,
                     runner_status: str = RunnerStatus.IDLE.value) -> Instance:
        instance = Instance(name=name, status=status, runner_status=runner_status, pool_id=pool_id)
        self.instances[name] = instance
        return instance

    def fail(self, method: str, error: RemoteError) -> None:
        self.failures[method] = error

    def call_names(self) -> List[str]:
        return [call[0] for call in self.calls]

    # ----- helpers internos -----

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, *args))
        if method in self.failures:
            raise self.failures[method]

    def _find_scope(self, kind: ScopeKind, scope_id: str):
        for scope in self.scopes[kind]:
            if scope.id == scope_id:
                return scope
        raise RemoteError("not found", status_code=404)

    def _pool(self, pool_id: str) -> Pool:
        if pool_id not in self.pools:
            raise RemoteError("pool not found", status_code=404)
        snapshot = self.pools[pool_id].model_copy(deep=True)
        snapshot.instances = [i.model_copy() for i in self.instances.values() if i.pool_id == pool_id]
        return snapshot

    def _read_pool(self, pool_id: str) -> Pool:
        pool = self._pool(pool_id)
        self.pool_reads.append((len(self.calls) - 1, len(pool.instances)))
        return pool

    def _scope_pool_ids(self, kind: ScopeKind, scope_id: str) -> List[str]:
        field = "repo_id" if kind == ScopeKind.REPOSITORY else "org_id"
        return [pool_id for pool_id, pool in self.pools.items() if getattr(pool, field) == scope_id]

    def _apply_pool_update(self, pool_id: str, params: UpdatePoolParams) -> Pool:
        stored = self.pools[pool_id]
        for key, value in to_payload(params).items():
            if key == "tags":
                stored.tags = [Tag(name=tag) for tag in value]
            else:
                setattr(stored, key, value)
        return self._pool(pool_id)

    # ----- scopes -----

    def list_scopes(self, kind):
        self._record("list_scopes", kind)
        return [scope.model_copy() for scope in self.scopes[kind]]

    def create_scope(self, kind, params):
        self._record("create_scope", kind)
        owner = getattr(params, "owner", "")
        return self.add_scope(kind, params.name, owner=owner, credentials_name=params.credentials_name)

    def get_scope(self, kind, scope_id):
        self._record("get_scope", kind, scope_id)
        return self._find_scope(kind, scope_id).model_copy()

    def update_scope(self, kind, scope_id, params: UpdateEntityParams):
        self._record("update_scope", kind, scope_id)
        scope = self._find_scope(kind, scope_id)
        if params.credentials_name is not None:
            scope.credentials_name = params.credentials_name
        return scope.model_copy()

    def delete_scope(self, kind, scope_id):
        self._record("delete_scope", kind, scope_id)
        scope = self._find_scope(kind, scope_id)
        if self._scope_pool_ids(kind, scope_id):
            raise RemoteError("scope has pools", status_code=400)
        self.scopes[kind].remove(scope)

    def list_scope_pools(self, kind, scope_id):
        self._record("list_scope_pools", kind, scope_id)
        return [self._pool(pool_id) for pool_id in self._scope_pool_ids(kind, scope_id)]

    def create_scope_pool(self, kind, scope_id, params: CreatePoolParams):
        self._record("create_scope_pool", kind, scope_id, to_payload(params))
        self._find_scope(kind, scope_id)
        pool = self.add_pool(kind, scope_id, image=params.image, max_runners=params.max_runners,
                             min_idle_runners=params.min_idle_runners, tags=params.tags, enabled=params.enabled)
        if params.enabled and params.image in self.spawn_images:
            self.add_instance(pool.id, f"garm-{pool.id}", status=InstanceStatus.PENDING_CREATE.value,
                              runner_status=RunnerStatus.PENDING.value)
        return self._pool(pool.id)

    def get_scope_pool(self, kind, scope_id, pool_id):
        self._record("get_scope_pool", kind, scope_id, pool_id)
        return self._read_pool(pool_id)

    def update_scope_pool(self, kind, scope_id, pool_id, params):
        self._record("update_scope_pool", kind, scope_id, pool_id, to_payload(params))
        return self._apply_pool_update(pool_id, params)

    def delete_scope_pool(self, kind, scope_id, pool_id):
        self._record("delete_scope_pool", kind, scope_id, pool_id)
        if self._pool(pool_id).instances:
            raise RemoteError("pool has runners", status_code=409)
        del self.pools[pool_id]

    def list_scope_instances(self, kind, scope_id):
        self._record("list_scope_instances", kind, scope_id)
        pool_ids = set(self._scope_pool_ids(kind, scope_id))
        return [i.model_copy() for i in self.instances.values() if i.pool_id in pool_ids]

    # ----- pools globales -----

    def list_pools(self):
        self._record("list_pools")
        return [self._pool(pool_id) for pool_id in self.pools]

    def get_pool(self, pool_id):
        self._record("get_pool", pool_id)
        return self._read_pool(pool_id)

    def update_pool(self, pool_id, params):
        self._record("update_pool", pool_id, to_payload(params))
        return self._apply_pool_update(pool_id, params)

    def delete_pool(self, pool_id):
        self._record("delete_pool", pool_id)
        if self._pool(pool_id).instances:
            raise RemoteError("pool has runners", status_code=409)
        del self.pools[pool_id]

    # ----- instancias -----

    def list_instances(self):
        self._record("list_instances")
        return [i.model_copy() for i in self.instances.values()]

    def get_instance(self, name):
        self._record("get_instance", name)
        if name not in self.instances:
            raise RemoteError("instance not found", status_code=404)
        return self.instances[name].model_copy()

    def delete_instance(self, name):
        self._record("delete_instance", name)
        if name not in self.instances:
            raise RemoteError("instance not found", status_code=404)
        self.instances[name].status = InstanceStatus.PENDING_DELETE.value


@pytest.fixture
def fake_api():
    return FakeGarmAPI()


@pytest.fixture
def spawning_api():
    return FakeGarmAPI(spawn_images=["ubuntu:22.04"])


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_poller(sleeps):
    """Poller cuyo sleep avanza la simulación en lugar de dormir."""
    def factory(api: Optional[FakeGarmAPI] = None, **kwargs) -> LifecyclePoller:
        def fake_sleep(delay: float) -> None:
            sleeps.append(delay)
            if api is not None:
                api.tick()

        kwargs.setdefault("interval", 5)
        kwargs.setdefault("max_attempts", 20)
        return LifecyclePoller(sleep=fake_sleep, **kwargs)

    return factory


@pytest.fixture
def settings():
    return ScenarioSettings(
        credentials_name="creds",
        repo_webhook_secret="repo-secret",
        org_webhook_secret="org-secret",
        org_name="acme",
        repo_name="repo",
    )
