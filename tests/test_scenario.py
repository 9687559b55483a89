"""Pruebas del driver de escenarios y de la tabla de escenarios."""
import threading
from unittest.mock import MagicMock

import pytest

from garm_e2e.domain.entities import CreatePoolParams, CreateRepoParams
from garm_e2e.domain.session import ScenarioSession
from garm_e2e.domain.teardown import TeardownStage
from garm_e2e.shared.constants import ScopeKind
from garm_e2e.shared.domain_exceptions import PollCancelledError, PollTimeoutError, ScenarioError, SessionStateError
from garm_e2e.shared.infrastructure_exceptions import RemoteError
from garm_e2e.use_cases.run_scenario import (
    SCENARIOS,
    ScenarioDriver,
    ScenarioEntry,
    build_scenario,
    extra_pool_entry,
    org_entry,
    repo_entry,
    validate_entries,
)


REPO_SCENARIO_CALLS = [
    # provisionar
    "list_scopes", "create_scope", "list_scope_pools", "create_scope_pool",
    # esperar instancia running/idle (una lectura pendiente y otra lista)
    "list_scope_instances", "list_scope_instances",
    # lecturas y actualizaciones
    "list_scopes", "update_scope", "get_scope", "list_scope_pools", "get_scope_pool", "update_scope_pool",
    "list_scope_instances", "list_instances", "get_instance",
    # teardown: deshabilitar, borrar instancia, esperar ausencia y drenaje, borrar pool y scope
    "update_scope_pool", "get_scope_pool", "delete_instance", "list_instances", "list_instances",
    "get_scope_pool", "delete_scope_pool", "delete_scope",
]


class TestRepositoryLifecycle:
    def test_acme_repo_end_to_end(self, spawning_api, make_poller, settings):
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api))

        report = driver.execute(build_scenario("repo", settings), name="repo")

        calls = spawning_api.calls
        create_pool = next(call for call in calls if call[0] == "create_scope_pool")
        assert create_pool[3]["max_runners"] == 2
        assert create_pool[3]["min_idle_runners"] == 0

        pool_updates = [call[-1] for call in calls if call[0] == "update_scope_pool"]
        assert pool_updates == [{"max_runners": 5, "min_idle_runners": 1}, {"enabled": False}]

        names = spawning_api.call_names()
        assert names == REPO_SCENARIO_CALLS

        last_delete_instance = max(i for i, n in enumerate(names) if n == "delete_instance")
        delete_pool = names.index("delete_scope_pool")
        drain_reads = [count for index, count in spawning_api.pool_reads if last_delete_instance < index < delete_pool]
        assert drain_reads == [0]

        binding = report.bindings["repo"]
        assert binding.scope_name == "acme/repo"
        assert binding.instance_names == [f"garm-{binding.pool_id}"]
        assert report.teardown == {"repo": TeardownStage.DONE}
        assert spawning_api.scopes[ScopeKind.REPOSITORY] == []
        assert spawning_api.pools == {}
        assert spawning_api.instances == {}

    def test_wait_happens_before_updates(self, spawning_api, make_poller, settings):
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api))

        report = driver.execute(build_scenario("repo", settings))

        assert report.steps.index("wait_instance:repo") < report.steps.index("update_scope:repo")
        assert report.steps.index("update_pool:repo") < report.steps.index("teardown")

    def test_scope_update_uses_cloned_credentials(self, spawning_api, make_poller, settings):
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api))
        credentials = []
        original = spawning_api.update_scope

        def capture(kind, scope_id, params):
            credentials.append(params.credentials_name)
            return original(kind, scope_id, params)

        spawning_api.update_scope = capture
        driver.execute(build_scenario("repo", settings))

        assert credentials == ["creds-clone"]

    def test_rerun_reuses_existing_repository(self, spawning_api, make_poller, settings):
        existing = spawning_api.add_scope(ScopeKind.REPOSITORY, "repo", owner="acme")
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api))

        report = driver.execute(build_scenario("repo", settings))

        assert "create_scope" not in spawning_api.call_names()
        assert report.bindings["repo"].scope_id == existing.id


class TestFullScenario:
    def test_full_scenario_tears_everything_down(self, spawning_api, make_poller, settings):
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api))

        report = driver.execute(build_scenario("full", settings), name="full")

        assert set(report.bindings) == {"repo", "org", "pool"}
        assert report.bindings["pool"].scopeless is True
        assert report.bindings["pool"].scope_id == report.bindings["repo"].scope_id
        assert all(stage == TeardownStage.DONE for stage in report.teardown.values())
        assert "exercise:instances" in report.steps
        assert "exercise:pool" in report.steps

        names = spawning_api.call_names()
        assert names.count("create_scope") == 2
        assert names.count("create_scope_pool") == 3
        assert names.count("delete_scope") == 2
        assert ("delete_pool", report.bindings["pool"].pool_id) in spawning_api.calls
        assert spawning_api.pools == {}
        assert spawning_api.scopes == {ScopeKind.REPOSITORY: [], ScopeKind.ORGANIZATION: []}

    def test_teardown_follows_declared_order(self, spawning_api, make_poller, settings):
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api))

        report = driver.execute(build_scenario("repo-org", settings))

        scope_deletes = [call[1] for call in spawning_api.calls if call[0] == "delete_scope"]
        assert scope_deletes == [ScopeKind.REPOSITORY, ScopeKind.ORGANIZATION]
        assert list(report.teardown) == ["repo", "org"]


class TestScenarioFailures:
    def test_remote_error_aborts_without_teardown(self, spawning_api, make_poller, settings):
        spawning_api.fail("update_scope", RemoteError("bad credentials", status_code=400))
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api))

        with pytest.raises(RemoteError):
            driver.execute(build_scenario("repo", settings))

        names = spawning_api.call_names()
        assert "delete_instance" not in names
        assert "delete_scope" not in names

    def test_instance_never_ready_times_out(self, fake_api, make_poller, settings):
        driver = ScenarioDriver(fake_api, make_poller(fake_api, max_attempts=2))

        with pytest.raises(PollTimeoutError):
            driver.execute(build_scenario("repo", settings))

        assert fake_api.call_names().count("list_scope_instances") == 2
        assert "update_scope" not in fake_api.call_names()

    def test_injected_collaborators_are_used(self, settings):
        provisioner = MagicMock()
        provisioner.ensure_scope.side_effect = RemoteError("down")
        sequencer = MagicMock()
        driver = ScenarioDriver(MagicMock(), MagicMock(), provisioner=provisioner, sequencer=sequencer)

        with pytest.raises(RemoteError):
            driver.execute(build_scenario("repo", settings))

        sequencer.teardown.assert_not_called()


class TestScenarioCancellation:
    def test_cancelled_before_execute_creates_nothing(self, spawning_api, make_poller, settings):
        cancel_event = threading.Event()
        cancel_event.set()
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api, cancel_event=cancel_event))

        with pytest.raises(PollCancelledError):
            driver.execute(build_scenario("repo-org", settings))

        assert spawning_api.calls == []

    def test_cancelled_after_provision_skips_remaining_steps(self, spawning_api, make_poller, settings):
        cancel_event = threading.Event()
        driver = ScenarioDriver(spawning_api, make_poller(spawning_api, cancel_event=cancel_event))
        original = spawning_api.create_scope_pool

        def create_then_cancel(kind, scope_id, params):
            pool = original(kind, scope_id, params)
            cancel_event.set()
            return pool

        spawning_api.create_scope_pool = create_then_cancel

        with pytest.raises(PollCancelledError):
            driver.execute(build_scenario("repo-org", settings))

        names = spawning_api.call_names()
        assert names == ["list_scopes", "create_scope", "list_scope_pools", "create_scope_pool"]
        assert spawning_api.scopes[ScopeKind.ORGANIZATION] == []


class TestScenarioTable:
    def test_registered_scenarios(self):
        assert set(SCENARIOS) == {"repo", "repo-org", "full"}

    def test_unknown_scenario(self, settings):
        with pytest.raises(ScenarioError):
            build_scenario("nope", settings)

    def test_repo_entry_uses_settings(self, settings):
        entry = repo_entry(settings)

        assert entry.scope_params.owner == "acme"
        assert entry.scope_params.name == "repo"
        assert entry.pool_params.tags == ["ubuntu", "simple-runner"]
        assert entry.pool_update.max_runners == 5
        assert entry.pool_update.min_idle_runners == 1

    def test_org_pool_carries_org_tag(self, settings):
        assert "org-runner" in org_entry(settings).pool_params.tags

    def test_duplicate_labels_rejected(self, settings):
        with pytest.raises(ScenarioError):
            validate_entries([repo_entry(settings), repo_entry(settings)])

    def test_scopeless_entry_requires_earlier_parent(self, settings):
        with pytest.raises(ScenarioError):
            validate_entries([extra_pool_entry(settings), repo_entry(settings)])

    def test_scoped_entry_requires_scope_params(self, settings):
        entry = ScenarioEntry(
            label="bare",
            kind=ScopeKind.REPOSITORY,
            pool_params=CreatePoolParams(provider_name="lxd", max_runners=1, min_idle_runners=0,
                                         image="ubuntu:22.04", flavor="garm", tags=["ubuntu"]),
        )
        with pytest.raises(ScenarioError):
            validate_entries([entry])

    def test_invalid_repository_name_rejected(self):
        with pytest.raises(ValueError):
            CreateRepoParams(owner="acme", name="", credentials_name="creds")


class TestSession:
    def test_unbound_label_raises(self):
        with pytest.raises(SessionStateError):
            ScenarioSession().get("missing")

    def test_require_pool_before_provisioning(self):
        binding = ScenarioSession().bind("repo", ScopeKind.REPOSITORY)

        with pytest.raises(SessionStateError):
            binding.require_pool()

    def test_teardown_targets_sorted_by_order(self):
        session = ScenarioSession()
        session.bind("org", ScopeKind.ORGANIZATION, teardown_order=1)
        session.bind("pool", ScopeKind.REPOSITORY, teardown_order=2, scopeless=True)
        session.bind("repo", ScopeKind.REPOSITORY, teardown_order=0)

        assert [b.label for b in session.teardown_targets()] == ["repo", "org", "pool"]

    def test_remember_instance_is_idempotent(self):
        binding = ScenarioSession().bind("repo", ScopeKind.REPOSITORY)
        binding.remember_instance("runner-1")
        binding.remember_instance("runner-1")

        assert binding.instance_names == ["runner-1"]
