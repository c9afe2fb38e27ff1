"""Tests for version publishing and the latest alias."""

import pytest

from tests.helpers import ADMIN, OTHER, REGISTRAR, make_deployment
from vreg.registrar.errors import InvalidAddress, NotNodeOwner, NotRegistered, TargetHasNoCode, Unauthorized
from vreg.registrar.models import ZERO_ADDRESS, VersionPublished
from vreg.registrar.nodes import derive_label, namehash


def _app(deployment):
    reg = deployment.registrar
    org = reg.register_org("cork", ADMIN)
    return reg.register_app("app", org, deployment.contract(), caller=ADMIN)


def test_cork_scenario(deployment):
    reg = deployment.registrar
    org = reg.register_org("cork", ADMIN)
    proxy = deployment.contract()
    app = reg.register_app("app", org, proxy, caller=ADMIN)
    assert reg.app_admin(app) == ADMIN

    impl1 = deployment.contract()
    assert reg.publish_version(app, impl1, caller=ADMIN) == 1
    v1 = namehash("1.app.cork.version.eth")
    assert deployment.resolver.get_target(v1) == impl1
    assert reg.latest_implementation(app) == impl1

    impl2 = deployment.contract()
    assert reg.publish_version(app, impl2, caller=ADMIN) == 2
    assert deployment.resolver.get_target(v1) == impl1
    assert reg.version_implementation(app, 2) == impl2
    assert reg.latest_implementation(app) == impl2
    # the app node itself still resolves to the proxy
    assert deployment.resolver.get_target(app) == proxy


def test_versions_are_gap_free(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    impls = [deployment.contract() for _ in range(5)]

    versions = [reg.publish_version(app, impl, caller=ADMIN) for impl in impls]

    assert versions == [1, 2, 3, 4, 5]
    assert reg.latest_version(app) == 5
    for number, impl in zip(versions, impls):
        assert reg.version_implementation(app, number) == impl
        assert reg.latest_implementation(app) == impls[-1]


def test_failed_publish_does_not_consume_a_number(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    reg.publish_version(app, deployment.contract(), caller=ADMIN)
    with pytest.raises(Unauthorized):
        reg.publish_version(app, deployment.contract(), caller=OTHER)
    with pytest.raises(TargetHasNoCode):
        reg.publish_version(app, "0x" + "55" * 20, caller=ADMIN)
    assert reg.publish_version(app, deployment.contract(), caller=ADMIN) == 2


def test_first_publish_binds_version_and_latest_to_same_target(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    impl = deployment.contract()
    reg.publish_version(app, impl, caller=ADMIN)
    assert reg.version_implementation(app, 1) == reg.latest_implementation(app) == impl


def test_version_and_latest_nodes_owned_by_registrar(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    reg.publish_version(app, deployment.contract(), caller=ADMIN)
    assert reg.version_node(app, 1) == derive_label(app, "1")
    assert reg.latest_node(app) == derive_label(app, "latest")
    assert deployment.directory.owner(reg.version_node(app, 1)) == REGISTRAR
    assert deployment.directory.owner(reg.latest_node(app)) == REGISTRAR


def test_latest_subnode_created_only_once(deployment):
    calls = []
    directory = deployment.directory
    original = directory.create_subnode

    def recording(parent, label_hash, owner, resolver, *, caller):
        node = original(parent, label_hash, owner, resolver, caller=caller)
        calls.append(node)
        return node

    directory.create_subnode = recording
    reg = deployment.registrar
    app = _app(deployment)
    calls.clear()

    for _ in range(3):
        reg.publish_version(app, deployment.contract(), caller=ADMIN)

    latest = reg.latest_node(app)
    assert calls.count(latest) == 1
    assert [n for n in calls if n != latest] == [reg.version_node(app, v) for v in (1, 2, 3)]


def test_publish_emits_event(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    impl = deployment.contract()
    reg.publish_version(app, impl, caller=ADMIN)

    event = reg.events.last()
    assert isinstance(event, VersionPublished)
    assert event.app_node == app
    assert event.version_node == reg.version_node(app, 1)
    assert event.version == 1
    assert event.implementation == impl


def test_publish_faults(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    with pytest.raises(InvalidAddress):
        reg.publish_version(app, ZERO_ADDRESS, caller=ADMIN)
    with pytest.raises(TargetHasNoCode):
        reg.publish_version(app, "0x" + "66" * 20, caller=ADMIN)
    with pytest.raises(NotRegistered):
        reg.publish_version(namehash("ghost.cork.version.eth"), deployment.contract(), caller=ADMIN)
    with pytest.raises(Unauthorized):
        reg.publish_version(app, deployment.contract(), caller=OTHER)
    assert reg.latest_version(app) == 0
    assert reg.latest_implementation(app) == ZERO_ADDRESS


def test_code_checked_before_registration(deployment):
    with pytest.raises(TargetHasNoCode):
        deployment.registrar.publish_version(
            namehash("ghost.cork.version.eth"), "0x" + "66" * 20, caller=ADMIN
        )


def test_new_app_admin_publishes(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    reg.set_app_admin(app, OTHER, caller=ADMIN)
    with pytest.raises(Unauthorized):
        reg.publish_version(app, deployment.contract(), caller=ADMIN)
    assert reg.publish_version(app, deployment.contract(), caller=OTHER) == 1


def test_apps_have_independent_counters(deployment):
    reg = deployment.registrar
    org = reg.register_org("cork", ADMIN)
    a = reg.register_app("a", org, deployment.contract(), caller=ADMIN)
    b = reg.register_app("b", org, deployment.contract(), caller=ADMIN)
    reg.publish_version(a, deployment.contract(), caller=ADMIN)
    reg.publish_version(a, deployment.contract(), caller=ADMIN)
    assert reg.publish_version(b, deployment.contract(), caller=ADMIN) == 1
    assert reg.latest_version(a) == 2


def test_latest_implementation_unpublished_is_zero(deployment):
    app = _app(deployment)
    assert deployment.registrar.latest_implementation(app) == ZERO_ADDRESS
    assert deployment.registrar.version_implementation(app, 1) == ZERO_ADDRESS


def test_version_node_rejects_zero():
    reg = make_deployment().registrar
    with pytest.raises(ValueError):
        reg.version_node(namehash("app.cork.version.eth"), 0)


# --- Collaborator failure ---
# Collaborator calls are treated as part of the enclosing operation: if one
# fails, records, counters and earlier directory or resolver writes roll back
# and no event is emitted.


class _FailingResolver:
    def __init__(self, inner, fail_on):
        self.inner = inner
        self.fail_on = fail_on

    @property
    def address(self):
        return self.inner.address

    def set_target(self, node, target, *, caller):
        if node == self.fail_on:
            raise RuntimeError("resolver unavailable")
        self.inner.set_target(node, target, caller=caller)

    def get_target(self, node):
        return self.inner.get_target(node)


def test_collaborator_failure_rolls_back_counter(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    reg.publish_version(app, deployment.contract(), caller=ADMIN)
    events_before = len(reg.events)

    reg._resolver = _FailingResolver(deployment.resolver, fail_on=reg.version_node(app, 2))
    with pytest.raises(RuntimeError):
        reg.publish_version(app, deployment.contract(), caller=ADMIN)

    assert reg.latest_version(app) == 1
    assert len(reg.events) == events_before
    assert deployment.directory.owner(reg.version_node(app, 2)) == ZERO_ADDRESS

    reg._resolver = deployment.resolver
    impl = deployment.contract()
    assert reg.publish_version(app, impl, caller=ADMIN) == 2
    assert reg.version_implementation(app, 2) == impl


def test_failed_first_publish_unbinds_version_node(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    impl = deployment.contract()
    reg._resolver = _FailingResolver(deployment.resolver, fail_on=reg.latest_node(app))

    with pytest.raises(RuntimeError):
        reg.publish_version(app, impl, caller=ADMIN)

    assert reg.latest_version(app) == 0
    assert reg.version_implementation(app, 1) == ZERO_ADDRESS
    assert reg.latest_implementation(app) == ZERO_ADDRESS
    assert deployment.directory.owner(reg.version_node(app, 1)) == ZERO_ADDRESS
    assert deployment.directory.owner(reg.latest_node(app)) == ZERO_ADDRESS


def test_failed_later_publish_keeps_latest_on_previous_version(deployment):
    reg = deployment.registrar
    app = _app(deployment)
    impl1 = deployment.contract()
    reg.publish_version(app, impl1, caller=ADMIN)
    reg._resolver = _FailingResolver(deployment.resolver, fail_on=reg.latest_node(app))

    with pytest.raises(RuntimeError):
        reg.publish_version(app, deployment.contract(), caller=ADMIN)

    assert reg.version_implementation(app, 2) == ZERO_ADDRESS
    assert reg.latest_implementation(app) == impl1
    assert deployment.directory.owner(reg.latest_node(app)) == REGISTRAR


def test_collaborator_failure_rolls_back_app_record(deployment):
    reg = deployment.registrar
    org = reg.register_org("cork", ADMIN)
    app_node = reg.derive_node(org, "app")
    reg._resolver = _FailingResolver(deployment.resolver, fail_on=app_node)

    with pytest.raises(RuntimeError):
        reg.register_app("app", org, deployment.contract(), caller=ADMIN)
    assert reg.app(app_node) is None
    assert app_node not in deployment.directory

    reg._resolver = deployment.resolver
    assert reg.register_app("app", org, deployment.contract(), caller=ADMIN) == app_node


def test_registrar_without_base_ownership_aborts_cleanly():
    deployment = make_deployment()
    reg = deployment.registrar
    reg.base_node = namehash("eth")  # owned by the deployer, not the registrar
    with pytest.raises(NotNodeOwner):
        reg.register_org("cork", ADMIN)
    assert reg.list_orgs() == []
    assert len(reg.events) == 0
