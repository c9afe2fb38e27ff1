"""Versioning registrar — orgs, apps and gap-free version publishing.

The registrar owns every node it creates beneath its base node. Orgs sit
directly under the base node, apps under orgs, and each app carries
numbered version nodes plus a ``latest`` alias:

    <base>
    └── <org>
        └── <app>
            ├── 1, 2, 3, ...   (immutable once bound)
            └── latest         (rebound on every publish)
"""

from __future__ import annotations

import copy
import functools
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from vreg.registrar.errors import (
    AlreadyRegistered,
    NotRegistered,
    RegistrarError,
    TargetHasNoCode,
    Unauthorized,
)
from vreg.registrar.events import EventLog
from vreg.registrar.labels import DEFAULT_HASH_ALGORITHM, label_hash
from vreg.registrar.models import (
    ZERO_ADDRESS,
    AppAdminChanged,
    AppRecord,
    AppRegistered,
    OrgAdminChanged,
    OrgRecord,
    OrgRegistered,
    VersionPublished,
    normalize_address,
)
from vreg.registrar.nodes import derive, derive_label
from vreg.services.base import CodeInspector, Directory, Resolver

logger = logging.getLogger(__name__)

LATEST_LABEL = "latest"


def _operation(func):
    """Log rejected operations before letting the fault propagate."""

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except RegistrarError as exc:
            logger.debug("%s rejected: %s: %s", func.__name__, type(exc).__name__, exc)
            raise

    return wrapper


class VersioningRegistrar:
    """Admission control and state transitions for the versioned name tree.

    Parameters
    ----------
    directory:
        Hierarchical ownership store. The registrar must own ``base_node``.
    resolver:
        Target resolver; the registrar writes targets for nodes it owns.
    code_inspector:
        Answers whether a proxy or implementation address holds code.
    base_node:
        Node under which orgs are registered.
    address:
        The registrar's own address, recorded as owner of every subnode.
    events:
        Sink for emitted events (an in-memory ``EventLog`` by default).
    """

    def __init__(
        self,
        directory: Directory,
        resolver: Resolver,
        code_inspector: CodeInspector,
        base_node: bytes,
        address: str,
        *,
        events: Optional[EventLog] = None,
        algorithm: str = DEFAULT_HASH_ALGORITHM,
    ) -> None:
        self._directory = directory
        self._resolver = resolver
        self._code = code_inspector
        self.base_node = base_node
        self.address = normalize_address(address)
        self.events = events if events is not None else EventLog()
        self.algorithm = algorithm

        self._orgs: dict[bytes, OrgRecord] = {}
        self._apps: dict[bytes, AppRecord] = {}
        self._versions: dict[bytes, int] = {}
        self._undo: list = []

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[list]:
        """Run a mutation; restore state if anything inside raises.

        Directory and resolver writes made through ``_create_subnode`` and
        ``_set_target`` are journalled and written back in reverse order.

        Yields a list the operation appends events to. They are emitted only
        once the whole operation has succeeded.
        """
        saved = (copy.deepcopy(self._orgs), copy.deepcopy(self._apps), dict(self._versions))
        pending: list = []
        self._undo = []
        try:
            yield pending
        except Exception:
            self._orgs, self._apps, self._versions = saved
            for undo in reversed(self._undo):
                undo()
            raise
        finally:
            self._undo = []
        for event in pending:
            self.events.emit(event)

    def _create_subnode(self, parent: bytes, digest: bytes) -> None:
        child = derive(parent, digest, self.algorithm)
        previous = (self._directory.owner(child), self._directory.resolver(child))
        self._directory.create_subnode(
            parent, digest, self.address, self._resolver.address, caller=self.address
        )
        self._undo.append(
            lambda: self._directory.create_subnode(parent, digest, *previous, caller=self.address)
        )

    def _set_target(self, node: bytes, target: str) -> None:
        previous = self._resolver.get_target(node)
        self._resolver.set_target(node, target, caller=self.address)
        self._undo.append(lambda: self._resolver.set_target(node, previous, caller=self.address))

    def _require_code(self, address: str) -> None:
        if not self._code.has_code(address):
            raise TargetHasNoCode(address)

    @staticmethod
    def _require_admin(admin: str, caller: Optional[str], node: bytes) -> None:
        if (caller or "").lower() != admin:
            raise Unauthorized(caller, node)

    # ------------------------------------------------------------------
    # Node helpers
    # ------------------------------------------------------------------

    def derive_node(self, parent: bytes, label: str) -> bytes:
        """Predict the child node of ``parent`` for ``label`` (no state change)."""
        return derive_label(parent, label, self.algorithm)

    def version_node(self, app_node: bytes, version: int) -> bytes:
        if version < 1:
            raise ValueError(f"Version numbers start at 1, got {version}")
        return derive_label(app_node, str(version), self.algorithm)

    def latest_node(self, app_node: bytes) -> bytes:
        return derive_label(app_node, LATEST_LABEL, self.algorithm)

    # ------------------------------------------------------------------
    # Org lifecycle
    # ------------------------------------------------------------------

    @_operation
    def register_org(self, label: str, admin: str, *, caller: Optional[str] = None) -> bytes:
        """Register an org beneath the base node and return its node."""
        admin = normalize_address(admin)
        digest = label_hash(label, self.algorithm)
        org_node = derive(self.base_node, digest, self.algorithm)
        if org_node in self._orgs:
            raise AlreadyRegistered(org_node)

        with self._transaction() as pending:
            self._orgs[org_node] = OrgRecord(node=org_node, label=label, admin=admin)
            self._create_subnode(self.base_node, digest)
            pending.append(OrgRegistered(org_node=org_node, label=label, admin=admin))

        logger.info("Registered org '%s' (0x%s) admin=%s caller=%s", label, org_node.hex(), admin, caller)
        return org_node

    @_operation
    def set_org_admin(self, org_node: bytes, new_admin: str, *, caller: str) -> None:
        new_admin = normalize_address(new_admin)
        record = self._orgs.get(org_node)
        if record is None:
            raise NotRegistered(org_node)
        self._require_admin(record.admin, caller, org_node)

        previous = record.admin
        with self._transaction() as pending:
            record.admin = new_admin
            pending.append(OrgAdminChanged(org_node=org_node, previous_admin=previous, new_admin=new_admin))

        logger.info("Org 0x%s admin %s -> %s", org_node.hex(), previous, new_admin)

    # ------------------------------------------------------------------
    # App lifecycle
    # ------------------------------------------------------------------

    @_operation
    def register_app(self, label: str, org_node: bytes, proxy: str, *, caller: str) -> bytes:
        """Register an app under ``org_node`` bound to ``proxy``; the caller becomes admin."""
        proxy = normalize_address(proxy)
        self._require_code(proxy)
        org = self._orgs.get(org_node)
        if org is None:
            raise NotRegistered(org_node)
        self._require_admin(org.admin, caller, org_node)
        digest = label_hash(label, self.algorithm)
        app_node = derive(org_node, digest, self.algorithm)
        if app_node in self._apps:
            raise AlreadyRegistered(app_node)

        admin = org.admin
        with self._transaction() as pending:
            self._apps[app_node] = AppRecord(
                node=app_node, org_node=org_node, label=label, admin=admin, proxy=proxy
            )
            self._create_subnode(org_node, digest)
            self._set_target(app_node, proxy)
            pending.append(
                AppRegistered(org_node=org_node, app_node=app_node, label=label, proxy=proxy, admin=admin)
            )

        logger.info("Registered app '%s' (0x%s) under org 0x%s proxy=%s", label, app_node.hex(), org_node.hex(), proxy)
        return app_node

    @_operation
    def set_app_admin(self, app_node: bytes, new_admin: str, *, caller: str) -> None:
        new_admin = normalize_address(new_admin)
        record = self._apps.get(app_node)
        if record is None:
            raise NotRegistered(app_node)
        self._require_admin(record.admin, caller, app_node)

        previous = record.admin
        with self._transaction() as pending:
            record.admin = new_admin
            pending.append(AppAdminChanged(app_node=app_node, previous_admin=previous, new_admin=new_admin))

        logger.info("App 0x%s admin %s -> %s", app_node.hex(), previous, new_admin)

    # ------------------------------------------------------------------
    # Version publishing
    # ------------------------------------------------------------------

    @_operation
    def publish_version(self, app_node: bytes, implementation: str, *, caller: str) -> int:
        """Publish the next version of an app and point ``latest`` at it.

        The version number is derived from the app's counter, never supplied
        by the caller. Returns the new version number.
        """
        implementation = normalize_address(implementation)
        self._require_code(implementation)
        app = self._apps.get(app_node)
        if app is None:
            raise NotRegistered(app_node)
        self._require_admin(app.admin, caller, app_node)

        with self._transaction() as pending:
            version = self._versions.get(app_node, 0) + 1
            self._versions[app_node] = version

            version_digest = label_hash(str(version), self.algorithm)
            version_node = derive(app_node, version_digest, self.algorithm)
            self._create_subnode(app_node, version_digest)
            self._set_target(version_node, implementation)

            latest_digest = label_hash(LATEST_LABEL, self.algorithm)
            latest_node = derive(app_node, latest_digest, self.algorithm)
            if version == 1:
                self._create_subnode(app_node, latest_digest)
            self._set_target(latest_node, implementation)

            pending.append(
                VersionPublished(
                    app_node=app_node,
                    version_node=version_node,
                    version=version,
                    implementation=implementation,
                )
            )

        logger.info("Published version %d of app 0x%s -> %s", version, app_node.hex(), implementation)
        return version

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def org_admin(self, org_node: bytes) -> str:
        record = self._orgs.get(org_node)
        return record.admin if record else ZERO_ADDRESS

    def app_admin(self, app_node: bytes) -> str:
        record = self._apps.get(app_node)
        return record.admin if record else ZERO_ADDRESS

    def latest_version(self, app_node: bytes) -> int:
        return self._versions.get(app_node, 0)

    def latest_implementation(self, app_node: bytes) -> str:
        """Return the target behind the app's ``latest`` alias (zero if never published)."""
        return self._resolver.get_target(self.latest_node(app_node))

    def version_implementation(self, app_node: bytes, version: int) -> str:
        return self._resolver.get_target(self.version_node(app_node, version))

    def org(self, org_node: bytes) -> Optional[OrgRecord]:
        record = self._orgs.get(org_node)
        return copy.copy(record) if record else None

    def app(self, app_node: bytes) -> Optional[AppRecord]:
        record = self._apps.get(app_node)
        return copy.copy(record) if record else None

    def list_orgs(self) -> list[OrgRecord]:
        return [copy.copy(r) for r in self._orgs.values()]

    def list_apps(self, org_node: Optional[bytes] = None) -> list[AppRecord]:
        return [
            copy.copy(r)
            for r in self._apps.values()
            if org_node is None or r.org_node == org_node
        ]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def state_to_dict(self) -> dict:
        return {
            "orgs": [
                {"node": "0x" + r.node.hex(), "label": r.label, "admin": r.admin}
                for r in self._orgs.values()
            ],
            "apps": [
                {
                    "node": "0x" + r.node.hex(),
                    "org_node": "0x" + r.org_node.hex(),
                    "label": r.label,
                    "admin": r.admin,
                    "proxy": r.proxy,
                }
                for r in self._apps.values()
            ],
            "versions": {"0x" + node.hex(): count for node, count in self._versions.items()},
        }

    def load_state(self, data: dict) -> None:
        """Replace the registrar's maps with a previously saved state."""
        self._orgs = {}
        for d in data.get("orgs", []):
            node = bytes.fromhex(d["node"][2:])
            self._orgs[node] = OrgRecord(node=node, label=d["label"], admin=d["admin"])
        self._apps = {}
        for d in data.get("apps", []):
            node = bytes.fromhex(d["node"][2:])
            self._apps[node] = AppRecord(
                node=node,
                org_node=bytes.fromhex(d["org_node"][2:]),
                label=d["label"],
                admin=d["admin"],
                proxy=d["proxy"],
            )
        self._versions = {
            bytes.fromhex(key[2:]): int(count) for key, count in data.get("versions", {}).items()
        }
