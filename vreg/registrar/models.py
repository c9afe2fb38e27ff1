"""Registrar data models — addresses, org/app records, and events."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from vreg.registrar.errors import InvalidAddress

ZERO_ADDRESS = "0x" + "0" * 40

_ADDRESS_RE = re.compile(r"^0x[0-9a-f]{40}$")


def is_zero_address(address: str | None) -> bool:
    return not address or address.lower() == ZERO_ADDRESS


def normalize_address(address: str | None) -> str:
    """Return ``address`` in lower case, rejecting null and malformed values.

    Raises ``InvalidAddress`` for ``None``, the empty string, the zero address
    and anything that is not ``0x`` followed by 40 hex digits.
    """
    if not isinstance(address, str) or is_zero_address(address):
        raise InvalidAddress(address)
    value = address.lower()
    if not _ADDRESS_RE.match(value):
        raise InvalidAddress(address, f"Malformed address: {address!r}")
    return value


@dataclass
class OrgRecord:
    """An organization registered directly beneath the registrar's base node."""

    node: bytes
    label: str
    admin: str


@dataclass
class AppRecord:
    """An app identity registered beneath an org."""

    node: bytes
    org_node: bytes
    label: str
    admin: str
    proxy: str


# ── Events ───────────────────────────────────────────────────────────


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _hex(node: bytes) -> str:
    return "0x" + node.hex()


@dataclass
class OrgRegistered:
    org_node: bytes
    label: str
    admin: str
    timestamp: str = field(default_factory=_now)

    kind = "org_registered"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp,
            "org_node": _hex(self.org_node),
            "label": self.label,
            "admin": self.admin,
        }


@dataclass
class OrgAdminChanged:
    org_node: bytes
    previous_admin: str
    new_admin: str
    timestamp: str = field(default_factory=_now)

    kind = "org_admin_changed"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp,
            "org_node": _hex(self.org_node),
            "previous_admin": self.previous_admin,
            "new_admin": self.new_admin,
        }


@dataclass
class AppRegistered:
    org_node: bytes
    app_node: bytes
    label: str
    proxy: str
    admin: str
    timestamp: str = field(default_factory=_now)

    kind = "app_registered"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp,
            "org_node": _hex(self.org_node),
            "app_node": _hex(self.app_node),
            "label": self.label,
            "proxy": self.proxy,
            "admin": self.admin,
        }


@dataclass
class AppAdminChanged:
    app_node: bytes
    previous_admin: str
    new_admin: str
    timestamp: str = field(default_factory=_now)

    kind = "app_admin_changed"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp,
            "app_node": _hex(self.app_node),
            "previous_admin": self.previous_admin,
            "new_admin": self.new_admin,
        }


@dataclass
class VersionPublished:
    app_node: bytes
    version_node: bytes
    version: int
    implementation: str
    timestamp: str = field(default_factory=_now)

    kind = "version_published"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "timestamp": self.timestamp,
            "app_node": _hex(self.app_node),
            "version_node": _hex(self.version_node),
            "version": self.version,
            "implementation": self.implementation,
        }


RegistrarEvent = OrgRegistered | OrgAdminChanged | AppRegistered | AppAdminChanged | VersionPublished

EVENT_TYPES: dict[str, type] = {
    cls.kind: cls
    for cls in (OrgRegistered, OrgAdminChanged, AppRegistered, AppAdminChanged, VersionPublished)
}


def event_from_dict(data: dict):
    """Rebuild an event from its ``to_dict()`` form."""
    cls = EVENT_TYPES[data["kind"]]
    kwargs = {}
    for key, value in data.items():
        if key == "kind":
            continue
        if key.endswith("_node"):
            value = bytes.fromhex(value[2:])
        kwargs[key] = value
    return cls(**kwargs)
