"""In-memory reference collaborators.

These back the local ledger and the test suite. They model the ownership
rules of a name directory and an owner-gated resolver, nothing more.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from vreg.registrar.errors import InvalidAddress, NotNodeOwner
from vreg.registrar.labels import DEFAULT_HASH_ALGORITHM
from vreg.registrar.models import ZERO_ADDRESS, is_zero_address, normalize_address
from vreg.registrar.nodes import ROOT_NODE, derive

logger = logging.getLogger(__name__)


def random_address() -> str:
    """Return a fresh random non-zero address."""
    return "0x" + secrets.token_hex(20)


@dataclass
class DirectoryRecord:
    owner: str
    resolver: str = ZERO_ADDRESS


class InMemoryDirectory:
    """Directory whose root node is owned by ``root_owner``.

    Only the owner of a parent node may create or overwrite its children.
    Handing a child to the zero address releases it.
    """

    def __init__(self, root_owner: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> None:
        self.algorithm = algorithm
        self._records: dict[bytes, DirectoryRecord] = {
            ROOT_NODE: DirectoryRecord(owner=normalize_address(root_owner)),
        }

    def __contains__(self, node: bytes) -> bool:
        return node in self._records

    def create_subnode(
        self,
        parent: bytes,
        label_hash: bytes,
        owner: str,
        resolver: str,
        *,
        caller: str,
    ) -> bytes:
        if self.owner(parent) != (caller or "").lower():
            raise NotNodeOwner(caller, parent)
        node = derive(parent, label_hash, self.algorithm)
        if is_zero_address(owner):
            self._records.pop(node, None)
            logger.debug("Directory subnode 0x%s released", node.hex())
            return node
        owner = normalize_address(owner)
        resolver = resolver.lower() if resolver else ZERO_ADDRESS
        self._records[node] = DirectoryRecord(owner=owner, resolver=resolver)
        logger.debug("Directory subnode 0x%s owner=%s resolver=%s", node.hex(), owner, resolver)
        return node

    def set_owner(self, node: bytes, owner: str, *, caller: str) -> None:
        if self.owner(node) != (caller or "").lower():
            raise NotNodeOwner(caller, node)
        self._records[node].owner = normalize_address(owner)

    def owner(self, node: bytes) -> str:
        record = self._records.get(node)
        return record.owner if record else ZERO_ADDRESS

    def resolver(self, node: bytes) -> str:
        record = self._records.get(node)
        return record.resolver if record else ZERO_ADDRESS

    def to_dict(self) -> dict:
        return {
            "algorithm": self.algorithm,
            "records": {
                "0x" + node.hex(): {"owner": r.owner, "resolver": r.resolver}
                for node, r in self._records.items()
            },
        }

    def load_dict(self, data: dict) -> None:
        """Replace all records with those in ``data``."""
        self.algorithm = data.get("algorithm", DEFAULT_HASH_ALGORITHM)
        self._records = {
            bytes.fromhex(key[2:]): DirectoryRecord(
                owner=value["owner"], resolver=value.get("resolver", ZERO_ADDRESS)
            )
            for key, value in data.get("records", {}).items()
        }

    @classmethod
    def from_dict(cls, data: dict) -> InMemoryDirectory:
        directory = cls.__new__(cls)
        directory.load_dict(data)
        return directory


class OwnedResolver:
    """Resolver whose targets may only be written by the node's directory owner.

    Setting the zero address as a target unbinds the node.
    """

    def __init__(self, address: str, directory: InMemoryDirectory) -> None:
        self._address = normalize_address(address)
        self.directory = directory
        self._targets: dict[bytes, str] = {}

    @property
    def address(self) -> str:
        return self._address

    def set_target(self, node: bytes, target: str, *, caller: str) -> None:
        if self.directory.owner(node) != (caller or "").lower():
            raise NotNodeOwner(caller, node)
        if is_zero_address(target):
            self._targets.pop(node, None)
            logger.debug("Resolver 0x%s unbound", node.hex())
            return
        target = normalize_address(target)
        self._targets[node] = target
        logger.debug("Resolver 0x%s -> %s", node.hex(), target)

    def get_target(self, node: bytes) -> str:
        return self._targets.get(node, ZERO_ADDRESS)

    def to_dict(self) -> dict:
        return {
            "address": self._address,
            "targets": {"0x" + node.hex(): target for node, target in self._targets.items()},
        }

    def load_dict(self, data: dict) -> None:
        self._targets = {
            bytes.fromhex(key[2:]): target for key, target in data.get("targets", {}).items()
        }

    @classmethod
    def from_dict(cls, data: dict, directory: InMemoryDirectory) -> OwnedResolver:
        resolver = cls(data["address"], directory)
        resolver.load_dict(data)
        return resolver


class ExecutionEnvironment:
    """Tracks which addresses hold deployed code."""

    def __init__(self) -> None:
        self._code: dict[str, bytes] = {}

    def deploy(self, address: Optional[str] = None, code: bytes = b"\x60\x00") -> str:
        """Place ``code`` at ``address`` (a fresh one when omitted) and return it."""
        if not code:
            raise ValueError("Cannot deploy empty code")
        address = normalize_address(address) if address is not None else random_address()
        self._code[address] = bytes(code)
        logger.debug("Deployed %d bytes at %s", len(code), address)
        return address

    def has_code(self, address: str) -> bool:
        try:
            return bool(self._code.get(normalize_address(address)))
        except InvalidAddress:
            return False

    def to_dict(self) -> dict:
        return {"code": {address: code.hex() for address, code in self._code.items()}}

    def load_dict(self, data: dict) -> None:
        self._code = {address: bytes.fromhex(code) for address, code in data.get("code", {}).items()}

    @classmethod
    def from_dict(cls, data: dict) -> ExecutionEnvironment:
        env = cls()
        env.load_dict(data)
        return env
