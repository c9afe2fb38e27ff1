"""File-based local ledger.

Bundles a directory, resolver, execution environment and registrar into one
deployment stored as ``ledger.json`` under the state directory. Operations
run inside ``transaction()`` are written to disk only if they complete.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from vreg.config import RegistrarConfig
from vreg.registrar.events import JsonlEventLog
from vreg.registrar.labels import label_hash
from vreg.registrar.nodes import ROOT_NODE, namehash, node_from_hex, node_to_hex
from vreg.registrar.registrar import VersioningRegistrar
from vreg.services.memory import (
    ExecutionEnvironment,
    InMemoryDirectory,
    OwnedResolver,
    random_address,
)

logger = logging.getLogger(__name__)


class LocalLedger:
    """A complete local deployment persisted as JSON."""

    LEDGER_FILE = "ledger.json"

    def __init__(
        self,
        config: RegistrarConfig,
        deployer: str,
        directory: InMemoryDirectory,
        resolver: OwnedResolver,
        environment: ExecutionEnvironment,
        registrar: VersioningRegistrar,
    ) -> None:
        self.config = config
        self.deployer = deployer
        self.directory = directory
        self.resolver = resolver
        self.environment = environment
        self.registrar = registrar

    @property
    def ledger_path(self) -> Path:
        return self.config.state_path / self.LEDGER_FILE

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def exists(cls, config: RegistrarConfig) -> bool:
        return (config.state_path / cls.LEDGER_FILE).exists()

    @classmethod
    def bootstrap(cls, config: RegistrarConfig, *, force: bool = False) -> LocalLedger:
        """Create a fresh deployment and write it to the state directory.

        The deployer owns the root and the parent name (``eth``); the base
        name (``version.eth``) is handed to the registrar together with the
        shared resolver.
        """
        if cls.exists(config) and not force:
            raise FileExistsError(f"Ledger already exists in {config.state_path}")

        algorithm = config.hash_algorithm
        deployer = random_address()
        directory = InMemoryDirectory(deployer, algorithm)
        resolver = OwnedResolver(random_address(), directory)
        environment = ExecutionEnvironment()
        registrar_address = random_address()

        parent = ROOT_NODE
        if config.parent_name:
            for label in reversed(config.parent_name.split(".")):
                parent = directory.create_subnode(
                    parent, label_hash(label, algorithm), deployer, resolver.address, caller=deployer
                )
        base_node = directory.create_subnode(
            parent,
            label_hash(config.base_label, algorithm),
            registrar_address,
            resolver.address,
            caller=deployer,
        )

        config.state_path.mkdir(parents=True, exist_ok=True)
        event_path = config.state_path / config.event_log
        if force and event_path.exists():
            event_path.unlink()
        registrar = VersioningRegistrar(
            directory,
            resolver,
            environment,
            base_node,
            registrar_address,
            events=JsonlEventLog(event_path, buffered=True),
            algorithm=algorithm,
        )
        ledger = cls(config, deployer, directory, resolver, environment, registrar)
        ledger.commit()
        logger.info("Bootstrapped ledger in %s (base %s)", config.state_path, config.base_name)
        return ledger

    @classmethod
    def load(cls, config: RegistrarConfig) -> LocalLedger:
        path = config.state_path / cls.LEDGER_FILE
        if not path.exists():
            raise FileNotFoundError(f"No ledger in {config.state_path}; run 'vreg init' first")
        with open(path) as f:
            data = json.load(f)

        if data.get("hash_algorithm", config.hash_algorithm) != config.hash_algorithm:
            raise ValueError(
                f"Ledger was created with '{data['hash_algorithm']}', "
                f"configuration asks for '{config.hash_algorithm}'"
            )

        reg_data = data["registrar"]
        base_node = node_from_hex(reg_data["base_node"])
        if base_node != namehash(config.base_name, config.hash_algorithm):
            raise ValueError(
                f"Ledger was created for '{data.get('base_name', node_to_hex(base_node))}', "
                f"configuration asks for '{config.base_name}'"
            )

        directory = InMemoryDirectory.from_dict(data["directory"])
        resolver = OwnedResolver.from_dict(data["resolver"], directory)
        environment = ExecutionEnvironment.from_dict(data.get("environment", {}))
        registrar = VersioningRegistrar(
            directory,
            resolver,
            environment,
            base_node,
            reg_data["address"],
            events=JsonlEventLog(config.state_path / config.event_log, buffered=True),
            algorithm=config.hash_algorithm,
        )
        registrar.load_state(reg_data.get("state", {}))
        return cls(config, data["deployer"], directory, resolver, environment, registrar)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "hash_algorithm": self.config.hash_algorithm,
            "base_name": self.config.base_name,
            "deployer": self.deployer,
            "directory": self.directory.to_dict(),
            "resolver": self.resolver.to_dict(),
            "environment": self.environment.to_dict(),
            "registrar": {
                "address": self.registrar.address,
                "base_node": node_to_hex(self.registrar.base_node),
                "state": self.registrar.state_to_dict(),
            },
        }

    def commit(self) -> None:
        """Write the ledger, then append the events emitted since the last commit."""
        self.config.state_path.mkdir(parents=True, exist_ok=True)
        tmp = self.ledger_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self.to_dict(), indent=2))
        tmp.replace(self.ledger_path)
        self.registrar.events.flush()

    def rollback(self) -> None:
        """Restore in-memory state from the last commit and drop pending events."""
        with open(self.ledger_path) as f:
            data = json.load(f)
        self.directory.load_dict(data["directory"])
        self.resolver.load_dict(data["resolver"])
        self.environment.load_dict(data.get("environment", {}))
        self.registrar.load_state(data["registrar"].get("state", {}))
        self.registrar.events.discard()

    @contextmanager
    def transaction(self) -> Iterator[LocalLedger]:
        """Yield the ledger; persist it if the block completes, roll back otherwise."""
        try:
            yield self
        except Exception:
            self.rollback()
            raise
        self.commit()
