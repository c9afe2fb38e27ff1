"""Shared test deployment: an in-memory directory with the registrar owning version.eth."""

from dataclasses import dataclass

from vreg.registrar.labels import label_hash
from vreg.registrar.nodes import ROOT_NODE
from vreg.registrar.registrar import VersioningRegistrar
from vreg.services.memory import ExecutionEnvironment, InMemoryDirectory, OwnedResolver

DEPLOYER = "0x" + "de" * 20
REGISTRAR = "0x" + "ee" * 20
RESOLVER = "0x" + "0e" * 20
ADMIN = "0x" + "11" * 20
OTHER = "0x" + "22" * 20
THIRD = "0x" + "33" * 20


@dataclass
class Deployment:
    registrar: VersioningRegistrar
    directory: InMemoryDirectory
    resolver: OwnedResolver
    environment: ExecutionEnvironment

    def contract(self) -> str:
        """Deploy code at a fresh address and return it."""
        return self.environment.deploy()


def make_deployment() -> Deployment:
    directory = InMemoryDirectory(DEPLOYER)
    resolver = OwnedResolver(RESOLVER, directory)
    environment = ExecutionEnvironment()
    eth = directory.create_subnode(ROOT_NODE, label_hash("eth"), DEPLOYER, RESOLVER, caller=DEPLOYER)
    base = directory.create_subnode(eth, label_hash("version"), REGISTRAR, RESOLVER, caller=DEPLOYER)
    registrar = VersioningRegistrar(directory, resolver, environment, base, REGISTRAR)
    return Deployment(registrar, directory, resolver, environment)

