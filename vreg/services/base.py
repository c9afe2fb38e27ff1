"""Interfaces for the registrar's injected collaborators."""

from __future__ import annotations

from typing import Protocol


class Directory(Protocol):
    """Hierarchical ownership store."""

    def create_subnode(
        self,
        parent: bytes,
        label_hash: bytes,
        owner: str,
        resolver: str,
        *,
        caller: str,
    ) -> bytes:
        """Create (or overwrite) the child of ``parent`` and return its node.

        A zero ``owner`` releases the child; the registrar relies on this to
        undo a creation when an operation aborts.
        """
        ...

    def owner(self, node: bytes) -> str:
        ...

    def resolver(self, node: bytes) -> str:
        ...


class Resolver(Protocol):
    """Node to target-address mapping, write-gated by directory ownership."""

    @property
    def address(self) -> str:
        ...

    def set_target(self, node: bytes, target: str, *, caller: str) -> None:
        """Bind ``node`` to ``target``; the zero address unbinds it."""
        ...

    def get_target(self, node: bytes) -> str:
        """Return the bound target, or the zero address if unbound."""
        ...


class CodeInspector(Protocol):
    """Execution environment query: does an address hold code?"""

    def has_code(self, address: str) -> bool:
        ...
