"""Registrar — admission control and state transitions for the name tree.

The registrar provides:
- Labels: validation and hashing of path segments
- Nodes: deterministic derivation of child identifiers
- Orgs and apps: registration and per-level admin records
- Versions: gap-free publishing with a ``latest`` alias
"""

from vreg.registrar.errors import (
    AlreadyRegistered,
    InvalidAddress,
    InvalidLabel,
    LabelCharacterError,
    LabelHyphenError,
    LabelLengthError,
    NotNodeOwner,
    NotRegistered,
    RegistrarError,
    TargetHasNoCode,
    Unauthorized,
)
from vreg.registrar.registrar import VersioningRegistrar

__all__ = [
    "AlreadyRegistered",
    "InvalidAddress",
    "InvalidLabel",
    "LabelCharacterError",
    "LabelHyphenError",
    "LabelLengthError",
    "NotNodeOwner",
    "NotRegistered",
    "RegistrarError",
    "TargetHasNoCode",
    "Unauthorized",
    "VersioningRegistrar",
]
