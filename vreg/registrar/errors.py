"""Named faults raised by the registrar and its collaborators."""

from __future__ import annotations


class RegistrarError(Exception):
    """Base class for every registrar fault."""


class InvalidAddress(RegistrarError):
    """A required address argument is null, zero or malformed."""

    def __init__(self, address: object = None, message: str = ""):
        self.address = address
        super().__init__(message or f"Invalid address: {address!r}")


class Unauthorized(RegistrarError):
    """The caller is not the admin of the targeted org or app."""

    def __init__(self, caller: str | None, node: bytes | None = None, message: str = ""):
        self.caller = caller
        self.node = node
        super().__init__(message or f"Caller {caller!r} is not authorized")


class InvalidLabel(RegistrarError):
    """A label failed validation."""

    def __init__(self, label: object, message: str = ""):
        self.label = label
        super().__init__(message or f"Invalid label: {label!r}")


class LabelLengthError(InvalidLabel):
    """Label is empty or longer than 63 characters."""


class LabelHyphenError(InvalidLabel):
    """Label starts or ends with a hyphen."""


class LabelCharacterError(InvalidLabel):
    """Label contains a character outside ``[a-z0-9-]``."""


class AlreadyRegistered(RegistrarError):
    """An org or app record already exists at the derived node."""

    def __init__(self, node: bytes, message: str = ""):
        self.node = node
        super().__init__(message or f"Node already registered: 0x{node.hex()}")


class NotRegistered(RegistrarError):
    """The referenced org or app has no admin record."""

    def __init__(self, node: bytes, message: str = ""):
        self.node = node
        super().__init__(message or f"Node not registered: 0x{node.hex()}")


class TargetHasNoCode(RegistrarError):
    """A proxy or implementation address holds no deployed code."""

    def __init__(self, address: str, message: str = ""):
        self.address = address
        super().__init__(message or f"No code deployed at {address}")


class NotNodeOwner(RegistrarError):
    """A directory or resolver write was attempted by a non-owner."""

    def __init__(self, caller: str | None, node: bytes, message: str = ""):
        self.caller = caller
        self.node = node
        super().__init__(message or f"{caller!r} does not own node 0x{node.hex()}")
