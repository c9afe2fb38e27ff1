"""Label validation and hashing.

A label is one path segment of a name: lowercase ASCII letters, digits and
hyphens, 1 to 63 characters, never starting or ending with a hyphen.
"""

from __future__ import annotations

import hashlib

from vreg.registrar.errors import (
    InvalidLabel,
    LabelCharacterError,
    LabelHyphenError,
    LabelLengthError,
)

MIN_LABEL_LENGTH = 1
MAX_LABEL_LENGTH = 63
LABEL_ALPHABET = frozenset("0123456789abcdefghijklmnopqrstuvwxyz-")

DEFAULT_HASH_ALGORITHM = "sha3_256"
DIGEST_SIZE = 32


def hash_bytes(data: bytes, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Return the 32-byte digest of ``data``."""
    h = hashlib.new(algorithm)
    h.update(data)
    digest = h.digest()
    if len(digest) != DIGEST_SIZE:
        raise ValueError(
            f"Hash algorithm '{algorithm}' produces {len(digest)}-byte digests, "
            f"expected {DIGEST_SIZE}"
        )
    return digest


def validate_label(label: str) -> None:
    """Raise an ``InvalidLabel`` subclass if ``label`` is not a legal segment.

    Checks run in a fixed order (length, hyphen boundary, alphabet), which
    decides the fault raised for a label breaking several rules.
    """
    if not isinstance(label, str):
        raise InvalidLabel(label, f"Label must be a string, got {type(label).__name__}")

    if not MIN_LABEL_LENGTH <= len(label) <= MAX_LABEL_LENGTH:
        raise LabelLengthError(
            label,
            f"Label length {len(label)} outside [{MIN_LABEL_LENGTH}, {MAX_LABEL_LENGTH}]",
        )

    if label[0] == "-" or label[-1] == "-":
        raise LabelHyphenError(label, f"Label '{label}' starts or ends with a hyphen")

    for ch in label:
        if ch not in LABEL_ALPHABET:
            raise LabelCharacterError(label, f"Label '{label}' contains illegal character {ch!r}")


def is_valid_label(label: str) -> bool:
    try:
        validate_label(label)
    except InvalidLabel:
        return False
    return True


def label_hash(label: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Validate ``label`` and return the hash of its ASCII bytes."""
    validate_label(label)
    return hash_bytes(label.encode("ascii"), algorithm)
