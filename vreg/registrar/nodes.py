"""Node derivation — deterministic identifiers for the name tree.

A child node is ``H(parent || H(label))``. The registrar derives every org,
app, version and alias node through these functions, so anyone holding the
labels can predict the identifiers.
"""

from __future__ import annotations

from vreg.registrar.labels import DEFAULT_HASH_ALGORITHM, DIGEST_SIZE, hash_bytes, label_hash

ROOT_NODE = bytes(DIGEST_SIZE)


def _check_node(value: bytes, what: str) -> None:
    if not isinstance(value, (bytes, bytearray)) or len(value) != DIGEST_SIZE:
        raise ValueError(f"{what} must be {DIGEST_SIZE} bytes")


def derive(parent: bytes, label_digest: bytes, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Combine a parent node and a label hash into the child node."""
    _check_node(parent, "Parent node")
    _check_node(label_digest, "Label hash")
    return hash_bytes(bytes(parent) + bytes(label_digest), algorithm)


def derive_label(parent: bytes, label: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Derive the child of ``parent`` for a raw label (validated)."""
    return derive(parent, label_hash(label, algorithm), algorithm)


def namehash(name: str, algorithm: str = DEFAULT_HASH_ALGORITHM) -> bytes:
    """Fold a dotted name such as ``version.eth`` into its node.

    Labels are applied right to left starting from ``ROOT_NODE``; the empty
    name is the root itself.
    """
    node = ROOT_NODE
    if not name:
        return node
    for label in reversed(name.split(".")):
        node = derive_label(node, label, algorithm)
    return node


def node_to_hex(node: bytes) -> str:
    _check_node(node, "Node")
    return "0x" + bytes(node).hex()


def node_from_hex(text: str) -> bytes:
    """Parse a ``0x``-prefixed 64-hex-digit node identifier."""
    raw = text[2:] if text.lower().startswith("0x") else text
    if len(raw) != DIGEST_SIZE * 2:
        raise ValueError(f"Node must be {DIGEST_SIZE * 2} hex digits: {text!r}")
    try:
        return bytes.fromhex(raw)
    except ValueError:
        raise ValueError(f"Node is not valid hex: {text!r}") from None
