"""vreg — hierarchical naming and versioning registrar."""

__version__ = "0.1.0"
