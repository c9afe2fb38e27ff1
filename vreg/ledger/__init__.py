"""Local ledger — a single-file, JSON-persisted registrar deployment."""
