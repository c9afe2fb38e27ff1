"""Event sinks for registrar state transitions.

``EventLog`` keeps events in memory; ``JsonlEventLog`` additionally appends
each one as a JSON line so external indexers can tail the file. A buffered
``JsonlEventLog`` holds lines back until ``flush()``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from vreg.registrar.models import RegistrarEvent, event_from_dict


class EventLog:
    """In-memory, append-only record of emitted events."""

    def __init__(self) -> None:
        self._events: list[RegistrarEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def emit(self, event: RegistrarEvent) -> None:
        self._events.append(event)

    def get_events(
        self,
        *,
        kind: Optional[str] = None,
        node: Optional[bytes] = None,
        limit: Optional[int] = None,
    ) -> list[RegistrarEvent]:
        """Return events in emission order, optionally filtered.

        ``node`` matches any node-valued field of the event (org, app or
        version node).
        """
        entries = list(self._events)
        if kind:
            entries = [e for e in entries if e.kind == kind]
        if node is not None:
            entries = [e for e in entries if node in _nodes_of(e)]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    def last(self) -> Optional[RegistrarEvent]:
        return self._events[-1] if self._events else None


class JsonlEventLog(EventLog):
    """Event log persisted as newline-delimited JSON."""

    def __init__(self, path: str | Path, *, buffered: bool = False) -> None:
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.buffered = buffered
        self._events = self._read_all()
        self._pending: list[RegistrarEvent] = []

    def emit(self, event: RegistrarEvent) -> None:
        super().emit(event)
        self._pending.append(event)
        if not self.buffered:
            self.flush()

    def flush(self) -> None:
        """Append pending events to the file."""
        if not self._pending:
            return
        with self.path.open("a", encoding="utf-8") as fh:
            for event in self._pending:
                fh.write(json.dumps(event.to_dict()) + "\n")
        self._pending = []

    def discard(self) -> None:
        """Drop pending events without writing them."""
        if self._pending:
            del self._events[-len(self._pending):]
        self._pending = []

    def _read_all(self) -> list[RegistrarEvent]:
        if not self.path.exists():
            return []
        entries = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if line.strip():
                entries.append(event_from_dict(json.loads(line)))
        return entries


def _nodes_of(event: RegistrarEvent) -> set[bytes]:
    return {
        value
        for name, value in vars(event).items()
        if name.endswith("_node") and isinstance(value, bytes)
    }
