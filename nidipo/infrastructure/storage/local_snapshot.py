"""Single-slot crash backup of the in-progress form bag."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from nidipo.domain.constants import LOCAL_BACKUP_KEY
from nidipo.domain.models import LocalSnapshot

logger = logging.getLogger(__name__)


class LocalSnapshotStore(Protocol):
    def get(self) -> LocalSnapshot | None: ...

    def set(self, snapshot: LocalSnapshot) -> None: ...

    def clear(self) -> None: ...


class JsonFileSnapshotStore:
    """Keeps the slot as ``{"nidipo_form_backup": {...}}`` in one JSON file."""

    def __init__(self, path: str | Path, key: str = LOCAL_BACKUP_KEY) -> None:
        self.path = Path(path)
        self.key = key

    def get(self) -> LocalSnapshot | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            payload = data.get(self.key) if isinstance(data, dict) else None
            if payload is None:
                return None
            if not isinstance(payload, dict):
                raise ValueError("Snapshot payload must be an object")
            return LocalSnapshot.from_payload(payload)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable form backup %s: %s", self.path, exc)
            return None

    def set(self, snapshot: LocalSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(
            json.dumps({self.key: snapshot.to_payload()}, ensure_ascii=False),
            encoding="utf-8",
        )
        tmp_path.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class InMemorySnapshotStore:
    def __init__(self, snapshot: LocalSnapshot | None = None) -> None:
        self._snapshot = snapshot
        self.writes = 0

    def get(self) -> LocalSnapshot | None:
        return self._snapshot

    def set(self, snapshot: LocalSnapshot) -> None:
        self.writes += 1
        self._snapshot = LocalSnapshot(
            form_data={k: list(v) if isinstance(v, list) else v for k, v in snapshot.form_data.items()},
            timestamp=snapshot.timestamp,
            user_id=snapshot.user_id,
        )

    def clear(self) -> None:
        self._snapshot = None
