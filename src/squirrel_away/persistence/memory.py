from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List

from squirrel_away.persistence.base import Persistence


@dataclass
class _StateStore:
    text: str
    # Previous versions, oldest first
    backups: List[str] = field(default_factory=list)


class InMemoryPersistence(Persistence):
    def __init__(self, max_backups: int = 10) -> None:
        self._lock = threading.Lock()
        self._states: Dict[str, _StateStore] = {}
        self._max_backups = max_backups

    def load_state(self, state_id: str) -> str | None:
        with self._lock:
            store = self._states.get(state_id)
            return store.text if store else None

    def save_state(self, state_id: str, text: str) -> None:
        with self._lock:
            store = self._states.get(state_id)
            if store is None:
                self._states[state_id] = _StateStore(text=text)
                return
            store.backups.append(store.text)
            del store.backups[: -self._max_backups]
            store.text = text

    def list_states(self) -> list[str]:
        with self._lock:
            return sorted(self._states)

    def get_backups(self, state_id: str) -> list[str]:
        with self._lock:
            store = self._states.get(state_id)
            return list(store.backups) if store else []
