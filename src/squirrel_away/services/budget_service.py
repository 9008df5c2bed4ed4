from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from squirrel_away.core.errors import RejectedActionError
from squirrel_away.core.ledger.history import new_state, stamp_action
from squirrel_away.core.ledger.merge import merge_states, same_state
from squirrel_away.core.ledger.projection import project, project_in_place
from squirrel_away.core.ledger.reducer import fold_action
from squirrel_away.core.ledger.state_format import dump_state, parse_state
from squirrel_away.core.ledger.undo import UndoController
from squirrel_away.core.protocol.actions import Action, ListNew, MigrateState, NewState, Redo, Undo
from squirrel_away.core.protocol.models import Snapshot
from squirrel_away.core.protocol.state import StateBlob
from squirrel_away.core.protocol.timestamps import Timestamp, deserialize_date
from squirrel_away.persistence.base import Persistence


logger = logging.getLogger(__name__)

DEFAULT_LIST_NAME = "Wish list"

_NOT_USER_ACTIONS = (NewState, MigrateState, Undo, Redo)


def _wall_clock() -> Timestamp:
    return time.time() * 1000


@dataclass
class _StreamState:
    lock: asyncio.Lock
    snapshot: Snapshot
    actions: List[Action]
    undo: Dict[str, UndoController] = field(default_factory=dict)

    def blob(self) -> StateBlob:
        return StateBlob.of(self.snapshot, self.actions)


class BudgetService:
    """Owns the in-memory snapshot and action log of every open state stream.

    The core functions are pure; this is the one place that holds state,
    serializes access to it per stream, and talks to persistence.
    """

    def __init__(
        self,
        persistence: Persistence,
        clock: Optional[Callable[[], Timestamp]] = None,
        strict: bool = False,
    ) -> None:
        self._persistence = persistence
        self._clock = clock or _wall_clock
        self._strict = strict
        self._streams: Dict[str, _StreamState] = {}
        self._global_lock = asyncio.Lock()

    async def open(self, state_id: str) -> StateBlob:
        stream = await self._get_or_load(state_id)
        async with stream.lock:
            return stream.blob()

    async def get_state(self, state_id: str) -> StateBlob:
        """Current state, projected to now."""
        stream = await self._get_or_load(state_id)
        async with stream.lock:
            snapshot = project(stream.snapshot, self._clock())
            return StateBlob.of(snapshot, stream.actions)

    async def apply_action(self, state_id: str, client_id: str, action: Action) -> StateBlob:
        if isinstance(action, _NOT_USER_ACTIONS):
            raise RejectedActionError(f"{action.type} actions cannot be applied directly")

        stream = await self._get_or_load(state_id)
        async with stream.lock:
            if action.id and any(existing.id == action.id for existing in stream.actions):
                # A retried request; the action is already in the log
                logger.info("duplicate action ignored", extra={"state_id": state_id, "action_id": action.id})
                return stream.blob()
            applied = self._do_action(stream, action)
            stream.undo.setdefault(client_id, UndoController()).record(applied.id)
            self._save(state_id, stream)
            return stream.blob()

    async def undo(self, state_id: str, client_id: str) -> StateBlob:
        stream = await self._get_or_load(state_id)
        async with stream.lock:
            controller = stream.undo.setdefault(client_id, UndoController())
            action = controller.undo_action()
            if action is not None:
                self._do_action(stream, action)
                self._save(state_id, stream)
            return stream.blob()

    async def redo(self, state_id: str, client_id: str) -> StateBlob:
        stream = await self._get_or_load(state_id)
        async with stream.lock:
            controller = stream.undo.setdefault(client_id, UndoController())
            action = controller.redo_action()
            if action is not None:
                self._do_action(stream, action)
                self._save(state_id, stream)
            return stream.blob()

    async def refresh(self, state_id: str) -> StateBlob:
        """Project to now, creating a first list if the stream has none."""
        stream = await self._get_or_load(state_id)
        async with stream.lock:
            if not stream.snapshot.lists:
                self._do_action(stream, ListNew(name=DEFAULT_LIST_NAME))
                self._save(state_id, stream)
            stream.snapshot = project(stream.snapshot, self._clock())
            return stream.blob()

    async def sync(self, state_id: str, remote: StateBlob) -> StateBlob:
        """Merge a remote copy of the stream into the local one."""
        stream = await self._get_or_load(state_id)
        async with stream.lock:
            local = stream.blob()
            merged = merge_states(local, remote, strict=self._strict)
            if same_state(merged, local):
                logger.info("sync: no changes", extra={"state_id": state_id, "hash": local.hash})
                return local

            stream.snapshot = merged.snapshot
            stream.actions = list(merged.actions)
            self._save(state_id, stream)
            logger.info(
                "sync: merged remote changes",
                extra={"state_id": state_id, "action_id": stream.actions[-1].id, "hash": merged.hash},
            )
            return stream.blob()

    def _do_action(self, stream: _StreamState, action: Action) -> Action:
        now = self._clock()
        stamped = stamp_action(action, stream.snapshot.hash, now)
        snapshot = fold_action(stream.snapshot, stamped, stream.actions, strict=self._strict)
        if isinstance(stamped, (Undo, Redo)):
            # Rebuilt from the log, so only valid as of the last effective action
            project_in_place(snapshot, deserialize_date(stamped.time))
        stream.snapshot = snapshot
        stream.actions = [*stream.actions, stamped]

        logger.info(
            "action folded",
            extra={"state_id": snapshot.id or "-", "action_id": stamped.id, "hash": stamped.hash},
        )
        return stamped

    def _save(self, state_id: str, stream: _StreamState) -> None:
        self._persistence.save_state(state_id, dump_state(stream.blob()))

    async def _get_or_load(self, state_id: str) -> _StreamState:
        async with self._global_lock:
            stream = self._streams.get(state_id)
            if stream is not None:
                return stream

            text = self._persistence.load_state(state_id)
            if text is None:
                logger.info("new state stream", extra={"state_id": state_id})
                blob = new_state(self._clock(), state_id=state_id)
                self._persistence.save_state(state_id, dump_state(blob))
            else:
                blob = parse_state(text, self._clock())

            stream = _StreamState(lock=asyncio.Lock(), snapshot=blob.snapshot, actions=list(blob.actions))
            self._streams[state_id] = stream
            return stream
