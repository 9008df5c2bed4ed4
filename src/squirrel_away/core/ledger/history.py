"""Building snapshots from action histories.

## Undo/Redo

An Undo referencing action X means "the state the same history would produce
with X omitted". ``reduce_actions`` runs two passes:

1. Collect the skip-set: an Undo adds itself and its target; a Redo adds
   itself and removes its target.
2. Fold every action, with ``skip_effect`` set for members of the skip-set.
   Skipped actions still advance the hash chain.

Undone actions are never removed from the log, so the history stays
append-only and merges between devices keep working.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, Optional, Sequence, Set

from squirrel_away.core.errors import HistoryIntegrityError
from squirrel_away.core.ledger.hashing import EMPTY_HASH, calculate_action_hash
from squirrel_away.core.ledger.reducer import check_action_hash, fold_in_place
from squirrel_away.core.protocol.actions import Action, NewState, Redo, Undo
from squirrel_away.core.protocol.models import Snapshot
from squirrel_away.core.protocol.state import StateBlob
from squirrel_away.core.protocol.timestamps import NEVER, Timestamp, serialize_date

logger = logging.getLogger(__name__)


def empty_state() -> Snapshot:
    # id and time come from the New or MigrateState action that starts a history
    return Snapshot(id="", lists=[], time=serialize_date(0), next_nonlinearity=NEVER, hash=EMPTY_HASH)


def skip_set(actions: Iterable[Action], *, strict: bool = False) -> Set[str]:
    """Ids of the actions whose effect is cancelled by Undo/Redo."""
    skip: Set[str] = set()
    for action in actions:
        if isinstance(action, Undo):
            skip.add(action.id)
            if action.action_id_to_undo in skip:
                _integrity_violation(action, "undo of an action that is already undone", strict)
                continue
            skip.add(action.action_id_to_undo)
        elif isinstance(action, Redo):
            skip.add(action.id)
            if action.action_id_to_redo not in skip:
                _integrity_violation(action, "redo of an action that is not undone", strict)
                continue
            skip.discard(action.action_id_to_redo)
    return skip


def _integrity_violation(action: Action, message: str, strict: bool) -> None:
    logger.warning(message, extra={"state_id": "-", "action_id": action.id, "hash": action.hash or "-"})
    if strict:
        raise HistoryIntegrityError(f"{message}: {action.id}")


def reduce_actions(actions: Sequence[Action], *, strict: bool = False) -> Snapshot:
    """Fold ``actions`` into a snapshot, starting from ``empty_state()``."""
    skip = skip_set(actions, strict=strict)

    # The snapshot never escapes until the end, so it is folded in place
    snapshot = empty_state()
    for action in actions:
        check_action_hash(snapshot, action, strict=strict)
        fold_in_place(snapshot, action, action.id in skip)
    return snapshot


def stamp_action(action: Action, prev_hash: str, now: Timestamp) -> Action:
    """Assign id, time and hash to a freshly created action.

    An id or time the caller already set is kept as-is.
    """
    update = {}
    if not action.id:
        update["id"] = str(uuid.uuid4())
    if not action.time:
        update["time"] = serialize_date(now)
    stamped = action.model_copy(update=update) if update else action
    return stamped.model_copy(update={"hash": calculate_action_hash(prev_hash, stamped)})


def new_state(now: Timestamp, state_id: Optional[str] = None) -> StateBlob:
    """A fresh state stream, bootstrapped with a single ``New`` action."""
    action = stamp_action(NewState(id=state_id or ""), EMPTY_HASH, now)
    snapshot = empty_state()
    fold_in_place(snapshot, action)
    return StateBlob.of(snapshot, [action])
