"""Reconciling divergent action histories from different devices.

## Determinism

The merged history is the union of both inputs ordered by ``(time, id)``.
Because the order depends only on the actions themselves, merging is
commutative and associative: pairwise merges across any number of devices
converge regardless of the order in which they happen.

## Fast paths

Hashes chain every action to its predecessor, so equal final hashes mean
equal histories, and a history that contains the other's final hash is a
fast-forward of it. In both cases an input is returned unchanged (same
object). Any other case, including a hash that differs only because another
implementation serialized differently, falls through to the full merge.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Set

from squirrel_away.core.ledger.hashing import EMPTY_HASH, history_hash, rechain
from squirrel_away.core.ledger.history import reduce_actions
from squirrel_away.core.protocol.actions import Action
from squirrel_away.core.protocol.state import StateBlob
from squirrel_away.core.protocol.timestamps import deserialize_date

logger = logging.getLogger(__name__)


def merge_histories(*histories: Sequence[Action]) -> Sequence[Action]:
    """Merge any number of histories into one canonical history."""
    if not histories:
        return []
    merged = histories[0]
    for other in histories[1:]:
        merged = _merge_pair(merged, other)
    return merged


def _order_key(action: Action) -> tuple[float, str]:
    return (deserialize_date(action.time), action.id)


def _merge_pair(left: Sequence[Action], right: Sequence[Action]) -> Sequence[Action]:
    if not right:
        return left
    if not left:
        return right

    left_hash = history_hash(left)
    right_hash = history_hash(right)
    if left_hash == right_hash:
        return left
    if any(a.hash == right_hash for a in left):
        return left
    if any(a.hash == left_hash for a in right):
        return right

    result: List[Action] = []
    emitted: Set[str] = set()
    prev_hash = EMPTY_HASH
    i = j = 0
    while i < len(left) or j < len(right):
        has_left = i < len(left)
        has_right = j < len(right)

        if has_left and has_right and left[i].id == right[j].id:
            pick = left[i]
            i += 1
            j += 1
        elif has_left and (not has_right or _order_key(left[i]) <= _order_key(right[j])):
            pick = left[i]
            i += 1
        else:
            pick = right[j]
            j += 1

        # Already taken from the other side at a different position
        if pick.id in emitted:
            continue
        emitted.add(pick.id)

        pick = rechain(prev_hash, pick)
        prev_hash = pick.hash
        result.append(pick)

    logger.info(
        "histories merged",
        extra={"state_id": "-", "action_id": result[-1].id if result else "-", "hash": prev_hash},
    )
    return result


def merge_states(state1: StateBlob, state2: StateBlob, *, strict: bool = False) -> StateBlob:
    """Merge two persisted states, re-deriving the snapshot when needed."""
    actions = merge_histories(state1.actions, state2.actions)

    # Fast-forward: one side already is the merge result
    if actions is state1.actions:
        return state1
    if actions is state2.actions:
        return state2

    return StateBlob.of(reduce_actions(actions, strict=strict), list(actions))


def same_state(state1: StateBlob, state2: StateBlob) -> bool:
    return state1.hash == state2.hash
