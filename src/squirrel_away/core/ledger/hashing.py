"""Hash chain linking every action to the one before it.

An action's hash is ``md5(canonical_json([prev_hash, action_without_hash]))``,
so two histories ending in the same hash contain the same ordered actions.
The chain is only used to short-circuit merges; a mismatch costs a full merge,
never correctness.

Canonical form: keys sorted, no whitespace, integral floats rendered as
integers (``5.0`` -> ``5``) so that values parsed from JSON and values built in
code hash identically.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Sequence

from squirrel_away.core.protocol.actions import Action


def md5_hash(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


EMPTY_HASH = md5_hash("")


def _canonical(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def action_content(action: Action) -> dict[str, Any]:
    return action.model_dump(mode="json", by_alias=True, exclude={"hash"})


def calculate_action_hash(prev_hash: str, action: Action) -> str:
    payload = _canonical([prev_hash, action_content(action)])
    return md5_hash(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def history_hash(history: Sequence[Action]) -> str:
    return history[-1].hash if history else EMPTY_HASH


def rechain(prev_hash: str, action: Action) -> Action:
    """Return ``action`` with its hash recomputed against ``prev_hash``.

    The same object comes back when the hash is already correct.
    """
    h = calculate_action_hash(prev_hash, action)
    if h == action.hash:
        return action
    return action.model_copy(update={"hash": h})
