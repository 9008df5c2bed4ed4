from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Optional

from squirrel_away.core.errors import UnknownBudgetUnitError
from squirrel_away.core.ledger.history import new_state, reduce_actions, stamp_action
from squirrel_away.core.ledger.hashing import EMPTY_HASH
from squirrel_away.core.protocol.actions import MigrateState
from squirrel_away.core.protocol.models import Snapshot
from squirrel_away.core.protocol.state import StateBlob
from squirrel_away.core.protocol.timestamps import Timestamp, serialize_date

logger = logging.getLogger(__name__)


def _with_id(obj: dict[str, Any]) -> dict[str, Any]:
    return {**obj, "id": obj.get("id") or str(uuid.uuid4())}


def _legacy_snapshot(raw: dict[str, Any], now: Timestamp) -> Snapshot:
    lists = []
    for raw_list in raw.get("lists") or []:
        raw_list = _with_id(raw_list)
        raw_list["items"] = [_with_id(i) for i in raw_list.get("items") or []]
        raw_list["purchaseHistory"] = [_with_id(p) for p in raw_list.get("purchaseHistory") or []]
        lists.append(raw_list)
    return Snapshot.model_validate(
        {
            "id": raw.get("id") or str(uuid.uuid4()),
            "time": raw.get("time") or serialize_date(now),
            "nextNonlinearity": raw.get("nextNonlinearity"),
            "hash": raw.get("hash") or EMPTY_HASH,
            "lists": lists,
        }
    )


def upgrade_state_format(raw: Any, now: Timestamp) -> StateBlob:
    """Accept the current format, or upgrade a pre-event-sourcing snapshot.

    A legacy snapshot (no ``actions``) becomes a history of exactly one
    ``MigrateState`` action embedding it.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"state must be a JSON object, got {type(raw).__name__}")
    if "actions" in raw:
        return StateBlob.model_validate(raw)

    legacy = _legacy_snapshot(raw, now)
    migrate = stamp_action(MigrateState(id=legacy.id, time=legacy.time, state=legacy), EMPTY_HASH, now)
    logger.info(
        "legacy state upgraded",
        extra={"state_id": legacy.id, "action_id": migrate.id, "hash": migrate.hash},
    )
    return StateBlob.of(reduce_actions([migrate]), [migrate])


def parse_state(text: Optional[str], now: Timestamp) -> StateBlob:
    """Decode persisted state; anything unreadable yields a fresh stream."""
    if not text:
        return new_state(now)
    try:
        return upgrade_state_format(json.loads(text), now)
    except UnknownBudgetUnitError:
        raise
    except (ValueError, TypeError, AttributeError):
        logger.exception("corrupted state, starting a new one")
        return new_state(now)


def dump_state(state: StateBlob) -> str:
    return json.dumps(state.to_wire(), separators=(",", ":"))
