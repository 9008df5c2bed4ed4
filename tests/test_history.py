"""Tests for rebuilding snapshots from the action log, including Undo/Redo.

Undo and Redo are ordinary actions in the log. Their effect is resolved by a
skip-set computed up front, so undone actions stay in the history forever.
"""

import logging

import pytest

from builders import DAY, T0, Timeline
from squirrel_away.core.errors import HistoryIntegrityError
from squirrel_away.core.ledger.hashing import EMPTY_HASH, calculate_action_hash
from squirrel_away.core.ledger.history import empty_state, new_state, reduce_actions, skip_set, stamp_action
from squirrel_away.core.ledger.projection import project
from squirrel_away.core.ledger.reducer import fold_action
from squirrel_away.core.protocol.actions import (
    ItemNew,
    ItemSetName,
    ItemSetPrice,
    ListInjectMoney,
    ListNew,
    ListSetBudget,
    NewState,
    Redo,
    Undo,
)
from squirrel_away.core.protocol.models import BudgetAmount
from squirrel_away.core.protocol.timestamps import NEVER, serialize_date


def _budgeted_timeline() -> tuple[Timeline, str]:
    tl = Timeline()
    tl.add(NewState())
    list_id = tl.add(ListNew(name="Trip")).id
    tl.add(ListSetBudget(list_id=list_id, budget=BudgetAmount(dollars=300, unit="/month")))
    return tl, list_id


def test_empty_state() -> None:
    snap = empty_state()

    assert snap.lists == []
    assert snap.hash == EMPTY_HASH
    assert snap.next_nonlinearity == NEVER
    assert snap.time == serialize_date(0)


def test_reduce_equals_sequential_fold_from_empty() -> None:
    tl, list_id = _budgeted_timeline()
    item_id = tl.add(ItemNew(list_id=list_id), at=T0 + DAY).id
    tl.add(ItemSetPrice(item_id=item_id, price=120), at=T0 + 2 * DAY)
    tl.add(ListInjectMoney(list_id=list_id, amount=-20), at=T0 + 4 * DAY)
    tl.add(ItemSetName(item_id=item_id, name="Tent"), at=T0 + 9 * DAY)

    snap = empty_state()
    for i, action in enumerate(tl.actions):
        snap = fold_action(snap, action, tl.actions[:i])

    assert reduce_actions(tl.actions) == snap


def test_undo_then_redo_restores_the_effect() -> None:
    """A, Undo(A), Redo(A) has the same effect as A alone."""

    tl, list_id = _budgeted_timeline()
    inject = tl.add(ListInjectMoney(list_id=list_id, amount=50), at=T0 + DAY)
    only_a = reduce_actions(tl.actions)

    tl.add(Undo(action_id_to_undo=inject.id), at=T0 + 2 * DAY)
    undone = reduce_actions(tl.actions)
    tl.add(Redo(action_id_to_redo=inject.id), at=T0 + 3 * DAY)
    redone = reduce_actions(tl.actions)

    later = T0 + 3 * DAY
    assert project(undone, later).lists[0].kitty.value == pytest.approx(3 * 300 * 12 / 365.25)
    assert project(redone, later).lists == project(only_a, later).lists
    # Both meta-actions are still part of the hash chain
    assert redone.hash == tl.actions[-1].hash
    assert len(tl.actions) == 6


def test_folding_undo_rebuilds_from_prior_history() -> None:
    tl, list_id = _budgeted_timeline()
    inject = tl.add(ListInjectMoney(list_id=list_id, amount=50))
    snap = reduce_actions(tl.actions)

    undo = tl.add(Undo(action_id_to_undo=inject.id))
    folded = fold_action(snap, undo, tl.actions[:-1])

    assert folded.lists[0].kitty.value == 0
    assert folded.hash == undo.hash
    assert folded == reduce_actions(tl.actions)


def test_skip_set_tracks_nested_undo_and_redo() -> None:
    tl, list_id = _budgeted_timeline()
    a = tl.add(ListInjectMoney(list_id=list_id, amount=1))
    b = tl.add(ListInjectMoney(list_id=list_id, amount=2))
    undo_b = tl.add(Undo(action_id_to_undo=b.id))
    undo_a = tl.add(Undo(action_id_to_undo=a.id))
    redo_a = tl.add(Redo(action_id_to_redo=a.id))

    skip = skip_set(tl.actions)

    assert skip == {b.id, undo_b.id, undo_a.id, redo_a.id}
    assert reduce_actions(tl.actions).lists[0].kitty.value == 1


def test_redo_brings_back_concurrent_edits() -> None:
    """Edits by another device to an undone item reappear on redo."""

    tl, list_id = _budgeted_timeline()
    add_item = tl.add(ItemNew(list_id=list_id))
    tl.add(ItemSetName(item_id=add_item.id, name="Renamed elsewhere"))

    tl.add(Undo(action_id_to_undo=add_item.id))
    assert reduce_actions(tl.actions).lists[0].items == []

    tl.add(Redo(action_id_to_redo=add_item.id))
    (item,) = reduce_actions(tl.actions).lists[0].items
    assert item.id == add_item.id
    assert item.name == "Renamed elsewhere"


def test_double_undo_degrades_to_noop(caplog: pytest.LogCaptureFixture) -> None:
    tl, list_id = _budgeted_timeline()
    inject = tl.add(ListInjectMoney(list_id=list_id, amount=10))
    tl.add(Undo(action_id_to_undo=inject.id))
    tl.add(Undo(action_id_to_undo=inject.id))

    with caplog.at_level(logging.WARNING):
        snap = reduce_actions(tl.actions)

    assert snap.lists[0].kitty.value == 0
    assert any("already undone" in r.getMessage() for r in caplog.records)
    with pytest.raises(HistoryIntegrityError):
        reduce_actions(tl.actions, strict=True)


def test_redo_without_undo_is_rejected_in_strict_mode() -> None:
    tl, list_id = _budgeted_timeline()
    inject = tl.add(ListInjectMoney(list_id=list_id, amount=10))
    tl.add(Redo(action_id_to_redo=inject.id))

    assert reduce_actions(tl.actions).lists[0].kitty.value == 10
    with pytest.raises(HistoryIntegrityError):
        reduce_actions(tl.actions, strict=True)


def test_stamp_action_keeps_caller_audit_values() -> None:
    action = ListNew(id="fixed-id", time=serialize_date(T0), name="Kept")

    stamped = stamp_action(action, EMPTY_HASH, T0 + DAY)

    assert stamped.id == "fixed-id"
    assert stamped.time == serialize_date(T0)
    assert stamped.hash == calculate_action_hash(EMPTY_HASH, stamped)
    assert action.hash == ""


def test_stamp_action_assigns_missing_values() -> None:
    stamped = stamp_action(ListNew(), EMPTY_HASH, T0)

    assert stamped.id
    assert stamped.time == serialize_date(T0)


def test_new_state_bootstraps_with_a_single_new_action() -> None:
    blob = new_state(T0, state_id="stream-1")

    (action,) = blob.actions
    assert isinstance(action, NewState)
    assert blob.id == action.id == "stream-1"
    assert blob.hash == action.hash
    assert blob.time == serialize_date(T0)
    assert blob.snapshot == reduce_actions(blob.actions)
