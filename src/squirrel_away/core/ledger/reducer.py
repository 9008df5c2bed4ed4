"""Pure fold of a single action into a snapshot.

``fold_action`` never mutates its inputs: it works on a deep copy (the
"draft") and returns it. Actions that reference a list or item that does not
exist are silent no-ops, which is what lets concurrent edits from different
devices merge without conflicts (e.g. one device renames an item another one
already deleted).
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Sequence, Tuple

from squirrel_away.core.errors import HistoryIntegrityError
from squirrel_away.core.ledger.hashing import calculate_action_hash
from squirrel_away.core.ledger.projection import project_in_place
from squirrel_away.core.protocol.actions import (
    Action,
    ItemDelete,
    ItemMove,
    ItemNew,
    ItemPurchase,
    ItemRedistributeMoney,
    ItemSetName,
    ItemSetNote,
    ItemSetPrice,
    ListDelete,
    ListInjectMoney,
    ListNew,
    ListSetBudget,
    ListSetName,
    MigrateState,
    NewState,
    Redo,
    Undo,
)
from squirrel_away.core.protocol.models import BudgetList, Item, PurchaseHistoryItem, Snapshot
from squirrel_away.core.protocol.timestamps import deserialize_date

logger = logging.getLogger(__name__)


def fold_action(
    snapshot: Snapshot,
    action: Action,
    prior_actions: Sequence[Action],
    skip_effect: bool = False,
    *,
    strict: bool = False,
) -> Snapshot:
    """Fold ``action`` into ``snapshot``.

    ``prior_actions`` is the full history that produced ``snapshot``; it is
    only consulted for Undo/Redo, whose effect is to rebuild the snapshot from
    the whole history including the Undo/Redo itself.

    When ``skip_effect`` is true only the hash chain advances.
    """
    check_action_hash(snapshot, action, strict=strict)

    if not skip_effect and isinstance(action, (Undo, Redo)):
        # Imported here: history depends on this module for the fold pass
        from squirrel_away.core.ledger.history import reduce_actions

        return reduce_actions([*prior_actions, action], strict=strict)

    draft = snapshot.model_copy(deep=True)
    fold_in_place(draft, action, skip_effect)
    return draft


def check_action_hash(snapshot: Snapshot, action: Action, *, strict: bool = False) -> None:
    """Verify that ``action`` chains onto ``snapshot``.

    A mismatch is only logged unless ``strict``: the hash is a merge shortcut,
    not a correctness gate.
    """
    if not action.hash or action.hash == calculate_action_hash(snapshot.hash, action):
        return
    logger.warning(
        "action hash mismatch",
        extra={"state_id": snapshot.id or "-", "action_id": action.id, "hash": action.hash},
    )
    if strict:
        raise HistoryIntegrityError(f"hash mismatch for action {action.id}")


def fold_in_place(snapshot: Snapshot, action: Action, skip_effect: bool = False) -> None:
    """Mutating fold used by ``fold_action`` and the log builder.

    Undo/Redo must arrive here with ``skip_effect`` set; their effect is
    computed by the log builder's skip-set pass.
    """
    snapshot.hash = action.hash or calculate_action_hash(snapshot.hash, action)
    if skip_effect:
        return

    time = deserialize_date(action.time)
    project_in_place(snapshot, time)

    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"unhandled action type: {action.type}")
    handler(snapshot, action)

    # New money may have been freed up, e.g. by a redistribution
    project_in_place(snapshot, time)


def _find_list(snapshot: Snapshot, list_id: str) -> Optional[BudgetList]:
    for budget_list in snapshot.lists:
        if budget_list.id == list_id:
            return budget_list
    return None


def _find_item(snapshot: Snapshot, item_id: str) -> Optional[Tuple[BudgetList, Item]]:
    for budget_list in snapshot.lists:
        for item in budget_list.items:
            if item.id == item_id:
                return budget_list, item
    return None


def _new_state(snapshot: Snapshot, action: NewState) -> None:
    snapshot.id = action.id
    snapshot.time = action.time
    snapshot.lists = []


def _migrate_state(snapshot: Snapshot, action: MigrateState) -> None:
    migrated = action.state.model_copy(deep=True)
    snapshot.id = migrated.id
    snapshot.lists = migrated.lists
    snapshot.time = action.time


def _list_new(snapshot: Snapshot, action: ListNew) -> None:
    snapshot.lists.append(BudgetList(id=action.id, name=action.name))


def _list_delete(snapshot: Snapshot, action: ListDelete) -> None:
    snapshot.lists = [existing for existing in snapshot.lists if existing.id != action.list_id]


def _list_set_name(snapshot: Snapshot, action: ListSetName) -> None:
    budget_list = _find_list(snapshot, action.list_id)
    if budget_list is not None:
        budget_list.name = action.new_name


def _list_set_budget(snapshot: Snapshot, action: ListSetBudget) -> None:
    budget_list = _find_list(snapshot, action.list_id)
    if budget_list is not None:
        budget_list.budget = action.budget.model_copy()


def _list_inject_money(snapshot: Snapshot, action: ListInjectMoney) -> None:
    budget_list = _find_list(snapshot, action.list_id)
    if budget_list is not None:
        budget_list.kitty.value += action.amount


def _item_new(snapshot: Snapshot, action: ItemNew) -> None:
    budget_list = _find_list(snapshot, action.list_id)
    if budget_list is not None:
        budget_list.items.append(Item(id=action.id))


def _item_move(snapshot: Snapshot, action: ItemMove) -> None:
    found = _find_item(snapshot, action.item_id)
    target = _find_list(snapshot, action.target_list_id)
    if found is None or target is None:
        return
    source, item = found

    # Clamped against the target before removal, so moving to "the end" of the
    # same list lands on the last slot
    target_index = max(min(action.target_index, len(target.items) - 1), 0)
    source.items.remove(item)
    target.items.insert(target_index, item)


def _item_delete(snapshot: Snapshot, action: ItemDelete) -> None:
    found = _find_item(snapshot, action.item_id)
    if found is None:
        return
    budget_list, item = found
    budget_list.items.remove(item)
    budget_list.kitty.value += item.saved.value


def _item_set_name(snapshot: Snapshot, action: ItemSetName) -> None:
    found = _find_item(snapshot, action.item_id)
    if found is not None:
        found[1].name = action.name


def _item_set_price(snapshot: Snapshot, action: ItemSetPrice) -> None:
    found = _find_item(snapshot, action.item_id)
    if found is None:
        return
    budget_list, item = found
    item.price = action.price
    if action.price < item.saved.value:
        budget_list.kitty.value += item.saved.value - action.price
        item.saved.value = action.price


def _item_set_note(snapshot: Snapshot, action: ItemSetNote) -> None:
    found = _find_item(snapshot, action.item_id)
    if found is not None:
        found[1].note = action.note


def _item_purchase(snapshot: Snapshot, action: ItemPurchase) -> None:
    found = _find_item(snapshot, action.item_id)
    if found is None:
        return
    budget_list, item = found

    # Whatever was saved beyond (or short of) the actual price goes to the kitty
    budget_list.kitty.value += item.saved.value - action.actual_price
    budget_list.purchase_history.append(
        PurchaseHistoryItem(
            id=item.id,
            name=item.name,
            price_estimate=item.price,
            price=action.actual_price,
            purchase_date=action.time,
        )
    )
    budget_list.items.remove(item)


def _item_redistribute_money(snapshot: Snapshot, action: ItemRedistributeMoney) -> None:
    found = _find_item(snapshot, action.item_id)
    if found is None:
        return
    budget_list, item = found
    budget_list.kitty.value += item.saved.value
    item.saved.value = 0.0


def _meta_action(snapshot: Snapshot, action: Action) -> None:
    raise HistoryIntegrityError(f"{action.type} {action.id} folded without its skip-set")


_HANDLERS: Dict[type, Callable[[Snapshot, Action], None]] = {
    NewState: _new_state,
    MigrateState: _migrate_state,
    ListNew: _list_new,
    ListDelete: _list_delete,
    ListSetName: _list_set_name,
    ListSetBudget: _list_set_budget,
    ListInjectMoney: _list_inject_money,
    ItemNew: _item_new,
    ItemMove: _item_move,
    ItemDelete: _item_delete,
    ItemSetName: _item_set_name,
    ItemSetPrice: _item_set_price,
    ItemSetNote: _item_set_note,
    ItemPurchase: _item_purchase,
    ItemRedistributeMoney: _item_redistribute_money,
    Undo: _meta_action,
    Redo: _meta_action,
}
