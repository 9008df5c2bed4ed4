from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from squirrel_away.core.protocol.models import BudgetAmount, Snapshot, WireInstant, WireModel


class ActionBase(WireModel):
    """Common envelope of every action.

    An empty ``id``, ``time`` or ``hash`` means the value has not been assigned
    yet; see ``stamp_action``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = ""
    time: Union[Literal[""], WireInstant] = ""
    hash: str = ""


class NewState(ActionBase):
    type: Literal["New"] = "New"


class MigrateState(ActionBase):
    type: Literal["MigrateState"] = "MigrateState"
    state: Snapshot


class ListNew(ActionBase):
    type: Literal["ListNew"] = "ListNew"
    name: str = "Wish list"


class ListDelete(ActionBase):
    type: Literal["ListDelete"] = "ListDelete"
    list_id: str


class ListSetName(ActionBase):
    type: Literal["ListSetName"] = "ListSetName"
    list_id: str
    new_name: str


class ListSetBudget(ActionBase):
    type: Literal["ListSetBudget"] = "ListSetBudget"
    list_id: str
    budget: BudgetAmount


class ListInjectMoney(ActionBase):
    type: Literal["ListInjectMoney"] = "ListInjectMoney"
    list_id: str
    amount: float


class ItemNew(ActionBase):
    type: Literal["ItemNew"] = "ItemNew"
    list_id: str


class ItemMove(ActionBase):
    type: Literal["ItemMove"] = "ItemMove"
    item_id: str
    target_list_id: str
    target_index: int


class ItemDelete(ActionBase):
    type: Literal["ItemDelete"] = "ItemDelete"
    item_id: str


class ItemSetName(ActionBase):
    type: Literal["ItemSetName"] = "ItemSetName"
    item_id: str
    name: str


class ItemSetPrice(ActionBase):
    type: Literal["ItemSetPrice"] = "ItemSetPrice"
    item_id: str
    price: float


class ItemSetNote(ActionBase):
    type: Literal["ItemSetNote"] = "ItemSetNote"
    item_id: str
    note: str


class ItemPurchase(ActionBase):
    type: Literal["ItemPurchase"] = "ItemPurchase"
    item_id: str
    actual_price: float


class ItemRedistributeMoney(ActionBase):
    type: Literal["ItemRedistributeMoney"] = "ItemRedistributeMoney"
    item_id: str


class Undo(ActionBase):
    type: Literal["Undo"] = "Undo"
    action_id_to_undo: str


class Redo(ActionBase):
    type: Literal["Redo"] = "Redo"
    action_id_to_redo: str


Action = Annotated[
    Union[
        NewState,
        MigrateState,
        ListNew,
        ListDelete,
        ListSetName,
        ListSetBudget,
        ListInjectMoney,
        ItemNew,
        ItemMove,
        ItemDelete,
        ItemSetName,
        ItemSetPrice,
        ItemSetNote,
        ItemPurchase,
        ItemRedistributeMoney,
        Undo,
        Redo,
    ],
    Field(discriminator="type"),
]

_action_adapter: TypeAdapter[Action] = TypeAdapter(Action)


def parse_action(data: Any) -> Action:
    return _action_adapter.validate_python(data)
