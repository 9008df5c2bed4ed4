from __future__ import annotations

import math
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from squirrel_away.core.protocol.timestamps import deserialize_date


def _check_date(value: str) -> str:
    # Raises ValueError for anything that is not an ISO date or "never"
    deserialize_date(value)
    return value


def _check_instant(value: str) -> str:
    if math.isinf(deserialize_date(value)):
        raise ValueError(f"expected a date, got {value!r}")
    return value


# A date or "never"
WireDate = Annotated[str, AfterValidator(_check_date)]
# A date that actually happened
WireInstant = Annotated[str, AfterValidator(_check_instant)]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class LinearAmount(WireModel):
    """Money that grows linearly from the owning snapshot's ``time``."""

    value: float = 0.0
    rate: float = 0.0  # dollars per day


class BudgetAmount(WireModel):
    dollars: float = 0.0
    unit: str = "/month"


class Item(WireModel):
    id: str
    name: Optional[str] = None
    price: float = 0.0
    saved: LinearAmount = Field(default_factory=LinearAmount)
    note: Optional[str] = None
    expected_date: Optional[WireDate] = None


class PurchaseHistoryItem(WireModel):
    id: str
    name: Optional[str] = None
    price_estimate: float = 0.0
    price: float = 0.0
    purchase_date: WireInstant


class BudgetList(WireModel):
    id: str
    name: str = "Wish list"
    budget: BudgetAmount = Field(default_factory=BudgetAmount)
    kitty: LinearAmount = Field(default_factory=LinearAmount)
    items: List[Item] = Field(default_factory=list)
    purchase_history: List[PurchaseHistoryItem] = Field(default_factory=list)


class Snapshot(WireModel):
    """Derived view of a state stream.

    ``hash`` is the hash of the last action folded in, not a digest of the
    snapshot content.
    """

    id: str = ""
    lists: List[BudgetList] = Field(default_factory=list)
    time: WireInstant
    next_nonlinearity: Optional[WireDate] = None
    hash: str

