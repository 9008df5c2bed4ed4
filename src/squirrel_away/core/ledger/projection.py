"""Waterfall projection of a snapshot forward in time.

Each list receives money continuously at its budget rate. The money is poured
down the list's items in order: an item is filled to its price before anything
flows to the item below it, and whatever is left over lands in the list's
kitty. A negative kitty is debt and is paid off before any item receives money.

Between two "nonlinearities" (an item becoming funded, a debt being cleared)
every amount is linear in time, so the state is fully described by a
``LinearAmount`` per bucket plus the timestamp of the next nonlinearity.

## Time cursor

The cursor starts at the projection target and advances by the time needed to
cover each shortfall at the list's rate: first the debt, then for each item
the part of its remaining cost the available money could not cover. This makes
``project(project(s, t), t) == project(s, t)``.
"""

from __future__ import annotations

import math

from squirrel_away.core.errors import UnknownBudgetUnitError
from squirrel_away.core.protocol.models import BudgetAmount, BudgetList, Snapshot
from squirrel_away.core.protocol.timestamps import (
    MS_PER_DAY,
    Timestamp,
    deserialize_date,
    serialize_date,
    to_ms,
)

DAYS_PER_YEAR = 365.25


def allocated_rate(budget: BudgetAmount) -> float:
    """Budget converted to dollars per day."""
    if budget.unit == "/month":
        return budget.dollars * 12 / DAYS_PER_YEAR
    if budget.unit == "/day":
        return budget.dollars
    raise UnknownBudgetUnitError(f"unknown budget unit: {budget.unit!r}")


def project(snapshot: Snapshot, to_time: Timestamp) -> Snapshot:
    """Return a copy of ``snapshot`` with every linear amount advanced to ``to_time``."""
    draft = snapshot.model_copy(deep=True)
    project_in_place(draft, to_time)
    return draft


def project_in_place(snapshot: Snapshot, to_time: Timestamp) -> None:
    to_time = to_ms(to_time)
    last_commit_time = deserialize_date(snapshot.time)
    next_nonlinearity = math.inf

    for budget_list in snapshot.lists:
        candidate = _project_list(budget_list, to_time - last_commit_time, to_time)
        next_nonlinearity = min(next_nonlinearity, candidate)

    snapshot.time = serialize_date(to_time)
    snapshot.next_nonlinearity = serialize_date(next_nonlinearity)


def _accrued(rate: float, elapsed_ms: float) -> float:
    return rate * elapsed_ms / MS_PER_DAY


def _time_to_cover(amount: float, rate: float) -> float:
    return amount * MS_PER_DAY / rate if rate > 0 else math.inf


def _nearest_ms(ms: Timestamp) -> Timestamp:
    # Float noise in a shortfall must not move the floored wire date
    return ms if math.isinf(ms) else float(round(ms))


def _project_list(budget_list: BudgetList, elapsed_ms: float, to_time: Timestamp) -> Timestamp:
    """Advance one list by ``elapsed_ms``; returns its earliest nonlinearity."""
    rate = allocated_rate(budget_list.budget)
    next_nonlinearity = math.inf
    time_cursor = to_time

    # Money available at `to_time` and the rate at which it keeps arriving
    remaining = budget_list.kitty.value + _accrued(rate, elapsed_ms)
    overflow_rate = rate

    debt = 0.0
    debt_rate = 0.0
    if remaining < 0:
        debt = -remaining
        debt_rate = -overflow_rate
        remaining = 0.0
        overflow_rate = 0.0
        time_cursor += _time_to_cover(debt, rate)
        next_nonlinearity = min(next_nonlinearity, _nearest_ms(time_cursor))

    for item in budget_list.items:
        remaining_cost = item.price - item.saved.value

        if remaining >= remaining_cost:
            # A negative remaining cost (price reduced below saved) adds money back
            remaining -= remaining_cost
            item.saved.value = item.price
            item.saved.rate = 0.0
            item.expected_date = None
            continue

        time_cursor += _time_to_cover(remaining_cost - remaining, rate)
        item.saved.value += remaining
        item.saved.rate = overflow_rate
        item.expected_date = serialize_date(_nearest_ms(time_cursor))
        remaining = 0.0
        overflow_rate = 0.0
        next_nonlinearity = min(next_nonlinearity, _nearest_ms(time_cursor))

    budget_list.kitty.value = remaining - debt
    budget_list.kitty.rate = overflow_rate - debt_rate
    return next_nonlinearity

