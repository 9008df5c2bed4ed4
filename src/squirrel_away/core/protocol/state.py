from __future__ import annotations

from typing import List

from pydantic import Field

from squirrel_away.core.protocol.actions import Action
from squirrel_away.core.protocol.models import Snapshot


class StateBlob(Snapshot):
    """The persisted structure: the latest snapshot plus the full history."""

    actions: List[Action] = Field(default_factory=list)

    @property
    def snapshot(self) -> Snapshot:
        return Snapshot(**{name: value for name, value in self if name != "actions"})

    @classmethod
    def of(cls, snapshot: Snapshot, actions: List[Action]) -> "StateBlob":
        return cls(**dict(snapshot), actions=list(actions))
