from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from squirrel_away.core.protocol.actions import Redo, Undo


@dataclass
class UndoController:
    """Session-local cursor over the actions one client performed.

    Actions from other devices may be interleaved in the shared history; they
    are never recorded here, so undoing only ever targets this client's own
    actions. Undo and Redo themselves are plain actions appended to the log.
    """

    history: List[str] = field(default_factory=list)
    index: int = 0

    def record(self, action_id: str) -> None:
        # Anything that could have been redone is invalidated by a new action
        del self.history[self.index :]
        self.history.append(action_id)
        self.index = len(self.history)

    def can_undo(self) -> bool:
        return self.index > 0

    def can_redo(self) -> bool:
        return self.index < len(self.history)

    def undo_action(self) -> Optional[Undo]:
        if not self.can_undo():
            return None
        self.index -= 1
        return Undo(action_id_to_undo=self.history[self.index])

    def redo_action(self) -> Optional[Redo]:
        if not self.can_redo():
            return None
        action_id = self.history[self.index]
        self.index += 1
        return Redo(action_id_to_redo=action_id)
