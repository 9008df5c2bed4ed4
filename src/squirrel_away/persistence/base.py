from __future__ import annotations

from typing import Protocol


class Persistence(Protocol):
    """Storage port for serialized state blobs (see ``dump_state``).

    Whatever the medium, it only stores and returns the JSON text; merging and
    reduction happen in the core before saving and after loading.
    """

    def load_state(self, state_id: str) -> str | None: ...

    def save_state(self, state_id: str, text: str) -> None: ...

    def list_states(self) -> list[str]: ...
