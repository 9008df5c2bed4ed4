class UnknownBudgetUnitError(ValueError):
    """A list budget uses a unit the rate math does not understand.

    This means the stored data is corrupt and is never tolerated.
    """


class HistoryIntegrityError(AssertionError):
    """An action history violates an invariant (hash chain, undo/redo pairing).

    Only raised in strict mode; otherwise the violation is logged and the
    offending action degrades to a no-op.
    """


class RejectedActionError(ValueError):
    """A client submitted an action that may not be applied directly.

    ``New`` and ``MigrateState`` only start a stream; ``Undo`` and ``Redo`` are
    issued by the service from a client's undo history.
    """
