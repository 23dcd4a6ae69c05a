"""Exception hierarchy for Novel Ledger.

    NovelLedgerError
    ├── NoCurrentBookError      (entity creation with no book selected)
    ├── UnknownEntityKindError  (kind string outside EntityKind)
    ├── SyncError               (remote store transport/storage failures)
    └── PersistenceError        (local session file cannot be written)

Expected conditions (missing entity, unknown version or checkpoint) are
reported through return values, not exceptions.
"""


class NovelLedgerError(Exception):
    """Base class for all Novel Ledger errors."""


class NoCurrentBookError(NovelLedgerError):
    """Raised when an entity is created while no book is selected."""

    def __init__(self, message: str = "No book is currently selected"):
        super().__init__(message)


class UnknownEntityKindError(NovelLedgerError, ValueError):
    """Raised when a kind string does not name an entity kind."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"Unknown entity kind: {kind!r}")


class SyncError(NovelLedgerError):
    """Raised by sync relays when the remote store cannot be reached or rejects a write."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class PersistenceError(NovelLedgerError):
    """Raised when the local session file cannot be written."""
