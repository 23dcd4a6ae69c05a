"""Remote synchronization: relay boundary and background supervisor."""

from .relay import NullSyncRelay, SyncRelay
from .rest import RestSyncRelay
from .supervisor import SyncResult, SyncSupervisor

__all__ = [
    "NullSyncRelay",
    "SyncRelay",
    "RestSyncRelay",
    "SyncResult",
    "SyncSupervisor",
]
