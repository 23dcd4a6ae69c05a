"""Versioned entity store: aggregate store, mutation gateway and ledgers."""

from .aggregate import AggregateStore
from .checkpoints import CheckpointLedger
from .gateway import MutationGateway
from .versions import VersionLedger

__all__ = [
    "AggregateStore",
    "CheckpointLedger",
    "MutationGateway",
    "VersionLedger",
]
