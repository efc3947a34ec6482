"""Sync engine for pys3sync - one-way local/remote tree synchronization."""

from .catalog import (
    Catalog,
    Entry,
    RemoteCatalogBuilder,
    build_local_catalog,
    build_remote_catalog,
)
from .comparator import Changelist, FileComparator, SyncAction, SyncDecision, diff
from .digest import DigestCache, Side
from .engine import SyncEngine, SyncPhase, SyncReport
from .modes import SyncMode
from .operations import TransferKind, TransferOperations, TransferRequest
from .pair import SyncOptions, SyncPair
from .scheduler import (
    TransferOutcome,
    TransferQueue,
    TransferResults,
    TransferScheduler,
)

__all__ = [
    "SyncEngine",
    "SyncPhase",
    "SyncReport",
    "SyncMode",
    "SyncOptions",
    "SyncPair",
    "Catalog",
    "Entry",
    "RemoteCatalogBuilder",
    "build_local_catalog",
    "build_remote_catalog",
    "Changelist",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "diff",
    "DigestCache",
    "Side",
    "TransferKind",
    "TransferOperations",
    "TransferRequest",
    "TransferOutcome",
    "TransferQueue",
    "TransferResults",
    "TransferScheduler",
]
