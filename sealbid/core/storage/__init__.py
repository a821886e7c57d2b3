"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Nullifier set
- Sealed bids (BidStore)
- Engine metadata
and JSON backups of individual sealed bids.
"""

from sealbid.core.storage.sqlite_adapter import SQLiteAdapter
from sealbid.core.storage.storage_manager import StorageManager
from sealbid.core.storage.bid_store import BidStore
from sealbid.core.storage.backup import (
    BACKUP_VERSION,
    SealedBidBackup,
    SealedBidRecord,
    export_sealed_bid,
    import_sealed_bid,
)

__all__ = [
    "SQLiteAdapter",
    "StorageManager",
    "BidStore",
    "BACKUP_VERSION",
    "SealedBidBackup",
    "SealedBidRecord",
    "export_sealed_bid",
    "import_sealed_bid",
]
