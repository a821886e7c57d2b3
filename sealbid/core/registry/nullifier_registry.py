"""
Nullifier Registry - Global double-bid prevention.

Every accepted sealed bid publishes a nullifier. The registry keeps the set
of used nullifiers, each tagged with the auction it was registered for, and
refuses any nullifier seen before, whatever its auction. A nullifier is
therefore usable once across the whole engine, which also blocks replaying
a commitment into a different auction.

Membership is loaded from storage when the registry is built, before it
serves any register() call.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union
import sqlite3
import threading
import time

from sealbid.core.errors import DuplicateNullifier, InvalidInput
from sealbid.core.storage.storage_manager import StorageManager
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import normalize_address, normalize_hash, validate_address

logger = get_logger("registry")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class NullifierEntry:
    """
    A registered nullifier.

    Attributes:
        nullifier: Lowercase 0x-hex, 64 digits
        auction: Lowercase 0x-hex auction identifier
        timestamp: Registration time (seconds since epoch)
    """
    nullifier: str
    auction: str
    timestamp: int = field(default_factory=lambda: int(time.time()))


# =============================================================================
# Nullifier Registry
# =============================================================================


class NullifierRegistry:
    """
    Process-wide set of used nullifiers.

    Writes are serialized by a single lock so that check-and-insert is
    atomic; contains() reads the in-memory set without locking.
    """

    def __init__(self, storage_manager: Optional[StorageManager] = None):
        """
        Initialize the registry.

        Args:
            storage_manager: Persistence manager. None = in-memory only.
        """
        self.storage_manager = storage_manager
        self._entries: Dict[str, NullifierEntry] = {}
        self._lock = threading.Lock()

        if storage_manager:
            self._load_from_storage()

    def _load_from_storage(self) -> None:
        for nullifier, auction, timestamp in self.storage_manager.load_nullifiers():
            self._entries[nullifier] = NullifierEntry(nullifier, auction, timestamp)
        logger.info(f"Loaded {len(self._entries)} nullifiers from storage")

    @staticmethod
    def _key(nullifier: Union[int, str]) -> str:
        try:
            return normalize_hash(nullifier)
        except ValueError as e:
            raise InvalidInput(f"Invalid nullifier: {e}")

    @staticmethod
    def _auction_key(auction: Union[str, bytes]) -> str:
        valid, err = validate_address(auction, "auction")
        if not valid:
            raise InvalidInput(err)
        return normalize_address(auction)

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, nullifier: Union[int, str], auction: Union[str, bytes]) -> NullifierEntry:
        """
        Register a nullifier for an auction.

        Args:
            nullifier: Nullifier as int or hex string (any case)
            auction: Auction identifier

        Returns:
            The recorded entry

        Raises:
            InvalidInput: If nullifier or auction is malformed
            DuplicateNullifier: If the nullifier is already registered
        """
        key = self._key(nullifier)
        auction_id = self._auction_key(auction)

        with self._lock:
            existing = self._entries.get(key)
            if existing is not None:
                logger.warning(f"Nullifier already used: {key[:18]}... "
                               f"(auction {existing.auction[:10]}...)")
                raise DuplicateNullifier(key, existing.auction)

            entry = NullifierEntry(nullifier=key, auction=auction_id)

            if self.storage_manager:
                try:
                    self.storage_manager.persist_nullifier(entry.nullifier, entry.auction, entry.timestamp)
                except sqlite3.IntegrityError:
                    # Registered by another process sharing the database
                    raise DuplicateNullifier(key, auction_id)

            self._entries[key] = entry

        logger.debug(f"Registered nullifier {key[:18]}... for auction {auction_id[:10]}...")
        return entry

    def release(self, nullifier: Union[int, str]) -> bool:
        """
        Remove a single nullifier.

        Only used to undo a registration whose bid could not be stored.
        """
        key = self._key(nullifier)
        with self._lock:
            if key not in self._entries:
                return False
            if self.storage_manager:
                self.storage_manager.remove_nullifier(key)
            del self._entries[key]
        logger.debug(f"Released nullifier {key[:18]}...")
        return True

    def clear(self, auction: Union[str, bytes]) -> int:
        """
        Remove every nullifier registered for an auction.

        For auction teardown and tests only, never during settlement.

        Returns:
            Number of entries removed
        """
        auction_id = self._auction_key(auction)
        with self._lock:
            if self.storage_manager:
                self.storage_manager.remove_auction_nullifiers(auction_id)
            doomed = [k for k, e in self._entries.items() if e.auction == auction_id]
            for key in doomed:
                del self._entries[key]

        logger.info(f"Cleared {len(doomed)} nullifiers for auction {auction_id[:10]}...")
        return len(doomed)

    # =========================================================================
    # Queries
    # =========================================================================

    def contains(self, nullifier: Union[int, str]) -> bool:
        """Membership test (case-insensitive)."""
        try:
            key = normalize_hash(nullifier)
        except ValueError:
            return False
        return key in self._entries

    def get(self, nullifier: Union[int, str]) -> Optional[NullifierEntry]:
        return self._entries.get(self._key(nullifier))

    def entries_for_auction(self, auction: Union[str, bytes]) -> List[NullifierEntry]:
        """All entries of an auction, in registration order."""
        auction_id = self._auction_key(auction)
        with self._lock:
            return [e for e in self._entries.values() if e.auction == auction_id]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, nullifier) -> bool:
        return self.contains(nullifier)
