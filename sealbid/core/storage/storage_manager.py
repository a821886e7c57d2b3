from pathlib import Path
from typing import List, Optional, Tuple

from sealbid.core.auction.sealing import SealedBid
from sealbid.core.storage.sqlite_adapter import SQLiteAdapter
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import normalize_hash

logger = get_logger("storage.manager")


class StorageManager:
    """
    Manages persistent storage for the engine.

    Coordinates data persistence using SQLite adapter.
    Handles:
    - Nullifier set (NullifierRegistry backing)
    - Sealed bids (BidStore backing)
    - Metadata
    """

    def __init__(self, data_dir: Path, db_name: str = "sealbid.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)

        version = self.schema_version()
        if version != SQLiteAdapter.SCHEMA_VERSION:
            self.adapter.close()
            raise ValueError(
                f"Database {self.db_path} has schema version {version}, "
                f"expected {SQLiteAdapter.SCHEMA_VERSION}"
            )

        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Nullifiers
    # =========================================================================

    def persist_nullifier(self, nullifier: str, auction: str, timestamp: int):
        """Durably record a nullifier. Raises sqlite3.IntegrityError on duplicates."""
        self.adapter.insert_nullifier(nullifier, auction, timestamp)

    def remove_nullifier(self, nullifier: str):
        self.adapter.delete_nullifier(nullifier)

    def remove_auction_nullifiers(self, auction: str) -> int:
        return self.adapter.delete_nullifiers_for_auction(auction)

    def load_nullifiers(self) -> List[Tuple[str, str, int]]:
        """Load all (nullifier, auction, timestamp) entries."""
        return self.adapter.get_all_nullifiers()

    # =========================================================================
    # Sealed Bids
    # =========================================================================

    @staticmethod
    def _bid_to_row(bid: SealedBid) -> Tuple:
        return (
            bid.nullifier_hex,
            bid.auction,
            bid.bidder,
            str(bid.amount),
            str(bid.price),
            bid.salt_hex,
            bid.commitment_hex,
            bid.timestamp,
            1 if bid.revealed else 0,
        )

    @staticmethod
    def _row_to_bid(row: Tuple) -> SealedBid:
        nullifier, auction, bidder, amount, price, salt, commitment, timestamp, revealed = row
        return SealedBid(
            bidder=bidder,
            auction=auction,
            amount=int(amount),
            price=int(price),
            salt=int(salt, 16),
            commitment=int(commitment, 16),
            nullifier=int(nullifier, 16),
            timestamp=int(timestamp),
            revealed=bool(revealed),
        )

    def persist_sealed_bid(self, bid: SealedBid):
        """Append a sealed bid. Raises sqlite3.IntegrityError on duplicates."""
        self.adapter.insert_sealed_bid(self._bid_to_row(bid))

    def persist_reveal(self, nullifier: str) -> bool:
        """Persist the revealed flag; False if no such bid exists."""
        return self.adapter.set_bid_revealed(normalize_hash(nullifier)) > 0

    def load_sealed_bids(self) -> List[SealedBid]:
        """Load all sealed bids in insertion order."""
        return [self._row_to_bid(row) for row in self.adapter.get_all_sealed_bids()]

    def remove_auction_bids(self, auction: str) -> int:
        return self.adapter.delete_sealed_bids(auction)

    # =========================================================================
    # Metadata
    # =========================================================================

    def schema_version(self) -> Optional[str]:
        return self.adapter.get_meta("schema_version")
