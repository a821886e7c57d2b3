"""
Bid Store - Canonical collection of sealed bids.

Bids are grouped by auction in insertion order and indexed by nullifier.
Writes go to storage first and are published to memory only after the
write succeeds, so readers never see a half-written bid. The whole
collection is reloaded from storage at construction.
"""

from typing import Dict, List, Optional, Union
import sqlite3
import threading

from sealbid.core.auction.sealing import SealedBid, check_identifier, verify
from sealbid.core.errors import CommitmentMismatch, DuplicateBid, InvalidInput, UnknownBid
from sealbid.core.storage.storage_manager import StorageManager
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import normalize_hash

logger = get_logger("bid_store")


class BidStore:
    """
    Sealed bids keyed by auction and nullifier.

    The store does not consult the nullifier registry; callers register
    first and then put().
    """

    def __init__(self, storage_manager: Optional[StorageManager] = None):
        self.storage_manager = storage_manager
        self._by_auction: Dict[str, List[SealedBid]] = {}
        self._by_nullifier: Dict[str, SealedBid] = {}
        self._lock = threading.RLock()

        if storage_manager:
            self._load_from_storage()

    def _load_from_storage(self) -> None:
        for bid in self.storage_manager.load_sealed_bids():
            self._publish(bid)
        logger.info(f"Loaded {len(self._by_nullifier)} sealed bids "
                    f"across {len(self._by_auction)} auctions")

    def _publish(self, bid: SealedBid) -> None:
        self._by_auction.setdefault(bid.auction, []).append(bid)
        self._by_nullifier[bid.nullifier_hex] = bid

    @staticmethod
    def _key(nullifier: Union[int, str]) -> str:
        try:
            return normalize_hash(nullifier)
        except ValueError as e:
            raise InvalidInput(f"Invalid nullifier: {e}")

    # =========================================================================
    # Writes
    # =========================================================================

    def put(self, bid: SealedBid) -> None:
        """
        Append a bid to its auction.

        Raises:
            DuplicateBid: If a bid with the same nullifier is stored
        """
        key = bid.nullifier_hex
        with self._lock:
            if key in self._by_nullifier:
                raise DuplicateBid(key)
            if self.storage_manager:
                try:
                    self.storage_manager.persist_sealed_bid(bid)
                except sqlite3.IntegrityError:
                    raise DuplicateBid(key)
            self._publish(bid)

        logger.debug(f"Stored bid {key[:18]}... for auction {bid.auction[:10]}...")

    def mark_revealed(
        self,
        nullifier: Union[int, str],
        amount: int,
        price: int,
        salt: Union[int, str],
    ) -> SealedBid:
        """
        Reveal a stored bid.

        The disclosed fields must reproduce the stored commitment. Revealing
        an already revealed bid with correct fields is a no-op.

        Returns:
            The (revealed) bid

        Raises:
            UnknownBid: If no bid is stored under the nullifier
            CommitmentMismatch: If the fields do not match; bid unchanged
        """
        key = self._key(nullifier)
        with self._lock:
            bid = self._by_nullifier.get(key)
            if bid is None:
                raise UnknownBid(key)

            if not verify(bid.commitment, bid.bidder, bid.auction, amount, price, salt):
                logger.warning(f"Reveal rejected for {key[:18]}...: commitment mismatch")
                raise CommitmentMismatch(f"Revealed fields do not match commitment {bid.commitment_hex}")

            if bid.revealed:
                return bid

            if self.storage_manager:
                self.storage_manager.persist_reveal(key)
            bid.revealed = True

        logger.info(f"Revealed bid {key[:18]}... (auction {bid.auction[:10]}...)")
        return bid

    def delete_auction(self, auction: Union[str, bytes]) -> int:
        """
        Drop every bid of an auction.

        Returns:
            Number of bids removed
        """
        auction_id = check_identifier(auction, "auction")
        with self._lock:
            if self.storage_manager:
                self.storage_manager.remove_auction_bids(auction_id)
            bids = self._by_auction.pop(auction_id, [])
            for bid in bids:
                self._by_nullifier.pop(bid.nullifier_hex, None)

        logger.info(f"Deleted {len(bids)} bids for auction {auction_id[:10]}...")
        return len(bids)

    # =========================================================================
    # Reads
    # =========================================================================

    def list(self, auction: Union[str, bytes]) -> List[SealedBid]:
        """All bids of an auction, in insertion order."""
        auction_id = check_identifier(auction, "auction")
        with self._lock:
            return list(self._by_auction.get(auction_id, ()))

    def list_by_bidder(self, auction: Union[str, bytes], bidder: Union[str, bytes]) -> List[SealedBid]:
        bidder_id = check_identifier(bidder, "bidder")
        return [b for b in self.list(auction) if b.bidder == bidder_id]

    def get(self, nullifier: Union[int, str]) -> Optional[SealedBid]:
        return self._by_nullifier.get(self._key(nullifier))

    def contains(self, nullifier: Union[int, str]) -> bool:
        try:
            return normalize_hash(nullifier) in self._by_nullifier
        except ValueError:
            return False

    def find_by_commitment(self, auction: Union[str, bytes], commitment: Union[int, str]) -> Optional[SealedBid]:
        """Look up a bid of an auction by its commitment."""
        try:
            target = int(normalize_hash(commitment), 16)
        except ValueError as e:
            raise InvalidInput(f"Invalid commitment: {e}")
        for bid in self.list(auction):
            if bid.commitment == target:
                return bid
        return None

    def auctions(self) -> List[str]:
        """Auctions with at least one stored bid."""
        with self._lock:
            return [a for a, bids in self._by_auction.items() if bids]

    def __len__(self) -> int:
        return len(self._by_nullifier)
