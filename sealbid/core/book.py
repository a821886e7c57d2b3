"""
Auction Book - Engine facade for sealed-bid auctions.

Owns one NullifierRegistry and one BidStore over a shared StorageManager
and exposes the calls external collaborators use:

    commit   -> seal a bid (no side effects)
    record   -> register nullifier + store bid, as one unit
    reveal   -> disclose amount/price/salt
    settle   -> rank revealed bids of an ENDED auction
    score    -> concentration and rate improvement

Writes for the same nullifier are serialized by a per-nullifier lock;
writes for different nullifiers and all reads proceed concurrently.
"""

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple, Union
import threading

from sealbid.core.auction.scoring import ConcentrationReport, MarketPattern, analyze_bids
from sealbid.core.auction.sealing import SealedBid, check_bid_bounds, check_identifier, seal
from sealbid.core.auction.settlement import (
    AuctionSnapshot,
    ClaimStatusSource,
    SettlementEngine,
    SettlementResult,
    Winner,
)
from sealbid.core.config import EngineConfig
from sealbid.core.errors import CommitmentMismatch, InvalidInput, UnknownBid
from sealbid.core.registry import NullifierRegistry
from sealbid.core.storage import BidStore, StorageManager, export_sealed_bid, import_sealed_bid
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import normalize_hash

logger = get_logger("book")


class AuctionBook:
    """
    Sealed-bid engine over one persistent store.

    Args:
        storage_manager: Persistence manager. None = in-memory only.
        config: Engine configuration (bid value policy)
        claim_source: Optional view of on-chain claims for settlement
    """

    def __init__(
        self,
        storage_manager: Optional[StorageManager] = None,
        config: Optional[EngineConfig] = None,
        claim_source: Optional[ClaimStatusSource] = None,
    ):
        self.config = config or EngineConfig()
        self.storage_manager = storage_manager
        # Both stores finish loading before the first write is accepted
        self.registry = NullifierRegistry(storage_manager)
        self.store = BidStore(storage_manager)
        self.engine = SettlementEngine(claim_source)

        self._locks: Dict[str, Tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def open(cls, config: EngineConfig, claim_source: Optional[ClaimStatusSource] = None) -> "AuctionBook":
        """Open (or create) the book stored under config.data_dir."""
        config.ensure_dirs()
        return cls(StorageManager(config.data_dir, config.db_name), config, claim_source)

    def close(self) -> None:
        if self.storage_manager:
            self.storage_manager.close()

    @contextmanager
    def _nullifier_lock(self, key: str) -> Iterator[None]:
        with self._locks_guard:
            lock, users = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                lock, users = self._locks[key]
                if users == 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, users - 1)

    # =========================================================================
    # Bidding
    # =========================================================================

    def commit(
        self,
        bidder: Union[str, bytes],
        auction: Union[str, bytes],
        amount: int,
        price: int,
        timestamp: Optional[int] = None,
    ) -> Tuple[SealedBid, int]:
        """Seal a bid under the configured bid value policy. Nothing is stored."""
        return seal(bidder, auction, amount, price, timestamp=timestamp, config=self.config)

    def record(self, bid: SealedBid) -> SealedBid:
        """
        Register a bid's nullifier and store the bid.

        Called once the commitment is accepted on chain. If storing fails
        the nullifier is released again.

        Raises:
            CommitmentMismatch: If the bid does not reproduce its hashes
            DuplicateNullifier: If the nullifier is already used
            DuplicateBid: If the store already holds the bid
        """
        if not bid.is_consistent():
            raise CommitmentMismatch(f"Bid {bid.nullifier_hex} does not reproduce its commitment")
        check_bid_bounds(bid.amount, bid.price, self.config)

        key = bid.nullifier_hex
        with self._nullifier_lock(key):
            self.registry.register(key, bid.auction)
            try:
                self.store.put(bid)
            except Exception:
                self.registry.release(key)
                raise

        logger.info(f"Recorded bid {key[:18]}... for auction {bid.auction[:10]}...")
        return bid

    def reveal(
        self,
        nullifier: Union[int, str],
        amount: int,
        price: int,
        salt: Union[int, str],
    ) -> SealedBid:
        """Reveal a recorded bid; see BidStore.mark_revealed."""
        key = self._key(nullifier)
        with self._nullifier_lock(key):
            return self.store.mark_revealed(key, amount, price, salt)

    # =========================================================================
    # Settlement and Scoring
    # =========================================================================

    def bids(self, auction: Union[str, bytes], bidder: Optional[Union[str, bytes]] = None) -> List[SealedBid]:
        if bidder is not None:
            return self.store.list_by_bidder(auction, bidder)
        return self.store.list(auction)

    def determine_winners(self, auction: Union[str, bytes]) -> List[Winner]:
        return self.engine.determine_winners(auction, self.store.list(auction))

    def settle(self, auction: Union[str, bytes], snapshot: AuctionSnapshot) -> SettlementResult:
        """Settle an ENDED auction over its stored bids."""
        return self.engine.settle(auction, self.store.list(auction), snapshot)

    def concentration(self, auction: Union[str, bytes], revealed_only: bool = False) -> ConcentrationReport:
        """Concentration report over the stored bids of an auction."""
        bids = self.store.list(auction)
        if revealed_only:
            bids = [b for b in bids if b.revealed]
        return analyze_bids(bids)

    def score(self, auction: Union[str, bytes], pattern: MarketPattern, revealed_only: bool = False) -> int:
        """Rate improvement (percent) for an auction."""
        return self.concentration(auction, revealed_only).improvement(pattern)

    # =========================================================================
    # Maintenance
    # =========================================================================

    def teardown(self, auction: Union[str, bytes]) -> Tuple[int, int]:
        """
        Forget an auction: its nullifiers and its bids.

        Returns:
            (nullifiers_cleared, bids_deleted)
        """
        auction_id = check_identifier(auction, "auction")
        cleared = self.registry.clear(auction_id)
        deleted = self.store.delete_auction(auction_id)
        logger.info(f"Tore down auction {auction_id[:10]}...: "
                    f"{cleared} nullifiers, {deleted} bids")
        return cleared, deleted

    def export(self, nullifier: Union[int, str]) -> str:
        """JSON backup of a recorded bid."""
        key = self._key(nullifier)
        bid = self.store.get(key)
        if bid is None:
            raise UnknownBid(key)
        return export_sealed_bid(bid)

    def import_backup(self, text: str) -> SealedBid:
        """Validate a JSON backup and record its bid."""
        return self.record(import_sealed_bid(text))

    @staticmethod
    def _key(nullifier: Union[int, str]) -> str:
        try:
            return normalize_hash(nullifier)
        except ValueError as e:
            raise InvalidInput(f"Invalid nullifier: {e}")
