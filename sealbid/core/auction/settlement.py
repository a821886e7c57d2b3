"""
Settlement - Winner ranking for ended auctions.

Revealed bids are ranked into a canonical fill order:
1. Higher price first
2. Then higher amount
3. Then earlier insertion (stable sort)

The engine does not pick a cutoff: clearing quantity and price belong to
chain state and are carried through from the AuctionSnapshot unchanged.
The caller slices the ranked winners against available supply.

Auction status is read, never written. Settlement is only legal while
the auction is ENDED.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Dict, FrozenSet, List, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable
import time

from sealbid.core.auction.sealing import SealedBid, check_identifier, commitment_root
from sealbid.core.errors import InvalidTransition, NotEnded
from sealbid.crypto import to_hex32
from sealbid.utils.logger import get_logger

logger = get_logger("settlement")


# =============================================================================
# Enums
# =============================================================================


class AuctionStatus(IntEnum):
    """Lifecycle of an auction, as reported by chain state."""
    ACTIVE = 0      # Accepting sealed bids
    ENDED = 1       # Bidding closed, ready to settle
    SETTLED = 2     # Winners paid out
    CANCELLED = 3   # Aborted before ending


class ClaimStatus(IntEnum):
    """Claim state of a winner."""
    PENDING = 0
    CLAIMED = 1
    FAILED = 2


ALLOWED_TRANSITIONS: Dict[AuctionStatus, FrozenSet[AuctionStatus]] = {
    AuctionStatus.ACTIVE: frozenset({AuctionStatus.ENDED, AuctionStatus.CANCELLED}),
    AuctionStatus.ENDED: frozenset({AuctionStatus.SETTLED}),
    AuctionStatus.SETTLED: frozenset(),
    AuctionStatus.CANCELLED: frozenset(),
}


def check_transition(current: AuctionStatus, target: AuctionStatus) -> None:
    """
    Check an auction status transition.

    Raises:
        InvalidTransition: If target is not reachable from current in one step
    """
    current, target = AuctionStatus(current), AuctionStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f"Cannot move auction from {current.name} to {target.name}")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass(frozen=True)
class AuctionSnapshot:
    """
    Auction state read from the chain.

    Owned by the caller; clearing_price and currency_raised are carried
    into the settlement result as-is.
    """
    status: AuctionStatus
    clearing_price: int = 0
    currency_raised: int = 0


@dataclass
class Winner:
    """A ranked, revealed bid."""
    bidder: str
    bid_amount: int
    bid_price: int
    winning_amount: int
    nullifier: int
    claim_status: ClaimStatus = ClaimStatus.PENDING

    def _claim_transition(self, target: ClaimStatus) -> None:
        if self.claim_status != ClaimStatus.PENDING:
            raise InvalidTransition(
                f"Claim for {self.bidder} already {self.claim_status.name}, cannot mark {target.name}"
            )
        self.claim_status = target

    def mark_claimed(self) -> None:
        """Record a successful claim. Only from PENDING."""
        self._claim_transition(ClaimStatus.CLAIMED)

    def mark_failed(self) -> None:
        """Record a failed claim. Only from PENDING."""
        self._claim_transition(ClaimStatus.FAILED)

    def to_dict(self) -> dict:
        return {
            "bidder": self.bidder,
            "bid_amount": str(self.bid_amount),
            "bid_price": str(self.bid_price),
            "winning_amount": str(self.winning_amount),
            "nullifier": to_hex32(self.nullifier),
            "claim_status": self.claim_status.name,
        }


@dataclass
class SettlementResult:
    """
    Outcome of settling an auction.

    bid_root is the Poseidon Merkle root of the ranked winners'
    commitments, binding the result to the exact bid set.
    """
    auction: str
    winners: List[Winner]
    total_cleared: int
    clearing_price: int
    bid_root: int
    settled_at: int = field(default_factory=lambda: int(time.time()))

    def _outcome(self) -> Tuple:
        return (
            self.auction,
            tuple(
                (w.bidder, w.bid_amount, w.bid_price, w.winning_amount, w.nullifier, w.claim_status)
                for w in self.winners
            ),
            self.total_cleared,
            self.clearing_price,
            self.bid_root,
        )

    def same_outcome(self, other: "SettlementResult") -> bool:
        """Structural equality ignoring settled_at."""
        return self._outcome() == other._outcome()

    def to_dict(self) -> dict:
        return {
            "auction": self.auction,
            "winners": [w.to_dict() for w in self.winners],
            "total_cleared": str(self.total_cleared),
            "clearing_price": str(self.clearing_price),
            "bid_root": to_hex32(self.bid_root),
            "settled_at": self.settled_at,
        }


# =============================================================================
# Collaborator Protocol
# =============================================================================


@runtime_checkable
class ClaimStatusSource(Protocol):
    """External view of which winners already claimed on chain."""

    def is_claimed(self, auction: str, bidder: str) -> bool:
        ...


# =============================================================================
# Ranking
# =============================================================================


def _rank_key(bid: SealedBid) -> Tuple[int, int]:
    return (-bid.price, -bid.amount)


def compare_bids(a: SealedBid, b: SealedBid) -> int:
    """
    Compare two bids by fill priority.

    Returns:
        -1 if a fills first, 1 if b fills first, 0 if tied
        (ties resolve by insertion order)
    """
    ka, kb = _rank_key(a), _rank_key(b)
    if ka < kb:
        return -1
    if ka > kb:
        return 1
    return 0


def rank_bids(bids: Sequence[SealedBid]) -> List[SealedBid]:
    """Revealed bids in fill order. sorted() is stable, preserving insertion order on ties."""
    return sorted((b for b in bids if b.revealed), key=_rank_key)


# =============================================================================
# Settlement Engine
# =============================================================================


class SettlementEngine:
    """
    Ranks revealed bids into winners and builds settlement results.

    Stateless apart from its collaborators; safe to share between threads.
    """

    def __init__(
        self,
        claim_source: Optional[ClaimStatusSource] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.claim_source = claim_source
        self.clock = clock

    def determine_winners(self, auction: Union[str, bytes], bids: Sequence[SealedBid]) -> List[Winner]:
        """
        Rank the revealed bids of an auction.

        Unrevealed bids and bids of other auctions are skipped. An empty
        list is returned when nothing has been revealed.
        """
        auction_id = check_identifier(auction, "auction")
        ranked = rank_bids([b for b in bids if b.auction == auction_id])

        winners = []
        for bid in ranked:
            status = ClaimStatus.PENDING
            if self.claim_source is not None and self.claim_source.is_claimed(auction_id, bid.bidder):
                status = ClaimStatus.CLAIMED
            winners.append(Winner(
                bidder=bid.bidder,
                bid_amount=bid.amount,
                bid_price=bid.price,
                winning_amount=bid.amount,
                nullifier=bid.nullifier,
                claim_status=status,
            ))

        logger.debug(f"Ranked {len(winners)} revealed of {len(bids)} bids for auction {auction_id[:10]}...")
        return winners

    def settle(
        self,
        auction: Union[str, bytes],
        bids: Sequence[SealedBid],
        snapshot: AuctionSnapshot,
    ) -> SettlementResult:
        """
        Settle an ended auction.

        Raises:
            NotEnded: If snapshot.status is not ENDED
        """
        auction_id = check_identifier(auction, "auction")
        status = AuctionStatus(snapshot.status)
        if status != AuctionStatus.ENDED:
            raise NotEnded(f"Auction {auction_id} is {status.name}, settlement requires ENDED")

        winners = self.determine_winners(auction_id, bids)
        by_nullifier = {b.nullifier: b for b in bids}
        root = commitment_root(by_nullifier[w.nullifier].commitment for w in winners)

        result = SettlementResult(
            auction=auction_id,
            winners=winners,
            total_cleared=snapshot.currency_raised,
            clearing_price=snapshot.clearing_price,
            bid_root=root,
            settled_at=int(self.clock()),
        )

        logger.info(f"Settled auction {auction_id[:10]}...: {len(winners)} winners, "
                    f"clearing price {snapshot.clearing_price}")
        return result
