"""
Tests for settlement.

Tests cover:
1. Status transitions
2. Ranking (price desc, amount desc, insertion order)
3. Winner claim transitions
4. settle() preconditions and idempotency
"""

import pytest

from sealbid.core.auction import (
    AuctionSnapshot,
    AuctionStatus,
    ClaimStatus,
    ClaimStatusSource,
    SealedBid,
    SettlementEngine,
    Winner,
    check_transition,
    commitment_root,
    rank_bids,
    seal,
)
from sealbid.core.auction.settlement import compare_bids
from sealbid.core.errors import InvalidTransition, NotEnded

AUCTION = "0x" + "a0" * 20
OTHER_AUCTION = "0x" + "b0" * 20


def bidder(i: int) -> str:
    return "0x" + format(i, "040x")


def revealed_bid(price, amount, who=1, auction=AUCTION):
    bid, _ = seal(bidder(who), auction, amount, price)
    bid.revealed = True
    return bid


class FixedClock:
    def __init__(self, now=1_700_000_000):
        self.now = now

    def __call__(self):
        return self.now


class ClaimedSet:
    def __init__(self, claimed):
        self.claimed = set(claimed)

    def is_claimed(self, auction, bidder):
        return bidder in self.claimed


# =============================================================================
# Status Tests
# =============================================================================


class TestTransitions:

    @pytest.mark.parametrize("current,target", [
        (AuctionStatus.ACTIVE, AuctionStatus.ENDED),
        (AuctionStatus.ENDED, AuctionStatus.SETTLED),
        (AuctionStatus.ACTIVE, AuctionStatus.CANCELLED),
    ])
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        (AuctionStatus.ACTIVE, AuctionStatus.SETTLED),
        (AuctionStatus.ENDED, AuctionStatus.ACTIVE),
        (AuctionStatus.ENDED, AuctionStatus.CANCELLED),
        (AuctionStatus.SETTLED, AuctionStatus.ENDED),
        (AuctionStatus.CANCELLED, AuctionStatus.ACTIVE),
        (AuctionStatus.ACTIVE, AuctionStatus.ACTIVE),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransition):
            check_transition(current, target)


# =============================================================================
# Ranking Tests
# =============================================================================


class TestRanking:

    def test_price_then_amount(self):
        a = revealed_bid(price=5, amount=2)
        b = revealed_bid(price=5, amount=3)
        c = revealed_bid(price=7, amount=1)
        winners = SettlementEngine().determine_winners(AUCTION, [a, b, c])
        assert [(w.bid_price, w.bid_amount) for w in winners] == [(7, 1), (5, 3), (5, 2)]

    def test_full_ties_keep_insertion_order(self):
        bids = [revealed_bid(price=5, amount=5, who=i) for i in range(1, 6)]
        ranked = rank_bids(bids)
        assert [b.bidder for b in ranked] == [bidder(i) for i in range(1, 6)]

    def test_unrevealed_ignored(self):
        hidden, _ = seal(bidder(9), AUCTION, 1000, 1000)
        shown = revealed_bid(price=1, amount=1)
        winners = SettlementEngine().determine_winners(AUCTION, [hidden, shown])
        assert [w.bidder for w in winners] == [shown.bidder]

    def test_other_auction_ignored(self):
        mine = revealed_bid(price=1, amount=1)
        theirs = revealed_bid(price=9, amount=9, auction=OTHER_AUCTION)
        winners = SettlementEngine().determine_winners(AUCTION, [mine, theirs])
        assert len(winners) == 1

    def test_mixed_case_auction_included(self):
        """Checksummed identifiers on a bid still match the auction."""
        bid = SealedBid("0x" + "CD" * 20, "0x" + "AB" * 20, 100, 10, 1, 2, 3, 0, revealed=True)
        winners = SettlementEngine().determine_winners("0x" + "Ab" * 20, [bid])
        assert len(winners) == 1
        assert winners[0].bidder == "0x" + "cd" * 20

    def test_nothing_revealed(self):
        hidden, _ = seal(bidder(1), AUCTION, 1, 1)
        assert SettlementEngine().determine_winners(AUCTION, [hidden]) == []
        assert SettlementEngine().determine_winners(AUCTION, []) == []

    def test_winner_fields(self):
        bid = revealed_bid(price=20, amount=50, who=3)
        winner = SettlementEngine().determine_winners(AUCTION, [bid])[0]
        assert winner.bidder == bidder(3)
        assert winner.bid_amount == 50
        assert winner.bid_price == 20
        assert winner.winning_amount == 50
        assert winner.nullifier == bid.nullifier
        assert winner.claim_status == ClaimStatus.PENDING

    def test_compare_bids(self):
        hi = revealed_bid(price=7, amount=1)
        lo = revealed_bid(price=5, amount=9)
        assert compare_bids(hi, lo) == -1
        assert compare_bids(lo, hi) == 1
        assert compare_bids(hi, hi) == 0


# =============================================================================
# Claim Tests
# =============================================================================


class TestClaims:

    def test_claim_source_marks_claimed(self):
        a = revealed_bid(price=2, amount=1, who=1)
        b = revealed_bid(price=1, amount=1, who=2)
        source = ClaimedSet({bidder(2)})
        assert isinstance(source, ClaimStatusSource)
        winners = SettlementEngine(claim_source=source).determine_winners(AUCTION, [a, b])
        assert [w.claim_status for w in winners] == [ClaimStatus.PENDING, ClaimStatus.CLAIMED]

    def test_mark_claimed(self):
        w = Winner(bidder(1), 1, 1, 1, nullifier=5)
        w.mark_claimed()
        assert w.claim_status == ClaimStatus.CLAIMED
        with pytest.raises(InvalidTransition):
            w.mark_failed()

    def test_mark_failed(self):
        w = Winner(bidder(1), 1, 1, 1, nullifier=5)
        w.mark_failed()
        assert w.claim_status == ClaimStatus.FAILED
        with pytest.raises(InvalidTransition):
            w.mark_claimed()


# =============================================================================
# Settle Tests
# =============================================================================


class TestSettle:

    @pytest.fixture
    def bids(self):
        return [revealed_bid(price=5, amount=2), revealed_bid(price=7, amount=1, who=2)]

    @pytest.mark.parametrize("status", [AuctionStatus.ACTIVE, AuctionStatus.SETTLED, AuctionStatus.CANCELLED])
    def test_requires_ended(self, bids, status):
        with pytest.raises(NotEnded):
            SettlementEngine().settle(AUCTION, bids, AuctionSnapshot(status))

    def test_not_ended_is_invalid_transition(self, bids):
        with pytest.raises(InvalidTransition):
            SettlementEngine().settle(AUCTION, bids, AuctionSnapshot(AuctionStatus.ACTIVE))

    def test_carries_snapshot_values(self, bids):
        engine = SettlementEngine(clock=FixedClock(123))
        snapshot = AuctionSnapshot(AuctionStatus.ENDED, clearing_price=6, currency_raised=4242)
        result = engine.settle(AUCTION, bids, snapshot)
        assert result.auction == AUCTION
        assert result.clearing_price == 6
        assert result.total_cleared == 4242
        assert result.settled_at == 123
        assert [w.bid_price for w in result.winners] == [7, 5]

    def test_bid_root_binds_ranked_commitments(self, bids):
        result = SettlementEngine().settle(AUCTION, bids, AuctionSnapshot(AuctionStatus.ENDED))
        assert result.bid_root == commitment_root([bids[1].commitment, bids[0].commitment])

    def test_idempotent(self, bids):
        clock = FixedClock(100)
        engine = SettlementEngine(clock=clock)
        snapshot = AuctionSnapshot(AuctionStatus.ENDED, clearing_price=6, currency_raised=10)
        first = engine.settle(AUCTION, bids, snapshot)
        clock.now = 200
        second = engine.settle(AUCTION, bids, snapshot)
        assert first.same_outcome(second)
        assert first.settled_at != second.settled_at

    def test_different_inputs_differ(self, bids):
        engine = SettlementEngine()
        snapshot = AuctionSnapshot(AuctionStatus.ENDED)
        first = engine.settle(AUCTION, bids, snapshot)
        second = engine.settle(AUCTION, bids[:1], snapshot)
        assert not first.same_outcome(second)

    def test_empty_settlement(self):
        result = SettlementEngine().settle(AUCTION, [], AuctionSnapshot(AuctionStatus.ENDED))
        assert result.winners == []
        assert result.bid_root == 0

    def test_to_dict(self, bids):
        result = SettlementEngine().settle(AUCTION, bids, AuctionSnapshot(AuctionStatus.ENDED, 6, 10))
        data = result.to_dict()
        assert data["clearing_price"] == "6"
        assert data["winners"][0]["claim_status"] == "PENDING"
        assert data["bid_root"].startswith("0x")
