"""
Tests for the AuctionBook facade.
"""

import json

import pytest

from sealbid.core.auction import AuctionSnapshot, AuctionStatus, MarketPattern, SealedBid
from sealbid.core.book import AuctionBook
from sealbid.core.config import EngineConfig
from sealbid.core.errors import (
    CommitmentMismatch,
    DuplicateBid,
    DuplicateNullifier,
    InvalidInput,
    NotEnded,
    UnknownBid,
)
from sealbid.crypto import FIELD_PRIME

ALICE = "0x" + "11" * 20
BOB = "0x" + "22" * 20
AUCTION = "0x" + "a0" * 20


@pytest.fixture
def book():
    return AuctionBook()


@pytest.fixture
def disk_book(tmp_path):
    book = AuctionBook.open(EngineConfig(data_dir=tmp_path / "data"))
    yield book
    book.close()


class TestCommitRecord:

    def test_commit_has_no_side_effects(self, book):
        bid, _ = book.commit(ALICE, AUCTION, 100, 10)
        assert not book.registry.contains(bid.nullifier)
        assert book.bids(AUCTION) == []

    def test_record(self, book):
        bid, _ = book.commit(ALICE, AUCTION, 100, 10)
        book.record(bid)
        assert book.registry.contains(bid.nullifier)
        assert book.bids(AUCTION) == [bid]

    def test_record_twice(self, book):
        bid, _ = book.commit(ALICE, AUCTION, 100, 10)
        book.record(bid)
        with pytest.raises(DuplicateNullifier):
            book.record(bid)
        assert len(book.bids(AUCTION)) == 1

    def test_record_inconsistent_bid(self, book):
        bid, _ = book.commit(ALICE, AUCTION, 100, 10)
        bid.price = 11
        with pytest.raises(CommitmentMismatch):
            book.record(bid)
        assert len(book.registry) == 0

    def test_record_aliased_amount(self, book):
        """A bid claiming amount + p under the original hashes is refused."""
        bid, salt = book.commit(ALICE, AUCTION, 100, 10)
        forged = SealedBid(
            bidder=bid.bidder, auction=bid.auction, amount=100 + FIELD_PRIME, price=bid.price,
            salt=salt, commitment=bid.commitment, nullifier=bid.nullifier, timestamp=bid.timestamp,
        )
        with pytest.raises(CommitmentMismatch):
            book.record(forged)
        assert len(book.registry) == 0
        assert book.bids(AUCTION) == []

    def test_store_failure_releases_nullifier(self, book):
        """A bid already in the store (but not the registry) rolls back the registration."""
        bid, _ = book.commit(ALICE, AUCTION, 100, 10)
        book.store.put(bid)
        with pytest.raises(DuplicateBid):
            book.record(bid)
        assert not book.registry.contains(bid.nullifier)

    def test_bid_bounds_policy(self):
        book = AuctionBook(config=EngineConfig(enforce_bid_bounds=True, base_decimals=0))
        with pytest.raises(InvalidInput):
            book.commit(ALICE, AUCTION, 1, 1)
        bid, _ = book.commit(ALICE, AUCTION, 1, 20_000)
        book.record(bid)

    def test_bids_by_bidder(self, book):
        a, _ = book.commit(ALICE, AUCTION, 1, 1)
        b, _ = book.commit(BOB, AUCTION, 2, 2)
        book.record(a)
        book.record(b)
        assert book.bids(AUCTION, bidder=BOB) == [b]


class TestReveal:

    def test_reveal(self, book):
        bid, salt = book.commit(ALICE, AUCTION, 100, 10)
        book.record(bid)
        assert book.reveal(bid.nullifier_hex, 100, 10, salt).revealed

    def test_reveal_unknown(self, book):
        with pytest.raises(UnknownBid):
            book.reveal("0x" + "ab" * 32, 1, 1, 1)

    def test_reveal_malformed_nullifier(self, book):
        with pytest.raises(InvalidInput):
            book.reveal("xyz", 1, 1, 1)

    def test_reveal_mismatch(self, book):
        bid, salt = book.commit(ALICE, AUCTION, 100, 10)
        book.record(bid)
        with pytest.raises(CommitmentMismatch):
            book.reveal(bid.nullifier, 99, 10, salt)


class TestSettleAndScore:

    def _fill(self, book):
        sealed = [
            book.commit(ALICE, AUCTION, 100, 10),
            book.commit(BOB, AUCTION, 50, 20),
        ]
        for bid, salt in sealed:
            book.record(bid)
            book.reveal(bid.nullifier, bid.amount, bid.price, salt)
        return sealed

    def test_determine_winners(self, book):
        self._fill(book)
        assert [w.bidder for w in book.determine_winners(AUCTION)] == [BOB, ALICE]

    def test_settle(self, book):
        self._fill(book)
        result = book.settle(AUCTION, AuctionSnapshot(AuctionStatus.ENDED, clearing_price=15))
        assert [w.bid_price for w in result.winners] == [20, 10]
        assert result.clearing_price == 15

    def test_settle_active(self, book):
        self._fill(book)
        with pytest.raises(NotEnded):
            book.settle(AUCTION, AuctionSnapshot(AuctionStatus.ACTIVE))

    def test_concentration(self, book):
        self._fill(book)
        report = book.concentration(AUCTION)
        # Shares 6666 / 3333 bps
        assert report.hhi == 4443 + 1110
        assert report.bid_count == 2
        assert book.score(AUCTION, MarketPattern.NEUTRAL) == -15

    def test_concentration_revealed_only(self, book):
        self._fill(book)
        hidden, _ = book.commit(ALICE, AUCTION, 1000, 1)
        book.record(hidden)
        assert book.concentration(AUCTION).bid_count == 3
        assert book.concentration(AUCTION, revealed_only=True).bid_count == 2


class TestMaintenance:

    def test_teardown(self, book):
        bid, _ = book.commit(ALICE, AUCTION, 1, 1)
        book.record(bid)
        assert book.teardown(AUCTION) == (1, 1)
        assert book.bids(AUCTION) == []
        assert not book.registry.contains(bid.nullifier)
        book.record(bid)

    def test_export_import(self, book):
        bid, salt = book.commit(ALICE, AUCTION, 100, 10)
        book.record(bid)
        text = book.export(bid.nullifier)
        assert json.loads(text)["sealed"]["nullifier"] == bid.nullifier_hex

        other = AuctionBook()
        restored = other.import_backup(text)
        assert restored == bid
        assert other.reveal(bid.nullifier, 100, 10, salt).revealed

    def test_import_into_same_book_is_duplicate(self, book):
        bid, _ = book.commit(ALICE, AUCTION, 100, 10)
        book.record(bid)
        with pytest.raises(DuplicateNullifier):
            book.import_backup(book.export(bid.nullifier))

    def test_export_unknown(self, book):
        with pytest.raises(UnknownBid):
            book.export("0x" + "cd" * 32)

    def test_open_creates_database(self, disk_book, tmp_path):
        bid, _ = disk_book.commit(ALICE, AUCTION, 1, 1)
        disk_book.record(bid)
        assert (tmp_path / "data" / "sealbid.db").exists()
