"""
Tests for the Nullifier Registry.
"""

import pytest

from sealbid.core.errors import DuplicateNullifier, InvalidInput
from sealbid.core.registry import NullifierEntry, NullifierRegistry
from sealbid.core.storage import StorageManager

AUCTION_A = "0x" + "a0" * 20
AUCTION_B = "0x" + "b0" * 20
N1 = "0x" + "01" * 32
N2 = "0x" + "02" * 32
N3 = "0x" + "03" * 32


@pytest.fixture
def registry():
    return NullifierRegistry()


@pytest.fixture
def storage(tmp_path):
    sm = StorageManager(tmp_path)
    yield sm
    sm.close()


class TestRegister:

    def test_register_and_contains(self, registry):
        entry = registry.register(N1, AUCTION_A)
        assert isinstance(entry, NullifierEntry)
        assert entry.nullifier == N1
        assert entry.auction == AUCTION_A
        assert entry.timestamp > 0
        assert registry.contains(N1)
        assert N1 in registry
        assert len(registry) == 1

    def test_duplicate_rejected(self, registry):
        registry.register(N1, AUCTION_A)
        with pytest.raises(DuplicateNullifier) as exc:
            registry.register(N1, AUCTION_A)
        assert exc.value.nullifier == N1
        assert exc.value.auction == AUCTION_A

    def test_duplicate_across_auctions_rejected(self, registry):
        """Registry is global: replay into another auction fails."""
        registry.register(N1, AUCTION_A)
        with pytest.raises(DuplicateNullifier):
            registry.register(N1, AUCTION_B)

    def test_case_insensitive(self, registry):
        registry.register(N1.upper().replace("0X", "0x"), AUCTION_A)
        assert registry.contains(N1)
        with pytest.raises(DuplicateNullifier):
            registry.register(int(N1, 16), AUCTION_A)

    def test_invalid_inputs(self, registry):
        with pytest.raises(InvalidInput):
            registry.register("0xnothex", AUCTION_A)
        with pytest.raises(InvalidInput):
            registry.register(N1, "0x1234")
        assert len(registry) == 0

    def test_contains_malformed_is_false(self, registry):
        assert registry.contains("garbage") is False

    def test_contains_has_no_side_effect(self, registry):
        assert not registry.contains(N1)
        registry.register(N1, AUCTION_A)


class TestClear:

    def test_clear_only_that_auction(self, registry):
        registry.register(N1, AUCTION_A)
        registry.register(N2, AUCTION_A)
        registry.register(N3, AUCTION_B)

        assert registry.clear(AUCTION_A) == 2
        assert not registry.contains(N1)
        assert not registry.contains(N2)
        assert registry.contains(N3)

    def test_cleared_nullifier_reusable(self, registry):
        registry.register(N1, AUCTION_A)
        registry.clear(AUCTION_A)
        registry.register(N1, AUCTION_A)

    def test_release(self, registry):
        registry.register(N1, AUCTION_A)
        assert registry.release(N1) is True
        assert registry.release(N1) is False
        assert not registry.contains(N1)

    def test_entries_for_auction(self, registry):
        registry.register(N1, AUCTION_A)
        registry.register(N3, AUCTION_B)
        registry.register(N2, AUCTION_A)
        assert [e.nullifier for e in registry.entries_for_auction(AUCTION_A)] == [N1, N2]


class TestPersistence:

    def test_reload(self, storage, tmp_path):
        registry = NullifierRegistry(storage)
        registry.register(N1, AUCTION_A)
        registry.register(N2, AUCTION_B)
        storage.close()

        reopened = StorageManager(tmp_path)
        try:
            restored = NullifierRegistry(reopened)
            assert restored.contains(N1)
            assert restored.contains(N2)
            with pytest.raises(DuplicateNullifier):
                restored.register(N1, AUCTION_A)
        finally:
            reopened.close()

    def test_clear_persists(self, storage, tmp_path):
        registry = NullifierRegistry(storage)
        registry.register(N1, AUCTION_A)
        registry.clear(AUCTION_A)
        assert storage.load_nullifiers() == []

    def test_shared_database_duplicate(self, storage, tmp_path):
        """A second registry on the same database sees the unique constraint."""
        first = NullifierRegistry(storage)
        other_storage = StorageManager(tmp_path)
        try:
            second = NullifierRegistry(other_storage)
            first.register(N1, AUCTION_A)
            with pytest.raises(DuplicateNullifier):
                second.register(N1, AUCTION_A)
        finally:
            other_storage.close()
