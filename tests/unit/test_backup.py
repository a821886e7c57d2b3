"""
Tests for sealed bid JSON backups.
"""

import json

import pytest

from sealbid.core.auction import seal
from sealbid.core.errors import CommitmentMismatch, InvalidInput
from sealbid.core.storage import BACKUP_VERSION, export_sealed_bid, import_sealed_bid
from sealbid.crypto import FIELD_PRIME

BIDDER = "0x" + "11" * 20
AUCTION = "0x" + "a0" * 20


@pytest.fixture
def bid():
    sealed, _ = seal(BIDDER, AUCTION, 2**200, 10, timestamp=1_700_000_000)
    return sealed


class TestExport:

    def test_document_shape(self, bid):
        doc = json.loads(export_sealed_bid(bid))
        assert doc["version"] == BACKUP_VERSION == "1.0"
        assert "exportedAt" in doc
        assert doc["sealed"]["amount"] == str(2**200)
        assert doc["sealed"]["salt"] == bid.salt_hex
        assert doc["sealed"]["nullifier"] == bid.nullifier_hex

    def test_import_restores_bid(self, bid):
        assert import_sealed_bid(export_sealed_bid(bid)) == bid


class TestImport:

    def _doc(self, bid):
        return json.loads(export_sealed_bid(bid))

    def test_not_json(self):
        with pytest.raises(InvalidInput):
            import_sealed_bid("{not json")

    def test_missing_sealed(self, bid):
        doc = self._doc(bid)
        del doc["sealed"]
        with pytest.raises(InvalidInput):
            import_sealed_bid(json.dumps(doc))

    def test_wrong_version(self, bid):
        doc = self._doc(bid)
        doc["version"] = "2.0"
        with pytest.raises(InvalidInput):
            import_sealed_bid(json.dumps(doc))

    @pytest.mark.parametrize("field,value", [
        ("bidder", "0x1234"),
        ("amount", "-1"),
        ("amount", True),
        ("salt", "0xnothex"),
        ("timestamp", -5),
    ])
    def test_malformed_field(self, bid, field, value):
        doc = self._doc(bid)
        doc["sealed"][field] = value
        with pytest.raises(InvalidInput):
            import_sealed_bid(json.dumps(doc))

    def test_tampered_amount(self, bid):
        doc = self._doc(bid)
        doc["sealed"]["amount"] = "1"
        with pytest.raises(CommitmentMismatch):
            import_sealed_bid(json.dumps(doc))

    def test_aliased_amount(self, bid):
        """amount + p does not reproduce the commitment of amount."""
        doc = self._doc(bid)
        doc["sealed"]["amount"] = str(bid.amount + FIELD_PRIME)
        with pytest.raises(CommitmentMismatch):
            import_sealed_bid(json.dumps(doc))

    def test_tampered_timestamp(self, bid):
        """The nullifier binds the timestamp."""
        doc = self._doc(bid)
        doc["sealed"]["timestamp"] = 1_700_000_001
        with pytest.raises(CommitmentMismatch):
            import_sealed_bid(json.dumps(doc))

    def test_uppercase_hex_accepted(self, bid):
        doc = self._doc(bid)
        doc["sealed"]["bidder"] = "0x" + doc["sealed"]["bidder"][2:].upper()
        doc["sealed"]["commitment"] = "0x" + doc["sealed"]["commitment"][2:].upper()
        assert import_sealed_bid(json.dumps(doc)) == bid
