"""
Sealed bid backups.

A bidder who loses the salt can never reveal, so a sealed bid can be
exported as a self-contained JSON document and imported elsewhere:

    {
      "version": "1.0",
      "exportedAt": "2025-01-01T00:00:00Z",
      "sealed": { "bidder": ..., "amount": "100", "salt": "0x...", ... }
    }

uint256 quantities travel as decimal strings, hashes as 0x-hex. Documents
are validated with pydantic and the imported bid must reproduce its own
commitment and nullifier.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from sealbid.core.auction.sealing import SealedBid
from sealbid.core.errors import CommitmentMismatch, InvalidInput
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import normalize_address, normalize_hash, parse_uint, validate_address

logger = get_logger("backup")

BACKUP_VERSION = "1.0"


class SealedBidRecord(BaseModel):
    """Wire form of a SealedBid."""

    model_config = ConfigDict(extra="ignore")

    bidder: str
    auction: str
    amount: int
    price: int
    salt: str
    commitment: str
    nullifier: str
    timestamp: int = Field(..., ge=0)
    revealed: bool = False

    @field_validator("bidder", "auction")
    @classmethod
    def _check_identifier(cls, value: str, info) -> str:
        valid, err = validate_address(value, info.field_name)
        if not valid:
            raise ValueError(err)
        return normalize_address(value)

    @field_validator("amount", "price", mode="before")
    @classmethod
    def _check_uint(cls, value, info) -> int:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"{info.field_name} must be a decimal string or int")
        return parse_uint(value, info.field_name)

    @field_validator("salt", "commitment", "nullifier")
    @classmethod
    def _check_hash(cls, value: str) -> str:
        return normalize_hash(value)

    @field_serializer("amount", "price")
    def _uint_to_str(self, value: int) -> str:
        return str(value)

    @classmethod
    def from_bid(cls, bid: SealedBid) -> "SealedBidRecord":
        return cls(**bid.to_dict())

    def to_bid(self) -> SealedBid:
        return SealedBid(
            bidder=self.bidder,
            auction=self.auction,
            amount=self.amount,
            price=self.price,
            salt=int(self.salt, 16),
            commitment=int(self.commitment, 16),
            nullifier=int(self.nullifier, 16),
            timestamp=self.timestamp,
            revealed=self.revealed,
        )


class SealedBidBackup(BaseModel):
    """Backup envelope."""

    model_config = ConfigDict(populate_by_name=True)

    version: Literal["1.0"] = BACKUP_VERSION
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="exportedAt")
    sealed: SealedBidRecord


def export_sealed_bid(bid: SealedBid) -> str:
    """Serialize a sealed bid (salt included) to a JSON backup document."""
    backup = SealedBidBackup(sealed=SealedBidRecord.from_bid(bid))
    logger.debug(f"Exported bid {bid.nullifier_hex[:18]}...")
    return backup.model_dump_json(by_alias=True, indent=2)


def import_sealed_bid(text: str) -> SealedBid:
    """
    Parse and check a JSON backup document.

    Raises:
        InvalidInput: If the document is malformed or has another version
        CommitmentMismatch: If the fields do not reproduce the hashes
    """
    try:
        backup = SealedBidBackup.model_validate_json(text)
    except ValidationError as e:
        raise InvalidInput(f"Invalid sealed bid backup: {e.error_count()} error(s): "
                           f"{e.errors()[0]['msg']}")

    bid = backup.sealed.to_bid()
    if not bid.is_consistent():
        raise CommitmentMismatch(f"Backup for {bid.nullifier_hex} does not reproduce its commitment")

    logger.info(f"Imported bid {bid.nullifier_hex[:18]}... exported at {backup.exported_at.isoformat()}")
    return bid
