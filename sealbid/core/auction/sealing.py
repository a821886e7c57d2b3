"""
Bid Sealing - Commitment engine for sealed bids.

A bidder binds to (amount, price) without revealing them:

    commitment = Poseidon(bidder, auction, amount, price, salt)
    nullifier  = Poseidon(commitment, salt, timestamp)

Each 256-bit value is hashed as two 128-bit limbs, so no two distinct
values share an encoding.

The salt is a fresh 256-bit blinding factor, so sealing the same bid twice
yields unlinkable commitments. Only the commitment is meant to leave the
bidder; amount, price and salt are disclosed at reveal time and checked
with verify().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union
import time

from sealbid.crypto import (
    generate_salt,
    hash_bid_commitment,
    hash_bid_nullifier,
    poseidon_merkle_root,
    to_hex32,
)
from sealbid.core.config import EngineConfig
from sealbid.core.errors import InvalidInput
from sealbid.utils.logger import get_logger
from sealbid.utils.validation import (
    normalize_address,
    normalize_hash,
    validate_address,
    validate_uint256,
)

logger = get_logger("sealing")


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class SealedBid:
    """
    A bid hidden behind a Poseidon commitment.

    Identifiers are normalized to lowercase 0x-hex strings on construction.
    commitment and nullifier are pure functions of the other fields; only
    `revealed` may change after sealing, and only from False to True.
    """
    bidder: str
    auction: str
    amount: int
    price: int
    salt: int
    commitment: int
    nullifier: int
    timestamp: int = field(default_factory=lambda: int(time.time()))
    revealed: bool = False

    def __post_init__(self):
        self.bidder = check_identifier(self.bidder, "bidder")
        self.auction = check_identifier(self.auction, "auction")
        for name in ("amount", "price", "salt", "commitment", "nullifier", "timestamp"):
            check_uint256(getattr(self, name), name)

    @property
    def commitment_hex(self) -> str:
        return to_hex32(self.commitment)

    @property
    def nullifier_hex(self) -> str:
        return to_hex32(self.nullifier)

    @property
    def salt_hex(self) -> str:
        return to_hex32(self.salt)

    def recompute_commitment(self) -> int:
        """Commitment implied by the stored fields."""
        return compute_commitment(self.bidder, self.auction, self.amount, self.price, self.salt)

    def recompute_nullifier(self) -> int:
        """Nullifier implied by the stored fields."""
        return compute_nullifier(self.commitment, self.salt, self.timestamp)

    def is_consistent(self) -> bool:
        """Check that commitment and nullifier reproduce from the other fields."""
        return (
            self.recompute_commitment() == self.commitment
            and self.recompute_nullifier() == self.nullifier
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output (uint256 values as decimal strings)."""
        return {
            "bidder": self.bidder,
            "auction": self.auction,
            "amount": str(self.amount),
            "price": str(self.price),
            "salt": self.salt_hex,
            "commitment": self.commitment_hex,
            "nullifier": self.nullifier_hex,
            "timestamp": self.timestamp,
            "revealed": self.revealed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SealedBid":
        """Inverse of to_dict()."""
        return cls(
            bidder=data["bidder"],
            auction=data["auction"],
            amount=int(data["amount"]),
            price=int(data["price"]),
            salt=int(normalize_hash(data["salt"]), 16),
            commitment=int(normalize_hash(data["commitment"]), 16),
            nullifier=int(normalize_hash(data["nullifier"]), 16),
            timestamp=int(data["timestamp"]),
            revealed=bool(data.get("revealed", False)),
        )


# =============================================================================
# Input Checks
# =============================================================================


def check_identifier(value: Union[str, bytes], name: str) -> str:
    """
    Validate and normalize a 20-byte identifier.

    Raises:
        InvalidInput: If the identifier is malformed
    """
    valid, err = validate_address(value, name)
    if not valid:
        raise InvalidInput(err)
    return normalize_address(value)


def check_uint256(value: Any, name: str) -> int:
    """
    Validate an unsigned 256-bit integer.

    Raises:
        InvalidInput: If the value is not an int in [0, 2^256 - 1]
    """
    valid, err = validate_uint256(value, name)
    if not valid:
        raise InvalidInput(err)
    return value


def check_bid_bounds(amount: int, price: int, config: EngineConfig) -> None:
    """
    Enforce the configured bid value window.

    Raises:
        InvalidInput: If bounds are enabled and the bid value falls outside
    """
    if not config.enforce_bid_bounds:
        return
    value = config.bid_value(amount, price)
    if not config.min_bid_value <= value <= config.max_bid_value:
        raise InvalidInput(
            f"Bid value {value} outside [{config.min_bid_value}, {config.max_bid_value}]"
        )


# =============================================================================
# Commitment Engine
# =============================================================================


def compute_commitment(bidder: str, auction: str, amount: int, price: int, salt: int) -> int:
    """Poseidon commitment over normalized identifiers and bid values."""
    return hash_bid_commitment(
        bidder=int(bidder, 16),
        auction=int(auction, 16),
        amount=amount,
        price=price,
        salt=salt,
    )


def compute_nullifier(commitment: int, salt: int, timestamp: int) -> int:
    """Poseidon nullifier over the commitment, salt and creation time."""
    return hash_bid_nullifier(commitment, salt, timestamp)


def seal(
    bidder: Union[str, bytes],
    auction: Union[str, bytes],
    amount: int,
    price: int,
    timestamp: Optional[int] = None,
    config: Optional[EngineConfig] = None,
) -> Tuple[SealedBid, int]:
    """
    Seal a bid.

    Args:
        bidder: 20-byte bidder identifier (bytes or 0x-hex)
        auction: 20-byte auction identifier (bytes or 0x-hex)
        amount: Base-asset amount in minor units
        price: Quote-asset price in minor units
        timestamp: Creation time in seconds (defaults to now)
        config: Optional config carrying the bid value policy

    Returns:
        (SealedBid, salt)

    Raises:
        InvalidInput: If any field is malformed or out of range
    """
    bidder_id = check_identifier(bidder, "bidder")
    auction_id = check_identifier(auction, "auction")
    check_uint256(amount, "amount")
    check_uint256(price, "price")
    if timestamp is None:
        timestamp = int(time.time())
    else:
        check_uint256(timestamp, "timestamp")
    if config is not None:
        check_bid_bounds(amount, price, config)

    salt = generate_salt()
    commitment = compute_commitment(bidder_id, auction_id, amount, price, salt)
    nullifier = compute_nullifier(commitment, salt, timestamp)

    bid = SealedBid(
        bidder=bidder_id,
        auction=auction_id,
        amount=amount,
        price=price,
        salt=salt,
        commitment=commitment,
        nullifier=nullifier,
        timestamp=timestamp,
    )

    logger.debug(f"Sealed bid for auction {auction_id[:10]}... "
                 f"commitment={bid.commitment_hex[:18]}... nullifier={bid.nullifier_hex[:18]}...")
    return bid, salt


def verify(
    commitment: Union[int, str],
    bidder: Union[str, bytes],
    auction: Union[str, bytes],
    amount: int,
    price: int,
    salt: Union[int, str],
) -> bool:
    """
    Check that revealed fields reproduce a commitment.

    Returns False on any mismatch, including malformed identifiers or
    out-of-range values; never raises for well-typed inputs.
    """
    try:
        expected = int(normalize_hash(commitment), 16)
        salt_int = int(normalize_hash(salt), 16)
        bidder_id = check_identifier(bidder, "bidder")
        auction_id = check_identifier(auction, "auction")
        check_uint256(amount, "amount")
        check_uint256(price, "price")
    except ValueError as e:
        logger.debug(f"Verification rejected malformed input: {e}")
        return False

    return compute_commitment(bidder_id, auction_id, amount, price, salt_int) == expected


def commitment_root(commitments) -> int:
    """Poseidon Merkle root binding a set of commitments (0 for none)."""
    return poseidon_merkle_root(list(commitments))


__all__ = [
    "SealedBid",
    "seal",
    "verify",
    "compute_commitment",
    "compute_nullifier",
    "commitment_root",
    "check_identifier",
    "check_uint256",
    "check_bid_bounds",
]
