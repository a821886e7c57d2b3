"""
Cryptographic primitives for sealbid.

This module provides:
- Hashing functions (Keccak-256, Poseidon)
- Secure salt generation for sealed bids
- Identifier helpers (20-byte, Ethereum-style addresses)

Design Notes:
-------------
Commitments and nullifiers use Poseidon over the BN254 scalar field so that
they can later be opened inside an arithmetic circuit.

Keccak-256 is retained for:
- EIP-55 checksummed identifiers (display only, comparisons are lowercase)
"""

import re
import secrets

from Crypto.Hash import keccak


# =============================================================================
# Constants
# =============================================================================

# Identifier width (bidder / auction addresses)
ADDRESS_SIZE = 20

# Salt width in bytes (256-bit blinding factor)
SALT_SIZE = 32

_ADDRESS_RE = re.compile(r"0[xX][0-9a-fA-F]{%d}" % (ADDRESS_SIZE * 2))


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: EIP-55 checksum encoding of identifiers.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Randomness
# =============================================================================


def generate_salt() -> int:
    """
    Generate a 256-bit blinding factor.

    Uses the OS cryptographically secure random source.
    """
    return int.from_bytes(secrets.token_bytes(SALT_SIZE), byteorder="big")


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def to_hex32(value: int) -> str:
    """Format a 256-bit integer as a 0x-prefixed, 64-digit lowercase hex string."""
    return "0x" + value.to_bytes(32, byteorder="big").hex()


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not isinstance(address, str):
        return False
    return _ADDRESS_RE.fullmatch(address) is not None


def to_checksum_address(address: str) -> str:
    """
    Encode an address with EIP-55 mixed-case checksum.

    Raises:
        ValueError: If the address is malformed
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")

    lower = address[2:].lower()
    digest = keccak256(lower.encode("ascii")).hex()
    return "0x" + "".join(
        ch.upper() if int(digest[i], 16) >= 8 else ch
        for i, ch in enumerate(lower)
    )


# =============================================================================
# Poseidon Hash (ZK-friendly)
# =============================================================================

from sealbid.crypto.poseidon import (
    # Core hash functions
    poseidon_hash,
    poseidon2,
    poseidon5,
    poseidon_merkle_root,
    # Field element conversion
    to_field,
    split_uint256,
    FIELD_PRIME,
    UINT256_MAX,
    # Sealed-bid hash functions
    hash_bid_commitment,
    hash_bid_nullifier,
    # Domain separators
    DOMAIN_BID_COMMITMENT,
    DOMAIN_BID_NULLIFIER,
    DOMAIN_MERKLE_NODE,
)
