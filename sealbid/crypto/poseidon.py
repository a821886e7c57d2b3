"""
Poseidon Hash Function for sealbid.

This module provides ZK-friendly hashing using the Poseidon permutation,
which is optimized for arithmetic circuits (low constraint count in SNARKs).
Bid commitments and nullifiers are computed here so that a future circuit
can prove statements about a sealed bid without re-deriving its encoding.

References:
- Poseidon paper: https://eprint.iacr.org/2019/458
- circomlib implementation: https://github.com/iden3/circomlib

Parameters (BN254 / alt_bn128 scalar field):
- t = number of inputs + 1 (one capacity element), up to 8 inputs
- rounds_f = 8 (full rounds)
- rounds_p = circomlib partial-round schedule for the chosen width
- alpha = 5 (S-box exponent)
"""

from functools import lru_cache
from typing import List, Sequence, Tuple

from py_ecc.bn128 import curve_order

# BN254 scalar field prime
FIELD_PRIME = curve_order

# Domain separators (carried in the capacity element)
DOMAIN_BID_COMMITMENT = 0x02
DOMAIN_BID_NULLIFIER = 0x03
DOMAIN_MERKLE_NODE = 0x05

# Full rounds for every width
ROUNDS_F = 8

# Partial rounds indexed by width t (circomlib N_ROUNDS_P for t = 2..9)
ROUNDS_P = {2: 56, 3: 57, 4: 56, 5: 60, 6: 60, 7: 63, 8: 64, 9: 63}

MAX_INPUTS = max(ROUNDS_P) - 1

# uint256 values are hashed as two 128-bit limbs
UINT256_MAX = 2**256 - 1
LIMB_BITS = 128
LIMB_MASK = (1 << LIMB_BITS) - 1


# =============================================================================
# Round Constants and MDS Matrix
# =============================================================================


def _generate_round_constants(t: int, rounds_f: int, rounds_p: int, seed: bytes = b"poseidon") -> List[int]:
    """
    Generate Poseidon round constants using a deterministic PRNG.

    The seed is bound to the width so that each t gets an independent
    constant stream.
    """
    import hashlib

    total_rounds = rounds_f + rounds_p
    h = hashlib.shake_256(seed + t.to_bytes(1, byteorder="big"))
    digest = h.digest(total_rounds * t * 32)

    constants = []
    for i in range(total_rounds * t):
        chunk = digest[i * 32:(i + 1) * 32]
        constants.append(int.from_bytes(chunk, byteorder="big") % FIELD_PRIME)

    return constants


def _generate_mds_matrix(t: int) -> List[List[int]]:
    """
    Generate MDS (Maximum Distance Separable) matrix for Poseidon.

    Uses a Cauchy matrix construction which is guaranteed to be MDS.
    """
    x = [(i + 1) % FIELD_PRIME for i in range(t)]
    y = [(t + i + 1) % FIELD_PRIME for i in range(t)]

    matrix = []
    for i in range(t):
        row = []
        for j in range(t):
            # M[i][j] = 1 / (x[i] + y[j]) mod p
            denom = (x[i] + y[j]) % FIELD_PRIME
            row.append(pow(denom, FIELD_PRIME - 2, FIELD_PRIME))
        matrix.append(row)

    return matrix


@lru_cache(maxsize=None)
def _get_constants(t: int) -> Tuple[Tuple[int, ...], Tuple[Tuple[int, ...], ...]]:
    """Get or compute (round_constants, mds_matrix) for width t."""
    if t not in ROUNDS_P:
        raise ValueError(f"Unsupported Poseidon width t={t}")
    constants = _generate_round_constants(t, ROUNDS_F, ROUNDS_P[t])
    matrix = _generate_mds_matrix(t)
    return tuple(constants), tuple(tuple(row) for row in matrix)


# =============================================================================
# Poseidon Core Implementation
# =============================================================================


def _sbox(x: int) -> int:
    """Apply S-box: x^5 mod p."""
    return pow(x, 5, FIELD_PRIME)


def _mds_multiply(state: List[int], matrix: Sequence[Sequence[int]]) -> List[int]:
    """Multiply state by MDS matrix."""
    return [
        sum(m * s for m, s in zip(row, state)) % FIELD_PRIME
        for row in matrix
    ]


def _add_round_constants(state: List[int], constants: Sequence[int], round_idx: int) -> List[int]:
    """Add round constants to state."""
    t = len(state)
    offset = round_idx * t
    return [(state[i] + constants[offset + i]) % FIELD_PRIME for i in range(t)]


def _full_round(state, constants, matrix, round_idx: int) -> List[int]:
    """Execute a full round (S-box on all elements)."""
    state = _add_round_constants(state, constants, round_idx)
    state = [_sbox(x) for x in state]
    return _mds_multiply(state, matrix)


def _partial_round(state, constants, matrix, round_idx: int) -> List[int]:
    """Execute a partial round (S-box on first element only)."""
    state = _add_round_constants(state, constants, round_idx)
    state[0] = _sbox(state[0])
    return _mds_multiply(state, matrix)


def poseidon_hash(inputs: Sequence[int], domain_sep: int = 0) -> int:
    """
    Compute Poseidon hash of 1..MAX_INPUTS field elements.

    Args:
        inputs: Field elements (integers < FIELD_PRIME)
        domain_sep: Domain separator placed in the capacity element

    Returns:
        Hash as a field element (integer)

    Raises:
        ValueError: If inputs are out of range or wrong count
    """
    if not 1 <= len(inputs) <= MAX_INPUTS:
        raise ValueError(f"Poseidon supports 1-{MAX_INPUTS} inputs, got {len(inputs)}")

    for i, val in enumerate(inputs):
        if not (0 <= val < FIELD_PRIME):
            raise ValueError(f"Input {i} out of field range: {val}")

    t = len(inputs) + 1
    constants, matrix = _get_constants(t)

    # state = [capacity, input_1, ..., input_n]
    state = [domain_sep % FIELD_PRIME] + list(inputs)

    half_f = ROUNDS_F // 2
    round_idx = 0

    for _ in range(half_f):
        state = _full_round(state, constants, matrix, round_idx)
        round_idx += 1

    for _ in range(ROUNDS_P[t]):
        state = _partial_round(state, constants, matrix, round_idx)
        round_idx += 1

    for _ in range(half_f):
        state = _full_round(state, constants, matrix, round_idx)
        round_idx += 1

    return state[1]


# =============================================================================
# Convenience Functions
# =============================================================================


def poseidon2(a: int, b: int, domain_sep: int = 0) -> int:
    """Hash two field elements."""
    return poseidon_hash([a, b], domain_sep)


def poseidon5(a: int, b: int, c: int, d: int, e: int, domain_sep: int = 0) -> int:
    """Hash five field elements."""
    return poseidon_hash([a, b, c, d, e], domain_sep)


def to_field(value: int) -> int:
    """Reduce a non-negative integer into the scalar field."""
    if value < 0:
        raise ValueError(f"Negative value cannot be mapped to the field: {value}")
    return value % FIELD_PRIME


def split_uint256(value: int) -> Tuple[int, int]:
    """
    Split a uint256 into (high, low) 128-bit limbs.

    Both limbs are below the field prime, so distinct uint256 values never
    share an encoding.
    """
    if not 0 <= value <= UINT256_MAX:
        raise ValueError(f"Value out of uint256 range: {value}")
    return value >> LIMB_BITS, value & LIMB_MASK


# =============================================================================
# Sealed-Bid Hash Functions
# =============================================================================


def hash_bid_commitment(bidder: int, auction: int, amount: int, price: int, salt: int) -> int:
    """
    Compute a sealed-bid commitment.

    C = Poseidon8(bidder, auction, amount_hi, amount_lo, price_hi, price_lo, salt_hi, salt_lo)

    Identifiers are 160-bit and enter as single field elements; the 256-bit
    amount, price and salt enter as 128-bit limb pairs.

    Raises:
        ValueError: If an identifier is not a field element or a value is not a uint256
    """
    return poseidon_hash(
        [bidder, auction, *split_uint256(amount), *split_uint256(price), *split_uint256(salt)],
        domain_sep=DOMAIN_BID_COMMITMENT,
    )


def hash_bid_nullifier(commitment: int, salt: int, timestamp: int) -> int:
    """
    Compute the nullifier for a sealed bid.

    nullifier = Poseidon5(commitment, salt_hi, salt_lo, timestamp_hi, timestamp_lo)
    """
    return poseidon5(
        commitment,
        *split_uint256(salt),
        *split_uint256(timestamp),
        domain_sep=DOMAIN_BID_NULLIFIER,
    )


def poseidon_merkle_root(leaves: Sequence[int]) -> int:
    """
    Compute a Poseidon Merkle root over field elements.

    Pairs are hashed left to right; an odd node at the end of a level is
    carried up unchanged. An empty list has root 0.
    """
    if not leaves:
        return 0

    level = [to_field(leaf) for leaf in leaves]
    while len(level) > 1:
        next_level = []
        for i in range(0, len(level), 2):
            if i + 1 < len(level):
                next_level.append(poseidon2(level[i], level[i + 1], DOMAIN_MERKLE_NODE))
            else:
                next_level.append(level[i])
        level = next_level

    return level[0]
