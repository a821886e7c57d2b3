"""
Input Validation - Sanitization of values supplied by external callers.

Provides validation for bid inputs to prevent:
- Malformed identifiers
- Integer overflows (values beyond uint256)
- Invalid hash encodings
"""

import re
from typing import Any, Optional, Tuple, Union

from sealbid.crypto import ADDRESS_SIZE, UINT256_MAX, bytes_to_hex, is_valid_address

# =============================================================================
# Constants
# =============================================================================

MIN_UINT = 0
MAX_UINT = UINT256_MAX

_HASH_HEX = re.compile(r"[0-9a-fA-F]{1,64}")


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length

    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_UINT,
    max_val: int = MAX_UINT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.

    Booleans are rejected even though they subclass int.

    Returns:
        (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_uint256(value: Any, name: str) -> Tuple[bool, str]:
    """Validate an unsigned 256-bit integer."""
    return validate_integer(value, name, MIN_UINT, MAX_UINT)


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 20-byte identifier given as bytes or 0x-hex string."""
    if isinstance(address, (bytes, bytearray)):
        return validate_bytes(address, name, expected_length=ADDRESS_SIZE)
    if not isinstance(address, str):
        return False, f"{name} must be str or bytes, got {type(address).__name__}"
    if not is_valid_address(address):
        return False, f"{name} must be a 0x-prefixed {ADDRESS_SIZE}-byte hex string"
    return True, ""


# =============================================================================
# Normalization
# =============================================================================


def normalize_address(address: Union[str, bytes]) -> str:
    """
    Canonical form of an identifier: lowercase 0x-hex.

    Callers must have validated the value first.
    """
    if isinstance(address, (bytes, bytearray)):
        return bytes_to_hex(bytes(address))
    return "0x" + address[2:].lower()


def normalize_hash(value: Union[int, str]) -> str:
    """
    Canonical form of a 256-bit hash value (commitment, nullifier, salt).

    Accepts an int or a hex string in any case; returns 0x + 64 lowercase
    hex digits.

    Raises:
        ValueError: If the value is not a valid 256-bit quantity
    """
    if isinstance(value, bool):
        raise ValueError("hash value must be int or hex str, got bool")
    if isinstance(value, int):
        valid, err = validate_uint256(value, "hash value")
        if not valid:
            raise ValueError(err)
        return "0x" + format(value, "064x")
    if isinstance(value, str):
        hex_str = value[2:] if value[:2] in ("0x", "0X") else value
        if not _HASH_HEX.fullmatch(hex_str):
            raise ValueError(f"hash value must be 1-64 hex digits: {value!r}")
        return "0x" + hex_str.lower().rjust(64, "0")
    raise ValueError(f"hash value must be int or hex str, got {type(value).__name__}")


def parse_uint(value: Union[int, str], name: str) -> int:
    """
    Parse a decimal or 0x-hex string into a validated uint256.

    Raises:
        ValueError: If the value is malformed or out of range
    """
    if isinstance(value, str):
        text = value.strip()
        try:
            parsed = int(text, 16) if text[:2] in ("0x", "0X") else int(text, 10)
        except ValueError:
            raise ValueError(f"{name} is not a valid integer: {value!r}")
    else:
        parsed = value
    valid, err = validate_uint256(parsed, name)
    if not valid:
        raise ValueError(err)
    return parsed


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_bytes",
    "validate_integer",
    "validate_uint256",
    "validate_address",
    "normalize_address",
    "normalize_hash",
    "parse_uint",
]
