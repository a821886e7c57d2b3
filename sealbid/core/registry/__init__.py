"""
Nullifier Registry Module.

Tracks used nullifiers across all auctions.
"""

from sealbid.core.registry.nullifier_registry import (
    NullifierRegistry,
    NullifierEntry,
)

__all__ = [
    "NullifierRegistry",
    "NullifierEntry",
]
