"""
Error taxonomy for the sealed-bid engine.

Every failure a caller can act on is a subclass of SealBidError. Storage
I/O failures are not wrapped: sqlite3 errors propagate unchanged.
"""


class SealBidError(Exception):
    """Base class for engine errors."""


class InvalidInput(SealBidError, ValueError):
    """Malformed identifier or out-of-range numeric field."""


class DuplicateNullifier(SealBidError):
    """Nullifier already registered (double-bid or double-reveal attempt)."""

    def __init__(self, nullifier: str, auction: str = ""):
        self.nullifier = nullifier
        self.auction = auction
        super().__init__(f"Nullifier already registered: {nullifier}")


class DuplicateBid(SealBidError):
    """A bid is already stored under this nullifier."""

    def __init__(self, nullifier: str):
        self.nullifier = nullifier
        super().__init__(f"Bid already stored for nullifier: {nullifier}")


class UnknownBid(SealBidError, LookupError):
    """No stored bid for the given nullifier."""

    def __init__(self, nullifier: str):
        self.nullifier = nullifier
        super().__init__(f"No bid stored for nullifier: {nullifier}")


class CommitmentMismatch(SealBidError):
    """Revealed fields do not reproduce the stored commitment."""


class InvalidTransition(SealBidError):
    """Auction or claim status transition not allowed."""


class NotEnded(InvalidTransition):
    """Settlement attempted while the auction is not ENDED."""


__all__ = [
    "SealBidError",
    "InvalidInput",
    "DuplicateNullifier",
    "DuplicateBid",
    "UnknownBid",
    "CommitmentMismatch",
    "InvalidTransition",
    "NotEnded",
]
