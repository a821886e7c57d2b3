"""
Sealbid Auction Module.

This module provides the sealed-bid auction core:
- Bid sealing (commitments, nullifiers, verification)
- Concentration scoring (HHI, rate improvement)
- Settlement (winner ranking)
"""

from sealbid.core.auction.sealing import (
    SealedBid,
    seal,
    verify,
    compute_commitment,
    compute_nullifier,
    commitment_root,
)

from sealbid.core.auction.scoring import (
    MarketPattern,
    ConcentrationReport,
    compute_hhi,
    score_improvement,
    market_participation_score,
    apply_improvement,
    analyze_bids,
    MAX_HHI,
    MIN_IMPROVEMENT,
    MAX_IMPROVEMENT,
)

from sealbid.core.auction.settlement import (
    AuctionStatus,
    AuctionSnapshot,
    ClaimStatus,
    ClaimStatusSource,
    Winner,
    SettlementResult,
    SettlementEngine,
    check_transition,
    rank_bids,
)

__all__ = [
    # Sealing
    "SealedBid",
    "seal",
    "verify",
    "compute_commitment",
    "compute_nullifier",
    "commitment_root",
    # Scoring
    "MarketPattern",
    "ConcentrationReport",
    "compute_hhi",
    "score_improvement",
    "market_participation_score",
    "apply_improvement",
    "analyze_bids",
    "MAX_HHI",
    "MIN_IMPROVEMENT",
    "MAX_IMPROVEMENT",
    # Settlement
    "AuctionStatus",
    "AuctionSnapshot",
    "ClaimStatus",
    "ClaimStatusSource",
    "Winner",
    "SettlementResult",
    "SettlementEngine",
    "check_transition",
    "rank_bids",
]
