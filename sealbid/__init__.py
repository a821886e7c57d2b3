"""
Sealed-Bid Commitment & Settlement Engine (sealbid)

Core of a continuous-clearing auction:
- Poseidon commitments and nullifiers for sealed bids
- Persistent nullifier registry and bid store
- HHI concentration scoring for clearing-rate adjustment
- Deterministic winner ranking and settlement
"""

__version__ = "0.1.0"
