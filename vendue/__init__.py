"""
Vendue - English auction escrow engine.

A single-item English auction for a non-fungible asset, executed against a
deterministic ledger:
- Signer-authorized, atomic lifecycle operations
- Deterministically addressed escrow and custody accounts
- Automatic refund of the outbid party
- Settlement to the winner (or back to the seller)
"""

__version__ = "0.1.0"
