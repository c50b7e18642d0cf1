"""
Vendue Auction Module.

This module provides the English auction state machine:
- Auction, escrow and custody records
- Create / bid / settle lifecycle operations
- A signing client for submitting operations
"""

from vendue.core.auction.record import (
    AuctionRecord,
    AuctionStatus,
    CustodyAccount,
    EscrowAccount,
)

from vendue.core.auction.lifecycle import (
    AuctionProgram,
    CREATE_AUCTION,
    PLACE_BID,
    END_AUCTION,
)

from vendue.core.auction.client import AuctionClient

__all__ = [
    # Records
    "AuctionRecord",
    "AuctionStatus",
    "CustodyAccount",
    "EscrowAccount",
    # Lifecycle
    "AuctionProgram",
    "CREATE_AUCTION",
    "PLACE_BID",
    "END_AUCTION",
    # Client
    "AuctionClient",
]
