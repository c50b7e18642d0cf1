"""
AuctionClient - signs and submits lifecycle operations for one keypair.

Thin convenience layer: builds the SignerAuthorization each operation
expects and forwards the call to the program.
"""

from typing import Optional

from vendue.core.auth import sign_operation
from vendue.core.auction.lifecycle import (
    CREATE_AUCTION,
    END_AUCTION,
    PLACE_BID,
    AuctionProgram,
)
from vendue.core.auction.record import AuctionRecord
from vendue.crypto import KeyPair


class AuctionClient:
    """Submits operations to an AuctionProgram on behalf of one keypair."""

    def __init__(self, program: AuctionProgram, keypair: KeyPair):
        self.program = program
        self.keypair = keypair

    @property
    def address(self) -> bytes:
        return self.keypair.address

    def create_auction(self, auction_id: int, asset_id: bytes, min_bid: int, duration: int) -> AuctionRecord:
        auth = sign_operation(self.keypair, CREATE_AUCTION, auction_id, asset_id, min_bid, duration)
        return self.program.create_auction(auth, auction_id, asset_id, min_bid, duration)

    def place_bid(self, auction_id: int, amount: int, prev_bidder: Optional[bytes] = None) -> AuctionRecord:
        """
        Bid on an auction.

        When prev_bidder is omitted the current highest bidder is read from
        the record, which is what an honest client does.
        """
        if prev_bidder is None:
            record = self.program.get_auction(auction_id)
            if record is not None:
                prev_bidder = record.highest_bidder
        auth = sign_operation(self.keypair, PLACE_BID, auction_id, amount, prev_bidder)
        return self.program.place_bid(auth, auction_id, amount, prev_bidder)

    def end_auction(self, auction_id: int) -> AuctionRecord:
        auth = sign_operation(self.keypair, END_AUCTION, auction_id)
        return self.program.end_auction(auth, auction_id)
