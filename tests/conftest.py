"""
Shared fixtures: an in-memory ledger, the auction program, and
deterministic participants.
"""

import pytest

from vendue.core.auction import AuctionClient, AuctionProgram
from vendue.core.state import Ledger
from vendue.crypto import keypair_from_seed


@pytest.fixture
def ledger():
    """Create an in-memory ledger."""
    return Ledger()


@pytest.fixture
def program(ledger):
    """Auction program registered on the ledger."""
    return AuctionProgram(ledger)


@pytest.fixture
def seller(program):
    return AuctionClient(program, keypair_from_seed(b"seller"))


@pytest.fixture
def alice(program):
    return AuctionClient(program, keypair_from_seed(b"alice"))


@pytest.fixture
def bob(program):
    return AuctionClient(program, keypair_from_seed(b"bob"))


@pytest.fixture
def carol(program):
    return AuctionClient(program, keypair_from_seed(b"carol"))


@pytest.fixture
def funded(ledger, seller, alice, bob, carol):
    """Bidders funded with 1000 each; the seller holds one asset."""
    for bidder in (alice, bob, carol):
        ledger.fund(bidder.address, 1000)
    asset_id = ledger.mint_asset(seller.address)
    return asset_id


@pytest.fixture
def open_auction(seller, funded):
    """Auction 1: min_bid=10, duration=100, created at t=0."""
    seller.create_auction(1, funded, min_bid=10, duration=100)
    return 1
