"""
Unit tests for the auction state machine.

Tests cover:
1. Auction creation and custody of the asset
2. Bid validation and refund of the outbid party
3. Settlement on the winner and no-bid paths
4. Authorization checks on every operation
5. Atomicity of rejected operations
"""

import pytest

from vendue.core.auth import sign_operation
from vendue.core.auction import (
    CREATE_AUCTION,
    END_AUCTION,
    PLACE_BID,
    AuctionStatus,
)
from vendue.core.errors import (
    AddressCollision,
    AuctionEnded,
    AuctionNotEnded,
    AuctionNotFound,
    BidTooLow,
    ErrorCode,
    InvalidParameter,
    MismatchedRefundTarget,
    TransferFailure,
    Unauthorized,
)
from vendue.crypto import keypair_from_seed


def snapshot(ledger):
    """Byte-level image of every account."""
    return {address: account.to_bytes() for address, account in ledger.accounts.items()}


# =============================================================================
# CreateAuction
# =============================================================================


class TestCreateAuction:
    """Tests for opening an auction."""

    def test_create_initial_state(self, ledger, program, seller, funded):
        """New auction is open, bid-less, and holds the asset in custody."""
        ledger.advance_time(50)
        record = seller.create_auction(3, funded, min_bid=10, duration=100)

        assert record.status == AuctionStatus.OPEN
        assert record.authority == seller.address
        assert record.asset_id == funded
        assert record.min_bid == 10
        assert record.start_time == 50
        assert record.end_time == 150
        assert record.highest_bid == 0
        assert record.highest_bidder is None
        assert not record.ended

        assert program.get_auction(3) == record
        assert program.get_escrow(3).balance == 0
        assert program.get_custody(3).units == 1
        assert ledger.get_asset_units(seller.address, funded) == 0

    def test_accounts_are_program_owned(self, ledger, program, open_auction):
        """Record, escrow and custody accounts belong to the program."""
        for address in (
            program.auction_address(open_auction),
            program.escrow_address(open_auction),
            program.custody_address(open_auction),
        ):
            assert ledger.get_account(address).owner == program.program_id

    def test_addresses_are_distinct_per_namespace_and_id(self, program):
        """Each auction gets its own three accounts."""
        addresses = {
            program.auction_address(1),
            program.escrow_address(1),
            program.custody_address(1),
            program.auction_address(2),
            program.escrow_address(2),
            program.custody_address(2),
        }
        assert len(addresses) == 6

    def test_duplicate_id_rejected(self, ledger, seller, open_auction):
        """Reusing an auction id is an address collision."""
        second_asset = ledger.mint_asset(seller.address)
        before = snapshot(ledger)

        with pytest.raises(AddressCollision):
            seller.create_auction(open_auction, second_asset, min_bid=10, duration=100)

        assert snapshot(ledger) == before
        assert ledger.get_asset_units(seller.address, second_asset) == 1

    @pytest.mark.parametrize("duration", [0, -5])
    def test_non_positive_duration_rejected(self, seller, funded, duration):
        """Duration must be positive."""
        with pytest.raises(InvalidParameter):
            seller.create_auction(1, funded, min_bid=10, duration=duration)

    def test_duration_above_limit_rejected(self, program, seller, funded):
        """Duration is capped by configuration."""
        with pytest.raises(InvalidParameter):
            seller.create_auction(1, funded, min_bid=10, duration=program.config.max_duration + 1)

    def test_zero_min_bid_rejected(self, seller, funded):
        """A minimum bid of zero would break the no-bid invariant."""
        with pytest.raises(InvalidParameter):
            seller.create_auction(1, funded, min_bid=0, duration=10)

    def test_auction_id_out_of_range(self, seller, funded):
        """Auction ids are u64."""
        with pytest.raises(InvalidParameter):
            seller.create_auction(2**64, funded, min_bid=1, duration=10)

    def test_seller_without_asset_rejected(self, ledger, program, alice, funded):
        """Creating an auction for an asset the caller lacks fails atomically."""
        before = snapshot(ledger)

        with pytest.raises(TransferFailure):
            alice.create_auction(1, funded, min_bid=10, duration=100)

        assert snapshot(ledger) == before
        assert program.get_auction(1) is None
        assert program.get_escrow(1) is None

    def test_unknown_asset_rejected(self, ledger, seller, funded):
        """Asset identity must match an asset the seller holds."""
        with pytest.raises(TransferFailure):
            seller.create_auction(1, bytes(32), min_bid=10, duration=100)

    def test_signature_for_other_parameters_rejected(self, program, seller, funded):
        """A capability signed for different terms cannot open this auction."""
        auth = sign_operation(seller.keypair, CREATE_AUCTION, 1, funded, 10, 100)

        with pytest.raises(Unauthorized):
            program.create_auction(auth, 1, funded, 1, 100)

    def test_missing_signer_rejected(self, program, funded):
        """An operation without authorization is refused."""
        with pytest.raises(Unauthorized):
            program.create_auction(None, 1, funded, 10, 100)


# =============================================================================
# PlaceBid
# =============================================================================


class TestPlaceBid:
    """Tests for bidding and refunds."""

    def test_first_bid(self, ledger, program, alice, open_auction):
        """First bid is escrowed and recorded."""
        record = alice.place_bid(open_auction, 10)

        assert record.highest_bid == 10
        assert record.highest_bidder == alice.address
        assert program.get_escrow(open_auction).balance == 10
        assert ledger.get_balance(alice.address) == 990

    def test_first_bid_ignores_refund_reference(self, program, alice, bob, open_auction):
        """With no bidder yet there is nothing to refund or check."""
        record = alice.place_bid(open_auction, 10, prev_bidder=bob.address)
        assert record.highest_bidder == alice.address

    def test_outbid_refunds_previous_bidder(self, ledger, program, alice, bob, open_auction):
        """Outbid party gets exactly their bid back."""
        alice.place_bid(open_auction, 100)
        record = bob.place_bid(open_auction, 150)

        assert record.highest_bid == 150
        assert record.highest_bidder == bob.address
        assert ledger.get_balance(alice.address) == 1000
        assert ledger.get_balance(bob.address) == 850
        assert program.get_escrow(open_auction).balance == 150

    def test_bidder_can_raise_own_bid(self, ledger, program, alice, open_auction):
        """Raising one's own bid refunds the old amount to the same bidder."""
        alice.place_bid(open_auction, 10)
        alice.place_bid(open_auction, 40)

        assert ledger.get_balance(alice.address) == 960
        assert program.get_escrow(open_auction).balance == 40

    def test_below_minimum(self, alice, open_auction):
        with pytest.raises(BidTooLow):
            alice.place_bid(open_auction, 9)

    def test_zero_bid(self, alice, open_auction):
        with pytest.raises(BidTooLow):
            alice.place_bid(open_auction, 0)

    def test_negative_bid(self, alice, open_auction):
        with pytest.raises(InvalidParameter):
            alice.place_bid(open_auction, -1)

    def test_tie_rejected(self, ledger, alice, bob, open_auction):
        """Bids must strictly exceed the current highest bid."""
        alice.place_bid(open_auction, 50)
        before = snapshot(ledger)

        with pytest.raises(BidTooLow):
            bob.place_bid(open_auction, 50)

        assert snapshot(ledger) == before

    def test_mismatched_refund_target(self, ledger, program, alice, bob, carol, open_auction):
        """Refund reference must name the stored highest bidder."""
        alice.place_bid(open_auction, 50)
        before = snapshot(ledger)

        with pytest.raises(MismatchedRefundTarget):
            bob.place_bid(open_auction, 60, prev_bidder=carol.address)

        assert snapshot(ledger) == before
        assert program.get_auction(open_auction).highest_bidder == alice.address

    def test_bid_after_deadline(self, ledger, alice, open_auction):
        """now == end_time already closes bidding."""
        ledger.advance_time(100)
        with pytest.raises(AuctionEnded):
            alice.place_bid(open_auction, 10)

    def test_bid_just_before_deadline(self, ledger, alice, open_auction):
        ledger.advance_time(99)
        assert alice.place_bid(open_auction, 10).highest_bid == 10

    def test_bid_on_missing_auction(self, alice, funded):
        with pytest.raises(AuctionNotFound):
            alice.place_bid(42, 10)

    def test_seller_cannot_bid(self, ledger, seller, open_auction):
        ledger.fund(seller.address, 100)
        with pytest.raises(InvalidParameter):
            seller.place_bid(open_auction, 20)

    def test_insufficient_funds_keeps_previous_bidder_escrowed(
        self, ledger, program, alice, open_auction
    ):
        """A failed payment rolls back the refund already issued in the unit."""
        poor = keypair_from_seed(b"poor")
        ledger.fund(poor.address, 15)
        alice.place_bid(open_auction, 10)
        before = snapshot(ledger)

        auth = sign_operation(poor, PLACE_BID, open_auction, 20, alice.address)
        with pytest.raises(TransferFailure):
            program.place_bid(auth, open_auction, 20, alice.address)

        assert snapshot(ledger) == before
        assert ledger.get_balance(alice.address) == 990
        assert program.get_escrow(open_auction).balance == 10

    def test_signature_replay_with_other_amount(self, program, alice, open_auction):
        """A capability signed for one amount cannot be used for another."""
        auth = sign_operation(alice.keypair, PLACE_BID, open_auction, 500, None)

        with pytest.raises(Unauthorized) as exc_info:
            program.place_bid(auth, open_auction, 10, None)
        assert exc_info.value.code == ErrorCode.UNAUTHORIZED

    def test_capability_for_other_auction(self, ledger, program, seller, alice, open_auction):
        second = ledger.mint_asset(seller.address)
        seller.create_auction(2, second, min_bid=10, duration=100)
        auth = sign_operation(alice.keypair, PLACE_BID, 2, 10, None)

        with pytest.raises(Unauthorized):
            program.place_bid(auth, open_auction, 10, None)


# =============================================================================
# EndAuction
# =============================================================================


class TestEndAuction:
    """Tests for settlement."""

    def test_winner_path(self, ledger, program, seller, alice, bob, funded, open_auction):
        """Asset goes to the winner, escrow to the seller."""
        alice.place_bid(open_auction, 100)
        bob.place_bid(open_auction, 150)
        ledger.advance_time(100)

        record = seller.end_auction(open_auction)

        assert record.ended
        assert record.status == AuctionStatus.SETTLED_TO_WINNER
        assert ledger.get_asset_units(bob.address, funded) == 1
        assert program.get_custody(open_auction).units == 0
        assert ledger.get_balance(seller.address) == 150
        assert program.get_escrow(open_auction).balance == 0
        assert ledger.get_balance(alice.address) == 1000

    def test_no_bid_path(self, ledger, program, seller, funded, open_auction):
        """Without bids the asset returns to the seller."""
        ledger.advance_time(100)

        record = seller.end_auction(open_auction)

        assert record.status == AuctionStatus.SETTLED_NO_BIDS
        assert ledger.get_asset_units(seller.address, funded) == 1
        assert program.get_escrow(open_auction).balance == 0
        assert ledger.get_balance(seller.address) == 0

    def test_anyone_may_settle(self, ledger, carol, alice, funded, open_auction):
        """Settlement is permissionless once the deadline has passed."""
        alice.place_bid(open_auction, 10)
        ledger.advance_time(100)

        record = carol.end_auction(open_auction)

        assert record.highest_bidder == alice.address
        assert ledger.get_asset_units(alice.address, funded) == 1

    def test_before_deadline(self, ledger, seller, open_auction):
        ledger.advance_time(99)
        before = snapshot(ledger)

        with pytest.raises(AuctionNotEnded):
            seller.end_auction(open_auction)

        assert snapshot(ledger) == before

    def test_twice(self, ledger, seller, open_auction):
        ledger.advance_time(100)
        seller.end_auction(open_auction)

        with pytest.raises(AuctionEnded):
            seller.end_auction(open_auction)

    def test_missing_auction(self, seller):
        with pytest.raises(AuctionNotFound):
            seller.end_auction(9)

    def test_unsolicited_escrow_deposit_goes_to_seller(
        self, ledger, program, seller, alice, open_auction
    ):
        """Escrow is always drained to zero at settlement."""
        alice.place_bid(open_auction, 10)
        ledger.fund(program.escrow_address(open_auction), 5)
        ledger.advance_time(100)

        seller.end_auction(open_auction)

        assert program.get_escrow(open_auction).balance == 0
        assert ledger.get_balance(seller.address) == 15

    def test_invalid_signature(self, ledger, program, seller, alice, open_auction):
        """A capability whose signature was tampered with is refused."""
        ledger.advance_time(100)
        auth = sign_operation(alice.keypair, END_AUCTION, open_auction)
        forged = type(auth)(
            public_key=seller.keypair.public_key,
            signature=auth.signature,
            message_hash=auth.message_hash,
        )

        with pytest.raises(Unauthorized):
            program.end_auction(forged, open_auction)
        assert not program.get_auction(open_auction).ended


# =============================================================================
# Escrow Access Control
# =============================================================================


class TestEscrowAccessControl:
    """Only the program can move escrowed funds or custody."""

    def test_bidder_cannot_withdraw_from_escrow(self, ledger, program, alice, open_auction):
        alice.place_bid(open_auction, 10)
        auth = sign_operation(alice.keypair, "withdraw", open_auction)

        with pytest.raises(TransferFailure):
            ledger.transfer(program.escrow_address(open_auction), alice.address, 10, auth)

        assert program.get_escrow(open_auction).balance == 10

    def test_seller_cannot_reclaim_asset(self, ledger, program, seller, funded, open_auction):
        auth = sign_operation(seller.keypair, "reclaim", open_auction)

        with pytest.raises(TransferFailure):
            ledger.transfer(
                program.custody_address(open_auction), seller.address, 1, auth, asset_id=funded
            )

    def test_other_program_cannot_spend_escrow(self, ledger, program, alice, open_auction):
        """A different program's proof does not match the escrow owner."""
        alice.place_bid(open_auction, 10)
        rogue = ledger.register_program("rogue")
        _, proof = rogue.derive(program.config.escrow_namespace, open_auction.to_bytes(8, "little"))

        with pytest.raises(TransferFailure):
            ledger.transfer(program.escrow_address(open_auction), alice.address, 10, proof)
