"""
AuctionProgram - the English auction state machine.

States:
    (none) --create_auction--> OPEN --end_auction--> SETTLED_TO_WINNER
                                 |                   or SETTLED_NO_BIDS
                                 +--place_bid--> OPEN

Every operation:
1. Takes an explicit SignerAuthorization for the exact operation
2. Reads the record and the clock once
3. Validates all preconditions
4. Mutates records and issues transfers

and runs steps 2-4 inside one ledger atomic unit, so a rejected operation
(including a transfer refused halfway through) leaves no trace.

Funds and custody:
- Bids are held by the escrow account; the outbid party is refunded from
  escrow in the same unit that takes the new bid
- The asset sits in the custody account from creation until settlement
- Only this program, through its AuthorityProof, can debit either account
"""

from contextlib import contextmanager
from typing import Iterator, Optional, Tuple

from vendue.core.auth import SignerAuthorization, encode_seed, operation_hash
from vendue.core.auction.record import (
    AuctionRecord,
    CustodyAccount,
    EscrowAccount,
)
from vendue.core.config import LedgerConfig
from vendue.core.errors import (
    AuctionEnded,
    AuctionError,
    AuctionNotEnded,
    AuctionNotFound,
    BidTooLow,
    InvalidParameter,
    MismatchedRefundTarget,
    Unauthorized,
)
from vendue.core.state.address import AuthorityProof, ProgramHandle
from vendue.core.state.ledger import Ledger
from vendue.crypto import bytes_to_hex
from vendue.utils.logger import get_logger
from vendue.utils.validation import (
    MAX_AMOUNT,
    validate_address,
    validate_amount,
    validate_auction_id,
    validate_duration,
    validate_hash,
    validate_integer,
)

logger = get_logger("auction")

CREATE_AUCTION = "create_auction"
PLACE_BID = "place_bid"
END_AUCTION = "end_auction"


def _check(result: Tuple[bool, str]) -> None:
    valid, error = result
    if not valid:
        raise InvalidParameter(error)


def _short(address: Optional[bytes]) -> str:
    return bytes_to_hex(address)[:10] + "..." if address else "none"


class AuctionProgram:
    """
    Single-item English auctions over a Ledger.

    Attributes:
        ledger: Host ledger holding every account
        config: Namespaces and limits
        handle: This program's registered identity and capability
    """

    def __init__(
        self,
        ledger: Ledger,
        config: Optional[LedgerConfig] = None,
        handle: Optional[ProgramHandle] = None,
    ):
        self.ledger = ledger
        self.config = config or LedgerConfig()
        self.handle = handle or ledger.register_program(self.config.program_name)

    @property
    def program_id(self) -> bytes:
        return self.handle.program_id

    # =========================================================================
    # Addresses
    # =========================================================================

    def _derive(self, namespace: str, auction_id: int) -> Tuple[bytes, AuthorityProof]:
        return self.handle.derive(namespace, encode_seed(auction_id))

    def auction_address(self, auction_id: int) -> bytes:
        return self._derive(self.config.auction_namespace, auction_id)[0]

    def escrow_address(self, auction_id: int) -> bytes:
        return self._derive(self.config.escrow_namespace, auction_id)[0]

    def custody_address(self, auction_id: int) -> bytes:
        return self._derive(self.config.custody_namespace, auction_id)[0]

    # =========================================================================
    # Reads (plain storage reads, not lifecycle operations)
    # =========================================================================

    def get_auction(self, auction_id: int) -> Optional[AuctionRecord]:
        """Read an auction record, None if it does not exist."""
        account = self.ledger.get_account(self.auction_address(auction_id))
        if account is None or account.owner != self.program_id:
            return None
        return AuctionRecord.from_bytes(account.data)

    def get_escrow(self, auction_id: int) -> Optional[EscrowAccount]:
        account = self.ledger.get_account(self.escrow_address(auction_id))
        if account is None or account.owner != self.program_id:
            return None
        return EscrowAccount.from_account(account)

    def get_custody(self, auction_id: int) -> Optional[CustodyAccount]:
        account = self.ledger.get_account(self.custody_address(auction_id))
        if account is None or account.owner != self.program_id:
            return None
        record = self.get_auction(auction_id)
        asset_id = record.asset_id if record else bytes(32)
        return CustodyAccount.from_account(account, asset_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    @contextmanager
    def _operation(
        self,
        name: str,
        auction_id: int,
        signer: Optional[SignerAuthorization],
        detail: str = "",
    ) -> Iterator[None]:
        """Run one lifecycle operation as an atomic unit, logging rejections."""
        signer_address = None
        if isinstance(signer, SignerAuthorization) and signer.is_well_formed():
            signer_address = signer.address
        journal = f"auction_id={auction_id} {detail}".strip()
        try:
            with self.ledger.atomic(name, signer=signer_address, detail=journal):
                yield
        except AuctionError as exc:
            logger.warning(f"{name}(auction_id={auction_id}) rejected: {exc}")
            raise

    def _authorize(self, signer: Optional[SignerAuthorization], expected_hash: bytes) -> bytes:
        """Validate the presented capability; return the signer address."""
        if not isinstance(signer, SignerAuthorization):
            raise Unauthorized("missing signer authorization")
        if signer.message_hash != expected_hash:
            raise Unauthorized("authorization was issued for a different operation")
        if not signer.verify(expected_hash):
            raise Unauthorized("invalid signature")
        return signer.address

    def _load(self, auction_id: int) -> AuctionRecord:
        record = self.get_auction(auction_id)
        if record is None:
            raise AuctionNotFound(f"No auction with id {auction_id}")
        return record

    def _store(self, record: AuctionRecord) -> None:
        address, proof = self._derive(self.config.auction_namespace, record.auction_id)
        self.ledger.write_data(address, record.to_bytes(), proof)

    # =========================================================================
    # CreateAuction
    # =========================================================================

    def create_auction(
        self,
        signer: SignerAuthorization,
        auction_id: int,
        asset_id: bytes,
        min_bid: int,
        duration: int,
    ) -> AuctionRecord:
        """
        Open a new auction and move the asset into custody.

        Args:
            signer: Seller's authorization for this exact call
            auction_id: New auction id (u64); must not be in use
            asset_id: 32-byte id of an asset the seller holds
            min_bid: Minimum acceptable bid (> 0)
            duration: Ticks until end_time (0 < duration <= max_duration)

        Returns:
            The new, open AuctionRecord

        Raises:
            InvalidParameter, Unauthorized, AddressCollision, TransferFailure
        """
        _check(validate_auction_id(auction_id))
        _check(validate_hash(asset_id, "asset_id"))
        _check(validate_amount(min_bid, "min_bid"))
        _check(validate_duration(duration, self.config.max_duration))

        detail = f"asset={asset_id.hex()[:16]} min_bid={min_bid} duration={duration}"
        with self._operation(CREATE_AUCTION, auction_id, signer, detail):
            approved = operation_hash(CREATE_AUCTION, auction_id, asset_id, min_bid, duration)
            seller = self._authorize(signer, approved)
            now = self.ledger.current_time()

            record_address = self.auction_address(auction_id)
            escrow_address = self.escrow_address(auction_id)
            custody_address = self.custody_address(auction_id)

            record = AuctionRecord(
                auction_id=auction_id,
                authority=seller,
                asset_id=asset_id,
                min_bid=min_bid,
                start_time=now,
                end_time=now + duration,
            )
            self.ledger.create_account(record_address, record.to_bytes(), payer=seller, owner=self.program_id)
            self.ledger.create_account(
                escrow_address,
                EscrowAccount(auction_id=auction_id, auction=record_address).to_bytes(),
                payer=seller,
                owner=self.program_id,
            )
            self.ledger.create_account(
                custody_address,
                CustodyAccount(auction_id=auction_id, auction=record_address).to_bytes(),
                payer=seller,
                owner=self.program_id,
            )

            self.ledger.transfer(
                seller, custody_address, 1, signer,
                asset_id=asset_id, expected_hash=approved, program=self.handle,
            )

        logger.info(
            f"Auction {auction_id} created by {_short(seller)}: "
            f"min_bid={min_bid}, end_time={record.end_time}"
        )
        return record

    # =========================================================================
    # PlaceBid
    # =========================================================================

    def place_bid(
        self,
        signer: SignerAuthorization,
        auction_id: int,
        amount: int,
        prev_bidder: Optional[bytes] = None,
    ) -> AuctionRecord:
        """
        Outbid the current highest bidder.

        The previous bidder's escrowed funds are refunded and the new bid is
        escrowed in the same atomic unit.

        Args:
            signer: Bidder's authorization for this exact call
            auction_id: Target auction
            amount: Bid (>= min_bid and > highest_bid)
            prev_bidder: Address the caller expects to be refunded; must
                equal the stored highest bidder when one exists

        Returns:
            The updated AuctionRecord

        Raises:
            AuctionNotFound, Unauthorized, AuctionEnded, BidTooLow,
            MismatchedRefundTarget, InvalidParameter, TransferFailure
        """
        _check(validate_auction_id(auction_id))
        _check(validate_integer(amount, "amount", 0, MAX_AMOUNT))
        if prev_bidder is not None:
            _check(validate_address(prev_bidder, "prev_bidder"))

        with self._operation(PLACE_BID, auction_id, signer, f"amount={amount}"):
            record = self._load(auction_id)
            approved = operation_hash(PLACE_BID, auction_id, amount, prev_bidder)
            bidder = self._authorize(signer, approved)
            now = self.ledger.current_time()

            if not record.accepts_bids_at(now):
                raise AuctionEnded(
                    f"Auction {auction_id} is closed (ended={record.ended}, "
                    f"now={now}, end_time={record.end_time})"
                )
            if bidder == record.authority:
                raise InvalidParameter("Seller cannot bid on their own auction")
            if amount < record.min_bid:
                raise BidTooLow(f"Bid {amount} below minimum {record.min_bid}")
            if amount <= record.highest_bid:
                raise BidTooLow(f"Bid {amount} does not exceed highest bid {record.highest_bid}")

            previous = record.highest_bidder
            if previous is not None and prev_bidder != previous:
                raise MismatchedRefundTarget(
                    f"Refund target {_short(prev_bidder)} does not match highest bidder {_short(previous)}"
                )

            escrow_address, escrow_proof = self._derive(self.config.escrow_namespace, auction_id)
            if previous is not None:
                self.ledger.transfer(escrow_address, previous, record.highest_bid, escrow_proof)
            self.ledger.transfer(
                bidder, escrow_address, amount, signer,
                expected_hash=approved, program=self.handle,
            )

            refunded = record.highest_bid
            record.highest_bid = amount
            record.highest_bidder = bidder
            self._store(record)

        if previous is not None:
            logger.info(
                f"Auction {auction_id}: {_short(bidder)} bid {amount}, "
                f"refunded {refunded} to {_short(previous)}"
            )
        else:
            logger.info(f"Auction {auction_id}: first bid {amount} by {_short(bidder)}")
        return record

    # =========================================================================
    # EndAuction
    # =========================================================================

    def end_auction(self, signer: SignerAuthorization, auction_id: int) -> AuctionRecord:
        """
        Settle an auction whose deadline has passed.

        Winner path: asset custody -> winner, escrow -> seller.
        No-bid path: asset custody -> seller.
        Any authorized signer may settle.

        Returns:
            The terminal AuctionRecord

        Raises:
            AuctionNotFound, Unauthorized, AuctionEnded, AuctionNotEnded,
            TransferFailure
        """
        _check(validate_auction_id(auction_id))

        with self._operation(END_AUCTION, auction_id, signer):
            record = self._load(auction_id)
            self._authorize(signer, operation_hash(END_AUCTION, auction_id))
            now = self.ledger.current_time()

            if record.ended:
                raise AuctionEnded(f"Auction {auction_id} already settled")
            if now < record.end_time:
                raise AuctionNotEnded(
                    f"Auction {auction_id} runs until {record.end_time} (now={now})"
                )

            record.ended = True
            self._store(record)

            custody_address, custody_proof = self._derive(self.config.custody_namespace, auction_id)
            escrow_address, escrow_proof = self._derive(self.config.escrow_namespace, auction_id)

            recipient = record.highest_bidder or record.authority
            self.ledger.transfer(custody_address, recipient, 1, custody_proof, asset_id=record.asset_id)

            # Only non-zero on the winner path, unless someone deposited
            # into escrow directly; either way it belongs to the seller.
            payout = self.ledger.get_balance(escrow_address)
            if payout:
                self.ledger.transfer(escrow_address, record.authority, payout, escrow_proof)

        if record.highest_bidder is not None:
            logger.info(
                f"Auction {auction_id} settled: asset to {_short(record.highest_bidder)}, "
                f"{payout} to seller {_short(record.authority)}"
            )
        else:
            logger.info(f"Auction {auction_id} settled with no bids: asset returned to seller")
        return record
