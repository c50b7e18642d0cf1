"""
Auction records - the durable state of one auction.

Three program-owned accounts exist per auction, all derived from the
auction id:

- record  ("auction")               AuctionRecord: terms and bid state
- escrow  ("escrow")                holds the highest bid's funds
- custody ("auction_token_account") holds the asset while the auction runs

Each record starts with an 8-byte discriminator so a record of one kind can
never be decoded as another.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from vendue.core.state.account import Account
from vendue.crypto import bytes_to_hex, sha256


def _discriminator(kind: str) -> bytes:
    return sha256(f"vendue:account:{kind}".encode())[:8]


AUCTION_DISCRIMINATOR = _discriminator("AuctionRecord")
ESCROW_DISCRIMINATOR = _discriminator("EscrowAccount")
CUSTODY_DISCRIMINATOR = _discriminator("CustodyAccount")

AUCTION_RECORD_SIZE = 122
HOLDING_RECORD_SIZE = 36


class AuctionStatus(IntEnum):
    """Lifecycle state of an auction."""
    OPEN = 0
    SETTLED_TO_WINNER = 1
    SETTLED_NO_BIDS = 2


# =============================================================================
# AuctionRecord
# =============================================================================


@dataclass
class AuctionRecord:
    """
    Durable state of one auction.

    Attributes:
        auction_id: Caller-chosen id, also the derivation seed
        authority: 20-byte seller address
        asset_id: 32-byte id of the asset on sale
        min_bid: Minimum acceptable bid
        start_time: Clock value at creation
        end_time: Deadline; bids are accepted while now < end_time
        highest_bid: Current winning bid (0 = none)
        highest_bidder: Address of the current winner, None if no bids
        ended: True once settled; terminal
    """
    auction_id: int
    authority: bytes
    asset_id: bytes
    min_bid: int
    start_time: int
    end_time: int
    highest_bid: int = 0
    highest_bidder: Optional[bytes] = None
    ended: bool = False

    def __post_init__(self):
        """Validate field constraints and the bid invariant."""
        if len(self.authority) != 20:
            raise ValueError(f"authority must be 20 bytes, got {len(self.authority)}")
        if len(self.asset_id) != 32:
            raise ValueError(f"asset_id must be 32 bytes, got {len(self.asset_id)}")
        if self.highest_bidder is not None and len(self.highest_bidder) != 20:
            raise ValueError(f"highest_bidder must be 20 bytes, got {len(self.highest_bidder)}")
        if (self.highest_bid == 0) != (self.highest_bidder is None):
            raise ValueError("highest_bid and highest_bidder must be set together")
        if self.highest_bid < 0 or self.min_bid < 0:
            raise ValueError("bid amounts cannot be negative")
        if self.end_time < self.start_time:
            raise ValueError("end_time precedes start_time")

    @property
    def status(self) -> AuctionStatus:
        if not self.ended:
            return AuctionStatus.OPEN
        if self.highest_bidder is not None:
            return AuctionStatus.SETTLED_TO_WINNER
        return AuctionStatus.SETTLED_NO_BIDS

    def accepts_bids_at(self, now: int) -> bool:
        return not self.ended and now < self.end_time

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_bytes(self) -> bytes:
        """
        Serialize record to bytes.

        Format: disc(8) || auction_id(8) || authority(20) || asset_id(32) ||
                min_bid(8) || start_time(8) || end_time(8) || highest_bid(8) ||
                has_bidder(1) || bidder(20) || ended(1)
        Total: 122 bytes
        """
        return (
            AUCTION_DISCRIMINATOR +
            self.auction_id.to_bytes(8, byteorder="big") +
            self.authority +
            self.asset_id +
            self.min_bid.to_bytes(8, byteorder="big") +
            self.start_time.to_bytes(8, byteorder="big") +
            self.end_time.to_bytes(8, byteorder="big") +
            self.highest_bid.to_bytes(8, byteorder="big") +
            (b"\x01" + self.highest_bidder if self.highest_bidder else b"\x00" + bytes(20)) +
            (b"\x01" if self.ended else b"\x00")
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "AuctionRecord":
        """Deserialize record from bytes."""
        if len(data) != AUCTION_RECORD_SIZE:
            raise ValueError(f"AuctionRecord data must be {AUCTION_RECORD_SIZE} bytes, got {len(data)}")
        if data[:8] != AUCTION_DISCRIMINATOR:
            raise ValueError("Not an AuctionRecord")

        offset = 8
        auction_id = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        authority = data[offset:offset + 20]
        offset += 20
        asset_id = data[offset:offset + 32]
        offset += 32
        min_bid = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        start_time = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        end_time = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        highest_bid = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        has_bidder = data[offset]
        offset += 1
        bidder = data[offset:offset + 20]
        offset += 20
        ended = data[offset] == 1

        return cls(
            auction_id=auction_id,
            authority=authority,
            asset_id=asset_id,
            min_bid=min_bid,
            start_time=start_time,
            end_time=end_time,
            highest_bid=highest_bid,
            highest_bidder=bidder if has_bidder else None,
            ended=ended,
        )

    def __repr__(self) -> str:
        bidder = bytes_to_hex(self.highest_bidder)[:10] + "..." if self.highest_bidder else None
        return (
            f"AuctionRecord(id={self.auction_id}, status={self.status.name}, "
            f"min_bid={self.min_bid}, highest_bid={self.highest_bid}, "
            f"bidder={bidder}, end_time={self.end_time})"
        )


# =============================================================================
# Escrow and Custody
# =============================================================================


@dataclass
class _Holding:
    """Header shared by the escrow and custody records."""
    auction_id: int
    auction: bytes          # Address of the AuctionRecord account
    address: bytes = b""    # Address of this account (not serialized)

    _discriminator = b""

    def to_bytes(self) -> bytes:
        """Format: disc(8) || auction_id(8) || auction(20)"""
        return (
            self._discriminator +
            self.auction_id.to_bytes(8, byteorder="big") +
            self.auction
        )

    @classmethod
    def _parse(cls, data: bytes):
        if len(data) != HOLDING_RECORD_SIZE:
            raise ValueError(f"{cls.__name__} data must be {HOLDING_RECORD_SIZE} bytes, got {len(data)}")
        if data[:8] != cls._discriminator:
            raise ValueError(f"Not an {cls.__name__}")
        return int.from_bytes(data[8:16], byteorder="big"), data[16:36]


@dataclass
class EscrowAccount(_Holding):
    """
    Custodian of the highest bid's funds.

    While the auction is open, balance == highest_bid. Only the auction
    program can debit it.
    """
    balance: int = 0

    _discriminator = ESCROW_DISCRIMINATOR

    @classmethod
    def from_account(cls, account: Account) -> "EscrowAccount":
        auction_id, auction = cls._parse(account.data)
        return cls(auction_id=auction_id, auction=auction, address=account.address, balance=account.balance)


@dataclass
class CustodyAccount(_Holding):
    """Holder of the asset between creation and settlement."""
    units: int = 0

    _discriminator = CUSTODY_DISCRIMINATOR

    @classmethod
    def from_account(cls, account: Account, asset_id: bytes) -> "CustodyAccount":
        auction_id, auction = cls._parse(account.data)
        return cls(
            auction_id=auction_id,
            auction=auction,
            address=account.address,
            units=account.units_of(asset_id),
        )
