"""
Error taxonomy for the auction program and its host ledger.

Every rejected operation raises an AuctionError subclass. Nothing in the
core catches or retries these: the enclosing atomic unit rolls back and
the error reaches the caller unchanged.
"""

from enum import IntEnum


class ErrorCategory(IntEnum):
    VALIDATION = 0x01
    AUTHORIZATION = 0x02
    RESOURCE = 0x03
    STATE = 0x04


class ErrorCode(IntEnum):
    # Validation
    INVALID_PARAMETER = 0x0100
    BID_TOO_LOW = 0x0101

    # Authorization
    UNAUTHORIZED = 0x0200
    MISMATCHED_REFUND_TARGET = 0x0201

    # Resource
    TRANSFER_FAILURE = 0x0300

    # State
    AUCTION_NOT_FOUND = 0x0400
    ADDRESS_COLLISION = 0x0401
    AUCTION_ENDED = 0x0402
    AUCTION_NOT_ENDED = 0x0403

    @property
    def category(self) -> ErrorCategory:
        return ErrorCategory(self.value >> 8)


class AuctionError(Exception):
    """Base class for every error the auction program surfaces."""

    code = ErrorCode.INVALID_PARAMETER

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.name}({self.code:#06x}): {self.message}"


class InvalidParameter(AuctionError):
    """An argument is out of range (min_bid, duration, auction_id, ...)."""
    code = ErrorCode.INVALID_PARAMETER


class BidTooLow(AuctionError):
    """Bid below min_bid or not strictly greater than highest_bid."""
    code = ErrorCode.BID_TOO_LOW


class Unauthorized(AuctionError):
    """The presented authorization capability is missing or invalid."""
    code = ErrorCode.UNAUTHORIZED


class MismatchedRefundTarget(AuctionError):
    """Supplied previous-bidder reference differs from the stored bidder."""
    code = ErrorCode.MISMATCHED_REFUND_TARGET


class TransferFailure(AuctionError):
    """The ledger refused a value or asset transfer."""
    code = ErrorCode.TRANSFER_FAILURE


class AuctionNotFound(AuctionError):
    code = ErrorCode.AUCTION_NOT_FOUND


class AddressCollision(AuctionError):
    """Account creation targeted an address already in use."""
    code = ErrorCode.ADDRESS_COLLISION


class AuctionEnded(AuctionError):
    """Operation attempted against a settled or expired auction."""
    code = ErrorCode.AUCTION_ENDED


class AuctionNotEnded(AuctionError):
    """Settlement attempted before the deadline."""
    code = ErrorCode.AUCTION_NOT_ENDED


__all__ = [
    "ErrorCategory",
    "ErrorCode",
    "AuctionError",
    "InvalidParameter",
    "BidTooLow",
    "Unauthorized",
    "MismatchedRefundTarget",
    "TransferFailure",
    "AuctionNotFound",
    "AddressCollision",
    "AuctionEnded",
    "AuctionNotEnded",
]
