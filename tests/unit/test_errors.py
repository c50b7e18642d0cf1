"""
Unit tests for the error taxonomy.
"""

import pytest

from vendue.core.errors import (
    AddressCollision,
    AuctionEnded,
    AuctionError,
    AuctionNotEnded,
    AuctionNotFound,
    BidTooLow,
    ErrorCategory,
    ErrorCode,
    InvalidParameter,
    MismatchedRefundTarget,
    TransferFailure,
    Unauthorized,
)


ALL_ERRORS = [
    InvalidParameter,
    BidTooLow,
    Unauthorized,
    MismatchedRefundTarget,
    TransferFailure,
    AuctionNotFound,
    AddressCollision,
    AuctionEnded,
    AuctionNotEnded,
]


class TestErrorCodes:
    """Tests for codes and categories."""

    def test_codes_are_unique(self):
        codes = [cls.code for cls in ALL_ERRORS]
        assert len(set(codes)) == len(codes)

    def test_categories(self):
        assert ErrorCode.BID_TOO_LOW.category == ErrorCategory.VALIDATION
        assert ErrorCode.MISMATCHED_REFUND_TARGET.category == ErrorCategory.AUTHORIZATION
        assert ErrorCode.TRANSFER_FAILURE.category == ErrorCategory.RESOURCE
        assert ErrorCode.AUCTION_NOT_ENDED.category == ErrorCategory.STATE


class TestAuctionError:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize("error_cls", ALL_ERRORS)
    def test_subclass_of_auction_error(self, error_cls):
        assert issubclass(error_cls, AuctionError)

    def test_message_and_str(self):
        exc = BidTooLow("Bid 5 below minimum 10")
        assert exc.message == "Bid 5 below minimum 10"
        assert str(exc) == "BID_TOO_LOW(0x0101): Bid 5 below minimum 10"
