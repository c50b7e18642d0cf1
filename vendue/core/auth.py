"""
Signer authorization capabilities.

A caller proves it controls an account by signing the digest of the exact
operation it wants executed. The resulting SignerAuthorization is passed
explicitly into each auction operation; the auction program recomputes the
digest for the operation it is about to run and rejects the capability if
it was issued for anything else.

Plain ledger transfers are approved the same way, over a "transfer"
digest binding source, destination, amount and asset.

Digest layout:
    sha256(DOMAIN || len(op) || op || field...)

(the auction id is the first field of every auction operation)

where each field is tagged so that different shapes never collide:
    None  -> 0x00
    bytes -> 0x01 || u16 length || data
    int   -> 0x02 || i128 big endian
"""

from dataclasses import dataclass
from typing import Optional, Union

from vendue.crypto import (
    KeyPair,
    address_from_public_key,
    bytes_to_hex,
    sha256,
    sign,
    verify,
)
from vendue.utils.validation import validate_hash, validate_public_key, validate_signature

OPERATION_DOMAIN = b"vendue:operation:v1"
TRANSFER = "transfer"

Field = Union[None, bytes, int]


def encode_seed(auction_id: int) -> bytes:
    """Auction id as the 8-byte little-endian derivation seed."""
    return auction_id.to_bytes(8, byteorder="little")


def _encode_field(value: Field) -> bytes:
    if value is None:
        return b"\x00"
    if isinstance(value, bytes):
        return b"\x01" + len(value).to_bytes(2, byteorder="big") + value
    if isinstance(value, int) and not isinstance(value, bool):
        return b"\x02" + value.to_bytes(16, byteorder="big", signed=True)
    raise TypeError(f"Unsupported operation field type: {type(value).__name__}")


def operation_hash(operation: str, auction_id: int, *fields: Field) -> bytes:
    """
    Compute the digest a signer must sign to authorize an operation.
    
    Args:
        operation: Operation name ("create_auction", "place_bid", ...)
        auction_id: Target auction
        *fields: Operation parameters, in call order
        
    Returns:
        32-byte digest
    """
    return _digest(operation, auction_id, *fields)


def transfer_hash(source: bytes, dest: bytes, amount: int, asset_id: Optional[bytes] = None) -> bytes:
    """
    Digest a holder signs to approve one plain ledger transfer.

    Binds source, destination, amount and asset, so the signature moves
    exactly that value and nothing else.
    """
    return _digest(TRANSFER, source, dest, amount, asset_id)


def _digest(operation: str, *fields: Field) -> bytes:
    op = operation.encode()
    buf = bytearray(OPERATION_DOMAIN)
    buf += len(op).to_bytes(1, byteorder="big")
    buf += op
    for value in fields:
        buf += _encode_field(value)
    return sha256(bytes(buf))


@dataclass(frozen=True)
class SignerAuthorization:
    """
    Proof that the holder of a keypair approved one specific operation.
    
    Attributes:
        public_key: 64-byte signer public key
        signature: 64-byte ECDSA signature over message_hash
        message_hash: 32-byte operation digest
    """
    public_key: bytes
    signature: bytes
    message_hash: bytes
    
    @property
    def address(self) -> bytes:
        """Address of the signing account."""
        return address_from_public_key(self.public_key)
    
    def is_well_formed(self) -> bool:
        return (
            validate_public_key(self.public_key)[0]
            and validate_signature(self.signature)[0]
            and validate_hash(self.message_hash)[0]
        )
    
    def verify(self, expected_hash: Optional[bytes] = None) -> bool:
        """
        Check the signature, and optionally that it covers expected_hash.
        """
        if not self.is_well_formed():
            return False
        if expected_hash is not None and expected_hash != self.message_hash:
            return False
        return verify(self.message_hash, self.signature, self.public_key)
    
    def __repr__(self) -> str:
        return f"SignerAuthorization(address={bytes_to_hex(self.address)})"


def authorize(keypair: KeyPair, message_hash: bytes) -> SignerAuthorization:
    """Sign a raw 32-byte digest."""
    return SignerAuthorization(
        public_key=keypair.public_key,
        signature=sign(message_hash, keypair.private_key),
        message_hash=message_hash,
    )


def sign_operation(keypair: KeyPair, operation: str, auction_id: int, *fields: Field) -> SignerAuthorization:
    """
    Build the capability a caller presents for one auction operation.
    
    Example:
        auth = sign_operation(bidder, "place_bid", 7, 10, prev_bidder)
        program.place_bid(auth, 7, 10, prev_bidder)
    """
    return authorize(keypair, operation_hash(operation, auction_id, *fields))


def sign_transfer(
    keypair: KeyPair,
    dest: bytes,
    amount: int,
    asset_id: Optional[bytes] = None,
) -> SignerAuthorization:
    """Approve moving amount (of asset_id, or value) from keypair's account to dest."""
    return authorize(keypair, transfer_hash(keypair.address, dest, amount, asset_id))
