"""
Cryptographic primitives for Vendue.

This module provides:
- Hashing functions (SHA-256, Keccak-256)
- Key generation and management
- Digital signatures (ECDSA on secp256k1)
- Address derivation from public keys

Design Notes:
-------------
Keypair accounts are addressed Ethereum-style: the last 20 bytes of the
Keccak-256 hash of the uncompressed public key. Program-owned accounts
(escrow, custody, auction records) share the same 20-byte address space
but are derived from a namespace tag and a seed instead of a key
(see vendue.core.state.address).

SHA-256 is used for operation digests (what a signer signs).
"""

import hashlib
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order (number of points on the curve)
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ADDRESS_SIZE = 20


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash.
    
    Used for: operation digests, content addressing.
    """
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).
    
    Used for: address derivation (keypair and program-derived).
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.
    
    Attributes:
        private_key: 32-byte secret key (integer in [1, order-1])
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes  # 32 bytes
    public_key: bytes   # 64 bytes (uncompressed, no 0x04 prefix)
    
    @property
    def address(self) -> bytes:
        """20-byte account address of this keypair."""
        return address_from_public_key(self.public_key)
    
    @property
    def address_hex(self) -> str:
        """Address hex-encoded with 0x prefix."""
        return bytes_to_hex(self.address)
    

def generate_keypair() -> KeyPair:
    """
    Generate a new random keypair.
    
    Uses cryptographically secure random number generator.
    """
    # Private key in valid range [1, order-1]
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def keypair_from_seed(seed: bytes) -> KeyPair:
    """
    Derive a keypair deterministically from arbitrary seed bytes.
    
    Useful for reproducible fixtures and demo identities. Never use a
    guessable seed for an identity that holds real value.
    """
    private_key_int = int.from_bytes(sha256(seed), byteorder="big") % (SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.
    
    Args:
        private_key: 32-byte private key
        
    Returns:
        64-byte uncompressed public key
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    
    # P = k * G, returned as (x, y) integers
    public_key_point = secp256k1.privtopub(private_key)
    x_bytes = public_key_point[0].to_bytes(32, byteorder="big")
    y_bytes = public_key_point[1].to_bytes(32, byteorder="big")
    return x_bytes + y_bytes


def address_from_public_key(public_key: bytes) -> bytes:
    """
    Derive the 20-byte address of a public key.
    
    Address = last 20 bytes of keccak256(public_key).
    """
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return keccak256(public_key)[-ADDRESS_SIZE:]


# =============================================================================
# Digital Signatures (ECDSA)
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a message hash using ECDSA on secp256k1.
    
    Args:
        message_hash: 32-byte hash of the message to sign
        private_key: 32-byte private key
        
    Returns:
        64-byte signature (r || s, each 32 bytes)
        
    Note: This is a deterministic signature (RFC 6979 style).
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    
    v, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)
    
    # Normalize s to lower half of curve order (BIP 62 / EIP-2)
    if s > SECP256K1_ORDER // 2:
        s = SECP256K1_ORDER - s
    
    return r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big")


@lru_cache(maxsize=1024)
def verify(message_hash: bytes, signature: bytes, public_key: bytes) -> bool:
    """
    Verify an ECDSA signature.
    
    Results are memoized: the same capability is typically checked once by
    the auction program and again by the ledger when it authorizes a
    transfer.
    
    Args:
        message_hash: 32-byte hash of the signed message
        signature: 64-byte signature (r || s)
        public_key: 64-byte public key (x || y)
        
    Returns:
        True if signature is valid, False otherwise
    """
    if len(message_hash) != 32 or len(signature) != 64 or len(public_key) != 64:
        return False
    
    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:], byteorder="big")
    if r < 1 or r >= SECP256K1_ORDER:
        return False
    if s < 1 or s >= SECP256K1_ORDER:
        return False
    
    public_key_point = (
        int.from_bytes(public_key[:32], byteorder="big"),
        int.from_bytes(public_key[32:], byteorder="big"),
    )
    
    # No recovery id is carried, so try both (Ethereum convention v=27/28)
    for recovery_id in (0, 1):
        recovered = recover_public_key(message_hash, signature, recovery_id)
        if recovered is None:
            continue
        x = int.from_bytes(recovered[:32], byteorder="big")
        y = int.from_bytes(recovered[32:], byteorder="big")
        if (x, y) == public_key_point:
            return True
    
    return False


def recover_public_key(message_hash: bytes, signature: bytes, recovery_id: int) -> Optional[bytes]:
    """
    Recover public key from signature (for verification without knowing signer).
    
    Args:
        message_hash: 32-byte hash
        signature: 64-byte signature (r || s)
        recovery_id: 0 or 1 (which of two possible public keys)
        
    Returns:
        64-byte public key, or None if recovery fails
    """
    if len(message_hash) != 32 or len(signature) != 64:
        return None
    
    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:], byteorder="big")
    
    try:
        recovered = secp256k1.ecdsa_raw_recover(message_hash, (27 + recovery_id, r, s))
    except (ValueError, ZeroDivisionError, TypeError):
        return None
    if not recovered:
        return None
    
    x_bytes = recovered[0].to_bytes(32, byteorder="big")
    y_bytes = recovered[1].to_bytes(32, byteorder="big")
    return x_bytes + y_bytes


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not address.startswith("0x"):
        return False
    if len(address) != 2 + 2 * ADDRESS_SIZE:
        return False
    try:
        int(address, 16)
        return True
    except ValueError:
        return False
