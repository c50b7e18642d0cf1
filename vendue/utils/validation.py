"""
Input Validation - Security-focused input sanitization.

Provides validation for all external inputs to prevent:
- Integer overflows (amounts and ids are u64 on the wire)
- Invalid format attacks (wrong-sized keys, addresses, hashes)
- Type confusion (bool passed as int, str passed as bytes)
"""

from typing import Any, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

PUBLIC_KEY_SIZE = 64
SIGNATURE_SIZE = 64
ADDRESS_SIZE = 20
HASH_SIZE = 32

# Field bounds
MIN_AMOUNT = 0
MAX_AMOUNT = 2**64 - 1
MAX_AUCTION_ID = 2**64 - 1
MAX_TIMESTAMP = 2**63 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.
    
    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length
        
    Returns:
        (is_valid, error_message)
    """
    if not isinstance(data, bytes):
        return False, f"{name} must be bytes, got {type(data).__name__}"
    
    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"
    
    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"
    
    return True, ""


def validate_public_key(public_key: Any) -> Tuple[bool, str]:
    """Validate a public key."""
    return validate_bytes(public_key, "public_key", expected_length=PUBLIC_KEY_SIZE)


def validate_signature(signature: Any) -> Tuple[bool, str]:
    """Validate a signature."""
    return validate_bytes(signature, "signature", expected_length=SIGNATURE_SIZE)


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate an address."""
    return validate_bytes(address, name, expected_length=ADDRESS_SIZE)


def validate_hash(hash_value: Any, name: str = "hash") -> Tuple[bool, str]:
    """Validate a hash value."""
    return validate_bytes(hash_value, name, expected_length=HASH_SIZE)


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate integer within bounds.
    
    Args:
        value: Value to validate
        name: Field name for errors
        min_val: Minimum allowed value
        max_val: Maximum allowed value
        
    Returns:
        (is_valid, error_message)
    """
    # bool is an int subclass; True must not pass as an amount
    if not isinstance(value, int) or isinstance(value, bool):
        return False, f"{name} must be int, got {type(value).__name__}"
    
    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"
    
    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"
    
    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a positive token amount."""
    return validate_integer(amount, name, 1, MAX_AMOUNT)


def validate_auction_id(auction_id: Any) -> Tuple[bool, str]:
    """Validate an auction identifier (u64, used as a derivation seed)."""
    return validate_integer(auction_id, "auction_id", 0, MAX_AUCTION_ID)


def validate_duration(duration: Any, max_duration: int) -> Tuple[bool, str]:
    """Validate an auction duration in logical clock ticks."""
    return validate_integer(duration, "duration", 1, max_duration)


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "validate_bytes",
    "validate_public_key",
    "validate_signature",
    "validate_address",
    "validate_hash",
    "validate_integer",
    "validate_amount",
    "validate_auction_id",
    "validate_duration",
    "PUBLIC_KEY_SIZE",
    "SIGNATURE_SIZE",
    "ADDRESS_SIZE",
    "HASH_SIZE",
    "MAX_AMOUNT",
    "MAX_AUCTION_ID",
]
