"""
Deterministic address derivation for program-owned accounts.

A program never holds a private key. Instead, each account it controls is
addressed by hashing the program id, a namespace tag and a seed:

    address = keccak256(DOMAIN || program_id || len(tag) || tag || seed)[-20:]

The same (program, tag, seed) always yields the same address, so the
auction program can find an auction's record, escrow and custody accounts
from the auction id alone. Moving value out of such an account requires an
AuthorityProof: the derivation inputs plus the capability token the ledger
issued to the program when it registered.
"""

from dataclasses import dataclass, field
from typing import Tuple

from vendue.crypto import bytes_to_hex, keccak256, sha256

DERIVED_DOMAIN = b"vendue:derived"
PROGRAM_DOMAIN = b"vendue:program:"

# Owner of plain keypair accounts
SYSTEM_PROGRAM_ID = bytes(32)


def program_id_from_name(name: str) -> bytes:
    """32-byte program id for a program name."""
    return sha256(PROGRAM_DOMAIN + name.encode())


def derive_address(program_id: bytes, namespace: bytes, seed: bytes) -> bytes:
    """
    Compute the 20-byte address of a program-owned account.
    
    Args:
        program_id: 32-byte id of the owning program
        namespace: Namespace tag (e.g. b"escrow")
        seed: Seed bytes (e.g. an auction id)
        
    Returns:
        20-byte address
    """
    if len(program_id) != 32:
        raise ValueError(f"program_id must be 32 bytes, got {len(program_id)}")
    if not 0 < len(namespace) <= 255:
        raise ValueError(f"namespace must be 1-255 bytes, got {len(namespace)}")
    
    preimage = (
        DERIVED_DOMAIN +
        program_id +
        len(namespace).to_bytes(1, byteorder="big") +
        namespace +
        seed
    )
    return keccak256(preimage)[-20:]


@dataclass(frozen=True)
class AuthorityProof:
    """
    Non-signature credential authorizing transfers out of a derived account.
    
    The ledger accepts it only if it re-derives to the source address, the
    source account is owned by program_id, and capability matches the token
    issued to that program.
    """
    program_id: bytes
    namespace: bytes
    seed: bytes
    capability: bytes = field(repr=False)
    
    @property
    def address(self) -> bytes:
        return derive_address(self.program_id, self.namespace, self.seed)
    
    def __repr__(self) -> str:
        return (
            f"AuthorityProof(namespace={self.namespace.decode(errors='replace')}, "
            f"address={bytes_to_hex(self.address)})"
        )


@dataclass(frozen=True)
class ProgramHandle:
    """
    A registered program's identity and private capability.
    
    Obtained from Ledger.register_program; whoever holds the handle can act
    as the program.
    """
    name: str
    program_id: bytes
    capability: bytes = field(repr=False)
    
    def derive(self, namespace: str, seed: bytes) -> Tuple[bytes, AuthorityProof]:
        """
        Derive an owned address and the proof to spend from it.
        
        Returns:
            (address, authority_proof)
        """
        tag = namespace.encode()
        proof = AuthorityProof(
            program_id=self.program_id,
            namespace=tag,
            seed=seed,
            capability=self.capability,
        )
        return derive_address(self.program_id, tag, seed), proof
