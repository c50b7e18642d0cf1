"""
Account - durable, addressable ledger record.

Every piece of state lives in an account:
- Keypair accounts (owner = SYSTEM_PROGRAM_ID) hold fungible value and assets
- Program accounts (owner = a program id) hold program data, escrowed value
  or assets in custody, and can only be debited with that program's
  AuthorityProof

Serialization:
    address(20) || owner(32) || balance(8) || data_len(4) || data ||
    asset_count(2) || [asset_id(32) || units(8)]*
"""

from dataclasses import dataclass, field
from typing import Dict

from vendue.core.state.address import SYSTEM_PROGRAM_ID
from vendue.crypto import bytes_to_hex

ASSET_ID_SIZE = 32


@dataclass
class Account:
    """
    A ledger account.
    
    Attributes:
        address: 20-byte address
        balance: Fungible value held
        owner: 32-byte id of the program allowed to debit the account
            without a signature (SYSTEM_PROGRAM_ID for keypair accounts)
        data: Serialized program record (empty for plain accounts)
        assets: asset_id -> units held (zero entries are dropped)
    """
    address: bytes
    balance: int = 0
    owner: bytes = SYSTEM_PROGRAM_ID
    data: bytes = b""
    assets: Dict[bytes, int] = field(default_factory=dict)
    
    def __post_init__(self):
        """Validate field constraints."""
        if len(self.address) != 20:
            raise ValueError(f"address must be 20 bytes, got {len(self.address)}")
        if len(self.owner) != 32:
            raise ValueError(f"owner must be 32 bytes, got {len(self.owner)}")
        if self.balance < 0:
            raise ValueError(f"balance cannot be negative, got {self.balance}")
        for asset_id, units in self.assets.items():
            if len(asset_id) != ASSET_ID_SIZE:
                raise ValueError(f"asset_id must be {ASSET_ID_SIZE} bytes, got {len(asset_id)}")
            if units < 0:
                raise ValueError(f"asset units cannot be negative, got {units}")
    
    @property
    def is_program_owned(self) -> bool:
        return self.owner != SYSTEM_PROGRAM_ID
    
    def units_of(self, asset_id: bytes) -> int:
        return self.assets.get(asset_id, 0)
    
    # =========================================================================
    # Serialization
    # =========================================================================
    
    def to_bytes(self) -> bytes:
        """Serialize account to bytes."""
        buf = bytearray()
        buf += self.address
        buf += self.owner
        buf += self.balance.to_bytes(8, byteorder="big")
        buf += len(self.data).to_bytes(4, byteorder="big")
        buf += self.data
        held = sorted((a, u) for a, u in self.assets.items() if u > 0)
        buf += len(held).to_bytes(2, byteorder="big")
        for asset_id, units in held:
            buf += asset_id
            buf += units.to_bytes(8, byteorder="big")
        return bytes(buf)
    
    @classmethod
    def from_bytes(cls, data: bytes) -> "Account":
        """Deserialize account from bytes."""
        if len(data) < 66:
            raise ValueError(f"Account data too short: {len(data)} bytes")
        
        offset = 0
        address = data[offset:offset + 20]
        offset += 20
        owner = data[offset:offset + 32]
        offset += 32
        balance = int.from_bytes(data[offset:offset + 8], byteorder="big")
        offset += 8
        data_len = int.from_bytes(data[offset:offset + 4], byteorder="big")
        offset += 4
        record = data[offset:offset + data_len]
        offset += data_len
        asset_count = int.from_bytes(data[offset:offset + 2], byteorder="big")
        offset += 2
        
        if len(data) != offset + asset_count * (ASSET_ID_SIZE + 8):
            raise ValueError("Account data length mismatch")
        
        assets = {}
        for _ in range(asset_count):
            asset_id = data[offset:offset + ASSET_ID_SIZE]
            offset += ASSET_ID_SIZE
            assets[asset_id] = int.from_bytes(data[offset:offset + 8], byteorder="big")
            offset += 8
        
        return cls(address=address, balance=balance, owner=owner, data=record, assets=assets)
    
    def __repr__(self) -> str:
        kind = "program" if self.is_program_owned else "system"
        return (
            f"Account({bytes_to_hex(self.address)[:12]}..., balance={self.balance}, "
            f"{kind}, data={len(self.data)}B, assets={len(self.assets)})"
        )
