from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from vendue.core.storage.sqlite_adapter import SQLiteAdapter
from vendue.utils.logger import get_logger

logger = get_logger("storage.manager")

CLOCK_KEY = "logical_clock"
PROGRAM_KEY_PREFIX = "program:"


@dataclass
class JournalEntry:
    """One committed atomic unit, as recorded in the journal."""
    seq: int
    operation: str
    clock: int
    signer: Optional[bytes]
    detail: str


class StorageManager:
    """
    Manages persistent storage for the ledger.
    
    Coordinates data persistence using SQLite adapter.
    Handles:
    - Account storage
    - Logical clock and registered program ids (Metadata)
    - Operation journal
    """

    def __init__(self, data_dir: Path, db_name: str = "ledger.db"):
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_name
        self.adapter = SQLiteAdapter(self.db_path)
        
        logger.info(f"StorageManager initialized at {self.db_path}")

    def close(self):
        self.adapter.close()

    # =========================================================================
    # Chain State (Metadata)
    # =========================================================================

    def get_clock(self) -> int:
        value = self.adapter.get_chain_meta(CLOCK_KEY)
        return int(value) if value else 0

    def save_clock(self, now: int):
        self.adapter.set_chain_meta(CLOCK_KEY, str(now))

    def save_program(self, name: str, program_id: bytes):
        self.adapter.set_chain_meta(PROGRAM_KEY_PREFIX + name, program_id.hex())

    def load_programs(self) -> Dict[str, bytes]:
        """Registered program names mapped to their ids."""
        return {
            key[len(PROGRAM_KEY_PREFIX):]: bytes.fromhex(value)
            for key, value in self.adapter.get_chain_meta_prefix(PROGRAM_KEY_PREFIX)
        }

    # =========================================================================
    # Accounts
    # =========================================================================

    def persist_account(self, address: bytes, data: bytes):
        self.adapter.save_account(address, data)

    def get_account(self, address: bytes) -> Optional[bytes]:
        return self.adapter.get_account(address)

    def load_accounts(self) -> List[Tuple[bytes, bytes]]:
        return self.adapter.get_all_accounts()

    # =========================================================================
    # Journal
    # =========================================================================

    def load_journal(self, operation: Optional[str] = None) -> List[JournalEntry]:
        return [JournalEntry(*row) for row in self.adapter.get_journal(operation)]

    # =========================================================================
    # Atomic Commit
    # =========================================================================

    def persist_commit(
        self,
        accounts: List[Tuple[bytes, bytes]],
        clock: int,
        journal: Optional[Tuple[str, int, Optional[bytes], str]] = None,
    ):
        """Atomically persist one committed unit (accounts, clock, journal)."""
        self.adapter.persist_commit(accounts, [(CLOCK_KEY, str(clock))], journal)
        logger.debug(f"Persisted commit: {len(accounts)} accounts, clock={clock}")
