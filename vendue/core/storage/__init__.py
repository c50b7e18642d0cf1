"""
Persistent Storage Module.

Provides SQLite-backed persistence for:
- Accounts (auction records, escrow, custody, wallets)
- Chain Metadata (logical clock, registered programs)
- Operation Journal (audit trail of every atomic unit)
"""

from vendue.core.storage.sqlite_adapter import SQLiteAdapter
from vendue.core.storage.storage_manager import JournalEntry, StorageManager

__all__ = ["SQLiteAdapter", "StorageManager", "JournalEntry"]
