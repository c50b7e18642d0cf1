import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from vendue.utils.logger import get_logger

logger = get_logger("storage.sqlite")


class SQLiteAdapter:
    """
    SQLite backend for persistent storage.
    
    Provides:
    1. Account store (address -> serialized Account).
    2. Chain metadata (key -> text).
    3. Append-only operation journal.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn_local = threading.local()
        
        if not db_path.parent.exists():
            db_path.parent.mkdir(parents=True, exist_ok=True)
            
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create connection for current thread."""
        if not hasattr(self._conn_local, "conn"):
            self._conn_local.conn = sqlite3.connect(
                self.db_path, 
                timeout=30.0,
                check_same_thread=False
            )
            self._conn_local.conn.row_factory = sqlite3.Row
            # WAL lets readers proceed while a commit is in flight
            self._conn_local.conn.execute("PRAGMA journal_mode=WAL;")
            self._conn_local.conn.execute("PRAGMA synchronous=NORMAL;")
        return self._conn_local.conn

    def _init_schema(self):
        """Initialize database schema."""
        conn = self._get_conn()
        with conn:
            # 1. Accounts
            conn.execute("""
                CREATE TABLE IF NOT EXISTS accounts (
                    address BLOB PRIMARY KEY,
                    data BLOB NOT NULL
                )
            """)

            # 2. Chain State (Metadata)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chain_state (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            # 3. Operation journal
            conn.execute("""
                CREATE TABLE IF NOT EXISTS journal (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    operation TEXT NOT NULL,
                    clock INTEGER NOT NULL,
                    signer BLOB,
                    detail TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_journal_op ON journal(operation);")

    def close(self):
        """Close the connection owned by the current thread."""
        conn = getattr(self._conn_local, "conn", None)
        if conn is not None:
            conn.close()
            del self._conn_local.conn

    # =========================================================================
    # Account Operations
    # =========================================================================

    def save_account(self, address: bytes, data: bytes):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO accounts (address, data) VALUES (?, ?)", (address, data))

    def get_account(self, address: bytes) -> Optional[bytes]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT data FROM accounts WHERE address = ?", (address,))
        row = cursor.fetchone()
        return row['data'] if row else None

    def get_all_accounts(self) -> List[Tuple[bytes, bytes]]:
        """Get all (address, data)."""
        conn = self._get_conn()
        cursor = conn.execute("SELECT address, data FROM accounts")
        return [(row['address'], row['data']) for row in cursor]

    # =========================================================================
    # Chain State Operations
    # =========================================================================

    def set_chain_meta(self, key: str, value: str):
        conn = self._get_conn()
        with conn:
            conn.execute("INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)", (key, value))

    def get_chain_meta(self, key: str) -> Optional[str]:
        conn = self._get_conn()
        cursor = conn.execute("SELECT value FROM chain_state WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row['value'] if row else None

    def get_chain_meta_prefix(self, prefix: str) -> List[Tuple[str, str]]:
        """Get all (key, value) metadata pairs whose key starts with prefix."""
        conn = self._get_conn()
        cursor = conn.execute(
            "SELECT key, value FROM chain_state WHERE substr(key, 1, ?) = ?",
            (len(prefix), prefix)
        )
        return [(row['key'], row['value']) for row in cursor]

    # =========================================================================
    # Journal Operations
    # =========================================================================

    def get_journal(self, operation: Optional[str] = None) -> List[Tuple[Any, ...]]:
        """Get journal rows ordered by sequence number."""
        conn = self._get_conn()
        if operation is None:
            cursor = conn.execute("SELECT seq, operation, clock, signer, detail FROM journal ORDER BY seq ASC")
        else:
            cursor = conn.execute(
                "SELECT seq, operation, clock, signer, detail FROM journal WHERE operation = ? ORDER BY seq ASC",
                (operation,)
            )
        return [tuple(row) for row in cursor]

    # =========================================================================
    # Atomic Commit
    # =========================================================================

    def persist_commit(
        self,
        accounts: Iterable[Tuple[bytes, bytes]],
        meta: Iterable[Tuple[str, str]],
        journal: Optional[Tuple[str, int, Optional[bytes], str]],
    ):
        """
        Atomically persist the effects of one atomic unit.
        
        Args:
            accounts: (address, serialized account) pairs to upsert
            meta: (key, value) chain metadata pairs to upsert
            journal: (operation, clock, signer, detail) or None
        """
        conn = self._get_conn()
        with conn:
            for address, data in accounts:
                conn.execute(
                    "INSERT OR REPLACE INTO accounts (address, data) VALUES (?, ?)",
                    (address, data)
                )
            for key, value in meta:
                conn.execute(
                    "INSERT OR REPLACE INTO chain_state (key, value) VALUES (?, ?)",
                    (key, value)
                )
            if journal is not None:
                conn.execute(
                    "INSERT INTO journal (operation, clock, signer, detail) VALUES (?, ?, ?, ?)",
                    journal
                )
