"""
Ledger - account-based host state for Vendue.

Conceptual Background:
---------------------
The Ledger is the environment the auction program runs against. It owns
every durable record and exposes a small, fixed interface:

1. **derive_address / register_program**: program-derived addresses and
   the capability needed to spend from them
2. **create_account**: allocate a new record, rejecting address reuse
3. **transfer**: move fungible value or asset units, authorized by a
   holder signature over that exact transfer or a program AuthorityProof
4. **current_time**: a monotonic logical clock

Atomic Units:
------------
All mutation happens inside `atomic()`. Before an account is first
modified within a unit, its prior state is copied into an undo log. If
anything raises, the undo log is replayed and the exception propagates,
so a rejected operation leaves every account byte-for-byte unchanged.
On success the touched accounts, the clock and a journal entry are
written in a single SQLite transaction.

Units are serialized by a re-entrant lock; nested units join the
enclosing one and can be rolled back independently.
"""

import hmac
import secrets
import threading
from contextlib import contextmanager
from copy import deepcopy
from typing import Dict, Iterator, List, Optional, Set, Union

from vendue.core.auth import SignerAuthorization, transfer_hash
from vendue.core.errors import AddressCollision, TransferFailure, Unauthorized
from vendue.core.state.account import ASSET_ID_SIZE, Account
from vendue.core.state.address import (
    SYSTEM_PROGRAM_ID,
    AuthorityProof,
    ProgramHandle,
    derive_address,
    program_id_from_name,
)
from vendue.core.storage.storage_manager import StorageManager
from vendue.crypto import bytes_to_hex, sha256
from vendue.utils.logger import get_logger
from vendue.utils.validation import MAX_AMOUNT, validate_address, validate_integer

logger = get_logger("ledger")

Authorization = Union[SignerAuthorization, AuthorityProof]


# =============================================================================
# Logical Clock
# =============================================================================


class LogicalClock:
    """
    Monotonic integer clock.

    Operations read it once at entry; it only moves when the host
    advances it.
    """

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f"Clock cannot start below zero, got {start}")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, delta: int) -> int:
        """Move the clock forward by delta ticks."""
        if delta < 0:
            raise ValueError(f"Clock cannot move backwards (delta={delta})")
        self._now += delta
        return self._now

    def set(self, value: int) -> int:
        """Jump to an absolute time, never earlier than now."""
        if value < self._now:
            raise ValueError(f"Clock cannot move backwards ({value} < {self._now})")
        self._now = value
        return self._now

    def __repr__(self) -> str:
        return f"LogicalClock(now={self._now})"


# =============================================================================
# Ledger
# =============================================================================


class Ledger:
    """
    Account ledger with atomic, authorized mutation.

    Attributes:
        accounts: Mapping of address to Account
        clock: Logical clock read by current_time()
        storage_manager: Persistence manager, None = in-memory only
    """

    def __init__(
        self,
        storage_manager: Optional[StorageManager] = None,
        clock: Optional[LogicalClock] = None,
    ):
        """
        Initialize the ledger.

        Args:
            storage_manager: Persistence manager. None = in-memory only.
            clock: Logical clock. Defaults to one starting at 0 (or at the
                persisted time when storage is given).
        """
        self.accounts: Dict[bytes, Account] = {}
        self.clock = clock or LogicalClock()

        # program_id -> capability (never persisted)
        self._capabilities: Dict[bytes, bytes] = {}
        self._program_names: Dict[str, bytes] = {}

        # Atomic unit bookkeeping
        self._lock = threading.RLock()
        self._undo_stack: List[Dict[bytes, Optional[Account]]] = []
        self._touched: Set[bytes] = set()

        self.storage_manager = storage_manager
        if storage_manager:
            self._load_from_storage()

    # =========================================================================
    # State Access
    # =========================================================================

    def current_time(self) -> int:
        """Read the logical clock."""
        return self.clock.now()

    def get_account(self, address: bytes) -> Optional[Account]:
        """Get an account by address (a copy; mutate through the ledger)."""
        account = self.accounts.get(address)
        return deepcopy(account) if account is not None else None

    def has_account(self, address: bytes) -> bool:
        return address in self.accounts

    def get_balance(self, address: bytes) -> int:
        """Fungible balance of an address (0 if the account does not exist)."""
        account = self.accounts.get(address)
        return account.balance if account else 0

    def get_asset_units(self, address: bytes, asset_id: bytes) -> int:
        """Units of an asset held by an address."""
        account = self.accounts.get(address)
        return account.units_of(asset_id) if account else 0

    def asset_holders(self, asset_id: bytes) -> Dict[bytes, int]:
        """All addresses holding a positive number of units of asset_id."""
        return {
            address: account.units_of(asset_id)
            for address, account in self.accounts.items()
            if account.units_of(asset_id) > 0
        }

    def asset_supply(self, asset_id: bytes) -> int:
        return sum(self.asset_holders(asset_id).values())

    # =========================================================================
    # Programs and Derived Addresses
    # =========================================================================

    def register_program(self, name: str) -> ProgramHandle:
        """
        Register a program and issue its capability.

        A name can be registered once per ledger instance; the capability
        lives only in memory and in the returned handle.

        Raises:
            ValueError: if the program is already registered
        """
        with self._lock:
            program_id = program_id_from_name(name)
            if program_id in self._capabilities:
                raise ValueError(f"Program already registered: {name}")

            capability = secrets.token_bytes(32)
            self._capabilities[program_id] = capability
            if name not in self._program_names:
                self._program_names[name] = program_id
                if self.storage_manager:
                    self.storage_manager.save_program(name, program_id)

            logger.info(f"Registered program {name} ({bytes_to_hex(program_id)[:12]}...)")
            return ProgramHandle(name=name, program_id=program_id, capability=capability)

    def derive_address(self, program_id: bytes, namespace: bytes, seed: bytes) -> bytes:
        """Pure derivation of a program-owned address."""
        return derive_address(program_id, namespace, seed)

    def _check_proof(self, account: Account, proof: AuthorityProof) -> Optional[str]:
        """Return an error message if proof does not authorize account."""
        expected = self._capabilities.get(proof.program_id)
        if expected is None:
            return "unknown program"
        if not hmac.compare_digest(expected, proof.capability):
            return "invalid program capability"
        if proof.address != account.address:
            return "authority proof does not derive to account"
        if account.owner != proof.program_id:
            return "account not owned by program"
        return None

    def _is_program(self, handle: Optional[ProgramHandle]) -> bool:
        """True if handle carries the capability issued to its program."""
        if not isinstance(handle, ProgramHandle):
            return False
        expected = self._capabilities.get(handle.program_id)
        return expected is not None and hmac.compare_digest(expected, handle.capability)

    def _check_authorization(
        self,
        account: Account,
        authorization: Optional[Authorization],
        expected_hash: bytes,
    ) -> Optional[str]:
        if isinstance(authorization, SignerAuthorization):
            if account.is_program_owned:
                return "program-owned account cannot be debited by a signer"
            if authorization.address != account.address:
                return "signer does not own source account"
            if authorization.message_hash != expected_hash:
                return "signature was not issued for this transfer"
            if not authorization.verify(expected_hash):
                return "invalid signature"
            return None
        if isinstance(authorization, AuthorityProof):
            return self._check_proof(account, authorization)
        return "missing authorization"

    # =========================================================================
    # Atomic Units
    # =========================================================================

    @contextmanager
    def atomic(
        self,
        operation: str = "unit",
        signer: Optional[bytes] = None,
        detail: str = "",
    ) -> Iterator["Ledger"]:
        """
        Delimit one atomic unit.

        Either every mutation made inside the block persists, or (if the
        block raises) none does and the exception propagates unchanged.

        Args:
            operation: Journal label for the outermost unit
            signer: Address of the authorizing signer, for the journal
            detail: Free-form journal detail
        """
        with self._lock:
            outermost = not self._undo_stack
            if outermost:
                self._touched = set()
            self._undo_stack.append({})
            try:
                yield self
            except BaseException:
                self._rollback(self._undo_stack.pop())
                if outermost:
                    self._touched = set()
                raise

            undo = self._undo_stack.pop()
            if not outermost:
                # Merge into parent, keeping the parent's older originals
                parent = self._undo_stack[-1]
                for address, original in undo.items():
                    parent.setdefault(address, original)
                return

            try:
                self._persist(operation, signer, detail)
            except BaseException:
                self._rollback(undo)
                raise
            finally:
                self._touched = set()

    def _touch(self, address: bytes) -> None:
        """Record the pre-image of an account before its first mutation."""
        if not self._undo_stack:
            raise RuntimeError("Ledger mutation outside of an atomic unit")
        undo = self._undo_stack[-1]
        if address not in undo:
            original = self.accounts.get(address)
            undo[address] = deepcopy(original) if original is not None else None
        self._touched.add(address)

    def _rollback(self, undo: Dict[bytes, Optional[Account]]) -> None:
        for address, original in undo.items():
            if original is None:
                self.accounts.pop(address, None)
            else:
                self.accounts[address] = original
        if undo:
            logger.debug(f"Rolled back {len(undo)} account(s)")

    def _persist(self, operation: str, signer: Optional[bytes], detail: str) -> None:
        if not self.storage_manager:
            return
        rows = [
            (address, self.accounts[address].to_bytes())
            for address in sorted(self._touched)
            if address in self.accounts
        ]
        self.storage_manager.persist_commit(
            rows,
            self.clock.now(),
            (operation, self.clock.now(), signer, detail),
        )

    # =========================================================================
    # Account Creation
    # =========================================================================

    def create_account(
        self,
        address: bytes,
        data: bytes,
        payer: bytes,
        owner: bytes = SYSTEM_PROGRAM_ID,
    ) -> Account:
        """
        Allocate and initialize a new durable record.

        Args:
            address: Address of the new account
            data: Initial record bytes
            payer: Existing account funding the allocation
            owner: Program id that will control the account

        Raises:
            AddressCollision: if the address is already in use
            TransferFailure: if the payer does not exist
        """
        valid, error = validate_address(address)
        if not valid:
            raise ValueError(error)

        with self.atomic("create_account"):
            if address in self.accounts:
                raise AddressCollision(f"Address already in use: {bytes_to_hex(address)}")
            if payer not in self.accounts:
                raise TransferFailure(f"Payer account not found: {bytes_to_hex(payer)}")

            self._touch(address)
            account = Account(address=address, owner=owner, data=data)
            self.accounts[address] = account
            logger.debug(f"Created account {bytes_to_hex(address)[:12]}... owner={bytes_to_hex(owner)[:12]}...")
            return deepcopy(account)

    def write_data(self, address: bytes, data: bytes, proof: AuthorityProof) -> None:
        """
        Replace the record bytes of a program-owned account.

        Raises:
            Unauthorized: if proof does not authorize the account
        """
        with self.atomic("write_data"):
            account = self.accounts.get(address)
            if account is None:
                raise Unauthorized(f"Account not found: {bytes_to_hex(address)}")
            error = self._check_proof(account, proof)
            if error:
                raise Unauthorized(error)
            self._touch(address)
            account.data = data

    # =========================================================================
    # Transfers
    # =========================================================================

    def transfer(
        self,
        source: bytes,
        dest: bytes,
        amount: int,
        authorization: Optional[Authorization],
        asset_id: Optional[bytes] = None,
        expected_hash: Optional[bytes] = None,
        program: Optional[ProgramHandle] = None,
    ) -> None:
        """
        Move fungible value (asset_id None) or asset units between accounts.

        Destination accounts are created on demand. All-or-nothing: on any
        failure no balance changes.

        A holder signature must cover transfer_hash(source, dest, amount,
        asset_id). A registered program that has already checked a signer's
        capability for one of its own operations may instead pass that
        operation's digest as expected_hash together with its handle.

        Args:
            source: Address debited
            dest: Address credited
            amount: Value or units to move (> 0)
            authorization: SignerAuthorization of the source holder, or the
                AuthorityProof of the program owning source
            asset_id: Asset to move, None for fungible value
            expected_hash: Operation digest the signer approved (programs only)
            program: Handle of the program relaying expected_hash

        Raises:
            TransferFailure: insufficient funds, bad authorization, wrong asset
        """
        valid, error = validate_integer(amount, "amount", 1, MAX_AMOUNT)
        if not valid:
            raise TransferFailure(error)
        if source == dest:
            raise TransferFailure("source and destination are the same account")
        if asset_id is not None and len(asset_id) != ASSET_ID_SIZE:
            raise TransferFailure(f"asset_id must be {ASSET_ID_SIZE} bytes")
        for address, name in ((source, "source"), (dest, "dest")):
            valid, error = validate_address(address, name)
            if not valid:
                raise TransferFailure(error)
        if expected_hash is None:
            expected_hash = transfer_hash(source, dest, amount, asset_id)
        elif not self._is_program(program):
            raise TransferFailure("operation digest can only be relayed by a registered program")

        with self.atomic("transfer"):
            from_account = self.accounts.get(source)
            if from_account is None:
                raise TransferFailure(f"Source account not found: {bytes_to_hex(source)}")

            error = self._check_authorization(from_account, authorization, expected_hash)
            if error:
                raise TransferFailure(f"Unauthorized transfer from {bytes_to_hex(source)[:12]}...: {error}")

            if asset_id is None:
                if from_account.balance < amount:
                    raise TransferFailure(
                        f"Insufficient balance: {from_account.balance} < {amount}"
                    )
            elif from_account.units_of(asset_id) < amount:
                raise TransferFailure(
                    f"Insufficient units of asset {bytes_to_hex(asset_id)[:12]}...: "
                    f"{from_account.units_of(asset_id)} < {amount}"
                )

            self._touch(source)
            self._touch(dest)
            to_account = self.accounts.setdefault(dest, Account(address=dest))

            if asset_id is None:
                from_account.balance -= amount
                to_account.balance += amount
            else:
                remaining = from_account.assets[asset_id] - amount
                if remaining:
                    from_account.assets[asset_id] = remaining
                else:
                    del from_account.assets[asset_id]
                to_account.assets[asset_id] = to_account.units_of(asset_id) + amount

            what = "value" if asset_id is None else f"asset {bytes_to_hex(asset_id)[:10]}..."
            logger.debug(
                f"Transfer {amount} {what}: {bytes_to_hex(source)[:10]}... -> {bytes_to_hex(dest)[:10]}..."
            )

    # =========================================================================
    # Genesis / Faucet
    # =========================================================================

    def fund(self, address: bytes, amount: int) -> None:
        """Credit fungible value to an address (genesis allocation, test faucet)."""
        valid, error = validate_integer(amount, "amount", 1, MAX_AMOUNT)
        if not valid:
            raise ValueError(error)
        with self.atomic("fund", detail=f"amount={amount}"):
            self._touch(address)
            account = self.accounts.setdefault(address, Account(address=address))
            account.balance += amount

    def mint_asset(self, owner: bytes, asset_id: Optional[bytes] = None) -> bytes:
        """
        Create a non-fungible asset (supply of exactly one) held by owner.

        Args:
            owner: Address receiving the single unit
            asset_id: Optional explicit 32-byte id, random if None

        Returns:
            The asset id
        """
        if asset_id is None:
            asset_id = sha256(b"vendue:asset" + owner + secrets.token_bytes(32))
        if len(asset_id) != ASSET_ID_SIZE:
            raise ValueError(f"asset_id must be {ASSET_ID_SIZE} bytes, got {len(asset_id)}")

        with self.atomic("mint_asset", detail=asset_id.hex()):
            if self.asset_supply(asset_id):
                raise ValueError(f"Asset already exists: {bytes_to_hex(asset_id)}")
            self._touch(owner)
            account = self.accounts.setdefault(owner, Account(address=owner))
            account.assets[asset_id] = 1

        logger.info(f"Minted asset {bytes_to_hex(asset_id)[:12]}... to {bytes_to_hex(owner)[:12]}...")
        return asset_id

    # =========================================================================
    # Clock
    # =========================================================================

    def advance_time(self, delta: int) -> int:
        """Advance the logical clock and persist it."""
        with self._lock:
            now = self.clock.advance(delta)
            if self.storage_manager:
                self.storage_manager.save_clock(now)
            return now

    def set_time(self, value: int) -> int:
        with self._lock:
            now = self.clock.set(value)
            if self.storage_manager:
                self.storage_manager.save_clock(now)
            return now

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load_from_storage(self) -> None:
        """Load state from storage manager."""
        for address, data in self.storage_manager.load_accounts():
            self.accounts[address] = Account.from_bytes(data)

        self._program_names = self.storage_manager.load_programs()

        stored_time = self.storage_manager.get_clock()
        if stored_time > self.clock.now():
            self.clock.set(stored_time)

        logger.info(
            f"Loaded ledger: {len(self.accounts)} accounts, "
            f"{len(self._program_names)} programs, clock={self.clock.now()}"
        )

    # =========================================================================
    # Utility
    # =========================================================================

    def __repr__(self) -> str:
        return f"Ledger(clock={self.clock.now()}, accounts={len(self.accounts)})"

    def stats(self) -> dict:
        """Get ledger statistics."""
        return {
            "clock": self.clock.now(),
            "account_count": len(self.accounts),
            "program_accounts": sum(1 for a in self.accounts.values() if a.is_program_owned),
            "programs": sorted(self._program_names),
            "total_value": sum(a.balance for a in self.accounts.values()),
        }
