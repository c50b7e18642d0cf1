"""Account ledger, derived addresses and logical time"""
from vendue.core.state.account import Account
from vendue.core.state.address import (
    SYSTEM_PROGRAM_ID,
    AuthorityProof,
    ProgramHandle,
    derive_address,
    program_id_from_name,
)
from vendue.core.state.ledger import Ledger, LogicalClock

__all__ = [
    "Account",
    "SYSTEM_PROGRAM_ID",
    "AuthorityProof",
    "ProgramHandle",
    "derive_address",
    "program_id_from_name",
    "Ledger",
    "LogicalClock",
]
