"""
Shielded pool protocol layer.

The ledger state machine, the participant client that mirrors its tree and
builds proofs, and their shared configuration.
"""

from .client import DepositTransaction, PoolClient, WithdrawTransaction
from .config import PoolConfig
from .ledger import LedgerSnapshot, ShieldedPoolLedger

__all__ = [
    "PoolConfig",
    "ShieldedPoolLedger",
    "LedgerSnapshot",
    "PoolClient",
    "DepositTransaction",
    "WithdrawTransaction",
]
