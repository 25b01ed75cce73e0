"""
ShieldPool: a fixed-denomination shielded pool.

Depositors add a commitment to an append-only Merkle tree; withdrawers later
prove membership without revealing which leaf is theirs, and a nullifier
stops the same deposit from being withdrawn twice.
"""

__version__ = "0.1.0"

from .crypto import NullifierScheme, Secret
from .pool import PoolClient, PoolConfig, ShieldedPoolLedger

__all__ = [
    "PoolConfig",
    "ShieldedPoolLedger",
    "PoolClient",
    "Secret",
    "NullifierScheme",
]
