"""
Cryptographic primitives for ShieldPool.

This package provides:
- The scalar field encoding and the field hash
- The sparse append-only Merkle tree
- Commitments and nullifiers
- The zero-knowledge proof layer (deposit and withdraw statements)
"""

from .commitments import (
    NULLIFIER_TAG,
    DepositNote,
    NullifierScheme,
    Secret,
    commit,
    derive_nullifier,
)
from .field import (
    EMPTY_LEAF,
    FIELD_MODULUS,
    FieldHasher,
    decode_scalar,
    encode_scalar,
    field_hash,
    hash_pair,
    is_scalar,
    random_scalar,
)
from .merkle import (
    IncrementalMerkleTree,
    MerklePath,
    PendingInsertion,
    TreeSnapshot,
    compute_zero_hashes,
    empty_root,
    recompute_root,
)

__all__ = [
    # Field
    "FIELD_MODULUS",
    "EMPTY_LEAF",
    "FieldHasher",
    "field_hash",
    "hash_pair",
    "encode_scalar",
    "decode_scalar",
    "is_scalar",
    "random_scalar",
    # Merkle
    "IncrementalMerkleTree",
    "MerklePath",
    "PendingInsertion",
    "TreeSnapshot",
    "compute_zero_hashes",
    "empty_root",
    "recompute_root",
    # Commitments
    "NULLIFIER_TAG",
    "NullifierScheme",
    "Secret",
    "DepositNote",
    "commit",
    "derive_nullifier",
]
