"""
Scalar field arithmetic helpers and the field hash primitive.

Every secret, commitment, root and hash in ShieldPool is an element of the
BN254 scalar field. This module owns the single scalar encoding used at the
proof-system and ledger boundaries (32-byte big-endian, canonical) and the
hash used both for commitments and for Merkle compression. The statements
evaluate their constraints with exactly this function, so any change here
changes which proofs verify.
"""

import logging
import secrets
from typing import Union

from cryptography.hazmat.primitives import hashes

from ..errors import ValidationError

logger = logging.getLogger(__name__)

# BN254 scalar field modulus
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

SCALAR_BYTES = 32
MAX_HASH_ARITY = 4

HASH_DOMAIN = b"shieldpool/field-hash/v1"

# Leaf value of an unoccupied tree position.
EMPTY_LEAF = 0


def to_scalar(value: int) -> int:
    """Reduce an integer into the field."""
    return value % FIELD_MODULUS


def is_scalar(value: object) -> bool:
    """Check that ``value`` is a canonical field element."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value < FIELD_MODULUS
    )


def require_scalar(value: object, name: str = "value") -> int:
    """Return ``value`` unchanged if it is a canonical scalar, else raise.

    Unlike :func:`to_scalar` this never wraps; out-of-range input is a caller
    bug, not something to reduce silently.
    """
    if not is_scalar(value):
        raise ValidationError(
            f"{name} is not a field element",
            field=name,
            value=value,
            expected=f"int in [0, {FIELD_MODULUS})",
        )
    return value


def encode_scalar(value: int) -> bytes:
    """Encode a scalar as 32 big-endian bytes."""
    require_scalar(value)
    return value.to_bytes(SCALAR_BYTES, byteorder="big")


def decode_scalar(data: bytes) -> int:
    """Decode a canonical 32-byte big-endian scalar."""
    if not isinstance(data, (bytes, bytearray)) or len(data) != SCALAR_BYTES:
        raise ValidationError(
            "Scalar encoding must be exactly 32 bytes",
            field="scalar",
            value=len(data) if isinstance(data, (bytes, bytearray)) else type(data),
            expected=SCALAR_BYTES,
        )
    value = int.from_bytes(data, byteorder="big")
    if value >= FIELD_MODULUS:
        raise ValidationError(
            "Scalar encoding is not canonical", field="scalar", value=hex(value)
        )
    return value


def random_scalar() -> int:
    """Sample a uniformly random scalar."""
    return secrets.randbelow(FIELD_MODULUS)


class FieldHasher:
    """SHA-256 based hash from scalars to a scalar."""

    @staticmethod
    def hash(*inputs: int) -> int:
        """
        Hash a short sequence of scalars to a scalar.

        Args:
            *inputs: between 1 and MAX_HASH_ARITY canonical scalars

        Returns:
            SHA-256(domain || arity || inputs) reduced into the field
        """
        if not 1 <= len(inputs) <= MAX_HASH_ARITY:
            raise ValidationError(
                f"Field hash arity must be between 1 and {MAX_HASH_ARITY}",
                field="arity",
                value=len(inputs),
            )

        digest = hashes.Hash(hashes.SHA256())
        digest.update(HASH_DOMAIN)
        digest.update(bytes([len(inputs)]))
        for value in inputs:
            digest.update(encode_scalar(value))
        return int.from_bytes(digest.finalize(), byteorder="big") % FIELD_MODULUS

    @staticmethod
    def hash_pair(left: int, right: int) -> int:
        """Merkle compression: hash of an ordered (left, right) pair."""
        return FieldHasher.hash(left, right)

    @staticmethod
    def hash_to_scalar(data: Union[bytes, str]) -> int:
        """Map arbitrary bytes (e.g. a domain label) to a scalar constant."""
        if isinstance(data, str):
            data = data.encode("utf-8")

        digest = hashes.Hash(hashes.SHA256())
        digest.update(HASH_DOMAIN)
        digest.update(b"\x00")
        digest.update(data)
        return int.from_bytes(digest.finalize(), byteorder="big") % FIELD_MODULUS


field_hash = FieldHasher.hash
hash_pair = FieldHasher.hash_pair
