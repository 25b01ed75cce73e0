"""
Commitment and nullifier scheme.

A deposit is identified by two private scalars: ``id`` (which also seeds the
nullifier) and ``r`` (a blinding factor). The public commitment is
``Hash(id, r)``; the nullifier revealed at withdrawal is derived from ``id``
alone, so it can be computed without consulting the tree and is the same for
every withdrawal attempt of one deposit.
"""

from dataclasses import dataclass
from enum import Enum

from .field import FieldHasher, field_hash, random_scalar, require_scalar

NULLIFIER_TAG = FieldHasher.hash_to_scalar("shieldpool/nullifier")


class NullifierScheme(Enum):
    """How the public nullifier is derived from ``id``."""

    IDENTITY = "identity"  # nullifier = id, revealed as a public input
    HASHED = "hashed"  # nullifier = Hash(id, NULLIFIER_TAG), id stays private


def commit(secret_id: int, r: int) -> int:
    """Commitment to a deposit secret."""
    return field_hash(require_scalar(secret_id, "id"), require_scalar(r, "r"))


def derive_nullifier(
    secret_id: int, scheme: NullifierScheme = NullifierScheme.IDENTITY
) -> int:
    """Nullifier for the deposit seeded by ``secret_id``."""
    require_scalar(secret_id, "id")
    if scheme == NullifierScheme.IDENTITY:
        return secret_id
    if scheme == NullifierScheme.HASHED:
        return field_hash(secret_id, NULLIFIER_TAG)
    raise ValueError(f"Unsupported nullifier scheme: {scheme}")


@dataclass(frozen=True)
class Secret:
    """The depositor's private (id, r) pair."""

    id: int
    r: int

    def __post_init__(self):
        require_scalar(self.id, "id")
        require_scalar(self.r, "r")

    @classmethod
    def generate(cls) -> "Secret":
        """Sample id and r independently."""
        return cls(id=random_scalar(), r=random_scalar())

    @property
    def commitment(self) -> int:
        return commit(self.id, self.r)

    def nullifier(self, scheme: NullifierScheme = NullifierScheme.IDENTITY) -> int:
        return derive_nullifier(self.id, scheme)

    def __repr__(self) -> str:
        return f"Secret(commitment={self.commitment:#x})"


@dataclass(frozen=True)
class DepositNote:
    """Private record of an accepted deposit: the secret and where it landed."""

    secret: Secret
    index: int
    commitment: int

    def __post_init__(self):
        if self.secret.commitment != self.commitment:
            raise ValueError("commitment does not match secret")
