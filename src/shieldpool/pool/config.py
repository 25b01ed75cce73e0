"""Configuration for a shielded pool deployment."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict

from ..crypto.commitments import NullifierScheme
from ..crypto.field import EMPTY_LEAF, is_scalar
from ..crypto.merkle import MAX_DEPTH
from ..crypto.zkp.core import ZKPConfig, ZKPType
from ..errors import ConfigurationError, RetryPolicy


@dataclass
class PoolConfig:
    """Parameters shared by a ledger and the clients that talk to it.

    Ledger and clients must agree on ``depth``, ``empty_leaf`` and
    ``nullifier_scheme``; these fix the statements and therefore which proofs
    verify.
    """

    depth: int = 20
    empty_leaf: int = EMPTY_LEAF
    nullifier_scheme: NullifierScheme = NullifierScheme.IDENTITY

    # Client retry behaviour on stale roots
    max_retries: int = 3
    retry_base_delay: float = 0.0
    retry_max_delay: float = 5.0

    zkp: ZKPConfig = field(default_factory=ZKPConfig)

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not isinstance(self.depth, int) or not 1 <= self.depth <= MAX_DEPTH:
            raise ConfigurationError(
                f"depth must be between 1 and {MAX_DEPTH}",
                config_key="depth",
                config_value=self.depth,
            )
        if not is_scalar(self.empty_leaf):
            raise ConfigurationError(
                "empty_leaf must be a field element",
                config_key="empty_leaf",
                config_value=self.empty_leaf,
            )
        if not isinstance(self.nullifier_scheme, NullifierScheme):
            raise ConfigurationError(
                "nullifier_scheme must be a NullifierScheme",
                config_key="nullifier_scheme",
                config_value=self.nullifier_scheme,
            )
        if self.max_retries < 0:
            raise ConfigurationError(
                "max_retries must not be negative",
                config_key="max_retries",
                config_value=self.max_retries,
            )
        if self.retry_base_delay < 0 or self.retry_max_delay < self.retry_base_delay:
            raise ConfigurationError(
                "retry delays must satisfy 0 <= retry_base_delay <= retry_max_delay",
                config_key="retry_base_delay",
                config_value=self.retry_base_delay,
            )
        try:
            self.zkp.validate()
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid proof system configuration: {e}", config_key="zkp", cause=e
            )

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.retry_base_delay,
            max_delay=self.retry_max_delay,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, including the nested proof system settings."""
        zkp = asdict(self.zkp)
        zkp["backend_type"] = self.zkp.backend_type.value
        return {
            "depth": self.depth,
            "empty_leaf": self.empty_leaf,
            "nullifier_scheme": self.nullifier_scheme.value,
            "max_retries": self.max_retries,
            "retry_base_delay": self.retry_base_delay,
            "retry_max_delay": self.retry_max_delay,
            "zkp": zkp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoolConfig":
        """Create from dictionary."""
        zkp = dict(data.get("zkp", {}))
        zkp["backend_type"] = ZKPType(zkp.get("backend_type", ZKPType.ZK_SNARK.value))
        return cls(
            depth=data.get("depth", 20),
            empty_leaf=data.get("empty_leaf", EMPTY_LEAF),
            nullifier_scheme=NullifierScheme(data.get("nullifier_scheme", "identity")),
            max_retries=data.get("max_retries", 3),
            retry_base_delay=data.get("retry_base_delay", 0.0),
            retry_max_delay=data.get("retry_max_delay", 5.0),
            zkp=ZKPConfig(**zkp),
        )
