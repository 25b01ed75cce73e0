"""
Unit tests for pool configuration.
"""

import pytest

from shieldpool.crypto.commitments import NullifierScheme
from shieldpool.crypto.field import FIELD_MODULUS
from shieldpool.crypto.zkp import ZKPConfig, ZKPType
from shieldpool.errors import ConfigurationError, RetryPolicy
from shieldpool.pool import PoolConfig, ShieldedPoolLedger


class TestPoolConfig:
    """Test the PoolConfig class."""

    def test_defaults(self):
        """Test default configuration."""
        config = PoolConfig()
        config.validate()

        assert config.depth == 20
        assert config.empty_leaf == 0
        assert config.nullifier_scheme == NullifierScheme.IDENTITY
        assert config.capacity == 2**20
        assert config.zkp.backend_type == ZKPType.ZK_SNARK

    @pytest.mark.parametrize(
        "overrides,key",
        [
            ({"depth": 0}, "depth"),
            ({"depth": 33}, "depth"),
            ({"depth": "8"}, "depth"),
            ({"empty_leaf": FIELD_MODULUS}, "empty_leaf"),
            ({"empty_leaf": -1}, "empty_leaf"),
            ({"nullifier_scheme": "identity"}, "nullifier_scheme"),
            ({"max_retries": -1}, "max_retries"),
            ({"retry_base_delay": -1.0}, "retry_base_delay"),
            ({"retry_base_delay": 2.0, "retry_max_delay": 1.0}, "retry_base_delay"),
        ],
    )
    def test_invalid(self, overrides, key):
        """Test each validation rule."""
        with pytest.raises(ConfigurationError) as exc_info:
            PoolConfig(**overrides).validate()
        assert exc_info.value.config_key == key

    def test_invalid_zkp_config(self):
        """Test proof system errors are wrapped."""
        config = PoolConfig(zkp=ZKPConfig(max_proof_size=0))
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        assert exc_info.value.config_key == "zkp"
        assert isinstance(exc_info.value.cause, ValueError)

    def test_ledger_rejects_invalid_config(self):
        """Test the ledger validates its configuration."""
        with pytest.raises(ConfigurationError):
            ShieldedPoolLedger(PoolConfig(depth=0))

    def test_retry_policy(self):
        """Test the derived retry policy."""
        config = PoolConfig(max_retries=5, retry_base_delay=0.1, retry_max_delay=2.0)
        policy = config.retry_policy()
        assert isinstance(policy, RetryPolicy)
        assert policy.max_retries == 5
        assert policy.base_delay == 0.1
        assert policy.max_delay == 2.0

    def test_dict_round_trip(self):
        """Test conversion to and from a dictionary."""
        config = PoolConfig(
            depth=8,
            nullifier_scheme=NullifierScheme.HASHED,
            max_retries=1,
            zkp=ZKPConfig(backend_type=ZKPType.MOCK),
        )
        data = config.to_dict()
        assert data["nullifier_scheme"] == "hashed"
        assert data["zkp"]["backend_type"] == "mock"

        restored = PoolConfig.from_dict(data)
        assert restored.depth == 8
        assert restored.nullifier_scheme == NullifierScheme.HASHED
        assert restored.max_retries == 1
        assert restored.zkp.backend_type == ZKPType.MOCK

    def test_dict_round_trip_keeps_proof_settings(self):
        """Test cache, batch and proof-limit settings survive a round trip."""
        zkp = ZKPConfig(
            backend_type=ZKPType.MOCK,
            max_proof_size=1024,
            max_public_inputs=8,
            enable_verification_cache=False,
            cache_size=10,
            cache_ttl=60.0,
            enable_batch_verification=False,
            max_batch_size=5,
            batch_workers=2,
        )
        restored = PoolConfig.from_dict(PoolConfig(depth=4, zkp=zkp).to_dict())
        assert restored.zkp == zkp
        restored.validate()

    def test_from_empty_dict(self):
        """Test missing keys fall back to defaults."""
        config = PoolConfig.from_dict({})
        assert config.depth == 20
        assert config.nullifier_scheme == NullifierScheme.IDENTITY
        assert config.zkp.backend_type == ZKPType.ZK_SNARK
