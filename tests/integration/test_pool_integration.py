"""
Integration tests for the shielded pool.

These tests drive the ledger, the participant clients and the proof system
together through complete deposit and withdrawal scenarios.
"""

import pytest

from shieldpool import PoolClient, PoolConfig, Secret, ShieldedPoolLedger
from shieldpool.crypto.commitments import NullifierScheme
from shieldpool.crypto.field import field_hash
from shieldpool.crypto.merkle import empty_root
from shieldpool.crypto.zkp import (
    ProofRequest,
    WithdrawCircuit,
    ZKPConfig,
    ZKPStatus,
    ZKPType,
)
from shieldpool.errors import (
    CapacityExceededError,
    InvalidProofError,
    NullifierReusedError,
    StaleRootError,
)
from shieldpool.logging import (
    LogConfig,
    LogLevel,
    MemoryHandler,
    setup_logging,
    shutdown_logging,
)


@pytest.fixture(params=[ZKPType.MOCK, ZKPType.ZK_SNARK], ids=["mock", "snark"])
def ledger(request):
    config = PoolConfig(depth=2, zkp=ZKPConfig(backend_type=request.param))
    return ShieldedPoolLedger(config)


class TestPoolScenario:
    """Test the two-deposit, one-withdrawal scenario on a depth 2 pool."""

    def test_deposits_build_expected_tree(self, ledger):
        """Test the ledger root after two deposits."""
        alice = PoolClient.for_ledger(ledger, "alice")
        first = Secret(id=11, r=12)
        second = Secret(id=21, r=22)

        assert ledger.root == empty_root(2)
        alice.deposit(ledger, first)
        alice.deposit(ledger, second)

        c1, c2 = first.commitment, second.commitment
        expected = field_hash(field_hash(c1, c2), field_hash(0, 0))
        assert ledger.root == expected
        assert ledger.next_index == 2
        assert ledger.get_commitments() == [c1, c2]

    def test_withdraw_then_double_spend(self, ledger):
        """Test a withdrawal succeeds once and only once."""
        alice = PoolClient.for_ledger(ledger, "alice")
        first = Secret(id=11, r=12)
        alice.deposit(ledger, first)
        alice.deposit(ledger, Secret(id=21, r=22))

        root_before = ledger.root
        alice.withdraw(ledger, first)
        assert ledger.is_spent(11)
        assert ledger.root == root_before
        assert ledger.snapshot().spent_count == 1

        with pytest.raises(NullifierReusedError):
            alice.withdraw(ledger, first)

    def test_wrong_index_is_unsatisfiable(self, ledger):
        """Test proving membership at a leaf that holds another commitment."""
        alice = PoolClient.for_ledger(ledger, "alice")
        first = Secret(id=11, r=12)
        second = Secret(id=21, r=22)
        alice.deposit(ledger, first)
        alice.deposit(ledger, second)

        circuit = ledger.withdraw_circuit
        path = alice.tree.path_to(0)
        assert list(path.siblings) == [second.commitment, field_hash(0, 0)]

        def prove(index):
            return ledger.manager.generate_proof(
                ProofRequest(
                    circuit_id=circuit.circuit_id,
                    public_inputs=WithdrawCircuit.encode_public_inputs(ledger.root, first.id),
                    private_inputs=circuit.encode_private_inputs(first, index, path.siblings),
                )
            )

        assert prove(0).is_success
        result = prove(1)
        assert result.status == ZKPStatus.UNSATISFIABLE_WITNESS
        assert result.proof is None

    def test_capacity(self, ledger):
        """Test a depth 2 pool holds exactly four deposits."""
        client = PoolClient.for_ledger(ledger)
        secrets = [Secret(id=i + 1, r=i + 100) for i in range(4)]
        for i, secret in enumerate(secrets):
            assert client.deposit(ledger, secret).index == i

        with pytest.raises(CapacityExceededError):
            client.deposit(ledger, Secret(id=9, r=9))
        assert ledger.snapshot().is_full

        for secret in secrets:
            client.withdraw(ledger, secret)
        assert ledger.snapshot().spent_count == 4

    def test_stale_withdraw_is_rebuilt(self, ledger):
        """Test a deposit between proving and submitting is absorbed by a retry."""
        alice = PoolClient.for_ledger(ledger, "alice")
        bob = PoolClient.for_ledger(ledger, "bob")
        secret = Secret(id=11, r=12)
        alice.deposit(ledger, secret)

        tx = alice.build_withdraw(secret)
        bob.sync(ledger)
        bob.deposit(ledger, Secret(id=31, r=32))

        with pytest.raises(StaleRootError):
            ledger.accept_withdraw(tx.proof, tx.root, tx.nullifier)

        alice.withdraw(ledger, secret)
        assert ledger.is_spent(secret.id)


class TestMultipleParticipants:
    """Test several clients sharing one ledger."""

    def test_clients_share_one_ledger(self):
        """Test each client withdraws its own deposit from a shared tree."""
        ledger = ShieldedPoolLedger(
            PoolConfig(depth=4, zkp=ZKPConfig(backend_type=ZKPType.MOCK))
        )
        clients = [PoolClient.for_ledger(ledger, f"p{i}") for i in range(3)]
        secrets = [Secret(id=100 + i, r=200 + i) for i in range(3)]

        for client, secret in zip(clients, secrets):
            client.sync(ledger)
            client.deposit(ledger, secret)

        for client, secret in zip(reversed(clients), reversed(secrets)):
            client.withdraw(ledger, secret)

        assert all(ledger.is_spent(secret.id) for secret in secrets)
        for client in clients:
            client.sync(ledger)
            assert client.tree.root == ledger.root

    def test_separate_proof_systems_do_not_interoperate(self):
        """Test a SNARK proof from another setup is rejected."""
        ledger = ShieldedPoolLedger(PoolConfig(depth=2))
        other = ShieldedPoolLedger(PoolConfig(depth=2))
        client = PoolClient.for_ledger(other)

        tx = client.build_deposit(Secret(id=1, r=2))
        with pytest.raises(InvalidProofError):
            ledger.accept_deposit(
                tx.proof, tx.old_root, tx.new_root, tx.commitment, tx.leaf_index
            )
        assert ledger.next_index == 0

    def test_hashed_nullifiers_keep_id_private(self):
        """Test the hashed scheme end to end."""
        config = PoolConfig(
            depth=3,
            nullifier_scheme=NullifierScheme.HASHED,
            zkp=ZKPConfig(backend_type=ZKPType.MOCK),
        )
        ledger = ShieldedPoolLedger(config)
        client = PoolClient.for_ledger(ledger)
        secret = Secret(id=77, r=78)
        client.deposit(ledger, secret)

        tx = client.withdraw(ledger, secret)
        assert tx.nullifier != secret.id
        assert (77).to_bytes(32, "big") not in tx.proof.public_inputs


class TestPoolLogging:
    """Test ledger and client events reach the log handlers."""

    def setup_method(self):
        manager = setup_logging(LogConfig(level=LogLevel.DEBUG, format_type="json"))
        manager.remove_handler("console")
        self.memory = MemoryHandler()
        manager.add_handler("memory", self.memory)

    def teardown_method(self):
        shutdown_logging()

    def test_events(self):
        """Test a deposit and withdrawal are logged by both sides."""
        ledger = ShieldedPoolLedger(
            PoolConfig(depth=2, zkp=ZKPConfig(backend_type=ZKPType.MOCK))
        )
        client = PoolClient.for_ledger(ledger, "alice")
        secret = Secret(id=5, r=6)
        client.deposit(ledger, secret)
        client.withdraw(ledger, secret)

        messages = [(log["component"], log["message"]) for log in self.memory.get_logs()]
        assert ("ledger", "Deposit accepted") in messages
        assert ("ledger", "Withdrawal accepted") in messages
        assert ("client", "Deposit completed") in messages
        assert ("client", "Withdrawal completed") in messages

    def test_secrets_never_logged(self):
        """Test log output never contains secret values."""
        ledger = ShieldedPoolLedger(
            PoolConfig(depth=2, zkp=ZKPConfig(backend_type=ZKPType.MOCK))
        )
        client = PoolClient.for_ledger(ledger)
        secret = Secret(id=918273645, r=564738291)
        client.deposit(ledger, secret)

        text = repr(self.memory.get_logs())
        assert "918273645" not in text
        assert "564738291" not in text
