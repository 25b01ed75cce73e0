"""
Participant side of the pool.

A ``PoolClient`` owns a mirror of the ledger's commitment tree and the
private records of its own deposits. It builds witnesses from that mirror,
asks the proof system for proofs and submits them. The mirror is kept in step
with the ledger by replaying the ledger's commitment log; any disagreement
between the two roots is reported as ``TreeDivergenceError`` instead of being
papered over.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..crypto.commitments import DepositNote, Secret
from ..crypto.merkle import IncrementalMerkleTree, TreeSnapshot
from ..crypto.zkp.circuits import DepositCircuit, WithdrawCircuit, ZKCircuit
from ..crypto.zkp.core import Proof, ProofRequest, ZKPError, ZKPManager, ZKPStatus
from ..errors import (
    NoteNotFoundError,
    ShieldPoolError,
    TreeDivergenceError,
    UnsatisfiableWitnessError,
)
from ..logging import LogContext, get_logger
from .config import PoolConfig
from .ledger import ShieldedPoolLedger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DepositTransaction:
    """Everything the ledger needs to apply a deposit. Contains no secret."""

    proof: Proof = field(repr=False)
    old_root: int
    new_root: int
    commitment: int
    leaf_index: int


@dataclass(frozen=True)
class WithdrawTransaction:
    """Everything the ledger needs to apply a withdrawal. Contains no secret."""

    proof: Proof = field(repr=False)
    root: int
    nullifier: int


class PoolClient:
    """Tree mirror, private deposit records and proof building for one participant."""

    def __init__(
        self,
        config: PoolConfig,
        manager: ZKPManager,
        participant_id: Optional[str] = None,
    ):
        config.validate()
        self.config = config
        self.manager = manager
        if not manager.is_initialized:
            manager.initialize()

        self.deposit_circuit = DepositCircuit(config.depth, config.empty_leaf)
        self.withdraw_circuit = WithdrawCircuit(config.depth, config.nullifier_scheme)
        self.manager.register_circuit(self.deposit_circuit)
        self.manager.register_circuit(self.withdraw_circuit)

        self.tree = IncrementalMerkleTree(config.depth, config.empty_leaf)
        self.retry_policy = config.retry_policy()
        self.participant_id = participant_id

        self._notes: Dict[int, DepositNote] = {}
        self._pending: Dict[int, Secret] = {}
        self._lock = threading.RLock()
        self._context = LogContext(component="client", participant_id=participant_id)

    @classmethod
    def for_ledger(
        cls, ledger: ShieldedPoolLedger, participant_id: Optional[str] = None
    ) -> "PoolClient":
        """Client sharing the ledger's configuration and proof system, already synced."""
        client = cls(ledger.config, ledger.manager, participant_id)
        client.sync(ledger)
        return client

    def _log_context(self, operation: str) -> LogContext:
        return LogContext(operation=operation).merged_with(self._context)

    @staticmethod
    def new_secret() -> Secret:
        return Secret.generate()

    def _prove(
        self, circuit: ZKCircuit, public_inputs: List[bytes], private_inputs: List[bytes]
    ) -> Proof:
        result = self.manager.generate_proof(
            ProofRequest(
                circuit_id=circuit.circuit_id,
                public_inputs=public_inputs,
                private_inputs=private_inputs,
            )
        )
        if result.status == ZKPStatus.UNSATISFIABLE_WITNESS:
            raise UnsatisfiableWitnessError(
                f"Witness does not satisfy {circuit.circuit_id}",
                circuit_id=circuit.circuit_id,
                failed_constraints=result.metadata.get("failed_constraints"),
            )
        if not result.is_success:
            raise ZKPError(
                result.error_message or "Proof generation failed", status=result.status
            )
        return result.proof

    def build_deposit(self, secret: Secret) -> DepositTransaction:
        """
        Prove insertion of ``secret``'s commitment at the mirror's next index.

        The mirror is not modified; call :meth:`apply_deposit` once the ledger
        has accepted the transaction.
        """
        commitment = secret.commitment
        with self._lock:
            pending = self.tree.prepare_insert(commitment)
            public_inputs = DepositCircuit.encode_public_inputs(
                pending.old_root, pending.new_root, commitment, pending.index
            )
            private_inputs = DepositCircuit.encode_private_inputs(
                secret, pending.path.siblings
            )
            proof = self._prove(self.deposit_circuit, public_inputs, private_inputs)
            self._pending[commitment] = secret

        return DepositTransaction(
            proof=proof,
            old_root=pending.old_root,
            new_root=pending.new_root,
            commitment=commitment,
            leaf_index=pending.index,
        )

    def apply_deposit(self, tx: DepositTransaction) -> DepositNote:
        """Insert an accepted deposit into the mirror and record the note."""
        with self._lock:
            secret = self._pending.get(tx.commitment)
            if secret is None:
                raise NoteNotFoundError(
                    "No pending deposit for this commitment", commitment=tx.commitment
                )

            if self.tree.next_index != tx.leaf_index or self.tree.root != tx.old_root:
                raise TreeDivergenceError(
                    f"Mirror moved since leaf {tx.leaf_index} was prepared",
                    local_root=self.tree.root,
                    ledger_root=tx.old_root,
                )

            index = self.tree.insert(tx.commitment)
            if self.tree.root != tx.new_root:
                raise TreeDivergenceError(
                    "Mirror root differs from the accepted deposit root",
                    local_root=self.tree.root,
                    ledger_root=tx.new_root,
                )

            del self._pending[tx.commitment]
            note = DepositNote(secret=secret, index=index, commitment=tx.commitment)
            self._notes[tx.commitment] = note

        logger.debug(
            "Deposit applied to mirror",
            context=self._log_context("apply_deposit"),
            extra={"leaf_index": index},
        )
        return note

    def deposit(
        self, ledger: ShieldedPoolLedger, secret: Optional[Secret] = None
    ) -> DepositNote:
        """Build, submit and apply a deposit, resyncing and rebuilding on stale roots."""
        secret = secret or self.new_secret()

        def attempt() -> DepositNote:
            with self._lock:
                tx = self.build_deposit(secret)
                try:
                    ledger.accept_deposit(
                        tx.proof, tx.old_root, tx.new_root, tx.commitment, tx.leaf_index
                    )
                except ShieldPoolError:
                    self._pending.pop(tx.commitment, None)
                    raise
                return self.apply_deposit(tx)

        note = self.retry_policy.run(attempt, on_retry=lambda e, n: self.sync(ledger))
        logger.info(
            "Deposit completed",
            context=self._log_context("deposit"),
            extra={"leaf_index": note.index},
        )
        return note

    def sync(self, ledger: ShieldedPoolLedger) -> int:
        """
        Replay commitments the mirror has not seen yet.

        Returns:
            Number of leaves inserted

        Raises:
            TreeDivergenceError: the mirror does not reproduce the ledger root
        """
        snapshot = ledger.snapshot()
        with self._lock:
            local = self.tree.next_index
            if local > snapshot.next_index:
                raise TreeDivergenceError(
                    f"Mirror holds {local} leaves, ledger only {snapshot.next_index}",
                    local_root=self.tree.root,
                    ledger_root=snapshot.root,
                )

            missing = ledger.get_commitments(local, snapshot.next_index)
            for commitment in missing:
                self.tree.insert(commitment)

            if self.tree.root != snapshot.root:
                raise TreeDivergenceError(
                    "Mirror root differs from ledger root after sync",
                    local_root=self.tree.root,
                    ledger_root=snapshot.root,
                )

        if missing:
            logger.debug(
                "Mirror synced",
                context=self._log_context("sync"),
                extra={"inserted": len(missing), "next_index": snapshot.next_index},
            )
        return len(missing)

    def find_note(self, secret: Secret) -> DepositNote:
        """
        Deposit record for ``secret``.

        Falls back to locating the commitment in the mirror, so a participant
        who only kept ``(id, r)`` can still withdraw after a sync.
        """
        commitment = secret.commitment
        with self._lock:
            note = self._notes.get(commitment)
            if note is not None:
                return note

            for index, leaf in enumerate(self.tree.leaves()):
                if leaf == commitment:
                    note = DepositNote(secret=secret, index=index, commitment=commitment)
                    self._notes[commitment] = note
                    return note

        raise NoteNotFoundError(
            "Commitment not found in the local tree", commitment=commitment
        )

    def build_withdraw(self, secret: Secret) -> WithdrawTransaction:
        """Prove membership of ``secret``'s commitment under the mirror's current root."""
        with self._lock:
            note = self.find_note(secret)
            path = self.tree.path_to(note.index)
            if path.leaf != note.commitment:
                raise TreeDivergenceError(
                    f"Leaf {note.index} does not hold the recorded commitment",
                    local_root=path.root,
                )

            nullifier = secret.nullifier(self.config.nullifier_scheme)
            public_inputs = WithdrawCircuit.encode_public_inputs(path.root, nullifier)
            private_inputs = self.withdraw_circuit.encode_private_inputs(
                secret, note.index, path.siblings
            )
            proof = self._prove(self.withdraw_circuit, public_inputs, private_inputs)
            self.tree.ensure_current(path)

        return WithdrawTransaction(proof=proof, root=path.root, nullifier=nullifier)

    def withdraw(self, ledger: ShieldedPoolLedger, secret: Secret) -> WithdrawTransaction:
        """Build and submit a withdrawal, resyncing and rebuilding on stale roots."""

        def attempt() -> WithdrawTransaction:
            tx = self.build_withdraw(secret)
            ledger.accept_withdraw(tx.proof, tx.root, tx.nullifier)
            return tx

        tx = self.retry_policy.run(attempt, on_retry=lambda e, n: self.sync(ledger))
        logger.info("Withdrawal completed", context=self._log_context("withdraw"))
        return tx

    @property
    def notes(self) -> List[DepositNote]:
        with self._lock:
            return sorted(self._notes.values(), key=lambda note: note.index)

    def snapshot(self) -> TreeSnapshot:
        return self.tree.snapshot()

    def __repr__(self) -> str:
        return (
            f"PoolClient(participant_id={self.participant_id!r}, "
            f"leaves={self.tree.next_index}, notes={len(self._notes)})"
        )
