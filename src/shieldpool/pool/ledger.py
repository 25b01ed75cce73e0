"""
Ledger state machine of the shielded pool.

The ledger holds the only authoritative state: the current root, the next
free leaf index, the set of spent nullifiers and the append-only commitment
log clients replay to rebuild their tree mirrors. It never sees a secret or a
path; it checks the cheap preconditions, verifies the proof against public
inputs it encodes itself, and commits the transition.

Verification runs outside the state lock. After it succeeds the preconditions
are checked again under the lock and the transition is applied in the same
critical section, so of two submissions racing on one root (or one nullifier)
exactly one is applied.
"""

import threading
from dataclasses import dataclass
from typing import List, Optional, Set

from ..crypto.field import require_scalar
from ..crypto.merkle import empty_root
from ..crypto.zkp.circuits import DepositCircuit, WithdrawCircuit, ZKCircuit
from ..crypto.zkp.core import Proof, ZKPManager
from ..errors import (
    CapacityExceededError,
    InvalidProofError,
    LeafIndexMismatchError,
    NullifierReusedError,
    ShieldPoolError,
    StaleRootError,
)
from ..logging import LogContext, get_logger
from .config import PoolConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Consistent view of the ledger state."""

    root: int
    next_index: int
    spent_count: int
    depth: int

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    @property
    def is_full(self) -> bool:
        return self.next_index >= self.capacity


class ShieldedPoolLedger:
    """Authoritative pool state and the deposit/withdraw transitions."""

    def __init__(self, config: PoolConfig, manager: Optional[ZKPManager] = None):
        """
        Initialize an empty pool.

        Args:
            config: pool parameters, shared with the clients
            manager: proof system to verify with; one is created from
                ``config.zkp`` when omitted
        """
        config.validate()
        self.config = config

        if manager is None:
            manager = ZKPManager(config.zkp)
        if not manager.is_initialized:
            manager.initialize()
        self.manager = manager

        self.deposit_circuit = DepositCircuit(config.depth, config.empty_leaf)
        self.withdraw_circuit = WithdrawCircuit(config.depth, config.nullifier_scheme)
        self.manager.register_circuit(self.deposit_circuit)
        self.manager.register_circuit(self.withdraw_circuit)

        self._root = empty_root(config.depth, config.empty_leaf)
        self._next_index = 0
        self._spent: Set[int] = set()
        self._commitments: List[int] = []
        self._lock = threading.RLock()
        self._context = LogContext(component="ledger")

    @property
    def root(self) -> int:
        with self._lock:
            return self._root

    @property
    def next_index(self) -> int:
        with self._lock:
            return self._next_index

    @property
    def capacity(self) -> int:
        return self.config.capacity

    def accept_deposit(
        self,
        proof: Proof,
        old_root: int,
        new_root: int,
        commitment: int,
        leaf_index: int,
    ) -> int:
        """
        Apply a proven deposit.

        Raises:
            StaleRootError: ``old_root`` is not the current root
            CapacityExceededError: the tree is full
            LeafIndexMismatchError: ``leaf_index`` is not the next free index
            InvalidProofError: the proof does not verify for these inputs

        Returns:
            The leaf index the commitment now occupies
        """
        for name, value in (
            ("old_root", old_root),
            ("new_root", new_root),
            ("commitment", commitment),
            ("leaf_index", leaf_index),
        ):
            require_scalar(value, name)

        with self._lock:
            error = self._check_deposit(old_root, leaf_index)
        if error is not None:
            self._reject("accept_deposit", error)

        public_inputs = DepositCircuit.encode_public_inputs(
            old_root, new_root, commitment, leaf_index
        )
        self._verify(self.deposit_circuit, proof, public_inputs, "accept_deposit")

        with self._lock:
            error = self._check_deposit(old_root, leaf_index)
            if error is None:
                self._root = new_root
                self._next_index += 1
                self._commitments.append(commitment)
                index = self._next_index - 1
        if error is not None:
            self._reject("accept_deposit", error)

        logger.info(
            "Deposit accepted",
            context=LogContext(operation="accept_deposit").merged_with(self._context),
            extra={"leaf_index": index, "root": hex(new_root)},
        )
        return index

    def accept_withdraw(self, proof: Proof, root_claim: int, nullifier: int) -> None:
        """
        Apply a proven withdrawal by spending its nullifier.

        Raises:
            StaleRootError: ``root_claim`` is not the current root
            NullifierReusedError: the nullifier was already spent
            InvalidProofError: the proof does not verify for these inputs
        """
        require_scalar(root_claim, "root_claim")
        require_scalar(nullifier, "nullifier")

        with self._lock:
            error = self._check_withdraw(root_claim, nullifier)
        if error is not None:
            self._reject("accept_withdraw", error)

        public_inputs = WithdrawCircuit.encode_public_inputs(root_claim, nullifier)
        self._verify(self.withdraw_circuit, proof, public_inputs, "accept_withdraw")

        with self._lock:
            error = self._check_withdraw(root_claim, nullifier)
            if error is None:
                self._spent.add(nullifier)
                spent_count = len(self._spent)
        if error is not None:
            self._reject("accept_withdraw", error)

        logger.info(
            "Withdrawal accepted",
            context=LogContext(operation="accept_withdraw").merged_with(self._context),
            extra={"spent_count": spent_count},
        )

    def _check_deposit(self, old_root: int, leaf_index: int) -> Optional[ShieldPoolError]:
        """First failed deposit precondition, in precedence order. Caller holds the lock."""
        if old_root != self._root:
            return StaleRootError(
                "Deposit built against a stale root",
                claimed_root=old_root,
                current_root=self._root,
            )
        if self._next_index >= self.capacity:
            return CapacityExceededError(
                f"Pool is full ({self.capacity} deposits)",
                capacity=self.capacity,
                next_index=self._next_index,
            )
        if leaf_index != self._next_index:
            return LeafIndexMismatchError(
                f"Deposit claims leaf {leaf_index}, next free leaf is {self._next_index}",
                claimed_index=leaf_index,
                next_index=self._next_index,
                capacity=self.capacity,
            )
        return None

    def _check_withdraw(self, root_claim: int, nullifier: int) -> Optional[ShieldPoolError]:
        """First failed withdraw precondition. Caller holds the lock."""
        if root_claim != self._root:
            return StaleRootError(
                "Withdrawal built against a stale root",
                claimed_root=root_claim,
                current_root=self._root,
            )
        if nullifier in self._spent:
            return NullifierReusedError("Nullifier already spent", nullifier=nullifier)
        return None

    def _verify(
        self,
        circuit: ZKCircuit,
        proof: Proof,
        public_inputs: List[bytes],
        operation: str,
    ) -> None:
        if not isinstance(proof, Proof) or proof.circuit_id != circuit.circuit_id:
            self._reject(
                operation,
                InvalidProofError(
                    f"Proof is not for {circuit.circuit_id}",
                    circuit_id=circuit.circuit_id,
                ),
            )

        result = self.manager.verify_proof(proof, public_inputs)
        if not result.is_valid:
            self._reject(
                operation,
                InvalidProofError(
                    f"Proof rejected: {result.error_message or result.status.name}",
                    circuit_id=circuit.circuit_id,
                    status=result.status.name,
                ),
            )

    def _reject(self, operation: str, error: Exception) -> None:
        logger.warning(
            f"{operation} rejected: {error}",
            context=LogContext(operation=operation).merged_with(self._context),
            extra={"error_code": getattr(error, "error_code", None)},
        )
        raise error

    def is_spent(self, nullifier: int) -> bool:
        with self._lock:
            return nullifier in self._spent

    def get_commitments(self, start: int = 0, end: Optional[int] = None) -> List[int]:
        """Accepted commitments in leaf order, ``[start:end]``."""
        with self._lock:
            return list(self._commitments[start:end])

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                root=self._root,
                next_index=self._next_index,
                spent_count=len(self._spent),
                depth=self.config.depth,
            )

    def __repr__(self) -> str:
        snap = self.snapshot()
        return (
            f"ShieldedPoolLedger(depth={snap.depth}, deposits={snap.next_index}, "
            f"spent={snap.spent_count})"
        )
