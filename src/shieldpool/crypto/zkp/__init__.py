"""
Zero-Knowledge Proof (ZKP) layer for ShieldPool.

This package is the proof-system boundary of the pool. The ledger and the
client only rely on its contract: a registered statement can be proved from a
satisfying witness, and a proof verifies against exactly the public inputs it
was produced for.

Key Features:
- Backend abstraction (simulated zk-SNARK with trusted setup, mock for tests)
- Deposit and withdraw circuits over the field hash and Merkle paths
- Verification caching and parallel batch verification
- Input validation: public inputs must be canonical scalar encodings
"""

from .backends import CircuitBackend, MockZKPBackend, SimulatedSNARKBackend
from .circuits import (
    Constraint,
    ConstraintSystem,
    ConstraintType,
    DepositCircuit,
    PrivateInputs,
    PublicInputs,
    Witness,
    WithdrawCircuit,
    ZKCircuit,
)
from .core import (
    Proof,
    ProofRequest,
    ProofResult,
    VerificationResult,
    ZKPBackend,
    ZKPConfig,
    ZKPError,
    ZKPManager,
    ZKPStatus,
    ZKPType,
)
from .generation import (
    ProofGenerator,
    ProvingKey,
    SetupType,
    TrustedSetup,
    VerificationKey,
    create_proof_generator,
)
from .verification import BatchVerifier, ProofVerifier, VerificationCache

__all__ = [
    # Core types
    "ZKPBackend",
    "ZKPConfig",
    "ZKPError",
    "ZKPManager",
    "Proof",
    "ProofRequest",
    "ProofResult",
    "VerificationResult",
    "ZKPType",
    "ZKPStatus",
    # Backends
    "CircuitBackend",
    "SimulatedSNARKBackend",
    "MockZKPBackend",
    # Circuits
    "ZKCircuit",
    "DepositCircuit",
    "WithdrawCircuit",
    "Constraint",
    "ConstraintSystem",
    "ConstraintType",
    "Witness",
    "PublicInputs",
    "PrivateInputs",
    # Verification
    "ProofVerifier",
    "BatchVerifier",
    "VerificationCache",
    # Generation
    "ProofGenerator",
    "TrustedSetup",
    "SetupType",
    "ProvingKey",
    "VerificationKey",
    "create_proof_generator",
]
