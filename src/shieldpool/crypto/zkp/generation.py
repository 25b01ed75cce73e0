"""
ZKP proof generation components.

This module provides proof generation, the per-circuit setup and key
management. Proofs are simulated: a proof is a MAC under the circuit's key
over the circuit id, a fresh nonce and the public inputs, and it is only
issued after the circuit has checked the witness. A proof therefore attests
"the prover held a satisfying witness for exactly these public inputs" to
anyone holding the verification key, which is the contract the ledger needs.
"""

import hashlib
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from .circuits import PublicInputs, Witness, ZKCircuit
from .core import ZKPError, ZKPStatus, ZKPType

KEY_BYTES = 32


class SetupType(Enum):
    """Types of trusted setup."""

    CIRCUIT_SPECIFIC = "circuit_specific"  # one setup per statement
    NO_SETUP = "no_setup"  # keys derived from the circuit id (mock only)


@dataclass
class TrustedSetup:
    """Represents a trusted setup for proof generation."""

    setup_id: str
    setup_type: SetupType
    circuit_id: str
    proving_key: bytes
    verification_key: bytes
    setup_parameters: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    expires_at: Optional[float] = None

    @classmethod
    def generate(cls, circuit: ZKCircuit, lifetime: Optional[float] = None) -> "TrustedSetup":
        """Run a fresh circuit-specific setup.

        The simulated scheme is designated-verifier: proving and verification
        keys share the same secret.
        """
        secret = secrets.token_bytes(KEY_BYTES)
        info = circuit.get_circuit_info()
        created_at = time.time()
        return cls(
            setup_id=secrets.token_hex(8),
            setup_type=SetupType.CIRCUIT_SPECIFIC,
            circuit_id=circuit.circuit_id,
            proving_key=secret,
            verification_key=secret,
            setup_parameters={
                "constraint_count": info["constraint_count"],
                "public_inputs": len(info["public_variables"]),
            },
            created_at=created_at,
            expires_at=created_at + lifetime if lifetime else None,
        )

    def is_expired(self) -> bool:
        """Check if setup is expired."""
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at

    def validate(self) -> bool:
        """Validate setup data."""
        if not self.setup_id or not self.circuit_id:
            return False
        if not self.proving_key or not self.verification_key:
            return False
        if self.expires_at and self.expires_at <= self.created_at:
            return False
        return True


@dataclass
class ProvingKey:
    """Proving key for generating proofs."""

    key_data: bytes
    key_type: ZKPType
    circuit_id: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def get_hash(self) -> str:
        """Get hash of the proving key."""
        return hashlib.sha256(self.key_data).hexdigest()

    def validate(self) -> bool:
        """Validate proving key."""
        return bool(self.key_data and self.circuit_id)

    def __repr__(self) -> str:
        return f"ProvingKey(circuit_id={self.circuit_id!r}, key_type={self.key_type.value})"


@dataclass
class VerificationKey:
    """Verification key for verifying proofs."""

    key_data: bytes
    key_type: ZKPType
    circuit_id: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def get_hash(self) -> str:
        """Get hash of the verification key."""
        return hashlib.sha256(self.key_data).hexdigest()

    def validate(self) -> bool:
        """Validate verification key."""
        return bool(self.key_data and self.circuit_id)

    def __repr__(self) -> str:
        return (
            f"VerificationKey(circuit_id={self.circuit_id!r}, "
            f"key_type={self.key_type.value}, hash={self.get_hash()[:16]})"
        )


def _proof_message(circuit_id: str, nonce: bytes, public_inputs: PublicInputs) -> bytes:
    circuit = circuit_id.encode("utf-8")
    return (
        len(circuit).to_bytes(2, "big")
        + circuit
        + len(nonce).to_bytes(2, "big")
        + nonce
        + public_inputs.to_bytes()
    )


def compute_proof_tag(
    key: bytes, circuit_id: str, nonce: bytes, public_inputs: PublicInputs
) -> bytes:
    """HMAC-SHA256 binding a proof to its statement and public inputs."""
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(_proof_message(circuit_id, nonce, public_inputs))
    return mac.finalize()


def verify_proof_tag(
    key: bytes, circuit_id: str, nonce: bytes, public_inputs: PublicInputs, tag: bytes
) -> bool:
    """Constant-time check of a proof tag."""
    mac = hmac.HMAC(key, hashes.SHA256())
    mac.update(_proof_message(circuit_id, nonce, public_inputs))
    try:
        mac.verify(tag)
    except InvalidSignature:
        return False
    return True


class ProofGenerator(ABC):
    """Abstract base class for proof generators."""

    key_type: ZKPType

    def __init__(self, circuit: ZKCircuit, setup: Optional[TrustedSetup] = None):
        self.circuit = circuit
        self.setup = setup
        self._proving_key: Optional[ProvingKey] = None
        self._verification_key: Optional[VerificationKey] = None
        self._initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the proof generator."""
        pass

    def generate_proof(
        self, witness: Witness, public_inputs: PublicInputs, nonce: bytes
    ) -> Tuple[bytes, Dict[str, Any]]:
        """Generate a proof for the given witness and public inputs."""
        if not self._initialized:
            raise ZKPError("Proof generator not initialized")

        failed = self.circuit.failed_constraints(witness)
        if failed:
            raise ZKPError(
                "Witness does not satisfy the circuit",
                status=ZKPStatus.UNSATISFIABLE_WITNESS,
                details={"failed_constraints": failed},
            )

        proof_data = compute_proof_tag(
            self._proving_key.key_data, self.circuit.circuit_id, nonce, public_inputs
        )
        metadata = {
            "generator": self.key_type.value,
            "circuit_id": self.circuit.circuit_id,
            "public_inputs_count": len(public_inputs.inputs),
        }
        if self.setup is not None:
            metadata["setup_id"] = self.setup.setup_id
        return proof_data, metadata

    def get_proving_key(self) -> ProvingKey:
        """Get the proving key."""
        if not self._initialized:
            raise ZKPError("Proof generator not initialized")
        return self._proving_key

    def get_verification_key(self) -> VerificationKey:
        """Get the verification key."""
        if not self._initialized:
            raise ZKPError("Proof generator not initialized")
        return self._verification_key

    @property
    def is_initialized(self) -> bool:
        """Check if generator is initialized."""
        return self._initialized

    def validate_witness(self, witness: Witness) -> bool:
        """Validate witness against circuit."""
        return self.circuit.verify_witness(witness)


class MockProofGenerator(ProofGenerator):
    """Mock proof generator for testing.

    The key is derived from the circuit id alone, so anyone can reproduce it.
    """

    key_type = ZKPType.MOCK

    def initialize(self) -> None:
        """Initialize the mock proof generator."""
        if self._initialized:
            return

        key = hashlib.sha256(b"shieldpool/mock-key|" + self.circuit.circuit_id.encode()).digest()
        self._proving_key = ProvingKey(
            key_data=key, key_type=ZKPType.MOCK, circuit_id=self.circuit.circuit_id
        )
        self._verification_key = VerificationKey(
            key_data=key, key_type=ZKPType.MOCK, circuit_id=self.circuit.circuit_id
        )
        self._initialized = True


class SimulatedSNARKGenerator(ProofGenerator):
    """Proof generator keyed by a circuit-specific trusted setup."""

    key_type = ZKPType.ZK_SNARK

    def __init__(self, circuit: ZKCircuit, setup: TrustedSetup):
        super().__init__(circuit, setup)

    def initialize(self) -> None:
        """Initialize the generator from its setup."""
        if self._initialized:
            return

        if not self.setup:
            raise ZKPError("Trusted setup required for zk-SNARKs")

        if not self.setup.validate():
            raise ZKPError("Invalid trusted setup")

        if self.setup.is_expired():
            raise ZKPError("Trusted setup has expired")

        if self.setup.circuit_id != self.circuit.circuit_id:
            raise ZKPError("Trusted setup was generated for a different circuit")

        self._proving_key = ProvingKey(
            key_data=self.setup.proving_key,
            key_type=ZKPType.ZK_SNARK,
            circuit_id=self.circuit.circuit_id,
            parameters=self.setup.setup_parameters,
        )
        self._verification_key = VerificationKey(
            key_data=self.setup.verification_key,
            key_type=ZKPType.ZK_SNARK,
            circuit_id=self.circuit.circuit_id,
            parameters=self.setup.setup_parameters,
        )
        self._initialized = True


def create_proof_generator(
    circuit: ZKCircuit, zkp_type: ZKPType, setup: Optional[TrustedSetup] = None
) -> ProofGenerator:
    """Create a proof generator for the specified ZKP type."""
    if zkp_type == ZKPType.MOCK:
        return MockProofGenerator(circuit, setup)
    elif zkp_type == ZKPType.ZK_SNARK:
        if not setup:
            raise ZKPError("Trusted setup required for zk-SNARKs")
        return SimulatedSNARKGenerator(circuit, setup)
    else:
        raise ValueError(f"Unsupported ZKP type: {zkp_type}")
