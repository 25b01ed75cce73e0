"""
ZKP backend implementations.

This module provides the concrete backends: a simulated zk-SNARK backend with
a per-circuit trusted setup, and a mock backend with publicly derivable keys
for tests. Both check the witness against the registered circuit before
issuing a proof, so neither produces a proof for a false statement.
"""

import logging
import time
from abc import abstractmethod
from typing import Any, Dict, List

from ...errors import ShieldPoolError
from .circuits import ZKCircuit
from .core import (
    Proof,
    ProofRequest,
    ProofResult,
    VerificationResult,
    ZKPBackend,
    ZKPConfig,
    ZKPError,
    ZKPStatus,
    ZKPType,
)
from .generation import (
    ProofGenerator,
    TrustedSetup,
    VerificationKey,
    create_proof_generator,
)
from .verification import ProofVerifier

logger = logging.getLogger(__name__)


class CircuitBackend(ZKPBackend):
    """Shared prove/verify flow over registered circuits."""

    proof_type: ZKPType

    def __init__(self, config: ZKPConfig):
        super().__init__(config)
        self._circuits: Dict[str, ZKCircuit] = {}
        self._generators: Dict[str, ProofGenerator] = {}
        self._verifier = ProofVerifier(
            {
                "max_proof_size": config.max_proof_size,
                "max_input_count": config.max_public_inputs,
            }
        )

    def initialize(self) -> None:
        self._initialized = True

    @abstractmethod
    def _create_generator(self, circuit: ZKCircuit) -> ProofGenerator:
        """Proof generator holding the keys for ``circuit``."""

    def register_circuit(self, circuit: ZKCircuit) -> None:
        if not self._initialized:
            raise ZKPError("Backend not initialized")
        if circuit.circuit_id in self._circuits:
            return
        if not circuit.validate():
            raise ZKPError(f"Invalid constraint system for {circuit.circuit_id}")

        generator = self._create_generator(circuit)
        generator.initialize()
        self._circuits[circuit.circuit_id] = circuit
        self._generators[circuit.circuit_id] = generator
        logger.info("Registered circuit %s with %s backend", circuit.circuit_id, self.proof_type.value)

    def generate_proof(self, request: ProofRequest) -> ProofResult:
        if not self._initialized:
            return ProofResult(
                status=ZKPStatus.BACKEND_ERROR, error_message="Backend not initialized"
            )

        circuit = self._circuits.get(request.circuit_id)
        if circuit is None:
            return ProofResult(
                status=ZKPStatus.UNKNOWN_CIRCUIT,
                error_message=f"Unknown circuit {request.circuit_id}",
            )

        start_time = time.time()
        try:
            public_inputs = circuit.make_public_inputs(request.public_inputs)
            private_inputs = circuit.make_private_inputs(request.private_inputs)
            witness = circuit.generate_witness(public_inputs, private_inputs)
        except (ValueError, ShieldPoolError) as e:
            return ProofResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message=f"Invalid inputs: {e}",
                generation_time=time.time() - start_time,
            )

        try:
            proof_data, metadata = self._generators[request.circuit_id].generate_proof(
                witness, public_inputs, request.nonce
            )
        except ZKPError as e:
            return ProofResult(
                status=e.status,
                error_message=str(e),
                generation_time=time.time() - start_time,
                metadata=dict(e.details),
            )

        proof = Proof(
            proof_data=proof_data,
            public_inputs=list(request.public_inputs),
            circuit_id=request.circuit_id,
            proof_type=self.proof_type,
            nonce=request.nonce,
            metadata=metadata,
        )
        return ProofResult(
            status=ZKPStatus.SUCCESS,
            proof=proof,
            generation_time=time.time() - start_time,
        )

    def verify_proof(self, proof: Proof, public_inputs: List[bytes]) -> VerificationResult:
        if not self._initialized:
            return VerificationResult(
                status=ZKPStatus.BACKEND_ERROR, error_message="Backend not initialized"
            )

        start_time = time.time()

        valid, error = self._verifier.validate_proof_format(proof)
        if not valid:
            return VerificationResult(status=ZKPStatus.MALFORMED_DATA, error_message=error)

        valid, error = self._verifier.validate_public_inputs(public_inputs)
        if not valid:
            return VerificationResult(status=ZKPStatus.INVALID_INPUT, error_message=error)

        circuit = self._circuits.get(proof.circuit_id)
        if circuit is None:
            return VerificationResult(
                status=ZKPStatus.UNKNOWN_CIRCUIT,
                error_message=f"Unknown circuit {proof.circuit_id}",
            )

        if len(public_inputs) != len(circuit.public_input_names):
            return VerificationResult(
                status=ZKPStatus.INVALID_INPUT,
                error_message=(
                    f"Expected {len(circuit.public_input_names)} public inputs, "
                    f"got {len(public_inputs)}"
                ),
            )

        if list(proof.public_inputs) != list(public_inputs):
            return VerificationResult(
                status=ZKPStatus.INVALID_PROOF,
                error_message="Proof was issued for different public inputs",
                verification_time=time.time() - start_time,
            )

        vk = self._generators[proof.circuit_id].get_verification_key()
        is_valid = self._verifier.check_proof(proof, public_inputs, vk)
        return VerificationResult(
            status=ZKPStatus.SUCCESS if is_valid else ZKPStatus.INVALID_PROOF,
            is_valid=is_valid,
            error_message=None if is_valid else "Proof does not verify",
            verification_time=time.time() - start_time,
            metadata={"circuit_id": proof.circuit_id, "backend": self.proof_type.value},
        )

    def get_verification_key(self, circuit_id: str) -> VerificationKey:
        generator = self._generators.get(circuit_id)
        if generator is None:
            raise ZKPError(f"Unknown circuit {circuit_id}", status=ZKPStatus.UNKNOWN_CIRCUIT)
        return generator.get_verification_key()

    def get_circuit_info(self, circuit_id: str) -> Dict[str, Any]:
        circuit = self._circuits.get(circuit_id)
        if circuit is None:
            return {"error": "Circuit not found"}
        info = circuit.get_circuit_info()
        info["backend"] = self.proof_type.value
        info["verification_key_hash"] = self._generators[circuit_id].get_verification_key().get_hash()
        return info

    def cleanup(self) -> None:
        self._circuits.clear()
        self._generators.clear()
        self._initialized = False


class MockZKPBackend(CircuitBackend):
    """Mock ZKP backend for testing and development."""

    proof_type = ZKPType.MOCK

    def _create_generator(self, circuit: ZKCircuit) -> ProofGenerator:
        return create_proof_generator(circuit, ZKPType.MOCK)


class SimulatedSNARKBackend(CircuitBackend):
    """zk-SNARK style backend with a fresh trusted setup per circuit."""

    proof_type = ZKPType.ZK_SNARK

    def __init__(self, config: ZKPConfig):
        super().__init__(config)
        self._setups: Dict[str, TrustedSetup] = {}

    def _create_generator(self, circuit: ZKCircuit) -> ProofGenerator:
        setup = TrustedSetup.generate(circuit)
        self._setups[circuit.circuit_id] = setup
        logger.debug("Trusted setup %s created for %s", setup.setup_id, circuit.circuit_id)
        return create_proof_generator(circuit, ZKPType.ZK_SNARK, setup)

    def get_setup(self, circuit_id: str) -> TrustedSetup:
        setup = self._setups.get(circuit_id)
        if setup is None:
            raise ZKPError(f"No trusted setup for {circuit_id}", status=ZKPStatus.UNKNOWN_CIRCUIT)
        return setup

    def cleanup(self) -> None:
        super().cleanup()
        self._setups.clear()
