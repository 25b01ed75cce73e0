"""
Core ZKP types and interfaces.

This module defines the proof-system boundary the pool depends on: the
backend abstraction, configuration, proof and result types, and the manager
that fronts a backend with verification caching and batch verification.
The pool only relies on the contract "prove a registered statement from a
satisfying witness; verify a proof against public inputs".
"""

import hashlib
import json
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..field import SCALAR_BYTES

if TYPE_CHECKING:
    from .circuits import ZKCircuit
    from .generation import VerificationKey


class ZKPType(Enum):
    """Types of proof backends supported."""

    ZK_SNARK = "zk_snark"
    MOCK = "mock"  # For testing


class ZKPStatus(IntEnum):
    """Status codes for ZKP operations."""

    SUCCESS = 0
    INVALID_PROOF = 1
    INVALID_INPUT = 2
    VERIFICATION_FAILED = 3
    GENERATION_FAILED = 4
    BACKEND_ERROR = 5
    UNSATISFIABLE_WITNESS = 6
    MALFORMED_DATA = 7
    UNKNOWN_CIRCUIT = 8


@dataclass
class ZKPConfig:
    """Configuration for ZKP operations."""

    backend_type: ZKPType = ZKPType.ZK_SNARK

    # Proof limits
    max_proof_size: int = 64 * 1024
    max_public_inputs: int = 16

    # Caching settings
    enable_verification_cache: bool = True
    cache_size: int = 1000
    cache_ttl: float = 3600.0

    # Batch processing
    enable_batch_verification: bool = True
    max_batch_size: int = 100
    batch_workers: int = 4

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not isinstance(self.backend_type, ZKPType):
            raise ValueError("backend_type must be a ZKPType")
        if self.max_proof_size <= 0:
            raise ValueError("max_proof_size must be positive")
        if self.max_public_inputs <= 0:
            raise ValueError("max_public_inputs must be positive")
        if self.cache_size <= 0:
            raise ValueError("cache_size must be positive")
        if self.cache_ttl <= 0:
            raise ValueError("cache_ttl must be positive")
        if self.max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        if self.batch_workers <= 0:
            raise ValueError("batch_workers must be positive")


@dataclass
class Proof:
    """Represents a zero-knowledge proof."""

    proof_data: bytes
    public_inputs: List[bytes]
    circuit_id: str
    proof_type: ZKPType
    timestamp: float = field(default_factory=time.time)
    nonce: Optional[bytes] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate proof data after initialization."""
        if not self.proof_data:
            raise ValueError("proof_data cannot be empty")
        if not self.circuit_id:
            raise ValueError("circuit_id cannot be empty")
        if len(self.proof_data) > 1024 * 1024:  # 1MB limit
            raise ValueError("proof_data too large")

    def to_bytes(self) -> bytes:
        """Serialize proof to bytes."""
        data = {
            "proof_data": self.proof_data.hex(),
            "public_inputs": [inp.hex() for inp in self.public_inputs],
            "circuit_id": self.circuit_id,
            "proof_type": self.proof_type.value,
            "timestamp": self.timestamp,
            "nonce": self.nonce.hex() if self.nonce else None,
            "metadata": self.metadata,
        }
        return json.dumps(data, sort_keys=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Proof":
        """Deserialize proof from bytes."""
        try:
            parsed = json.loads(data.decode("utf-8"))
            return cls(
                proof_data=bytes.fromhex(parsed["proof_data"]),
                public_inputs=[bytes.fromhex(inp) for inp in parsed["public_inputs"]],
                circuit_id=parsed["circuit_id"],
                proof_type=ZKPType(parsed["proof_type"]),
                timestamp=parsed["timestamp"],
                nonce=bytes.fromhex(parsed["nonce"]) if parsed["nonce"] else None,
                metadata=parsed["metadata"],
            )
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            raise ValueError(f"Invalid proof data: {e}")

    def get_hash(self) -> str:
        """Get a unique hash for this proof."""
        return hashlib.sha256(self.to_bytes()).hexdigest()


@dataclass
class ProofRequest:
    """Request for proof generation.

    Inputs are scalar encodings ordered as the circuit's
    ``public_input_names`` and ``private_input_names``.
    """

    circuit_id: str
    public_inputs: List[bytes]
    private_inputs: List[bytes]
    proof_type: Optional[ZKPType] = None
    nonce: Optional[bytes] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Generate nonce if not provided."""
        if self.nonce is None:
            self.nonce = secrets.token_bytes(32)


@dataclass
class ProofResult:
    """Result of proof generation."""

    status: ZKPStatus
    proof: Optional[Proof] = None
    error_message: Optional[str] = None
    generation_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """Check if proof generation was successful."""
        return self.status == ZKPStatus.SUCCESS and self.proof is not None


@dataclass
class VerificationResult:
    """Result of proof verification."""

    status: ZKPStatus
    is_valid: bool = False
    error_message: Optional[str] = None
    verification_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        """Check if verification was successful."""
        return self.status == ZKPStatus.SUCCESS


class ZKPError(Exception):
    """Base exception for ZKP operations."""

    def __init__(
        self,
        message: str,
        status: ZKPStatus = ZKPStatus.BACKEND_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status = status
        self.details = details or {}


class ZKPBackend(ABC):
    """Abstract base class for ZKP backends."""

    def __init__(self, config: ZKPConfig):
        self.config = config
        self.config.validate()
        self._initialized = False

    @abstractmethod
    def initialize(self) -> None:
        """Initialize the backend."""
        pass

    @abstractmethod
    def register_circuit(self, circuit: "ZKCircuit") -> None:
        """Make a statement available for proving and verification."""
        pass

    @abstractmethod
    def generate_proof(self, request: ProofRequest) -> ProofResult:
        """Generate a zero-knowledge proof."""
        pass

    @abstractmethod
    def verify_proof(self, proof: Proof, public_inputs: List[bytes]) -> VerificationResult:
        """Verify a zero-knowledge proof."""
        pass

    @abstractmethod
    def get_verification_key(self, circuit_id: str) -> "VerificationKey":
        """Get the verification key of a registered circuit."""
        pass

    @abstractmethod
    def get_circuit_info(self, circuit_id: str) -> Dict[str, Any]:
        """Get information about a circuit."""
        pass

    @abstractmethod
    def cleanup(self) -> None:
        """Cleanup backend resources."""
        pass

    @property
    def is_initialized(self) -> bool:
        """Check if backend is initialized."""
        return self._initialized

    def validate_proof_size(self, proof_data: bytes) -> bool:
        """Validate proof size is within limits."""
        return len(proof_data) <= self.config.max_proof_size

    def validate_inputs(self, inputs: List[bytes]) -> bool:
        """Validate input data: a non-empty list of scalar encodings."""
        if not inputs:
            return False
        for inp in inputs:
            if not isinstance(inp, (bytes, bytearray)) or len(inp) != SCALAR_BYTES:
                return False
        return True


class ZKPManager:
    """Main manager for ZKP operations."""

    def __init__(self, config: ZKPConfig):
        self.config = config
        self.backend: Optional[ZKPBackend] = None
        self._verification_cache = None
        self._batch_verifier = None
        self._initialized = False

    def initialize(self) -> None:
        """Initialize the ZKP manager."""
        if self._initialized:
            return

        self.backend = self._create_backend()
        self.backend.initialize()

        if self.config.enable_verification_cache:
            from .verification import VerificationCache

            self._verification_cache = VerificationCache(
                self.config.cache_size, self.config.cache_ttl
            )

        if self.config.enable_batch_verification:
            from .verification import BatchVerifier

            self._batch_verifier = BatchVerifier(
                self.config.max_batch_size, self.config.batch_workers
            )

        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise ZKPError("ZKP manager not initialized")

    def register_circuit(self, circuit: "ZKCircuit") -> None:
        """Register a statement with the backend."""
        self._require_initialized()
        self.backend.register_circuit(circuit)

    def generate_proof(self, request: ProofRequest) -> ProofResult:
        """Generate a zero-knowledge proof."""
        self._require_initialized()

        if request.proof_type is None:
            request.proof_type = self.config.backend_type

        if not self.backend.validate_inputs(request.public_inputs):
            return ProofResult(
                status=ZKPStatus.INVALID_INPUT, error_message="Invalid public inputs"
            )

        if not self.backend.validate_inputs(request.private_inputs):
            return ProofResult(
                status=ZKPStatus.INVALID_INPUT, error_message="Invalid private inputs"
            )

        start_time = time.time()
        try:
            result = self.backend.generate_proof(request)
            result.generation_time = time.time() - start_time
            return result
        except Exception as e:
            return ProofResult(
                status=ZKPStatus.GENERATION_FAILED,
                error_message=f"Proof generation failed: {e}",
                generation_time=time.time() - start_time,
            )

    def verify_proof(self, proof: Proof, public_inputs: List[bytes]) -> VerificationResult:
        """Verify a zero-knowledge proof."""
        self._require_initialized()

        cache_key = None
        if self._verification_cache:
            cache_key = self._get_cache_key(proof, public_inputs)
            cached_result = self._verification_cache.get(cache_key)
            if cached_result:
                return cached_result

        start_time = time.time()
        try:
            result = self.backend.verify_proof(proof, public_inputs)
            result.verification_time = time.time() - start_time

            # Only accepted proofs are cached
            if result.is_valid and self._verification_cache:
                self._verification_cache.set(cache_key, result)

            return result
        except Exception as e:
            return VerificationResult(
                status=ZKPStatus.VERIFICATION_FAILED,
                error_message=f"Proof verification failed: {e}",
                verification_time=time.time() - start_time,
            )

    def batch_verify_proofs(
        self, proofs: List[Proof], public_inputs_list: List[List[bytes]]
    ) -> List[VerificationResult]:
        """Verify multiple proofs in batch."""
        self._require_initialized()

        if len(proofs) != len(public_inputs_list):
            raise ValueError("Number of proofs must match number of public input lists")

        if self._batch_verifier:
            return self._batch_verifier.verify_batch(
                self.verify_proof, proofs, public_inputs_list
            )

        return [
            self.verify_proof(proof, public_inputs)
            for proof, public_inputs in zip(proofs, public_inputs_list)
        ]

    def get_verification_key(self, circuit_id: str) -> "VerificationKey":
        """Get the verification key of a registered circuit."""
        self._require_initialized()
        return self.backend.get_verification_key(circuit_id)

    def get_circuit_info(self, circuit_id: str) -> Dict[str, Any]:
        """Get information about a circuit."""
        self._require_initialized()
        return self.backend.get_circuit_info(circuit_id)

    def get_cache_stats(self) -> Dict[str, Any]:
        """Verification cache statistics (empty when caching is disabled)."""
        if self._verification_cache is None:
            return {}
        return self._verification_cache.get_stats()

    def cleanup(self) -> None:
        """Cleanup ZKP manager resources."""
        if self.backend:
            self.backend.cleanup()

        if self._verification_cache:
            self._verification_cache.clear()

        self._initialized = False

    def _create_backend(self) -> ZKPBackend:
        """Create backend based on configuration."""
        if self.config.backend_type == ZKPType.ZK_SNARK:
            from .backends import SimulatedSNARKBackend

            return SimulatedSNARKBackend(self.config)
        elif self.config.backend_type == ZKPType.MOCK:
            from .backends import MockZKPBackend

            return MockZKPBackend(self.config)
        else:
            raise ValueError(f"Unsupported backend type: {self.config.backend_type}")

    def _get_cache_key(self, proof: Proof, public_inputs: List[bytes]) -> str:
        """Generate cache key for proof verification."""
        data = proof.get_hash() + "|" + "|".join(inp.hex() for inp in public_inputs)
        return hashlib.sha256(data.encode()).hexdigest()

    @property
    def is_initialized(self) -> bool:
        """Check if manager is initialized."""
        return self._initialized
