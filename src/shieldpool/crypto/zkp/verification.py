"""
ZKP verification components.

This module provides proof verification, caching of accepted results, and
batch verification.
"""

import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..field import FIELD_MODULUS, SCALAR_BYTES
from .circuits import PublicInputs
from .core import Proof, VerificationResult, ZKPStatus
from .generation import VerificationKey, verify_proof_tag


@dataclass
class CacheEntry:
    """Entry in the verification cache."""

    result: VerificationResult
    timestamp: float
    access_count: int = 0

    def is_expired(self, ttl: float) -> bool:
        """Check if cache entry is expired."""
        return time.time() - self.timestamp > ttl


class VerificationCache:
    """LRU cache for proof verification results."""

    def __init__(self, max_size: int = 1000, ttl: float = 3600.0):
        self.max_size = max_size
        self.ttl = ttl
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[VerificationResult]:
        """Get a cached verification result."""
        with self._lock:
            if key in self._cache:
                entry = self._cache[key]
                if not entry.is_expired(self.ttl):
                    self._cache.move_to_end(key)
                    entry.access_count += 1
                    self._hits += 1
                    return entry.result
                else:
                    del self._cache[key]

            self._misses += 1
            return None

    def set(self, key: str, result: VerificationResult) -> None:
        """Cache a verification result."""
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            while len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)

            self._cache[key] = CacheEntry(result, time.time())

    def clear(self) -> None:
        """Clear the cache."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": hit_rate,
                "ttl": self.ttl,
            }


class BatchVerifier:
    """Batch verifier for multiple proofs."""

    def __init__(self, max_batch_size: int = 100, max_workers: int = 4):
        self.max_batch_size = max_batch_size
        self.max_workers = max_workers

    def verify_batch(
        self,
        verify_func: Callable[[Proof, List[bytes]], VerificationResult],
        proofs: List[Proof],
        public_inputs_list: List[List[bytes]],
    ) -> List[VerificationResult]:
        """Verify multiple proofs; results are in input order."""
        if len(proofs) != len(public_inputs_list):
            raise ValueError("Number of proofs must match number of public input lists")

        results: List[VerificationResult] = []
        for start in range(0, len(proofs), self.max_batch_size):
            end = start + self.max_batch_size
            results.extend(
                self._verify_batch_parallel(
                    verify_func, proofs[start:end], public_inputs_list[start:end]
                )
            )
        return results

    def _verify_batch_parallel(
        self,
        verify_func: Callable[[Proof, List[bytes]], VerificationResult],
        proofs: List[Proof],
        public_inputs_list: List[List[bytes]],
    ) -> List[VerificationResult]:
        """Verify a batch of proofs in parallel."""
        results: List[Optional[VerificationResult]] = [None] * len(proofs)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(verify_func, proof, public_inputs): i
                for i, (proof, public_inputs) in enumerate(zip(proofs, public_inputs_list))
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    results[index] = future.result()
                except Exception as e:
                    results[index] = VerificationResult(
                        status=ZKPStatus.VERIFICATION_FAILED,
                        error_message=f"Batch verification failed: {e}",
                    )

        return results


class ProofVerifier:
    """Proof verifier with format checks in front of the cryptographic check."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.max_proof_size = config.get("max_proof_size", 64 * 1024)
        self.max_input_count = config.get("max_input_count", 16)

    def validate_proof_format(self, proof: Proof) -> Tuple[bool, Optional[str]]:
        """Validate proof format and structure.

        ``proof.timestamp`` is informational and not covered by the proof
        tag, so it plays no part in acceptance.
        """
        if len(proof.proof_data) == 0:
            return False, "Proof data is empty"

        if len(proof.proof_data) > self.max_proof_size:
            return False, f"Proof data too large: {len(proof.proof_data)} bytes"

        if not proof.circuit_id or len(proof.circuit_id) > 256:
            return False, "Invalid circuit ID"

        if not proof.nonce:
            return False, "Proof has no nonce"

        return True, None

    def validate_public_inputs(
        self, public_inputs: List[bytes]
    ) -> Tuple[bool, Optional[str]]:
        """Every public input must be a canonical scalar encoding.

        Zero and repeated values are legitimate (leaf index 0, an all-empty
        tree) and are not rejected here.
        """
        if not public_inputs:
            return False, "No public inputs"

        if len(public_inputs) > self.max_input_count:
            return False, f"Too many public inputs: {len(public_inputs)}"

        for i, inp in enumerate(public_inputs):
            if not isinstance(inp, (bytes, bytearray)) or len(inp) != SCALAR_BYTES:
                return False, f"Public input {i} is not a {SCALAR_BYTES}-byte scalar"
            if int.from_bytes(inp, "big") >= FIELD_MODULUS:
                return False, f"Public input {i} is not a canonical field element"

        return True, None

    def check_proof(
        self, proof: Proof, public_inputs: List[bytes], verification_key: VerificationKey
    ) -> bool:
        """Cryptographic check of ``proof`` against ``public_inputs``."""
        if verification_key.circuit_id != proof.circuit_id:
            return False
        if verification_key.key_type != proof.proof_type:
            return False

        return verify_proof_tag(
            verification_key.key_data,
            proof.circuit_id,
            proof.nonce,
            PublicInputs(inputs=list(public_inputs)),
            proof.proof_data,
        )

    def get_verification_stats(self) -> Dict[str, Any]:
        """Get verification statistics."""
        return {
            "max_proof_size": self.max_proof_size,
            "max_input_count": self.max_input_count,
        }
