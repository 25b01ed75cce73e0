"""
Unit tests for ZKP verification and generation components.
"""

import time

import pytest

from shieldpool.crypto.field import FIELD_MODULUS, encode_scalar
from shieldpool.crypto.zkp import (
    BatchVerifier,
    DepositCircuit,
    Proof,
    ProofVerifier,
    PublicInputs,
    SetupType,
    TrustedSetup,
    VerificationCache,
    VerificationResult,
    ZKPError,
    ZKPStatus,
    ZKPType,
    create_proof_generator,
)
from shieldpool.crypto.zkp.generation import compute_proof_tag, verify_proof_tag


def make_proof(**overrides):
    fields = dict(
        proof_data=b"\x01" * 32,
        public_inputs=[encode_scalar(1)],
        circuit_id="circuit",
        proof_type=ZKPType.MOCK,
        nonce=b"\x02" * 32,
    )
    fields.update(overrides)
    return Proof(**fields)


class TestVerificationCache:
    """Test the VerificationCache class."""

    def test_get_set(self):
        """Test basic caching."""
        cache = VerificationCache(max_size=10, ttl=60.0)
        result = VerificationResult(status=ZKPStatus.SUCCESS, is_valid=True)

        assert cache.get("k") is None
        cache.set("k", result)
        assert cache.get("k") is result

        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    def test_lru_eviction(self):
        """Test the least recently used entry is evicted."""
        cache = VerificationCache(max_size=2, ttl=60.0)
        result = VerificationResult(status=ZKPStatus.SUCCESS, is_valid=True)
        cache.set("a", result)
        cache.set("b", result)
        cache.get("a")
        cache.set("c", result)

        assert cache.get("b") is None
        assert cache.get("a") is result
        assert cache.get("c") is result
        assert len(cache) == 2

    def test_expiry(self):
        """Test expired entries are dropped."""
        cache = VerificationCache(max_size=2, ttl=1.0)
        cache.set("a", VerificationResult(status=ZKPStatus.SUCCESS, is_valid=True))
        cache._cache["a"].timestamp -= 10
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_clear(self):
        """Test clearing resets entries and counters."""
        cache = VerificationCache()
        cache.set("a", VerificationResult(status=ZKPStatus.SUCCESS))
        cache.get("a")
        cache.clear()
        assert cache.get_stats()["hits"] == 0
        assert len(cache) == 0


class TestBatchVerifier:
    """Test the BatchVerifier class."""

    def test_order_preserved_across_batches(self):
        """Test results line up with inputs when split into batches."""
        verifier = BatchVerifier(max_batch_size=3, max_workers=2)
        proofs = [make_proof(circuit_id=f"c{i}") for i in range(7)]
        inputs = [[encode_scalar(i)] for i in range(7)]

        def verify(proof, public_inputs):
            index = int.from_bytes(public_inputs[0], "big")
            return VerificationResult(
                status=ZKPStatus.SUCCESS,
                is_valid=proof.circuit_id == f"c{index}" and index % 2 == 0,
            )

        results = verifier.verify_batch(verify, proofs, inputs)
        assert [r.is_valid for r in results] == [i % 2 == 0 for i in range(7)]

    def test_exception_becomes_failure(self):
        """Test a raising verifier does not abort the batch."""
        verifier = BatchVerifier()

        def verify(proof, public_inputs):
            if proof.circuit_id == "bad":
                raise RuntimeError("boom")
            return VerificationResult(status=ZKPStatus.SUCCESS, is_valid=True)

        results = verifier.verify_batch(
            verify, [make_proof(), make_proof(circuit_id="bad")], [[], []]
        )
        assert results[0].is_valid
        assert results[1].status == ZKPStatus.VERIFICATION_FAILED
        assert "boom" in results[1].error_message

    def test_empty_and_mismatched(self):
        """Test degenerate inputs."""
        verifier = BatchVerifier()
        assert verifier.verify_batch(lambda p, i: None, [], []) == []
        with pytest.raises(ValueError):
            verifier.verify_batch(lambda p, i: None, [make_proof()], [])


class TestProofVerifier:
    """Test the ProofVerifier checks."""

    def setup_method(self):
        self.verifier = ProofVerifier({"max_proof_size": 64, "max_input_count": 4})

    def test_valid_format(self):
        """Test a well-formed proof."""
        assert self.verifier.validate_proof_format(make_proof()) == (True, None)

    def test_format_errors(self):
        """Test each format rule."""
        assert not self.verifier.validate_proof_format(make_proof(proof_data=b"x" * 65))[0]
        assert not self.verifier.validate_proof_format(make_proof(nonce=None))[0]
        assert not self.verifier.validate_proof_format(make_proof(circuit_id="c" * 257))[0]

    def test_timestamp_does_not_affect_format(self):
        """Test old and future-dated proofs are judged on their content only."""
        old = make_proof(timestamp=time.time() - 2 * 86400)
        assert self.verifier.validate_proof_format(old) == (True, None)
        future = make_proof(timestamp=time.time() + 3600)
        assert self.verifier.validate_proof_format(future) == (True, None)

    def test_public_inputs_accept_zero_and_duplicates(self):
        """Test zero and repeated scalars are legitimate inputs."""
        zero = encode_scalar(0)
        assert self.verifier.validate_public_inputs([zero, zero]) == (True, None)

    def test_public_inputs_errors(self):
        """Test malformed public inputs."""
        assert not self.verifier.validate_public_inputs([])[0]
        assert not self.verifier.validate_public_inputs([b"\x01" * 31])[0]
        assert not self.verifier.validate_public_inputs(["00" * 32])[0]
        assert not self.verifier.validate_public_inputs([encode_scalar(1)] * 5)[0]
        non_canonical = FIELD_MODULUS.to_bytes(32, "big")
        ok, error = self.verifier.validate_public_inputs([non_canonical])
        assert not ok
        assert "canonical" in error

    def test_check_proof(self):
        """Test the cryptographic check against a verification key."""
        circuit = DepositCircuit(depth=2)
        generator = create_proof_generator(circuit, ZKPType.MOCK)
        generator.initialize()
        vk = generator.get_verification_key()

        inputs = [encode_scalar(i) for i in range(4)]
        nonce = b"\x03" * 32
        tag = compute_proof_tag(
            generator.get_proving_key().key_data,
            circuit.circuit_id,
            nonce,
            PublicInputs(inputs=inputs),
        )
        proof = make_proof(
            proof_data=tag, public_inputs=inputs, circuit_id=circuit.circuit_id, nonce=nonce
        )
        assert self.verifier.check_proof(proof, inputs, vk)
        assert not self.verifier.check_proof(proof, inputs[::-1], vk)
        assert not self.verifier.check_proof(
            make_proof(proof_data=tag, circuit_id="other", nonce=nonce), inputs, vk
        )


class TestGeneration:
    """Test setup, keys and proof tags."""

    def test_trusted_setup(self):
        """Test a generated setup."""
        circuit = DepositCircuit(depth=2)
        setup = TrustedSetup.generate(circuit, lifetime=60.0)
        assert setup.setup_type == SetupType.CIRCUIT_SPECIFIC
        assert setup.circuit_id == circuit.circuit_id
        assert setup.validate()
        assert not setup.is_expired()
        assert setup.setup_parameters["public_inputs"] == 4
        assert TrustedSetup.generate(circuit).proving_key != setup.proving_key

    def test_expired_setup(self):
        """Test an expired setup cannot initialize a generator."""
        circuit = DepositCircuit(depth=2)
        setup = TrustedSetup.generate(circuit)
        setup.created_at -= 10
        setup.expires_at = time.time() - 1
        generator = create_proof_generator(circuit, ZKPType.ZK_SNARK, setup)
        with pytest.raises(ZKPError, match="expired"):
            generator.initialize()

    def test_setup_for_other_circuit(self):
        """Test a setup is bound to its circuit."""
        setup = TrustedSetup.generate(DepositCircuit(depth=2))
        generator = create_proof_generator(DepositCircuit(depth=3), ZKPType.ZK_SNARK, setup)
        with pytest.raises(ZKPError, match="different circuit"):
            generator.initialize()

    def test_snark_requires_setup(self):
        """Test the SNARK generator needs a setup."""
        with pytest.raises(ZKPError, match="Trusted setup required"):
            create_proof_generator(DepositCircuit(depth=2), ZKPType.ZK_SNARK)

    def test_generator_not_initialized(self):
        """Test key access before initialize."""
        generator = create_proof_generator(DepositCircuit(depth=2), ZKPType.MOCK)
        with pytest.raises(ZKPError, match="not initialized"):
            generator.get_verification_key()

    def test_proof_tag(self):
        """Test tags bind key, circuit, nonce and inputs."""
        inputs = PublicInputs(inputs=[encode_scalar(1), encode_scalar(2)])
        tag = compute_proof_tag(b"k" * 32, "c", b"n", inputs)
        assert len(tag) == 32
        assert verify_proof_tag(b"k" * 32, "c", b"n", inputs, tag)
        assert not verify_proof_tag(b"j" * 32, "c", b"n", inputs, tag)
        assert not verify_proof_tag(b"k" * 32, "d", b"n", inputs, tag)
        assert not verify_proof_tag(b"k" * 32, "c", b"m", inputs, tag)
        swapped = PublicInputs(inputs=[encode_scalar(2), encode_scalar(1)])
        assert not verify_proof_tag(b"k" * 32, "c", b"n", swapped, tag)
