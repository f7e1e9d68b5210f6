"""
tests/test_verification.py

Proof gateway, attestation binding, threshold signatures, target registry.
"""

import pytest

from zkchannel.core.crypto import Ed25519KeyManager, GroupPublicKey, derive_signer_address
from zkchannel.core.exceptions import (
    ConfigurationError,
    InvalidPublicInputLength,
    TokenNotAllowed,
    UnsupportedTreeSize,
)
from zkchannel.core.field import FIELD_MODULUS
from zkchannel.core.models import Proof, TreeSize
from zkchannel.ledger.tokens import InMemoryToken
from zkchannel.verification.attestation import AttestationProver
from zkchannel.verification.gateway import ProofVerificationGateway
from zkchannel.verification.registry import TargetRegistry, function_instance_hash
from zkchannel.verification.threshold import ThresholdSignatureVerifier, closure_message


def _inputs(size: TreeSize, seed: int = 1):
    return [(seed + i) % FIELD_MODULUS for i in range(size.public_input_length)]


class TestGateway:

    @pytest.mark.parametrize("size", list(TreeSize))
    def test_valid_attestation_accepted(self, prover, gateway, size):
        inputs = _inputs(size)
        assert gateway.verify(size, prover.prove(size, inputs), inputs)

    def test_changed_input_rejected(self, prover, gateway):
        inputs = _inputs(TreeSize.S16)
        proof = prover.prove(TreeSize.S16, inputs)
        inputs[-1] += 1
        assert gateway.verify(TreeSize.S16, proof, inputs) is False

    def test_proof_for_other_size_rejected(self, prover, gateway):
        inputs = _inputs(TreeSize.S16)
        proof = prover.prove(TreeSize.S32, inputs)
        assert gateway.verify(TreeSize.S16, proof, inputs) is False

    def test_other_prover_rejected(self, gateway):
        stranger = AttestationProver(Ed25519KeyManager.generate())
        inputs = _inputs(TreeSize.S16)
        assert gateway.verify(TreeSize.S16, stranger.prove(TreeSize.S16, inputs), inputs) is False

    def test_function_instance_is_bound(self, prover, gateway):
        inputs = _inputs(TreeSize.S16)
        proof = prover.prove(TreeSize.S16, inputs, function_instance=(1, 2, 3))
        forged = Proof(data=proof.data, function_instance=(1, 2, 4))
        assert gateway.verify(TreeSize.S16, proof, inputs)
        assert gateway.verify(TreeSize.S16, forged, inputs) is False

    @pytest.mark.parametrize("delta", [-1, 1])
    def test_wrong_length_raises(self, prover, gateway, delta):
        inputs = _inputs(TreeSize.S16)
        proof = prover.prove(TreeSize.S16, inputs)
        bad = _inputs(TreeSize.S16)[:len(inputs) + delta] if delta < 0 else inputs + [0]
        with pytest.raises(InvalidPublicInputLength):
            gateway.verify(TreeSize.S16, proof, bad)

    def test_non_field_input_is_false(self, prover, gateway):
        inputs = _inputs(TreeSize.S16)
        proof = prover.prove(TreeSize.S16, inputs)
        inputs[0] = FIELD_MODULUS
        assert gateway.verify(TreeSize.S16, proof, inputs) is False

    def test_unsupported_size(self, prover, gateway):
        with pytest.raises(UnsupportedTreeSize):
            gateway.verify(24, Proof(data=""), [0] * 49)

    def test_missing_binding(self, prover):
        gateway = ProofVerificationGateway({TreeSize.S16: prover.verifiers()[TreeSize.S16]})
        inputs = _inputs(TreeSize.S32)
        with pytest.raises(ConfigurationError):
            gateway.verify(TreeSize.S32, prover.prove(TreeSize.S32, inputs), inputs)

    def test_binding_to_unknown_size(self, prover):
        with pytest.raises(ConfigurationError):
            ProofVerificationGateway({12: prover.verifiers()[TreeSize.S16]})

    def test_garbage_proof_data(self, gateway):
        inputs = _inputs(TreeSize.S16)
        assert gateway.verify(TreeSize.S16, Proof(data="not-base64!"), inputs) is False


class TestThresholdSignature:

    def test_valid_signature(self, group):
        gpk = group.group_public_key
        signer = derive_signer_address(gpk)
        message = closure_message(1, 111, 222, signer)
        assert ThresholdSignatureVerifier().verify(message, gpk, group.sign(message), signer)

    def test_wrong_message(self, group):
        gpk = group.group_public_key
        signer = derive_signer_address(gpk)
        signature = group.sign(closure_message(1, 111, 222, signer))
        other = closure_message(1, 111, 223, signer)
        assert not ThresholdSignatureVerifier().verify(other, gpk, signature, signer)

    def test_signer_mismatch(self, group):
        gpk = group.group_public_key
        other = derive_signer_address(Ed25519KeyManager.generate().group_public_key)
        message = closure_message(1, 111, 222, other)
        assert not ThresholdSignatureVerifier().verify(message, gpk, group.sign(message), other)

    def test_signature_by_other_key(self, group):
        gpk = group.group_public_key
        signer = derive_signer_address(gpk)
        message = closure_message(1, 111, 222, signer)
        forged = Ed25519KeyManager.generate().sign(message)
        assert not ThresholdSignatureVerifier().verify(message, gpk, forged, signer)

    def test_group_key_round_trip(self, group):
        gpk = group.group_public_key
        assert GroupPublicKey.from_hex(gpk.public_key_hex) == gpk
        assert gpk.public_key_hex == group.public_key_hex

    def test_signer_address_shape(self, group):
        address = derive_signer_address(group.group_public_key)
        assert address.startswith("0x") and len(address) == 42

    def test_message_is_channel_specific(self):
        assert closure_message(1, 111, 222, "0xabc") != closure_message(2, 111, 222, "0xabc")


class TestTargetRegistry:

    def test_register_and_lookup(self):
        registry = TargetRegistry()
        token = InMemoryToken("0xusd")
        registry.register_target(token, function_instances=[(1, 2)], preprocessing=b"\x01")
        assert registry.is_registered("0xusd")
        assert registry.token("0xusd") is token
        assert registry.get("0xusd").preprocessing == b"\x01"

    def test_unknown_target(self):
        with pytest.raises(TokenNotAllowed):
            TargetRegistry().get("0xnope")

    def test_find_instance(self):
        registry = TargetRegistry()
        registry.register_target(InMemoryToken("0xusd"))
        registry.register_target(InMemoryToken("0xeth"), function_instances=[(5, 6)])
        assert registry.find_instance(["0xusd", "0xeth"], (5, 6)) == "0xeth"
        assert registry.find_instance(["0xusd"], (5, 6)) is None

    def test_register_function_later(self):
        registry = TargetRegistry()
        registry.register_target(InMemoryToken("0xusd"))
        digest = registry.register_function("0xusd", (9,))
        assert digest == function_instance_hash((9,))
        assert registry.find_instance(["0xusd"], (9,)) == "0xusd"

    def test_instance_hash_is_keccak256(self):
        # keccak256("") and keccak256(uint256(0)), as computed on Ethereum
        assert function_instance_hash(()) == (
            "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )
        assert function_instance_hash((0,)) == (
            "0x290decd9548b62a8d60345a988386fc84ba6bc95484008f6362f93160ef3e563"
        )

    def test_instance_hash_shape(self):
        digest = function_instance_hash((1, 2, 3))
        assert digest.startswith("0x") and len(digest) == 66
        assert digest != function_instance_hash((1, 2))
