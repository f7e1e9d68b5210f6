"""
zkchannel Verification

- ProofVerificationGateway: dispatches proofs by tree size
- AttestationVerifier / AttestationProver: the shipped proof binding
- ThresholdSignatureVerifier: aggregated group signature checks
- TargetRegistry: registered tokens and function instances
"""

from zkchannel.verification.attestation import AttestationProver, AttestationVerifier
from zkchannel.verification.gateway import ProofVerificationGateway, Verifier
from zkchannel.verification.registry import TargetRegistry, function_instance_hash
from zkchannel.verification.threshold import ThresholdSignatureVerifier, closure_message

__all__ = [
    "AttestationProver",
    "AttestationVerifier",
    "ProofVerificationGateway",
    "Verifier",
    "TargetRegistry",
    "function_instance_hash",
    "ThresholdSignatureVerifier",
    "closure_message",
]
