"""
tests/conftest.py

Shared fixtures: a bridge on a manual clock, three registered tokens,
an attestation prover bound to every tree size, a channel group key,
and a ChannelDriver that runs the common lifecycle steps.
"""

import hashlib
from decimal import Decimal
from typing import Dict, List, Sequence

import pytest

from zkchannel.bridge import ChannelBridge
from zkchannel.core.crypto import Ed25519KeyManager
from zkchannel.core.field import FIELD_MODULUS
from zkchannel.core.time import ManualClock
from zkchannel.ledger.journal import EventJournal
from zkchannel.ledger.tokens import InMemoryToken
from zkchannel.runtime.config import ProtocolConfig
from zkchannel.verification.attestation import AttestationProver
from zkchannel.verification.gateway import ProofVerificationGateway
from zkchannel.verification.registry import TargetRegistry

BRIDGE   = "bridge"
LEADER   = "leader"
TREASURY = "treasury"
ALICE, BOB, CAROL = "alice", "bob", "carol"
USD, ETH, BOND = "0xusd", "0xeth", "0xbond"

START = 1_700_000_000


def units(amount) -> int:
    """Human amount → base units (18 decimals)."""
    return int(Decimal(str(amount)) * 10**18)


def l2_key(participant: str, token: str) -> int:
    """Deterministic non-zero L2 key per account."""
    digest = hashlib.sha256(f"{participant}/{token}".encode()).digest()
    return int.from_bytes(digest, "big") % (FIELD_MODULUS - 1) + 1


class ChannelDriver:
    """Runs lifecycle steps against a bridge with valid proofs and signatures."""

    def __init__(
        self,
        bridge: ChannelBridge,
        prover: AttestationProver,
        group:  Ed25519KeyManager,
        clock:  ManualClock,
    ) -> None:
        self.bridge = bridge
        self.prover = prover
        self.group = group
        self.clock = clock

    def open(
        self,
        participants: Sequence[str] = (ALICE, BOB),
        tokens:       Sequence[str] = (USD,),
        timeout:      int = 3600,
    ) -> int:
        return self.bridge.open_channel(
            LEADER, list(participants), list(tokens), timeout, self.group.group_public_key
        )

    def deposit(self, channel_id: int, participant: str, token: str, amount: int):
        return self.bridge.deposit(
            channel_id, participant, token, amount, l2_key(participant, token)
        )

    def init_proof(self, channel_id: int):
        tree_size, inputs = self.bridge.proof_inputs(channel_id)
        return self.prover.prove(tree_size, inputs)

    def initialize(self, channel_id: int) -> int:
        return self.bridge.initialize_state(channel_id, LEADER, self.init_proof(channel_id))

    def closure(self, channel_id: int, amounts: List[List[int]], function_instance=()):
        """(final_root, proof, signature) for closing on amounts."""
        final_root = self.bridge.expected_root(channel_id, amounts)
        tree_size, inputs = self.bridge.proof_inputs(channel_id, amounts)
        proof = self.prover.prove(tree_size, inputs, function_instance)
        signature = self.group.sign(self.bridge.closure_message(channel_id, final_root))
        return final_root, proof, signature

    def close(self, channel_id: int, amounts: List[List[int]], caller: str = LEADER):
        final_root, proof, signature = self.closure(channel_id, amounts)
        return self.bridge.submit_closure(
            channel_id, caller, final_root, proof, signature, amounts
        )

    def withdraw(self, channel_id: int, participant: str, token: str, amount: int):
        proof = self.bridge.inclusion_proof(channel_id, participant, token)
        return self.bridge.withdraw(channel_id, participant, token, amount, proof)


# ── Fixtures ──────────────────────────────────────────────────

@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START)


@pytest.fixture
def tokens() -> Dict[str, InMemoryToken]:
    usd, eth, bond = InMemoryToken(USD), InMemoryToken(ETH), InMemoryToken(BOND)
    for account in (ALICE, BOB, CAROL):
        for token in (usd, eth):
            token.mint(account, units(100))
            token.approve(account, BRIDGE, units(100))
    bond.mint(LEADER, units(10))
    bond.approve(LEADER, BRIDGE, units(10))
    return {USD: usd, ETH: eth, BOND: bond}


@pytest.fixture
def registry(tokens) -> TargetRegistry:
    registry = TargetRegistry()
    for token in tokens.values():
        registry.register_target(token)
    return registry


@pytest.fixture
def prover() -> AttestationProver:
    return AttestationProver(Ed25519KeyManager.generate())


@pytest.fixture
def gateway(prover) -> ProofVerificationGateway:
    return ProofVerificationGateway(prover.verifiers())


@pytest.fixture
def group() -> Ed25519KeyManager:
    """Stands in for an aggregated threshold group: one Ed25519 key."""
    return Ed25519KeyManager.generate()


@pytest.fixture
def config() -> ProtocolConfig:
    return ProtocolConfig(
        bond_amount=    units(1),
        bond_token=     BOND,
        treasury=       TREASURY,
        bridge_address= BRIDGE,
    )


@pytest.fixture
def journal() -> EventJournal:
    return EventJournal(Ed25519KeyManager.generate())


@pytest.fixture
def bridge(config, registry, gateway, clock, journal) -> ChannelBridge:
    return ChannelBridge(config, registry, gateway, clock=clock, journal=journal)


@pytest.fixture
def driver(bridge, prover, group, clock) -> ChannelDriver:
    return ChannelDriver(bridge, prover, group, clock)
