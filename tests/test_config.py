"""
tests/test_config.py

ProtocolConfig loading and BridgeContext wiring.
"""

import pytest
import yaml

from conftest import ALICE, BRIDGE, USD, units
from zkchannel.core.crypto import Ed25519KeyManager
from zkchannel.core.exceptions import ConfigurationError
from zkchannel.core.models import TreeSize
from zkchannel.ledger.tokens import InMemoryToken
from zkchannel.runtime.config import ProtocolConfig
from zkchannel.runtime.context import BridgeContext
from zkchannel.verification.attestation import AttestationProver


def _write(tmp_path, data, name="protocol.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


BASE = {
    "bond_amount":    10**18,
    "bond_token":     "0xbond",
    "treasury":       "treasury",
    "bridge_address": BRIDGE,
}


class TestProtocolConfig:

    def test_defaults(self, tmp_path):
        config = ProtocolConfig.from_yaml(_write(tmp_path, BASE))
        assert config.max_participants == 128
        assert config.tree_arity == 4
        assert config.tree_sizes == tuple(TreeSize)
        assert config.max_leaves == 128

    def test_restricted_sizes(self):
        config = ProtocolConfig.from_dict({**BASE, "tree_sizes": [64, 16]})
        assert config.tree_sizes == (TreeSize.S16, TreeSize.S64)
        assert config.max_leaves == 64

    @pytest.mark.parametrize("override", [
        {"tree_arity": 3},
        {"tree_sizes": [24]},
        {"tree_sizes": []},
        {"max_participants": 0},
        {"max_participants": 129},
        {"bond_amount": -1},
        {"bond_token": ""},
        {"verifier_keys": {16: "abc"}},
        {"tree_sizes": [16], "verifier_keys": {32: "a" * 64}},
    ])
    def test_invalid_values(self, override):
        with pytest.raises(ConfigurationError):
            ProtocolConfig.from_dict({**BASE, **override})

    def test_missing_key(self):
        data = dict(BASE)
        del data["treasury"]
        with pytest.raises(ConfigurationError) as exc:
            ProtocolConfig.from_dict(data)
        assert exc.value.details["key"] == "treasury"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ProtocolConfig.from_yaml(tmp_path / "nope.yaml")

    def test_not_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("bond_amount: [unclosed\n")
        with pytest.raises(ConfigurationError):
            ProtocolConfig.from_yaml(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            ProtocolConfig.from_yaml(path)

    def test_to_dict_round_trip(self):
        config = ProtocolConfig.from_dict(BASE)
        assert ProtocolConfig.from_dict(config.to_dict()) == config


class TestBridgeContext:

    def test_from_config_end_to_end(self, tmp_path, clock):
        prover = AttestationProver(Ed25519KeyManager.generate())
        path = _write(tmp_path, {
            **BASE,
            "bond_amount":   0,
            "verifier_keys": {16: prover.key_manager.public_key_hex},
        })
        usd = InMemoryToken(USD)
        usd.mint(ALICE, units(1))
        usd.approve(ALICE, BRIDGE, units(1))

        ctx = BridgeContext.from_config(
            path,
            journal_path= tmp_path / "journal",
            key_path=     tmp_path / "keys" / "journal.pem",
            tokens=       [usd],
            clock=        clock,
        )
        group = Ed25519KeyManager.generate()
        channel_id = ctx.bridge.open_channel("lead", [ALICE], [USD], 60, group.group_public_key)
        ctx.bridge.deposit(channel_id, ALICE, USD, units(1), 0xA11CE)
        tree_size, inputs = ctx.bridge.proof_inputs(channel_id)
        ctx.bridge.initialize_state(channel_id, "lead", prover.prove(tree_size, inputs))

        assert ctx.registry.is_registered("0xbond")
        assert (tmp_path / "keys" / "journal.pem").exists()
        assert (tmp_path / "journal" / "journal.jsonl").exists()
        assert ctx.journal.verify_chain()

    def test_key_reused_across_restarts(self, tmp_path):
        path = _write(tmp_path, BASE)
        key_path = tmp_path / "journal.pem"
        first = BridgeContext.from_config(path, key_path=key_path)
        second = BridgeContext.from_config(path, key_path=key_path)
        assert first.key_manager.public_key_hex == second.key_manager.public_key_hex

    def test_restart_continues_channel_handles(self, tmp_path, clock):
        path = _write(tmp_path, {**BASE, "bond_amount": 0})
        journal_dir = tmp_path / "journal"
        key_path = tmp_path / "journal.pem"
        group = Ed25519KeyManager.generate()

        first = BridgeContext.from_config(
            path, journal_path=journal_dir, key_path=key_path,
            tokens=[InMemoryToken(USD)], clock=clock,
        )
        assert first.bridge.open_channel("lead", [ALICE], [USD], 60, group.group_public_key) == 1
        assert first.bridge.open_channel("lead", [ALICE], [USD], 60, group.group_public_key) == 2

        second = BridgeContext.from_config(
            path, journal_path=journal_dir, key_path=key_path,
            tokens=[InMemoryToken(USD)], clock=clock,
        )
        assert len(second.journal.entries) == len(first.journal.entries)
        channel_id = second.bridge.open_channel("lead", [ALICE], [USD], 60, group.group_public_key)

        assert channel_id == 3
        opened = [
            e.channel_id for e in second.journal.entries if e.event_type == "channel_opened"
        ]
        assert opened == [1, 2, 3]
        assert second.journal.verify_chain()
