"""
tests/test_cli.py

zkchannel CLI via click's CliRunner.
"""

import json

import pytest
import yaml
from click.testing import CliRunner

from zkchannel.cli import cli
from zkchannel.commitment.rlc import build_leaves, chaining_seed
from zkchannel.commitment.tree import CommitmentTree, InclusionProof, verify_inclusion
from zkchannel.core.crypto import Ed25519KeyManager
from zkchannel.core.models import TreeSize
from zkchannel.ledger.journal import EventJournal, EventType

ACCOUNTS = [
    {"key": "0xa1", "value": "1000000000000000000"},
    {"key": "0xb2", "value": "2000000000000000000"},
    {"key": "0xc3", "value": 0},
]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def snapshot(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps({"channel_id": 7, "arity": 4, "accounts": ACCOUNTS}))
    return path


class TestRootCommand:

    def test_json_root_matches_library(self, runner, snapshot):
        result = runner.invoke(cli, ["root", str(snapshot), "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)

        leaves = build_leaves(
            chaining_seed(7),
            [0xA1, 0xB2, 0xC3],
            [10**18, 2 * 10**18, 0],
            TreeSize.S16,
        )
        assert data["root"] == hex(CommitmentTree(leaves, 4).root)
        assert data["tree_size"] == 16
        assert len(data["leaves"]) == 3

    def test_inclusion_proof_verifies(self, runner, snapshot):
        result = runner.invoke(cli, ["root", str(snapshot), "--index", "1", "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        proof = InclusionProof.from_dict(data["proof"])
        assert verify_inclusion(int(data["root"], 16), int(data["leaves"][1], 16),
                                proof.index, proof.siblings, 4)

    def test_yaml_snapshot_with_prev_root(self, runner, tmp_path):
        path = tmp_path / "snapshot.yaml"
        path.write_text(yaml.safe_dump({
            "prev_root": "0x1234", "arity": 2, "tree_size": 32, "accounts": ACCOUNTS,
        }))
        result = runner.invoke(cli, ["root", str(path)])
        assert result.exit_code == 0, result.output
        assert "tree size   32  (arity 2)" in result.output

    def test_index_out_of_range(self, runner, snapshot):
        result = runner.invoke(cli, ["root", str(snapshot), "--index", "3"])
        assert result.exit_code == 2

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["root", str(tmp_path / "nope.json")])
        assert result.exit_code == 2

    def test_prev_root_wider_than_a_word(self, runner, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({"prev_root": hex(2**300), "accounts": ACCOUNTS}))
        result = runner.invoke(cli, ["root", str(path)])
        assert result.exit_code == 2

    def test_snapshot_without_seed(self, runner, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({"accounts": ACCOUNTS}))
        result = runner.invoke(cli, ["root", str(path)])
        assert result.exit_code == 2


class TestJournalCommand:

    @pytest.fixture
    def journal_dir(self, tmp_path):
        journal = EventJournal(Ed25519KeyManager.generate(), tmp_path)
        journal.emit(EventType.CHANNEL_OPENED, 1, {"leader": "l"})
        journal.emit(EventType.DEPOSIT, 1, {"amount": "1"})
        return tmp_path

    def test_valid_journal(self, runner, journal_dir):
        result = runner.invoke(cli, ["journal", str(journal_dir / "journal.jsonl")])
        assert result.exit_code == 0, result.output
        assert "VALID" in result.output

    def test_directory_argument(self, runner, journal_dir):
        result = runner.invoke(cli, ["journal", str(journal_dir), "--quiet"])
        assert result.exit_code == 0
        assert result.output == ""

    def test_tampered_journal(self, runner, journal_dir):
        path = journal_dir / "journal.jsonl"
        lines = path.read_text().splitlines()
        entry = json.loads(lines[0])
        entry["payload"]["leader"] = "mallory"
        lines[0] = json.dumps(entry)
        path.write_text("\n".join(lines) + "\n")

        result = runner.invoke(cli, ["journal", str(path)])
        assert result.exit_code == 1
        assert "INVALID" in result.output

    def test_missing_journal(self, runner, tmp_path):
        result = runner.invoke(cli, ["journal", str(tmp_path / "missing.jsonl")])
        assert result.exit_code == 2

    def test_malformed_journal(self, runner, tmp_path):
        path = tmp_path / "journal.jsonl"
        path.write_text("{not json\n")
        result = runner.invoke(cli, ["journal", str(path), "--quiet"])
        assert result.exit_code == 2


class TestConfigCommand:

    def test_valid_config(self, runner, tmp_path):
        path = tmp_path / "protocol.yaml"
        path.write_text(yaml.safe_dump({
            "bond_amount": 5, "bond_token": "0xbond", "treasury": "t",
        }))
        result = runner.invoke(cli, ["config", str(path)])
        assert result.exit_code == 0, result.output
        assert "OK" in result.output

    def test_invalid_config(self, runner, tmp_path):
        path = tmp_path / "protocol.yaml"
        path.write_text(yaml.safe_dump({
            "bond_amount": 5, "bond_token": "0xbond", "treasury": "t", "tree_arity": 8,
        }))
        result = runner.invoke(cli, ["config", str(path)])
        assert result.exit_code == 2
