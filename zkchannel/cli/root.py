"""
zkchannel root — commitment root of a balance snapshot.

Snapshot file (JSON or YAML):

    {
      "channel_id": 7,              # first round: chains on the channel id
      "prev_root":  "0x...",        # later rounds: chains on the previous root
      "arity":      4,
      "tree_size":  16,             # optional, smallest size that fits
      "accounts":   [{"key": "0xa1", "value": "1000000000000000000"}, ...]
    }

Exit codes:
    0  Root computed
    2  Error (file missing, malformed snapshot, index out of range)
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml

from zkchannel.commitment.rlc import build_leaves, chaining_seed
from zkchannel.commitment.tree import DEFAULT_ARITY, CommitmentTree
from zkchannel.core.exceptions import UnsupportedTreeSize
from zkchannel.core.models import TreeSize


def _parse_int(value: Any) -> int:
    if isinstance(value, str):
        return int(value, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {value!r}")
    return value


def _compute(snapshot: Dict[str, Any], index: Optional[int]) -> Dict[str, Any]:
    if "prev_root" in snapshot:
        prev_root = _parse_int(snapshot["prev_root"])
    elif "channel_id" in snapshot:
        prev_root = chaining_seed(_parse_int(snapshot["channel_id"]))
    else:
        raise ValueError("snapshot needs either 'channel_id' or 'prev_root'")

    accounts = snapshot.get("accounts") or []
    if not accounts:
        raise ValueError("snapshot has no accounts")
    keys   = [_parse_int(a["key"]) for a in accounts]
    values = [_parse_int(a["value"]) for a in accounts]

    arity = int(snapshot.get("arity", DEFAULT_ARITY))
    if "tree_size" in snapshot:
        tree_size = TreeSize(int(snapshot["tree_size"]))
    else:
        tree_size = TreeSize.for_leaf_count(len(accounts))

    tree = CommitmentTree(build_leaves(prev_root, keys, values, tree_size), arity)
    result = {
        "tree_size": int(tree_size),
        "arity":     arity,
        "prev_root": hex(prev_root),
        "root":      hex(tree.root),
        "leaves":    [hex(leaf) for leaf in tree.leaves[:len(accounts)]],
    }
    if index is not None:
        if not 0 <= index < len(accounts):
            raise IndexError(f"--index {index} is not an account (accounts={len(accounts)})")
        result["proof"] = tree.proof(index).to_dict()
    return result


@click.command(name="root")
@click.argument("snapshot", type=click.Path(exists=False))
@click.option(
    "--index",
    type=int,
    default=None,
    metavar="N",
    help="Also print the inclusion proof of account N.",
)
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format: human (default) or json.",
)
def root_command(snapshot: str, index: Optional[int], fmt: str) -> None:
    """
    Compute the RLC leaves and commitment root of a balance snapshot.

    SNAPSHOT is a JSON or YAML file.

    \b
    Examples:
      zkchannel root snapshot.json
      zkchannel root snapshot.yaml --index 2 --format json
    """
    path = Path(snapshot)
    if not path.exists():
        click.echo(f"Error: snapshot not found: {snapshot}", err=True)
        sys.exit(2)

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError("snapshot must be a mapping")
        result = _compute(data, index)
    except (yaml.YAMLError, KeyError, TypeError, ValueError, IndexError,
            UnsupportedTreeSize) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    if fmt == "json":
        click.echo(json.dumps(result, indent=2))
        return

    click.echo(f"  tree size   {result['tree_size']}  (arity {result['arity']})")
    click.echo(f"  prev root   {result['prev_root']}")
    click.echo(f"  accounts    {len(result['leaves'])}")
    click.echo(f"  root        {result['root']}")
    if "proof" in result:
        proof = result["proof"]
        click.echo(f"  proof       index {proof['index']}, {len(proof['siblings'])} levels")
        for level, siblings in enumerate(proof["siblings"]):
            click.echo(f"    [{level}] " + ", ".join(siblings))
