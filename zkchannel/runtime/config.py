"""
Protocol configuration for zkchannel.

Loaded from YAML:

    bond_amount: 1000000000000000000
    bond_token: "0xbond"
    max_participants: 128
    tree_arity: 4
    tree_sizes: [16, 32, 64, 128]
    treasury: "0xtreasury"
    bridge_address: "0xbridge"
    verifier_keys:
      16: "<64-hex attestation public key>"
      32: "..."
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml

from zkchannel.commitment.tree import DEFAULT_ARITY, SUPPORTED_ARITIES
from zkchannel.core.exceptions import ConfigurationError
from zkchannel.core.models import TreeSize

MAX_PARTICIPANTS = 128


@dataclass
class ProtocolConfig:
    """Static protocol parameters shared by every channel."""

    bond_amount:      int
    bond_token:       str
    treasury:         str
    bridge_address:   str = "bridge"
    max_participants: int = MAX_PARTICIPANTS
    tree_arity:       int = DEFAULT_ARITY
    tree_sizes:       Tuple[TreeSize, ...] = tuple(TreeSize)
    verifier_keys:    Dict[int, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.bond_amount, int) or self.bond_amount < 0:
            raise ConfigurationError(
                "bond_amount must be a non-negative integer",
                {"bond_amount": self.bond_amount},
            )
        for name in ("bond_token", "treasury", "bridge_address"):
            if not isinstance(getattr(self, name), str) or not getattr(self, name):
                raise ConfigurationError(f"{name} must be a non-empty string")
        if not 1 <= self.max_participants <= MAX_PARTICIPANTS:
            raise ConfigurationError(
                f"max_participants must be in [1, {MAX_PARTICIPANTS}]",
                {"max_participants": self.max_participants},
            )
        if self.tree_arity not in SUPPORTED_ARITIES:
            raise ConfigurationError(
                "tree_arity must be 2 or 4", {"tree_arity": self.tree_arity}
            )
        try:
            self.tree_sizes = tuple(sorted(TreeSize(int(s)) for s in self.tree_sizes))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "tree_sizes must be drawn from 16/32/64/128",
                {"tree_sizes": self.tree_sizes},
            ) from exc
        if not self.tree_sizes:
            raise ConfigurationError("tree_sizes must not be empty")
        for size, key_hex in self.verifier_keys.items():
            if int(size) not in {int(s) for s in self.tree_sizes}:
                raise ConfigurationError(
                    "verifier key bound to a size not in tree_sizes", {"tree_size": size}
                )
            if not isinstance(key_hex, str) or len(key_hex) != 64:
                raise ConfigurationError(
                    "verifier key must be a 64-char hex string", {"tree_size": size}
                )

    @property
    def max_leaves(self) -> int:
        return int(self.tree_sizes[-1])

    # ── Loading ───────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProtocolConfig":
        if not isinstance(data, dict):
            raise ConfigurationError("protocol config must be a mapping")
        try:
            return cls(
                bond_amount=      int(data["bond_amount"]),
                bond_token=       data["bond_token"],
                treasury=         data["treasury"],
                bridge_address=   data.get("bridge_address", "bridge"),
                max_participants= int(data.get("max_participants", MAX_PARTICIPANTS)),
                tree_arity=       int(data.get("tree_arity", DEFAULT_ARITY)),
                tree_sizes=       tuple(data.get("tree_sizes", [int(s) for s in TreeSize])),
                verifier_keys=    {
                    int(k): v for k, v in (data.get("verifier_keys") or {}).items()
                },
            )
        except KeyError as exc:
            raise ConfigurationError(
                "missing required config key", {"key": exc.args[0]}
            ) from exc
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(
                "malformed config value", {"error": str(exc)}
            ) from exc

    @classmethod
    def from_yaml(cls, path: Path) -> "ProtocolConfig":
        path = Path(path)
        if not path.exists():
            raise ConfigurationError("config file not found", {"path": str(path)})
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                "config file is not valid YAML", {"path": str(path), "error": str(exc)}
            ) from exc
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bond_amount":      self.bond_amount,
            "bond_token":       self.bond_token,
            "treasury":         self.treasury,
            "bridge_address":   self.bridge_address,
            "max_participants": self.max_participants,
            "tree_arity":       self.tree_arity,
            "tree_sizes":       [int(s) for s in self.tree_sizes],
            "verifier_keys":    dict(self.verifier_keys),
        }
