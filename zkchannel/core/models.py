"""
zkchannel/core/models.py

Channel Data Model

═══════════════════════════════════════════════════════════════════
RECORD INVARIANTS
═══════════════════════════════════════════════════════════════════

Channel
    state only moves forward: NONE < INITIALIZED < OPEN < CLOSING < CLOSED
    once state == CLOSED, final_root is immutable
    open_timestamp <= close_timestamp
    signer_address is derived from group_public_key once, at open

ParticipantDeposit
    amount >= 0
    l2_key is fixed by the first deposit and never changes

WithdrawalRecord
    withdrawn == True  ⇒  amount == 0
    a record pays out at most once (partially, in emergency mode)

LeaderBond
    attached to exactly one channel
    POSTED → RECLAIMED | SLASHED, never back
═══════════════════════════════════════════════════════════════════
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Iterable, Optional, Tuple

from zkchannel.core.crypto import GroupPublicKey
from zkchannel.core.exceptions import TokenNotAllowed, Unauthorized, UnsupportedTreeSize


# ─────────────────────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────────────────────

class ChannelState(IntEnum):
    """
    Channel lifecycle states, ordered.

    NONE is the absence of a channel id and is never stored.
    CLOSING is entered only through the emergency fallback.
    """
    NONE        = 0
    INITIALIZED = 1
    OPEN        = 2
    CLOSING     = 3
    CLOSED      = 4


# ─────────────────────────────────────────────────────────────
# Tree sizes: closed set, one verifier binding each
# ─────────────────────────────────────────────────────────────

class TreeSize(IntEnum):
    """
    Supported commitment tree sizes (leaf capacity).

    Each size has its own verifier binding in the proof gateway and its
    own fixed public-input length: N keys, N values, 1 root.
    """
    S16  = 16
    S32  = 32
    S64  = 64
    S128 = 128

    @property
    def public_input_length(self) -> int:
        return 2 * int(self) + 1

    @classmethod
    def for_leaf_count(
        cls,
        leaf_count: int,
        supported:  Optional[Iterable[int]] = None,
    ) -> "TreeSize":
        """
        Smallest supported size that holds leaf_count leaves.

        Raises UnsupportedTreeSize if none is large enough.
        """
        sizes = sorted(cls(s) for s in (supported or list(cls)))
        for size in sizes:
            if leaf_count <= size:
                return size
        raise UnsupportedTreeSize(
            "No supported tree size holds the requested leaves",
            {"leaf_count": leaf_count, "largest": int(sizes[-1]) if sizes else None},
        )


class WithdrawalMode(Enum):
    PROOF     = "proof"
    EMERGENCY = "emergency"


class BondStatus(Enum):
    POSTED    = "posted"
    RECLAIMED = "reclaimed"
    SLASHED   = "slashed"


class SlashReason(Enum):
    CLOSURE_TIMEOUT = "closure_timeout"


# ─────────────────────────────────────────────────────────────
# Records
# ─────────────────────────────────────────────────────────────

@dataclass
class Channel:
    """One channel record in the arena. Addressed by channel_id."""

    channel_id:       int
    leader:           str
    participants:     Tuple[str, ...]
    allowed_tokens:   Tuple[str, ...]
    timeout:          int
    group_public_key: GroupPublicKey
    signer_address:   str
    open_timestamp:   int
    state:            ChannelState = ChannelState.INITIALIZED
    close_timestamp:  Optional[int] = None
    initial_root:     Optional[int] = None
    final_root:       Optional[int] = None
    tree_size:        Optional[TreeSize] = None
    emergency:        bool = False

    @property
    def deadline(self) -> int:
        """Last second at which the normal (proof-gated) path is open."""
        return self.open_timestamp + self.timeout

    @property
    def leaf_count(self) -> int:
        return len(self.participants) * len(self.allowed_tokens)

    def is_participant(self, account: str) -> bool:
        return account in self.participants

    def leaf_index(self, participant: str, token: str) -> int:
        """Participant-major, token-minor position of an account leaf."""
        if participant not in self.participants:
            raise Unauthorized(
                "Not a channel participant",
                {"channel_id": self.channel_id, "caller": participant},
            )
        if token not in self.allowed_tokens:
            raise TokenNotAllowed(
                "Token not allowed on channel",
                {"channel_id": self.channel_id, "token": token},
            )
        return (
            self.participants.index(participant) * len(self.allowed_tokens)
            + self.allowed_tokens.index(token)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel_id":       self.channel_id,
            "leader":           self.leader,
            "participants":     list(self.participants),
            "allowed_tokens":   list(self.allowed_tokens),
            "timeout":          self.timeout,
            "group_public_key": self.group_public_key.to_dict(),
            "signer_address":   self.signer_address,
            "state":            self.state.name,
            "open_timestamp":   self.open_timestamp,
            "close_timestamp":  self.close_timestamp,
            "initial_root":     _hex_or_none(self.initial_root),
            "final_root":       _hex_or_none(self.final_root),
            "tree_size":        int(self.tree_size) if self.tree_size else None,
            "emergency":        self.emergency,
        }


@dataclass
class ParticipantDeposit:
    """Accumulated deposit of one participant in one token."""
    amount: int = 0
    l2_key: int = 0


@dataclass
class WithdrawalRecord:
    """What one participant may still take out in one token."""

    participant: str
    token:       str
    amount:      int
    mode:        WithdrawalMode
    withdrawn:   bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant": self.participant,
            "token":       self.token,
            "amount":      self.amount,
            "mode":        self.mode.value,
            "withdrawn":   self.withdrawn,
        }


@dataclass
class LeaderBond:
    """Collateral posted by a channel leader."""

    channel_id: int
    leader:     str
    amount:     int
    status:     BondStatus = BondStatus.POSTED
    reason:     Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "leader":     self.leader,
            "amount":     self.amount,
            "status":     self.status.value,
            "reason":     self.reason,
        }


@dataclass(frozen=True)
class Proof:
    """
    Opaque succinct proof as submitted by a caller.

    data is whatever the bound verifier understands. function_instance
    is the optional function-instance word vector the proof was made for;
    when present its hash must be registered for one of the channel tokens.
    """
    data:              str
    function_instance: Tuple[int, ...] = field(default_factory=tuple)


def _hex_or_none(value: Optional[int]) -> Optional[str]:
    return None if value is None else hex(value)
