"""
zkchannel/__init__.py

zkchannel: multi-party state channels settled by succinct proofs.

Participants lock fungible tokens into a channel, compute off-ledger, and
settle on a proven final balance table signed by the channel's threshold
group. If the group stalls past its deadline, anyone in the channel can
force an emergency exit that returns the original deposits and slashes
the leader's bond.
"""

__version__ = "0.3.0"

from zkchannel.bridge import ChannelBridge
from zkchannel.core.crypto import Ed25519KeyManager, GroupPublicKey, derive_signer_address
from zkchannel.core.exceptions import ChannelError
from zkchannel.core.models import (
    BondStatus,
    Channel,
    ChannelState,
    Proof,
    TreeSize,
    WithdrawalMode,
)
from zkchannel.core.time import ManualClock, SystemClock
from zkchannel.runtime.config import ProtocolConfig

__all__ = [
    # Facade
    "ChannelBridge",
    "ProtocolConfig",
    # Records
    "Channel",
    "ChannelState",
    "TreeSize",
    "Proof",
    "WithdrawalMode",
    "BondStatus",
    # Keys
    "Ed25519KeyManager",
    "GroupPublicKey",
    "derive_signer_address",
    # Errors
    "ChannelError",
    # Clocks
    "ManualClock",
    "SystemClock",
]
