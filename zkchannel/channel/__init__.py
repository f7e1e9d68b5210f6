"""
zkchannel Channel State Machine

- ChannelStore: arena of channel records keyed by integer handle
- ChannelManager: open / deposit / initialize / close / emergency
- lifecycle: the forward-only transition table
"""

from zkchannel.channel.lifecycle import ALLOWED_TRANSITIONS, advance, require_state
from zkchannel.channel.manager import ChannelManager
from zkchannel.channel.store import ChannelStore

__all__ = [
    "ALLOWED_TRANSITIONS",
    "advance",
    "require_state",
    "ChannelManager",
    "ChannelStore",
]
