"""
Channel lifecycle transitions.

    INITIALIZED ──initialize_state──▶ OPEN ──submit_closure──▶ CLOSED
         │                             │
         └──────force_emergency────────┴──────▶ CLOSING (terminal)

Every transition strictly increases ChannelState. Nothing moves back.
"""

from typing import Dict, FrozenSet

from zkchannel.core.exceptions import InvalidStateForOperation
from zkchannel.core.models import Channel, ChannelState

ALLOWED_TRANSITIONS: Dict[ChannelState, FrozenSet[ChannelState]] = {
    ChannelState.INITIALIZED: frozenset({ChannelState.OPEN, ChannelState.CLOSING}),
    ChannelState.OPEN:        frozenset({ChannelState.CLOSED, ChannelState.CLOSING}),
    ChannelState.CLOSING:     frozenset(),
    ChannelState.CLOSED:      frozenset(),
}


def require_state(channel: Channel, operation: str, *states: ChannelState) -> None:
    """Raise InvalidStateForOperation unless channel.state is one of states."""
    if channel.state not in states:
        raise InvalidStateForOperation(
            f"{operation} not allowed in state {channel.state.name}",
            {
                "channel_id": channel.channel_id,
                "required":   "/".join(s.name for s in states),
            },
        )


def advance(channel: Channel, new_state: ChannelState) -> None:
    """Move channel to new_state if the transition table allows it."""
    if new_state not in ALLOWED_TRANSITIONS.get(channel.state, frozenset()):
        raise InvalidStateForOperation(
            f"Transition {channel.state.name} -> {new_state.name} is not allowed",
            {"channel_id": channel.channel_id},
        )
    channel.state = new_state
