"""
Channel arena — channel records addressed by integer handles.

Handles are issued in increasing order starting at first_id (1 for a fresh
bridge) and never reused. A bridge resuming an existing journal starts
past every handle the journal already names. The sibling tables
(deposits, withdrawal records, root history, bonds) are keyed by the same
handle; the store owns only the Channel records themselves.
"""

from typing import Dict, Iterator

from zkchannel.core.exceptions import ChannelNotFound
from zkchannel.core.models import Channel


class ChannelStore:

    def __init__(self, first_id: int = 1) -> None:
        if not isinstance(first_id, int) or first_id < 1:
            raise ValueError(f"first channel handle must be >= 1, got {first_id!r}")
        self._channels: Dict[int, Channel] = {}
        self._next_id = first_id

    def peek_next_id(self) -> int:
        """Handle the next insert() will use."""
        return self._next_id

    def insert(self, channel: Channel) -> int:
        if channel.channel_id != self._next_id:
            raise ValueError(
                f"channel handle {channel.channel_id} is not the next handle {self._next_id}"
            )
        self._channels[channel.channel_id] = channel
        self._next_id += 1
        return channel.channel_id

    def get(self, channel_id: int) -> Channel:
        channel = self._channels.get(channel_id)
        if channel is None:
            raise ChannelNotFound("Channel not found", {"channel_id": channel_id})
        return channel

    def __contains__(self, channel_id: int) -> bool:
        return channel_id in self._channels

    def __iter__(self) -> Iterator[Channel]:
        return iter(self._channels.values())

    def __len__(self) -> int:
        return len(self._channels)
