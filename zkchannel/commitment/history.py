"""
Root history — the append-only sequence of committed roots per channel.
"""

from typing import Dict, List, Optional

from zkchannel.core.exceptions import InvalidStateForOperation


class RootHistory:
    """
    Append-only root sequences, one per channel handle.

    Invariant: len(sequence) == number of committed rounds. A round can
    only be appended when the caller names the round it expects to fill,
    so a stale reader cannot skip or overwrite a round.
    """

    def __init__(self) -> None:
        self._roots: Dict[int, List[int]] = {}

    def register(self, channel_id: int) -> None:
        self._roots.setdefault(channel_id, [])

    def rounds(self, channel_id: int) -> int:
        return len(self._roots.get(channel_id, []))

    def latest(self, channel_id: int) -> Optional[int]:
        roots = self._roots.get(channel_id)
        return roots[-1] if roots else None

    def append(self, channel_id: int, round_number: int, root: int) -> int:
        """Append root as round round_number. Returns the new length."""
        roots = self._roots.setdefault(channel_id, [])
        if round_number != len(roots):
            raise InvalidStateForOperation(
                "Root history round mismatch",
                {"channel_id": channel_id, "expected": len(roots), "got": round_number},
            )
        roots.append(root)
        return len(roots)

    def sequence(self, channel_id: int) -> List[int]:
        return list(self._roots.get(channel_id, []))
