"""
Deposit ledger — per channel, per participant, per token accounting.

Tables (all keyed by channel handle first):
    deposits[channel][(participant, token)] → ParticipantDeposit
    totals[channel][token]                  → int

Conservation: for every (channel, token),
    sum(deposits[channel][(p, token)].amount for p) == totals[channel][token]
credit() is the only writer and updates both tables together.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from zkchannel.core.exceptions import InvalidL2Key
from zkchannel.core.field import is_field_element
from zkchannel.core.models import ParticipantDeposit

logger = logging.getLogger(__name__)

AccountKey = Tuple[str, str]


class DepositLedger:
    """Deposit tables for every channel in the arena."""

    def __init__(self) -> None:
        self._deposits: Dict[int, Dict[AccountKey, ParticipantDeposit]] = {}
        self._totals:   Dict[int, Dict[str, int]] = {}

    def register(self, channel_id: int) -> None:
        self._deposits.setdefault(channel_id, {})
        self._totals.setdefault(channel_id, {})

    # ── Validation ────────────────────────────────────────────

    def check_l2_key(
        self,
        channel_id:  int,
        participant: str,
        token:       str,
        l2_key:      int,
    ) -> None:
        """
        Raise InvalidL2Key unless l2_key may be used for (participant, token).

        Rules:
            non-zero field element
            same key as the account's first deposit
            not used by any other account of the channel
        """
        if not is_field_element(l2_key) or l2_key == 0:
            raise InvalidL2Key(
                "L2 key must be a non-zero field element",
                {"channel_id": channel_id, "participant": participant},
            )
        accounts = self._deposits.get(channel_id, {})
        existing = accounts.get((participant, token))
        if existing is not None and existing.l2_key != l2_key:
            raise InvalidL2Key(
                "L2 key differs from the key of the first deposit",
                {"channel_id": channel_id, "participant": participant, "token": token},
            )
        for account, record in accounts.items():
            if account != (participant, token) and record.l2_key == l2_key:
                raise InvalidL2Key(
                    "L2 key already used by another account in this channel",
                    {"channel_id": channel_id, "participant": participant, "token": token},
                )

    # ── Mutation ──────────────────────────────────────────────

    def credit(
        self,
        channel_id:  int,
        participant: str,
        token:       str,
        amount:      int,
        l2_key:      int,
    ) -> ParticipantDeposit:
        """Add amount to the account and to the channel total."""
        if amount <= 0:
            raise ValueError(f"credit amount must be positive, got {amount}")
        accounts = self._deposits.setdefault(channel_id, {})
        totals = self._totals.setdefault(channel_id, {})

        record = accounts.setdefault((participant, token), ParticipantDeposit(l2_key=l2_key))
        record.amount += amount
        totals[token] = totals.get(token, 0) + amount
        logger.info(
            "channel %d: credited %d of %s to %s (total %d)",
            channel_id, amount, token, participant, totals[token],
        )
        return record

    # ── Views ─────────────────────────────────────────────────

    def get(self, channel_id: int, participant: str, token: str) -> ParticipantDeposit:
        record = self._deposits.get(channel_id, {}).get((participant, token))
        if record is None:
            return ParticipantDeposit()
        return ParticipantDeposit(amount=record.amount, l2_key=record.l2_key)

    def total(self, channel_id: int, token: str) -> int:
        return self._totals.get(channel_id, {}).get(token, 0)

    def keys(
        self,
        channel_id:   int,
        participants: Sequence[str],
        tokens:       Sequence[str],
    ) -> List[int]:
        """L2 keys in participant-major order (0 where nothing was deposited)."""
        return [
            self.get(channel_id, p, t).l2_key for p in participants for t in tokens
        ]

    def snapshot(
        self,
        channel_id:   int,
        participants: Sequence[str],
        tokens:       Sequence[str],
    ) -> Tuple[List[int], List[int]]:
        """(keys, amounts) in participant-major, token-minor order."""
        records = [self.get(channel_id, p, t) for p in participants for t in tokens]
        return [r.l2_key for r in records], [r.amount for r in records]
