"""
zkchannel/settlement/withdrawals.py

Withdrawal records and the two payout paths.

PROOF path (channel CLOSED):
    records hold the final balances accepted at closure. A participant
    takes out exactly their record, proving their leaf is included in the
    final root. One payout per (participant, token).

EMERGENCY path (channel CLOSING after force_emergency):
    records hold the original deposits. Partial withdrawals are allowed
    until the record is exhausted.

Effects before interactions: the journal entry is written and the record
debited before the token is called. If the transfer raises, the record is
restored, the entry retracted and the error propagates, so either all of
it happens or none does. A token that calls back into the bridge during
the transfer sees the already-debited record.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from zkchannel.commitment.rlc import rlc_leaf
from zkchannel.commitment.tree import InclusionProof, verify_inclusion
from zkchannel.core.exceptions import (
    AlreadyWithdrawn,
    AmountMismatch,
    InvalidStateForOperation,
    ProofInvalid,
    TokenNotAllowed,
    Unauthorized,
)
from zkchannel.core.models import Channel, ChannelState, WithdrawalMode, WithdrawalRecord
from zkchannel.ledger.deposits import DepositLedger
from zkchannel.ledger.journal import EventJournal, EventType, JournalEntry
from zkchannel.verification.registry import TargetRegistry

logger = logging.getLogger(__name__)


class WithdrawalBook:
    """Withdrawal records per channel, plus the final balance vector."""

    def __init__(self) -> None:
        self._records: Dict[int, Dict[Tuple[str, str], WithdrawalRecord]] = {}
        self._final_amounts: Dict[int, List[int]] = {}

    def populate(
        self,
        channel: Channel,
        amounts: Sequence[int],
        mode:    WithdrawalMode,
    ) -> None:
        """Create one record per account from a participant-major amount vector."""
        if channel.channel_id in self._records:
            raise InvalidStateForOperation(
                "Withdrawal records already exist", {"channel_id": channel.channel_id}
            )
        records = {}
        position = 0
        for participant in channel.participants:
            for token in channel.allowed_tokens:
                records[(participant, token)] = WithdrawalRecord(
                    participant=participant,
                    token=      token,
                    amount=     amounts[position],
                    mode=       mode,
                )
                position += 1
        self._records[channel.channel_id] = records
        if mode is WithdrawalMode.PROOF:
            self._final_amounts[channel.channel_id] = list(amounts)

    def get(self, channel_id: int, participant: str, token: str) -> Optional[WithdrawalRecord]:
        return self._records.get(channel_id, {}).get((participant, token))

    def final_amounts(self, channel_id: int) -> Optional[List[int]]:
        amounts = self._final_amounts.get(channel_id)
        return list(amounts) if amounts is not None else None


class WithdrawalSettlement:
    """Executes withdraw() and emergency_withdraw() against the book."""

    def __init__(
        self,
        book:           WithdrawalBook,
        deposits:       DepositLedger,
        registry:       TargetRegistry,
        journal:        EventJournal,
        bridge_address: str,
        arity:          int,
    ) -> None:
        self.book = book
        self.deposits = deposits
        self.registry = registry
        self.journal = journal
        self.bridge_address = bridge_address
        self.arity = arity

    # ── Proof path ────────────────────────────────────────────

    def withdraw(
        self,
        channel:     Channel,
        participant: str,
        token:       str,
        amount:      int,
        proof:       InclusionProof,
    ) -> WithdrawalRecord:
        if channel.state != ChannelState.CLOSED:
            raise InvalidStateForOperation(
                "Withdrawals require a closed channel",
                {"channel_id": channel.channel_id, "state": channel.state.name},
            )
        record = self._record(channel, participant, token)

        if record.withdrawn:
            raise AlreadyWithdrawn(
                "Already withdrawn",
                {"channel_id": channel.channel_id, "participant": participant, "token": token},
            )
        if amount != record.amount or amount <= 0:
            raise AmountMismatch(
                "Amount does not match the final balance",
                {"channel_id": channel.channel_id, "expected": record.amount, "got": amount},
            )
        self._check_inclusion(channel, participant, token, amount, proof)

        entry = self.journal.emit(EventType.WITHDRAWAL, channel.channel_id, {
            "participant": participant,
            "token":       token,
            "amount":      str(amount),
        })
        record.amount = 0
        record.withdrawn = True
        self._pay(channel, record, amount, entry, restore=(amount, False))
        logger.info(
            "channel %d: %s withdrew %d of %s", channel.channel_id, participant, amount, token
        )
        return record

    # ── Emergency path ────────────────────────────────────────

    def emergency_withdraw(
        self,
        channel:     Channel,
        participant: str,
        token:       str,
        amount:      int,
    ) -> WithdrawalRecord:
        if not channel.emergency:
            raise InvalidStateForOperation(
                "Emergency withdrawals require a channel in emergency mode",
                {"channel_id": channel.channel_id, "state": channel.state.name},
            )
        record = self._record(channel, participant, token)

        if record.withdrawn:
            raise AlreadyWithdrawn(
                "Emergency balance already withdrawn",
                {"channel_id": channel.channel_id, "participant": participant, "token": token},
            )
        if not isinstance(amount, int) or amount <= 0 or amount > record.amount:
            raise AmountMismatch(
                "Amount exceeds the remaining emergency balance",
                {"channel_id": channel.channel_id, "remaining": record.amount, "got": amount},
            )

        previous = record.amount
        entry = self.journal.emit(EventType.EMERGENCY_WITHDRAWAL, channel.channel_id, {
            "participant": participant,
            "token":       token,
            "amount":      str(amount),
            "remaining":   str(previous - amount),
        })
        record.amount = previous - amount
        record.withdrawn = record.amount == 0
        self._pay(channel, record, amount, entry, restore=(previous, False))
        logger.info(
            "channel %d: %s emergency-withdrew %d of %s (%d left)",
            channel.channel_id, participant, amount, token, record.amount,
        )
        return record

    # ── Internal ──────────────────────────────────────────────

    def _record(self, channel: Channel, participant: str, token: str) -> WithdrawalRecord:
        if not channel.is_participant(participant):
            raise Unauthorized(
                "Not a channel participant",
                {"channel_id": channel.channel_id, "caller": participant},
            )
        if token not in channel.allowed_tokens:
            raise TokenNotAllowed(
                "Token not allowed on channel",
                {"channel_id": channel.channel_id, "token": token},
            )
        record = self.book.get(channel.channel_id, participant, token)
        if record is None:
            raise InvalidStateForOperation(
                "No withdrawal record", {"channel_id": channel.channel_id}
            )
        return record

    def _check_inclusion(
        self,
        channel:     Channel,
        participant: str,
        token:       str,
        amount:      int,
        proof:       InclusionProof,
    ) -> None:
        expected_index = channel.leaf_index(participant, token)
        if not isinstance(proof, InclusionProof) or proof.index != expected_index:
            raise ProofInvalid(
                "Inclusion proof is not for this account",
                {"channel_id": channel.channel_id, "expected_index": expected_index},
            )
        key = self.deposits.get(channel.channel_id, participant, token).l2_key
        leaf = rlc_leaf(channel.initial_root, key, amount)
        if not verify_inclusion(
            channel.final_root, leaf, proof.index, proof.siblings, self.arity
        ):
            raise ProofInvalid(
                "Inclusion proof does not match the final root",
                {"channel_id": channel.channel_id, "index": proof.index},
            )

    def _pay(
        self,
        channel: Channel,
        record:  WithdrawalRecord,
        amount:  int,
        entry:   JournalEntry,
        restore: Tuple[int, bool],
    ) -> None:
        try:
            self.registry.token(record.token).transfer(
                self.bridge_address, record.participant, amount
            )
        except Exception:
            record.amount, record.withdrawn = restore
            self.journal.retract(entry)
            logger.error(
                "channel %d: payout to %s failed, record restored",
                channel.channel_id, record.participant,
            )
            raise
