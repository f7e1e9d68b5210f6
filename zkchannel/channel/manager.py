"""
zkchannel/channel/manager.py

Channel Manager — owns the lifecycle of every channel.

═══════════════════════════════════════════════════════════════════
OPERATIONS
═══════════════════════════════════════════════════════════════════

open_channel       → INITIALIZED   leader posts bond, signer address derived
deposit            INITIALIZED/OPEN, before the deadline
initialize_state   INITIALIZED → OPEN   proof over the deposit table
submit_closure     OPEN → CLOSED        proof + group signature over final root
force_emergency    INITIALIZED/OPEN → CLOSING   after the deadline, slashes bond

Every operation validates completely before it mutates anything. A
rejected call leaves all tables exactly as they were. The journal entry
is written after validation and before any table changes, so a journal
write failure is a rejection too.

CLOSURE CHECK ORDER
    1. withdraw_amounts shape             → InvalidPublicInputLength
    2. per-token sum <= token deposits    → AmountMismatch
    3. final root recomputes from amounts → ProofInvalid
    4. function instance registered       → ProofInvalid
    5. gateway accepts the proof          → ProofInvalid
    6. threshold signature                → SignatureInvalid
═══════════════════════════════════════════════════════════════════
"""

import logging
from typing import List, Optional, Sequence

from zkchannel.channel.lifecycle import advance, require_state
from zkchannel.channel.store import ChannelStore
from zkchannel.commitment.history import RootHistory
from zkchannel.commitment.rlc import build_leaves, chaining_seed, public_inputs
from zkchannel.commitment.tree import compute_root
from zkchannel.core.canonical import field_hex
from zkchannel.core.crypto import GroupPublicKey, derive_signer_address
from zkchannel.core.exceptions import (
    AmountMismatch,
    ChallengeNotElapsed,
    ChannelExpired,
    InsufficientBalanceOrAllowance,
    InvalidParticipants,
    InvalidPublicInputLength,
    InvalidStateForOperation,
    InvalidTimeout,
    ProofInvalid,
    SignatureInvalid,
    TokenNotAllowed,
    Unauthorized,
)
from zkchannel.core.field import is_field_element
from zkchannel.core.models import (
    Channel,
    ChannelState,
    ParticipantDeposit,
    Proof,
    SlashReason,
    TreeSize,
    WithdrawalMode,
)
from zkchannel.core.time import Clock
from zkchannel.ledger.deposits import DepositLedger
from zkchannel.ledger.journal import EventJournal, EventType
from zkchannel.runtime.config import ProtocolConfig
from zkchannel.settlement.bonds import BondManager
from zkchannel.settlement.withdrawals import WithdrawalBook
from zkchannel.verification.gateway import ProofVerificationGateway
from zkchannel.verification.registry import TargetRegistry
from zkchannel.verification.threshold import ThresholdSignatureVerifier, closure_message

logger = logging.getLogger(__name__)


class ChannelManager:
    """
    Lifecycle operations over the channel arena and its sibling tables.

    Not thread-safe on its own; ChannelBridge serializes calls.
    """

    def __init__(
        self,
        config:    ProtocolConfig,
        store:     ChannelStore,
        deposits:  DepositLedger,
        history:   RootHistory,
        book:      WithdrawalBook,
        bonds:     BondManager,
        registry:  TargetRegistry,
        gateway:   ProofVerificationGateway,
        threshold: ThresholdSignatureVerifier,
        journal:   EventJournal,
        clock:     Clock,
    ) -> None:
        self.config = config
        self.store = store
        self.deposits = deposits
        self.history = history
        self.book = book
        self.bonds = bonds
        self.registry = registry
        self.gateway = gateway
        self.threshold = threshold
        self.journal = journal
        self.clock = clock

    # ─────────────────────────────────────────────────────────
    # open_channel
    # ─────────────────────────────────────────────────────────

    def open_channel(
        self,
        leader:           str,
        participants:     Sequence[str],
        allowed_tokens:   Sequence[str],
        timeout:          int,
        group_public_key: GroupPublicKey,
    ) -> Channel:
        participants = tuple(participants)
        allowed_tokens = tuple(allowed_tokens)

        if not participants or len(participants) > self.config.max_participants:
            raise InvalidParticipants(
                "Participant count out of range",
                {"count": len(participants), "max": self.config.max_participants},
            )
        if len(set(participants)) != len(participants):
            raise InvalidParticipants("Duplicate participants")
        if not allowed_tokens or len(set(allowed_tokens)) != len(allowed_tokens):
            raise TokenNotAllowed(
                "Allowed tokens must be a non-empty list without duplicates",
                {"tokens": list(allowed_tokens)},
            )
        for token in allowed_tokens:
            if not self.registry.is_registered(token):
                raise TokenNotAllowed("Token is not a registered target", {"token": token})
        if len(participants) * len(allowed_tokens) > self.config.max_leaves:
            raise InvalidParticipants(
                "Participants x tokens exceeds the largest tree size",
                {
                    "leaves":  len(participants) * len(allowed_tokens),
                    "largest": self.config.max_leaves,
                },
            )
        if not isinstance(timeout, int) or timeout <= 0:
            raise InvalidTimeout("Timeout must be a positive number of seconds", {"timeout": timeout})
        if not isinstance(group_public_key, GroupPublicKey):
            raise TypeError("group_public_key must be a GroupPublicKey")

        channel_id = self.store.peek_next_id()
        channel = Channel(
            channel_id=       channel_id,
            leader=           leader,
            participants=     participants,
            allowed_tokens=   allowed_tokens,
            timeout=          timeout,
            group_public_key= group_public_key,
            signer_address=   derive_signer_address(group_public_key),
            open_timestamp=   self.clock.now(),
        )

        opened = self.journal.emit(EventType.CHANNEL_OPENED, channel_id, {
            "leader":         leader,
            "participants":   list(participants),
            "allowed_tokens": list(allowed_tokens),
            "timeout":        timeout,
            "signer_address": channel.signer_address,
        })
        try:
            self.bonds.post(channel_id, leader)
        except Exception:
            self.journal.retract(opened)
            raise

        self.store.insert(channel)
        self.deposits.register(channel_id)
        self.history.register(channel_id)
        logger.info(
            "channel %d opened by %s (%d participants, %d tokens, deadline %d)",
            channel_id, leader, len(participants), len(allowed_tokens), channel.deadline,
        )
        return channel

    # ─────────────────────────────────────────────────────────
    # deposit
    # ─────────────────────────────────────────────────────────

    def deposit(
        self,
        channel_id:  int,
        participant: str,
        token:       str,
        amount:      int,
        l2_key:      int,
    ) -> ParticipantDeposit:
        """
        Pull amount of token from participant and credit what arrived.

        The credited amount is the bridge's measured balance increase,
        which is less than amount for fee-on-transfer tokens.
        """
        channel = self.store.get(channel_id)
        require_state(channel, "deposit", ChannelState.INITIALIZED, ChannelState.OPEN)
        if not channel.is_participant(participant):
            raise Unauthorized(
                "Not a channel participant", {"channel_id": channel_id, "caller": participant}
            )
        if token not in channel.allowed_tokens:
            raise TokenNotAllowed(
                "Token not allowed on channel", {"channel_id": channel_id, "token": token}
            )
        if self.clock.now() > channel.deadline:
            raise ChannelExpired(
                "Channel deadline has passed",
                {"channel_id": channel_id, "deadline": channel.deadline},
            )
        if not isinstance(amount, int) or amount <= 0:
            raise InsufficientBalanceOrAllowance(
                "Deposit amount must be positive", {"channel_id": channel_id, "amount": amount}
            )
        self.deposits.check_l2_key(channel_id, participant, token, l2_key)

        target = self.registry.token(token)
        bridge = self.config.bridge_address
        before = target.balance_of(bridge)
        target.transfer_from(bridge, participant, bridge, amount)
        received = target.balance_of(bridge) - before
        if received <= 0:
            raise InsufficientBalanceOrAllowance(
                "Token transfer delivered nothing",
                {"channel_id": channel_id, "token": token, "amount": amount},
            )
        if received != amount:
            logger.info(
                "channel %d: %s delivered %d of %d requested (fee-on-transfer)",
                channel_id, token, received, amount,
            )

        try:
            self.journal.emit(EventType.DEPOSIT, channel_id, {
                "participant": participant,
                "token":       token,
                "amount":      str(received),
                "l2_key":      field_hex(l2_key),
            })
        except Exception:
            target.transfer(bridge, participant, received)
            logger.error(
                "channel %d: deposit of %s by %s not journaled, %d returned",
                channel_id, token, participant, received,
            )
            raise

        self.deposits.credit(channel_id, participant, token, received, l2_key)
        return self.deposits.get(channel_id, participant, token)

    # ─────────────────────────────────────────────────────────
    # initialize_state
    # ─────────────────────────────────────────────────────────

    def initialize_state(self, channel_id: int, caller: str, proof: Proof) -> int:
        """Commit the deposit table as the channel's initial root. Returns it."""
        channel = self.store.get(channel_id)
        require_state(channel, "initialize_state", ChannelState.INITIALIZED)
        if caller != channel.leader:
            raise Unauthorized(
                "Only the channel leader can initialize state",
                {"channel_id": channel_id, "caller": caller},
            )
        if self.clock.now() > channel.deadline:
            raise ChannelExpired(
                "Channel deadline has passed",
                {"channel_id": channel_id, "deadline": channel.deadline},
            )

        tree_size = self.tree_size_for(channel)
        keys, amounts = self.deposits.snapshot(
            channel_id, channel.participants, channel.allowed_tokens
        )
        root = self._root(chaining_seed(channel_id), keys, amounts, tree_size)
        inputs = public_inputs(keys, amounts, root, tree_size)
        if not self.gateway.verify(tree_size, proof, inputs):
            raise ProofInvalid(
                "Initialization proof rejected",
                {"channel_id": channel_id, "tree_size": int(tree_size)},
            )

        self.journal.emit(EventType.STATE_INITIALIZED, channel_id, {
            "initial_root": field_hex(root),
            "tree_size":    int(tree_size),
        })
        self.history.append(channel_id, 0, root)
        channel.tree_size = tree_size
        channel.initial_root = root
        advance(channel, ChannelState.OPEN)
        logger.info("channel %d initialized (root %s)", channel_id, field_hex(root)[:16])
        return root

    # ─────────────────────────────────────────────────────────
    # submit_closure
    # ─────────────────────────────────────────────────────────

    def submit_closure(
        self,
        channel_id:       int,
        caller:           str,
        final_root:       int,
        proof:            Proof,
        signature:        str,
        withdraw_amounts: Sequence[Sequence[int]],
    ) -> Channel:
        """
        Close the channel on a proven, group-signed final balance table.

        withdraw_amounts[p][t] is the final balance of participant p in
        token t, indexed like channel.participants / channel.allowed_tokens.
        """
        channel = self.store.get(channel_id)
        require_state(channel, "submit_closure", ChannelState.OPEN)
        if caller != channel.leader and not channel.is_participant(caller):
            raise Unauthorized(
                "Only the leader or a participant can submit closure",
                {"channel_id": channel_id, "caller": caller},
            )
        if self.clock.now() > channel.deadline:
            raise ChannelExpired(
                "Channel deadline has passed",
                {"channel_id": channel_id, "deadline": channel.deadline},
            )

        amounts = self.flatten_amounts(channel, withdraw_amounts)
        self._check_conservation(channel, amounts)

        keys = self.deposits.keys(channel_id, channel.participants, channel.allowed_tokens)
        tree_size = channel.tree_size
        expected = self._root(channel.initial_root, keys, amounts, tree_size)
        if final_root != expected:
            raise ProofInvalid(
                "Final root does not commit to the submitted balances",
                {"channel_id": channel_id},
            )

        if proof.function_instance:
            if self.registry.find_instance(channel.allowed_tokens, proof.function_instance) is None:
                raise ProofInvalid(
                    "Function instance is not registered for any channel token",
                    {"channel_id": channel_id},
                )

        inputs = public_inputs(keys, amounts, final_root, tree_size)
        if not self.gateway.verify(tree_size, proof, inputs):
            raise ProofInvalid("Closure proof rejected", {"channel_id": channel_id})

        message = closure_message(
            channel_id, channel.initial_root, final_root, channel.signer_address
        )
        if not self.threshold.verify(
            message, channel.group_public_key, signature, channel.signer_address
        ):
            raise SignatureInvalid(
                "Group signature rejected",
                {"channel_id": channel_id, "signer": channel.signer_address},
            )

        self.journal.emit(EventType.CHANNEL_CLOSED, channel_id, {
            "submitted_by": caller,
            "final_root":   field_hex(final_root),
            "amounts":      [str(a) for a in amounts],
        })
        self.history.append(channel_id, 1, final_root)
        self.book.populate(channel, amounts, WithdrawalMode.PROOF)
        channel.final_root = final_root
        channel.close_timestamp = self.clock.now()
        advance(channel, ChannelState.CLOSED)
        logger.info("channel %d closed by %s", channel_id, caller)
        return channel

    # ─────────────────────────────────────────────────────────
    # force_emergency
    # ─────────────────────────────────────────────────────────

    def force_emergency(self, channel_id: int, caller: str) -> Channel:
        """
        Abandon the proof path after the deadline. Deposits become
        withdrawable as they were, and the leader's bond is slashed.
        """
        channel = self.store.get(channel_id)
        if channel.emergency:
            raise InvalidStateForOperation(
                "Channel already in emergency mode", {"channel_id": channel_id}
            )
        require_state(channel, "force_emergency", ChannelState.INITIALIZED, ChannelState.OPEN)
        if not channel.is_participant(caller):
            raise Unauthorized(
                "Only a participant can force emergency mode",
                {"channel_id": channel_id, "caller": caller},
            )
        now = self.clock.now()
        if now <= channel.deadline:
            raise ChallengeNotElapsed(
                "Channel deadline has not passed",
                {"channel_id": channel_id, "deadline": channel.deadline, "now": now},
            )

        _, amounts = self.deposits.snapshot(
            channel_id, channel.participants, channel.allowed_tokens
        )
        forced = self.journal.emit(EventType.EMERGENCY_FORCED, channel_id, {"forced_by": caller})
        try:
            self.bonds.slash(channel_id, SlashReason.CLOSURE_TIMEOUT)
        except Exception:
            self.journal.retract(forced)
            raise
        self.book.populate(channel, amounts, WithdrawalMode.EMERGENCY)
        channel.emergency = True
        advance(channel, ChannelState.CLOSING)
        logger.warning("channel %d forced into emergency mode by %s", channel_id, caller)
        return channel

    # ─────────────────────────────────────────────────────────
    # Helpers shared with the bridge's read-only queries
    # ─────────────────────────────────────────────────────────

    def tree_size_for(self, channel: Channel) -> TreeSize:
        if channel.tree_size is not None:
            return channel.tree_size
        return TreeSize.for_leaf_count(channel.leaf_count, self.config.tree_sizes)

    def expected_root(
        self,
        channel_id: int,
        amounts:    Optional[Sequence[int]] = None,
    ) -> int:
        """
        Root the next commitment round must present.

        Without amounts: the initial root over the current deposit table.
        With participant-major amounts: the final root after the initial one.
        """
        channel = self.store.get(channel_id)
        tree_size = self.tree_size_for(channel)
        keys, deposited = self.deposits.snapshot(
            channel_id, channel.participants, channel.allowed_tokens
        )
        if amounts is None:
            return self._root(chaining_seed(channel_id), keys, deposited, tree_size)
        if channel.initial_root is None:
            raise InvalidStateForOperation(
                "Channel has no initial root yet", {"channel_id": channel_id}
            )
        return self._root(channel.initial_root, keys, list(amounts), tree_size)

    def _root(
        self,
        prev_root: int,
        keys:      Sequence[int],
        values:    Sequence[int],
        tree_size: TreeSize,
    ) -> int:
        if not all(is_field_element(v) for v in values):
            raise AmountMismatch("Balance does not fit the commitment field")
        leaves = build_leaves(prev_root, keys, values, tree_size)
        return compute_root(leaves, self.config.tree_arity)

    @staticmethod
    def flatten_amounts(
        channel:          Channel,
        withdraw_amounts: Sequence[Sequence[int]],
    ) -> List[int]:
        n_participants = len(channel.participants)
        n_tokens = len(channel.allowed_tokens)
        if len(withdraw_amounts) != n_participants or any(
            len(row) != n_tokens for row in withdraw_amounts
        ):
            raise InvalidPublicInputLength(
                "withdraw_amounts must be participants x tokens",
                {
                    "channel_id":   channel.channel_id,
                    "participants": n_participants,
                    "tokens":       n_tokens,
                },
            )
        amounts = [a for row in withdraw_amounts for a in row]
        for amount in amounts:
            if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
                raise AmountMismatch(
                    "Final balances must be non-negative integers",
                    {"channel_id": channel.channel_id, "amount": repr(amount)},
                )
        return amounts

    def _check_conservation(self, channel: Channel, amounts: Sequence[int]) -> None:
        n_tokens = len(channel.allowed_tokens)
        for t, token in enumerate(channel.allowed_tokens):
            claimed = sum(amounts[t::n_tokens])
            deposited = self.deposits.total(channel.channel_id, token)
            if claimed > deposited:
                raise AmountMismatch(
                    "Final balances exceed deposits",
                    {
                        "channel_id": channel.channel_id,
                        "token":      token,
                        "claimed":    claimed,
                        "deposited":  deposited,
                    },
                )
