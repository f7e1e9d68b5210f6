"""
zkchannel/bridge.py

ChannelBridge — the single public surface of the settlement protocol.

Composes the channel arena and its sibling tables:

    ChannelStore      channel records by handle
    DepositLedger     deposits and per-token totals
    RootHistory       committed roots per channel
    WithdrawalBook    withdrawal records per channel
    BondManager       leader bonds and treasury
    EventJournal      signed record of every accepted operation

Every public method runs under one re-entrant lock, so operations are
atomic with respect to each other. The lock is re-entrant because a token
may call back into the bridge while a payout is in flight; such a call
observes the state the outer operation has already written.

Usage:
    bridge = ChannelBridge(config, registry, gateway)
    channel_id = bridge.open_channel("leader", ["alice", "bob"], ["0xusd"], 3600, gpk)
    bridge.deposit(channel_id, "alice", "0xusd", 10**18, l2_key=0xA1)
"""

import copy
import threading
from typing import List, Optional, Sequence, Tuple

from zkchannel.channel.manager import ChannelManager
from zkchannel.channel.store import ChannelStore
from zkchannel.commitment.history import RootHistory
from zkchannel.commitment.rlc import build_leaves, public_inputs
from zkchannel.commitment.tree import CommitmentTree, InclusionProof
from zkchannel.core.crypto import Ed25519KeyManager, GroupPublicKey
from zkchannel.core.exceptions import InvalidStateForOperation
from zkchannel.core.models import (
    Channel,
    ChannelState,
    LeaderBond,
    ParticipantDeposit,
    Proof,
    TreeSize,
    WithdrawalRecord,
)
from zkchannel.core.time import Clock, SystemClock
from zkchannel.ledger.deposits import DepositLedger
from zkchannel.ledger.journal import EventJournal
from zkchannel.runtime.config import ProtocolConfig
from zkchannel.settlement.bonds import BondManager
from zkchannel.settlement.withdrawals import WithdrawalBook, WithdrawalSettlement
from zkchannel.verification.gateway import ProofVerificationGateway
from zkchannel.verification.registry import TargetRegistry
from zkchannel.verification.threshold import ThresholdSignatureVerifier, closure_message

Amounts = Sequence[Sequence[int]]


class ChannelBridge:

    def __init__(
        self,
        config:    ProtocolConfig,
        registry:  TargetRegistry,
        gateway:   ProofVerificationGateway,
        clock:     Optional[Clock] = None,
        journal:   Optional[EventJournal] = None,
        threshold: Optional[ThresholdSignatureVerifier] = None,
    ) -> None:
        self.config = config
        self.registry = registry
        self.gateway = gateway
        self.clock = clock or SystemClock()
        self.journal = journal or EventJournal(Ed25519KeyManager.generate())

        self._lock = threading.RLock()
        # handles named by a resumed journal are never issued again
        self._store = ChannelStore(first_id=self.journal.next_channel_id)
        self._deposits = DepositLedger()
        self._history = RootHistory()
        self._book = WithdrawalBook()
        self._bonds = BondManager(config, registry, self.journal)

        self._manager = ChannelManager(
            config=    config,
            store=     self._store,
            deposits=  self._deposits,
            history=   self._history,
            book=      self._book,
            bonds=     self._bonds,
            registry=  registry,
            gateway=   gateway,
            threshold= threshold or ThresholdSignatureVerifier(),
            journal=   self.journal,
            clock=     self.clock,
        )
        self._settlement = WithdrawalSettlement(
            book=           self._book,
            deposits=       self._deposits,
            registry=       registry,
            journal=        self.journal,
            bridge_address= config.bridge_address,
            arity=          config.tree_arity,
        )

    @property
    def address(self) -> str:
        return self.config.bridge_address

    # ─────────────────────────────────────────────────────────
    # Mutating operations
    # ─────────────────────────────────────────────────────────

    def open_channel(
        self,
        leader:           str,
        participants:     Sequence[str],
        allowed_tokens:   Sequence[str],
        timeout:          int,
        group_public_key: GroupPublicKey,
    ) -> int:
        """Open a channel and return its handle."""
        with self._lock:
            channel = self._manager.open_channel(
                leader, participants, allowed_tokens, timeout, group_public_key
            )
            return channel.channel_id

    def deposit(
        self,
        channel_id:  int,
        participant: str,
        token:       str,
        amount:      int,
        l2_key:      int,
    ) -> ParticipantDeposit:
        with self._lock:
            return self._manager.deposit(channel_id, participant, token, amount, l2_key)

    def initialize_state(self, channel_id: int, caller: str, proof: Proof) -> int:
        with self._lock:
            return self._manager.initialize_state(channel_id, caller, proof)

    def submit_closure(
        self,
        channel_id:       int,
        caller:           str,
        final_root:       int,
        proof:            Proof,
        signature:        str,
        withdraw_amounts: Amounts,
    ) -> Channel:
        with self._lock:
            channel = self._manager.submit_closure(
                channel_id, caller, final_root, proof, signature, withdraw_amounts
            )
            return copy.deepcopy(channel)

    def withdraw(
        self,
        channel_id:  int,
        participant: str,
        token:       str,
        amount:      int,
        proof:       InclusionProof,
    ) -> WithdrawalRecord:
        with self._lock:
            channel = self._store.get(channel_id)
            record = self._settlement.withdraw(channel, participant, token, amount, proof)
            return copy.copy(record)

    def force_emergency(self, channel_id: int, caller: str) -> Channel:
        with self._lock:
            channel = self._manager.force_emergency(channel_id, caller)
            return copy.deepcopy(channel)

    def emergency_withdraw(
        self,
        channel_id:  int,
        participant: str,
        token:       str,
        amount:      int,
    ) -> WithdrawalRecord:
        with self._lock:
            channel = self._store.get(channel_id)
            record = self._settlement.emergency_withdraw(channel, participant, token, amount)
            return copy.copy(record)

    def reclaim_bond(self, channel_id: int, caller: str) -> LeaderBond:
        with self._lock:
            channel = self._store.get(channel_id)
            return copy.copy(self._bonds.reclaim(channel, caller))

    def withdraw_treasury(self, caller: str, to: str, amount: int) -> int:
        with self._lock:
            return self._bonds.withdraw_treasury(caller, to, amount)

    # ─────────────────────────────────────────────────────────
    # Read-only queries
    # ─────────────────────────────────────────────────────────

    def get_channel(self, channel_id: int) -> Channel:
        with self._lock:
            return copy.deepcopy(self._store.get(channel_id))

    def get_deposit(self, channel_id: int, participant: str, token: str) -> ParticipantDeposit:
        with self._lock:
            self._store.get(channel_id)
            return self._deposits.get(channel_id, participant, token)

    def get_total_deposits(self, channel_id: int, token: str) -> int:
        with self._lock:
            self._store.get(channel_id)
            return self._deposits.total(channel_id, token)

    def get_withdrawal(
        self,
        channel_id:  int,
        participant: str,
        token:       str,
    ) -> Optional[WithdrawalRecord]:
        with self._lock:
            self._store.get(channel_id)
            record = self._book.get(channel_id, participant, token)
            return copy.copy(record) if record is not None else None

    def get_root_history(self, channel_id: int) -> List[int]:
        with self._lock:
            self._store.get(channel_id)
            return self._history.sequence(channel_id)

    def get_bond(self, channel_id: int) -> Optional[LeaderBond]:
        with self._lock:
            bond = self._bonds.get(channel_id)
            return copy.copy(bond) if bond is not None else None

    @property
    def treasury_balance(self) -> int:
        with self._lock:
            return self._bonds.treasury_balance

    def leaf_index(self, channel_id: int, participant: str, token: str) -> int:
        with self._lock:
            return self._store.get(channel_id).leaf_index(participant, token)

    def expected_root(self, channel_id: int, withdraw_amounts: Optional[Amounts] = None) -> int:
        """Root the next commitment round must present (see ChannelManager)."""
        with self._lock:
            return self._manager.expected_root(
                channel_id, self._flat(channel_id, withdraw_amounts)
            )

    def proof_inputs(
        self,
        channel_id:       int,
        withdraw_amounts: Optional[Amounts] = None,
    ) -> Tuple[TreeSize, List[int]]:
        """
        (tree_size, public_inputs) a prover must attest to for the next
        round: initialization when withdraw_amounts is None, closure otherwise.
        """
        with self._lock:
            channel = self._store.get(channel_id)
            tree_size = self._manager.tree_size_for(channel)
            keys, deposited = self._deposits.snapshot(
                channel_id, channel.participants, channel.allowed_tokens
            )
            amounts = self._flat(channel_id, withdraw_amounts)
            values = deposited if amounts is None else amounts
            root = self._manager.expected_root(channel_id, amounts)
            return tree_size, public_inputs(keys, values, root, tree_size)

    def closure_message(self, channel_id: int, final_root: int) -> bytes:
        """Bytes the channel group must sign to close on final_root."""
        with self._lock:
            channel = self._store.get(channel_id)
            if channel.initial_root is None:
                raise InvalidStateForOperation(
                    "Channel has no initial root yet", {"channel_id": channel_id}
                )
            return closure_message(
                channel_id, channel.initial_root, final_root, channel.signer_address
            )

    def inclusion_proof(self, channel_id: int, participant: str, token: str) -> InclusionProof:
        """Inclusion proof of an account leaf in the final root of a closed channel."""
        with self._lock:
            channel = self._store.get(channel_id)
            amounts = self._book.final_amounts(channel_id)
            if channel.state != ChannelState.CLOSED or amounts is None:
                raise InvalidStateForOperation(
                    "Inclusion proofs exist only for closed channels",
                    {"channel_id": channel_id, "state": channel.state.name},
                )
            keys = self._deposits.keys(
                channel_id, channel.participants, channel.allowed_tokens
            )
            leaves = build_leaves(channel.initial_root, keys, amounts, channel.tree_size)
            tree = CommitmentTree(leaves, self.config.tree_arity)
            return tree.proof(channel.leaf_index(participant, token))

    # ── Internal ──────────────────────────────────────────────

    def _flat(self, channel_id: int, withdraw_amounts: Optional[Amounts]) -> Optional[List[int]]:
        if withdraw_amounts is None:
            return None
        channel = self._store.get(channel_id)
        return ChannelManager.flatten_amounts(channel, withdraw_amounts)

    def __repr__(self) -> str:
        return (
            f"ChannelBridge(address={self.address!r}, channels={len(self._store)}, "
            f"journal_entries={len(self.journal.entries)})"
        )
