"""
zkchannel/settlement/bonds.py

Leader bonds and the protocol treasury.

    open_channel      → post()               POSTED
    force_emergency   → slash()              POSTED → SLASHED, amount → treasury
    reclaim_bond      → reclaim()            POSTED → RECLAIMED, amount → leader
    withdraw_treasury → withdraw_treasury()  treasury operator only

Every bond is paid in the configured bond token. A token that declares a
transfer fee is refused before anything is pulled. Otherwise the bridge
measures its own balance around the pull and requires the full bond_amount
to arrive; a short delivery is sent back to the leader before the error
is raised. Slashing moves value between internal tables only; it never
calls a token.

Each operation journals its event before committing, and undoes both the
record change and the journal entry if the token transfer fails.
"""

import logging
from typing import Dict, Optional

from zkchannel.core.exceptions import (
    InsufficientBalanceOrAllowance,
    InvalidStateForOperation,
    Unauthorized,
)
from zkchannel.core.models import BondStatus, Channel, ChannelState, LeaderBond, SlashReason
from zkchannel.ledger.journal import EventJournal, EventType
from zkchannel.ledger.tokens import Token
from zkchannel.runtime.config import ProtocolConfig
from zkchannel.verification.registry import TargetRegistry

logger = logging.getLogger(__name__)


class BondManager:
    """Bond table plus treasury balance, both in the bond token."""

    def __init__(
        self,
        config:   ProtocolConfig,
        registry: TargetRegistry,
        journal:  EventJournal,
    ) -> None:
        self.config = config
        self.registry = registry
        self.journal = journal
        self._bonds: Dict[int, LeaderBond] = {}
        self._treasury = 0

    # ── Views ─────────────────────────────────────────────────

    def get(self, channel_id: int) -> Optional[LeaderBond]:
        return self._bonds.get(channel_id)

    @property
    def treasury_balance(self) -> int:
        return self._treasury

    # ── Operations ────────────────────────────────────────────

    def post(self, channel_id: int, leader: str) -> LeaderBond:
        """Pull bond_amount of the bond token from leader for channel_id."""
        amount = self.config.bond_amount
        if amount > 0:
            self._pull(channel_id, leader, amount)

        try:
            self.journal.emit(EventType.BOND_POSTED, channel_id, {
                "leader": leader,
                "amount": str(amount),
            })
        except Exception:
            if amount > 0:
                self._token.transfer(self.config.bridge_address, leader, amount)
            raise

        bond = LeaderBond(channel_id=channel_id, leader=leader, amount=amount)
        self._bonds[channel_id] = bond
        logger.info("channel %d: leader %s posted bond %d", channel_id, leader, amount)
        return bond

    def slash(self, channel_id: int, reason: SlashReason) -> LeaderBond:
        bond = self._require_posted(channel_id)
        self.journal.emit(EventType.BOND_SLASHED, channel_id, {
            "leader": bond.leader,
            "amount": str(bond.amount),
            "reason": reason.value,
        })
        bond.status = BondStatus.SLASHED
        bond.reason = reason.value
        self._treasury += bond.amount
        logger.warning(
            "channel %d: bond of %s slashed (%s)", channel_id, bond.leader, reason.value
        )
        return bond

    def reclaim(self, channel: Channel, caller: str) -> LeaderBond:
        """Return the bond to the leader of a normally closed channel."""
        if caller != channel.leader:
            raise Unauthorized(
                "Only the channel leader can reclaim the bond",
                {"channel_id": channel.channel_id, "caller": caller},
            )
        if channel.state != ChannelState.CLOSED:
            raise InvalidStateForOperation(
                "Bond can only be reclaimed after a normal closure",
                {"channel_id": channel.channel_id, "state": channel.state.name},
            )
        bond = self._require_posted(channel.channel_id)

        entry = self.journal.emit(EventType.BOND_RECLAIMED, channel.channel_id, {
            "leader": bond.leader,
            "amount": str(bond.amount),
        })
        bond.status = BondStatus.RECLAIMED
        try:
            if bond.amount > 0:
                self._token.transfer(self.config.bridge_address, bond.leader, bond.amount)
        except Exception:
            bond.status = BondStatus.POSTED
            self.journal.retract(entry)
            raise

        logger.info("channel %d: bond reclaimed by %s", channel.channel_id, bond.leader)
        return bond

    def withdraw_treasury(self, caller: str, to: str, amount: int) -> int:
        """Pay slashed funds out of the treasury. Returns the remaining balance."""
        if caller != self.config.treasury:
            raise Unauthorized("Only the treasury operator can withdraw", {"caller": caller})
        if not isinstance(amount, int) or amount <= 0 or amount > self._treasury:
            raise InsufficientBalanceOrAllowance(
                "Treasury balance too low",
                {"balance": self._treasury, "amount": amount},
            )

        entry = self.journal.emit(EventType.TREASURY_WITHDRAWAL, None, {
            "to":     to,
            "amount": str(amount),
        })
        self._treasury -= amount
        try:
            self._token.transfer(self.config.bridge_address, to, amount)
        except Exception:
            self._treasury += amount
            self.journal.retract(entry)
            raise

        logger.info("treasury: %d paid to %s", amount, to)
        return self._treasury

    # ── Internal ──────────────────────────────────────────────

    @property
    def _token(self) -> Token:
        return self.registry.token(self.config.bond_token)

    def _pull(self, channel_id: int, leader: str, amount: int) -> None:
        token = self._token
        if token.fee_bps:
            raise InsufficientBalanceOrAllowance(
                "Bond token charges a transfer fee; the full bond cannot arrive",
                {"channel_id": channel_id, "token": token.address, "fee_bps": token.fee_bps},
            )
        bridge = self.config.bridge_address
        before = token.balance_of(bridge)
        token.transfer_from(bridge, leader, bridge, amount)
        received = token.balance_of(bridge) - before
        if received != amount:
            if received > 0:
                token.transfer(bridge, leader, received)
            logger.error(
                "channel %d: bond pull delivered %d of %d, returned to %s",
                channel_id, received, amount, leader,
            )
            raise InsufficientBalanceOrAllowance(
                "Bond transfer delivered less than the bond amount",
                {"channel_id": channel_id, "expected": amount, "received": received},
            )

    def _require_posted(self, channel_id: int) -> LeaderBond:
        bond = self._bonds.get(channel_id)
        if bond is None or bond.status != BondStatus.POSTED:
            raise InvalidStateForOperation(
                "No posted bond for channel",
                {
                    "channel_id": channel_id,
                    "status":     bond.status.value if bond else None,
                },
            )
        return bond
