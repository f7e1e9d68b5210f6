"""
zkchannel/ledger/tokens.py

Fungible-token interface consumed by the bridge.

Semantics follow the usual fungible-token contract:
    balance_of(account)
    transfer(sender, to, amount)
    transfer_from(spender, owner, to, amount)   — spends owner's allowance

The bridge never trusts the nominal amount of a pull. It measures its own
balance before and after (fee-on-transfer tokens deliver less than asked).

InMemoryToken is the reference implementation used by the runtime context,
the CLI and the test suite.
"""

from typing import Callable, Dict, Optional, Tuple

from zkchannel.core.exceptions import InsufficientBalanceOrAllowance

TransferHook = Callable[[str, str, int], None]


class Token:
    """
    Interface of a fungible token. `address` identifies it in channels.

    fee_bps is the token's declared transfer fee. Tokens that charge a fee
    without declaring it are still caught by balance measurement.
    """

    address: str
    fee_bps: int = 0

    def balance_of(self, account: str) -> int:
        raise NotImplementedError

    def transfer(self, sender: str, to: str, amount: int) -> None:
        raise NotImplementedError

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        raise NotImplementedError


class InMemoryToken(Token):
    """
    Balances and allowances in dictionaries.

    Args:
        address:        token identifier
        fee_bps:        basis points burned on every transfer (fee-on-transfer)
        on_transfer:    optional hook called AFTER balances move, with
                        (sender, to, amount_received). Lets tests model
                        tokens that call back into the receiver.
    """

    def __init__(
        self,
        address:     str,
        fee_bps:     int = 0,
        on_transfer: Optional[TransferHook] = None,
    ) -> None:
        if not 0 <= fee_bps < 10_000:
            raise ValueError(f"fee_bps must be in [0, 10000), got {fee_bps}")
        self.address = address
        self.fee_bps = fee_bps
        self.on_transfer = on_transfer
        self._balances:   Dict[str, int] = {}
        self._allowances: Dict[Tuple[str, str], int] = {}

    # ── Admin ─────────────────────────────────────────────────

    def mint(self, account: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("cannot mint a negative amount")
        self._balances[account] = self._balances.get(account, 0) + amount

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("cannot approve a negative amount")
        self._allowances[(owner, spender)] = amount

    # ── Views ─────────────────────────────────────────────────

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    # ── Transfers ─────────────────────────────────────────────

    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientBalanceOrAllowance(
                "Allowance too low",
                {"token": self.address, "owner": owner, "allowance": allowed, "amount": amount},
            )
        self._move(owner, to, amount)
        self._allowances[(owner, spender)] = allowed - amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("cannot transfer a negative amount")
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalanceOrAllowance(
                "Balance too low",
                {"token": self.address, "account": sender, "balance": balance, "amount": amount},
            )
        fee = amount * self.fee_bps // 10_000
        received = amount - fee
        saved = dict(self._balances)
        self._balances[sender] = balance - amount
        self._balances[to] = self.balance_of(to) + received
        if self.on_transfer is not None:
            try:
                self.on_transfer(sender, to, received)
            except Exception:
                # a failing hook reverts the whole transfer
                self._balances = saved
                raise

    def __repr__(self) -> str:
        return f"InMemoryToken(address={self.address!r}, fee_bps={self.fee_bps})"
