"""
zkchannel Settlement

- WithdrawalBook / WithdrawalSettlement: proof and emergency payouts
- BondManager: leader bonds, slashing, treasury
"""

from zkchannel.settlement.bonds import BondManager
from zkchannel.settlement.withdrawals import WithdrawalBook, WithdrawalSettlement

__all__ = ["BondManager", "WithdrawalBook", "WithdrawalSettlement"]
