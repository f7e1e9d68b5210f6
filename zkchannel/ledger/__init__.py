"""
zkchannel Ledger

- DepositLedger: per-channel, per-participant, per-token balances
- EventJournal: signed, hash-chained record of accepted operations
- Token / InMemoryToken: fungible-token interface
"""

from zkchannel.ledger.deposits import DepositLedger
from zkchannel.ledger.journal import EventJournal, EventType, JournalEntry
from zkchannel.ledger.tokens import InMemoryToken, Token

__all__ = [
    "DepositLedger",
    "EventJournal",
    "EventType",
    "JournalEntry",
    "InMemoryToken",
    "Token",
]
