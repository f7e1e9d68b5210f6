"""
zkchannel/ledger/journal.py

Event Journal — signed, hash-chained record of every accepted operation.

Journal Contract — emit() MUST, in this exact order:
  1. Acquire lock
  2. Call JournalEntry.create(event_type, channel_id, signer_public_key,
                             sequence, payload, prev=last_entry)
  3. Call entry.sign(key_manager)
  4. Append to JSONL file (when a path is configured)
  5. Advance internal state — only after confirmed write
  6. Return signed entry

Callers write the entry BEFORE committing an operation's effects, so a
failed write leaves nothing behind. When a later external call (a token
transfer) fails, the caller undoes its effects and calls retract(entry),
which drops the latest entry from memory and truncates it off the file.

CHAIN
    causal_hash = SHA-256(JCS(prev.to_chain_dict()))
    first entry = GENESIS_HASH ("0" * 64)

SIGNING
    bytes_signed = JCS(entry.to_chain_dict())
    algorithm    = Ed25519, base64url without padding

Payload values must be JSON primitives that survive RFC 8785 unchanged:
amounts and field elements travel as strings, never as large ints.
"""

import json
import logging
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from zkchannel.core.canonical import canonical_hash, canonicalize
from zkchannel.core.crypto import Ed25519KeyManager
from zkchannel.core.exceptions import JournalError
from zkchannel.core.time import wire_timestamp

logger = logging.getLogger(__name__)

GENESIS_HASH = "0" * 64


class EventType:
    """
    Journal event_type constants. The ONLY valid values.
    Enforced at JournalEntry.create().
    """
    CHANNEL_OPENED       = "channel_opened"
    DEPOSIT              = "deposit"
    STATE_INITIALIZED    = "state_initialized"
    CHANNEL_CLOSED       = "channel_closed"
    WITHDRAWAL           = "withdrawal"
    EMERGENCY_FORCED     = "emergency_forced"
    EMERGENCY_WITHDRAWAL = "emergency_withdrawal"
    BOND_POSTED          = "bond_posted"
    BOND_SLASHED         = "bond_slashed"
    BOND_RECLAIMED       = "bond_reclaimed"
    TREASURY_WITHDRAWAL  = "treasury_withdrawal"


VALID_EVENT_TYPES = frozenset(
    value for name, value in vars(EventType).items() if not name.startswith("_")
)


@dataclass
class JournalEntry:
    """One signed journal line."""

    entry_id:          str
    sequence:          int
    event_type:        str
    channel_id:        Optional[int]
    timestamp:         str
    causal_hash:       str
    signer_public_key: str
    payload:           Dict[str, Any]
    signature:         Optional[str] = None

    # ── Constructor ───────────────────────────────────────────

    @classmethod
    def create(
        cls,
        event_type:        str,
        channel_id:        Optional[int],
        signer_public_key: str,
        sequence:          int,
        payload:           Dict[str, Any],
        prev:              Optional["JournalEntry"] = None,
    ) -> "JournalEntry":
        """Create an unsigned entry chained on prev. Call .sign() next."""
        if event_type not in VALID_EVENT_TYPES:
            raise ValueError(
                f"Invalid event_type '{event_type}'. Valid: {sorted(VALID_EVENT_TYPES)}"
            )
        if not isinstance(payload, dict):
            raise TypeError(f"payload must be dict, got {type(payload).__name__}")
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(f"sequence must be non-negative int, got {sequence!r}")

        return cls(
            entry_id=          f"evt-{uuid.uuid4()}",
            sequence=          sequence,
            event_type=        event_type,
            channel_id=        channel_id,
            timestamp=         wire_timestamp(),
            causal_hash=       cls.expected_causal_hash_from(prev),
            signer_public_key= signer_public_key,
            payload=           payload,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JournalEntry":
        """Deserialize a JSONL line dict. Trusts the data; verify afterwards."""
        return cls(
            entry_id=          data["entry_id"],
            sequence=          data["sequence"],
            event_type=        data["event_type"],
            channel_id=        data.get("channel_id"),
            timestamp=         data["timestamp"],
            causal_hash=       data["causal_hash"],
            signer_public_key= data["signer_public_key"],
            payload=           data.get("payload", {}),
            signature=         data.get("signature"),
        )

    # ── Serialization ─────────────────────────────────────────

    def to_chain_dict(self) -> Dict[str, Any]:
        """Everything except the signature. Signed and chained over."""
        return {
            "entry_id":          self.entry_id,
            "sequence":          self.sequence,
            "event_type":        self.event_type,
            "channel_id":        self.channel_id,
            "timestamp":         self.timestamp,
            "causal_hash":       self.causal_hash,
            "signer_public_key": self.signer_public_key,
            "payload":           self.payload,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = self.to_chain_dict()
        d["signature"] = self.signature
        return d

    # ── Signing / verification ────────────────────────────────

    def sign(self, key_manager: Ed25519KeyManager) -> "JournalEntry":
        self.signature = key_manager.sign(canonicalize(self.to_chain_dict()))
        return self

    def verify_signature(self) -> bool:
        if not self.signature:
            return False
        try:
            data = canonicalize(self.to_chain_dict())
        except Exception:
            return False
        return Ed25519KeyManager.verify_detached(
            data, self.signature, self.signer_public_key
        )

    @staticmethod
    def expected_causal_hash_from(prev: Optional["JournalEntry"]) -> str:
        if prev is None:
            return GENESIS_HASH
        return canonical_hash(prev.to_chain_dict())

    def verify_chain(self, prev: Optional["JournalEntry"]) -> bool:
        return self.causal_hash == self.expected_causal_hash_from(prev)


class EventJournal:
    """
    Append-only signed journal.

    In memory always; mirrored to <journal_path>/journal.jsonl when a path
    is given. State survives restart by replaying the file on __init__.
    Thread-safe via internal lock.
    """

    def __init__(
        self,
        key_manager:  Ed25519KeyManager,
        journal_path: Optional[Union[str, Path]] = None,
    ) -> None:
        self.key_manager = key_manager

        self._lock:    threading.Lock     = threading.Lock()
        self._entries: List[JournalEntry] = []

        self._journal_file: Optional[Path] = None
        # file size before the latest append; None once retracted
        self._tail_offset:  Optional[int]  = None
        if journal_path is not None:
            journal_dir = Path(journal_path)
            journal_dir.mkdir(parents=True, exist_ok=True)
            self._journal_file = journal_dir / "journal.jsonl"
            if self._journal_file.exists():
                self._entries = load_entries(self._journal_file)

    # ── Public API ────────────────────────────────────────────

    def emit(
        self,
        event_type: str,
        channel_id: Optional[int],
        payload:    Dict[str, Any],
    ) -> JournalEntry:
        """Append one signed entry. Raises JournalError on write failure."""
        with self._lock:
            prev = self._entries[-1] if self._entries else None
            entry = JournalEntry.create(
                event_type=        event_type,
                channel_id=        channel_id,
                signer_public_key= self.key_manager.public_key_hex,
                sequence=          len(self._entries),
                payload=           payload,
                prev=              prev,
            ).sign(self.key_manager)

            if self._journal_file is not None:
                self._append_to_file(entry)

            self._entries.append(entry)
            logger.debug("journal #%d %s channel=%s", entry.sequence, event_type, channel_id)
            return entry

    def retract(self, entry: JournalEntry) -> None:
        """
        Remove entry, which must be the latest one, from memory and file.

        Used when the operation the entry records fails after the entry
        was written. Raises JournalError if entry is not the latest.
        """
        with self._lock:
            if not self._entries or self._entries[-1] is not entry:
                raise JournalError(
                    "Only the latest journal entry can be retracted",
                    {"entry_id": entry.entry_id, "sequence": entry.sequence},
                )
            if self._journal_file is not None:
                self._truncate_tail()
            self._entries.pop()
            self._tail_offset = None
            logger.debug("journal #%d %s retracted", entry.sequence, entry.event_type)

    @property
    def next_channel_id(self) -> int:
        """Smallest channel handle not yet named by any entry."""
        ids = [e.channel_id for e in self._entries if e.channel_id is not None]
        return max(ids) + 1 if ids else 1

    @property
    def entries(self) -> List[JournalEntry]:
        return list(self._entries)

    @property
    def journal_file(self) -> Optional[Path]:
        return self._journal_file

    def entries_for(self, channel_id: int) -> List[JournalEntry]:
        return [e for e in self._entries if e.channel_id == channel_id]

    def verify_chain(self) -> bool:
        return not verify_entries(self._entries)

    # ── Internal ──────────────────────────────────────────────

    def _append_to_file(self, entry: JournalEntry) -> None:
        try:
            offset = self._journal_file.stat().st_size if self._journal_file.is_file() else 0
            with open(self._journal_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry.to_dict()) + "\n")
        except OSError as exc:
            raise JournalError(
                "Journal write failed", {"path": str(self._journal_file), "error": str(exc)}
            ) from exc
        self._tail_offset = offset

    def _truncate_tail(self) -> None:
        if self._tail_offset is None:
            raise JournalError(
                "Journal tail offset unknown", {"path": str(self._journal_file)}
            )
        try:
            with open(self._journal_file, "r+b") as f:
                f.truncate(self._tail_offset)
        except OSError as exc:
            raise JournalError(
                "Journal truncate failed", {"path": str(self._journal_file), "error": str(exc)}
            ) from exc


# ── Replay helpers ────────────────────────────────────────────

def load_entries(path: Union[str, Path]) -> List[JournalEntry]:
    """
    Parse a journal.jsonl file. Blank lines are skipped.
    Raises JournalError on malformed JSON or missing fields.
    """
    path = Path(path)
    entries: List[JournalEntry] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(JournalEntry.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError) as exc:
                raise JournalError(
                    f"Invalid journal entry at line {line_num}", {"error": str(exc)}
                ) from exc
    return entries


def verify_entries(entries: List[JournalEntry]) -> List[str]:
    """
    Check sequence, chain and signatures. Returns a list of violations
    (empty when the journal is intact).
    """
    violations: List[str] = []
    for i, entry in enumerate(entries):
        prev = entries[i - 1] if i > 0 else None
        if entry.sequence != i:
            violations.append(f"#{i}: sequence gap (found {entry.sequence})")
        if entry.event_type not in VALID_EVENT_TYPES:
            violations.append(f"#{i}: unknown event_type {entry.event_type!r}")
        if not entry.verify_chain(prev):
            violations.append(f"#{i}: chain break")
        if not entry.verify_signature():
            violations.append(f"#{i}: invalid signature")
    return violations
