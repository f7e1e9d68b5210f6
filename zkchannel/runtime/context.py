"""
Runtime context for a zkchannel bridge.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from zkchannel.bridge import ChannelBridge
from zkchannel.core.crypto import Ed25519KeyManager
from zkchannel.core.time import Clock
from zkchannel.ledger.journal import EventJournal
from zkchannel.ledger.tokens import InMemoryToken, Token
from zkchannel.runtime.config import ProtocolConfig
from zkchannel.verification.attestation import AttestationVerifier
from zkchannel.verification.gateway import ProofVerificationGateway
from zkchannel.verification.registry import TargetRegistry

logger = logging.getLogger(__name__)


@dataclass
class BridgeContext:
    """Everything a running bridge needs, wired from configuration."""

    config:      ProtocolConfig
    registry:    TargetRegistry
    gateway:     ProofVerificationGateway
    journal:     EventJournal
    key_manager: Ed25519KeyManager
    bridge:      ChannelBridge

    @classmethod
    def from_config(
        cls,
        config_file:  Path,
        journal_path: Optional[Path] = None,
        key_path:     Optional[Path] = None,
        tokens:       Iterable[Token] = (),
        clock:        Optional[Clock] = None,
    ) -> "BridgeContext":
        """
        Build a bridge from a protocol YAML file.

        The journal signing key is loaded from key_path when it exists,
        otherwise generated (and saved there if a path was given).
        Every token in `tokens` is registered as a target; the bond token
        gets an InMemoryToken if none of them provides it.
        """
        config = ProtocolConfig.from_yaml(config_file)

        if key_path and Path(key_path).exists():
            key_manager = Ed25519KeyManager.from_file(key_path)
        else:
            key_manager = Ed25519KeyManager.generate()
            if key_path:
                key_manager.save(key_path)

        registry = TargetRegistry()
        for token in tokens:
            registry.register_target(token)
        if not registry.is_registered(config.bond_token):
            registry.register_target(InMemoryToken(config.bond_token))

        gateway = ProofVerificationGateway({
            size: AttestationVerifier(key_hex, size)
            for size, key_hex in config.verifier_keys.items()
        })
        if not config.verifier_keys:
            logger.warning("no verifier keys configured; every proof will be refused")

        journal = EventJournal(key_manager, journal_path)
        if journal.entries:
            logger.info(
                "resuming journal with %d entries; channel handles continue at %d",
                len(journal.entries), journal.next_channel_id,
            )
        bridge = ChannelBridge(
            config=   config,
            registry= registry,
            gateway=  gateway,
            clock=    clock,
            journal=  journal,
        )
        return cls(
            config=      config,
            registry=    registry,
            gateway=     gateway,
            journal=     journal,
            key_manager= key_manager,
            bridge=      bridge,
        )

    def __repr__(self) -> str:
        return (
            f"BridgeContext("
            f"bridge={self.config.bridge_address!r}, "
            f"journal_entries={len(self.journal.entries)})"
        )
