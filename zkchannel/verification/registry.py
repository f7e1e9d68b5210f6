"""
zkchannel/verification/registry.py

Registered target contracts.

A token can only be allowed on a channel once it is registered here. Each
target carries:
    token               — the Token adapter used for transfers
    function instances  — hashes of the function-instance word vectors
                          a channel's computation may reference
    preprocessing       — verifier preprocessing material (opaque bytes)

function_instance_hash(words) = "0x" + keccak256(word_0 ‖ word_1 ‖ ...),
each word a 32-byte big-endian integer.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Set

from zkchannel.core.exceptions import TokenNotAllowed
from zkchannel.core.field import words_digest
from zkchannel.ledger.tokens import Token

logger = logging.getLogger(__name__)


def function_instance_hash(words: Sequence[int]) -> str:
    return words_digest(words)


@dataclass
class RegisteredTarget:
    token:           Token
    instance_hashes: Set[str] = field(default_factory=set)
    preprocessing:   bytes = b""

    @property
    def address(self) -> str:
        return self.token.address


class TargetRegistry:
    """Static metadata about which targets channels may reference."""

    def __init__(self) -> None:
        self._targets: Dict[str, RegisteredTarget] = {}

    def register_target(
        self,
        token:              Token,
        function_instances: Iterable[Sequence[int]] = (),
        preprocessing:      bytes = b"",
    ) -> RegisteredTarget:
        """Register (or re-register, replacing metadata) a token target."""
        target = RegisteredTarget(
            token=token,
            instance_hashes={function_instance_hash(w) for w in function_instances},
            preprocessing=preprocessing,
        )
        self._targets[token.address] = target
        logger.info(
            "registered target %s (%d function instances)",
            token.address, len(target.instance_hashes),
        )
        return target

    def register_function(self, address: str, words: Sequence[int]) -> str:
        """Add one function instance to a registered target. Returns its hash."""
        target = self.get(address)
        digest = function_instance_hash(words)
        target.instance_hashes.add(digest)
        return digest

    def get(self, address: str) -> RegisteredTarget:
        target = self._targets.get(address)
        if target is None:
            raise TokenNotAllowed("Token is not a registered target", {"token": address})
        return target

    def is_registered(self, address: str) -> bool:
        return address in self._targets

    def token(self, address: str) -> Token:
        return self.get(address).token

    def find_instance(
        self,
        addresses: Iterable[str],
        words:     Sequence[int],
    ) -> Optional[str]:
        """
        Address of the first target among addresses that registered words,
        or None.
        """
        digest = function_instance_hash(words)
        for address in addresses:
            target = self._targets.get(address)
            if target is not None and digest in target.instance_hashes:
                return address
        return None
