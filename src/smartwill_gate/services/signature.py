# src/smartwill_gate/services/signature.py
"""Wallet signature verification tolerant of inconsistent hex framing."""

from __future__ import annotations

import logging
from collections.abc import Callable

from smartwill_gate.core.errors import AddressMismatch, SignatureInvalid
from smartwill_gate.services.stacks import (
    StacksNetwork,
    derive_stacks_address,
    network_for_address,
    verify_message_signature,
)

HEX_PREFIX = "0x"

SignatureScheme = Callable[[str, str, str], bool]
AddressDeriver = Callable[[str, StacksNetwork], str]
EncodingStrategy = Callable[[str], str | None]

logger = logging.getLogger(__name__)


def _as_given(signature: str) -> str | None:
    return signature


def _with_prefix(signature: str) -> str | None:
    if signature.startswith(HEX_PREFIX):
        return None
    return HEX_PREFIX + signature


def _without_prefix(signature: str) -> str | None:
    if not signature.startswith(HEX_PREFIX):
        return None
    return signature[len(HEX_PREFIX):]


# Order matters: some wallets only verify under their original framing.
SIGNATURE_ENCODINGS: tuple[tuple[str, EncodingStrategy], ...] = (
    ("original", _as_given),
    ("prefixed", _with_prefix),
    ("unprefixed", _without_prefix),
)


class SignatureVerifier:
    """Decide whether a signature proves control of a wallet key.

    Each applicable encoding of the signature is tried in order and the first
    one that passes full cryptographic verification wins. Only the framing of
    the signature varies between attempts; message and key are fixed.
    """

    def __init__(
        self,
        scheme: SignatureScheme = verify_message_signature,
        address_deriver: AddressDeriver = derive_stacks_address,
    ) -> None:
        self._scheme = scheme
        self._address_deriver = address_deriver

    def verify(self, message: str, signature: str, public_key: str) -> bool:
        """Return True if any applicable encoding of ``signature`` verifies.

        Args:
            message: Exact text the wallet signed.
            signature: Signature as delivered by the wallet or transport.
            public_key: Hex-encoded public key reported by the wallet.
        """
        attempted: list[str] = []
        for name, strategy in SIGNATURE_ENCODINGS:
            candidate = strategy(signature)
            if candidate is None:
                continue
            attempted.append(name)
            try:
                if self._scheme(message, candidate, public_key):
                    logger.debug("Signature verified with %s encoding", name)
                    return True
            except ValueError as err:
                logger.debug("Signature encoding %s could not be decoded: %s", name, err)

        logger.warning("Signature rejected after encodings: %s", ", ".join(attempted))
        return False

    def address_matches(self, public_key: str, address: str) -> bool:
        """Return True if ``public_key`` derives to exactly ``address``."""
        try:
            network = network_for_address(address)
            return self._address_deriver(public_key, network) == address
        except ValueError:
            return False

    def verify_ownership(
        self,
        message: str,
        signature: str,
        public_key: str,
        address: str,
    ) -> None:
        """Require that ``address`` is controlled by the key that signed ``message``.

        Raises:
            AddressMismatch: If ``public_key`` does not derive to ``address``.
            SignatureInvalid: If no encoding of ``signature`` verifies.
        """
        if not self.address_matches(public_key, address):
            raise AddressMismatch()
        if not self.verify(message, signature, public_key):
            raise SignatureInvalid()
