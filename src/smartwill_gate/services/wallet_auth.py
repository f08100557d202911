# src/smartwill_gate/services/wallet_auth.py
"""Wallet challenge-response authentication."""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass, replace
from datetime import timedelta
from decimal import Decimal

from smartwill_gate.core.errors import (
    ChallengeAlreadyUsed,
    ChallengeExpired,
    ChallengeNotFound,
    InvalidAddress,
)
from smartwill_gate.services.challenge_store import (
    Challenge,
    ChallengePurpose,
    ChallengeRepository,
)
from smartwill_gate.services.signature import SignatureVerifier
from smartwill_gate.services.stacks import is_valid_stacks_address
from smartwill_gate.utils.time import Clock, to_millis, utcnow

DEFAULT_CHALLENGE_TTL = timedelta(minutes=5)
DEFAULT_APP_LABEL = "SmartWill Authentication"
NONCE_BYTES = 16

# Numbers outside this range are printed in exponent form by JavaScript.
JS_EXPONENT_LOWER = 1e-6
JS_EXPONENT_UPPER = 1e21

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedWallet:
    """Identity established by a consumed challenge."""

    address: str
    public_key: str
    challenge: Challenge


@dataclass(frozen=True)
class ChallengeStats:
    """Counts of stored challenges by state, for monitoring."""

    total: int
    active: int
    expired: int
    used: int


def _format_amount(amount: float) -> str:
    """Render ``amount`` the way a JavaScript client prints a number."""
    value = float(amount)
    if value.is_integer() and abs(value) < JS_EXPONENT_UPPER:
        return str(int(value))
    if JS_EXPONENT_LOWER <= abs(value) < JS_EXPONENT_UPPER:
        return format(Decimal(repr(value)), "f")
    mantissa, _, exponent = repr(value).partition("e")
    return f"{mantissa}e{int(exponent):+d}"


def _short(address: str) -> str:
    return address[:8] + "..."


class WalletAuthService:
    """Turn a signed challenge into a verified wallet identity.

    The service owns no state of its own: challenges live in the injected
    repository and time comes from the injected clock.
    """

    def __init__(
        self,
        repository: ChallengeRepository,
        verifier: SignatureVerifier,
        *,
        clock: Clock = utcnow,
        ttl: timedelta = DEFAULT_CHALLENGE_TTL,
        app_label: str = DEFAULT_APP_LABEL,
    ) -> None:
        self._repository = repository
        self._verifier = verifier
        self._clock = clock
        self._ttl = ttl
        self._app_label = app_label

    def issue_challenge(
        self,
        address: str,
        purpose: ChallengePurpose | str = ChallengePurpose.CONNECTION,
        *,
        payment_id: str | None = None,
        amount: float | None = None,
    ) -> Challenge:
        """Create and store a challenge bound to ``address``.

        Args:
            address: Wallet address the caller claims to control.
            purpose: ``connection`` or ``payment``.
            payment_id: Payment identifier embedded for payment challenges.
            amount: Optional amount embedded in the message.

        Returns:
            The stored challenge, including the exact message to sign.

        Raises:
            InvalidAddress: If ``address`` is not a valid Stacks address.
            ValueError: If ``purpose`` is not a known challenge purpose.
        """
        if not is_valid_stacks_address(address):
            raise InvalidAddress()
        purpose = ChallengePurpose(purpose)

        self.sweep_expired()

        issued_at = self._clock()
        nonce = secrets.token_hex(NONCE_BYTES)
        timestamp = to_millis(issued_at)
        challenge = Challenge(
            id=hashlib.sha256(f"{address}-{timestamp}-{nonce}".encode()).hexdigest(),
            message=self._build_message(address, purpose, timestamp, nonce, payment_id, amount),
            address=address,
            purpose=purpose,
            nonce=nonce,
            issued_at=issued_at,
            expires_at=issued_at + self._ttl,
            payment_id=payment_id,
            amount=amount,
        )
        self._repository.add(challenge)

        self.sweep_expired()
        logger.info(
            "Issued %s challenge for %s (expires %s)",
            purpose.value,
            _short(address),
            challenge.expires_at.isoformat(),
        )
        return challenge

    def verify_challenge_response(
        self,
        message: str,
        signature: str,
        public_key: str,
        address: str,
    ) -> VerifiedWallet:
        """Consume the challenge matching ``message`` and ``address``.

        The stored record is located by exact message and address, never by a
        caller-supplied id. A failed signature leaves the challenge unused so
        the wallet may retry until it expires.

        Raises:
            ChallengeNotFound: No stored challenge matches.
            ChallengeExpired: The challenge is past its expiry (it is deleted).
            ChallengeAlreadyUsed: The challenge was already consumed.
            AddressMismatch: ``public_key`` does not derive to ``address``.
            SignatureInvalid: No encoding of ``signature`` verifies.
        """
        challenge = self._repository.find(message, address)
        if challenge is None:
            raise ChallengeNotFound()

        if challenge.is_expired(self._clock()):
            self._repository.delete(challenge.id)
            raise ChallengeExpired()

        if challenge.used:
            raise ChallengeAlreadyUsed()

        self._verifier.verify_ownership(message, signature, public_key, address)

        now = self._clock()
        if not self._repository.mark_used(challenge.id, now):
            current = self._repository.get(challenge.id)
            if current is None or current.is_expired(now):
                raise ChallengeExpired()
            raise ChallengeAlreadyUsed()

        logger.info("Challenge consumed for %s", _short(address))
        return VerifiedWallet(
            address=address,
            public_key=public_key,
            challenge=replace(challenge, used=True),
        )

    def sweep_expired(self) -> int:
        """Remove every challenge past its expiry; return how many were removed."""
        removed = self._repository.purge_expired(self._clock())
        if removed:
            logger.info("Cleaned up %d expired challenges", removed)
        return removed

    def stats(self) -> ChallengeStats:
        """Summarize stored challenges for the monitoring endpoint."""
        now = self._clock()
        active = expired = used = 0
        challenges = self._repository.snapshot()
        for challenge in challenges:
            if challenge.used:
                used += 1
            elif challenge.is_expired(now):
                expired += 1
            else:
                active += 1
        return ChallengeStats(total=len(challenges), active=active, expired=expired, used=used)

    def _build_message(
        self,
        address: str,
        purpose: ChallengePurpose,
        timestamp: int,
        nonce: str,
        payment_id: str | None,
        amount: float | None,
    ) -> str:
        lines = [
            self._app_label,
            f"Address: {address}",
            f"Type: {purpose.value}",
            f"Timestamp: {timestamp}",
            f"Nonce: {nonce}",
        ]
        if purpose is ChallengePurpose.PAYMENT and payment_id:
            lines.append(f"Payment ID: {payment_id}")
        if amount:
            lines.append(f"Amount: {_format_amount(amount)}")
        return "\n".join(lines)
