"""Explicit construction of the credential services.

Every service receives its stores, collaborators and clock here; nothing in
the services package reaches for a module-level instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from smartwill_gate.core.security import SessionAuthenticator, SessionTokenIssuer
from smartwill_gate.core.settings import Settings
from smartwill_gate.services.challenge_store import (
    ChallengeRepository,
    InMemoryChallengeRepository,
)
from smartwill_gate.services.email import ConsoleEmailTransport, EmailTransport
from smartwill_gate.services.email_verification import EmailVerificationService
from smartwill_gate.services.otp import InMemoryOneTimeCodeStore, OneTimeCodeStore
from smartwill_gate.services.signature import SignatureVerifier
from smartwill_gate.services.sweeper import ExpirySweeper
from smartwill_gate.services.users import InMemoryUserStore, UserStore
from smartwill_gate.services.wallet_auth import WalletAuthService
from smartwill_gate.utils.time import Clock, utcnow


@dataclass
class ServiceContainer:
    """Everything the HTTP layer needs, wired together."""

    settings: Settings
    challenges: ChallengeRepository
    codes: OneTimeCodeStore
    users: UserStore
    transport: EmailTransport
    verifier: SignatureVerifier
    wallet_auth: WalletAuthService
    email_verification: EmailVerificationService
    tokens: SessionTokenIssuer
    authenticator: SessionAuthenticator

    def build_sweeper(self) -> ExpirySweeper:
        """Return a sweeper bound to this container's stores."""
        return ExpirySweeper(
            self.wallet_auth,
            self.codes,
            interval_seconds=self.settings.cleanup_interval_seconds,
        )


def build_container(
    settings: Settings,
    *,
    clock: Clock = utcnow,
    users: UserStore | None = None,
    transport: EmailTransport | None = None,
    challenges: ChallengeRepository | None = None,
    codes: OneTimeCodeStore | None = None,
    verifier: SignatureVerifier | None = None,
) -> ServiceContainer:
    """Build a container from ``settings``, defaulting to in-process stores."""
    users = users if users is not None else InMemoryUserStore(clock=clock)
    transport = transport if transport is not None else ConsoleEmailTransport(settings.email_sender)
    challenges = challenges if challenges is not None else InMemoryChallengeRepository()
    codes = codes if codes is not None else InMemoryOneTimeCodeStore(
        clock=clock,
        ttl=timedelta(minutes=settings.otp_ttl_minutes),
        max_attempts=settings.otp_max_attempts,
    )
    verifier = verifier if verifier is not None else SignatureVerifier()

    wallet_auth = WalletAuthService(
        challenges,
        verifier,
        clock=clock,
        ttl=timedelta(seconds=settings.challenge_ttl_seconds),
        app_label=settings.challenge_app_label,
    )
    email_verification = EmailVerificationService(
        codes,
        transport,
        users,
        ttl_minutes=settings.otp_ttl_minutes,
    )
    tokens = SessionTokenIssuer(
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
        ttl=timedelta(hours=settings.session_token_expire_hours),
        clock=clock,
    )
    return ServiceContainer(
        settings=settings,
        challenges=challenges,
        codes=codes,
        users=users,
        transport=transport,
        verifier=verifier,
        wallet_auth=wallet_auth,
        email_verification=email_verification,
        tokens=tokens,
        authenticator=SessionAuthenticator(tokens, users),
    )
