# src/smartwill_gate/services/__init__.py
"""Credential verification services for SmartWill Gate."""

from .challenge_store import Challenge, ChallengePurpose, InMemoryChallengeRepository
from .email_verification import EmailVerificationService
from .otp import InMemoryOneTimeCodeStore
from .signature import SignatureVerifier
from .sweeper import ExpirySweeper
from .users import InMemoryUserStore
from .wallet_auth import WalletAuthService

__all__ = [
    "Challenge",
    "ChallengePurpose",
    "EmailVerificationService",
    "ExpirySweeper",
    "InMemoryChallengeRepository",
    "InMemoryOneTimeCodeStore",
    "InMemoryUserStore",
    "SignatureVerifier",
    "WalletAuthService",
]
