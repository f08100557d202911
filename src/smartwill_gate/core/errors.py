"""Typed failures raised by the credential verification core.

Every failure the core can detect is a subclass of :class:`AuthError`. The
services raise them and the HTTP layer turns them into responses; nothing in
between retries or swallows them.
"""

from __future__ import annotations

from typing import ClassVar

_OTP_FAILURE_MESSAGE = "Invalid or expired verification code. Please request a new one."
_TOKEN_FAILURE_MESSAGE = "Could not validate credentials"


class AuthError(Exception):
    """Base class for verification failures.

    Attributes:
        code: Stable machine-readable identifier.
        status_code: HTTP status the API boundary reports.
        public_message: Text that is safe to show to the caller.
    """

    code: ClassVar[str] = "auth_error"
    status_code: ClassVar[int] = 400
    public_message: ClassVar[str] = "Authentication failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)

    def to_detail(self) -> dict[str, str]:
        """Return the response body used by the HTTP layer."""
        return {"error": self.code, "detail": self.public_message}


# --- Wallet challenge failures ----------------------------------------------------


class InvalidAddress(AuthError):
    code = "invalid_address"
    public_message = "Invalid Stacks address format"


class ChallengeNotFound(AuthError):
    code = "challenge_not_found"
    public_message = "Challenge not found or expired"


class ChallengeExpired(AuthError):
    code = "challenge_expired"
    public_message = "Challenge has expired"


class ChallengeAlreadyUsed(AuthError):
    code = "challenge_already_used"
    status_code = 409
    public_message = "Challenge has already been used"


class SignatureInvalid(AuthError):
    code = "signature_invalid"
    status_code = 401
    public_message = "Invalid signature"


class AddressMismatch(AuthError):
    code = "address_mismatch"
    status_code = 401
    public_message = "Public key does not match the wallet address"


# --- Email one-time code failures -------------------------------------------------


class CodeNotFound(AuthError):
    code = "code_not_found"
    public_message = _OTP_FAILURE_MESSAGE


class CodeExpired(AuthError):
    code = "code_expired"
    public_message = _OTP_FAILURE_MESSAGE


class AttemptsExceeded(AuthError):
    code = "attempts_exceeded"
    public_message = _OTP_FAILURE_MESSAGE


class PendingVerificationExists(AuthError):
    code = "pending_verification"
    status_code = 429
    public_message = (
        "A verification email has already been sent. "
        "Please check your inbox or wait before requesting a new one."
    )


class DeliveryFailed(AuthError):
    code = "delivery_failed"
    status_code = 503
    public_message = "Failed to send verification email"


class AccountExists(AuthError):
    code = "account_exists"
    status_code = 409
    public_message = "An account with these credentials already exists"


# --- Session failures -------------------------------------------------------------


class MissingToken(AuthError):
    code = "missing_token"
    status_code = 401
    public_message = "Access token required"


class TokenExpired(AuthError):
    code = "token_expired"
    status_code = 401
    public_message = "Token expired"


class TokenInvalid(AuthError):
    code = "token_invalid"
    status_code = 401
    public_message = _TOKEN_FAILURE_MESSAGE


class InsufficientPermissions(AuthError):
    code = "insufficient_permissions"
    status_code = 403
    public_message = "Insufficient permissions"


__all__ = [
    "AccountExists",
    "AddressMismatch",
    "AttemptsExceeded",
    "AuthError",
    "ChallengeAlreadyUsed",
    "ChallengeExpired",
    "ChallengeNotFound",
    "CodeExpired",
    "CodeNotFound",
    "DeliveryFailed",
    "InsufficientPermissions",
    "InvalidAddress",
    "MissingToken",
    "PendingVerificationExists",
    "SignatureInvalid",
    "TokenExpired",
    "TokenInvalid",
]
