# src/smartwill_gate/services/otp.py
"""One-time email verification codes."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from threading import Lock
from typing import Any, Protocol

from smartwill_gate.core.errors import AttemptsExceeded, CodeExpired, CodeNotFound
from smartwill_gate.utils.email import normalize_email
from smartwill_gate.utils.time import Clock, utcnow

DEFAULT_CODE_TTL = timedelta(minutes=15)
DEFAULT_MAX_ATTEMPTS = 3
CODE_FLOOR = 100_000
CODE_SPAN = 900_000
MAX_GENERATION_TRIES = 16

logger = logging.getLogger(__name__)


@dataclass
class VerificationCode:
    """A live code and the registration data it unlocks."""

    code: str
    email: str
    payload: Any
    created_at: datetime
    expires_at: datetime
    attempts: int = 0
    verified: bool = False
    verified_at: datetime | None = None


class OneTimeCodeStore(Protocol):
    """Contract for code storage; every check-then-write must be atomic."""

    def issue_code(self, email: str, payload: Any) -> str: ...

    def verify(self, code: str, email: str | None = None) -> Any: ...

    def remove(self, code: str) -> None: ...

    def find_by_email(self, email: str) -> VerificationCode | None: ...

    def has_pending_verification(self, email: str) -> bool: ...

    def cleanup_expired(self) -> int: ...


class InMemoryOneTimeCodeStore:
    """Process-local code storage.

    At most one live code exists per email. Codes are keyed by value, so a
    freshly generated code that collides with another live one is redrawn.
    """

    def __init__(
        self,
        *,
        clock: Clock = utcnow,
        ttl: timedelta = DEFAULT_CODE_TTL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._clock = clock
        self._ttl = ttl
        self._max_attempts = max_attempts
        self._codes: dict[str, VerificationCode] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._codes)

    def issue_code(self, email: str, payload: Any) -> str:
        """Replace any code for ``email`` with a new 6-digit code and return it.

        The new code never equals the one it replaces, so the old code stops
        working the moment this returns.
        """
        email = normalize_email(email)
        with self._lock:
            replaced = self._discard_email(email)
            code = self._generate_code(exclude=replaced)
            now = self._clock()
            self._codes[code] = VerificationCode(
                code=code,
                email=email,
                payload=payload,
                created_at=now,
                expires_at=now + self._ttl,
            )
        logger.info("Issued verification code for %s", email)
        return code

    def verify(self, code: str, email: str | None = None) -> Any:
        """Check ``code`` and return the payload it unlocks.

        Checks run in a fixed order: expiry, then attempts, then the value
        itself (lookup by code). The attempt counter is charged before the
        limit is applied, so the call after ``max_attempts`` is always
        rejected and the record removed, whether or not the code is right.

        Args:
            code: The code submitted by the user.
            email: If given, the record must belong to this email; a mismatch
                is reported as not found and charges no attempt.

        Raises:
            CodeNotFound: No such code (or it belongs to another email).
            CodeExpired: The code is past its expiry (it is deleted).
            AttemptsExceeded: The attempt limit was hit (it is deleted).
        """
        with self._lock:
            record = self._codes.get(code)
            if record is None:
                raise CodeNotFound()
            if email is not None and record.email != normalize_email(email):
                raise CodeNotFound()

            now = self._clock()
            if now > record.expires_at:
                del self._codes[code]
                raise CodeExpired()

            record.attempts += 1
            if record.attempts > self._max_attempts:
                del self._codes[code]
                raise AttemptsExceeded()

            if not record.verified:
                record.verified = True
                record.verified_at = now
            return record.payload

    def remove(self, code: str) -> None:
        with self._lock:
            self._codes.pop(code, None)

    def find_by_email(self, email: str) -> VerificationCode | None:
        """Return a copy of the record for ``email``, if any."""
        email = normalize_email(email)
        with self._lock:
            for record in self._codes.values():
                if record.email == email:
                    return replace(record)
        return None

    def has_pending_verification(self, email: str) -> bool:
        """True if ``email`` has a code that is unverified and still accepted by :meth:`verify`."""
        record = self.find_by_email(email)
        if record is None:
            return False
        return not record.verified and self._clock() <= record.expires_at

    def cleanup_expired(self) -> int:
        """Remove every record with ``expires_at < now``; return the count."""
        now = self._clock()
        with self._lock:
            expired = [code for code, record in self._codes.items() if record.expires_at < now]
            for code in expired:
                del self._codes[code]
        if expired:
            logger.info("Cleaned up %d expired verification codes", len(expired))
        return len(expired)

    def _discard_email(self, email: str) -> set[str]:
        stale = {code for code, record in self._codes.items() if record.email == email}
        for code in stale:
            del self._codes[code]
        return stale

    def _generate_code(self, exclude: set[str]) -> str:
        """Draw a code that is neither live nor one of ``exclude``."""
        for _ in range(MAX_GENERATION_TRIES):
            code = str(CODE_FLOOR + secrets.randbelow(CODE_SPAN))
            if code not in self._codes and code not in exclude:
                return code
        raise RuntimeError("Could not generate a unique verification code")
