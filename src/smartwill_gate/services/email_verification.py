# src/smartwill_gate/services/email_verification.py
"""Email ownership verification for pending registrations."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from smartwill_gate.core.errors import DeliveryFailed, PendingVerificationExists
from smartwill_gate.services.email import EmailTransport, build_verification_email
from smartwill_gate.services.otp import OneTimeCodeStore
from smartwill_gate.utils.email import normalize_email
from smartwill_gate.services.users import UserRecord, UserStore

logger = logging.getLogger(__name__)


class EmailVerificationService:
    """Bridge the code store, the email transport and the user store.

    Registration data is held by the code store until the code is verified;
    only then is the account created, and the code is removed immediately so
    the payload can never be consumed twice.
    """

    def __init__(
        self,
        codes: OneTimeCodeStore,
        transport: EmailTransport,
        users: UserStore,
        *,
        ttl_minutes: int = 15,
    ) -> None:
        self._codes = codes
        self._transport = transport
        self._users = users
        self._ttl_minutes = ttl_minutes

    def start(self, email: str, payload: Mapping[str, Any]) -> None:
        """Issue and send a code that will unlock ``payload``.

        Known emails are ignored without an error so callers cannot discover
        which addresses have accounts.

        Raises:
            PendingVerificationExists: A live code was already sent.
            DeliveryFailed: The transport could not send the code.
        """
        email = normalize_email(email)
        if self._users.find_by_email(email) is not None:
            logger.info("Signup requested for an existing account; no code issued")
            return
        if self._codes.has_pending_verification(email):
            raise PendingVerificationExists()

        code = self._codes.issue_code(email, {**payload, "email": email})
        self._deliver(email, code)

    def verify(self, email: str, code: str) -> UserRecord:
        """Consume ``code`` for ``email`` and create the pending account.

        Raises:
            CodeNotFound, CodeExpired, AttemptsExceeded: The code was rejected.
            AccountExists: The user store refused the new account.
        """
        payload = self._codes.verify(code, email)
        try:
            user = self._users.create({**payload, "email_verified": True})
        finally:
            self._codes.remove(code)
        logger.info("Email verified and account %s created", user.id)
        return user

    def resend(self, email: str) -> None:
        """Send a fresh code for an outstanding registration, if there is one.

        The previous code stops working. Nothing happens when ``email`` has no
        outstanding registration.

        Raises:
            DeliveryFailed: The transport could not send the code.
        """
        record = self._codes.find_by_email(email)
        if record is None:
            logger.info("Resend requested without a pending verification")
            return
        code = self._codes.issue_code(record.email, record.payload)
        self._deliver(record.email, code)

    def _deliver(self, email: str, code: str) -> None:
        message = build_verification_email(code, self._ttl_minutes)
        if not self._transport.send(email, message.subject, message.text_body, message.html_body):
            logger.warning("Verification email delivery failed for %s", email)
            raise DeliveryFailed()
