"""User store contract and the in-process default used in development and tests."""
from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from threading import Lock
from typing import Any, Protocol

from smartwill_gate.core.errors import AccountExists
from smartwill_gate.utils.email import normalize_email
from smartwill_gate.utils.time import Clock, utcnow

VALID_ROLES = ("owner", "heir", "verifier")

__all__ = [
    "VALID_ROLES",
    "InMemoryUserStore",
    "UserRecord",
    "UserStore",
]


@dataclass(frozen=True)
class UserRecord:
    """Identity record as returned by a user store."""

    id: str
    role: str
    name: str
    email: str | None = None
    email_verified: bool = False
    wallet_address: str | None = None
    public_key: str | None = None
    auth_method: str = "email"
    created_at: datetime | None = None
    last_login_at: datetime | None = None


class UserStore(Protocol):
    """Persistence collaborator; the credential core never stores users itself."""

    def find_by_email(self, email: str) -> UserRecord | None: ...

    def find_by_wallet_address(self, address: str) -> UserRecord | None: ...

    def find_by_id(self, user_id: str) -> UserRecord | None: ...

    def create(self, data: Mapping[str, Any]) -> UserRecord: ...

    def update_last_login(self, user_id: str) -> None: ...

    def connect_wallet(self, user_id: str, address: str, public_key: str) -> UserRecord: ...


class InMemoryUserStore:
    """Thread-safe dictionary-backed user store."""

    def __init__(self, *, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._users: dict[str, UserRecord] = {}
        self._lock = Lock()

    def find_by_email(self, email: str) -> UserRecord | None:
        """Return the user registered under ``email`` (normalized)."""
        email = normalize_email(email)
        with self._lock:
            return next((u for u in self._users.values() if u.email == email), None)

    def find_by_wallet_address(self, address: str) -> UserRecord | None:
        with self._lock:
            return next((u for u in self._users.values() if u.wallet_address == address), None)

    def find_by_id(self, user_id: str) -> UserRecord | None:
        with self._lock:
            return self._users.get(user_id)

    def create(self, data: Mapping[str, Any]) -> UserRecord:
        """Persist a new user from registration data.

        Raises:
            AccountExists: If the email or wallet address is already taken.
        """
        email = data.get("email")
        email = normalize_email(email) if email else None
        wallet_address = data.get("wallet_address")
        now = self._clock()
        record = UserRecord(
            id=uuid.uuid4().hex,
            role=data.get("role", "owner"),
            name=data.get("name") or "New User",
            email=email,
            email_verified=bool(data.get("email_verified", False)),
            wallet_address=wallet_address,
            public_key=data.get("public_key"),
            auth_method=data.get("auth_method", "wallet" if wallet_address else "email"),
            created_at=now,
        )
        with self._lock:
            for existing in self._users.values():
                if email and existing.email == email:
                    raise AccountExists()
                if wallet_address and existing.wallet_address == wallet_address:
                    raise AccountExists()
            self._users[record.id] = record
        return record

    def update_last_login(self, user_id: str) -> None:
        with self._lock:
            record = self._users.get(user_id)
            if record is not None:
                self._users[user_id] = replace(record, last_login_at=self._clock())

    def connect_wallet(self, user_id: str, address: str, public_key: str) -> UserRecord:
        """Attach a wallet to an existing user.

        Raises:
            KeyError: If ``user_id`` is unknown.
            AccountExists: If another user already holds ``address``.
        """
        with self._lock:
            record = self._users[user_id]
            for other in self._users.values():
                if other.id != user_id and other.wallet_address == address:
                    raise AccountExists()
            updated = replace(record, wallet_address=address, public_key=public_key)
            self._users[user_id] = updated
            return updated

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)
