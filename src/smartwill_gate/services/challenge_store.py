# src/smartwill_gate/services/challenge_store.py
"""Storage for outstanding wallet authentication challenges."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import StrEnum
from threading import Lock
from typing import Protocol


class ChallengePurpose(StrEnum):
    """Reason a wallet is being asked to sign."""

    CONNECTION = "connection"
    PAYMENT = "payment"


@dataclass(frozen=True)
class Challenge:
    """A message a wallet must sign before its address is trusted."""

    id: str
    message: str
    address: str
    purpose: ChallengePurpose
    nonce: str
    issued_at: datetime
    expires_at: datetime
    used: bool = False
    payment_id: str | None = None
    amount: float | None = None

    def is_expired(self, now: datetime) -> bool:
        """A challenge is only accepted strictly before ``expires_at``."""
        return now >= self.expires_at


class ChallengeRepository(Protocol):
    """Storage contract for challenges.

    Implementations must make :meth:`mark_used` an atomic compare-and-set so
    that a challenge can be consumed at most once, even across workers.
    """

    def add(self, challenge: Challenge) -> None: ...

    def get(self, challenge_id: str) -> Challenge | None: ...

    def find(self, message: str, address: str) -> Challenge | None: ...

    def mark_used(self, challenge_id: str, now: datetime) -> bool: ...

    def delete(self, challenge_id: str) -> None: ...

    def purge_expired(self, now: datetime) -> int: ...

    def snapshot(self) -> list[Challenge]: ...


class InMemoryChallengeRepository:
    """Process-local challenge storage guarded by a single lock."""

    def __init__(self) -> None:
        self._by_id: dict[str, Challenge] = {}
        self._by_key: dict[tuple[str, str], str] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def add(self, challenge: Challenge) -> None:
        with self._lock:
            if challenge.id in self._by_id:
                raise ValueError(f"Challenge id already stored: {challenge.id}")
            self._by_id[challenge.id] = challenge
            self._by_key[(challenge.address, challenge.message)] = challenge.id

    def get(self, challenge_id: str) -> Challenge | None:
        with self._lock:
            return self._by_id.get(challenge_id)

    def find(self, message: str, address: str) -> Challenge | None:
        """Return the challenge whose message and address match exactly."""
        with self._lock:
            challenge_id = self._by_key.get((address, message))
            if challenge_id is None:
                return None
            return self._by_id.get(challenge_id)

    def mark_used(self, challenge_id: str, now: datetime) -> bool:
        """Flip ``used`` to True if the challenge is present, unused and unexpired."""
        with self._lock:
            challenge = self._by_id.get(challenge_id)
            if challenge is None or challenge.used or challenge.is_expired(now):
                return False
            self._by_id[challenge_id] = replace(challenge, used=True)
            return True

    def delete(self, challenge_id: str) -> None:
        with self._lock:
            self._remove(challenge_id)

    def purge_expired(self, now: datetime) -> int:
        """Remove every challenge with ``now > expires_at``, used or not."""
        with self._lock:
            expired = [cid for cid, challenge in self._by_id.items() if now > challenge.expires_at]
            for challenge_id in expired:
                self._remove(challenge_id)
            return len(expired)

    def snapshot(self) -> list[Challenge]:
        with self._lock:
            return list(self._by_id.values())

    def _remove(self, challenge_id: str) -> None:
        challenge = self._by_id.pop(challenge_id, None)
        if challenge is not None:
            self._by_key.pop((challenge.address, challenge.message), None)
