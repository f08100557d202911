"""Session tokens: issuing, decoding, request authentication and role checks."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from jose import JWTError, jwt

from smartwill_gate.core.errors import (
    InsufficientPermissions,
    TokenExpired,
    TokenInvalid,
)
from smartwill_gate.services.users import UserRecord, UserStore
from smartwill_gate.utils.time import Clock, utcnow

TOKEN_TYPE = "session"
DEFAULT_SESSION_TTL = timedelta(hours=24)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """An authenticated subject as seen by request handlers."""

    subject: str
    role: str
    name: str
    email: str | None = None
    email_verified: bool = False
    wallet_address: str | None = None

    @classmethod
    def from_user(cls, user: UserRecord) -> Identity:
        return cls(
            subject=user.id,
            role=user.role,
            name=user.name,
            email=user.email,
            email_verified=user.email_verified,
            wallet_address=user.wallet_address,
        )


class SessionTokenIssuer:
    """Sign and check fixed-lifetime session tokens.

    The issuer trusts whoever calls :meth:`issue`; callers only do so after a
    wallet signature, an email code or an external password check succeeded.
    """

    def __init__(
        self,
        secret_key: str,
        *,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Clock = utcnow,
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._ttl = ttl
        self._clock = clock

    def issue(self, identity: Identity) -> str:
        """Return a signed token carrying ``identity``'s claims."""
        claims: dict[str, Any] = {
            "sub": identity.subject,
            "email": identity.email,
            "role": identity.role,
            "email_verified": identity.email_verified,
            "name": identity.name,
            "type": TOKEN_TYPE,
        }
        if identity.wallet_address:
            claims["wallet"] = identity.wallet_address
        logger.info("Issued session token for %s", identity.subject)
        return self._sign(claims)

    def decode(self, token: str) -> dict[str, Any]:
        """Verify ``token`` and return its claims.

        Expiry is judged against the issuer's clock, the same clock that
        stamped ``exp`` when the token was issued.

        Raises:
            TokenExpired: The token's expiry has passed.
            TokenInvalid: The token is malformed, forged or not a session token.
        """
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError as err:
            raise TokenInvalid() from err

        if not payload.get("sub") or payload.get("type") != TOKEN_TYPE:
            raise TokenInvalid()
        expires_at = payload.get("exp")
        if not isinstance(expires_at, int | float):
            raise TokenInvalid()
        # exp carries whole seconds
        if expires_at < int(self._clock().timestamp()):
            raise TokenExpired()
        return payload

    def refresh(self, token: str) -> str:
        """Re-sign a still-valid token with a fresh expiry."""
        claims = self.decode(token)
        claims.pop("iat", None)
        claims.pop("exp", None)
        return self._sign(claims)

    def _sign(self, claims: dict[str, Any]) -> str:
        issued_at = self._clock()
        to_encode = {**claims, "iat": issued_at, "exp": issued_at + self._ttl}
        encoded: str = jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)
        return encoded


class SessionAuthenticator:
    """Resolve a presented session token back to a live identity.

    Claims are treated as a cache: the subject is always looked up again in
    the user store, and the identity is built from the stored record.
    """

    def __init__(self, issuer: SessionTokenIssuer, users: UserStore) -> None:
        self._issuer = issuer
        self._users = users

    def authenticate(self, token: str) -> Identity:
        """Authenticate a request from the bearer token it presented.

        Raises:
            TokenExpired, TokenInvalid
        """
        claims = self._issuer.decode(token)
        user = self._users.find_by_id(str(claims["sub"]))
        if user is None:
            logger.info("Rejected token for a subject that no longer exists")
            raise TokenInvalid()
        return Identity.from_user(user)


def require_role(identity: Identity, roles: Iterable[str]) -> Identity:
    """Return ``identity`` if its role is one of ``roles``.

    Raises:
        InsufficientPermissions: The role is not allowed.
    """
    allowed = {roles} if isinstance(roles, str) else set(roles)
    if identity.role not in allowed:
        raise InsufficientPermissions()
    return identity
