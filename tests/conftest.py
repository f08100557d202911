# tests/conftest.py
from __future__ import annotations

import os
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-smartwill-gate")

from smartwill_gate.api.v1.dependencies import get_container
from smartwill_gate.core.container import ServiceContainer, build_container
from smartwill_gate.core.security import Identity
from smartwill_gate.core.settings import Settings
from smartwill_gate.main import app as fastapi_app
from smartwill_gate.services.stacks import (
    SIGNED_MESSAGE_PREFIX,
    StacksNetwork,
    derive_stacks_address,
    hash_message,
    is_valid_stacks_address,
)
from smartwill_gate.services.users import UserRecord
from smartwill_gate.utils.time import utcnow

_CODE_PATTERN = re.compile(r"verification code is: (\d{6})")


class FakeClock:
    """Controllable clock; starts at the real current time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start if start is not None else utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class SentEmail:
    to: str
    subject: str
    text_body: str
    html_body: str | None

    @property
    def code(self) -> str:
        match = _CODE_PATTERN.search(self.text_body)
        assert match is not None, "no verification code in email body"
        return match.group(1)


@dataclass
class RecordingTransport:
    """Email transport that keeps every message instead of sending it."""

    outbox: list[SentEmail] = field(default_factory=list)
    succeed: bool = True

    def send(
        self,
        to: str,
        subject: str,
        text_body: str,
        html_body: str | None = None,
    ) -> bool:
        self.outbox.append(SentEmail(to, subject, text_body, html_body))
        return self.succeed

    def last_code(self, to: str) -> str:
        for message in reversed(self.outbox):
            if message.to == to:
                return message.code
        raise AssertionError(f"no email sent to {to}")


@dataclass
class StacksWallet:
    private_key: ec.EllipticCurvePrivateKey
    public_key: str
    address: str

    def sign(self, message: str, prefix: bytes = SIGNED_MESSAGE_PREFIX) -> str:
        """Return a 65 byte ``v || r || s`` hex signature over ``message``."""
        der = self.private_key.sign(
            hash_message(message, prefix),
            ec.ECDSA(Prehashed(hashes.SHA256())),
        )
        r, s = decode_dss_signature(der)
        return "00" + r.to_bytes(32, "big").hex() + s.to_bytes(32, "big").hex()


def make_wallet(network: StacksNetwork = StacksNetwork.TESTNET) -> StacksWallet:
    """Generate a key whose derived address passes the address syntax rule."""
    while True:
        private_key = ec.generate_private_key(ec.SECP256K1())
        public_key = (
            private_key.public_key()
            .public_bytes(Encoding.X962, PublicFormat.CompressedPoint)
            .hex()
        )
        address = derive_stacks_address(public_key, network)
        if is_valid_stacks_address(address):
            return StacksWallet(private_key, public_key, address)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance with deterministic test values."""
    return Settings(SECRET_KEY="test-secret-key-for-smartwill-gate")  # type: ignore[call-arg]


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def container(
    test_settings: Settings,
    clock: FakeClock,
    transport: RecordingTransport,
) -> ServiceContainer:
    return build_container(test_settings, clock=clock, transport=transport)


@pytest.fixture()
def wallet() -> StacksWallet:
    return make_wallet()


@pytest.fixture()
def other_wallet() -> StacksWallet:
    return make_wallet()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_container_dependency(app: FastAPI, container: ServiceContainer) -> Iterator[None]:
    app.dependency_overrides[get_container] = lambda: container
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_container, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def create_user(container: ServiceContainer, **overrides: Any) -> UserRecord:
    data: dict[str, Any] = {
        "email": "owner@example.com",
        "role": "owner",
        "name": "Test Owner",
        "email_verified": True,
    }
    data.update(overrides)
    return container.users.create(data)


def auth_headers(container: ServiceContainer, user: UserRecord) -> dict[str, str]:
    token = container.tokens.issue(Identity.from_user(user))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def test_user(container: ServiceContainer) -> UserRecord:
    """Create and return an email-verified owner."""
    return create_user(container)


@pytest.fixture()
def auth_token(container: ServiceContainer, test_user: UserRecord) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return auth_headers(container, test_user)
