# src/smartwill_gate/api/v1/endpoints/auth.py
"""Authentication endpoints for the SmartWill Gate API."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status

from smartwill_gate.api.v1.dependencies import (
    BearerTokenDep,
    ContainerDep,
    CurrentIdentityDep,
    StatsReaderDep,
    http_error,
)
from smartwill_gate.core.container import ServiceContainer
from smartwill_gate.core.errors import AddressMismatch, AuthError, SignatureInvalid
from smartwill_gate.core.security import Identity
from smartwill_gate.schemas.auth import (
    ChallengeResponse,
    ChallengeStatsResponse,
    IdentityResponse,
    MessageResponse,
    ResendVerificationRequest,
    SessionResponse,
    SignatureCheckResponse,
    SignupRequest,
    TokenResponse,
    UserResponse,
    VerifyEmailRequest,
    WalletLoginResponse,
    WalletProof,
)
from smartwill_gate.services.challenge_store import ChallengePurpose
from smartwill_gate.services.users import UserRecord
from smartwill_gate.services.wallet_auth import VerifiedWallet

router = APIRouter(prefix="/auth", tags=["authentication"])

SIGNUP_MESSAGE = (
    "If this email can be registered, a 6-digit verification code has been sent. "
    "Enter it to complete your registration."
)
RESEND_MESSAGE = "If a registration is pending for this email, a new code has been sent."


def _user_response(user: UserRecord) -> UserResponse:
    return UserResponse.model_validate(user)


def _issue_session(container: ServiceContainer, user: UserRecord) -> str:
    return container.tokens.issue(Identity.from_user(user))


def _consume_wallet_proof(container: ServiceContainer, proof: WalletProof) -> VerifiedWallet:
    try:
        return container.wallet_auth.verify_challenge_response(
            proof.message,
            proof.signature,
            proof.public_key,
            proof.address,
        )
    except AuthError as err:
        raise http_error(err) from err


@router.get(
    "/wallet/challenge",
    summary="Issue a challenge for a wallet to sign",
    response_model=ChallengeResponse,
)
def issue_wallet_challenge(
    container: ContainerDep,
    address: Annotated[str, Query(min_length=1, description="Stacks wallet address")],
    purpose: Annotated[ChallengePurpose, Query(alias="type")] = ChallengePurpose.CONNECTION,
    payment_id: Annotated[str | None, Query()] = None,
    amount: Annotated[float | None, Query(ge=0)] = None,
) -> ChallengeResponse:
    """Provide the exact message a wallet must sign to prove ownership."""
    try:
        challenge = container.wallet_auth.issue_challenge(
            address,
            purpose,
            payment_id=payment_id,
            amount=amount,
        )
    except AuthError as err:
        raise http_error(err) from err

    return ChallengeResponse(
        challenge=challenge.message,
        challenge_id=challenge.id,
        expires_at=challenge.expires_at,
    )


@router.post(
    "/wallet/verify",
    summary="Check a wallet signature without consuming a challenge",
    response_model=SignatureCheckResponse,
)
def verify_wallet_signature(
    payload: WalletProof,
    container: ContainerDep,
) -> SignatureCheckResponse:
    """Report whether a signature and public key prove control of an address."""
    try:
        container.verifier.verify_ownership(
            payload.message,
            payload.signature,
            payload.public_key,
            payload.address,
        )
    except (AddressMismatch, SignatureInvalid):
        return SignatureCheckResponse(verified=False)
    return SignatureCheckResponse(verified=True)


@router.post(
    "/wallet/login",
    summary="Authenticate with a signed wallet challenge",
    response_model=WalletLoginResponse,
)
def login_with_wallet(
    payload: WalletProof,
    container: ContainerDep,
) -> WalletLoginResponse:
    """Exchange a signed challenge for a session, creating the account on first use."""
    verified = _consume_wallet_proof(container, payload)

    user = container.users.find_by_wallet_address(verified.address)
    created = False
    if user is None:
        try:
            user = container.users.create(
                {
                    "wallet_address": verified.address,
                    "public_key": verified.public_key,
                    "auth_method": "wallet",
                    "role": container.settings.wallet_default_role,
                    "name": f"User {verified.address[:8]}...",
                    "email_verified": True,
                }
            )
        except AuthError as err:
            raise http_error(err) from err
        created = True

    container.users.update_last_login(user.id)
    return WalletLoginResponse(
        token=_issue_session(container, user),
        user=_user_response(user),
        created=created,
    )


@router.post(
    "/connect-wallet",
    summary="Link a wallet to the authenticated account",
    response_model=UserResponse,
)
def connect_wallet(
    payload: WalletProof,
    identity: CurrentIdentityDep,
    container: ContainerDep,
) -> UserResponse:
    """Attach a wallet after it signs a challenge."""
    verified = _consume_wallet_proof(container, payload)

    owner = container.users.find_by_wallet_address(verified.address)
    if owner is not None and owner.id != identity.subject:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "wallet_in_use",
                "detail": "This wallet is already connected to another account",
            },
        )

    try:
        user = container.users.connect_wallet(
            identity.subject,
            verified.address,
            verified.public_key,
        )
    except AuthError as err:
        raise http_error(err) from err
    return _user_response(user)


@router.get(
    "/wallet/stats",
    summary="Challenge store statistics",
    response_model=ChallengeStatsResponse,
)
def wallet_stats(
    _reader: StatsReaderDep,
    container: ContainerDep,
) -> ChallengeStatsResponse:
    """Return counts of active, expired and used challenges."""
    return ChallengeStatsResponse.model_validate(container.wallet_auth.stats())


@router.post(
    "/signup",
    summary="Start an email registration",
    response_model=MessageResponse,
)
def signup(
    payload: SignupRequest,
    container: ContainerDep,
) -> MessageResponse:
    """Hold the registration and email a verification code."""
    try:
        container.email_verification.start(
            payload.email,
            {"role": payload.role, "name": payload.name},
        )
    except AuthError as err:
        raise http_error(err) from err
    return MessageResponse(message=SIGNUP_MESSAGE)


@router.post(
    "/verify-email",
    summary="Complete an email registration with its code",
    response_model=SessionResponse,
)
def verify_email(
    payload: VerifyEmailRequest,
    container: ContainerDep,
) -> SessionResponse:
    """Create the pending account and log it in."""
    try:
        user = container.email_verification.verify(payload.email, payload.code)
    except AuthError as err:
        raise http_error(err) from err

    return SessionResponse(
        token=_issue_session(container, user),
        user=_user_response(user),
    )


@router.post(
    "/resend-verification",
    summary="Send a new verification code",
    response_model=MessageResponse,
)
def resend_verification(
    payload: ResendVerificationRequest,
    container: ContainerDep,
) -> MessageResponse:
    """Replace the pending code for an email with a fresh one."""
    try:
        container.email_verification.resend(payload.email)
    except AuthError as err:
        raise http_error(err) from err
    return MessageResponse(message=RESEND_MESSAGE)


@router.post(
    "/refresh",
    summary="Re-sign the presented session token",
    response_model=TokenResponse,
)
def refresh_token(
    _identity: CurrentIdentityDep,
    container: ContainerDep,
    token: BearerTokenDep,
) -> TokenResponse:
    """Return the same claims with a fresh expiry."""
    try:
        token = container.tokens.refresh(token)
    except AuthError as err:
        raise http_error(err) from err
    return TokenResponse(token=token)


@router.get("/me", summary="Current identity", response_model=IdentityResponse)
def read_me(identity: CurrentIdentityDep) -> IdentityResponse:
    """Return the identity behind the presented token."""
    return IdentityResponse(
        id=identity.subject,
        role=identity.role,
        name=identity.name,
        email=identity.email,
        email_verified=identity.email_verified,
        wallet_address=identity.wallet_address,
    )


@router.post("/logout", summary="End the session", response_model=MessageResponse)
def logout(_identity: CurrentIdentityDep) -> MessageResponse:
    """Sessions are stateless; the client discards its token."""
    return MessageResponse(message="Logout successful. Please remove the token from client storage.")
