"""Authentication-related Pydantic schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ChallengeResponse(BaseModel):
    """Challenge a wallet must sign to prove control of its address."""

    challenge: str = Field(..., description="Exact message the wallet must sign")
    challenge_id: str = Field(..., description="Opaque challenge identifier")
    expires_at: datetime = Field(..., description="Moment after which the challenge is rejected")


class WalletProof(BaseModel):
    """Signed challenge submitted by a wallet."""

    address: str = Field(..., description="Stacks address claiming ownership")
    message: str = Field(..., description="Challenge message exactly as issued")
    signature: str = Field(..., min_length=1, description="Hex signature, with or without 0x")
    public_key: str = Field(..., min_length=1, description="Hex-encoded secp256k1 public key")


class SignatureCheckResponse(BaseModel):
    """Outcome of a standalone signature check."""

    verified: bool


class UserResponse(BaseModel):
    """Public view of an account."""

    id: str
    role: str
    name: str
    email: str | None = None
    email_verified: bool = False
    wallet_address: str | None = None
    auth_method: str = "email"

    model_config = ConfigDict(from_attributes=True)


class SessionResponse(BaseModel):
    """Session token returned after a successful verification."""

    token: str = Field(..., description="Signed session token")
    token_type: str = Field("bearer", description="Token type (always 'bearer')")
    user: UserResponse


class WalletLoginResponse(SessionResponse):
    created: bool = Field(..., description="True if the wallet's account was created now")


class SignupRequest(BaseModel):
    """Registration held pending until the email address is verified."""

    email: EmailStr
    role: Literal["owner", "heir", "verifier"]
    name: str | None = Field(None, max_length=100)


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., pattern=r"^\d{6}$", description="6-digit verification code")


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"


class IdentityResponse(BaseModel):
    """Identity resolved from a session token."""

    id: str
    role: str
    name: str
    email: str | None = None
    email_verified: bool = False
    wallet_address: str | None = None


class ChallengeStatsResponse(BaseModel):
    total: int
    active: int
    expired: int
    used: int

    model_config = ConfigDict(from_attributes=True)
