"""API models for certmint.

Pydantic models for API requests and responses. Field names are snake_case
in Python and camelCase on the wire.
"""
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# =============================================================================
# Request Models
# =============================================================================


class LoginRequest(ApiModel):
    """Wallet login: a message signed by the wallet's Ed25519 key."""

    message: Optional[str] = Field(None, description="The signed message")
    signature: Optional[str] = Field(None, description="Detached signature, base58 or base64")
    public_key: Optional[str] = Field(None, description="Base58 wallet public key")


class UpdateProfileRequest(ApiModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    photo_file_name: Optional[str] = Field(None, min_length=1, max_length=255)


class CreateCertificateRequest(ApiModel):
    """Certificate metadata; the PDF is uploaded by the client afterwards."""

    title: str
    institution_name: str
    program_name: str
    issue_date: str = Field(..., description="YYYY-MM-DD")
    file_name: str = Field(..., min_length=1)
    file_type: str = Field(..., min_length=1)
    request_upload_url: bool = Field(False, description="Must be true for this endpoint")


# =============================================================================
# Response Models
# =============================================================================


class UserResponse(ApiModel):
    id: str
    wallet_address: str
    full_name: str
    email: Optional[str] = None
    profile_photo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LoginResponse(ApiModel):
    token: str
    expires_at: datetime
    user: UserResponse


class UpdateProfileResponse(ApiModel):
    user: UserResponse
    upload_url: Optional[str] = None
    public_url: Optional[str] = None


class CertificateResponse(ApiModel):
    id: str
    title: str
    institution_name: str
    program_name: str
    issue_date: date
    certificate_url: str
    verification_url: str
    verification_status: str
    verification_details: Optional[Any] = None
    ledger_address: Optional[str] = None
    mint_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CertificateListResponse(ApiModel):
    certificates: list[CertificateResponse]


class CreateCertificateResponse(ApiModel):
    id: str
    certificate_url: str
    verification_url: str
    upload_url: Optional[str] = None
    expires_at: Optional[datetime] = None


class DeleteResponse(ApiModel):
    success: bool = True


class VerificationResponse(ApiModel):
    id: str
    status: str
    details: Optional[Any] = None
    outcome: str
    message: Optional[str] = None


class MintResponse(ApiModel):
    id: str
    mint_id: str
    ledger_address: Optional[str] = None
    outcome: str
    message: Optional[str] = None


class VerificationLogEntry(ApiModel):
    id: str
    verification_step: str
    status: str
    details: Optional[Any] = None
    created_at: datetime


class VerificationLogResponse(ApiModel):
    certificate_id: str
    entries: list[VerificationLogEntry]


class HealthResponse(BaseModel):
    ok: bool
    database: bool
