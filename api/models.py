"""
API request and response models for SessionAuth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

No response model has a password or password_hash field, so a hash cannot be
serialized to a client even by mistake.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from auth.credentials import MAX_PASSWORD_BYTES

# Identity fields are trimmed; passwords are taken byte-for-byte.
_Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
_Email = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$"),
]


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /register."""

    username: _Username
    email: _Email
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        """bcrypt reads at most 72 bytes; multi-byte characters count per byte."""
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


class LoginRequest(BaseModel):
    """Request body for POST /login.

    No byte-length rule here: a password past bcrypt's 72 bytes is just a
    wrong password (401), not a validation error that would set this path
    apart. A password longer than 255 characters is rejected as malformed
    (422) before any lookup.
    """

    username: _Username
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a registered user."""

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    email: str
    created_at: str


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Registration successful."
    user: UserResponse


class PrincipalResponse(BaseModel):
    """The authenticated identity of the current request."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str


class MeResponse(BaseModel):
    """Response for GET /me: the principal plus the stored account details."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    username: str
    email: str


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Login successful."
    user: PrincipalResponse
    expires_in: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
