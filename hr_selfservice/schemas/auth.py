from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hr_selfservice.models.enums import Role

# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SessionUser(BaseModel):
    """Signed-in user as returned by /login."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    name: str | None = None
    employee_code: str | None = None
    role: str = Role.EMPLOYEE.value

    @property
    def known_role(self) -> Role | None:
        try:
            return Role(self.role)
        except ValueError:
            return None


class Session(BaseModel):
    """Device-held credentials. Only SessionManager writes these."""

    access_token: str
    refresh_token: str | None = None
    token_expiry: int | None = None  # epoch milliseconds
    user: SessionUser | None = None


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class LoginPayload(BaseModel):
    employee_code: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshPayload(BaseModel):
    refresh_token: str


class ForgotPasswordPayload(BaseModel):
    identifier: str = Field(min_length=1)


class VerifyOtpPayload(BaseModel):
    identifier: str = Field(min_length=1)
    otp: str = Field(pattern=r"^\d{6}$")


class ResetPasswordPayload(BaseModel):
    """Request body for POST /password/reset."""

    identifier: str = Field(min_length=1)
    otp: str = Field(pattern=r"^\d{6}$")
    password: str = Field(min_length=1)
    password_confirmation: str

    @model_validator(mode="after")
    def _validate_confirmation(self) -> Self:
        if self.password != self.password_confirmation:
            msg = "Passwords do not match"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LoginResponse(BaseModel):
    """Response of POST /login. Some backends omit the refresh token."""

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    user: SessionUser


class RefreshResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    access_token: str = Field(min_length=1)
