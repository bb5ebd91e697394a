from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hr_selfservice.schemas.auth import (
    ForgotPasswordPayload,
    LoginPayload,
    LoginResponse,
    ResetPasswordPayload,
    Session,
    SessionUser,
    VerifyOtpPayload,
)
from hr_selfservice.services.session import decode_token_expiry

if TYPE_CHECKING:
    from hr_selfservice.api.client import AuthenticatedClient

logger = logging.getLogger(__name__)


class AuthApi:
    """Login, logout and password-reset endpoints."""

    def __init__(self, client: AuthenticatedClient) -> None:
        self.client = client

    async def login(self, employee_code: str, password: str) -> SessionUser:
        """Exchange credentials for tokens and persist the new session."""
        payload = LoginPayload(employee_code=employee_code, password=password)
        response = await self.client.post("/login", json=payload.model_dump(), authenticate=False)
        data = self.client.decode(response, LoginResponse)

        await self.client.sessions.set_session(
            Session(
                access_token=data.access_token,
                refresh_token=data.refresh_token or None,
                token_expiry=decode_token_expiry(data.access_token),
                user=data.user,
            )
        )
        logger.info("Signed in as role=%s", data.user.role)
        return data.user

    async def logout(self) -> None:
        await self.client.sessions.clear_session()
        logger.info("Signed out")

    async def forgot_password(self, identifier: str) -> None:
        payload = ForgotPasswordPayload(identifier=identifier)
        await self.client.post("/password/forgot", json=payload.model_dump(), authenticate=False)

    async def verify_otp(self, identifier: str, otp: str) -> None:
        payload = VerifyOtpPayload(identifier=identifier, otp=otp)
        await self.client.post("/password/verify-otp", json=payload.model_dump(), authenticate=False)

    async def reset_password(self, identifier: str, otp: str, password: str, password_confirmation: str) -> None:
        payload = ResetPasswordPayload(
            identifier=identifier,
            otp=otp,
            password=password,
            password_confirmation=password_confirmation,
        )
        await self.client.post("/password/reset", json=payload.model_dump(), authenticate=False)
