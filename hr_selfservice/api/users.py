from __future__ import annotations

from typing import TYPE_CHECKING

from hr_selfservice.exceptions import SessionExpiredError
from hr_selfservice.schemas.user import Asset, UserProfile

if TYPE_CHECKING:
    from hr_selfservice.api.client import AuthenticatedClient


class UsersApi:
    """Employee profiles and the assets handed to them."""

    def __init__(self, client: AuthenticatedClient) -> None:
        self.client = client

    async def get_user(self, user_id: int) -> UserProfile:
        response = await self.client.get(f"/users/{user_id}")
        return self.client.decode(response, UserProfile)

    async def profile(self) -> UserProfile:
        """The signed-in user's full record."""
        user = self.client.sessions.user
        if user is None or user.id is None:
            raise SessionExpiredError("No signed-in user")
        return await self.get_user(user.id)

    async def assets(self, employee_code: str) -> list[Asset]:
        response = await self.client.get(f"/assets/employee/{employee_code}")
        return self.client.decode_list(response, Asset)
