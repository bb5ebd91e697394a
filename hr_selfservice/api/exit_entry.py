from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hr_selfservice.exceptions import InvalidTransitionError
from hr_selfservice.models.enums import Decision, Role
from hr_selfservice.schemas.exit_entry import ExitEntryRequest, ExitEntryStatusPayload
from hr_selfservice.services.status import DECISION_VALUES

if TYPE_CHECKING:
    from hr_selfservice.api.client import AuthenticatedClient
    from hr_selfservice.schemas.forms import ExitEntryForm

logger = logging.getLogger(__name__)


class ExitEntryApi:
    """Endpoints under /exit-entry-requests."""

    base_path = "/exit-entry-requests"

    def __init__(self, client: AuthenticatedClient) -> None:
        self.client = client

    async def list_requests(self) -> list[ExitEntryRequest]:
        response = await self.client.get(self.base_path)
        return self.client.decode_list(response, ExitEntryRequest)

    async def get_request(self, request_id: int) -> ExitEntryRequest:
        response = await self.client.get(f"{self.base_path}/{request_id}")
        return self.client.decode(response, ExitEntryRequest)

    async def create_request(self, form: ExitEntryForm) -> ExitEntryRequest:
        response = await self.client.post(self.base_path, data=form.to_form_fields(), files=form.files() or None)
        logger.info("Submitted exit/entry request")
        return self.client.decode(response, ExitEntryRequest)

    async def cancel_request(self, request_id: int) -> None:
        await self.client.post(f"{self.base_path}/{request_id}/cancel")

    async def update_status(
        self,
        request: ExitEntryRequest,
        action: Decision | str,
        role: Role | str,
    ) -> ExitEntryRequest:
        """Approve or reject a pending request (HR admins only), then re-fetch it."""
        try:
            acting_role = Role(role.lower() if isinstance(role, str) else role)
            decision = Decision(action.lower() if isinstance(action, str) else action)
        except ValueError:
            raise InvalidTransitionError(f"Unknown role or action: {role!r}, {action!r}") from None
        if acting_role != Role.HR_ADMIN or not request.is_pending:
            raise InvalidTransitionError(f"Role {role!r} cannot act on exit/entry request {request.id}")
        payload = ExitEntryStatusPayload(status=DECISION_VALUES[decision])
        await self.client.patch(f"{self.base_path}/{request.id}/status", json=payload.model_dump(mode="json"))
        return await self.get_request(request.id)
