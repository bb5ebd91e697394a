from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from hr_selfservice.exceptions import AppError
from hr_selfservice.models.enums import ROLES_CAN_VIEW_ASSIGNED, ViewMode
from hr_selfservice.schemas.request import HrRequest, PendingBreakdown, StatusUpdatePayload
from hr_selfservice.services.status import apply_decision

if TYPE_CHECKING:
    from datetime import date

    from hr_selfservice.api.client import AuthenticatedClient
    from hr_selfservice.models.enums import Decision, RequestType, Role, StageField, StageStatus
    from hr_selfservice.schemas.forms import AnyHrRequestForm, HrRequestUpdate

logger = logging.getLogger(__name__)


class HrRequestsApi:
    """Endpoints under /hr-requests."""

    base_path = "/hr-requests"

    def __init__(self, client: AuthenticatedClient) -> None:
        self.client = client

    async def list_requests(
        self,
        view_mode: ViewMode = ViewMode.MY_REQUESTS,
        request_type: RequestType | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[HrRequest]:
        """List the user's own requests or those assigned to them.

        Roles that never approve anything are kept on their own requests.
        """
        user = self.client.sessions.user
        if view_mode == ViewMode.ASSIGNED_REQUESTS and (user is None or user.known_role not in ROLES_CAN_VIEW_ASSIGNED):
            view_mode = ViewMode.MY_REQUESTS

        params: dict[str, str] = {"view_mode": view_mode.value}
        if request_type is not None:
            params["request_type"] = request_type.value
        if from_date is not None:
            params["from_date"] = from_date.isoformat()
        if to_date is not None:
            params["to_date"] = to_date.isoformat()

        response = await self.client.get(self.base_path, params=params)
        return self.client.decode_list(response, HrRequest)

    async def get_request(self, request_id: int) -> HrRequest:
        response = await self.client.get(f"{self.base_path}/{request_id}")
        return self.client.decode(response, HrRequest)

    async def create_request(self, form: AnyHrRequestForm) -> HrRequest:
        """Submit a new request as multipart form data."""
        response = await self.client.post(self.base_path, data=form.to_form_fields(), files=form.files() or None)
        logger.info("Submitted %s request", form.request_type.value)
        return self.client.decode(response, HrRequest)

    async def update_request(self, request_id: int, changes: HrRequestUpdate) -> HrRequest:
        response = await self.client.put(
            f"{self.base_path}/{request_id}",
            data=changes.to_form_fields(),
            files=changes.files() or None,
        )
        return self.client.decode(response, HrRequest)

    async def update_status(self, request_id: int, field: StageField, status: StageStatus) -> None:
        """Persist one stage's new value."""
        payload = StatusUpdatePayload(field=field, status=status)
        await self.client.put(f"{self.base_path}/{request_id}/status", json=payload.model_dump(mode="json"))

    async def decide(
        self,
        request: HrRequest,
        action: Decision | str,
        role: Role | str,
        view_mode: ViewMode = ViewMode.ASSIGNED_REQUESTS,
    ) -> HrRequest:
        """Approve or reject the stage the role may act on, then re-fetch the record.

        Raises InvalidTransitionError before any network call when the role
        has nothing to act on.
        """
        decision = apply_decision(request, action, role, view_mode == ViewMode.ASSIGNED_REQUESTS)
        await self.update_status(request.id, decision.field, decision.new_value)
        logger.info(
            "Request %s: %s set to %s by role=%s",
            request.id,
            decision.field.value,
            decision.new_value.value,
            role,
        )
        return await self.get_request(request.id)

    async def delete_request(self, request_id: int) -> None:
        await self.client.delete(f"{self.base_path}/{request_id}")

    async def assigned_pending_breakdown(self) -> PendingBreakdown:
        """Pending counts for the assigned view. Failures yield an empty breakdown."""
        try:
            response = await self.client.get(f"{self.base_path}/assigned-pending-breakdown", notify=False)
            return self.client.decode(response, PendingBreakdown, notify=False)
        except AppError:
            logger.warning("Could not load assigned pending breakdown", exc_info=True)
            return PendingBreakdown()
