from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from hr_selfservice.exceptions import AppError, InvalidTransitionError
from hr_selfservice.models.enums import Decision, Role, StageStatus, ViewMode
from hr_selfservice.schemas.vacation import PendingCount, VacationBalance, VacationRequest, VacationStatusPayload
from hr_selfservice.services.status import DECISION_VALUES, apply_decision
from hr_selfservice.services.vacation import UNCAPPED_LEAVE_TYPES, check_balance

if TYPE_CHECKING:
    from hr_selfservice.api.client import AuthenticatedClient
    from hr_selfservice.schemas.forms import VacationForm

logger = logging.getLogger(__name__)

ROLE_PATH_PREFIXES = {
    Role.HR_ADMIN: "/admin",
    Role.MANAGER: "/manager",
    Role.FINANCE_COORDINATOR: "/finance_coordinator",
    Role.FINANCE: "/finance",
    Role.CEO: "/ceo",
}
EMPLOYEE_PREFIX = "/employee"


def role_prefix(role: Role | str | None) -> str:
    """Path prefix of the role-scoped vacation endpoints."""
    try:
        known = Role(role.strip().lower() if isinstance(role, str) else role)
    except ValueError:
        return EMPLOYEE_PREFIX
    return ROLE_PATH_PREFIXES.get(known, EMPLOYEE_PREFIX)


class VacationApi:
    """Role-scoped endpoints under {prefix}/vacation-requests."""

    resource = "vacation-requests"

    def __init__(self, client: AuthenticatedClient) -> None:
        self.client = client

    def _role(self) -> str | None:
        user = self.client.sessions.user
        return user.role if user is not None else None

    def _path(self, suffix: str = "", role: Role | str | None = None) -> str:
        if role is None:
            role = self._role()
        return f"{role_prefix(role)}/{self.resource}{suffix}"

    async def list_requests(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> list[VacationRequest]:
        """Requests visible to the signed-in role, optionally paged and date-filtered."""
        params: dict[str, str] = {}
        if start_date is not None:
            params["start_date"] = start_date.isoformat()
        if end_date is not None:
            params["end_date"] = end_date.isoformat()
        if page is not None:
            params["page"] = str(page)
        if per_page is not None:
            params["per_page"] = str(per_page)
        response = await self.client.get(self._path(), params=params or None)
        return self.client.decode_list(response, VacationRequest)

    async def list_overview(self) -> list[VacationRequest]:
        """The unpaged index; for HR admins this is the final-approval queue."""
        response = await self.client.get(f"{role_prefix(self._role())}/{self.resource}2/index")
        return self.client.decode_list(response, VacationRequest)

    async def has_pending_request(self) -> bool:
        requests = await self.list_overview()
        return any(r.status == StageStatus.PENDING or r.hr_status == StageStatus.PENDING for r in requests)

    async def get_request(self, request_id: int) -> VacationRequest:
        response = await self.client.get(self._path(f"/{request_id}"))
        return self.client.decode(response, VacationRequest)

    async def balances(self) -> list[VacationBalance]:
        response = await self.client.get("/vacation-balances/my")
        return self.client.decode_list(response, VacationBalance)

    async def create_request(self, form: VacationForm, today: date | None = None) -> VacationRequest:
        """Submit a request after checking it fits the user's balance.

        Raises InsufficientBalanceError before any upload when it does not.
        """
        if form.leave_type not in UNCAPPED_LEAVE_TYPES:
            check_balance(form, await self.balances(), today or date.today())
        response = await self.client.post(self._path(), data=form.to_form_fields(), files=form.files() or None)
        logger.info("Submitted %s vacation request for %d days", form.leave_type.value, form.requested_days)
        return self.client.decode(response, VacationRequest)

    async def cancel_request(self, request: VacationRequest) -> VacationRequest:
        """Withdraw the user's own request while it is still pending."""
        if not request.is_pending:
            raise InvalidTransitionError(f"Vacation request {request.id} is no longer pending")
        payload = VacationStatusPayload(status=StageStatus.CANCELLED)
        await self.client.patch(self._path(f"/{request.id}"), json=payload.model_dump(mode="json", exclude_none=True))
        return await self.get_request(request.id)

    async def decide(
        self,
        request: VacationRequest,
        action: Decision | str,
        role: Role | str,
        view_mode: ViewMode = ViewMode.ASSIGNED_REQUESTS,
    ) -> VacationRequest:
        """Approve or reject the stage the role may act on, then re-fetch the record."""
        decision = apply_decision(request, action, role, view_mode == ViewMode.ASSIGNED_REQUESTS)
        payload = VacationStatusPayload.model_validate({decision.field.value: decision.new_value})
        await self.client.patch(
            self._path(f"/{request.id}", role),
            json=payload.model_dump(mode="json", exclude_none=True),
        )
        logger.info(
            "Vacation request %s: %s set to %s by role=%s",
            request.id,
            decision.field.value,
            decision.new_value.value,
            role,
        )
        return await self.get_request(request.id)

    async def finalize(self, request: VacationRequest, action: Decision | str, role: Role | str) -> VacationRequest:
        """HR final decision: sets both stages at once, whatever the manager decided."""
        try:
            decision = Decision(action.lower() if isinstance(action, str) else action)
        except ValueError:
            raise InvalidTransitionError(f"Unknown action: {action!r}") from None
        if role_prefix(role) != ROLE_PATH_PREFIXES[Role.HR_ADMIN]:
            raise InvalidTransitionError(f"Role {role!r} cannot finalize vacation requests")
        value = DECISION_VALUES[decision]
        payload = VacationStatusPayload(status=value, hr_status=value)
        await self.client.patch(self._path(f"/{request.id}", role), json=payload.model_dump(mode="json"))
        logger.info("Vacation request %s finalized as %s", request.id, value.value)
        return await self.get_request(request.id)

    async def pending_count(self) -> int:
        """Requests awaiting the signed-in approver. Failures count as zero."""
        try:
            response = await self.client.get(self._path("/pending-count"), notify=False)
            return self.client.decode(response, PendingCount, notify=False).count
        except AppError:
            logger.warning("Could not load pending vacation count", exc_info=True)
            return 0

