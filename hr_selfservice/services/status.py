"""Approval-chain status resolution for HR requests.

Each request type has a fixed, linear approval pipeline. A stage becomes
actionable once its predecessor is Approved (or when it is the first stage).
The policy lives in ``APPROVAL_ROUTES``; the functions below only read it.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from hr_selfservice.exceptions import InvalidTransitionError
from hr_selfservice.models.enums import Decision, RequestType, Role, StageField, StageStatus
from hr_selfservice.schemas.request import ApprovalMeta, HrRequest, StageDecision
from hr_selfservice.schemas.vacation import VacationRequest

RequestLike = HrRequest | VacationRequest | Mapping[str, Any]

MANAGER_FIRST_TYPES = frozenset(
    {
        RequestType.TO_LEAVE,
        RequestType.MISC,
        RequestType.BUSINESS_TRIP,
        RequestType.RESIGNATION,
        RequestType.PERSONAL_DATA_CHANGE,
        RequestType.VACATION,
    }
)
HR_FIRST_TYPES = frozenset({RequestType.BANK, RequestType.FINANCE_CLAIM, RequestType.LOANS})


@dataclass(frozen=True)
class ApprovalRoute:
    """One row of the routing table.

    ``role`` may act on ``acts_on`` for any of ``request_types`` when
    ``acts_on`` is Pending and ``after`` (if set) is Approved.
    """

    role: Role
    request_types: frozenset[RequestType]
    after: StageField | None
    acts_on: StageField


APPROVAL_ROUTES: tuple[ApprovalRoute, ...] = (
    ApprovalRoute(Role.MANAGER, MANAGER_FIRST_TYPES, None, StageField.MANAGER),
    ApprovalRoute(Role.HR_ADMIN, HR_FIRST_TYPES, None, StageField.HR),
    ApprovalRoute(Role.HR_ADMIN, MANAGER_FIRST_TYPES, StageField.MANAGER, StageField.HR),
    ApprovalRoute(
        Role.FINANCE_COORDINATOR,
        frozenset({RequestType.FINANCE_CLAIM}),
        StageField.HR,
        StageField.FINANCE_COORDINATOR,
    ),
    ApprovalRoute(
        Role.FINANCE,
        frozenset({RequestType.FINANCE_CLAIM}),
        StageField.FINANCE_COORDINATOR,
        StageField.FINANCE,
    ),
    ApprovalRoute(Role.FINANCE, frozenset({RequestType.LOANS}), StageField.HR, StageField.FINANCE),
    ApprovalRoute(Role.CEO, frozenset({RequestType.LOANS}), StageField.FINANCE, StageField.CEO),
)

DECISION_VALUES = {
    Decision.APPROVE: StageStatus.APPROVED,
    Decision.REJECT: StageStatus.REJECTED,
}

_CANNOT_ACT = ApprovalMeta(can_act=False, field=None)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _stage_value(request: RequestLike, field: StageField) -> StageStatus | None:
    """Read a stage field as a StageStatus; unset and unknown values are None."""
    if isinstance(request, HrRequest | VacationRequest):
        return request.stage(field)
    if isinstance(request, Mapping):
        return StageStatus.parse(request.get(field.value))
    return StageStatus.parse(getattr(request, field.value, None))


def _request_type(request: RequestLike) -> RequestType | None:
    if isinstance(request, HrRequest):
        return request.known_type
    raw = request.get("request_type") if isinstance(request, Mapping) else getattr(request, "request_type", None)
    if raw is None:
        return None
    try:
        return RequestType(raw)
    except ValueError:
        return None


def _role(role: Role | str | None) -> Role | None:
    if role is None:
        return None
    try:
        return Role(role.strip().lower() if isinstance(role, str) else role)
    except ValueError:
        return None


def _gating_value(request: RequestLike, field: StageField) -> StageStatus:
    """Stage value for routing decisions: unset counts as Pending."""
    return _stage_value(request, field) or StageStatus.PENDING


def _route_matches(route: ApprovalRoute, request: RequestLike, request_type: RequestType) -> bool:
    if request_type not in route.request_types:
        return False
    if _gating_value(request, route.acts_on) != StageStatus.PENDING:
        return False
    return route.after is None or _gating_value(request, route.after) == StageStatus.APPROVED


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_overall_status(request: RequestLike) -> StageStatus:
    """Collapse the per-stage status fields into one displayable status.

    Rejection at any stage wins. All present stages Approved yields Approved.
    Otherwise the manager-stage value is shown, defaulting to Pending.
    """
    present = [value for field in StageField if (value := _stage_value(request, field)) is not None]
    if not present:
        return StageStatus.PENDING
    if StageStatus.REJECTED in present:
        return StageStatus.REJECTED
    if all(value == StageStatus.APPROVED for value in present):
        return StageStatus.APPROVED
    return _stage_value(request, StageField.MANAGER) or StageStatus.PENDING


def can_act(request: RequestLike, role: Role | str | None, is_on_assigned_view: bool) -> ApprovalMeta:
    """Decide whether ``role`` may approve or reject ``request`` right now."""
    if not is_on_assigned_view:
        return _CANNOT_ACT

    acting_role = _role(role)
    request_type = _request_type(request)
    if acting_role is None or request_type is None:
        return _CANNOT_ACT

    for route in APPROVAL_ROUTES:
        if route.role == acting_role and _route_matches(route, request, request_type):
            return ApprovalMeta(can_act=True, field=route.acts_on)
    return _CANNOT_ACT


def apply_decision(
    request: RequestLike,
    action: Decision | str,
    role: Role | str | None,
    is_on_assigned_view: bool = True,
) -> StageDecision:
    """Map an approve/reject action to the stage value the backend should store.

    Raises InvalidTransitionError when no stage is actionable. The request is
    never modified; callers persist the decision and re-fetch the record.
    """
    try:
        decision = Decision(action.lower() if isinstance(action, str) else action)
    except ValueError:
        raise InvalidTransitionError(f"Unknown action: {action!r}") from None

    meta = can_act(request, role, is_on_assigned_view)
    if not meta.can_act or meta.field is None:
        raise InvalidTransitionError(f"Role {role!r} cannot act on this request")

    return StageDecision(field=meta.field, new_value=DECISION_VALUES[decision])


def approval_pipeline(request_type: RequestType | str) -> tuple[StageField, ...]:
    """Ordered stages a request of this type passes through."""
    kind = RequestType(request_type)
    stages: list[StageField] = []
    for route in APPROVAL_ROUTES:
        if kind in route.request_types and route.acts_on not in stages:
            stages.append(route.acts_on)
    return tuple(sorted(stages, key=list(StageField).index))

