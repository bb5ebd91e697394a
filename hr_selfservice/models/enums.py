from __future__ import annotations

import enum


class RequestType(enum.StrEnum):
    """HR request types as the backend names them.

    ``VACATION`` requests live under /vacation-requests, not /hr-requests,
    but share the approval routing.
    """

    TO_LEAVE = "to_leave"
    LOANS = "loans"
    FINANCE_CLAIM = "finance_claim"
    MISC = "misc"
    BUSINESS_TRIP = "business_trip"
    BANK = "bank"
    RESIGNATION = "resignation"
    PERSONAL_DATA_CHANGE = "personal_data_change"
    VACATION = "vacation"

    @classmethod
    def _missing_(cls, value: object) -> RequestType | None:
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        key = _REQUEST_TYPE_ALIASES.get(key, key)
        for member in cls:
            if member.value == key:
                return member
        return None


_REQUEST_TYPE_ALIASES = {
    "leave": "to_leave",
    "loan": "loans",
}


class StageStatus(enum.StrEnum):
    """Outcome of a single approval stage."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: object) -> StageStatus | None:
        """Case-insensitive parse. Unknown, empty and non-string values are absent."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


class StageField(enum.StrEnum):
    """Per-stage status fields on an HR request, in pipeline order."""

    MANAGER = "status"
    HR = "hr_status"
    FINANCE_COORDINATOR = "finance_coordinator_status"
    FINANCE = "finance_status"
    CEO = "ceo_status"


class Role(enum.StrEnum):
    """Role of the signed-in user."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR_ADMIN = "hr_admin"
    FINANCE_COORDINATOR = "finance_coordinator"
    FINANCE = "finance"
    CEO = "ceo"


ROLES_CAN_VIEW_ASSIGNED = frozenset(
    {Role.MANAGER, Role.HR_ADMIN, Role.FINANCE_COORDINATOR, Role.FINANCE, Role.CEO}
)


class Decision(enum.StrEnum):
    """Approver action on a pending stage."""

    APPROVE = "approve"
    REJECT = "reject"


class ViewMode(enum.StrEnum):
    """Which request list the user is looking at."""

    MY_REQUESTS = "my_requests"
    ASSIGNED_REQUESTS = "assigned_requests"


class LeaveType(enum.StrEnum):
    """Vacation leave types; values are what the backend stores."""

    ANNUAL = "Annual"
    SICK = "Sick"
    EMERGENCY = "Emergency"
    UNPAID = "Unpaid"
    BABY_BORN = "BabyBorn"
    FAMILY_DEATH = "Passing Away (Family)"
    EXAM = "Exam"
    HAJ = "Haj"
    MARRIAGE = "Marriage"
    PREGNANCY = "Pregnancy"
    HUSBAND_DEATH = "Passing Away (Husband)"

    @classmethod
    def _missing_(cls, value: object) -> LeaveType | None:
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        key = _LEAVE_TYPE_ALIASES.get(key, key)
        for member in cls:
            if member.value.lower() == key:
                return member
        return None


_LEAVE_TYPE_ALIASES = {
    "familydeath": "passing away (family)",
    "husbanddeath": "passing away (husband)",
}


class AttendanceType(enum.StrEnum):
    """Direction of an attendance punch."""

    CHECK_IN = "CheckIn"
    CHECK_OUT = "CheckOut"
