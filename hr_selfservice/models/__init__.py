from hr_selfservice.models.enums import (
    ROLES_CAN_VIEW_ASSIGNED,
    AttendanceType,
    Decision,
    LeaveType,
    RequestType,
    Role,
    StageField,
    StageStatus,
    ViewMode,
)

__all__ = [
    "ROLES_CAN_VIEW_ASSIGNED",
    "AttendanceType",
    "Decision",
    "LeaveType",
    "RequestType",
    "Role",
    "StageField",
    "StageStatus",
    "ViewMode",
]
