from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from hr_selfservice.models.enums import AttendanceType

LOG_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class Punch(BaseModel):
    """One attendance log entry."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    log_time: datetime
    type: AttendanceType | str = Field(union_mode="left_to_right")


class PunchPayload(BaseModel):
    """Request body for POST /attendances."""

    employee_code: str = Field(min_length=1)
    device_stgid: str
    log_time: str
    type: AttendanceType
    input_type: str = "GPS"
    raw_payload: str


class PunchReceipt(BaseModel):
    """The backend confirms a punch by returning its id."""

    model_config = ConfigDict(extra="allow")

    id: int | str
