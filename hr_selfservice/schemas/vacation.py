from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hr_selfservice.models.enums import LeaveType, RequestType, StageField, StageStatus
from hr_selfservice.schemas.request import UserSummary


def _leave_type_or_raw(value: object) -> object:
    """Known leave types become ``LeaveType``; others stay as sent."""
    if isinstance(value, str):
        try:
            return LeaveType(value)
        except ValueError:
            return value
    return value


class VacationRequest(BaseModel):
    """A vacation request: the manager decides ``status``, then HR ``hr_status``."""

    model_config = ConfigDict(extra="allow")

    request_type: ClassVar[RequestType] = RequestType.VACATION

    id: int
    leave_type: LeaveType | str | None = Field(default=None, union_mode="left_to_right")
    start_date: date | None = None
    end_date: date | None = None
    status: StageStatus | None = None
    hr_status: StageStatus | None = None
    country: str | None = None
    phone_number: str | None = None
    location_in_country: str | None = None
    description: str | None = None
    attachment_path: str | None = None
    user: UserSummary | None = None
    created_at: datetime | None = None

    @field_validator("status", "hr_status", mode="before")
    @classmethod
    def _parse_stage(cls, value: object) -> StageStatus | None:
        return StageStatus.parse(value)

    @field_validator("leave_type", mode="before")
    @classmethod
    def _parse_leave_type(cls, value: object) -> object:
        return _leave_type_or_raw(value)

    @property
    def is_pending(self) -> bool:
        return self.status in (None, StageStatus.PENDING)

    def stage(self, field: StageField) -> StageStatus | None:
        """Stages other than manager and HR only appear as unparsed extras."""
        return StageStatus.parse(getattr(self, field.value, None))


class VacationBalanceUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    contract_type: str | None = None
    gender: str | None = None


class VacationBalance(BaseModel):
    """Remaining days of one leave type for the signed-in user."""

    model_config = ConfigDict(extra="allow")

    leave_type: LeaveType | str = Field(union_mode="left_to_right")
    balance: Decimal = Decimal(0)
    user: VacationBalanceUser | None = None

    @field_validator("leave_type", mode="before")
    @classmethod
    def _parse_leave_type(cls, value: object) -> object:
        return _leave_type_or_raw(value)

    @field_validator("balance", mode="before")
    @classmethod
    def _parse_balance(cls, value: object) -> object:
        return value if value not in (None, "") else Decimal(0)


class PendingCount(BaseModel):
    count: int = 0


class VacationStatusPayload(BaseModel):
    """Request body for PATCH {prefix}/vacation-requests/{id}. Unset stages are omitted."""

    status: StageStatus | None = None
    hr_status: StageStatus | None = None
