from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, field_validator

from hr_selfservice.models.enums import StageStatus
from hr_selfservice.schemas.request import UserSummary


class ExitEntryRequest(BaseModel):
    """An exit/entry visa request. A single HR stage decides it."""

    model_config = ConfigDict(extra="allow")

    id: int
    status: StageStatus | None = None
    visa_type: str | None = None
    validity_from_date: date | None = None
    validity_to_date: date | None = None
    period_in_days: int | None = None
    reason: str | None = None
    document_path: str | None = None
    user: UserSummary | None = None
    created_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: object) -> StageStatus | None:
        return StageStatus.parse(value)

    @property
    def is_pending(self) -> bool:
        return self.status in (None, StageStatus.PENDING)


class ExitEntryStatusPayload(BaseModel):
    """Request body for PATCH /exit-entry-requests/{id}/status."""

    status: StageStatus
