from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hr_selfservice.models.enums import RequestType, StageField, StageStatus

# ---------------------------------------------------------------------------
# Records returned by the backend
# ---------------------------------------------------------------------------


class UserSummary(BaseModel):
    """Denormalised summary of the submitting employee."""

    model_config = ConfigDict(extra="allow")

    id: int | None = None
    name: str | None = None
    department: str | None = None
    job_title: str | None = None


class HrRequest(BaseModel):
    """An HR request record. Type-specific fields are kept as extras.

    Types this client does not know are kept as their raw string so one new
    backend type does not break a whole listing. Such requests are never
    actionable.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    request_type: RequestType | str = Field(union_mode="left_to_right")
    status: StageStatus | None = None
    hr_status: StageStatus | None = None
    finance_coordinator_status: StageStatus | None = None
    finance_status: StageStatus | None = None
    ceo_status: StageStatus | None = None
    user: UserSummary | None = None
    attachment_path: str | None = None
    attachments: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    @field_validator("request_type", mode="before")
    @classmethod
    def _parse_request_type(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return RequestType(value)
            except ValueError:
                return value
        return value

    @field_validator(
        "status",
        "hr_status",
        "finance_coordinator_status",
        "finance_status",
        "ceo_status",
        mode="before",
    )
    @classmethod
    def _parse_stage(cls, value: object) -> StageStatus | None:
        return StageStatus.parse(value)

    @field_validator("attachments", mode="before")
    @classmethod
    def _parse_attachments(cls, value: object) -> list[str]:
        if not value:
            return []
        paths: list[str] = []
        for item in value if isinstance(value, list) else [value]:
            if isinstance(item, str):
                paths.append(item)
            elif isinstance(item, dict) and isinstance(item.get("path"), str):
                paths.append(item["path"])
        return paths

    @property
    def known_type(self) -> RequestType | None:
        return self.request_type if isinstance(self.request_type, RequestType) else None

    def stage(self, field: StageField) -> StageStatus | None:
        """Return the value of a stage field, or None when unset."""
        value: StageStatus | None = getattr(self, field.value)
        return value


class PendingBreakdown(BaseModel):
    """Count of requests awaiting the current user, by request type."""

    model_config = ConfigDict(extra="allow")

    total: int = 0

    def count_for(self, request_type: RequestType) -> int:
        value = (self.model_extra or {}).get(request_type.value, 0)
        return value if isinstance(value, int) else 0


# ---------------------------------------------------------------------------
# Approval results
# ---------------------------------------------------------------------------


class ApprovalMeta(BaseModel):
    """Whether the viewer can act on a request now, and on which field."""

    model_config = ConfigDict(frozen=True)

    can_act: bool
    field: StageField | None = None


class StageDecision(BaseModel):
    """Stage value to persist for an approve/reject action."""

    model_config = ConfigDict(frozen=True)

    field: StageField
    new_value: StageStatus


class StatusUpdatePayload(BaseModel):
    """Request body for PUT /hr-requests/{id}/status."""

    field: StageField
    status: StageStatus
