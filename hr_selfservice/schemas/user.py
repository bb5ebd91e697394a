from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserProfile(BaseModel):
    """Full employee record from GET /users/{id}."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str | None = None
    employee_code: str | None = None
    email: str | None = None
    role: str | None = None
    position: str | None = None
    site: str | None = None
    family_members: list[dict[str, Any]] = Field(default_factory=list)
    assigned_policies: list[dict[str, Any]] = Field(default_factory=list)
    certificates: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("family_members", "assigned_policies", "certificates", mode="before")
    @classmethod
    def _null_as_empty(cls, value: object) -> object:
        return value or []


class Asset(BaseModel):
    """Company asset handed to an employee."""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str | None = None
    serial_number: str | None = None
