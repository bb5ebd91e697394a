from __future__ import annotations

from datetime import UTC, date, datetime, time

from pydantic import BaseModel, ConfigDict, field_validator

_EPOCH = datetime.min.replace(tzinfo=UTC)


def _sort_key(item: Notification) -> datetime:
    if item.created_at is None:
        return _EPOCH
    if item.created_at.tzinfo is None:
        return item.created_at.replace(tzinfo=UTC)
    return item.created_at


class Notification(BaseModel):
    """An in-app notification. Ids are strings so feed entries never collide."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: str = ""
    message: str = ""
    read: bool = False
    created_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: object) -> object:
        return str(value) if isinstance(value, int) else value

    @field_validator("read", mode="before")
    @classmethod
    def _parse_read(cls, value: object) -> object:
        return False if value is None else value


class Announcement(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    title: str = ""
    message: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = False

    def is_current(self, on: date) -> bool:
        """Active and inside its (optional) date range on ``on``."""
        if not self.is_active:
            return False
        if self.start_date is not None and self.start_date > on:
            return False
        return self.end_date is None or self.end_date >= on

    def as_notification(self) -> Notification:
        return Notification(
            id=f"ann-{self.id}",
            type="Announcement",
            message=f"{self.title}\n{self.message}" if self.message else self.title,
            created_at=datetime.combine(self.start_date, time()) if self.start_date else None,
        )


class Holiday(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    name: str = ""
    holiday_date: date | None = None

    def is_upcoming(self, on: date) -> bool:
        return self.holiday_date is not None and self.holiday_date >= on

    def as_notification(self) -> Notification:
        return Notification(
            id=f"hol-{self.id}",
            type="Holiday",
            message=f"{self.name}\n{self.holiday_date.isoformat()}" if self.holiday_date else self.name,
            created_at=datetime.combine(self.holiday_date, time()) if self.holiday_date else None,
        )


class NotificationFeed(BaseModel):
    """Notifications merged with current announcements and upcoming holidays, newest first."""

    items: list[Notification]
    unread_count: int

    @classmethod
    def merge(
        cls,
        notifications: list[Notification],
        announcements: list[Announcement],
        holidays: list[Holiday],
        on: date,
    ) -> NotificationFeed:
        extra = [a.as_notification() for a in announcements if a.is_current(on)]
        extra += [h.as_notification() for h in holidays if h.is_upcoming(on)]
        items = sorted([*notifications, *extra], key=_sort_key, reverse=True)
        unread = sum(1 for n in notifications if not n.read) + len(extra)
        return cls(items=items, unread_count=unread)
