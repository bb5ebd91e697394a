from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from hr_selfservice.schemas.notification import Announcement, Holiday, Notification, NotificationFeed

if TYPE_CHECKING:
    from hr_selfservice.api.client import AuthenticatedClient

logger = logging.getLogger(__name__)


class NotificationsApi:
    """In-app notifications plus the announcement and holiday boards."""

    def __init__(self, client: AuthenticatedClient) -> None:
        self.client = client

    async def list_notifications(self) -> list[Notification]:
        response = await self.client.get("/notifications")
        return self.client.decode_list(response, Notification)

    async def mark_read(self, notification_id: int | str) -> None:
        await self.client.post(f"/notifications/{notification_id}/read")

    async def list_announcements(self) -> list[Announcement]:
        response = await self.client.get("/announcements")
        return self.client.decode_list(response, Announcement)

    async def list_holidays(self) -> list[Holiday]:
        response = await self.client.get("/holidays")
        return self.client.decode_list(response, Holiday)

    async def feed(self, today: date | None = None) -> NotificationFeed:
        """Notifications, current announcements and upcoming holidays, newest first."""
        on = today or date.today()
        feed = NotificationFeed.merge(
            await self.list_notifications(),
            await self.list_announcements(),
            await self.list_holidays(),
            on,
        )
        logger.debug("Notification feed: %d items, %d unread", len(feed.items), feed.unread_count)
        return feed
