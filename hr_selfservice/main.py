from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from hr_selfservice.api.attendance import AttendanceApi
from hr_selfservice.api.auth import AuthApi
from hr_selfservice.api.client import AuthenticatedClient
from hr_selfservice.api.exit_entry import ExitEntryApi
from hr_selfservice.api.notifications import NotificationsApi
from hr_selfservice.api.requests import HrRequestsApi
from hr_selfservice.api.users import UsersApi
from hr_selfservice.api.vacations import VacationApi
from hr_selfservice.config import get_settings
from hr_selfservice.services.session import FileSessionStore, InMemorySessionStore, SessionManager

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    import httpx

    from hr_selfservice.config import Settings
    from hr_selfservice.exceptions import AppError
    from hr_selfservice.services.session import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class HrSelfService:
    """The client plus the endpoint groups built on it."""

    client: AuthenticatedClient
    auth: AuthApi
    requests: HrRequestsApi
    exit_entry: ExitEntryApi
    vacations: VacationApi
    notifications: NotificationsApi
    attendance: AttendanceApi
    users: UsersApi

    @property
    def sessions(self) -> SessionManager:
        return self.client.sessions


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    *,
    store: SessionStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    notifier: Callable[[AppError], None] | None = None,
) -> HrSelfService:
    """Application factory."""
    settings = settings or get_settings()
    if store is None:
        store = FileSessionStore(settings.session_file) if settings.session_file else InMemorySessionStore()

    client = AuthenticatedClient(
        SessionManager(store),
        settings.api_base_url,
        timeout=settings.request_timeout,
        upload_timeout=settings.upload_timeout,
        transport=transport,
        notifier=notifier,
    )
    return HrSelfService(
        client=client,
        auth=AuthApi(client),
        requests=HrRequestsApi(client),
        exit_entry=ExitEntryApi(client),
        vacations=VacationApi(client),
        notifications=NotificationsApi(client),
        attendance=AttendanceApi(client),
        users=UsersApi(client),
    )


@asynccontextmanager
async def lifespan(app: HrSelfService) -> AsyncIterator[HrSelfService]:
    """Load the persisted session, refresh it if expired, close on exit."""
    settings = get_settings()
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)
    await app.sessions.load()
    signed_in = await app.client.check_expiry_on_startup()
    logger.info("Startup session check: %s", "signed in" if signed_in else "signed out")
    try:
        yield app
    finally:
        await app.client.aclose()
        logger.info("Shutting down %s", settings.app_name)
