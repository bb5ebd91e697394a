from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
from conftest import FakeBackend
from httpx import ASGITransport

from hr_selfservice.config import Settings
from hr_selfservice.exceptions import (
    USER_MESSAGES,
    ErrorCategory,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from hr_selfservice.main import create_app, lifespan
from hr_selfservice.schemas.auth import Session, SessionUser
from hr_selfservice.services.session import FileSessionStore, InMemorySessionStore

if TYPE_CHECKING:
    from pathlib import Path


def _settings(**overrides: object) -> Settings:
    return Settings(api_base_url="http://test", file_base_url="http://files.test", **overrides)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HR_API_BASE_URL", "https://staging.example.com/api")
    monkeypatch.setenv("HR_REQUEST_TIMEOUT", "5")
    monkeypatch.setenv("HR_ENVIRONMENT", "staging")
    settings = Settings()
    assert settings.api_base_url == "https://staging.example.com/api"
    assert settings.request_timeout == 5.0
    assert settings.environment == "staging"


def test_settings_defaults() -> None:
    settings = Settings(_env_file=None)
    assert settings.upload_timeout > settings.request_timeout
    assert settings.session_file is None


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def test_create_app_uses_file_store_when_configured(tmp_path: Path) -> None:
    app = create_app(_settings(session_file=str(tmp_path / "session.json")))
    assert isinstance(app.sessions._store, FileSessionStore)


def test_create_app_defaults_to_memory_store() -> None:
    app = create_app(_settings())
    assert isinstance(app.sessions._store, InMemorySessionStore)
    assert app.requests.client is app.client
    assert app.exit_entry.client is app.client
    assert app.auth.client is app.client
    assert app.vacations.client is app.client
    assert app.notifications.client is app.client
    assert app.attendance.client is app.client
    assert app.users.client is app.client


async def test_lifespan_refreshes_expired_session(tmp_path: Path) -> None:
    backend = FakeBackend()
    access, refresh = backend.issue_tokens(expires_in=timedelta(hours=-1))
    store = FileSessionStore(tmp_path / "session.json")
    await store.save(Session(access_token=access, refresh_token=refresh, token_expiry=1, user=SessionUser(id=3)))

    app = create_app(_settings(), store=store, transport=ASGITransport(app=backend.app))
    async with lifespan(app) as running:
        assert running.sessions.access_token is not None
        assert running.sessions.access_token != access
        assert backend.refresh_calls == 1
        assert await running.requests.list_requests() == []

    assert app.client._http.is_closed
    persisted = await store.load()
    assert persisted is not None
    assert persisted.access_token == app.sessions.access_token


async def test_lifespan_with_dead_session(tmp_path: Path) -> None:
    backend = FakeBackend()
    store = FileSessionStore(tmp_path / "session.json")
    await store.save(Session(access_token="stale", refresh_token="revoked", token_expiry=1))

    app = create_app(_settings(), store=store, transport=ASGITransport(app=backend.app))
    async with lifespan(app) as running:
        assert running.sessions.session is None

    assert not (tmp_path / "session.json").exists()


# ---------------------------------------------------------------------------
# Error categories
# ---------------------------------------------------------------------------


def test_every_category_has_a_user_message() -> None:
    assert set(USER_MESSAGES) == set(ErrorCategory)
    assert SessionExpiredError("x").user_message == "Your session has expired. Please log in again."
    assert NotFoundError("x").category == ErrorCategory.NOT_FOUND
    assert ValidationError("x").status_code == 422
    assert ValidationError("x").errors == []
