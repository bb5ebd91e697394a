from __future__ import annotations

import asyncio
import itertools
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from httpx import ASGITransport
from jose import jwt

from hr_selfservice.config import Settings
from hr_selfservice.main import create_app
from hr_selfservice.schemas.auth import Session, SessionUser
from hr_selfservice.services.session import InMemorySessionStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from hr_selfservice.exceptions import AppError
    from hr_selfservice.main import HrSelfService

_SIGNING_KEY = "test-signing-key"
PASSWORD = "secret"

USERS: dict[str, dict[str, Any]] = {
    "E100": {"id": 1, "name": "Employee One", "role": "employee"},
    "M200": {"id": 2, "name": "Manager Two", "role": "manager"},
    "H300": {"id": 3, "name": "HR Three", "role": "hr_admin"},
}

_ROLE_PREFIXES = {"admin", "manager", "finance_coordinator", "finance", "ceo", "employee"}
_STAGE_FIELDS = ("status", "hr_status", "finance_coordinator_status", "finance_status", "ceo_status")


def make_token(expires_in: timedelta = timedelta(hours=1), subject: str = "1") -> str:
    """Signed JWT whose ``exp`` claim is ``expires_in`` from now."""
    exp = int((datetime.now(UTC) + expires_in).timestamp())
    return jwt.encode({"sub": subject, "exp": exp}, _SIGNING_KEY, algorithm="HS256")


def _initial_stages(request_type: str) -> dict[str, str | None]:
    stages: dict[str, str | None] = dict.fromkeys(_STAGE_FIELDS)
    if request_type in {"to_leave", "misc", "business_trip", "resignation", "personal_data_change"}:
        stages.update(status="Pending", hr_status="Pending")
    elif request_type == "finance_claim":
        stages.update(hr_status="Pending", finance_coordinator_status="Pending", finance_status="Pending")
    elif request_type == "loans":
        stages.update(hr_status="Pending", finance_status="Pending", ceo_status="Pending")
    else:
        stages.update(hr_status="Pending")
    return stages


class FakeApiError(Exception):
    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class FakeBackend:
    """In-process stand-in for the HR REST API, with call accounting."""

    def __init__(self) -> None:
        self.access_tokens: set[str] = set()
        self.refresh_tokens: set[str] = set()
        self.calls: list[tuple[str, str, str | None]] = []
        self.refresh_calls = 0
        self.refresh_fails = False
        self.refresh_delay = 0.0
        self.reject_all = False
        self.breakdown_fails = False
        # When set, GET /hr-requests answers with this text instead of JSON.
        self.raw_body: str | None = None
        self.hr_requests: dict[int, dict[str, Any]] = {}
        self.exit_entries: dict[int, dict[str, Any]] = {}
        self.vacations: dict[int, dict[str, Any]] = {}
        self.vacation_balances: list[dict[str, Any]] = []
        self.pending_vacations = 0
        self.notifications: dict[str, dict[str, Any]] = {}
        self.announcements: list[dict[str, Any]] = []
        self.holidays: list[dict[str, Any]] = []
        self.attendances: list[dict[str, Any]] = []
        self.attendance_without_id = False
        self.assets: dict[str, list[dict[str, Any]]] = {}
        self.last_query_path = ""
        self.last_form: dict[str, Any] = {}
        self.last_files: dict[str, str] = {}
        self.last_query: dict[str, str] = {}
        self.last_json: dict[str, Any] = {}
        self._ids = itertools.count(1)
        self.app = self._build_app()

    # -- helpers -------------------------------------------------------------

    def issue_tokens(self, expires_in: timedelta = timedelta(hours=1)) -> tuple[str, str]:
        access = make_token(expires_in, subject=str(next(self._ids)))
        refresh = f"refresh-{next(self._ids)}"
        self.access_tokens.add(access)
        self.refresh_tokens.add(refresh)
        return access, refresh

    def add_hr_request(self, request_type: str, **fields: Any) -> dict[str, Any]:
        request_id = next(self._ids)
        record = {
            "id": request_id,
            "request_type": request_type,
            **_initial_stages(request_type),
            "user": {"id": 1, "name": "Employee One", "department": "Ops", "job_title": "Clerk"},
            "attachment_path": None,
            "attachments": [],
            **fields,
        }
        self.hr_requests[request_id] = record
        return record

    def add_exit_entry(self, **fields: Any) -> dict[str, Any]:
        request_id = next(self._ids)
        record = {
            "id": request_id,
            "status": "pending",
            "visa_type": "single",
            "validity_from_date": "2026-11-01",
            "validity_to_date": "2026-11-30",
            "period_in_days": 30,
            "reason": "Family visit",
            **fields,
        }
        self.exit_entries[request_id] = record
        return record

    def add_vacation(self, **fields: Any) -> dict[str, Any]:
        request_id = next(self._ids)
        record = {
            "id": request_id,
            "leave_type": "Annual",
            "start_date": "2026-12-01",
            "end_date": "2026-12-05",
            "status": "Pending",
            "hr_status": "Pending",
            "user": {"id": 1, "name": "Employee One"},
            **fields,
        }
        self.vacations[request_id] = record
        return record

    def add_notification(self, **fields: Any) -> dict[str, Any]:
        notification_id = next(self._ids)
        record = {"id": notification_id, "type": "Request", "message": "", "read": False, "created_at": None, **fields}
        self.notifications[str(notification_id)] = record
        return record

    def calls_to(self, method: str, path: str) -> list[str | None]:
        """Authorization headers sent on each call to ``method path``."""
        return [auth for m, p, auth in self.calls if m == method and p == path]

    def _authorize(self, request: Request) -> None:
        header = request.headers.get("authorization", "")
        token = header.removeprefix("Bearer ")
        if self.reject_all or token not in self.access_tokens:
            raise FakeApiError("Unauthenticated.", 401)

    def _check_prefix(self, prefix: str) -> None:
        if prefix not in _ROLE_PREFIXES:
            raise FakeApiError("Not Found", 404)

    async def _form(self, request: Request) -> None:
        form = await request.form()
        self.last_form = {k: v for k, v in form.multi_items() if isinstance(v, str)}
        self.last_files = {k: v.filename for k, v in form.multi_items() if not isinstance(v, str)}

    # -- routes --------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        app = FastAPI()
        backend = self

        @app.exception_handler(FakeApiError)
        async def _fake_error_handler(request: Request, exc: FakeApiError) -> JSONResponse:
            return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

        @app.middleware("http")
        async def _record_calls(request: Request, call_next: Any) -> Any:
            backend.calls.append((request.method, request.url.path, request.headers.get("authorization")))
            return await call_next(request)

        @app.post("/login")
        async def login(request: Request) -> dict[str, Any]:
            body = await request.json()
            user = USERS.get(body.get("employee_code", ""))
            if user is None or body.get("password") != PASSWORD:
                raise FakeApiError("Invalid credentials", 401)
            access, refresh = backend.issue_tokens()
            return {"access_token": access, "refresh_token": refresh, "user": user}

        @app.post("/refresh")
        async def refresh(request: Request) -> dict[str, Any]:
            backend.refresh_calls += 1
            if backend.refresh_delay:
                await asyncio.sleep(backend.refresh_delay)
            body = await request.json()
            if backend.refresh_fails or body.get("refresh_token") not in backend.refresh_tokens:
                raise FakeApiError("Invalid refresh token", 401)
            access = make_token(subject=f"refreshed-{backend.refresh_calls}")
            backend.access_tokens.add(access)
            return {"access_token": access}

        @app.post("/password/forgot")
        @app.post("/password/verify-otp")
        @app.post("/password/reset")
        async def password(request: Request) -> dict[str, str]:
            backend.last_json = await request.json()
            return {"message": "ok"}

        @app.get("/hr-requests")
        async def list_hr_requests(request: Request) -> Any:
            backend._authorize(request)
            if backend.raw_body is not None:
                return PlainTextResponse(backend.raw_body)
            backend.last_query = dict(request.query_params)
            request_type = request.query_params.get("request_type")
            return [r for r in backend.hr_requests.values() if request_type in (None, r["request_type"])]

        @app.get("/hr-requests/assigned-pending-breakdown")
        async def breakdown(request: Request) -> dict[str, int]:
            backend._authorize(request)
            if backend.breakdown_fails:
                raise FakeApiError("Server Error", 500)
            return {"total": 3, "to_leave": 2, "loans": 1}

        @app.get("/hr-requests/{request_id}")
        async def show_hr_request(request_id: int, request: Request) -> dict[str, Any]:
            backend._authorize(request)
            if request_id not in backend.hr_requests:
                raise FakeApiError("Request not found", 404)
            return {"data": backend.hr_requests[request_id]}

        @app.post("/hr-requests", status_code=201)
        async def create_hr_request(request: Request) -> dict[str, Any]:
            backend._authorize(request)
            await backend._form(request)
            if not backend.last_form.get("request_type"):
                raise FakeApiError("The request type field is required.", 422)
            return backend.add_hr_request(backend.last_form["request_type"])

        @app.put("/hr-requests/{request_id}")
        async def update_hr_request(request_id: int, request: Request) -> dict[str, Any]:
            backend._authorize(request)
            await backend._form(request)
            record = backend.hr_requests[request_id]
            record.update(backend.last_form)
            return record

        @app.put("/hr-requests/{request_id}/status")
        async def update_hr_status(request_id: int, request: Request) -> dict[str, str]:
            backend._authorize(request)
            body = await request.json()
            backend.last_json = body
            backend.hr_requests[request_id][body["field"]] = body["status"]
            return {"message": "Status updated"}

        @app.delete("/hr-requests/{request_id}")
        async def delete_hr_request(request_id: int, request: Request) -> dict[str, str]:
            backend._authorize(request)
            backend.hr_requests.pop(request_id, None)
            return {"message": "Deleted"}

        @app.get("/exit-entry-requests")
        async def list_exit_entries(request: Request) -> list[dict[str, Any]]:
            backend._authorize(request)
            return list(backend.exit_entries.values())

        @app.get("/exit-entry-requests/{request_id}")
        async def show_exit_entry(request_id: int, request: Request) -> dict[str, Any]:
            backend._authorize(request)
            if request_id not in backend.exit_entries:
                raise FakeApiError("Request not found", 404)
            return backend.exit_entries[request_id]

        @app.post("/exit-entry-requests", status_code=201)
        async def create_exit_entry(request: Request) -> dict[str, Any]:
            backend._authorize(request)
            await backend._form(request)
            return backend.add_exit_entry(**backend.last_form)

        @app.post("/exit-entry-requests/{request_id}/cancel")
        async def cancel_exit_entry(request_id: int, request: Request) -> dict[str, str]:
            backend._authorize(request)
            backend.exit_entries[request_id]["status"] = "cancelled"
            return {"message": "Cancelled"}

        @app.patch("/exit-entry-requests/{request_id}/status")
        async def update_exit_entry_status(request_id: int, request: Request) -> dict[str, str]:
            backend._authorize(request)
            body = await request.json()
            backend.exit_entries[request_id]["status"] = body["status"]
            return {"message": "Status updated"}

        @app.get("/{prefix}/vacation-requests")
        async def list_vacations(prefix: str, request: Request) -> dict[str, Any]:
            backend._authorize(request)
            backend._check_prefix(prefix)
            backend.last_query = dict(request.query_params)
            backend.last_query_path = request.url.path
            rows = list(backend.vacations.values())
            return {"data": rows, "total": len(rows)}

        @app.get("/{prefix}/vacation-requests2/index")
        async def vacation_index(prefix: str, request: Request) -> list[dict[str, Any]]:
            backend._authorize(request)
            backend._check_prefix(prefix)
            return list(backend.vacations.values())

        @app.get("/{prefix}/vacation-requests/pending-count")
        async def vacation_pending_count(prefix: str, request: Request) -> dict[str, int]:
            backend._authorize(request)
            backend._check_prefix(prefix)
            if backend.breakdown_fails:
                raise FakeApiError("Server Error", 500)
            return {"count": backend.pending_vacations}

        @app.get("/{prefix}/vacation-requests/{request_id}")
        async def show_vacation(prefix: str, request_id: int, request: Request) -> dict[str, Any]:
            backend._authorize(request)
            backend._check_prefix(prefix)
            if request_id not in backend.vacations:
                raise FakeApiError("Vacation request not found", 404)
            return backend.vacations[request_id]

        @app.post("/{prefix}/vacation-requests", status_code=201)
        async def create_vacation(prefix: str, request: Request) -> dict[str, Any]:
            backend._authorize(request)
            backend._check_prefix(prefix)
            await backend._form(request)
            return {"message": "Vacation request created", "data": backend.add_vacation(**backend.last_form)}

        @app.patch("/{prefix}/vacation-requests/{request_id}")
        async def update_vacation(prefix: str, request_id: int, request: Request) -> dict[str, str]:
            backend._authorize(request)
            backend._check_prefix(prefix)
            backend.last_json = await request.json()
            backend.vacations[request_id].update(backend.last_json)
            return {"message": "Vacation request updated"}

        @app.get("/vacation-balances/my")
        async def vacation_balances(request: Request) -> list[dict[str, Any]]:
            backend._authorize(request)
            return backend.vacation_balances

        @app.get("/notifications")
        async def list_notifications(request: Request) -> list[dict[str, Any]]:
            backend._authorize(request)
            return list(backend.notifications.values())

        @app.post("/notifications/{notification_id}/read")
        async def read_notification(notification_id: str, request: Request) -> dict[str, str]:
            backend._authorize(request)
            if notification_id not in backend.notifications:
                raise FakeApiError("Notification not found", 404)
            backend.notifications[notification_id]["read"] = True
            return {"message": "Marked as read"}

        @app.get("/announcements")
        async def list_announcements(request: Request) -> list[dict[str, Any]]:
            backend._authorize(request)
            return backend.announcements

        @app.get("/holidays")
        async def list_holidays(request: Request) -> list[dict[str, Any]]:
            backend._authorize(request)
            return backend.holidays

        @app.get("/attendances")
        async def list_attendances(request: Request) -> dict[str, Any]:
            backend._authorize(request)
            query = dict(request.query_params)
            backend.last_query = query
            rows = [
                row
                for row in backend.attendances
                if row["employee_code"] == query.get("employee_code")
                and query.get("from", "") <= row["log_time"] <= query.get("to", "9999")
            ]
            return {"data": rows}

        @app.post("/attendances", status_code=201)
        async def create_attendance(request: Request) -> dict[str, Any]:
            backend._authorize(request)
            backend.last_json = await request.json()
            if backend.attendance_without_id:
                return {"message": "Queued"}
            record = {"id": next(backend._ids), **backend.last_json}
            backend.attendances.append(record)
            return record

        @app.get("/users/{user_id}")
        async def show_user(user_id: int, request: Request) -> dict[str, Any]:
            backend._authorize(request)
            for code, user in USERS.items():
                if user["id"] == user_id:
                    return {**user, "employee_code": code, "position": "Clerk", "family_members": None}
            raise FakeApiError("User not found", 404)

        @app.get("/assets/employee/{employee_code}")
        async def employee_assets(employee_code: str, request: Request) -> list[dict[str, Any]]:
            backend._authorize(request)
            return backend.assets.get(employee_code, [])

        @app.get("/errors/{code}")
        async def error(code: int, request: Request) -> JSONResponse:
            backend._authorize(request)
            if code == 422:
                return JSONResponse(
                    status_code=422,
                    content={
                        "message": "The given data was invalid.",
                        "errors": {"amount": ["The amount field is required."], "loan_date": ["Invalid date."]},
                    },
                )
            raise FakeApiError(f"Error {code}", code)

        return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def notified() -> list[AppError]:
    """Errors handed to the UI notifier."""
    return []


@pytest.fixture
async def service(
    backend: FakeBackend,
    store: InMemorySessionStore,
    notified: list[AppError],
) -> AsyncIterator[HrSelfService]:
    """Client wired to the fake backend through an ASGI transport."""
    settings = Settings(api_base_url="http://test", file_base_url="http://files.test")
    app = create_app(settings, store=store, transport=ASGITransport(app=backend.app), notifier=notified.append)
    async with app.client:
        yield app


async def sign_in(service: HrSelfService, backend: FakeBackend, role: str = "manager") -> Session:
    """Seed a valid session directly, bypassing /login."""
    access, refresh = backend.issue_tokens()
    session = Session(access_token=access, refresh_token=refresh, user=SessionUser(id=2, role=role))
    await service.sessions.set_session(session)
    return session
