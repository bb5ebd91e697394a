"""Bearer-token HTTP client with a single-flight refresh-and-retry on 401."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Self, TypeVar

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from hr_selfservice.exceptions import (
    ApiError,
    AppError,
    NetworkError,
    SessionExpiredError,
    UnauthorizedError,
    error_from_response,
)
from hr_selfservice.schemas.auth import RefreshPayload, RefreshResponse

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from hr_selfservice.services.session import SessionManager

logger = logging.getLogger(__name__)

REFRESH_PATH = "/refresh"
INVALID_RESPONSE = "Invalid response from server"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _now_ms() -> int:
    return int(datetime.now(UTC).timestamp() * 1000)


def unwrap(data: Any) -> Any:
    """Accept both bare payloads and Laravel's ``{"data": ...}`` envelope."""
    if isinstance(data, dict) and "data" in data and "id" not in data:
        return data["data"]
    return data


class AuthenticatedClient:
    """Async API client that owns token attachment and refresh.

    Every call carries ``Authorization: Bearer <access_token>`` when a session
    exists. A 401 triggers at most one refresh per call followed by exactly one
    retry. Concurrent 401s share the in-flight refresh task.
    """

    def __init__(
        self,
        sessions: SessionManager,
        base_url: str,
        *,
        timeout: float = 15.0,
        upload_timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
        notifier: Callable[[AppError], None] | None = None,
    ) -> None:
        self.sessions = sessions
        self.upload_timeout = upload_timeout
        self._notifier = notifier
        self._refresh_task: asyncio.Task[str] | None = None
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    # -----------------------------------------------------------------------
    # Sending
    # -----------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        *,
        token: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if kwargs.get("files") and "timeout" not in kwargs:
            kwargs["timeout"] = self.upload_timeout
        try:
            return await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc

    def _surface(self, error: AppError, notify: bool = True) -> AppError:
        """Hand the error to the UI notifier (once per error) and return it for raising."""
        if notify and not error.notified:
            error.notified = True
            if self._notifier is not None:
                self._notifier(error)
        return error

    async def request(
        self,
        method: str,
        url: str,
        *,
        authenticate: bool = True,
        notify: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a call, refreshing the access token once on 401.

        ``authenticate=False`` sends without a bearer token and without refresh
        handling (login and password-reset endpoints). ``notify=False`` keeps
        failures away from the UI notifier for non-critical calls.
        """
        token = self.sessions.access_token if authenticate else None
        try:
            response = await self._send(method, url, token=token, **kwargs)
        except NetworkError as exc:
            self._surface(exc, notify)
            raise

        if response.is_success:
            return response
        if response.status_code != httpx.codes.UNAUTHORIZED or not authenticate:
            raise self._surface(error_from_response(response), notify)

        # Another call may already have refreshed while this one was in flight.
        current = self.sessions.access_token
        if current and current != token:
            new_token = current
        else:
            try:
                new_token = await self._refresh_access_token()
            except SessionExpiredError as exc:
                # The failed refresh may belong to a silent startup check.
                self._surface(exc, notify)
                raise SessionExpiredError(exc.message, status_code=response.status_code, response=response) from exc

        logger.debug("Retrying %s %s with refreshed token", method, url)
        try:
            retried = await self._send(method, url, token=new_token, **kwargs)
        except NetworkError as exc:
            self._surface(exc, notify)
            raise

        if retried.is_success:
            return retried
        if retried.status_code == httpx.codes.UNAUTHORIZED:
            error = error_from_response(retried)
            raise self._surface(
                UnauthorizedError(error.message, status_code=retried.status_code, response=retried),
                notify,
            )
        raise self._surface(error_from_response(retried), notify)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    # -----------------------------------------------------------------------
    # Decoding
    # -----------------------------------------------------------------------

    def _invalid_response(self, response: httpx.Response, notify: bool = True) -> ApiError:
        return self._surface(ApiError(INVALID_RESPONSE, status_code=response.status_code, response=response), notify)

    def _json(self, response: httpx.Response, notify: bool = True) -> Any:
        try:
            return unwrap(response.json())
        except ValueError as exc:
            logger.warning("Non-JSON body from %s: %s", response.url.path, exc)
            raise self._invalid_response(response, notify) from exc

    def decode(self, response: httpx.Response, model: type[ModelT], *, notify: bool = True) -> ModelT:
        """Validate a successful response body as ``model``.

        Unparseable or malformed bodies raise ``ApiError`` like any other failure.
        """
        data = self._json(response, notify)
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            logger.warning("Malformed %s from %s: %s", model.__name__, response.url.path, exc)
            raise self._invalid_response(response, notify) from exc

    def decode_list(self, response: httpx.Response, model: type[ModelT], *, notify: bool = True) -> list[ModelT]:
        """Validate a list body row by row, skipping rows that do not fit ``model``."""
        data = self._json(response, notify)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Expected a list from %s, got %s", response.url.path, type(data).__name__)
            raise self._invalid_response(response, notify)
        rows: list[ModelT] = []
        for row in data:
            try:
                rows.append(model.model_validate(row))
            except PydanticValidationError as exc:
                logger.warning("Skipping malformed %s from %s: %s", model.__name__, response.url.path, exc)
        return rows

    # -----------------------------------------------------------------------
    # Refresh
    # -----------------------------------------------------------------------

    async def _refresh_access_token(self) -> str:
        """Join the in-flight refresh or start one. Returns the new access token.

        The refresh itself never notifies. Callers surface its failure.
        """
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._do_refresh())
            self._refresh_task.add_done_callback(self._forget_refresh_task)
        return await asyncio.shield(self._refresh_task)

    def _forget_refresh_task(self, task: asyncio.Task[str]) -> None:
        if self._refresh_task is task:
            self._refresh_task = None
        # Every waiter may have been cancelled; mark the failure as retrieved.
        if not task.cancelled():
            task.exception()

    async def _do_refresh(self) -> str:
        refresh_token = self.sessions.refresh_token
        if not refresh_token:
            logger.info("No refresh token available; clearing session")
            await self.sessions.clear_session()
            raise SessionExpiredError("Session expired", status_code=httpx.codes.UNAUTHORIZED)

        try:
            response = await self._send(
                "POST",
                REFRESH_PATH,
                json=RefreshPayload(refresh_token=refresh_token).model_dump(),
            )
            if not response.is_success:
                raise error_from_response(response)
            payload = RefreshResponse.model_validate(response.json())
        except (AppError, ValueError) as exc:
            logger.warning("Token refresh failed: %s", exc)
            await self.sessions.clear_session()
            raise SessionExpiredError("Session expired", status_code=httpx.codes.UNAUTHORIZED) from exc

        await self.sessions.update_access_token(payload.access_token)
        logger.info("Access token refreshed")
        return payload.access_token

    async def check_expiry_on_startup(self) -> bool:
        """Refresh a persisted, already-expired token before any user call.

        Returns True when a usable session remains. Failures clear the session
        without notifying; the next protected action routes to login.
        """
        expiry = self.sessions.token_expiry
        if self.sessions.session is None:
            return False
        if expiry is None or _now_ms() < expiry:
            return True

        logger.info("Persisted access token has expired; refreshing")
        try:
            await self._refresh_access_token()
        except SessionExpiredError:
            logger.info("Startup refresh failed; session cleared")
            return False
        return True
