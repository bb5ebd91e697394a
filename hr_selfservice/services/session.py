from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from hr_selfservice.schemas.auth import Session, SessionUser

logger = logging.getLogger(__name__)

# Keys persisted by FileSessionStore; every value is stored as a string.
_KEY_ACCESS_TOKEN = "access_token"
_KEY_REFRESH_TOKEN = "refresh_token"
_KEY_TOKEN_EXPIRY = "token_expiry"
_KEY_ROLE = "role"
_KEY_USER = "user"


def decode_token_expiry(access_token: str) -> int | None:
    """Return the JWT ``exp`` claim in epoch milliseconds, or None.

    The signature is not verified; the backend owns token validity.
    """
    try:
        claims = jwt.get_unverified_claims(access_token)
    except JWTError:
        logger.warning("Failed to decode access token expiry")
        return None
    exp = claims.get("exp")
    if not isinstance(exp, int | float):
        return None
    return int(exp * 1000)


@runtime_checkable
class SessionStore(Protocol):
    """Interface for on-device session persistence."""

    async def load(self) -> Session | None:
        """Return the persisted session, or None if there is none."""
        ...

    async def save(self, session: Session) -> None:
        """Persist the session, replacing any previous one."""
        ...

    async def clear(self) -> None:
        """Remove every persisted credential."""
        ...


class InMemorySessionStore:
    """In-memory store for tests and short-lived processes."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    def seed(self, session: Session) -> None:
        """Seed a session for testing."""
        self._session = session

    async def load(self) -> Session | None:
        return self._session

    async def save(self, session: Session) -> None:
        self._session = session

    async def clear(self) -> None:
        self._session = None


class FileSessionStore:
    """JSON file of string key/value pairs, cleared wholesale on logout."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def load(self) -> Session | None:
        return await asyncio.to_thread(self._read)

    async def save(self, session: Session) -> None:
        await asyncio.to_thread(self._write, session)

    async def clear(self) -> None:
        await asyncio.to_thread(self.path.unlink, missing_ok=True)

    def _read(self) -> Session | None:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Session file %s is unreadable; ignoring it", self.path)
            return None
        if not isinstance(data, dict) or not data.get(_KEY_ACCESS_TOKEN):
            return None

        expiry_raw = data.get(_KEY_TOKEN_EXPIRY)
        user_raw = data.get(_KEY_USER)
        try:
            user = SessionUser.model_validate_json(user_raw) if user_raw else None
            if user is None and data.get(_KEY_ROLE):
                user = SessionUser(role=data[_KEY_ROLE])
            return Session(
                access_token=data[_KEY_ACCESS_TOKEN],
                refresh_token=data.get(_KEY_REFRESH_TOKEN) or None,
                token_expiry=int(expiry_raw) if expiry_raw else None,
                user=user,
            )
        except (PydanticValidationError, TypeError, ValueError):
            logger.warning("Session file %s holds malformed values; ignoring it", self.path)
            return None

    def _write(self, session: Session) -> None:
        data = {
            _KEY_ACCESS_TOKEN: session.access_token,
            _KEY_REFRESH_TOKEN: session.refresh_token or "",
            _KEY_TOKEN_EXPIRY: str(session.token_expiry) if session.token_expiry is not None else "",
            _KEY_ROLE: session.user.role if session.user else "",
            _KEY_USER: session.user.model_dump_json() if session.user else "",
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")


class SessionManager:
    """Sole owner of the device session. All mutation goes through here."""

    def __init__(self, store: SessionStore | None = None) -> None:
        self._store: SessionStore = store or InMemorySessionStore()
        self._session: Session | None = None

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def access_token(self) -> str | None:
        return self._session.access_token if self._session else None

    @property
    def refresh_token(self) -> str | None:
        return self._session.refresh_token if self._session else None

    @property
    def token_expiry(self) -> int | None:
        return self._session.token_expiry if self._session else None

    @property
    def user(self) -> SessionUser | None:
        return self._session.user if self._session else None

    async def load(self) -> Session | None:
        """Load the persisted session into memory."""
        self._session = await self._store.load()
        return self._session

    async def set_session(self, session: Session) -> None:
        """Replace the session and persist it."""
        self._session = session
        await self._store.save(session)

    async def update_access_token(self, access_token: str) -> Session:
        """Store a refreshed access token and its decoded expiry."""
        current = self._session
        session = Session(
            access_token=access_token,
            refresh_token=current.refresh_token if current else None,
            token_expiry=decode_token_expiry(access_token),
            user=current.user if current else None,
        )
        await self.set_session(session)
        return session

    async def clear_session(self) -> None:
        """Forget every credential, in memory and on disk."""
        self._session = None
        await self._store.clear()
