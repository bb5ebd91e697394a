from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import quote

from hr_selfservice.config import get_settings

if TYPE_CHECKING:
    from hr_selfservice.schemas.request import HrRequest

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)


def to_absolute_url(path_or_url: str | None, base_url: str | None = None) -> str | None:
    """Turn a server-relative path like ``public/attachments/a.pdf`` into an openable URL.

    Absolute URLs pass through unchanged; empty input yields None.
    """
    if not path_or_url:
        return None
    if _ABSOLUTE_URL.match(path_or_url):
        return path_or_url
    base = (base_url or get_settings().file_base_url).rstrip("/")
    clean = path_or_url.lstrip("/").removeprefix("public/")
    return f"{base}/storage/{quote(clean)}"


def request_attachment_urls(request: HrRequest, base_url: str | None = None) -> list[str]:
    """Absolute URLs of every file attached to ``request``."""
    paths = [request.attachment_path, *request.attachments]
    return [url for path in paths if (url := to_absolute_url(path, base_url)) is not None]
