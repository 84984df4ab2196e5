from __future__ import annotations

import asyncio
import http.client
import json
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

_USER_AGENT = "Mozilla/5.0 (compatible; liquiditydesk/0.1)"


class FetchError(Exception):
    def __init__(self, url: str, reason: str, status: int | None = None) -> None:
        super().__init__(f"{reason} ({_redact(url)})")
        self.url = url
        self.reason = reason
        self.status = status


def _redact(url: str) -> str:
    # Never log credentials that travel in the query string.
    base, _, _ = url.partition("?")
    return base


def build_url(base_url: str, path: str, params: dict[str, str] | None = None) -> str:
    url = f"{base_url.rstrip('/')}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


def _fetch_json_sync(url: str, timeout: float) -> Any:
    request = Request(url, headers={"User-Agent": _USER_AGENT, "Accept": "application/json"})
    try:
        with urlopen(request, timeout=timeout) as response:
            body = response.read()
    except HTTPError as exc:
        reason = "rate_limited" if exc.code == 429 else f"http {exc.code}"
        raise FetchError(url, reason, status=exc.code) from exc
    except (OSError, http.client.HTTPException) as exc:
        # URLError, timeouts and resets while reading the body all land here.
        raise FetchError(url, f"network error: {exc}") from exc

    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise FetchError(url, "invalid json") from exc


async def fetch_json(url: str, timeout: float = 10.0) -> Any:
    """GET ``url`` and decode the JSON body without blocking the event loop."""
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(_fetch_json_sync, url, timeout),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise FetchError(url, "timed out") from exc
