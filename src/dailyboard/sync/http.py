"""Shared httpx plumbing for the HTTP-based backends."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import httpx

from dailyboard.document import Document, normalize_document
from dailyboard.errors import InvalidData, RemoteUnavailable, error_for_status

log = logging.getLogger(__name__)


def looks_like_html(text: str) -> bool:
    """Detect HTML error/consent pages served where JSON was expected."""
    head = text.lstrip()[:64].lower()
    return head.startswith("<!doctype html") or head.startswith("<html")


def decode_json(text: str, source: str) -> dict[str, Any]:
    """Parse *text* as a JSON object, raising :class:`InvalidData` for anything else."""
    if looks_like_html(text):
        raise InvalidData(f"{source} returned an HTML page instead of JSON data", source=source)
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise InvalidData(f"{source} returned malformed JSON: {exc}", source=source) from exc
    if not isinstance(data, dict):
        raise InvalidData(f"{source} returned JSON {type(data).__name__}, expected an object",
                          source=source)
    return data


def decode_document(text: str, source: str) -> Document:
    """Parse *text* as a board document, rejecting HTML and malformed JSON."""
    return normalize_document(decode_json(text, source))


def raise_for_status(response: httpx.Response, source: str) -> None:
    if response.is_success:
        return
    raise error_for_status(response.status_code, source, _error_detail(response))


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200].strip()
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error_summary") or body.get("error") or "")
    return ""


def backup_name(prefix: str = "data") -> str:
    """Timestamped file name for backup copies, e.g. ``data-20261019T081500Z.json``."""
    return f"{prefix}-{datetime.now(timezone.utc):%Y%m%dT%H%M%S%fZ}.json"


@contextmanager
def translate_transport_errors(source: str) -> Iterator[None]:
    """Turn httpx network/timeout errors into :class:`RemoteUnavailable`."""
    try:
        yield
    except httpx.TimeoutException as exc:
        raise RemoteUnavailable(f"{source} timed out", source=source) from exc
    except httpx.TransportError as exc:
        raise RemoteUnavailable(f"Network error: unable to reach {source}", source=source) from exc


class HttpStore:
    """Base class owning one ``httpx.AsyncClient`` per backend."""

    name = "http"
    versioned = False
    read_only = False

    def __init__(
        self,
        *,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        kwargs: dict[str, Any] = {"headers": headers or {}, "timeout": timeout}
        if base_url:
            kwargs["base_url"] = base_url.rstrip("/")
        if transport is not None:
            kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**kwargs)

    @property
    def configured(self) -> bool:
        return True

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        with translate_transport_errors(self.name):
            response = await self._client.request(method, url, **kwargs)
        log.debug("%s %s %s -> %s", self.name, method, url, response.status_code)
        return response

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
