"""Local network server backend.

A thin HTTP client for the optional Daily Board server running on the same
machine or LAN.  It has no native versioning: the last write wins.

Expected server routes
----------------------
GET  /api/health   – availability probe (any 2xx)
GET  /api/data     – the full board document (404 when nothing saved yet)
PUT  /api/data     – replace the full board document

All endpoints accept/return JSON.
"""

from __future__ import annotations

import logging

import httpx

from dailyboard.document import Document, empty_document
from dailyboard.errors import NotFound, SyncError
from dailyboard.sync.http import HttpStore, decode_document, raise_for_status

log = logging.getLogger(__name__)


class LocalServerStore(HttpStore):
    """HTTP sync backend backed by the local Daily Board server."""

    name = "local-server"

    def __init__(
        self,
        server_url: str = "http://localhost:3000",
        *,
        timeout: float = 5.0,
        probe_timeout: float = 2.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=server_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )
        self.server_url = server_url
        self._probe_timeout = probe_timeout

    @property
    def configured(self) -> bool:
        return bool(self.server_url)

    async def check_availability(self) -> bool:
        if not self.configured:
            return False
        try:
            r = await self._request("GET", "/api/health", timeout=self._probe_timeout)
        except SyncError as exc:
            log.debug("Local server probe failed: %s", exc)
            return False
        return r.is_success

    async def fetch_data(self) -> Document:
        r = await self._request("GET", "/api/data")
        try:
            raise_for_status(r, self.name)
        except NotFound:
            return empty_document()
        return decode_document(r.text, self.name)

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        r = await self._request("PUT", "/api/data", json=doc)
        raise_for_status(r, self.name)
        log.debug("Saved to local server: %s", label)
        return True
