"""Authenticated Google Drive backend (Drive API v3).

Stores the document as a file (default ``data.json``) in the user's Drive,
using an OAuth access token obtained elsewhere.  This backend does not use
Drive revisions: writes are plain overwrites and the last write wins.

Routes used
-----------
GET   /drive/v3/about?fields=user                 – availability probe
GET   /drive/v3/files?q=name='data.json' …        – locate the file id
GET   /drive/v3/files/{id}?alt=media              – download
POST  /drive/v3/files                             – create (metadata only)
PATCH /upload/drive/v3/files/{id}?uploadType=media – overwrite content
"""

from __future__ import annotations

import json
import logging

import httpx

from dailyboard.document import Document, empty_document
from dailyboard.errors import InvalidData, NotConfigured, NotFound, SyncError
from dailyboard.sync.http import HttpStore, decode_document, decode_json, raise_for_status

log = logging.getLogger(__name__)

DRIVE_URL = "https://www.googleapis.com"


class GoogleDriveStore(HttpStore):
    """Unversioned sync backend storing the document in the user's Drive."""

    name = "google-drive"

    def __init__(
        self,
        token: str = "",
        *,
        file_name: str = "data.json",
        file_id: str = "",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url=DRIVE_URL,
            headers={"Authorization": f"Bearer {token}"} if token else {},
            timeout=timeout,
            transport=transport,
        )
        self._token = token
        self.file_name = file_name
        self.file_id = file_id or None

    @property
    def configured(self) -> bool:
        return bool(self._token)

    def _require_token(self) -> None:
        if not self._token:
            raise NotConfigured("Google Drive token not configured", source=self.name)

    async def check_availability(self) -> bool:
        if not self.configured:
            return False
        try:
            r = await self._request("GET", "/drive/v3/about", params={"fields": "user"})
        except SyncError as exc:
            log.debug("Google Drive probe failed: %s", exc)
            return False
        return r.is_success

    async def fetch_data(self) -> Document:
        self._require_token()
        file_id = await self._locate()
        if file_id is None:
            return empty_document()
        r = await self._request("GET", f"/drive/v3/files/{file_id}", params={"alt": "media"})
        try:
            raise_for_status(r, self.name)
        except NotFound:
            # Deleted behind our back; look it up again next time
            self.file_id = None
            return empty_document()
        return decode_document(r.text, self.name)

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        self._require_token()
        file_id = await self._locate() or await self._create()
        r = await self._request(
            "PATCH",
            f"/upload/drive/v3/files/{file_id}",
            params={"uploadType": "media"},
            headers={"Content-Type": "application/json"},
            content=json.dumps(doc, indent=2).encode("utf-8"),
        )
        raise_for_status(r, self.name)
        log.debug("Google Drive write %r to %s", label, file_id)
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _locate(self) -> str | None:
        if self.file_id:
            return self.file_id
        safe = self.file_name.replace("\\", "\\\\").replace("'", "\\'")
        r = await self._request(
            "GET",
            "/drive/v3/files",
            params={
                "q": f"name='{safe}' and trashed=false",
                "fields": "files(id,name)",
                "spaces": "drive",
            },
        )
        raise_for_status(r, self.name)
        files = decode_json(r.text, self.name).get("files") or []
        if files:
            self.file_id = files[0]["id"]
        return self.file_id

    async def _create(self) -> str:
        r = await self._request(
            "POST",
            "/drive/v3/files",
            json={"name": self.file_name, "mimeType": "application/json"},
        )
        raise_for_status(r, self.name)
        created = decode_json(r.text, self.name)
        if not created.get("id"):
            raise InvalidData("Google Drive did not return an id for the new file", source=self.name)
        self.file_id = created["id"]
        log.info("Created %s in Google Drive (%s)", self.file_name, self.file_id)
        return self.file_id
