"""Dropbox backend (HTTP API v2).

The document lives at a single path (default ``/data.json``) in the app
folder.  Dropbox's file ``rev`` is the version token: uploads use
``mode=update`` with the last-known rev, so a stale rev is rejected with a
``path/conflict`` error instead of silently overwriting.

Dropbox reports path errors as HTTP 409 with an ``error_summary`` such as
``path/not_found/..`` or ``path/conflict/file/..``; those are mapped onto
:class:`NotFound` and :class:`VersionConflict` respectively.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from dailyboard.document import Document, empty_document
from dailyboard.errors import (
    NotConfigured,
    NotFound,
    SyncError,
    VersionConflict,
)
from dailyboard.sync.http import (
    HttpStore,
    backup_name,
    decode_document,
    decode_json,
    raise_for_status,
)

log = logging.getLogger(__name__)

API_URL = "https://api.dropboxapi.com/2"
CONTENT_URL = "https://content.dropboxapi.com/2"


class DropboxStore(HttpStore):
    """Versioned sync backend storing the document as a Dropbox file."""

    name = "dropbox"
    versioned = True

    def __init__(
        self,
        token: str = "",
        path: str = "/data.json",
        *,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            headers={"Authorization": f"Bearer {token}"} if token else {},
            timeout=timeout,
            transport=transport,
        )
        self._token = token
        self.path = path if path.startswith("/") else f"/{path}"
        self.version: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self._token)

    def _require_token(self) -> None:
        if not self._token:
            raise NotConfigured("Dropbox token not configured", source=self.name)

    def _raise_for_status(self, r: httpx.Response) -> None:
        if r.status_code == 409:
            summary = _error_summary(r)
            if "not_found" in summary:
                raise NotFound(f"{self.path} does not exist in Dropbox", source=self.name,
                               status_code=409)
            if "conflict" in summary:
                raise VersionConflict(
                    f"Dropbox file was modified elsewhere ({summary})",
                    source=self.name, status_code=409, local_version=self.version,
                )
            raise SyncError(f"Dropbox rejected the request: {summary}", source=self.name,
                            status_code=409)
        raise_for_status(r, self.name)

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def check_availability(self) -> bool:
        if not self.configured:
            return False
        try:
            r = await self._request("POST", f"{API_URL}/users/get_current_account")
        except SyncError as exc:
            log.debug("Dropbox probe failed: %s", exc)
            return False
        return r.is_success

    async def fetch_data(self) -> Document:
        doc, rev = await self.fetch_snapshot()
        self.version = rev
        return doc

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        self._require_token()
        mode: Any = {".tag": "update", "update": self.version} if self.version else "add"
        result = await self._upload(self.path, doc, mode=mode, autorename=False)
        self.version = result.get("rev")
        log.debug("Dropbox write %r stored rev %s", label, self.version)
        return True

    # ------------------------------------------------------------------
    # VersionedStore
    # ------------------------------------------------------------------

    async def fetch_version(self) -> str | None:
        self._require_token()
        r = await self._request("POST", f"{API_URL}/files/get_metadata", json={"path": self.path})
        try:
            self._raise_for_status(r)
        except NotFound:
            return None
        return decode_json(r.text, self.name).get("rev")

    async def fetch_snapshot(self) -> tuple[Document, str | None]:
        self._require_token()
        r = await self._request(
            "POST",
            f"{CONTENT_URL}/files/download",
            headers={"Dropbox-API-Arg": json.dumps({"path": self.path})},
        )
        try:
            self._raise_for_status(r)
        except NotFound:
            return empty_document(), None
        meta = decode_json(r.headers.get("Dropbox-API-Result", "{}"), self.name)
        return decode_document(r.text, self.name), meta.get("rev")

    def adopt_version(self, token: str | None) -> None:
        self.version = token

    async def write_backup(self, doc: Document, label: str) -> None:
        folder = self.path.rsplit("/", 1)[0]
        await self._upload(f"{folder}/backups/{backup_name()}", doc, mode="add", autorename=True)
        log.debug("Dropbox backup written before %r", label)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _upload(self, path: str, doc: Document, *, mode: Any, autorename: bool) -> dict[str, Any]:
        arg = {"path": path, "mode": mode, "autorename": autorename, "mute": True}
        r = await self._request(
            "POST",
            f"{CONTENT_URL}/files/upload",
            headers={
                "Dropbox-API-Arg": json.dumps(arg),
                "Content-Type": "application/octet-stream",
            },
            content=json.dumps(doc, indent=2).encode("utf-8"),
        )
        self._raise_for_status(r)
        return decode_json(r.text, self.name)


def _error_summary(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text[:200]
    return str(body.get("error_summary", "")) if isinstance(body, dict) else ""
