"""GitHub repository backend (REST contents API).

The document is a file (default ``data.json``) on one branch of a
repository.  The file's blob SHA is the version token: every PUT must carry
the SHA it replaces, and GitHub rejects stale SHAs with 409 (or 422 when a
SHA is missing for an existing file).

Before each versioned write the orchestrator may ask for a timestamped
backup copy, written as a separate commit under ``backups/``.

Environment variables (all optional; direct kwargs take precedence):
    DAILYBOARD_GITHUB_TOKEN  – personal access token with ``contents:write``
    DAILYBOARD_GITHUB_OWNER  – repository owner
    DAILYBOARD_GITHUB_REPO   – repository name
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from typing import Any

import httpx

from dailyboard.document import Document, empty_document
from dailyboard.errors import InvalidData, NotConfigured, NotFound, SyncError, VersionConflict
from dailyboard.sync.http import (
    HttpStore,
    backup_name,
    decode_document,
    decode_json,
    raise_for_status,
)

log = logging.getLogger(__name__)

API_URL = "https://api.github.com"


class GitHubStore(HttpStore):
    """Versioned sync backend storing the document in a GitHub repository."""

    name = "github"
    versioned = True

    def __init__(
        self,
        token: str | None = None,
        *,
        owner: str | None = None,
        repo: str | None = None,
        branch: str = "main",
        path: str = "data.json",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token if token is not None else os.getenv("DAILYBOARD_GITHUB_TOKEN", "")
        headers = {"Accept": "application/vnd.github+json", "X-GitHub-Api-Version": "2022-11-28"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        super().__init__(base_url=API_URL, headers=headers, timeout=timeout, transport=transport)
        self.owner = owner if owner is not None else os.getenv("DAILYBOARD_GITHUB_OWNER", "")
        self.repo = repo if repo is not None else os.getenv("DAILYBOARD_GITHUB_REPO", "")
        self.branch = branch
        self.path = path.lstrip("/")
        self.version: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self._token and self.owner and self.repo)

    def _contents_url(self, path: str) -> str:
        return f"/repos/{self.owner}/{self.repo}/contents/{path}"

    def _require_repo(self) -> None:
        if not (self.owner and self.repo):
            raise NotConfigured("GitHub repository not configured", source=self.name)

    def _require_token(self) -> None:
        self._require_repo()
        if not self._token:
            raise NotConfigured("GitHub token not configured", source=self.name)

    # ------------------------------------------------------------------
    # RemoteStore
    # ------------------------------------------------------------------

    async def check_availability(self) -> bool:
        if not self.configured:
            return False
        try:
            r = await self._request("GET", f"/repos/{self.owner}/{self.repo}")
        except SyncError as exc:
            log.debug("GitHub probe failed: %s", exc)
            return False
        return r.is_success

    async def fetch_data(self) -> Document:
        doc, sha = await self.fetch_snapshot()
        self.version = sha
        return doc

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        self._require_token()
        result = await self._put(self.path, doc, message=label, sha=self.version)
        self.version = (result.get("content") or {}).get("sha")
        log.debug("GitHub write %r committed blob %s", label, self.version)
        return True

    # ------------------------------------------------------------------
    # VersionedStore
    # ------------------------------------------------------------------

    async def fetch_version(self) -> str | None:
        meta = await self._metadata()
        return meta.get("sha") if meta else None

    async def fetch_snapshot(self) -> tuple[Document, str | None]:
        meta = await self._metadata()
        if meta is None:
            return empty_document(), None
        if meta.get("encoding") == "base64" and meta.get("content"):
            try:
                text = base64.b64decode(meta["content"]).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as exc:
                raise InvalidData(f"GitHub returned undecodable file content: {exc}",
                                  source=self.name) from exc
        else:
            # Files over 1 MB come back without inline content
            if not meta.get("download_url"):
                raise InvalidData("GitHub returned file metadata without content", source=self.name)
            r = await self._request("GET", meta["download_url"])
            raise_for_status(r, self.name)
            text = r.text
        return decode_document(text, self.name), meta.get("sha")

    def adopt_version(self, token: str | None) -> None:
        self.version = token

    async def write_backup(self, doc: Document, label: str) -> None:
        self._require_token()
        folder = self.path.rsplit("/", 1)[0] + "/" if "/" in self.path else ""
        await self._put(f"{folder}backups/{backup_name()}", doc, message=f"Backup before: {label}")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _metadata(self) -> dict[str, Any] | None:
        self._require_repo()
        r = await self._request("GET", self._contents_url(self.path), params={"ref": self.branch})
        try:
            raise_for_status(r, self.name)
        except NotFound:
            return None
        return decode_json(r.text, self.name)

    async def _put(self, path: str, doc: Document, *, message: str,
                   sha: str | None = None) -> dict[str, Any]:
        content = base64.b64encode(json.dumps(doc, indent=2).encode("utf-8")).decode("ascii")
        body: dict[str, Any] = {"message": message, "content": content, "branch": self.branch}
        if sha:
            body["sha"] = sha
        r = await self._request("PUT", self._contents_url(path), json=body)
        if r.status_code == 409 or (r.status_code == 422 and "sha" in r.text):
            raise VersionConflict(
                f"GitHub file was modified elsewhere ({r.status_code})",
                source=self.name, status_code=r.status_code, local_version=sha,
            )
        raise_for_status(r, self.name)
        return decode_json(r.text, self.name)
