"""Read-only backend for a publicly shared Google Drive file.

Anyone with the share link can download the document, so no token is
needed, but nothing can be written back: :meth:`update_data` accepts the
document locally and returns ``False``.

Because this backend is typically polled every few seconds, fetched
documents are cached client-side for a short window (5 s by default).
Google serves an HTML page (virus-scan interstitial, sign-in wall, quota
notice) when the file is not actually public; that page is detected and
rejected as :class:`InvalidData` rather than parsed as data.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable

import httpx

from dailyboard.document import Document, clone_document, empty_document
from dailyboard.errors import NotConfigured, NotFound, SyncError
from dailyboard.sync.http import HttpStore, decode_document, raise_for_status

log = logging.getLogger(__name__)

DOWNLOAD_URL = "https://drive.google.com/uc"

_FILE_ID_PATTERNS = [
    re.compile(r"/file/d/([A-Za-z0-9_-]+)"),
    re.compile(r"[?&]id=([A-Za-z0-9_-]+)"),
    re.compile(r"/d/([A-Za-z0-9_-]+)"),
]


class GoogleDrivePublicStore(HttpStore):
    """Read-only, unversioned backend over a publicly shared Drive file."""

    name = "google-drive-public"
    read_only = True

    def __init__(
        self,
        file_id: str = "",
        *,
        cache_seconds: float = 5.0,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self.file_id = file_id
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._cache: Document | None = None
        self._fetched_at: float | None = None

    @staticmethod
    def extract_file_id_from_url(url: str) -> str | None:
        """Pull the file id out of a Drive share link, or ``None``."""
        if "drive.google.com" not in url and "docs.google.com" not in url:
            return None
        for pattern in _FILE_ID_PATTERNS:
            m = pattern.search(url)
            if m:
                return m.group(1)
        return None

    def set_file_id(self, file_id: str) -> None:
        self.file_id = file_id
        self.clear_cache()

    def clear_cache(self) -> None:
        self._cache = None
        self._fetched_at = None

    @property
    def configured(self) -> bool:
        return bool(self.file_id)

    async def check_availability(self) -> bool:
        if not self.configured:
            return False
        try:
            await self.fetch_data()
        except SyncError as exc:
            log.debug("Public Drive probe failed: %s", exc)
            return False
        return True

    async def fetch_data(self) -> Document:
        if not self.file_id:
            raise NotConfigured("No public Google Drive file id configured", source=self.name)
        now = self._clock()
        if self._cache is not None and self._fetched_at is not None \
                and now - self._fetched_at < self.cache_seconds:
            return clone_document(self._cache)

        r = await self._request(
            "GET",
            DOWNLOAD_URL,
            params={"export": "download", "id": self.file_id},
            follow_redirects=True,
        )
        try:
            raise_for_status(r, self.name)
        except NotFound:
            doc = empty_document()
        else:
            doc = decode_document(r.text, self.name)

        self._cache = doc
        self._fetched_at = now
        return clone_document(doc)

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        log.debug("Public Drive file is read-only; %r kept locally only", label)
        return False
