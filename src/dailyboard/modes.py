"""Sync mode selection.

Backends are probed in a fixed priority order and the first one whose
``check_availability()`` succeeds becomes the active mode for the session:

1. ``local-server``         – zero configuration, lowest latency
2. ``dropbox``
3. ``google-drive-public``
4. ``google-drive``
5. ``github``               – strict rate limits, heaviest write protocol

When every probe fails the board runs ``local-only`` against the local
backup.  The result is cached until :meth:`ModeSelector.invalidate` is called
(credentials saved or cleared).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from enum import Enum

import httpx

from dailyboard.config import Settings
from dailyboard.sync.base import RemoteStore
from dailyboard.sync.dropbox import DropboxStore
from dailyboard.sync.gdrive import GoogleDriveStore
from dailyboard.sync.gdrive_public import GoogleDrivePublicStore
from dailyboard.sync.github import GitHubStore
from dailyboard.sync.local_server import LocalServerStore

log = logging.getLogger(__name__)


class SyncMode(str, Enum):
    LOCAL_SERVER = "local-server"
    DROPBOX = "dropbox"
    GOOGLE_DRIVE = "google-drive"
    GOOGLE_DRIVE_PUBLIC = "google-drive-public"
    GITHUB = "github"
    LOCAL_ONLY = "local-only"


PROBE_ORDER: tuple[SyncMode, ...] = (
    SyncMode.LOCAL_SERVER,
    SyncMode.DROPBOX,
    SyncMode.GOOGLE_DRIVE_PUBLIC,
    SyncMode.GOOGLE_DRIVE,
    SyncMode.GITHUB,
)

#: Status badge shown next to the board: mode → (label, colour).
MODE_DISPLAY: dict[SyncMode, tuple[str, str]] = {
    SyncMode.LOCAL_SERVER: ("🖥️ Local Server", "#51cf66"),
    SyncMode.DROPBOX: ("☁️ Dropbox", "#339af0"),
    SyncMode.GOOGLE_DRIVE: ("☁️ Google Drive", "#fab005"),
    SyncMode.GOOGLE_DRIVE_PUBLIC: ("👁️ Google Drive (Public, read-only)", "#868e96"),
    SyncMode.GITHUB: ("🐙 GitHub", "#845ef7"),
    SyncMode.LOCAL_ONLY: ("💾 Local Only", "#ff6b6b"),
}


def build_stores(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> dict[SyncMode, RemoteStore]:
    """Construct one adapter per remote sync mode from *settings*."""
    stores: dict[SyncMode, RemoteStore] = {}
    for mode in PROBE_ORDER:
        match mode:
            case SyncMode.LOCAL_SERVER:
                stores[mode] = LocalServerStore(
                    settings.local_server_url,
                    timeout=settings.request_timeout,
                    probe_timeout=settings.probe_timeout,
                    transport=transport,
                )
            case SyncMode.DROPBOX:
                stores[mode] = DropboxStore(
                    settings.dropbox_token,
                    settings.dropbox_path,
                    timeout=settings.request_timeout,
                    transport=transport,
                )
            case SyncMode.GOOGLE_DRIVE_PUBLIC:
                stores[mode] = GoogleDrivePublicStore(
                    settings.gdrive_public_file_id,
                    cache_seconds=settings.public_cache_seconds,
                    timeout=settings.public_timeout,
                    clock=clock,
                    transport=transport,
                )
            case SyncMode.GOOGLE_DRIVE:
                stores[mode] = GoogleDriveStore(
                    settings.gdrive_token,
                    file_name=settings.gdrive_file_name,
                    file_id=settings.gdrive_file_id,
                    timeout=settings.request_timeout,
                    transport=transport,
                )
            case SyncMode.GITHUB:
                stores[mode] = GitHubStore(
                    settings.github_token,
                    owner=settings.github_owner,
                    repo=settings.github_repo,
                    branch=settings.github_branch,
                    path=settings.github_path,
                    timeout=settings.request_timeout,
                    transport=transport,
                )
    return stores


class ModeSelector:
    """Picks exactly one active backend (or local-only) and caches the choice."""

    def __init__(self, stores: Mapping[SyncMode, RemoteStore]) -> None:
        self.stores: dict[SyncMode, RemoteStore] = dict(stores)
        self.mode: SyncMode | None = None
        self._lock = asyncio.Lock()

    async def determine_sync_mode(self) -> SyncMode:
        """Probe backends in priority order; cached until :meth:`invalidate`."""
        if self.mode is not None:
            return self.mode
        async with self._lock:
            if self.mode is not None:
                return self.mode
            self.mode = await self._probe()
            log.info("Sync mode: %s", self.mode.value)
            return self.mode

    async def _probe(self) -> SyncMode:
        for mode in PROBE_ORDER:
            store = self.stores.get(mode)
            if store is None or not store.configured:
                continue
            if await store.check_availability():
                return mode
            log.debug("Backend %s unavailable", mode.value)
        return SyncMode.LOCAL_ONLY

    async def active_store(self) -> RemoteStore | None:
        """The adapter for the active mode, ``None`` when local-only."""
        mode = await self.determine_sync_mode()
        return self.stores.get(mode)

    def invalidate(self) -> None:
        self.mode = None

    def replace_stores(self, stores: Mapping[SyncMode, RemoteStore]) -> dict[SyncMode, RemoteStore]:
        """Swap in new adapters, forget the cached mode and return the old ones."""
        old, self.stores = self.stores, dict(stores)
        self.invalidate()
        return old
