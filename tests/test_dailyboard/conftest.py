"""Shared fixtures: an in-memory backend and a request-recording mock transport."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from dailyboard.config import Settings
from dailyboard.document import Document, empty_document
from dailyboard.errors import SyncError, VersionConflict
from dailyboard.modes import SyncMode
from dailyboard.orchestrator import SyncOrchestrator
from dailyboard.storage import LocalStore


class FakeStore:
    """RemoteStore double holding the "remote" document in memory.

    ``versioned=True`` makes it behave like GitHub/Dropbox: every write bumps
    the remote token and writes presenting a stale token are rejected.
    """

    def __init__(
        self,
        name: str = "fake",
        *,
        versioned: bool = False,
        read_only: bool = False,
        available: bool = True,
        doc: Document | None = None,
    ) -> None:
        self.name = name
        self.versioned = versioned
        self.read_only = read_only
        self.available = available
        self.configured = True
        self.remote: Document = doc if doc is not None else empty_document()
        self._rev = 1
        self.remote_version: str | None = "v1" if versioned else None
        self.version: str | None = None
        self.fail_with: SyncError | None = None
        self.gate: asyncio.Event | None = None
        self.writes: list[str] = []
        self.backups: list[str] = []
        self.fetches = 0
        self.probes = 0
        self.closed = False

    def external_write(self, doc: Document) -> None:
        """Simulate another device saving *doc*."""
        self.remote = copy.deepcopy(doc)
        if self.versioned:
            self._rev += 1
            self.remote_version = f"v{self._rev}"

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def check_availability(self) -> bool:
        self.probes += 1
        return self.available

    async def fetch_data(self) -> Document:
        self.fetches += 1
        if self.gate is not None:
            await self.gate.wait()
        self._maybe_fail()
        self.version = self.remote_version
        return copy.deepcopy(self.remote)

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        self._maybe_fail()
        if self.read_only:
            return False
        if self.versioned and self.version != self.remote_version:
            raise VersionConflict("stale", source=self.name, status_code=409,
                                  local_version=self.version)
        self.external_write(doc)
        self.version = self.remote_version
        self.writes.append(label)
        return True

    async def fetch_version(self) -> str | None:
        self._maybe_fail()
        return self.remote_version

    async def fetch_snapshot(self) -> tuple[Document, str | None]:
        self._maybe_fail()
        return copy.deepcopy(self.remote), self.remote_version

    def adopt_version(self, token: str | None) -> None:
        self.version = token

    async def write_backup(self, doc: Document, label: str) -> None:
        self.backups.append(label)

    async def aclose(self) -> None:
        self.closed = True


class GatedWriteStore(FakeStore):
    """Blocks inside update_data until ``release`` is set."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.release = asyncio.Event()

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        await self.release.wait()
        return await super().update_data(doc, label)


class Recorder:
    """Routes requests to a handler and keeps every request for assertions."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def sample_document() -> dict[str, Any]:
    return {
        "dateEntries": {
            "2026-10-19": {
                "disciplines": {"0": True, "3": False},
                "tasks": [
                    {"name": "Call bank", "completed": False, "priority": True},
                    {"name": "Water plants", "completed": True},
                ],
            }
        },
        "tabs": [{"id": "t1", "name": "List"}],
        "listItems": {"t1": "milk\neggs"},
    }


@pytest.fixture()
def settings() -> Settings:
    return Settings(storage_path=":memory:")


@pytest.fixture()
def local() -> LocalStore:
    store = LocalStore(":memory:")
    yield store
    store.close()


@pytest.fixture()
def make_orchestrator(settings: Settings, local: LocalStore):
    """Factory building an orchestrator whose only backend is *store*."""

    def factory(store: FakeStore | None = None, mode: SyncMode = SyncMode.GITHUB, **kwargs: Any):
        stores = {mode: store} if store is not None else {}
        kwargs.setdefault("local", local)
        return SyncOrchestrator(settings, stores=stores, **kwargs)

    return factory
