"""Tests for sync mode selection."""

import asyncio

import pytest

from conftest import FakeStore
from dailyboard.config import Settings
from dailyboard.modes import MODE_DISPLAY, PROBE_ORDER, ModeSelector, SyncMode, build_stores
from dailyboard.sync.dropbox import DropboxStore
from dailyboard.sync.gdrive import GoogleDriveStore
from dailyboard.sync.gdrive_public import GoogleDrivePublicStore
from dailyboard.sync.github import GitHubStore
from dailyboard.sync.local_server import LocalServerStore


def _all_stores(**available: bool) -> dict[SyncMode, FakeStore]:
    return {
        mode: FakeStore(mode.value, available=available.get(mode.name.lower(), False))
        for mode in PROBE_ORDER
    }


class TestModeSelector:
    async def test_local_server_wins_over_github(self):
        stores = _all_stores(local_server=True, github=True)
        selector = ModeSelector(stores)
        assert await selector.determine_sync_mode() is SyncMode.LOCAL_SERVER

    async def test_probing_stops_at_first_available(self):
        stores = _all_stores(dropbox=True, github=True)
        await ModeSelector(stores).determine_sync_mode()
        assert stores[SyncMode.LOCAL_SERVER].probes == 1
        assert stores[SyncMode.DROPBOX].probes == 1
        assert stores[SyncMode.GOOGLE_DRIVE_PUBLIC].probes == 0
        assert stores[SyncMode.GITHUB].probes == 0

    async def test_public_drive_probed_before_authenticated_drive(self):
        stores = _all_stores(google_drive_public=True, google_drive=True)
        assert await ModeSelector(stores).determine_sync_mode() is SyncMode.GOOGLE_DRIVE_PUBLIC

    async def test_falls_back_to_local_only(self):
        selector = ModeSelector(_all_stores())
        assert await selector.determine_sync_mode() is SyncMode.LOCAL_ONLY
        assert await selector.active_store() is None

    async def test_unconfigured_stores_not_probed(self):
        stores = _all_stores(local_server=True, github=True)
        stores[SyncMode.LOCAL_SERVER].configured = False
        assert await ModeSelector(stores).determine_sync_mode() is SyncMode.GITHUB
        assert stores[SyncMode.LOCAL_SERVER].probes == 0

    async def test_result_is_cached(self):
        stores = _all_stores(github=True)
        selector = ModeSelector(stores)
        await selector.determine_sync_mode()
        stores[SyncMode.GITHUB].available = False
        assert await selector.determine_sync_mode() is SyncMode.GITHUB
        assert stores[SyncMode.GITHUB].probes == 1

    async def test_concurrent_callers_probe_once(self):
        stores = _all_stores(github=True)
        selector = ModeSelector(stores)
        modes = await asyncio.gather(*(selector.determine_sync_mode() for _ in range(3)))
        assert set(modes) == {SyncMode.GITHUB}
        assert stores[SyncMode.GITHUB].probes == 1

    async def test_invalidate_reprobes(self):
        stores = _all_stores(github=True)
        selector = ModeSelector(stores)
        await selector.determine_sync_mode()
        stores[SyncMode.DROPBOX].available = True
        selector.invalidate()
        assert await selector.determine_sync_mode() is SyncMode.DROPBOX

    async def test_active_store(self):
        stores = _all_stores(dropbox=True)
        selector = ModeSelector(stores)
        assert await selector.active_store() is stores[SyncMode.DROPBOX]

    async def test_replace_stores_returns_old(self):
        old = _all_stores(github=True)
        selector = ModeSelector(old)
        await selector.determine_sync_mode()
        new = _all_stores(local_server=True)
        assert selector.replace_stores(new) == old
        assert selector.mode is None
        assert await selector.determine_sync_mode() is SyncMode.LOCAL_SERVER


class TestBuildStores:
    async def test_one_adapter_per_remote_mode(self):
        stores = build_stores(Settings(storage_path=":memory:", dropbox_token="dbx"))
        try:
            assert list(stores) == list(PROBE_ORDER)
            assert isinstance(stores[SyncMode.LOCAL_SERVER], LocalServerStore)
            assert isinstance(stores[SyncMode.DROPBOX], DropboxStore)
            assert isinstance(stores[SyncMode.GOOGLE_DRIVE_PUBLIC], GoogleDrivePublicStore)
            assert isinstance(stores[SyncMode.GOOGLE_DRIVE], GoogleDriveStore)
            assert isinstance(stores[SyncMode.GITHUB], GitHubStore)
            assert stores[SyncMode.DROPBOX].configured
            assert not stores[SyncMode.GOOGLE_DRIVE].configured
        finally:
            for store in stores.values():
                await store.aclose()


class TestModeDisplay:
    def test_every_mode_has_a_badge(self):
        assert set(MODE_DISPLAY) == set(SyncMode)

    @pytest.mark.parametrize("word", ["Google Drive", "Public"])
    def test_public_drive_label(self, word):
        label, _ = MODE_DISPLAY[SyncMode.GOOGLE_DRIVE_PUBLIC]
        assert word in label
