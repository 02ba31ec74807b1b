"""SyncOrchestrator: the single entry point for reading and writing the board.

Lifecycle::

    orch = SyncOrchestrator(Settings.load("board.toml"))
    await orch.start()                  # backup → remote → replay queue
    day = get_day(orch.document, "2026-10-19")
    day["tasks"].append({"name": "Call bank", "completed": False})
    outcome = await orch.update_data(label="Update daily data")

Every write attempt follows one path::

    Idle ─(offline)→ Queued
    Idle → Checking-Version → Writing → Done | Failed
                            ↘ Conflict-Pending ─(resolver)→ Refetching | Forced-Writing

Only this module decides which failures reach the user (``on_message``);
adapters merely classify them.  Whatever happens, the current document is
written to the local backup so nothing is lost.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import httpx

from dailyboard.config import CREDENTIAL_FIELDS, Settings
from dailyboard.conflict import Conflict, ConflictDetector, Resolution, Resolver, refetch_policy
from dailyboard.document import (
    Document,
    documents_equal,
    empty_document,
    ensure_tabs,
    normalize_document,
)
from dailyboard.errors import (
    AuthFailure,
    InvalidData,
    NotConfigured,
    NotFound,
    RemoteUnavailable,
    SyncError,
    VersionConflict,
)
from dailyboard.modes import MODE_DISPLAY, ModeSelector, SyncMode, build_stores
from dailyboard.queue import OfflineQueue, PendingOperation
from dailyboard.storage import CONFLICT_COPY_KEY, CREDENTIALS_KEY, LocalStore
from dailyboard.sync.base import RemoteStore

log = logging.getLogger(__name__)


class WriteState(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    SKIPPED = "skipped"
    CHECKING_VERSION = "checking-version"
    WRITING = "writing"
    CONFLICT_PENDING = "conflict-pending"
    REFETCHING = "refetching"
    FORCED_WRITING = "forced-writing"
    DONE = "done"
    REFETCHED = "refetched"
    FORCED = "forced"
    FAILED = "failed"


@dataclass
class WriteOutcome:
    state: WriteState
    #: whether the document actually reached the remote backend
    persisted: bool = False
    #: user-facing message, ``None`` when nothing should be shown
    message: str | None = None
    conflict: Conflict | None = None

    @property
    def ok(self) -> bool:
        return self.state in (WriteState.DONE, WriteState.REFETCHED, WriteState.FORCED)


def failure_message(source: str, exc: SyncError) -> str | None:
    """User-facing text for a failed save; ``None`` for silent failures."""
    if isinstance(exc, NotConfigured):
        return None
    message = f"Failed to save data to {source}. Changes saved locally."
    if isinstance(exc, AuthFailure):
        if exc.status_code == 403:
            return f"{message} (Access denied - check token permissions)"
        return f"{message} (Authentication failed - check token)"
    if isinstance(exc, NotFound):
        return f"{message} (File not found - check repository and path)"
    if isinstance(exc, VersionConflict):
        return f"{message} (Conflict - file was modified elsewhere)"
    if isinstance(exc, InvalidData):
        return f"{message} (Remote data is not valid JSON - it may be corrupt)"
    if isinstance(exc, RemoteUnavailable):
        return f"{message} (Service unreachable - will retry when back online)"
    return f"{message} ({exc.message})"


class SyncOrchestrator:
    """Routes reads/writes to the active backend and owns the in-memory document."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        local: LocalStore | None = None,
        stores: dict[SyncMode, RemoteStore] | None = None,
        resolver: Resolver | None = None,
        on_message: Callable[[str], object] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or Settings.load()
        self._owns_local = local is None
        self.local = local or LocalStore(
            self.settings.resolved_storage_path,
            error_log_limit=self.settings.error_log_limit,
        )
        self.clock = clock
        self._transport = transport

        saved = self.local.get(CREDENTIALS_KEY) or {}
        if saved:
            self.settings = self.settings.with_credentials(saved)
        if stores is None:
            stores = build_stores(self.settings, transport=transport, clock=clock)

        self.selector = ModeSelector(stores)
        self.queue = OfflineQueue(self.local)
        self.detector = ConflictDetector()
        self.resolver: Resolver = resolver or refetch_policy
        self.on_message = on_message

        self.document: Document = empty_document()
        self.online = True
        self.state = WriteState.IDLE
        self.last_sync: float | None = None
        self._writing = False
        self._replaying = False
        self._observers: list[Callable[[Document], object]] = []

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def mode(self) -> SyncMode | None:
        return self.selector.mode

    @property
    def is_writing(self) -> bool:
        return self._writing

    @property
    def version_token(self) -> str | None:
        store = self.selector.stores.get(self.selector.mode) if self.selector.mode else None
        return getattr(store, "version", None)

    def describe_mode(self) -> tuple[str, str]:
        """``(label, colour)`` for the sync status badge."""
        return MODE_DISPLAY[self.selector.mode or SyncMode.LOCAL_ONLY]

    # ------------------------------------------------------------------
    # Observers / messages
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[Document], object]) -> Callable[[], None]:
        """Call *callback* with the new document whenever remote state is adopted."""
        self._observers.append(callback)
        return lambda: self._observers.remove(callback)

    def _notify(self) -> None:
        for callback in list(self._observers):
            try:
                callback(self.document)
            except Exception:  # noqa: BLE001
                # Keep notifying the remaining observers
                log.exception("Document observer %r failed", callback)

    def _surface(self, message: str) -> None:
        log.error(message)
        if self.on_message is not None:
            self.on_message(message)

    def _record(self, exc: SyncError, context: str) -> None:
        self.local.log_error(exc.kind, exc.message, context)

    def _set_state(self, state: WriteState) -> None:
        log.debug("Write state: %s -> %s", self.state.value, state.value)
        self.state = state

    def _finish(self, outcome: WriteOutcome) -> WriteOutcome:
        self._set_state(outcome.state)
        return outcome

    # ------------------------------------------------------------------
    # Startup / read path
    # ------------------------------------------------------------------

    async def start(self) -> Document:
        """Hydrate from the local backup, then the remote, then replay pending writes."""
        self.document = self._local_snapshot()
        await self.fetch_data()
        if not self.document["tabs"]:
            ensure_tabs(self.document)
            self.local.save_backup(self.document)
        if self.online and len(self.queue):
            await self.replay_pending()
        return self.document

    def _local_snapshot(self) -> Document:
        backup = self.local.load_backup()
        if backup is not None:
            try:
                return normalize_document(backup)
            except InvalidData as exc:
                log.warning("Ignoring corrupt local backup: %s", exc)
                self._record(exc, "local backup")
        return empty_document()

    async def fetch_data(self) -> Document:
        """Load the document from the active backend, falling back to the local backup."""
        store = await self.selector.active_store()
        if store is None:
            self.document = self._local_snapshot()
            return self.document
        try:
            doc = normalize_document(await store.fetch_data())
        except SyncError as exc:
            self._record(exc, f"fetch {store.name}")
            if isinstance(exc, NotConfigured):
                log.debug("Fetch skipped: %s", exc)
            else:
                self._surface(f"Failed to load data from {store.name}. Using local fallback. ({exc.message})")
            self.document = self._local_snapshot()
            return self.document

        self.document = doc
        self.local.save_backup(doc)
        self.last_sync = self.clock()
        return self.document

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def update_data(self, doc: Document | None = None, label: str = "Update data") -> WriteOutcome:
        """Persist *doc* (or the current in-memory document) to the active backend."""
        if doc is not None:
            self.document = normalize_document(doc)

        # Writes never overtake queued ones
        if not self.online or self._replaying or len(self.queue):
            self.queue.enqueue(label, self.document)
            self.local.save_backup(self.document)
            outcome = self._finish(WriteOutcome(WriteState.QUEUED))
            if self.online and not self._replaying:
                await self.replay_pending()
            return outcome

        if self._writing:
            log.debug("Sync already in progress, skipping %r", label)
            self.local.save_backup(self.document)
            return WriteOutcome(WriteState.SKIPPED)

        return await self._write(label)

    async def _write(self, label: str, *, from_queue: bool = False) -> WriteOutcome:
        # Claimed before the first await so mode resolution cannot admit a second write
        self._writing = True
        try:
            store = await self.selector.active_store()
            if store is None:
                self.local.save_backup(self.document)
                return self._finish(WriteOutcome(WriteState.DONE, persisted=False))
            return await self._write_to(store, label, from_queue=from_queue)
        finally:
            self._writing = False

    async def _write_to(self, store: RemoteStore, label: str, *, from_queue: bool) -> WriteOutcome:
        try:
            if store.versioned:
                self._set_state(WriteState.CHECKING_VERSION)
                conflict = await self.detector.check(store, self.document, label)
                if conflict is not None:
                    return await self._resolve(store, conflict, from_queue=from_queue)
                if self.settings.backup_before_write:
                    await self._write_backup(store, label)
            self._set_state(WriteState.WRITING)
            persisted = await store.update_data(self.document, label)
        except VersionConflict as exc:
            conflict = await self.detector.from_error(store, exc, self.document, label)
            return await self._resolve(store, conflict, from_queue=from_queue)
        except SyncError as exc:
            return self._fail(store, exc, label, from_queue=from_queue)

        self.local.save_backup(self.document)
        self.last_sync = self.clock()
        return self._finish(WriteOutcome(WriteState.DONE, persisted=persisted))

    async def _write_backup(self, store: RemoteStore, label: str) -> None:
        try:
            await store.write_backup(self.document, label)
        except SyncError as exc:
            log.warning("Backup before write failed on %s: %s", store.name, exc)
            self._record(exc, f"backup {store.name}: {label}")

    async def _resolve(self, store: RemoteStore, conflict: Conflict, *, from_queue: bool) -> WriteOutcome:
        self._set_state(WriteState.CONFLICT_PENDING)
        self.local.log_error(
            VersionConflict.kind,
            f"local {conflict.local_version} != remote {conflict.remote_version}",
            f"{store.name}: {conflict.label}",
        )
        choice = await self.detector.resolve(conflict, self.resolver)
        try:
            if choice is Resolution.FORCE:
                self._set_state(WriteState.FORCED_WRITING)
                store.adopt_version(conflict.remote_version)
                persisted = await store.update_data(self.document, conflict.label)
                self.local.save_backup(self.document)
                self.last_sync = self.clock()
                log.warning("Forced write over remote version %s", conflict.remote_version)
                return self._finish(WriteOutcome(WriteState.FORCED, persisted=persisted, conflict=conflict))

            self._set_state(WriteState.REFETCHING)
            self.local.set(CONFLICT_COPY_KEY, conflict.local_document)
            self.document = normalize_document(await store.fetch_data())
        except SyncError as exc:
            return self._fail(store, exc, conflict.label, from_queue=from_queue)

        self.local.save_backup(self.document)
        self.last_sync = self.clock()
        self._notify()
        message = ("Your changes conflicted with a newer version and were not saved. "
                   "The latest data was loaded; please re-apply your changes.")
        self._surface(message)
        return self._finish(WriteOutcome(WriteState.REFETCHED, message=message, conflict=conflict))

    def _fail(self, store: RemoteStore, exc: SyncError, label: str, *, from_queue: bool) -> WriteOutcome:
        self.local.save_backup(self.document)
        self._record(exc, f"{store.name}: {label}")
        message = failure_message(store.name, exc)
        if from_queue:
            log.warning("Replay of %r failed: %s", label, exc)
        else:
            if isinstance(exc, RemoteUnavailable):
                self.queue.enqueue(label, self.document)
            if message is None:
                log.debug("Save skipped: %s", exc)
            else:
                self._surface(message)
        return self._finish(WriteOutcome(WriteState.FAILED, message=message))

    # ------------------------------------------------------------------
    # Connectivity / offline queue
    # ------------------------------------------------------------------

    async def set_online(self, online: bool) -> None:
        """Feed the platform's online/offline signal; reconnecting replays the queue."""
        was_online, self.online = self.online, online
        if online and not was_online:
            log.info("Back online; %d pending operation(s)", len(self.queue))
            await self.replay_pending()
        elif was_online and not online:
            log.info("Offline; writes will be queued")

    async def replay_pending(self) -> int:
        if self._replaying or not self.online or not len(self.queue):
            return 0
        self._replaying = True
        try:
            replayed = await self.queue.replay(self._replay_one)
        finally:
            self._replaying = False
        if replayed:
            log.info("Replayed %d pending operation(s)", replayed)
        return replayed

    async def _replay_one(self, op: PendingOperation) -> bool:
        if self._writing:
            return False
        previous = self.document
        self.document = normalize_document(op.document)
        outcome = await self._write(op.label, from_queue=True)
        if not outcome.ok:
            self.document = previous
            return False
        if outcome.state is WriteState.REFETCHED and len(self.queue):
            # Remaining snapshots were built on the version the user just discarded
            latest = self.queue.pending[-1]
            self.local.set(CONFLICT_COPY_KEY, latest.document)
            log.warning("Dropping %d queued operation(s) superseded by a refetch", len(self.queue))
            self.queue.clear()
        return True

    # ------------------------------------------------------------------
    # Polling support
    # ------------------------------------------------------------------

    async def check_for_remote_changes(self) -> bool:
        """Adopt the remote document if it changed; return whether it did.

        Failures are logged and recorded, never surfaced.  Pending writes are
        replayed first; while any remain the remote copy is not adopted.
        """
        if not self.online or self._writing or self._replaying:
            return False
        if len(self.queue):
            await self.replay_pending()
            if len(self.queue):
                return False
        store = await self.selector.active_store()
        if store is None:
            return False

        token: str | None = None
        try:
            if store.versioned:
                remote = await store.fetch_version()
                if remote == store.version:
                    self.last_sync = self.clock()
                    return False
                fetched, token = await store.fetch_snapshot()
            else:
                fetched = await store.fetch_data()
            fetched = normalize_document(fetched)
        except SyncError as exc:
            log.warning("Remote change check on %s failed: %s", store.name, exc)
            self._record(exc, f"poll {store.name}")
            return False

        self.last_sync = self.clock()
        if self._writing or self._replaying or len(self.queue):
            # A write started or was queued meanwhile; it takes precedence
            return False
        if store.versioned:
            store.adopt_version(token)
        elif documents_equal(fetched, self.document):
            return False

        log.info("Remote changes detected on %s", store.name)
        self.document = fetched
        self.local.save_backup(fetched)
        self._notify()
        return True

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def save_credentials(self, **values: str) -> SyncMode:
        """Persist credentials, rebuild the backends and re-select the sync mode."""
        self.settings = self.settings.with_credentials(values)
        saved = dict(self.local.get(CREDENTIALS_KEY) or {})
        saved.update(values)
        self.local.set(CREDENTIALS_KEY, saved)
        await self._rebuild_stores()
        await self.fetch_data()
        self._notify()
        return await self.selector.determine_sync_mode()

    async def clear_credentials(self, *names: str) -> SyncMode:
        """Forget saved credentials (all of them when *names* is empty)."""
        saved = dict(self.local.get(CREDENTIALS_KEY) or {})
        targets = set(names) or set(saved)
        unknown = targets - CREDENTIAL_FIELDS
        if unknown:
            raise KeyError(f"Not credential fields: {', '.join(sorted(unknown))}")
        defaults = {f.name: f.default for f in dataclasses.fields(Settings)}
        self.settings = self.settings.with_credentials({name: defaults[name] for name in targets})
        for name in targets:
            saved.pop(name, None)
        self.local.set(CREDENTIALS_KEY, saved)
        await self._rebuild_stores()
        return await self.selector.determine_sync_mode()

    async def _rebuild_stores(self) -> None:
        old = self.selector.replace_stores(
            build_stores(self.settings, transport=self._transport, clock=self.clock)
        )
        for store in old.values():
            await store.aclose()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        for store in self.selector.stores.values():
            await store.aclose()
        if self._owns_local:
            self.local.close()

    async def __aenter__(self) -> "SyncOrchestrator":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
