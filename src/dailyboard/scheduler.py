"""Visibility-aware polling for remote changes.

A single asyncio task wakes every ``interval`` seconds (5 s by default) and
asks the orchestrator to check the remote for changes.  A tick is skipped,
not deferred, when:

- the application is not visible (foreground),
- the orchestrator is offline,
- a write is in flight, or
- the previous check is still running.

Regaining visibility triggers an immediate check, unless the last successful
sync is more recent than ``debounce`` seconds (rapid focus changes would
otherwise cause a check-storm).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dailyboard.orchestrator import SyncOrchestrator

log = logging.getLogger(__name__)


class PollScheduler:
    def __init__(
        self,
        orchestrator: "SyncOrchestrator",
        *,
        interval: float | None = None,
        debounce: float | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.interval = interval if interval is not None else orchestrator.settings.poll_interval
        self.debounce = debounce if debounce is not None else orchestrator.settings.visibility_debounce
        self.visible = True
        self.checking = False
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def tick(self) -> bool:
        """Run one gated remote-change check; return whether the document changed."""
        orch = self.orchestrator
        if not self.visible or not orch.online or orch.is_writing or self.checking:
            return False
        self.checking = True
        try:
            return await orch.check_for_remote_changes()
        finally:
            self.checking = False

    async def set_visibility(self, visible: bool) -> bool:
        """Record foreground state; on regaining it, check now unless synced recently."""
        was_visible, self.visible = self.visible, visible
        if not visible or was_visible:
            return False
        last = self.orchestrator.last_sync
        if last is not None and self.orchestrator.clock() - last <= self.debounce:
            log.debug("Visible again but synced %.1fs ago; not checking", self.orchestrator.clock() - last)
            return False
        return await self.tick()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="dailyboard-poll")
        log.debug("Polling every %.1fs", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as exc:  # noqa: BLE001
                # One bad response must not end polling for the session
                log.exception("Remote change check failed unexpectedly")
                self.orchestrator.local.log_error("unexpected_error", repr(exc), "poll")
