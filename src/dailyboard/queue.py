"""Offline queue of pending writes.

Every write made while disconnected becomes a :class:`PendingOperation`
holding a deep copy of the full document.  The queue is persisted in the
:class:`~dailyboard.storage.LocalStore` after each change, so entries survive
a restart, and is replayed strictly first-in-first-out once connectivity
returns.  A failed replay puts the entry back at the head and stops, so
ordering is kept and failures are not amplified.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any

from dailyboard.document import Document, clone_document
from dailyboard.storage import QUEUE_KEY, LocalStore

log = logging.getLogger(__name__)


@dataclass
class PendingOperation:
    label: str
    timestamp: str
    document: Document

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PendingOperation":
        return cls(label=data["label"], timestamp=data["timestamp"], document=data["document"])


class OfflineQueue:
    """Durable FIFO of write intents captured while offline.

    Usage::

        queue = OfflineQueue(local_store)
        queue.enqueue("Update tabs", doc)
        ...
        replayed = await queue.replay(write_fn)   # write_fn(op) -> bool
    """

    def __init__(self, local: LocalStore, key: str = QUEUE_KEY) -> None:
        self.local = local
        self.key = key
        self._ops: list[PendingOperation] = []
        self._load()

    def _load(self) -> None:
        raw = self.local.get(self.key, [])
        if not isinstance(raw, list):
            log.warning("Discarding corrupt offline queue (%s)", type(raw).__name__)
            raw = []
        for item in raw:
            try:
                self._ops.append(PendingOperation.from_dict(item))
            except (KeyError, TypeError) as exc:
                log.warning("Dropping corrupt pending operation: %s", exc)
        if self._ops:
            log.info("Loaded %d pending operation(s)", len(self._ops))

    def _save(self) -> None:
        self.local.set(self.key, [op.to_dict() for op in self._ops])

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------

    def enqueue(self, label: str, doc: Document) -> PendingOperation:
        op = PendingOperation(
            label=label,
            timestamp=datetime.now(timezone.utc).isoformat(),
            document=clone_document(doc),
        )
        self._ops.append(op)
        self._save()
        log.debug("Queued %r (%d pending)", label, len(self._ops))
        return op

    @property
    def pending(self) -> list[PendingOperation]:
        return list(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def pop_front(self) -> PendingOperation | None:
        if not self._ops:
            return None
        op = self._ops.pop(0)
        self._save()
        return op

    def push_front(self, op: PendingOperation) -> None:
        self._ops.insert(0, op)
        self._save()

    def clear(self) -> None:
        self._ops = []
        self._save()

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def replay(self, apply: Callable[[PendingOperation], Awaitable[bool]]) -> int:
        """Apply pending operations in order until one fails; return how many succeeded."""
        replayed = 0
        while self._ops:
            op = self.pop_front()
            try:
                ok = await apply(op)
            except Exception as exc:  # noqa: BLE001
                log.warning("Replay of %r raised: %s", op.label, exc)
                ok = False
            except BaseException:
                # Cancelled mid-replay: keep the entry for the next attempt
                self.push_front(op)
                raise
            if not ok:
                self.push_front(op)
                log.info("Replay halted at %r; %d operation(s) still pending", op.label, len(self._ops))
                break
            replayed += 1
        return replayed
