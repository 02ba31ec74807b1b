"""Version conflict detection and resolution.

Before writing to a versioned backend the orchestrator compares the token it
last saw with the backend's current token.  A mismatch means another device
wrote in the meantime.  No field-level merge is attempted: the conflict goes
to a *resolver* that picks one of two outcomes:

``Resolution.REFETCH``
    Load the remote document and let the user re-apply their changes.
``Resolution.FORCE``
    Overwrite the remote with the local document, adopting the remote token
    so the write is accepted.  Remote-only changes are lost.

The resolver is any callable taking a :class:`Conflict` and returning a
:class:`Resolution` (or an awaitable of one), e.g. a UI dialog.
:func:`refetch_policy` is the non-interactive default; it never overwrites.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from dailyboard.document import Document, clone_document
from dailyboard.errors import SyncError, VersionConflict
from dailyboard.sync.base import VersionedStore

log = logging.getLogger(__name__)


class Resolution(str, Enum):
    REFETCH = "refetch"
    FORCE = "force"


@dataclass
class Conflict:
    label: str
    local_document: Document
    local_version: str | None
    remote_version: str | None
    #: ``None`` when the remote document could not be downloaded
    remote_document: Document | None = None


Resolver = Callable[[Conflict], "Resolution | Awaitable[Resolution]"]


def refetch_policy(conflict: Conflict) -> Resolution:
    """Default resolver: keep the remote version, never overwrite it."""
    return Resolution.REFETCH


def force_policy(conflict: Conflict) -> Resolution:
    """Resolver that always overwrites the remote with local state."""
    return Resolution.FORCE


class ConflictDetector:
    """Compares version tokens and routes conflicts to a resolver."""

    async def check(self, store: VersionedStore, local_doc: Document, label: str) -> Conflict | None:
        """Return a :class:`Conflict` if the remote moved since our last fetch/write.

        With no prior token the remote token is adopted and the write proceeds.
        """
        known = store.version
        remote = await store.fetch_version()
        if known is None:
            store.adopt_version(remote)
            return None
        if remote == known:
            return None

        log.warning("Version conflict on %s: local %s, remote %s", store.name, known, remote)
        return Conflict(
            label=label,
            local_document=clone_document(local_doc),
            local_version=known,
            remote_version=remote,
            remote_document=await self._remote_document(store),
        )

    async def from_error(self, store: VersionedStore, exc: VersionConflict,
                         local_doc: Document, label: str) -> Conflict:
        """Build a :class:`Conflict` from a write rejected by the backend itself."""
        remote_doc: Document | None = None
        remote_version = exc.remote_version
        try:
            remote_doc, remote_version = await store.fetch_snapshot()
        except SyncError as fetch_exc:
            log.warning("Could not download remote document for conflict: %s", fetch_exc)
        return Conflict(
            label=label,
            local_document=clone_document(local_doc),
            local_version=exc.local_version if exc.local_version is not None else store.version,
            remote_version=remote_version,
            remote_document=remote_doc,
        )

    async def resolve(self, conflict: Conflict, resolver: Resolver) -> Resolution:
        choice = resolver(conflict)
        if inspect.isawaitable(choice):
            choice = await choice
        return Resolution(choice)

    @staticmethod
    async def _remote_document(store: VersionedStore) -> Document | None:
        try:
            doc, _ = await store.fetch_snapshot()
        except SyncError as exc:
            log.warning("Could not download remote document for conflict: %s", exc)
            return None
        return doc
