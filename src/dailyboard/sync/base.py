"""Abstract remote store protocol."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from dailyboard.document import Document


@runtime_checkable
class RemoteStore(Protocol):
    """Common interface shared by all sync backends.

    Implementations (local server, Dropbox, Google Drive, GitHub, …) must
    satisfy this protocol so the orchestrator and mode selector can swap
    backends without changing call sites.
    """

    name: str
    versioned: bool
    read_only: bool

    @property
    def configured(self) -> bool:
        """``True`` when enough settings/credentials exist to try the backend."""
        ...

    async def check_availability(self) -> bool:
        """Probe reachability and credentials.  Never raises, never writes."""
        ...

    async def fetch_data(self) -> Document:
        """Return the remote document, an empty one when none exists yet."""
        ...

    async def update_data(self, doc: Document, label: str = "Update data") -> bool:
        """Persist *doc*; return whether the write actually reached the remote."""
        ...

    async def aclose(self) -> None: ...


@runtime_checkable
class VersionedStore(RemoteStore, Protocol):
    """A backend with native revision tokens (GitHub blob SHA, Dropbox ``rev``)."""

    #: Last-known token, set only after a successful fetch or write.
    version: str | None

    async def fetch_version(self) -> str | None:
        """Return the backend's current token (``None`` when no document exists)."""
        ...

    async def fetch_snapshot(self) -> tuple[Document, str | None]:
        """Download the document and its token without touching ``version``."""
        ...

    def adopt_version(self, token: str | None) -> None:
        """Make *token* the last-known version (used by forced writes)."""
        ...

    async def write_backup(self, doc: Document, label: str) -> None:
        """Write a timestamped copy of *doc* next to the main document."""
        ...
