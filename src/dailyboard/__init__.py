"""Daily Board sync core."""

from dailyboard.config import Settings, configure_logging
from dailyboard.conflict import Conflict, Resolution, force_policy, refetch_policy
from dailyboard.document import Document, empty_document, normalize_document
from dailyboard.modes import ModeSelector, SyncMode
from dailyboard.orchestrator import SyncOrchestrator, WriteOutcome, WriteState
from dailyboard.queue import OfflineQueue, PendingOperation
from dailyboard.scheduler import PollScheduler
from dailyboard.storage import LocalStore

__all__ = [
    "Conflict",
    "Document",
    "LocalStore",
    "ModeSelector",
    "OfflineQueue",
    "PendingOperation",
    "PollScheduler",
    "Resolution",
    "Settings",
    "SyncMode",
    "SyncOrchestrator",
    "WriteOutcome",
    "WriteState",
    "configure_logging",
    "empty_document",
    "force_policy",
    "normalize_document",
    "refetch_policy",
]
