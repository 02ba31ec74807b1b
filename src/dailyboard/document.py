"""The synchronized board document.

Every backend persists the same JSON object verbatim::

    {
      "dateEntries": {"2026-10-19": {"disciplines": {"0": true},
                                     "tasks": [{"name": "Call bank", "completed": false}]}},
      "tabs":        [{"id": "tab_1729339200000", "name": "My List"}],
      "listItems":   {"tab_1729339200000": "milk\\neggs"}
    }

A document missing any of the three top-level fields is treated as corrupt and
healed to empty defaults by :func:`normalize_document`.
"""

from __future__ import annotations

import copy
import logging
import re
import time
from datetime import date
from typing import Any

from dailyboard.errors import InvalidData, PriorityLimitExceeded

log = logging.getLogger(__name__)

Document = dict[str, Any]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: Daily disciplines shown before the dynamic tasks, addressed by index.
FIXED_DISCIPLINES = [
    "WH Breathing",
    "Yoga",
    "Pull up bar / weights",
    "Review Goals and Actions",
    "Update Finances",
]

MAX_PRIORITY_TASKS = 3
DEFAULT_TAB_NAME = "My List"

_FIELD_TYPES: dict[str, type] = {"dateEntries": dict, "tabs": list, "listItems": dict}
_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# ---------------------------------------------------------------------------
# Construction / healing
# ---------------------------------------------------------------------------


def empty_document() -> Document:
    return {"dateEntries": {}, "tabs": [], "listItems": {}}


def is_date_key(key: Any) -> bool:
    """Return ``True`` for ``YYYY-MM-DD`` strings naming a real calendar date."""
    if not isinstance(key, str) or not _DATE_KEY_RE.match(key):
        return False
    try:
        date.fromisoformat(key)
    except ValueError:
        return False
    return True


def date_key(day: date) -> str:
    return day.isoformat()


def normalize_document(data: Any) -> Document:
    """Return a healed deep copy of *data* that always has all three fields.

    Missing or wrongly-typed top-level fields become empty defaults, date
    entries with malformed keys are dropped and every day record gets its
    ``disciplines`` / ``tasks`` members.
    """
    if not isinstance(data, dict):
        raise InvalidData(f"Expected a JSON object, got {type(data).__name__}")

    doc = copy.deepcopy(data)
    for name, expected in _FIELD_TYPES.items():
        if not isinstance(doc.get(name), expected):
            if name in doc:
                log.warning("Replacing corrupt %r field (%s) with an empty default",
                            name, type(doc[name]).__name__)
            doc[name] = expected()

    entries: dict[str, Any] = doc["dateEntries"]
    for key in list(entries):
        if not is_date_key(key):
            log.warning("Dropping date entry with malformed key %r", key)
            del entries[key]
            continue
        day = entries[key]
        if not isinstance(day, dict):
            day = entries[key] = {}
        if not isinstance(day.get("disciplines"), dict):
            day["disciplines"] = {}
        if not isinstance(day.get("tasks"), list):
            day["tasks"] = []
    return doc


def clone_document(doc: Document) -> Document:
    return copy.deepcopy(doc)


def documents_equal(a: Document, b: Document) -> bool:
    """Full structural comparison of two documents (after healing both)."""
    return normalize_document(a) == normalize_document(b)


# ---------------------------------------------------------------------------
# Day records
# ---------------------------------------------------------------------------


def get_day(doc: Document, key: str) -> dict[str, Any]:
    """Return the day record for *key*, creating an empty one if absent."""
    if not is_date_key(key):
        raise ValueError(f"Not a calendar date key: {key!r}")
    return doc["dateEntries"].setdefault(key, {"disciplines": {}, "tasks": []})


def priority_count(day: dict[str, Any]) -> int:
    return sum(1 for task in day.get("tasks", []) if task.get("priority"))


def toggle_task_priority(day: dict[str, Any], index: int) -> bool:
    """Flip the ``priority`` flag of task *index* and return the new value.

    Raises :class:`PriorityLimitExceeded` instead of marking a fourth task.
    """
    task = day["tasks"][index]
    if not task.get("priority") and priority_count(day) >= MAX_PRIORITY_TASKS:
        raise PriorityLimitExceeded(
            f"You can only have {MAX_PRIORITY_TASKS} priority tasks at a time. Remove one first."
        )
    task["priority"] = not task.get("priority", False)
    return task["priority"]


# ---------------------------------------------------------------------------
# Tabs / lists
# ---------------------------------------------------------------------------


def _new_tab_id() -> str:
    return f"tab_{int(time.time() * 1000)}"


def ensure_tabs(doc: Document) -> list[dict[str, str]]:
    """Guarantee that an initialized document carries at least one tab."""
    if not doc.get("tabs"):
        doc["tabs"] = [{"id": _new_tab_id(), "name": DEFAULT_TAB_NAME}]
    return doc["tabs"]


def add_tab(doc: Document, name: str | None = None) -> dict[str, str]:
    tabs = ensure_tabs(doc)
    existing = {tab["id"] for tab in tabs}
    tab_id = _new_tab_id()
    while tab_id in existing:
        tab_id += "_"
    tab = {"id": tab_id, "name": name or f"List {len(tabs) + 1}"}
    tabs.append(tab)
    return tab


def remove_tab(doc: Document, tab_id: str) -> None:
    """Delete a tab and its list content; the last tab cannot be removed."""
    tabs = doc.get("tabs", [])
    if len(tabs) <= 1:
        raise ValueError("You must have at least one list!")
    doc["tabs"] = [tab for tab in tabs if tab["id"] != tab_id]
    doc["listItems"].pop(tab_id, None)
