"""Unit tests for dailyboard.document."""

from datetime import date

import pytest

from conftest import sample_document
from dailyboard.document import (
    FIXED_DISCIPLINES,
    MAX_PRIORITY_TASKS,
    add_tab,
    clone_document,
    date_key,
    documents_equal,
    empty_document,
    ensure_tabs,
    get_day,
    is_date_key,
    normalize_document,
    priority_count,
    remove_tab,
    toggle_task_priority,
)
from dailyboard.errors import InvalidData, PriorityLimitExceeded

# ---------------------------------------------------------------------------
# normalize_document
# ---------------------------------------------------------------------------


class TestNormalizeDocument:
    @pytest.mark.parametrize(
        "data",
        [
            {},
            {"tabs": [{"id": "t1", "name": "List"}]},
            {"dateEntries": {}},
            {"listItems": {"t1": "x"}, "tabs": []},
        ],
    )
    def test_missing_fields_are_defaulted(self, data):
        doc = normalize_document(data)
        assert set(doc) >= {"dateEntries", "tabs", "listItems"}
        assert isinstance(doc["dateEntries"], dict)
        assert isinstance(doc["tabs"], list)
        assert isinstance(doc["listItems"], dict)

    def test_present_fields_are_kept(self):
        doc = normalize_document({"tabs": [{"id": "t1", "name": "List"}]})
        assert doc["tabs"] == [{"id": "t1", "name": "List"}]

    def test_wrong_types_are_replaced(self):
        doc = normalize_document({"dateEntries": [], "tabs": {}, "listItems": "oops"})
        assert doc == empty_document()

    def test_malformed_date_keys_are_dropped(self):
        doc = normalize_document({"dateEntries": {
            "2026-10-19": {"disciplines": {}, "tasks": []},
            "yesterday": {"disciplines": {}, "tasks": []},
            "2026-02-30": {"disciplines": {}, "tasks": []},
        }})
        assert list(doc["dateEntries"]) == ["2026-10-19"]

    def test_day_record_is_completed(self):
        doc = normalize_document({"dateEntries": {"2026-10-19": {"tasks": "bad"}}})
        assert doc["dateEntries"]["2026-10-19"] == {"tasks": [], "disciplines": {}}

    def test_returns_a_copy(self):
        original = sample_document()
        doc = normalize_document(original)
        doc["tabs"].append({"id": "t2", "name": "Other"})
        assert len(original["tabs"]) == 1

    @pytest.mark.parametrize("data", [None, [], "text", 3])
    def test_non_object_is_invalid(self, data):
        with pytest.raises(InvalidData):
            normalize_document(data)

    def test_documents_equal_ignores_healing(self):
        assert documents_equal({"tabs": []}, empty_document())
        assert not documents_equal(sample_document(), empty_document())

    def test_clone_is_deep(self):
        doc = sample_document()
        copy = clone_document(doc)
        copy["dateEntries"]["2026-10-19"]["tasks"].clear()
        assert doc["dateEntries"]["2026-10-19"]["tasks"]


# ---------------------------------------------------------------------------
# Date keys / day records
# ---------------------------------------------------------------------------


class TestDays:
    def test_date_key_format(self):
        assert date_key(date(2026, 1, 5)) == "2026-01-05"

    @pytest.mark.parametrize("key, expected", [
        ("2026-10-19", True),
        ("2026-13-01", False),
        ("2026-1-5", False),
        (20261019, False),
    ])
    def test_is_date_key(self, key, expected):
        assert is_date_key(key) is expected

    def test_get_day_creates_record(self):
        doc = empty_document()
        day = get_day(doc, "2026-10-19")
        day["disciplines"]["0"] = True
        assert doc["dateEntries"]["2026-10-19"]["disciplines"] == {"0": True}

    def test_get_day_rejects_bad_key(self):
        with pytest.raises(ValueError):
            get_day(empty_document(), "not-a-date")

    def test_fixed_disciplines(self):
        assert len(FIXED_DISCIPLINES) == 5


# ---------------------------------------------------------------------------
# Priority tasks
# ---------------------------------------------------------------------------


class TestPriority:
    def _day(self, n: int) -> dict:
        return {"disciplines": {}, "tasks": [{"name": f"t{i}", "completed": False} for i in range(n)]}

    def test_toggle_on_and_off(self):
        day = self._day(1)
        assert toggle_task_priority(day, 0) is True
        assert toggle_task_priority(day, 0) is False
        assert priority_count(day) == 0

    def test_fourth_priority_rejected(self):
        day = self._day(MAX_PRIORITY_TASKS + 1)
        for i in range(MAX_PRIORITY_TASKS):
            toggle_task_priority(day, i)
        with pytest.raises(PriorityLimitExceeded):
            toggle_task_priority(day, MAX_PRIORITY_TASKS)
        assert priority_count(day) == MAX_PRIORITY_TASKS

    def test_unmarking_allowed_at_limit(self):
        day = self._day(MAX_PRIORITY_TASKS)
        for i in range(MAX_PRIORITY_TASKS):
            toggle_task_priority(day, i)
        assert toggle_task_priority(day, 0) is False


# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------


class TestTabs:
    def test_ensure_tabs_adds_default(self):
        doc = empty_document()
        tabs = ensure_tabs(doc)
        assert len(tabs) == 1
        assert tabs[0]["name"] == "My List"
        assert tabs[0]["id"].startswith("tab_")

    def test_ensure_tabs_keeps_existing(self):
        doc = sample_document()
        assert ensure_tabs(doc) == [{"id": "t1", "name": "List"}]

    def test_add_tab_numbers_name(self):
        doc = sample_document()
        tab = add_tab(doc)
        assert tab["name"] == "List 2"
        assert doc["tabs"][-1] is tab
        assert tab["id"] != "t1"

    def test_remove_tab_drops_items(self):
        doc = sample_document()
        other = add_tab(doc, "Groceries")
        remove_tab(doc, "t1")
        assert doc["tabs"] == [other]
        assert "t1" not in doc["listItems"]

    def test_cannot_remove_last_tab(self):
        doc = sample_document()
        with pytest.raises(ValueError):
            remove_tab(doc, "t1")
