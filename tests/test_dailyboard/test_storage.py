"""Unit tests for dailyboard.storage.LocalStore."""

from pathlib import Path

import polars as pl

from conftest import sample_document
from dailyboard.storage import BACKUP_KEY, LocalStore


class TestKeyValue:
    def test_get_missing_returns_default(self, local: LocalStore):
        assert local.get("nope") is None
        assert local.get("nope", []) == []

    def test_set_then_get(self, local: LocalStore):
        local.set("k", {"a": [1, 2]})
        assert local.get("k") == {"a": [1, 2]}

    def test_set_replaces(self, local: LocalStore):
        local.set("k", 1)
        local.set("k", 2)
        assert local.get("k") == 2

    def test_delete(self, local: LocalStore):
        local.set("k", 1)
        local.delete("k")
        assert local.get("k") is None

    def test_backup_round_trip(self, local: LocalStore):
        local.save_backup(sample_document())
        assert local.load_backup() == sample_document()
        assert local.get(BACKUP_KEY) == sample_document()

    def test_survives_reopen(self, tmp_path: Path):
        path = tmp_path / "board.duckdb"
        with LocalStore(path) as store:
            store.save_backup(sample_document())
            store.log_error("auth_failure", "bad token")
        with LocalStore(path) as store:
            assert store.load_backup() == sample_document()
            assert [e["kind"] for e in store.errors()] == ["auth_failure"]


class TestErrorLog:
    def test_entries_in_order(self, local: LocalStore):
        local.log_error("remote_unavailable", "timeout", "github: Update tabs")
        local.log_error("invalid_data", "html page")
        entries = local.errors()
        assert [e["kind"] for e in entries] == ["remote_unavailable", "invalid_data"]
        assert entries[0]["context"] == "github: Update tabs"
        assert entries[1]["context"] == ""

    def test_oldest_evicted_past_limit(self):
        with LocalStore(":memory:", error_log_limit=3) as store:
            for i in range(5):
                store.log_error("remote_unavailable", f"failure {i}")
            assert [e["message"] for e in store.errors()] == ["failure 2", "failure 3", "failure 4"]

    def test_error_frame(self, local: LocalStore):
        local.log_error("auth_failure", "401")
        df = local.error_frame()
        assert isinstance(df, pl.DataFrame)
        assert df.columns == ["id", "logged_at", "kind", "message", "context"]
        assert df["kind"].to_list() == ["auth_failure"]

    def test_empty_error_frame(self, local: LocalStore):
        assert local.error_frame().height == 0

    def test_clear_errors(self, local: LocalStore):
        local.log_error("auth_failure", "401")
        local.clear_errors()
        assert local.errors() == []
