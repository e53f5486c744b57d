"""
Tests for the query monitor ring buffer and its statistics
"""

import logging
import threading
from datetime import datetime, timezone

import pytest

from ru_monitor.config import MonitorMode
from ru_monitor.utils.query_monitor import QueryMonitor


class TestRecord:
    def test_records_when_enabled(self, monitor):
        monitor.record("SELECT * FROM users", 100, 10)

        stats = monitor.stats()
        assert stats is not None
        assert stats.total_queries == 1

    def test_disabled_record_is_noop(self, disabled_monitor):
        for _ in range(25):
            assert disabled_monitor.record("SELECT * FROM users", 2000, 500) is None

        assert disabled_monitor.stats() is None
        assert len(disabled_monitor) == 0

    def test_sanitizes_query(self, monitor):
        monitor.record("INSERT INTO users VALUES ('test', 'password')", 100)

        query = monitor.stats().recent_queries[0].query
        assert "VALUES (...)" in query
        assert "test" not in query
        assert "password" not in query

    def test_truncates_long_queries(self, monitor):
        monitor.record("SELECT * FROM users WHERE " + "a" * 300, 100)

        assert len(monitor.stats().recent_queries[0].query) <= 200

    def test_stores_timestamp(self, monitor):
        before = datetime.now(timezone.utc)
        monitor.record("SELECT * FROM users", 100, 10)
        after = datetime.now(timezone.utc)

        timestamp = monitor.stats().recent_queries[0].timestamp
        assert before <= timestamp <= after

    def test_timestamps_non_decreasing(self, monitor):
        for i in range(50):
            monitor.record(f"Query {i}", 1)

        timestamps = [event.timestamp for event in monitor.stats().recent_queries]
        assert timestamps == sorted(timestamps)

    def test_estimated_rus_absent_when_not_supplied(self, monitor):
        monitor.record("SELECT * FROM users", 100)

        assert monitor.stats().recent_queries[0].estimated_rus is None

    def test_returns_stored_event(self, monitor):
        event = monitor.record("SELECT 1", 3, 5)

        assert event is monitor.stats().recent_queries[-1]
        assert event.failed is False

    def test_negative_duration_clamped(self, monitor):
        monitor.record("SELECT 1", -5)

        assert monitor.stats().recent_queries[0].duration_ms == 0


class TestCapacity:
    def test_limits_buffer_to_100(self, monitor):
        for i in range(150):
            monitor.record(f"Query {i}", 10)

        assert monitor.stats().total_queries == 100
        assert len(monitor) == 100

    def test_wraparound_keeps_most_recent(self, monitor):
        for i in range(150):
            monitor.record(f"Query {i}", 10)

        recent = [event.query for event in monitor.stats().recent_queries]
        assert recent == [f"Query {i}" for i in range(140, 150)]

    def test_evicts_single_oldest(self, monitor):
        for i in range(101):
            monitor.record(f"Query {i}", i)

        # 1..100 remain; only "Query 0" was dropped
        assert monitor.stats().total_duration_ms == sum(range(1, 101))

    def test_custom_capacity(self):
        small = QueryMonitor(mode=MonitorMode.ENABLED, capacity=3)
        for i in range(5):
            small.record(f"Query {i}", 1)

        assert [event.query for event in small.stats().recent_queries] == ["Query 2", "Query 3", "Query 4"]

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            QueryMonitor(mode=MonitorMode.ENABLED, capacity=0)


class TestStats:
    def test_none_when_empty(self, monitor):
        assert monitor.stats() is None

    def test_total_queries(self, monitor):
        monitor.record("Query 1", 100)
        monitor.record("Query 2", 200)
        monitor.record("Query 3", 150)

        assert monitor.stats().total_queries == 3

    def test_average_duration(self, monitor):
        for duration in (100, 200, 300):
            monitor.record("Query", duration)

        assert monitor.stats().avg_duration_ms == 200

    def test_average_duration_rounding(self, monitor):
        monitor.record("Query 1", 100)
        monitor.record("Query 2", 150)

        assert monitor.stats().avg_duration_ms == 125

    def test_average_rounds_half_up(self, monitor):
        monitor.record("Query 1", 2)
        monitor.record("Query 2", 3)

        assert monitor.stats().avg_duration_ms == 3

    def test_slow_query_count(self, monitor):
        monitor.record("Fast query", 100)
        monitor.record("Slow query 1", 600)
        monitor.record("Slow query 2", 1000)

        assert monitor.stats().slow_queries == 2

    def test_slow_boundary(self, monitor):
        monitor.record("At threshold", 500)
        assert monitor.stats().slow_queries == 0

        monitor.record("Just over", 501)
        assert monitor.stats().slow_queries == 1

    def test_total_duration(self, monitor):
        for duration in (100, 200, 300):
            monitor.record("Query", duration)

        assert monitor.stats().total_duration_ms == 600

    def test_recent_queries_last_ten(self, monitor):
        for i in range(15):
            monitor.record(f"Query {i}", 100)

        recent = monitor.stats().recent_queries
        assert len(recent) == 10
        assert recent[0].query == "Query 5"
        assert recent[-1].query == "Query 14"

    def test_recent_queries_fewer_than_ten(self, monitor):
        for i in range(3):
            monitor.record(f"Query {i}", 100)

        assert len(monitor.stats().recent_queries) == 3

    def test_to_dict(self, monitor):
        monitor.record("SELECT 1", 12, 5)

        data = monitor.stats().to_dict()
        assert data["total_queries"] == 1
        assert data["recent_queries"][0]["query"] == "SELECT 1"
        assert isinstance(data["recent_queries"][0]["timestamp"], str)

    def test_stats_readable_when_disabled(self):
        query_monitor = QueryMonitor(mode=MonitorMode.DISABLED)
        assert query_monitor.stats() is None


class TestClear:
    def test_clear_empties_buffer(self, monitor):
        monitor.record("Query 1", 100)
        monitor.record("Query 2", 200)
        assert monitor.stats() is not None

        monitor.clear()

        assert monitor.stats() is None

    def test_record_after_clear(self, monitor):
        monitor.record("Query 1", 100)
        monitor.clear()
        monitor.record("Query 2", 100)

        assert monitor.stats().total_queries == 1

    def test_clear_when_disabled(self, disabled_monitor):
        disabled_monitor.clear()
        assert disabled_monitor.stats() is None


class TestSlowQueryWarning:
    def test_warns_on_long_duration(self, monitor, caplog):
        with caplog.at_level(logging.WARNING, logger="ru_monitor"):
            monitor.record("SELECT * FROM large_table", 1500, 50)

        records = [r for r in caplog.records if "Slow query detected" in r.getMessage()]
        assert len(records) == 1
        assert "1500ms" in records[0].getMessage()
        assert records[0].duration_ms == 1500

    def test_warns_on_high_rus(self, monitor, caplog):
        with caplog.at_level(logging.WARNING, logger="ru_monitor"):
            monitor.record("SELECT * FROM users", 500, 150)

        records = [r for r in caplog.records if "Slow query detected" in r.getMessage()]
        assert len(records) == 1
        assert records[0].estimated_rus == 150

    def test_unknown_rus_in_message(self, monitor, caplog):
        with caplog.at_level(logging.WARNING, logger="ru_monitor"):
            monitor.record("SELECT * FROM users", 1001)

        assert "estimated RUs: unknown" in caplog.text

    def test_no_warning_at_thresholds(self, monitor, caplog):
        with caplog.at_level(logging.WARNING, logger="ru_monitor"):
            monitor.record("SELECT * FROM users WHERE id = 1", 1000, 100)
            monitor.record("SELECT * FROM users WHERE id = 2", 50, 5)

        assert "Slow query detected" not in caplog.text

    def test_no_warning_when_disabled(self, disabled_monitor, caplog):
        with caplog.at_level(logging.WARNING, logger="ru_monitor"):
            disabled_monitor.record("SELECT pg_sleep(5)", 5000, 500)

        assert caplog.records == []


class TestConcurrency:
    def test_concurrent_records_respect_capacity(self, monitor):
        def worker(offset):
            for i in range(200):
                monitor.record(f"Query {offset}-{i}", 1)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = monitor.stats()
        assert stats.total_queries == 100
        assert stats.total_duration_ms == 100

    def test_stats_during_writes_never_exceeds_capacity(self, monitor):
        stop = threading.Event()
        observed = []

        def writer():
            i = 0
            while not stop.is_set():
                monitor.record(f"Query {i}", 1)
                i += 1

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            for _ in range(200):
                stats = monitor.stats()
                if stats is not None:
                    observed.append(stats.total_queries)
        finally:
            stop.set()
            thread.join()

        assert all(0 < total <= 100 for total in observed)
