"""
Tests for run-tagged logging.
"""

import logging
import threading

from fantasy_corps.utils.logging_config import (
    RunContextFilter,
    bind_run_context,
    run_context,
)
from fantasy_corps.utils.performance import PerformanceMonitor


def make_record():
    return logging.LogRecord("test", logging.INFO, __file__, 1, "message", None, None)


def tags():
    record = make_record()
    RunContextFilter().filter(record)
    return record.season, record.day


class TestRunContext:
    def test_records_tagged_inside_run(self):
        record = make_record()
        with run_context("season_1", 12):
            RunContextFilter().filter(record)
        assert (record.season, record.day) == ("season_1", 12)

    def test_context_restored_after_run(self):
        with run_context("season_1", 12):
            pass
        assert tags() == ("-", "-")

    def test_worker_threads_bind_their_own_context(self):
        seen = []

        def work():
            bind_run_context("season_2", 30)
            seen.append(tags())

        thread = threading.Thread(target=work)
        thread.start()
        thread.join()

        assert seen == [("season_2", 30)]
        assert tags() == ("-", "-")


class TestPerformanceMonitor:
    def test_metrics_collected(self):
        metrics = []
        with PerformanceMonitor("load snapshots", metrics=metrics):
            pass
        assert metrics[0]["operation"] == "load snapshots"
        assert metrics[0]["success"]
