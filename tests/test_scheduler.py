"""Tests for bounded concurrency, progress reporting and failure isolation in the scheduler."""

from __future__ import annotations

import threading
import time
from typing import List, Tuple

import pytest

from dailybing.job import JobOutcome, JobStatus
from dailybing.scheduler import ConcurrencyScheduler


class RecordingJob:
    """Job that tracks how many copies of itself run at once."""

    def __init__(self, delay: float = 0.05, fail: Tuple[str, ...] = (), boom: Tuple[str, ...] = ()) -> None:
        self.delay = delay
        self.fail = fail
        self.boom = boom
        self.active = 0
        self.max_active = 0
        self.started: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, date_key: str) -> JobOutcome:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            self.started.append(date_key)
        try:
            time.sleep(self.delay)
            if date_key in self.boom:
                raise RuntimeError("boom")
            if date_key in self.fail:
                return JobOutcome(date_key, JobStatus.FAILED, reason="HTTP 404")
            return JobOutcome(date_key, JobStatus.DOWNLOADED, size_bytes=1)
        finally:
            with self._lock:
                self.active -= 1


DATES = ["20260101", "20260102", "20260103"]


@pytest.mark.parametrize("wait_mode", ["wait", "poll"])
def test_three_dates_two_slots(wait_mode):
    job = RecordingJob(delay=0.1)
    progress: List[Tuple[int, int]] = []
    scheduler = ConcurrencyScheduler(job, limit=2, wait_mode=wait_mode, poll_interval=0.01,
                                     on_progress=lambda c, t: progress.append((c, t)))
    outcomes = scheduler.run(DATES)

    assert sorted(outcomes) == DATES
    assert job.max_active == 2
    assert scheduler.state.max_inflight == 2
    assert progress == [(1, 3), (2, 3), (3, 3)]


def test_slot_refilled_as_soon_as_one_finishes():
    release_slow = threading.Event()
    slow_busy_when_next_started = []

    def job(date_key: str) -> JobOutcome:
        if date_key == "next":
            slow_busy_when_next_started.append(not release_slow.is_set())
        if date_key == "slow":
            release_slow.wait(timeout=5)
        return JobOutcome(date_key, JobStatus.DOWNLOADED)

    def on_progress(completed: int, total: int) -> None:
        # The third job must start while "slow" still holds its slot
        if completed == 2:
            release_slow.set()

    outcomes = ConcurrencyScheduler(job, limit=2, on_progress=on_progress).run(["slow", "fast", "next"])
    assert len(outcomes) == 3
    assert slow_busy_when_next_started == [True]


def test_never_exceeds_limit_with_many_dates():
    job = RecordingJob(delay=0.01)
    dates = [f"202601{d:02d}" for d in range(1, 31)]
    outcomes = ConcurrencyScheduler(job, limit=4).run(dates)
    assert len(outcomes) == 30
    assert job.max_active <= 4


def test_limit_larger_than_dates():
    job = RecordingJob(delay=0.01)
    scheduler = ConcurrencyScheduler(job, limit=10)
    scheduler.run(DATES)
    assert scheduler.state.max_inflight == 3


def test_failures_and_exceptions_are_contained():
    job = RecordingJob(delay=0.01, fail=("20260101",), boom=("20260102",))
    progress = []
    outcomes = ConcurrencyScheduler(job, limit=1, on_progress=lambda c, t: progress.append(c)).run(DATES)

    assert outcomes["20260101"].status is JobStatus.FAILED
    assert outcomes["20260102"].status is JobStatus.FAILED
    assert "boom" in outcomes["20260102"].reason
    assert outcomes["20260103"].status is JobStatus.DOWNLOADED
    assert progress == [1, 2, 3]


def test_empty_date_list():
    assert ConcurrencyScheduler(RecordingJob(), limit=2).run([]) == {}


def test_rejects_bad_arguments():
    with pytest.raises(ValueError):
        ConcurrencyScheduler(RecordingJob(), limit=0)
    with pytest.raises(ValueError):
        ConcurrencyScheduler(RecordingJob(), limit=1, wait_mode="spin")
