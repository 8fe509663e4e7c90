"""
Bounded-concurrency scheduler for per-date jobs.

Keeps min(limit, remaining) jobs in flight on a thread pool and refills a
slot as soon as any job finishes. Finished jobs are detected either by
waiting on the first completed future or by polling the slot table at a
fixed interval; both give the same results.

All bookkeeping (slot table, counters, outcomes) lives in a SchedulerState
owned by the single control loop in run(); worker threads never touch it.
"""

from __future__ import annotations

import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from .job import JobOutcome, JobStatus


ProgressCallback = Callable[[int, int], None]
JobFn = Callable[[str], JobOutcome]


@dataclass
class SchedulerState:
    """Bookkeeping for one scheduler run."""
    total: int
    inflight: dict[Future, str] = field(default_factory=dict)
    completed: int = 0
    next_index: int = 0
    outcomes: dict[str, JobOutcome] = field(default_factory=dict)
    max_inflight: int = 0

    @property
    def remaining(self) -> int:
        return self.total - self.next_index


class ConcurrencyScheduler:
    """
    Run one job per date with at most `limit` jobs at a time.

    Args:
        job: Callable mapping a date key to its JobOutcome
        limit: Maximum number of jobs in flight (>= 1)
        wait_mode: "wait" (wake on any completion) or "poll"
        poll_interval: Seconds between liveness checks in poll mode
        on_progress: Called with (completed, total) after every completion
    """

    def __init__(
        self,
        job: JobFn,
        limit: int,
        wait_mode: str = "wait",
        poll_interval: float = 0.2,
        on_progress: Optional[ProgressCallback] = None,
    ):
        if limit < 1:
            raise ValueError(f"concurrency limit must be positive, got {limit}")
        if wait_mode not in ("wait", "poll"):
            raise ValueError(f"unknown wait_mode {wait_mode!r}")
        self.job = job
        self.limit = limit
        self.wait_mode = wait_mode
        self.poll_interval = poll_interval
        self.on_progress = on_progress
        self.state: Optional[SchedulerState] = None

    def run(self, dates: Sequence[str]) -> dict[str, JobOutcome]:
        state = SchedulerState(total=len(dates))
        self.state = state
        if state.total == 0:
            return state.outcomes

        with ThreadPoolExecutor(max_workers=min(self.limit, state.total),
                                thread_name_prefix="dailybing") as pool:
            while state.completed < state.total:
                self._fill(pool, dates, state)
                for fut in self._wait_any(state):
                    self._collect(fut, state)

        return state.outcomes

    def _fill(self, pool: ThreadPoolExecutor, dates: Sequence[str], state: SchedulerState) -> None:
        while len(state.inflight) < self.limit and state.next_index < state.total:
            date_key = dates[state.next_index]
            state.inflight[pool.submit(self.job, date_key)] = date_key
            state.next_index += 1
        state.max_inflight = max(state.max_inflight, len(state.inflight))

    def _wait_any(self, state: SchedulerState) -> list[Future]:
        """Block until at least one in-flight job is done; return the finished ones."""
        if self.wait_mode == "wait":
            done, _ = wait(list(state.inflight), return_when=FIRST_COMPLETED)
            return list(done)
        while True:
            done = [fut for fut in state.inflight if fut.done()]
            if done:
                return done
            time.sleep(self.poll_interval)

    def _collect(self, fut: Future, state: SchedulerState) -> None:
        date_key = state.inflight.pop(fut)
        try:
            outcome = fut.result()
        except Exception as e:
            outcome = JobOutcome(date_key, JobStatus.FAILED, reason=f"Error: {e}")
        state.outcomes[date_key] = outcome
        state.completed += 1
        if self.on_progress is not None:
            self.on_progress(state.completed, state.total)
