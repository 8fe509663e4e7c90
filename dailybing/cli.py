#!/usr/bin/env python3
"""
DailyBing Archive Fetcher

Downloads the daily Bing story image and its title for one date or an
inclusive date range into a local directory.

Features:
- Bounded parallelism across dates (-j)
- Skips dates already on disk, renames older files to the current title
- Resumable downloads through a staging file, promoted atomically
- Optional JSON run overview (--overview)
"""

from __future__ import annotations

import json
import time
from collections import Counter
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from .config import Config, parse_args
from .job import DateFetchJob, JobOutcome, JobStatus
from .scheduler import ConcurrencyScheduler


def run_dates(cfg: Config, dates: list[str], job: Optional[DateFetchJob] = None) -> dict[str, JobOutcome]:
    """Fetch every date with a progress bar; returns the outcome per date."""
    job = job or DateFetchJob(cfg)
    pbar = tqdm(total=len(dates), desc="Progress", unit="day")

    def on_progress(completed: int, total: int) -> None:
        pbar.n = completed
        pbar.refresh()

    scheduler = ConcurrencyScheduler(
        job=job,
        limit=cfg.concurrent_downloads,
        wait_mode=cfg.wait_mode,
        poll_interval=cfg.poll_interval,
        on_progress=on_progress,
    )
    try:
        return scheduler.run(dates)
    finally:
        pbar.close()


def write_overview(
    cfg: Config,
    dates: list[str],
    outcomes: dict[str, JobOutcome],
    elapsed_sec: float,
) -> str:
    """Write JSON overview report."""
    status_counter = Counter(o.status.value for o in outcomes.values())
    downloaded = [o for o in outcomes.values() if o.status is JobStatus.DOWNLOADED]
    total_bytes = sum(o.size_bytes for o in downloaded)

    report = {
        "script_inputs": {
            "output_folder": cfg.output_folder,
            "start_date": dates[0] if dates else None,
            "end_date": dates[-1] if dates else None,
            "concurrent_downloads": cfg.concurrent_downloads,
            "host": cfg.host,
            "locale": cfg.locale,
        },
        "summary": {
            "total_dates": len(dates),
            "completed": len(outcomes),
            "downloaded_mb": round(total_bytes / 1e6, 3),
            "elapsed_sec": round(elapsed_sec, 3),
            **{status.value: status_counter.get(status.value, 0) for status in JobStatus},
        },
        "failures": [
            {"date": o.date, "reason": o.reason}
            for o in sorted(outcomes.values(), key=lambda o: o.date)
            if o.status is JobStatus.FAILED
        ],
        "timestamp_local": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime()),
    }

    out = Path(cfg.output_folder).resolve()
    overview_path = out.with_name(out.name + "_overview.json")

    with overview_path.open("w") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)

    return str(overview_path)


def print_summary(dates: list[str], outcomes: dict[str, JobOutcome], elapsed: float) -> None:
    counts = Counter(o.status for o in outcomes.values())
    total_mb = sum(o.size_bytes for o in outcomes.values()
                   if o.status is JobStatus.DOWNLOADED) / 1e6

    print("\n" + "=" * 72)
    print("FINAL SUMMARY")
    print("=" * 72)
    print(f"Completed:             {len(outcomes)}/{len(dates)}")
    print(f"Downloaded:            {counts[JobStatus.DOWNLOADED]}")
    print(f"Renamed:               {counts[JobStatus.RENAMED]}")
    print(f"Skipped (exists):      {counts[JobStatus.SKIPPED]}")
    print(f"Failed:                {counts[JobStatus.FAILED]}")
    print(f"Total downloaded:      {total_mb:.2f} MB")
    print(f"Elapsed time:          {elapsed:.2f}s")
    failed = sorted(d for d, o in outcomes.items() if o.status is JobStatus.FAILED)
    if failed:
        print(f"Failed dates:          {', '.join(failed)}")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    cfg = parse_args(argv)
    dates = cfg.dates()

    print("=" * 72)
    print("DailyBing Archive Fetcher")
    print("=" * 72)
    if len(dates) == 1:
        print(f"[Run] Single date {dates[0]} -> {cfg.output_folder}")
    else:
        print(f"[Run] Dates {dates[0]} to {dates[-1]} -> {cfg.output_folder}")
    print(f"[Run] {len(dates)} date(s) to process, concurrency {cfg.concurrent_downloads}")
    if cfg.wait_mode == "poll":
        print(f"[Run] Polling for finished jobs every {cfg.poll_interval}s")

    start = time.monotonic()
    outcomes = run_dates(cfg, dates)
    elapsed = time.monotonic() - start

    print_summary(dates, outcomes, elapsed)

    if cfg.create_overview:
        try:
            overview = write_overview(cfg, dates, outcomes, elapsed)
            print(f"[Report] Overview: {overview}")
        except OSError as e:
            print(f"[Report] Failed: {e}")

    print("=" * 72)
    print("All jobs finished!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
