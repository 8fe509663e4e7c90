"""
Per-date unit of work.

Resolve the title, plan the file name, then skip, rename an older file
for the same date, or download. Every per-date error ends up in the
returned JobOutcome; run() does not raise for them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tqdm import tqdm

from .config import Config
from .naming import FilenamePlanner, FilePlan
from .single_download import DownloadTask
from .titles import TitleResolver


class JobStatus(Enum):
    SKIPPED = "skipped"
    RENAMED = "renamed"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass
class JobOutcome:
    """Terminal result for one date."""
    date: str
    status: JobStatus
    reason: Optional[str] = None
    path: Optional[str] = None
    size_bytes: int = 0

    @property
    def ok(self) -> bool:
        return self.status is not JobStatus.FAILED


def _human_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes}B"
    size = num_bytes / 1024
    for unit in ("K", "M"):
        if size < 1024:
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}G"


class DateFetchJob:
    """Compose TitleResolver, FilenamePlanner and DownloadTask for one date."""

    def __init__(
        self,
        cfg: Config,
        resolver: Optional[TitleResolver] = None,
        planner: Optional[FilenamePlanner] = None,
        downloader: Optional[DownloadTask] = None,
    ):
        self.cfg = cfg
        self.resolver = resolver or TitleResolver(
            page_url=cfg.page_url,
            user_agent=cfg.user_agent,
            timeout=cfg.timeout_sec,
        )
        self.planner = planner or FilenamePlanner()
        self.downloader = downloader or DownloadTask(timeout=cfg.timeout_sec)

    def _say(self, date_key: str, msg: str) -> None:
        tqdm.write(f"[{date_key}] {msg}")

    def __call__(self, date_key: str) -> JobOutcome:
        return self.run(date_key)

    def run(self, date_key: str) -> JobOutcome:
        self._say(date_key, "resolving title...")
        title = self.resolver.resolve(date_key)
        if title:
            self._say(date_key, f"title: {title}")
        else:
            self._say(date_key, "warning: no title found, using the date as file name")

        plan = self.planner.plan(date_key, title, self.cfg.output_folder)
        outcome = self._materialize(plan)
        self._clear_stale_staging(plan)
        return outcome

    def _materialize(self, plan: FilePlan) -> JobOutcome:
        if os.path.isfile(plan.final_path):
            self._say(plan.date, f"exists, skipping: {plan.filename}")
            self._prune(plan, plan.existing_alternate_paths)
            return JobOutcome(plan.date, JobStatus.SKIPPED, reason="exists", path=plan.final_path,
                              size_bytes=os.path.getsize(plan.final_path))

        if plan.existing_alternate_paths:
            outcome = self._try_rename(plan)
            if outcome is not None:
                return outcome

        return self._download(plan)

    def _clear_stale_staging(self, plan: FilePlan) -> None:
        """Staging files left under another title are never resumed; remove them."""
        for path in plan.stale_staging_paths:
            try:
                os.remove(path)
                self._say(plan.date, f"removed stale partial download {os.path.basename(path)}")
            except FileNotFoundError:
                pass
            except OSError as e:
                self._say(plan.date, f"could not remove {os.path.basename(path)}: {e}")

    def _try_rename(self, plan: FilePlan) -> Optional[JobOutcome]:
        """Rename the first alternate onto the final path; None means fall through to download."""
        old = plan.existing_alternate_paths[0]
        self._say(plan.date, f"found {os.path.basename(old)}, renaming to {plan.filename}")
        try:
            os.replace(old, plan.final_path)
        except OSError as e:
            self._say(plan.date, f"rename failed ({e}), downloading instead")
            return None
        self._say(plan.date, "renamed, skipping download")
        self._prune(plan, plan.existing_alternate_paths[1:])
        return JobOutcome(plan.date, JobStatus.RENAMED, path=plan.final_path,
                          size_bytes=os.path.getsize(plan.final_path))

    def _prune(self, plan: FilePlan, stale: tuple[str, ...]) -> None:
        if not self.cfg.prune_alternates:
            return
        for path in stale:
            try:
                os.remove(path)
                self._say(plan.date, f"removed duplicate {os.path.basename(path)}")
            except OSError as e:
                self._say(plan.date, f"could not remove duplicate {os.path.basename(path)}: {e}")

    def _download(self, plan: FilePlan) -> JobOutcome:
        if os.path.isfile(plan.staging_path):
            self._say(plan.date, "found unfinished download, resuming...")
        self._say(plan.date, f"downloading -> {plan.filename}")

        result = self.downloader.run(
            source_url=self.cfg.download_url(plan.date),
            referer=self.cfg.page_url(plan.date),
            user_agent=self.cfg.user_agent,
            staging_path=plan.staging_path,
            final_path=plan.final_path,
        )
        if not result.success:
            self._say(plan.date, f"download failed: {result.error}")
            return JobOutcome(plan.date, JobStatus.FAILED, reason=result.error)

        self._say(plan.date, f"downloaded ({_human_size(result.size_bytes)})")
        self._prune(plan, plan.existing_alternate_paths)
        return JobOutcome(plan.date, JobStatus.DOWNLOADED, path=plan.final_path,
                          size_bytes=result.size_bytes)
