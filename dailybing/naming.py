"""
Output file naming for one date.

Derives the canonical file name from a date key and optional title and
lists files already on disk for the same date under another name.
"""

from __future__ import annotations

import fnmatch
import os
import re
from dataclasses import dataclass, field
from typing import Optional


IMAGE_EXT = ".jpg"
STAGING_SUFFIX = ".tmp"

_ILLEGAL_CHARS_RE = re.compile(r'[/\\:*?"<>|]')


def sanitize_title(title: Optional[str]) -> str:
    """
    Clean a title for filesystem compatibility.

    Each of / \\ : * ? " < > | becomes a hyphen; leading and trailing
    hyphens and whitespace are trimmed.
    """
    if not title:
        return ""
    return _ILLEGAL_CHARS_RE.sub("-", title).strip().strip("-").strip()


def filename_for(date_key: str, title: Optional[str]) -> str:
    safe_title = sanitize_title(title)
    if safe_title:
        return f"{date_key}@{safe_title}{IMAGE_EXT}"
    return f"{date_key}{IMAGE_EXT}"


def _scan(directory: str, bare: str, pattern: str) -> list[str]:
    matches = []
    try:
        with os.scandir(directory) as it:
            for entry in it:
                if not entry.is_file():
                    continue
                if entry.name == bare or fnmatch.fnmatchcase(entry.name, pattern):
                    matches.append(entry.name)
    except FileNotFoundError:
        return []
    return sorted(matches)


def find_date_files(directory: str, date_key: str) -> list[str]:
    """Non-recursive scan for {date}@*.jpg and {date}.jpg, sorted by name."""
    return _scan(directory, f"{date_key}{IMAGE_EXT}", f"{date_key}@*{IMAGE_EXT}")


def find_staging_files(directory: str, date_key: str) -> list[str]:
    """Leftover staging files for the date under any title, sorted by name."""
    suffix = IMAGE_EXT + STAGING_SUFFIX
    return _scan(directory, f"{date_key}{suffix}", f"{date_key}@*{suffix}")


@dataclass(frozen=True)
class FilePlan:
    """Where one date's image goes, and what else is on disk for that date."""
    date: str
    title: str
    final_path: str
    staging_path: str
    existing_alternate_paths: tuple[str, ...] = field(default_factory=tuple)
    stale_staging_paths: tuple[str, ...] = field(default_factory=tuple)

    @property
    def filename(self) -> str:
        return os.path.basename(self.final_path)


class FilenamePlanner:
    """Compute a FilePlan; the only filesystem access is a read-only directory scan."""

    def plan(self, date_key: str, title: Optional[str], directory: str) -> FilePlan:
        filename = filename_for(date_key, title)
        final_path = os.path.join(directory, filename)
        alternates = tuple(
            os.path.join(directory, name)
            for name in find_date_files(directory, date_key)
            if name != filename
        )
        staging_path = final_path + STAGING_SUFFIX
        stale_staging = tuple(
            os.path.join(directory, name)
            for name in find_staging_files(directory, date_key)
            if os.path.join(directory, name) != staging_path
        )
        return FilePlan(
            date=date_key,
            title=title or "",
            final_path=final_path,
            staging_path=staging_path,
            existing_alternate_paths=alternates,
            stale_staging_paths=stale_staging,
        )
