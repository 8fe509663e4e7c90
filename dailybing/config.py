"""
DailyBing configuration and command-line parsing.

Builds a frozen Config from command-line flags or a JSON config file,
validates the requested dates, and expands a start/end pair into the
ordered list of date keys the scheduler consumes.
"""

from __future__ import annotations

import argparse
import json
import os
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional


DEFAULT_HOST = "dailybing.com"
DEFAULT_LOCALE = "zh-cn"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
EARLIEST_DATE = "20210315"
DATE_FORMAT = "%Y%m%d"
WAIT_MODES = ("wait", "poll")

_DATE_RE = re.compile(r"^[0-9]{8}$")


@dataclass(frozen=True)
class Config:
    """Main application configuration."""
    output_folder: str
    start_date: str
    end_date: Optional[str] = None
    concurrent_downloads: int = 1
    timeout_sec: int = 30
    host: str = DEFAULT_HOST
    locale: str = DEFAULT_LOCALE
    user_agent: str = DEFAULT_USER_AGENT
    wait_mode: str = "wait"
    poll_interval: float = 0.2
    earliest_date: str = EARLIEST_DATE
    prune_alternates: bool = True
    create_overview: bool = False

    def page_url(self, date_key: str) -> str:
        return f"https://{self.host}/bing/{self.locale}/{date_key}.html"

    def download_url(self, date_key: str) -> str:
        return f"https://{self.host}/download/{date_key}/{self.locale}/UHD.html"

    def dates(self) -> list[str]:
        return date_range(self.start_date, self.end_date or self.start_date)


# =============================================================================
# DATE HANDLING
# =============================================================================

def parse_date_key(value: str) -> date:
    """
    Parse an 8-digit YYYYMMDD key into a calendar date.

    Raises:
        ValueError: If the value is not 8 digits or not a real date
    """
    if not _DATE_RE.match(value or ""):
        raise ValueError(f"date must be YYYYMMDD (e.g. 20260224), got {value!r}")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise ValueError(f"invalid date {value}") from None


def validate_date(value: str, earliest: str = EARLIEST_DATE, today: Optional[date] = None) -> str:
    """
    Check a date key is well formed and inside [earliest, today].

    Returns:
        The date key unchanged

    Raises:
        ValueError: On malformed or out-of-range dates
    """
    day = parse_date_key(value)
    if day < parse_date_key(earliest):
        raise ValueError(f"date {value} is earlier than the earliest allowed date {earliest}")
    today = today or date.today()
    if day > today:
        raise ValueError(f"date {value} is later than today {today.strftime(DATE_FORMAT)}")
    return value


def date_range(start: str, end: str) -> list[str]:
    """Inclusive, ascending list of date keys from start to end."""
    first = parse_date_key(start)
    last = parse_date_key(end)
    if first > last:
        raise ValueError(f"start date {start} is later than end date {end}")
    days = (last - first).days
    return [(first + timedelta(days=i)).strftime(DATE_FORMAT) for i in range(days + 1)]


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dailybing",
        description="Download the daily Bing story image for a date or a date range",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dailybing 20260224
  dailybing -d ./bing_images -j 5 20260201 20260228
  dailybing --config dailybing.json

Config file keys mirror the long option names:
  {
    "output": "bing_images",
    "start_date": "20260201",
    "end_date": "20260228",
    "concurrent_downloads": 5
  }
"""
    )

    p.add_argument("dates", nargs="*", metavar="YYYYMMDD",
                   help="Start date and optional end date (inclusive)")
    p.add_argument("--config", type=str, help="Path to JSON config file")
    p.add_argument("-d", "--output", dest="output_folder", type=str, default=None,
                   help="Output directory (default: current directory)")
    p.add_argument("-j", "--concurrent_downloads", type=int, default=1,
                   help="Number of dates fetched in parallel")
    p.add_argument("--timeout", dest="timeout_sec", type=int, default=30,
                   help="Request timeout in seconds")
    p.add_argument("--host", type=str, default=DEFAULT_HOST)
    p.add_argument("--locale", type=str, default=DEFAULT_LOCALE)
    p.add_argument("--user_agent", type=str, default=DEFAULT_USER_AGENT)
    p.add_argument("--poll", action="store_true",
                   help="Detect finished jobs by polling instead of waiting")
    p.add_argument("--poll_interval", type=float, default=0.2)
    p.add_argument("--keep_alternates", action="store_true",
                   help="Do not delete stale files for the same date")
    p.add_argument("--overview", action="store_true",
                   help="Write a JSON run report next to the output folder")
    return p


def parse_args(argv: Optional[list[str]] = None, today: Optional[date] = None) -> Config:
    """Parse command line arguments or JSON config file."""
    p = build_parser()
    args = p.parse_args(argv)

    data: dict = {}
    if args.config:
        try:
            with Path(args.config).open("r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            p.error(f"cannot read config file {args.config}: {e}")

    if len(args.dates) > 2:
        p.error("expected YYYYMMDD [YYYYMMDD]")
    if args.dates:
        start_date = args.dates[0]
        end_date = args.dates[1] if len(args.dates) == 2 else None
    else:
        start_date = data.get("start_date")
        end_date = data.get("end_date")
    if not start_date:
        p.error("a start date is required (YYYYMMDD)")

    wait_mode = "poll" if args.poll else data.get("wait_mode", "wait")
    if wait_mode not in WAIT_MODES:
        p.error(f"wait_mode must be one of {', '.join(WAIT_MODES)}")

    cfg = Config(
        output_folder=args.output_folder or data.get("output", os.getcwd()),
        start_date=str(start_date),
        end_date=str(end_date) if end_date else None,
        concurrent_downloads=data.get("concurrent_downloads", args.concurrent_downloads),
        timeout_sec=data.get("timeout", args.timeout_sec),
        host=data.get("host", args.host),
        locale=data.get("locale", args.locale),
        user_agent=data.get("user_agent", args.user_agent),
        wait_mode=wait_mode,
        poll_interval=data.get("poll_interval", args.poll_interval),
        earliest_date=data.get("earliest_date", EARLIEST_DATE),
        prune_alternates=data.get("prune_alternates", not args.keep_alternates),
        create_overview=data.get("create_overview", args.overview),
    )

    if not isinstance(cfg.concurrent_downloads, int) or cfg.concurrent_downloads < 1:
        p.error("concurrent_downloads must be a positive integer")

    try:
        validate_date(cfg.start_date, cfg.earliest_date, today)
        if cfg.end_date is not None:
            validate_date(cfg.end_date, cfg.earliest_date, today)
            if cfg.start_date > cfg.end_date:
                p.error("start date cannot be later than end date")
    except ValueError as e:
        p.error(str(e))

    try:
        os.makedirs(cfg.output_folder, exist_ok=True)
    except OSError as e:
        p.error(f"cannot create directory {cfg.output_folder}: {e}")

    return cfg
