"""
DailyBing Single Download Module

Resumable download of one image into a staging file, promoted atomically
to its final path on success.

This module is used by job.py and provides:
- get_session(): Thread-local HTTP session (no transport-level retries)
- DownloadTask: Resume-or-restart fetch, empty-body check, atomic rename
- DownloadResult: Outcome of one download attempt
"""

from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from tqdm import tqdm


CHUNK_SIZE = 64 * 1024
_CONTENT_RANGE_RE = re.compile(r"^\s*bytes\s+(\d+)-\d+/(?:\d+|\*)\s*$")

# Thread-local storage for per-thread HTTP sessions
_thread_local = threading.local()


def get_session() -> requests.Session:
    """Get or create thread-local HTTP session."""
    if not hasattr(_thread_local, 'session'):
        _thread_local.session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=4,
            pool_maxsize=4,
            max_retries=0,  # A failed date is reported, not retried
        )
        _thread_local.session.mount('http://', adapter)
        _thread_local.session.mount('https://', adapter)
    return _thread_local.session


def _status_error(status_code: int) -> str:
    try:
        status_name = HTTPStatus(status_code).phrase
    except ValueError:
        status_name = "Unknown"
    return f"HTTP {status_code}: {status_name}"


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        tqdm.write(f"[Cleanup] Could not remove {path}: {e}")


def _range_start(content_range: Optional[str]) -> Optional[int]:
    """First byte position of a "bytes START-END/TOTAL" header, or None."""
    match = _CONTENT_RANGE_RE.match(content_range or "")
    return int(match.group(1)) if match else None


@dataclass
class DownloadResult:
    """Result of a single download attempt."""
    success: bool
    size_bytes: int = 0
    resumed: bool = False
    status_code: Optional[int] = None
    error: Optional[str] = None


class DownloadTask:
    """
    Fetch one URL into a staging file and promote it to the final path.

    A staging file left behind by an aborted run is resumed with a byte
    Range request. Any failure removes the staging file; nothing is raised.
    """

    def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._session = session

    @property
    def session(self) -> requests.Session:
        return self._session if self._session is not None else get_session()

    def run(
        self,
        source_url: str,
        referer: str,
        user_agent: str,
        staging_path: str,
        final_path: str,
    ) -> DownloadResult:
        """
        Download source_url to final_path via staging_path.

        Args:
            source_url: Image URL
            referer: Referer header value (the date's page)
            user_agent: User-Agent header value
            staging_path: Transient write target
            final_path: Visible destination, written only by rename

        Returns:
            DownloadResult; success is True only once final_path exists
        """
        headers = {"Referer": referer, "User-Agent": user_agent}

        offset = 0
        if os.path.isfile(staging_path):
            offset = os.path.getsize(staging_path)
        if offset > 0:
            headers["Range"] = f"bytes={offset}-"

        result = self._fetch(source_url, headers, staging_path, offset)

        if result.success:
            try:
                size = os.path.getsize(staging_path)
            except OSError:
                size = 0
            if size == 0:
                result = DownloadResult(False, status_code=result.status_code, error="Empty response")
            else:
                try:
                    os.replace(staging_path, final_path)
                    result.size_bytes = size
                except OSError as e:
                    result = DownloadResult(False, status_code=result.status_code,
                                            error=f"Save error: {e}")

        if not result.success:
            _remove_quietly(staging_path)
        return result

    def _fetch(self, url: str, headers: dict, staging_path: str, offset: int) -> DownloadResult:
        status_code = None
        try:
            with self.session.get(url, headers=headers, stream=True, timeout=self.timeout) as resp:
                status_code = resp.status_code

                if status_code == 416 and offset > 0:
                    # Staging file already holds the whole body
                    return DownloadResult(True, resumed=True, status_code=status_code)
                if status_code >= 400:
                    return DownloadResult(False, status_code=status_code,
                                          error=_status_error(status_code))

                resumed = False
                if status_code == 206:
                    start = _range_start(resp.headers.get("Content-Range"))
                    # A range from 0 is a full body; any other start must continue the file
                    if start not in (0, offset):
                        return DownloadResult(False, status_code=status_code,
                                              error=f"Range mismatch: expected {offset}, got {start}")
                    resumed = offset > 0 and start == offset
                mode = "ab" if resumed else "wb"
                with open(staging_path, mode) as f:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                return DownloadResult(True, resumed=resumed, status_code=status_code)

        except requests.exceptions.Timeout:
            return DownloadResult(False, status_code=status_code, error="Timeout")
        except requests.exceptions.ConnectionError as e:
            return DownloadResult(False, status_code=status_code, error=f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            return DownloadResult(False, status_code=status_code, error=f"Error: {e}")
        except OSError as e:
            return DownloadResult(False, status_code=status_code, error=f"Save error: {e}")
