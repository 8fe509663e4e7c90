"""
Title extraction for a date's story page.

The page is parsed with BeautifulSoup and handed to an ordered list of
extractors; the first non-empty result wins. A page fetch that fails is
retried by the next extractor in line, and never raises.
"""

from __future__ import annotations

import html
import re
from html.entities import html5
from typing import Callable, Optional

import requests
from bs4 import BeautifulSoup

from .single_download import get_session


# Entity references that survived parsing (double-encoded in the page); the
# semicolon is required so bare "&word" text is left alone
_ENTITY_RE = re.compile(r"&(?:#[0-9]+|#[xX][0-9a-fA-F]+|[A-Za-z][A-Za-z0-9]*);")

# Trailing attribution such as " (© Designpics/Adobe Stock)"
_TRAILING_PAREN_RE = re.compile(r"\s*(\([^()]*\)|（[^（）]*）)\s*$")


def _decode_reference(match: re.Match) -> str:
    ref = match.group(0)
    if ref[1] == "#" or ref[1:] in html5:
        return html.unescape(ref)
    return ref


def decode_entities(text: str) -> str:
    """Decode complete entity references; non-breaking spaces become plain spaces."""
    decoded = _ENTITY_RE.sub(_decode_reference, text)
    return decoded.replace("\xa0", " ").strip()


def strip_trailing_parenthetical(text: str) -> str:
    """Drop a trailing parenthetical group, keeping the original if nothing is left."""
    stripped = _TRAILING_PAREN_RE.sub("", text)
    return stripped if stripped.strip() else text


def _first_text(soup: BeautifulSoup, selector: str) -> str:
    for node in soup.select(selector):
        text = node.get_text().strip()
        if text:
            return text
    return ""


def from_copyright(soup: BeautifulSoup) -> str:
    text = _first_text(soup, ".copyright a")
    return strip_trailing_parenthetical(text) if text else ""


def from_title(soup: BeautifulSoup) -> str:
    return _first_text(soup, ".title")


def from_story_title(soup: BeautifulSoup) -> str:
    return _first_text(soup, ".story-title strong, .story-title b")


Extractor = Callable[[BeautifulSoup], str]

EXTRACTORS: tuple[tuple[str, Extractor], ...] = (
    ("copyright", from_copyright),
    ("title", from_title),
    ("story-title", from_story_title),
)


class TitleResolver:
    """Resolve a human-readable title for a date key, or "" when none is found."""

    def __init__(
        self,
        page_url: Callable[[str], str],
        user_agent: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
        extractors: tuple[tuple[str, Extractor], ...] = EXTRACTORS,
    ):
        self.page_url = page_url
        self.user_agent = user_agent
        self.timeout = timeout
        self.extractors = extractors
        self._session = session

    @property
    def session(self) -> requests.Session:
        return self._session if self._session is not None else get_session()

    def fetch_page(self, date_key: str) -> Optional[BeautifulSoup]:
        """Fetch and parse the date's page; None on any transport or status failure."""
        try:
            resp = self.session.get(
                self.page_url(date_key),
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException:
            return None
        try:
            if resp.status_code != 200 or not resp.text:
                return None
            return BeautifulSoup(resp.text, "html.parser")
        finally:
            resp.close()

    def resolve(self, date_key: str) -> str:
        soup = None
        for _name, extract in self.extractors:
            if soup is None:
                soup = self.fetch_page(date_key)
            if soup is None:
                continue
            candidate = extract(soup).strip()
            if candidate:
                return decode_entities(candidate)
        return ""
