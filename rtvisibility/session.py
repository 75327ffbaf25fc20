"""
Per-page session: owns the active window in which responses are collected.

A session moves Idle -> Navigating -> Collecting -> Correlating ->
Aggregating -> Reported, or to Abandoned from any non-terminal stage after
Idle. Responses are accepted only while Navigating or Collecting, so events
that arrive (or finish reading their body) after the window closed are
dropped instead of leaking into the page's report or the next page.
"""

import logging
from enum import Enum
from urllib.parse import urljoin, urlparse

from playwright.async_api import Error as PlaywrightError

from .classifier import PIXEL_BYTE_SIZES, classify_asset
from .models import ResponseRecord

LOGGER = logging.getLogger(__name__)

REDIRECT_STATUSES = {301, 302}


class PageState(str, Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    COLLECTING = "collecting"
    CORRELATING = "correlating"
    AGGREGATING = "aggregating"
    REPORTED = "reported"
    ABANDONED = "abandoned"


_TRANSITIONS = {
    PageState.IDLE: {PageState.NAVIGATING},
    PageState.NAVIGATING: {PageState.COLLECTING, PageState.ABANDONED},
    PageState.COLLECTING: {PageState.CORRELATING, PageState.ABANDONED},
    PageState.CORRELATING: {PageState.AGGREGATING, PageState.ABANDONED},
    PageState.AGGREGATING: {PageState.REPORTED, PageState.ABANDONED},
    PageState.REPORTED: set(),
    PageState.ABANDONED: set(),
}

_ACCEPTING = {PageState.NAVIGATING, PageState.COLLECTING}


def header_size(headers: dict[str, str]) -> int:
    """Length of the headers serialized as `name: value\\n` lines."""
    return sum(len(f"{name}: {value}\n") for name, value in headers.items())


def host_of(url: str) -> str:
    return urlparse(url).netloc.rsplit("@", 1)[-1]


def declared_length(headers: dict[str, str]) -> int | None:
    raw = headers.get("content-length")
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


async def build_record(response, headers: dict[str, str], pixel_sizes=PIXEL_BYTE_SIZES) -> ResponseRecord:
    """
    Turn a completed response into a ResponseRecord. When no positive
    Content-Length is declared the body is read; if that fails the length
    is 0 and the record is kept.
    """
    url = response.url
    content_length = declared_length(headers)
    if content_length is None:
        try:
            content_length = len(await response.body())
        except PlaywrightError as e:
            LOGGER.debug("body unavailable for %s: %s", url, e)
            content_length = 0

    content_type = headers.get("content-type")
    asset_type = classify_asset(url, content_type, content_length, pixel_sizes)
    if asset_type is None:
        LOGGER.debug("No asset type for %s", url)

    return ResponseRecord(
        url=url,
        content_length=content_length,
        content_type=content_type,
        content_encoding=headers.get("content-encoding"),
        header_size=header_size(headers),
        asset_type=asset_type,
        host=host_of(url),
    )


class PageSession:
    def __init__(self, url: str, pixel_sizes=PIXEL_BYTE_SIZES):
        self.url = url
        self.current_url = url
        self.pixel_sizes = pixel_sizes
        self.state = PageState.IDLE
        self.records: list[ResponseRecord] = []
        self.error_type: str | None = None

    @property
    def accepting(self) -> bool:
        return self.state in _ACCEPTING

    def transition(self, new_state: PageState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise ValueError(f"illegal page transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def abandon(self, error_type: str) -> None:
        """Close the window and drop everything collected for this page."""
        self.transition(PageState.ABANDONED)
        self.error_type = error_type
        self.records = []

    def is_self_navigation(self, url: str) -> bool:
        return url == self.current_url or url == self.current_url + "/"

    async def on_response(self, response) -> ResponseRecord | None:
        """
        Handle one response event. Returns the collected record, or None
        when the response was filtered out or arrived outside the window.
        """
        if not self.accepting:
            return None

        url = response.url
        status = response.status

        if self.is_self_navigation(url):
            if status in REDIRECT_STATUSES:
                headers = await response.all_headers()
                location = headers.get("location")
                if location:
                    # follow the document so its redirect target is skipped too
                    self.current_url = urljoin(url, location)
                    print(f"  -> redirect to {self.current_url}")
            return None

        if status in REDIRECT_STATUSES:
            return None

        if not url.startswith(("http://", "https://")):
            return None

        headers = await response.all_headers()
        record = await build_record(response, headers, self.pixel_sizes)

        if not self.accepting:
            LOGGER.debug("dropping %s, page window already closed", url)
            return None

        self.records.append(record)
        return record
