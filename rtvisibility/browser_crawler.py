import asyncio
import logging
from dataclasses import dataclass

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright
from pydantic import ValidationError

from .correlator import correlate_records
from .instrumentation import GATHER_JS, widen_buffer_script
from .models import PageTimingSnapshot, SiteReport
from .report import assemble_page
from .session import PageSession, PageState
from .settings import CrawlConfig, ProxySettings
from .sites import normalize_site
from .storage import AppendOnlySink

LOGGER = logging.getLogger(__name__)


@dataclass
class PageOutcome:
    url: str
    state: PageState
    report: SiteReport | None = None
    error_type: str | None = None


def _shorten(url: str, limit: int = 80) -> str:
    return url if len(url) <= limit else url[: limit - 1] + "…"


class BrowserCrawler:
    """
    Visits sites one at a time in a single Playwright page and measures how
    many of each page's responses are visible through ResourceTiming.

    - One browser / context / page per context manager (__aenter__/__aexit__)
    - The buffer-widening script is installed before any page script runs
    - Only one PageSession is active at a time; late responses are dropped
    - A page that times out, fails analysis or cannot be written is abandoned
    - Both output streams are flushed after every reported page
    """

    def __init__(
        self,
        config: CrawlConfig,
        sites_sink: AppendOnlySink,
        urls_sink: AppendOnlySink,
        proxy: ProxySettings | None = None,
    ):
        self.config = config
        self.sites_sink = sites_sink
        self.urls_sink = urls_sink
        self.proxy = proxy

        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        self._session: PageSession | None = None

    async def __aenter__(self):
        self._playwright = await async_playwright().start()

        proxy_dict = None
        if self.proxy and self.config.use_proxy:
            proxy_dict = self.proxy.playwright_proxy()

        self._browser = await self._playwright.chromium.launch(
            headless=self.config.browser_headless,
            proxy=proxy_dict,
        )
        self._context = await self._browser.new_context(
            user_agent=self.config.user_agent,
            locale=self.config.browser_locale,
        )
        await self._context.add_init_script(widen_buffer_script(self.config.widened_buffer_size))

        self._page = await self._context.new_page()
        self._page.on("response", self._on_response)
        self._page.on("console", lambda msg: LOGGER.debug("Frame: %s", msg.text))
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._playwright:
            await self._playwright.stop()

    async def _on_response(self, response) -> None:
        session = self._session
        if session is None:
            return
        record = await session.on_response(response)
        if record is not None:
            print(
                "  ",
                _shorten(record.url),
                record.content_length,
                record.header_size,
                record.transfer_size,
                record.asset_type.value if record.asset_type else None,
            )

    async def crawl(self, sites: list[str]) -> list[PageOutcome]:
        outcomes = []
        for site in sites:
            outcomes.append(await self.crawl_site(site))
            await self._settle()
        reported = sum(1 for o in outcomes if o.state is PageState.REPORTED)
        print(f"Done: {reported}/{len(outcomes)} pages reported")
        return outcomes

    async def crawl_site(self, site: str) -> PageOutcome:
        url = normalize_site(site)
        session = PageSession(url, pixel_sizes=frozenset(self.config.pixel_byte_sizes))
        self._session = session
        print(url)

        try:
            session.transition(PageState.NAVIGATING)
            try:
                await self._page.goto(
                    url,
                    wait_until=self.config.wait_until,
                    timeout=self.config.navigation_timeout_ms,
                )
            except PlaywrightError as e:
                print("  Crawl timeout" if "Timeout" in type(e).__name__ else f"  Navigation failed: {e}")
                return self._abandon(session, type(e).__name__)

            session.transition(PageState.COLLECTING)
            print("  [done loading, gathering ResourceTiming...]")
            try:
                raw = await asyncio.wait_for(
                    self._page.evaluate(GATHER_JS, self.config.default_buffer_size),
                    timeout=self.config.gather_timeout_s,
                )
                snapshot = PageTimingSnapshot.model_validate(raw)
            except (asyncio.TimeoutError, PlaywrightError, ValidationError) as e:
                LOGGER.error("gathering ResourceTiming failed for %s: %s", url, e)
                return self._abandon(session, type(e).__name__)

            # closing the window: nothing after this point belongs to the page
            session.transition(PageState.CORRELATING)
            print("  [done gathering, analyzing...]")
            records = list(session.records)
            try:
                correlate_records(snapshot, records)
                session.transition(PageState.AGGREGATING)
                analysis = assemble_page(url, records, snapshot)
            except Exception as e:
                LOGGER.error("analysis failed for %s: %s", url, e)
                return self._abandon(session, type(e).__name__)

            if not self._persist(analysis.report.to_dict(), analysis.url_rows):
                return self._abandon(session, "SinkError")
            session.transition(PageState.REPORTED)
            print("  ", analysis.report.all.to_dict())
            return PageOutcome(url=url, state=session.state, report=analysis.report)
        finally:
            if self._session is session:
                self._session = None

    def _abandon(self, session: PageSession, error_type: str) -> PageOutcome:
        session.abandon(error_type)
        LOGGER.info("abandoned %s (%s)", session.url, error_type)
        return PageOutcome(url=session.url, state=session.state, error_type=error_type)

    def _persist(self, site_row: dict, url_rows: list[dict]) -> bool:
        """
        Site row first, flushed, then the URL rows. A page whose site row
        did not land gets no URL rows.
        """
        if not (self.sites_sink.append(site_row) and self.sites_sink.flush()):
            return False
        written = [self.urls_sink.append(row) for row in url_rows]
        return self.urls_sink.flush() and all(written)

    async def _settle(self) -> None:
        """Blank the page so unload beacons fire, then give them time to land."""
        try:
            await self._page.goto("about:blank", wait_until="load", timeout=self.config.blank_timeout_ms)
        except PlaywrightError as e:
            LOGGER.warning("about:blank navigation failed: %s", e)
        await asyncio.sleep(self.config.pause_between_pages_s)
