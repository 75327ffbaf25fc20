import asyncio

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from fakes import FakeResponse, ListSink
from rtvisibility.browser_crawler import BrowserCrawler
from rtvisibility.models import Visibility
from rtvisibility.report import assemble_page
from rtvisibility.session import PageState
from rtvisibility.settings import CrawlConfig


class FakePage:
    """
    Replays responses through the crawler's handler while "navigating",
    then returns a canned snapshot from evaluate().
    """

    def __init__(self, crawler, responses=(), snapshot=None, goto_error=None, late_responses=(),
                 evaluate_delay_s=0.0, after_load=None):
        self.crawler = crawler
        self.responses = list(responses)
        self.snapshot = snapshot if snapshot is not None else {"resources": []}
        self.goto_error = goto_error
        self.late_responses = list(late_responses)
        self.visited = []
        self.evaluate_delay_s = evaluate_delay_s
        self.after_load = after_load

    async def goto(self, url, **kwargs):
        self.visited.append(url)
        if url == "about:blank":
            for resp in self.late_responses:
                await self.crawler._on_response(resp)
            return None
        for resp in self.responses:
            await self.crawler._on_response(resp)
        if self.goto_error:
            raise self.goto_error
        if self.after_load:
            self.after_load(self.crawler._session)
        return None

    async def evaluate(self, script, arg=None):
        if self.evaluate_delay_s:
            await asyncio.sleep(self.evaluate_delay_s)
        return self.snapshot


def make_crawler(sites_sink=None, urls_sink=None, config=None, **page_kwargs):
    config = config or CrawlConfig(pause_between_pages_s=0)
    sites_sink = sites_sink or ListSink()
    urls_sink = urls_sink or ListSink()
    crawler = BrowserCrawler(config, sites_sink, urls_sink)
    crawler._page = FakePage(crawler, **page_kwargs)
    return crawler, sites_sink, urls_sink


RESPONSES = [
    FakeResponse("http://example.com/", headers={"content-type": "text/html"}),
    FakeResponse("https://cdn.example.com/app.js", headers={"content-type": "text/javascript", "content-length": "80"}),
    FakeResponse("https://fonts.example.net/a.woff2", headers={"content-type": "font/woff2", "content-length": "80"}),
    FakeResponse("https://t.example.org/px", headers={"content-type": "application/octet-stream", "content-length": "43"}),
]

SNAPSHOT = {
    "resources": [
        {"name": "https://cdn.example.com/app.js", "responseStart": 12.0, "frameDepth": 0},
        {"name": "https://fonts.example.net/a.woff2", "responseStart": 0, "noTao": True, "frameDepth": 0},
    ],
    "bufferSize": 150,
    "exceededDefaultBuffer": False,
    "mainFrameEntries": 2,
}


def test_reported_page_writes_both_streams():
    crawler, sites_sink, urls_sink = make_crawler(responses=RESPONSES, snapshot=SNAPSHOT)
    outcome = asyncio.run(crawler.crawl_site("example.com"))

    assert outcome.state is PageState.REPORTED
    assert outcome.url == "http://example.com/"
    assert len(sites_sink.rows) == 1
    site_row = sites_sink.rows[0]
    assert site_row["all"]["totalEntries"] == 3
    assert site_row["all"]["visibleEntries"] == 1
    assert site_row["all"]["noTaoEntries"] == 1
    assert site_row["all"]["missingEntries"] == 1
    assert site_row["pixel"]["missingEntries"] == 1
    assert site_row["mainFrameEntries"] == 2

    assert [r["site"] for r in urls_sink.rows] == ["http://example.com/"] * 3
    assert sites_sink.flushes == 1 and urls_sink.flushes == 1


def test_navigation_timeout_abandons_page():
    crawler, sites_sink, urls_sink = make_crawler(
        responses=RESPONSES, goto_error=PlaywrightTimeoutError("Timeout 30000ms exceeded"),
    )
    outcome = asyncio.run(crawler.crawl_site("example.com"))

    assert outcome.state is PageState.ABANDONED
    assert outcome.error_type == "TimeoutError"
    assert sites_sink.rows == [] and urls_sink.rows == []


def test_bad_snapshot_abandons_page():
    crawler, sites_sink, urls_sink = make_crawler(responses=RESPONSES, snapshot={"resources": "nope"})
    outcome = asyncio.run(crawler.crawl_site("http://example.com/"))

    assert outcome.state is PageState.ABANDONED
    assert outcome.error_type == "ValidationError"
    assert sites_sink.rows == [] and urls_sink.rows == []


def test_pages_are_independent_and_late_traffic_is_dropped():
    beacon = FakeResponse("https://t.example.org/unload", headers={"content-length": "10"})
    crawler, sites_sink, urls_sink = make_crawler(responses=RESPONSES, snapshot=SNAPSHOT, late_responses=[beacon])

    outcomes = asyncio.run(crawler.crawl(["example.com", "example.com"]))

    assert [o.state for o in outcomes] == [PageState.REPORTED, PageState.REPORTED]
    assert len(sites_sink.rows) == 2
    assert len(urls_sink.rows) == 6
    assert all(r["url"] != beacon.url for r in urls_sink.rows)
    assert crawler._page.visited.count("about:blank") == 2


def test_gather_timeout_abandons_page():
    config = CrawlConfig(pause_between_pages_s=0, gather_timeout_s=0.01)
    crawler, sites_sink, urls_sink = make_crawler(
        config=config, responses=RESPONSES, snapshot=SNAPSHOT, evaluate_delay_s=0.5,
    )
    outcome = asyncio.run(crawler.crawl_site("example.com"))

    assert outcome.state is PageState.ABANDONED
    assert outcome.error_type == "TimeoutError"
    assert sites_sink.rows == [] and urls_sink.rows == []


def test_analysis_failure_abandons_page():
    def mark_first_visible(session):
        session.records[0].visibility = Visibility.VISIBLE

    crawler, sites_sink, urls_sink = make_crawler(
        responses=RESPONSES, snapshot=SNAPSHOT, after_load=mark_first_visible,
    )
    outcome = asyncio.run(crawler.crawl_site("example.com"))

    assert outcome.state is PageState.ABANDONED
    assert outcome.error_type == "CorrelationError"
    assert sites_sink.rows == [] and urls_sink.rows == []


def test_unexpected_analysis_error_only_abandons_that_page(monkeypatch):
    calls = []

    def flaky_assemble(url, records, snapshot):
        calls.append(url)
        if len(calls) == 1:
            raise KeyError("boom")
        return assemble_page(url, records, snapshot)

    monkeypatch.setattr("rtvisibility.browser_crawler.assemble_page", flaky_assemble)
    crawler, sites_sink, urls_sink = make_crawler(responses=RESPONSES, snapshot=SNAPSHOT)

    outcomes = asyncio.run(crawler.crawl(["example.com", "example.org"]))

    assert [o.state for o in outcomes] == [PageState.ABANDONED, PageState.REPORTED]
    assert outcomes[0].error_type == "KeyError"
    assert [r["url"] for r in sites_sink.rows] == ["http://example.org/"]


def test_failed_site_row_writes_no_url_rows():
    crawler, sites_sink, urls_sink = make_crawler(
        sites_sink=ListSink(append_ok=False), responses=RESPONSES, snapshot=SNAPSHOT,
    )
    outcome = asyncio.run(crawler.crawl_site("example.com"))

    assert outcome.state is PageState.ABANDONED
    assert outcome.error_type == "SinkError"
    assert urls_sink.rows == []


def test_failed_flush_abandons_page_and_run_continues():
    crawler, sites_sink, urls_sink = make_crawler(
        sites_sink=ListSink(flush_ok=False), responses=RESPONSES, snapshot=SNAPSHOT,
    )
    outcomes = asyncio.run(crawler.crawl(["example.com", "example.org"]))

    assert [o.state for o in outcomes] == [PageState.ABANDONED, PageState.ABANDONED]
    assert {o.error_type for o in outcomes} == {"SinkError"}
    assert urls_sink.rows == []


def test_failed_url_row_abandons_page():
    crawler, sites_sink, urls_sink = make_crawler(
        urls_sink=ListSink(append_ok=False), responses=RESPONSES, snapshot=SNAPSHOT,
    )
    outcome = asyncio.run(crawler.crawl_site("example.com"))

    assert outcome.state is PageState.ABANDONED
    assert outcome.error_type == "SinkError"
