from rtvisibility.models import AssetType, PageTimingSnapshot, ResponseRecord, TimingEntry
from rtvisibility.report import analyze_page, flatten_records


SITE = "http://example.com/"


def make_snapshot() -> PageTimingSnapshot:
    return PageTimingSnapshot(
        entries=[
            TimingEntry(name="https://cdn.example.com/app.js", response_start=8.0, frame_depth=0),
            TimingEntry(name="https://ads.example.net/px.gif", response_start=0, frame_depth=1),
        ],
        buffer_size=300,
        exceeded_default_buffer=True,
        main_frame_entries=151,
    )


def make_records() -> list[ResponseRecord]:
    return [
        ResponseRecord(url="https://cdn.example.com/app.js", content_length=900, header_size=100,
                       content_type="application/javascript", asset_type=AssetType.JAVASCRIPT,
                       host="cdn.example.com"),
        ResponseRecord(url="https://ads.example.net/px.gif", content_length=43, header_size=57,
                       asset_type=AssetType.PIXEL, host="ads.example.net"),
        ResponseRecord(url="https://api.example.com/feed", content_length=150, header_size=50,
                       content_type="application/octet-stream", host="api.example.com"),
    ]


def test_site_report_shape():
    analysis = analyze_page(SITE, make_records(), make_snapshot())
    row = analysis.report.to_dict()

    assert row["url"] == SITE
    assert row["all"]["totalEntries"] == 3
    assert row["all"]["totalBytes"] == 1300
    assert row["javascript"]["visibleBytes"] == 1000
    assert row["pixel"]["noTaoEntries"] == 1
    assert row["css"]["totalEntries"] == 0
    assert row["bufferSize"] == 300
    assert row["exceededDefaultBuffer"] is True
    assert row["mainFrameEntries"] == 151
    assert set(row) == {"url", "all", "bufferSize", "exceededDefaultBuffer", "mainFrameEntries"} | {
        a.value for a in AssetType
    }


def test_url_rows_are_tagged_with_site():
    analysis = analyze_page(SITE, make_records(), make_snapshot())
    rows = analysis.url_rows

    assert [r["site"] for r in rows] == [SITE] * 3
    assert rows[0]["visibilityState"] == "visible"
    assert rows[0]["transferSize"] == 1000
    assert rows[1]["visibilityState"] == "restricted"
    assert rows[1]["frameDepth"] == 1
    assert rows[2]["visibilityState"] == "missing"
    assert rows[2]["frameDepth"] is None
    assert rows[2]["assetType"] is None


def test_flatten_does_not_mutate_records():
    records = make_records()
    flatten_records(SITE, records)
    assert not hasattr(records[0], "site")
