"""
Report assembly: correlated records + snapshot metadata -> SiteReport, plus
one flattened row per response for the URLs stream.
"""

from dataclasses import dataclass

from .aggregator import aggregate, aggregate_by_category
from .correlator import correlate_records
from .models import AssetType, PageTimingSnapshot, ResponseRecord, SiteReport, VisibilityStats


@dataclass
class PageAnalysis:
    report: SiteReport
    url_rows: list[dict]


def build_site_report(
    url: str,
    all_stats: VisibilityStats,
    per_category: dict[AssetType, VisibilityStats],
    snapshot: PageTimingSnapshot,
) -> SiteReport:
    return SiteReport(
        url=url,
        all=all_stats,
        categories=dict(per_category),
        buffer_size=snapshot.buffer_size,
        exceeded_default_buffer=snapshot.exceeded_default_buffer,
        main_frame_entries=snapshot.main_frame_entries,
    )


def flatten_records(site_url: str, records: list[ResponseRecord]) -> list[dict]:
    rows = []
    for record in records:
        row = record.to_dict()
        row["site"] = site_url
        rows.append(row)
    return rows


def assemble_page(url: str, records: list[ResponseRecord], snapshot: PageTimingSnapshot) -> PageAnalysis:
    """Aggregates already-correlated records and builds both outputs."""
    all_stats = aggregate(records)
    per_category = aggregate_by_category(records)
    report = build_site_report(url, all_stats, per_category, snapshot)
    return PageAnalysis(report=report, url_rows=flatten_records(url, records))


def analyze_page(url: str, records: list[ResponseRecord], snapshot: PageTimingSnapshot) -> PageAnalysis:
    """
    Runs correlate -> aggregate -> assemble for one page.
    Records are annotated in place; nothing is written.
    """
    correlate_records(snapshot, records)
    return assemble_page(url, records, snapshot)
