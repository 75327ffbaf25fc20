import logging
from typing import Iterable

from .models import PageTimingSnapshot, ResponseRecord, TimingEntry, Visibility

LOGGER = logging.getLogger(__name__)


class CorrelationError(ValueError):
    """A record was correlated twice, or aggregated without being correlated."""


def find_timing_entry(snapshot: PageTimingSnapshot, url: str) -> TimingEntry | None:
    """
    First entry (in snapshot order) whose name is exactly `url`.
    Later duplicates of the same name are never consulted.
    """
    for entry in snapshot.entries:
        if entry.name == url:
            return entry
    return None


def visibility_of(entry: TimingEntry | None) -> tuple[Visibility, int | None]:
    """Visibility implied by the matched entry, and its frame depth."""
    if entry is None:
        return Visibility.MISSING, None
    if entry.no_tao:
        return Visibility.RESTRICTED, entry.frame_depth
    return Visibility.VISIBLE, entry.frame_depth


def correlate(snapshot: PageTimingSnapshot, record: ResponseRecord) -> tuple[Visibility, int | None]:
    """
    Returns the visibility of `record` in `snapshot` and the matched
    entry's frame depth (None when missing). Does not modify the record.
    """
    return visibility_of(find_timing_entry(snapshot, record.url))


def index_timing_entries(snapshot: PageTimingSnapshot) -> dict[str, TimingEntry]:
    """name -> first entry with that name, same answer as find_timing_entry."""
    index: dict[str, TimingEntry] = {}
    for entry in snapshot.entries:
        index.setdefault(entry.name, entry)
    return index


def correlate_records(snapshot: PageTimingSnapshot, records: Iterable[ResponseRecord]) -> None:
    """Annotates every record in place. Each record may be correlated only once."""
    index = index_timing_entries(snapshot)

    for record in records:
        if record.visibility is not None:
            raise CorrelationError(f"already correlated: {record.url}")

        visibility, frame_depth = visibility_of(index.get(record.url))
        if visibility is not Visibility.VISIBLE:
            LOGGER.debug("%s %s", record.url, visibility.value)
        record.visibility = visibility
        record.frame_depth = frame_depth
