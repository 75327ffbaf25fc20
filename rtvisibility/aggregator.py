from typing import Iterable

from .correlator import CorrelationError
from .models import AssetType, ResponseRecord, Visibility, VisibilityStats


def aggregate(records: Iterable[ResponseRecord], asset_type: AssetType | None = None) -> VisibilityStats:
    """
    Sums correlated records into one VisibilityStats.

    With `asset_type` set only records of that type are counted; with None
    every record is counted, including those the classifier left unmatched.
    Bytes are transfer sizes (body + headers).
    """
    stats = VisibilityStats()

    for record in records:
        if asset_type is not None and record.asset_type != asset_type:
            continue

        size = record.transfer_size
        stats.total_entries += 1
        stats.total_bytes += size

        if record.visibility is Visibility.VISIBLE:
            stats.visible_entries += 1
            stats.visible_bytes += size
        elif record.visibility is Visibility.RESTRICTED:
            stats.no_tao_entries += 1
            stats.no_tao_bytes += size
        elif record.visibility is Visibility.MISSING:
            stats.missing_entries += 1
            stats.missing_bytes += size
        else:
            raise CorrelationError(f"not correlated: {record.url}")

    return stats


def aggregate_by_category(records: list[ResponseRecord]) -> dict[AssetType, VisibilityStats]:
    return {asset_type: aggregate(records, asset_type) for asset_type in AssetType}
