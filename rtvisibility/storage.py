import json
import logging
from pathlib import Path
from typing import Protocol

import pandas as pd

from .models import AssetType

LOGGER = logging.getLogger(__name__)


class AppendOnlySink(Protocol):
    """Where page reports and response rows go. Never rewrites what it wrote."""

    def append(self, record: dict) -> bool:
        ...

    def flush(self) -> bool:
        ...


class JsonLinesSink:
    """
    Newline-delimited JSON file opened in append mode.

    The crawler flushes after each page, so a crash loses at most the page
    in flight.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._fh = None

    def open(self) -> "JsonLinesSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("a", encoding="utf-8")
        return self

    def close(self) -> None:
        if self._fh:
            try:
                self._fh.close()
            except OSError as e:
                LOGGER.error("could not close %s: %s", self.path, e)
            self._fh = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def append(self, record: dict) -> bool:
        if self._fh is None:
            raise RuntimeError(f"sink {self.path} is not open")
        try:
            self._fh.write(json.dumps(record, separators=(",", ":")))
            self._fh.write("\n")
        except OSError as e:
            LOGGER.error("could not append to %s: %s", self.path, e)
            return False
        return True

    def flush(self) -> bool:
        # buffered writes surface disk errors here rather than in append
        if self._fh is None:
            return True
        try:
            self._fh.flush()
        except OSError as e:
            LOGGER.error("could not flush %s: %s", self.path, e)
            return False
        return True


STAT_COLUMNS = ("Entries", "Bytes")


def load_sites_stream(path: str | Path) -> pd.DataFrame:
    """Sites stream -> DataFrame, one row per page (empty if no file)."""
    path = Path(path)
    if not path.exists() or path.stat().st_size == 0:
        return pd.DataFrame()
    return pd.read_json(path, lines=True)


def summarize_sites(df: pd.DataFrame) -> pd.DataFrame:
    """
    Sum every category over all pages and express the visible / noTao /
    missing shares as percentages of the category totals.
    """
    if df.empty:
        return pd.DataFrame()

    rows = []
    for category in ["all"] + [a.value for a in AssetType]:
        if category not in df.columns:
            continue
        stats = pd.DataFrame(df[category].dropna().tolist())
        if stats.empty:
            continue
        sums = stats.sum()
        row = {"category": category}
        for unit in STAT_COLUMNS:
            total = sums.get(f"total{unit}", 0)
            row[f"total{unit}"] = int(total)
            for bucket in ("visible", "noTao", "missing"):
                part = sums.get(f"{bucket}{unit}", 0)
                row[f"{bucket}{unit}Pct"] = round(100.0 * part / total, 2) if total else 0.0
        rows.append(row)

    return pd.DataFrame(rows)


def exceeded_buffer_share(df: pd.DataFrame) -> float:
    """Percentage of pages whose ResourceTiming buffer hit the default cap."""
    if df.empty or "exceededDefaultBuffer" not in df.columns:
        return 0.0
    return round(100.0 * df["exceededDefaultBuffer"].astype(bool).mean(), 2)


def save_df(df: pd.DataFrame, name: str, results_dir: str | Path) -> Path | None:
    """
    Persist a DataFrame as CSV under <results_dir>/<name>.csv.
    """
    if df.empty:
        return None

    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    out_path = results_dir / f"{name}.csv"
    df.to_csv(out_path, index=False)
    print(f"Saved {out_path}")
    return out_path
