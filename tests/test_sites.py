from pathlib import Path

import pytest

from rtvisibility.sites import load_sites, normalize_site, resolve_targets


def test_bare_host_becomes_http_root():
    assert normalize_site("example.com") == "http://example.com/"
    assert normalize_site(" example.com\n") == "http://example.com/"


def test_absolute_urls_are_kept():
    assert normalize_site("https://example.com/path") == "https://example.com/path"
    assert normalize_site("http://example.com") == "http://example.com"


def test_load_sites_limit_and_rank_column(tmp_path: Path):
    sites_file = tmp_path / "sites.csv"
    sites_file.write_text("1,google.com\n2,youtube.com\n\n3,facebook.com\n", encoding="utf-8")

    assert load_sites(sites_file) == ["google.com", "youtube.com", "facebook.com"]
    assert load_sites(sites_file, limit=2) == ["google.com", "youtube.com"]


def test_resolve_targets(tmp_path: Path):
    sites_file = tmp_path / "sites.csv"
    sites_file.write_text("a.com\nb.com\nc.com\n", encoding="utf-8")

    assert resolve_targets("https://example.com/", sites_file) == ["https://example.com/"]
    assert resolve_targets("2", sites_file) == ["a.com", "b.com"]
    with pytest.raises(ValueError):
        resolve_targets("lots", sites_file)
