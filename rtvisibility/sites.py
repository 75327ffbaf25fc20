from pathlib import Path


def normalize_site(site: str) -> str:
    """Bare hosts become http://host/; absolute http(s) URLs are kept as-is."""
    site = site.strip()
    if site.startswith("http://") or site.startswith("https://"):
        return site
    return f"http://{site}/"


def load_sites(path: str | Path, limit: int | None = None) -> list[str]:
    """
    Read a site list, one site per line. Lines shaped like `rank,host`
    use the last column. Blank lines are skipped.
    """
    sites = []
    for line in Path(path).read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        sites.append(line.rsplit(",", 1)[-1].strip())
        if limit is not None and len(sites) >= limit:
            break
    return sites


def resolve_targets(target: str, sites_file: str | Path) -> list[str]:
    """
    A target starting with "http" is a single site; otherwise it is the
    number of sites to take from the top of `sites_file`.
    """
    if target.startswith("http"):
        return [target]
    try:
        count = int(target)
    except ValueError:
        raise ValueError(f"expected a URL or a number of sites, got {target!r}") from None
    if count < 0:
        raise ValueError(f"number of sites must be non-negative, got {count}")
    return load_sites(sites_file, limit=count)
