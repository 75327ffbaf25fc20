"""
Asset classifier: maps a response to an asset-type category.

Rules are applied in a fixed order:
1. No Content-Type: sniff the URL for fonts/html, else zero-length => pixel
2. Content-Type table lookup (parameters after ';' are ignored)
3. Body size matching a known tracking pixel
4. URL suffix sniffing

The order is observable (e.g. a 42-byte `.gif` served as octet-stream is a
pixel, not an image), so the rules are kept as data below.
"""

from .models import AssetType

CONTENT_TYPE_RULES: tuple[tuple[AssetType, frozenset[str]], ...] = (
    (AssetType.JAVASCRIPT, frozenset({
        "application/javascript",
        "application/x-javascript",
        "text/javascript",
        "application/ecmascript",
        "application/js",
    })),
    (AssetType.CSS, frozenset({
        "text/css",
    })),
    (AssetType.XHR, frozenset({
        "application/json",
        "application/ld+json",
        "application/manifest+json",
        "application/xml",
        "text/plain",
        "text/xml",
        "text/x-json",
        "text/json",
        "application/x-json",
    })),
    (AssetType.FONT, frozenset({
        "application/font-otf",
        "application/font-sfnt",
        "application/font-woff",
        "application/font-woff2",
        "application/font",
        "application/otf",
        "application/vnd.ms-fontobject",
        "application/x-font-opentype",
        "application/x-font-otf",
        "application/x-font-truetype",
        "application/x-font-ttf",
        "font/eot",
        "font/opentype",
        "font/otf",
        "font/woff",
        "font/woff2",
        "font/ttf",
        "application/x-font-woff",
        "font/x-woff",
        "application/x-woff",
    })),
    (AssetType.IMAGE, frozenset({
        "image/bmp",
        "image/gif",
        "image/jpeg",
        "image/jpg",
        "image/psd",
        "image/tiff",
        "image/jp2",
        "image/ico",
        "image/icon",
        "image/pjpeg",
        "image/png",
        "image/svg+xml",
        "image/vnd.microsoft.icon",
        "image/webp",
        "image/x-icon",
        "image/x-png",
        "image",
    })),
    (AssetType.HTML, frozenset({
        "text/html",
        "application/html",
        "application/x-iframe-html",
    })),
    (AssetType.VIDEO, frozenset({
        "video/mp4",
        "video/webm",
        "text/vtt",
        "video/x-flv",
        "video/ogg",
    })),
    (AssetType.AUDIO, frozenset({
        "audio/webm",
    })),
)

# Used only when there is no Content-Type; matched anywhere in the URL.
MISSING_TYPE_URL_RULES: tuple[tuple[AssetType, tuple[str, ...]], ...] = (
    (AssetType.FONT, (".woff", ".ttf")),
    (AssetType.HTML, (".html",)),
)

# Used after the table and pixel checks; matched at the end of the URL.
URL_SUFFIX_RULES: tuple[tuple[AssetType, tuple[str, ...]], ...] = (
    (AssetType.JAVASCRIPT, (".js",)),
    (AssetType.XHR, (".json",)),
    (AssetType.CSS, (".css",)),
    (AssetType.IMAGE, (".gif", ".png", ".jpg")),
)

# Encoded size of a common 1x1 tracking GIF. Other tiny bodies match too.
PIXEL_BYTE_SIZES: frozenset[int] = frozenset({42, 43})


def normalize_content_type(content_type: str) -> str:
    """'Text/CSS; charset=utf-8' -> 'text/css'"""
    return content_type.split(";", 1)[0].strip().lower()


def lookup_content_type(content_type: str) -> AssetType | None:
    mime = normalize_content_type(content_type)
    for asset_type, mimes in CONTENT_TYPE_RULES:
        if mime in mimes:
            return asset_type
    return None


def classify_asset(
    url: str,
    content_type: str | None = None,
    content_length: int = 0,
    pixel_sizes=PIXEL_BYTE_SIZES,
) -> AssetType | None:
    """
    Returns the asset type for a response, or None when no rule matches.
    """
    if not content_type:
        for asset_type, needles in MISSING_TYPE_URL_RULES:
            if any(n in url for n in needles):
                return asset_type
        if content_length == 0:
            return AssetType.PIXEL
        return None

    asset_type = lookup_content_type(content_type)
    if asset_type is not None:
        return asset_type

    if content_length in pixel_sizes:
        return AssetType.PIXEL

    for asset_type, suffixes in URL_SUFFIX_RULES:
        if url.endswith(suffixes):
            return asset_type

    return None
