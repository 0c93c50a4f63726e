"""Content-Type and Cache-Control inference for uploaded files."""

import mimetypes

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Types mimetypes misses or gets wrong on some platforms
_EXTRA_TYPES = {
    ".js": "text/javascript",
    ".mjs": "text/javascript",
    ".json": "application/json",
    ".svg": "image/svg+xml",
    ".wasm": "application/wasm",
    ".webmanifest": "application/manifest+json",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".webp": "image/webp",
}

_TEXT_TYPES = (
    "application/json",
    "application/javascript",
    "application/manifest+json",
    "application/xml",
    "image/svg+xml",
)


def guess_content_type(path: str) -> str:
    """
    Guess the media type of a file from its name.

    Text types carry an explicit UTF-8 charset.
    """
    lower = path.lower()
    content_type = None
    for ext, mime in _EXTRA_TYPES.items():
        if lower.endswith(ext):
            content_type = mime
            break
    if content_type is None:
        content_type, _ = mimetypes.guess_type(path)
    if content_type is None:
        return DEFAULT_CONTENT_TYPE
    if content_type.startswith("text/") or content_type in _TEXT_TYPES:
        return f"{content_type}; charset=utf-8"
    return content_type


def cache_control_for(
    content_type: str,
    html_cache_control: str,
    asset_cache_control: str,
) -> str:
    """Pick the Cache-Control header: HTML pages revalidate sooner than assets."""
    if content_type.split(";", 1)[0].strip() == "text/html":
        return html_cache_control
    return asset_cache_control
