from typing import Optional

# Media types that must reach the client as soon as they are written: every
# write is flushed, and only encodings with a cheap flush are offered.
EVENT_STREAM_CONTENT_TYPES = frozenset({"text/event-stream"})
EVENT_STREAM_ENCODINGS = ("gzip", "deflate")

COMPRESSIBLE_SUFFIXES = ("+json", "+xml", "+text")

# Primarily based on:
# https://github.com/h5bp/server-configs-nginx/blob/main/h5bp/web_performance/compression.conf#L38
COMPRESSIBLE_CONTENT_TYPES = frozenset(
    {
        "application/atom+xml",
        "application/ecmascript",
        "application/geo+json",
        "application/graphql",
        "application/javascript",
        "application/x-javascript",
        "application/json",
        "application/ld+json",
        "application/manifest+json",
        "application/rdf+xml",
        "application/rss+xml",
        "application/vnd.mapbox-vector-tile",
        "application/vnd.ms-fontobject",
        "application/wasm",
        "application/x-web-app-manifest+json",
        "application/xhtml+xml",
        "application/xml",
        "application/x-www-form-urlencoded",
        "font/eot",
        "font/otf",
        "font/ttf",
        "image/bmp",
        "image/svg+xml",
        "image/vnd.microsoft.icon",
        "image/x-icon",
    }
)


def media_type(content_type: str) -> str:
    return content_type.partition(";")[0].strip().lower()


def is_compressible(content_type: Optional[str]) -> bool:
    """Tell whether a body of the given ``Content-Type`` is worth compressing."""
    if not content_type:
        return False

    mime = media_type(content_type)
    if mime in COMPRESSIBLE_CONTENT_TYPES:
        return True
    if mime.startswith("text/"):
        return True
    return mime.endswith(COMPRESSIBLE_SUFFIXES)


def is_event_stream(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return media_type(content_type) in EVENT_STREAM_CONTENT_TYPES
