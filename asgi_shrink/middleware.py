import logging
from typing import Any, List, Mapping, Optional, Union

from .base import CompressionAlgorithm
from .cache import CompressedCache
from .config import (
    DEFAULT_CACHE_SIZE,
    DEFAULT_THRESHOLD,
    DEFAULT_TRANSPORT_HIGH_WATER_MARK,
    CompressionConfig,
    Threshold,
    algorithms_from_options,
    parse_bytes,
)
from .eligibility import Filter
from .negotiation import IDENTITY
from .responder import CompressionResponder
from .types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger(__name__)


class CompressionMiddleware:
    """
    Unified ASGI middleware for response compression.

    Supports multiple compression algorithms and negotiates the best one
    based on the client's Accept-Encoding header, streaming the compressed
    body as the application produces it.
    """

    def __init__(
        self,
        app: ASGIApp,
        algorithms: Optional[List[CompressionAlgorithm]] = None,
        *,
        filter: Optional[Filter] = None,
        threshold: Threshold = DEFAULT_THRESHOLD,
        enforce_encoding: Optional[str] = IDENTITY,
        encodings: Optional[Mapping[str, bool]] = None,
        cache_size: Union[int, str, None] = None,
        cache_filter: Optional[Filter] = None,
        high_water_mark: int = DEFAULT_TRANSPORT_HIGH_WATER_MARK,
    ) -> None:
        """
        Initialize the compression middleware.

        Args:
            app: The ASGI application.
            algorithms: Compression algorithms to use, in order of preference.
                Defaults to brotli (when installed), gzip and deflate.
            filter: Called with the request and response info, decides
                whether a response may be compressed. Defaults to
                :func:`~asgi_shrink.eligibility.should_compress`.
            threshold: Responses known to be smaller than this are sent as
                is. Either a number of bytes or a string such as "1kb";
                False disables the check.
            enforce_encoding: Encoding used when the request carries no
                Accept-Encoding header. None treats a missing header as
                "anything goes".
            encodings: Maps an encoding name to False to disable it.
            cache_size: Enables a cache of compressed bodies (for responses
                with an ETag) bounded to this many bytes.
            cache_filter: Decides whether a response may be cached.
            high_water_mark: Bytes queued towards the server before writes
                report backpressure.
        """

        self.app = app
        self.config = CompressionConfig.create(
            algorithms,
            filter=filter,
            threshold=threshold,
            enforce_encoding=enforce_encoding,
            encodings=encodings,
            cache_filter=cache_filter,
            high_water_mark=high_water_mark,
        )

        self.cache: Optional[CompressedCache] = None
        if cache_size:
            self.cache = CompressedCache(
                parse_bytes(cache_size), self.config.by_encoding
            )

        logger.debug(
            "compression enabled for %s, threshold %s",
            ", ".join(self.config.supported) or "nothing",
            self.config.threshold,
        )

    @classmethod
    def from_options(
        cls, app: ASGIApp, **options: Any
    ) -> "CompressionMiddleware":
        """Build the middleware from flat option names.

        Understands ``level``, ``window_bits``, ``mem_level`` and ``strategy``
        for zlib based encodings (also nested under ``zlib``), brotli
        settings under ``brotli``, ``threshold``, ``filter``, ``cache_size``
        (default "128mb", False disables it) and ``cache`` as the cache
        filter.
        """
        cache_size = options.get("cache_size", DEFAULT_CACHE_SIZE)
        threshold = options.get("threshold")
        if threshold is None:
            threshold = DEFAULT_THRESHOLD
        return cls(
            app,
            algorithms_from_options(options),
            filter=options.get("filter"),
            threshold=threshold,
            enforce_encoding=options.get("enforce_encoding", IDENTITY),
            encodings=options.get("encodings"),
            cache_size=cache_size or None,
            cache_filter=options.get("cache"),
        )

    async def __call__(
        self, scope: Scope, receive: Receive, send: Send
    ) -> None:
        """ASGI application interface."""
        if scope["type"] != "http":  # pragma: no cover
            await self.app(scope, receive, send)
            return

        responder = CompressionResponder(self.app, self.config, self.cache)
        await responder(scope, receive, send)
