import logging
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

from .base import CompressionStream
from .cache import BufferedStream, CompressedCache
from .compressible import EVENT_STREAM_ENCODINGS, is_event_stream
from .config import CompressionConfig
from .eligibility import check_eligibility
from .negotiation import IDENTITY, NotAcceptable, negotiate
from .types import Headers, Listener, RequestInfo, ResponseInfo

logger = logging.getLogger(__name__)

BUFFERED_EVENTS = ("drain",)


class Transport(Protocol):
    """The real response a writer sends to.

    ``write`` follows the usual flow control convention: ``False`` asks the
    producer to hold off until ``"drain"`` is emitted. ``"close"`` is
    emitted when the connection goes away before the response completed.
    """

    status_code: int
    headers: Headers

    @property
    def headers_sent(self) -> bool: ...

    def send_headers(self) -> None: ...

    def write(self, data: bytes) -> bool: ...

    def end(self, data: bytes = b"") -> None: ...

    def on(self, event: str, listener: Listener) -> None: ...


class WriterState(Enum):
    PENDING = "pending"
    BYPASSED = "bypassed"
    COMPRESSING = "compressing"
    ENDED = "ended"


class CompressingWriter:
    """Response writer that compresses the body on its way to a transport.

    Whether to compress is decided once, right before the headers go out:
    either explicitly through :meth:`send_headers` or implicitly by the
    first :meth:`write` or :meth:`end`. From then on the body either flows
    through a :class:`~asgi_shrink.base.CompressionStream` or straight to
    the transport.
    """

    def __init__(
        self,
        transport: Transport,
        request: RequestInfo,
        config: CompressionConfig,
        cache: Optional[CompressedCache] = None,
    ) -> None:
        self.transport = transport
        self.request = request
        self.config = config
        self.cache = cache
        self.state = WriterState.PENDING
        self.encoding = IDENTITY
        self.stream: Optional[CompressionStream] = None
        self._listeners: List[Tuple[str, Listener]] = []
        self._length: Optional[int] = None
        self._ending = False
        self._finished = False
        self._flush_writes = False

        transport.on("close", self._on_close)

    @property
    def headers(self) -> Headers:
        return self.transport.headers

    @property
    def ended(self) -> bool:
        return self._ending or self.state is WriterState.ENDED

    @property
    def finished(self) -> bool:
        return self._finished

    def on(self, event: str, listener: Listener) -> None:
        if event not in BUFFERED_EVENTS:
            self.transport.on(event, listener)
        elif self.state is WriterState.PENDING:
            # No destination yet, replayed once the decision is made.
            self._listeners.append((event, listener))
        elif self.stream is not None:
            self.stream.on(event, listener)
        else:
            self.transport.on(event, listener)

    def send_headers(self) -> None:
        if self.state is not WriterState.PENDING:
            return
        self._decide()
        self.transport.send_headers()

    def bypass(self, reason: str) -> None:
        """Send the headers untouched, the body will not pass through here."""
        if self.state is not WriterState.PENDING:
            return
        self._nocompress(reason)
        self.transport.send_headers()

    def write(self, data: bytes) -> bool:
        if self.ended:
            return False

        if self.state is WriterState.PENDING:
            self.send_headers()

        if self.stream is not None:
            ok = self.stream.write(data)
            if self._flush_writes:
                self.stream.flush()
            return ok
        return self.transport.write(data)

    def end(self, data: bytes = b"") -> bool:
        if self.ended:
            return False

        if self.state is WriterState.PENDING:
            if "content-length" not in self.headers:
                self._length = len(data)
            self.send_headers()

        self._ending = True
        if self.stream is None:
            self.state = WriterState.ENDED
            self._finish(data)
        else:
            self.stream.end(data)
        return True

    def flush(self, callback: Optional[Callable[[], None]] = None) -> None:
        if self.state is WriterState.COMPRESSING and self.stream is not None:
            self.stream.flush(callback)
        elif callback is not None:
            callback()

    def _decide(self) -> None:
        response = ResponseInfo(
            status_code=self.transport.status_code, headers=self.headers
        )
        eligibility = check_eligibility(
            self.request,
            response,
            filter=self.config.filter,
            threshold=self.config.threshold,
            length=self._length,
        )
        if eligibility.vary:
            self.headers.add_vary_header("Accept-Encoding")
        if not eligibility.eligible:
            self._nocompress(eligibility.reason)
            return

        supported = self.config.supported
        event_stream = is_event_stream(self.headers.get("content-type"))
        if event_stream:
            supported = tuple(e for e in supported if e in EVENT_STREAM_ENCODINGS)

        try:
            encoding = negotiate(
                self.request.accept_encoding,
                supported,
                enforce_encoding=self.config.enforce_encoding,
            )
        except NotAcceptable as exc:
            logger.debug("encoding negotiation failed: %s", exc)
            self._nocompress("not acceptable")
            return

        if encoding == IDENTITY:
            self._nocompress("not acceptable")
            return

        self._flush_writes = event_stream
        self._compress(encoding, response)

    def _compress(self, encoding: str, response: ResponseInfo) -> None:
        stream: Optional[CompressionStream] = None
        cache_key = self._cache_key(encoding, response)
        if cache_key is not None and self.cache is not None:
            body = self.cache.lookup(*cache_key)
            if body is not None:
                logger.debug("%s cache hit for %s", encoding, cache_key[1])
                stream = BufferedStream(encoding, body)
                cache_key = None

        if stream is None:
            logger.debug("%s compression", encoding)
            stream = self.config.by_encoding[encoding].create_stream()

        if cache_key is not None:
            self._collect(stream, cache_key)

        self.encoding = encoding
        self.stream = stream
        self.state = WriterState.COMPRESSING

        for event, listener in self._listeners:
            stream.on(event, listener)
        self._listeners = []

        self.headers["Content-Encoding"] = encoding
        self.headers.popall("content-length", None)

        stream.on("data", self._on_stream_data)
        stream.on("end", self._on_stream_end)
        self.transport.on("drain", self._on_transport_drain)

    def _nocompress(self, reason: str) -> None:
        logger.debug("no compression: %s", reason)
        self.state = WriterState.BYPASSED
        for event, listener in self._listeners:
            self.transport.on(event, listener)
        self._listeners = []

    def _cache_key(
        self, encoding: str, response: ResponseInfo
    ) -> Optional[Tuple[str, str, str]]:
        if self.cache is None:
            return None
        etag = response.headers.get("etag")
        if not etag or not 200 <= response.status_code < 300:
            return None
        cache_filter = self.config.cache_filter
        if cache_filter is not None and not cache_filter(self.request, response):
            return None
        return (encoding, self.request.url, etag)

    def _collect(
        self, stream: CompressionStream, cache_key: Tuple[str, str, str]
    ) -> None:
        chunks: List[bytes] = []
        cache = self.cache
        assert cache is not None

        def store() -> None:
            cache.store(*cache_key, b"".join(chunks))

        stream.on("data", chunks.append)
        stream.on("end", store)

    def _on_stream_data(self, chunk: bytes) -> None:
        if self.transport.write(chunk) is False and self.stream is not None:
            self.stream.pause()

    def _on_stream_end(self) -> None:
        self.state = WriterState.ENDED
        self._finish()

    def _on_transport_drain(self) -> None:
        if self.stream is not None:
            self.stream.resume()

    def _on_close(self) -> None:
        if self._finished:
            return
        logger.debug("connection closed before the response completed")
        if self.stream is not None:
            self.stream.destroy()
        self._listeners = []
        self.state = WriterState.ENDED
        self._finish()

    def _finish(self, data: bytes = b"") -> None:
        if self._finished:
            return
        self._finished = True
        self.transport.end(data)
