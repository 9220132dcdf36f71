import logging
import typing
from collections import deque
from typing import Deque, Dict, List, Optional

from .cache import CompressedCache
from .config import DEFAULT_TRANSPORT_HIGH_WATER_MARK, CompressionConfig
from .types import (
    ASGIApp,
    Headers,
    Listener,
    Message,
    Receive,
    RequestInfo,
    Scope,
    Send,
)
from .writer import CompressingWriter

logger = logging.getLogger(__name__)

FLUSH_MESSAGE = "http.response.flush"


async def unattached_send(message: Message) -> typing.NoReturn:
    raise RuntimeError("send awaitable not set")  # pragma: no cover


class SendTransport:
    """Response transport on top of an ASGI ``send`` callable.

    Messages are queued by the synchronous ``write``/``end`` calls and
    handed to ``send`` by :meth:`drain`, in order. ``write`` returns
    ``False`` once the queued body reaches ``high_water_mark``.
    """

    def __init__(
        self,
        send: Send = unattached_send,
        high_water_mark: int = DEFAULT_TRANSPORT_HIGH_WATER_MARK,
    ) -> None:
        self._send = send
        self.high_water_mark = high_water_mark
        self.status_code = 200
        self.headers = Headers()
        self.closed = False
        self.finished = False
        self._start_message: Message = {"type": "http.response.start"}
        self._headers_sent = False
        self._messages: Deque[Message] = deque()
        self._buffered = 0
        self._need_drain = False
        self._draining = False
        self._listeners: Dict[str, List[Listener]] = {
            "drain": [],
            "close": [],
        }

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    @property
    def buffered_size(self) -> int:
        return self._buffered

    def start(self, message: Message) -> None:
        # Don't send the initial message until we've determined how to
        # modify the outgoing headers correctly.
        self._start_message = message
        self.status_code = message.get("status", 200)
        self.headers = Headers(raw=message.get("headers", []))

    def on(self, event: str, listener: Listener) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unsupported transport event: {event!r}")
        self._listeners[event].append(listener)

    def send_headers(self) -> None:
        if self._headers_sent:
            return
        self._headers_sent = True
        self._start_message["headers"] = self.headers.encode()
        self._enqueue(self._start_message)

    def write(self, data: bytes) -> bool:
        if self.closed or self.finished:
            return False

        self.send_headers()
        if data:
            self._enqueue(
                {"type": "http.response.body", "body": data, "more_body": True}
            )

        if self._buffered >= self.high_water_mark:
            self._need_drain = True
            return False
        return True

    def end(self, data: bytes = b"") -> None:
        if self.finished:
            return
        self.finished = True
        self.send_headers()
        self._enqueue(
            {"type": "http.response.body", "body": data, "more_body": False}
        )

    def forward(self, message: Message) -> None:
        """Queue a message the writer has no business looking at."""
        self._enqueue(message)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._messages.clear()
        self._buffered = 0
        self._emit("close")

    async def drain(self) -> None:
        # Another caller is already sending, it will pick up our messages.
        if self._draining:
            return

        self._draining = True
        try:
            while self._messages:
                message = self._messages.popleft()
                if message["type"] == "http.response.body":
                    self._buffered -= len(message.get("body", b""))
                try:
                    await self._send(message)
                except OSError:
                    self.close()
                    raise

                if not self._messages and self._need_drain:
                    self._need_drain = False
                    self._emit("drain")
        finally:
            self._draining = False

    def _enqueue(self, message: Message) -> None:
        if self.closed:
            return
        if message["type"] == "http.response.body":
            self._buffered += len(message.get("body", b""))
        self._messages.append(message)

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners[event]):
            listener()


class CompressionResponder:
    """Compresses the response of a single request."""

    def __init__(
        self,
        app: ASGIApp,
        config: CompressionConfig,
        cache: Optional[CompressedCache] = None,
    ) -> None:
        self.app = app
        self.config = config
        self.cache = cache
        self._transport: Optional[SendTransport] = None
        self._receive: Optional[Receive] = None
        self._writer: Optional[CompressingWriter] = None

    @property
    def transport(self) -> SendTransport:
        assert self._transport is not None, "responder was not called"
        return self._transport

    @property
    def writer(self) -> CompressingWriter:
        assert self._writer is not None, "responder was not called"
        return self._writer

    async def __call__(
        self,
        scope: Scope,
        receive: Receive,
        send: Send,
    ) -> None:
        self._transport = SendTransport(
            send, high_water_mark=self.config.high_water_mark
        )
        self._receive = receive
        self._writer = CompressingWriter(
            self.transport,
            RequestInfo.from_scope(scope),
            self.config,
            cache=self.cache,
        )

        extensions = scope.get("extensions") or {}
        extensions[FLUSH_MESSAGE] = {}
        scope["extensions"] = extensions

        try:
            await self.app(
                scope, self.receive_with_disconnect, self.send_with_compression
            )
        except BaseException:
            self.transport.close()
            raise

    async def receive_with_disconnect(self) -> Message:
        assert self._receive is not None
        message = await self._receive()
        if message["type"] == "http.disconnect":
            self.transport.close()
        return message

    async def send_with_compression(self, message: Message) -> None:
        message_type = message["type"]
        writer = self.writer

        if message_type == "http.response.start":
            self.transport.start(message)
            return

        if message_type == "http.response.body":
            body = message.get("body", b"")
            if message.get("more_body", False):
                writer.write(body)
            else:
                writer.end(body)
        elif message_type == FLUSH_MESSAGE:
            writer.flush()
        else:
            # e.g. http.response.pathsend, the body never reaches us.
            writer.bypass(f"{message_type} message")
            self.transport.forward(message)

        await self.transport.drain()
