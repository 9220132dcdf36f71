import gzip
import zlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Dict, Iterable, List, Optional, Tuple

import brotli
from httpx import ASGITransport, AsyncClient

from asgi_shrink.types import ASGIApp, Headers, Listener, Message


@asynccontextmanager
async def get_test_client(
    middleware: ASGIApp,
) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=middleware),
        base_url="http://test",
    ) as client:
        yield client


def decompress(encoding: str, data: bytes) -> bytes:
    if encoding == "gzip":
        return gzip.decompress(data)
    if encoding == "deflate":
        return zlib.decompress(data)
    if encoding == "br":
        return brotli.decompress(data)
    return data


async def run_asgi(
    app: ASGIApp,
    *,
    method: str = "GET",
    path: str = "/",
    headers: Iterable[Tuple[str, str]] = (),
) -> List[Message]:
    """Run a single request through ``app``, returning every sent message."""
    scope = {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.4"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "query_string": b"",
        "headers": [
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in headers
        ],
    }
    messages: List[Message] = []

    async def receive() -> Message:
        return {"type": "http.request", "body": b"", "more_body": False}

    async def send(message: Message) -> None:
        messages.append(message)

    await app(scope, receive, send)
    return messages


def start_headers(messages: List[Message]) -> Headers:
    assert messages[0]["type"] == "http.response.start"
    return Headers(raw=messages[0]["headers"])


def body_of(messages: List[Message]) -> bytes:
    return b"".join(
        message.get("body", b"")
        for message in messages
        if message["type"] == "http.response.body"
    )


class FakeTransport:
    """In-memory transport whose buffer only empties when told to."""

    def __init__(
        self,
        headers: Optional[Dict[str, str]] = None,
        status_code: int = 200,
        high_water_mark: int = 16 * 1024,
    ) -> None:
        self.status_code = status_code
        self.headers = Headers(headers or {})
        self.high_water_mark = high_water_mark
        self.headers_sent = False
        self.sent_headers: Optional[Headers] = None
        self.buffer: List[bytes] = []
        self.received = bytearray()
        self.end_calls = 0
        self.drain_events = 0
        self.listeners: Dict[str, List[Listener]] = {"drain": [], "close": []}
        self._need_drain = False

    @property
    def ended(self) -> bool:
        return self.end_calls > 0

    @property
    def buffered(self) -> int:
        return sum(len(chunk) for chunk in self.buffer)

    def send_headers(self) -> None:
        if not self.headers_sent:
            self.headers_sent = True
            self.sent_headers = Headers(self.headers)

    def write(self, data: bytes) -> bool:
        self.send_headers()
        if data:
            self.buffer.append(bytes(data))
        if self.buffered >= self.high_water_mark:
            self._need_drain = True
            return False
        return True

    def end(self, data: bytes = b"") -> None:
        self.send_headers()
        self.end_calls += 1
        if data:
            self.buffer.append(bytes(data))

    def on(self, event: str, listener: Listener) -> None:
        self.listeners[event].append(listener)

    def flush_to_client(self) -> None:
        for chunk in self.buffer:
            self.received += chunk
        self.buffer.clear()
        if self._need_drain:
            self._need_drain = False
            self.drain_events += 1
            for listener in list(self.listeners["drain"]):
                listener()

    def close(self) -> None:
        for listener in list(self.listeners["close"]):
            listener()
