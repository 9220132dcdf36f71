from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, Dict, List, Optional, Tuple

from .types import Listener

DEFAULT_HIGH_WATER_MARK = 16 * 1024


class ContentEncoding(str, Enum):
    GZIP = "gzip"
    DEFLATE = "deflate"
    BROTLI = "br"
    IDENTITY = "identity"


class CompressionStream(ABC):
    """Transform stream turning written bytes into compressed output.

    Output is queued and handed to ``"data"`` listeners in order, unless the
    stream is paused. ``write`` returns ``False`` once the queued output
    reaches ``high_water_mark``; ``"drain"`` is emitted when the queue has
    been emptied after that. ``"end"`` is emitted after the last chunk of
    output has been delivered.
    """

    content_encoding: ContentEncoding
    supports_flush = True

    def __init__(self, high_water_mark: int = DEFAULT_HIGH_WATER_MARK) -> None:
        self.high_water_mark = high_water_mark
        self.ended = False
        self.destroyed = False
        self._listeners: Dict[str, List[Listener]] = {
            "data": [],
            "drain": [],
            "end": [],
        }
        self._pending: Deque[bytes] = deque()
        self._pending_size = 0
        self._queued = 0
        self._delivered = 0
        self._flush_callbacks: Deque[Tuple[int, Callable[[], None]]] = deque()
        self._paused = False
        self._emitting = False
        self._need_drain = False
        self._ending = False

    @abstractmethod
    def apply_compression(self, data: bytes) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def apply_flush(self) -> bytes:
        """Return whatever the compressor holds, aligned to a byte boundary."""
        raise NotImplementedError

    @abstractmethod
    def apply_finish(self) -> bytes:
        raise NotImplementedError

    def release(self) -> None:
        """Free compressor resources after the stream was destroyed."""

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def writable(self) -> bool:
        return not (self._ending or self.destroyed)

    @property
    def pending_size(self) -> int:
        return self._pending_size

    def on(self, event: str, listener: Listener) -> None:
        if event not in self._listeners:
            raise ValueError(f"Unsupported stream event: {event!r}")
        self._listeners[event].append(listener)

    def write(self, data: bytes) -> bool:
        if not self.writable:
            return False

        if data:
            self._push(self.apply_compression(data))
        self._deliver()

        if self._pending_size >= self.high_water_mark:
            self._need_drain = True
            return False
        return True

    def end(self, data: bytes = b"") -> None:
        if not self.writable:
            return

        if data:
            self._push(self.apply_compression(data))
        self._push(self.apply_finish())
        self._ending = True
        self._deliver()

    def flush(self, callback: Optional[Callable[[], None]] = None) -> None:
        if self.destroyed:
            return

        if self.supports_flush and not self._ending:
            self._push(self.apply_flush())
        if callback is not None:
            self._flush_callbacks.append((self._queued, callback))
        self._deliver()

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        if not self._paused:
            return
        self._paused = False
        self._deliver()

    def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        self._pending.clear()
        self._pending_size = 0
        self._flush_callbacks.clear()
        self.release()

    def _push(self, chunk: bytes) -> None:
        if not chunk:
            return
        self._pending.append(chunk)
        self._pending_size += len(chunk)
        self._queued += len(chunk)

    def _emit(self, event: str, *args: object) -> None:
        for listener in list(self._listeners[event]):
            listener(*args)

    def _run_flush_callbacks(self) -> None:
        while (
            self._flush_callbacks
            and self._flush_callbacks[0][0] <= self._delivered
        ):
            _, callback = self._flush_callbacks.popleft()
            callback()

    def _deliver(self) -> None:
        # Listeners may write, resume or end from inside a callback; the
        # outermost call owns the loop.
        if self._emitting or self.destroyed:
            return

        self._emitting = True
        try:
            while self._pending and not self._paused and not self.destroyed:
                chunk = self._pending.popleft()
                self._pending_size -= len(chunk)
                self._delivered += len(chunk)
                self._emit("data", chunk)
                self._run_flush_callbacks()
        finally:
            self._emitting = False

        if self._pending or self.destroyed:
            return

        self._run_flush_callbacks()
        if self._need_drain:
            self._need_drain = False
            self._emit("drain")

        if self._ending and not self.ended and not self._pending:
            self.ended = True
            self._emit("end")


@dataclass
class CompressionAlgorithm(ABC):
    """Base class for compression algorithms."""

    type: ContentEncoding

    @abstractmethod
    def create_stream(self) -> CompressionStream:
        """Create a fresh compression stream for a single response."""
        raise NotImplementedError

    @abstractmethod
    def best_quality(self) -> "CompressionAlgorithm":
        """Same algorithm, configured for the smallest possible output."""
        raise NotImplementedError

    @abstractmethod
    def decompress(self, data: bytes) -> bytes:
        raise NotImplementedError

    def compress(self, data: bytes) -> bytes:
        chunks: List[bytes] = []
        stream = self.create_stream()
        stream.on("data", chunks.append)
        stream.end(data)
        return b"".join(chunks)

    def check_available(self) -> None:
        """Raise ``ImportError`` when the codec library is missing."""
