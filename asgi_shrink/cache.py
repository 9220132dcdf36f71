import asyncio
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Optional, Set, Tuple

from .base import CompressionAlgorithm, CompressionStream, ContentEncoding

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, str]


@dataclass
class CacheEntry:
    body: bytes
    size: int
    upgraded: bool = False


def entry_size(key: CacheKey, body: bytes) -> int:
    encoding, url, validator = key
    return len(body) + len(encoding) + 2 * (len(url) + len(validator))


class BufferedStream(CompressionStream):
    """Replays an already compressed body, ignoring whatever is written.

    The body is complete by construction, so there is nothing to flush.
    """

    supports_flush = False

    def __init__(self, encoding: str, body: bytes) -> None:
        super().__init__()
        self.content_encoding = ContentEncoding(encoding)
        self.body = body

    def apply_compression(self, data: bytes) -> bytes:
        return b""

    def apply_flush(self) -> bytes:  # pragma: no cover
        return b""

    def apply_finish(self) -> bytes:
        return self.body


class CompressedCache:
    """Compressed response bodies keyed by encoding, URL and ETag.

    Entries are evicted least recently used first once their accounted size
    goes over ``capacity`` bytes. Every stored entry is re-compressed at the
    best quality in the background and swapped in place when done.
    """

    def __init__(
        self,
        capacity: int,
        algorithms: Dict[str, CompressionAlgorithm],
        recompress: bool = True,
    ) -> None:
        self.capacity = capacity
        self.algorithms = algorithms
        self.recompress = recompress
        self.size = 0
        self._entries: "OrderedDict[CacheKey, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._tasks: Set["asyncio.Task[None]"] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def lookup(
        self, encoding: str, url: str, validator: str
    ) -> Optional[bytes]:
        key = (encoding, url, validator)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry.body

    def store(
        self, encoding: str, url: str, validator: str, body: bytes
    ) -> None:
        key = (encoding, url, validator)
        size = entry_size(key, body)
        if size > self.capacity:
            logger.debug("not caching %s %s: larger than cache", encoding, url)
            return

        with self._lock:
            # Another request may have filled the slot already.
            if key in self._entries:
                return
            self._entries[key] = CacheEntry(body=body, size=size)
            self.size += size
            self._evict()

        if self.recompress and encoding in self.algorithms:
            self._schedule(key, body)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.size = 0

    async def wait_recompressed(self) -> None:
        """Wait until every scheduled re-compression has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _evict(self) -> None:
        while self.size > self.capacity and self._entries:
            key, entry = self._entries.popitem(last=False)
            self.size -= entry.size
            logger.debug("evicted %s %s from cache", key[0], key[1])

    def _schedule(self, key: CacheKey, body: bytes) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running event loop, skipping re-compression")
            return

        task = loop.create_task(self._recompress(key, body))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _recompress(self, key: CacheKey, body: bytes) -> None:
        algorithm = self.algorithms[key[0]]
        try:
            upgraded = await asyncio.to_thread(
                _reencode, algorithm, body
            )
        except Exception:
            logger.exception("re-compression of %s %s failed", key[0], key[1])
            return

        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.body is not body:
                return
            size = entry_size(key, upgraded)
            self.size += size - entry.size
            entry.body = upgraded
            entry.size = size
            entry.upgraded = True
            self._evict()


def _reencode(algorithm: CompressionAlgorithm, body: bytes) -> bytes:
    return algorithm.best_quality().compress(algorithm.decompress(body))
