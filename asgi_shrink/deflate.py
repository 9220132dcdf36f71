import zlib
from dataclasses import dataclass, replace

from .base import CompressionAlgorithm, ContentEncoding
from .gzip import ZlibStream


class DeflateStream(ZlibStream):
    """HTTP ``deflate``: a zlib (RFC 1950) wrapped deflate stream."""

    content_encoding = ContentEncoding.DEFLATE

    def __init__(
        self,
        level: int = zlib.Z_DEFAULT_COMPRESSION,
        window_bits: int = zlib.MAX_WBITS,
        mem_level: int = zlib.DEF_MEM_LEVEL,
        strategy: int = zlib.Z_DEFAULT_STRATEGY,
    ) -> None:
        super().__init__(level, window_bits, mem_level, strategy)


@dataclass
class DeflateAlgorithm(CompressionAlgorithm):
    """Deflate compression algorithm."""

    type: ContentEncoding = ContentEncoding.DEFLATE
    level: int = zlib.Z_DEFAULT_COMPRESSION
    window_bits: int = zlib.MAX_WBITS
    mem_level: int = zlib.DEF_MEM_LEVEL
    strategy: int = zlib.Z_DEFAULT_STRATEGY

    def create_stream(self) -> DeflateStream:
        return DeflateStream(
            level=self.level,
            window_bits=self.window_bits,
            mem_level=self.mem_level,
            strategy=self.strategy,
        )

    def best_quality(self) -> "DeflateAlgorithm":
        return replace(
            self,
            level=zlib.Z_BEST_COMPRESSION,
            window_bits=zlib.MAX_WBITS,
            mem_level=9,
        )

    def decompress(self, data: bytes) -> bytes:
        return zlib.decompress(data)
