import zlib
from dataclasses import dataclass, replace

from .base import CompressionAlgorithm, CompressionStream, ContentEncoding

# Added to window_bits, makes zlib write a gzip header and trailer.
GZIP_WBITS_OFFSET = 16


class ZlibStream(CompressionStream):
    """Compression stream backed by a ``zlib.compressobj``."""

    def __init__(
        self,
        level: int,
        wbits: int,
        mem_level: int,
        strategy: int,
    ) -> None:
        super().__init__()
        self.compressor = zlib.compressobj(
            level,
            zlib.DEFLATED,
            wbits,
            mem_level,
            strategy,
        )

    def apply_compression(self, data: bytes) -> bytes:
        return self.compressor.compress(data)

    def apply_flush(self) -> bytes:
        return self.compressor.flush(zlib.Z_SYNC_FLUSH)

    def apply_finish(self) -> bytes:
        return self.compressor.flush(zlib.Z_FINISH)


class GzipStream(ZlibStream):
    content_encoding = ContentEncoding.GZIP

    def __init__(
        self,
        level: int = zlib.Z_DEFAULT_COMPRESSION,
        window_bits: int = zlib.MAX_WBITS,
        mem_level: int = zlib.DEF_MEM_LEVEL,
        strategy: int = zlib.Z_DEFAULT_STRATEGY,
    ) -> None:
        super().__init__(
            level, GZIP_WBITS_OFFSET + window_bits, mem_level, strategy
        )


@dataclass
class GzipAlgorithm(CompressionAlgorithm):
    """Gzip compression algorithm."""

    type: ContentEncoding = ContentEncoding.GZIP
    level: int = zlib.Z_DEFAULT_COMPRESSION
    window_bits: int = zlib.MAX_WBITS
    mem_level: int = zlib.DEF_MEM_LEVEL
    strategy: int = zlib.Z_DEFAULT_STRATEGY

    def create_stream(self) -> GzipStream:
        return GzipStream(
            level=self.level,
            window_bits=self.window_bits,
            mem_level=self.mem_level,
            strategy=self.strategy,
        )

    def best_quality(self) -> "GzipAlgorithm":
        return replace(
            self,
            level=zlib.Z_BEST_COMPRESSION,
            window_bits=zlib.MAX_WBITS,
            mem_level=9,
        )

    def decompress(self, data: bytes) -> bytes:
        return zlib.decompress(data, GZIP_WBITS_OFFSET + zlib.MAX_WBITS)
