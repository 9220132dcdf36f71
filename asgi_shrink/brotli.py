import platform
from dataclasses import dataclass, replace
from enum import Enum
from types import ModuleType
from typing import Optional

from .base import CompressionAlgorithm, CompressionStream, ContentEncoding


def _load_brotli() -> Optional[ModuleType]:
    # brotlicffi exposes the same API and is the faster choice off CPython.
    if platform.python_implementation() == "CPython":
        names = ("brotli", "brotlicffi")
    else:  # pragma: no cover
        names = ("brotlicffi", "brotli")

    for name in names:
        try:
            return __import__(name)
        except ImportError:
            continue
    return None


brotli = _load_brotli()

# Computed once at import and never changed afterwards.
BROTLI_AVAILABLE = brotli is not None

BROTLI_DEFAULT_QUALITY = 4
BROTLI_MAX_QUALITY = 11


def import_brotli() -> ModuleType:
    if brotli is None:
        raise ImportError(
            "brotli is not installed, run `pip install brotli`"
        )
    return brotli


class BrotliMode(Enum):
    TEXT = "text"
    FONT = "font"
    GENERIC = "generic"

    def to_brotli_mode(self) -> int:
        module = import_brotli()
        if self == BrotliMode.TEXT:
            return module.MODE_TEXT
        elif self == BrotliMode.FONT:
            return module.MODE_FONT
        elif self == BrotliMode.GENERIC:
            return module.MODE_GENERIC
        else:
            assert False, f"Expected code to be unreachable, but got: {self}"


class BrotliStream(CompressionStream):
    """Compression stream that applies brotli compression."""

    content_encoding = ContentEncoding.BROTLI

    def __init__(
        self,
        quality: int = BROTLI_DEFAULT_QUALITY,
        mode: BrotliMode = BrotliMode.TEXT,
        lgwin: int = 22,
        lgblock: int = 0,
    ) -> None:
        super().__init__()

        module = import_brotli()
        self.compressor = module.Compressor(
            quality=quality,
            mode=mode.to_brotli_mode(),
            lgwin=lgwin,
            lgblock=lgblock,
        )

    def apply_compression(self, data: bytes) -> bytes:
        return self.compressor.process(data)

    def apply_flush(self) -> bytes:
        return self.compressor.flush()

    def apply_finish(self) -> bytes:
        return self.compressor.finish()


@dataclass
class BrotliAlgorithm(CompressionAlgorithm):
    """Brotli compression algorithm."""

    type: ContentEncoding = ContentEncoding.BROTLI
    quality: int = BROTLI_DEFAULT_QUALITY
    mode: BrotliMode = BrotliMode.TEXT
    lgwin: int = 22
    lgblock: int = 0

    def create_stream(self) -> BrotliStream:
        return BrotliStream(
            quality=self.quality,
            mode=self.mode,
            lgwin=self.lgwin,
            lgblock=self.lgblock,
        )

    def best_quality(self) -> "BrotliAlgorithm":
        return replace(self, quality=BROTLI_MAX_QUALITY)

    def decompress(self, data: bytes) -> bytes:
        return import_brotli().decompress(data)

    def check_available(self) -> None:
        import_brotli()
