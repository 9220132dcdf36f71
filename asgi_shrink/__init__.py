from .base import CompressionAlgorithm, CompressionStream, ContentEncoding
from .brotli import BROTLI_AVAILABLE, BrotliAlgorithm, BrotliMode
from .cache import CompressedCache
from .compressible import is_compressible
from .config import CompressionConfig, parse_bytes
from .deflate import DeflateAlgorithm
from .eligibility import check_eligibility, should_compress
from .gzip import GzipAlgorithm
from .middleware import CompressionMiddleware
from .negotiation import NotAcceptable, negotiate, parse_accept_encoding
from .responder import FLUSH_MESSAGE
from .writer import CompressingWriter, WriterState

__all__ = [
    "CompressionMiddleware",
    "CompressionAlgorithm",
    "CompressionConfig",
    "CompressionStream",
    "CompressingWriter",
    "CompressedCache",
    "ContentEncoding",
    "GzipAlgorithm",
    "DeflateAlgorithm",
    "BrotliAlgorithm",
    "BrotliMode",
    "BROTLI_AVAILABLE",
    "FLUSH_MESSAGE",
    "NotAcceptable",
    "WriterState",
    "check_eligibility",
    "is_compressible",
    "negotiate",
    "parse_accept_encoding",
    "parse_bytes",
    "should_compress",
]
