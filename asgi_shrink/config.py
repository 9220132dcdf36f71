import re
from dataclasses import dataclass, field
from typing import (
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from .base import CompressionAlgorithm, ContentEncoding
from .brotli import BROTLI_AVAILABLE, BrotliAlgorithm, BrotliMode
from .deflate import DeflateAlgorithm
from .eligibility import Filter, should_compress
from .gzip import GzipAlgorithm
from .negotiation import IDENTITY

DEFAULT_THRESHOLD = 1024
DEFAULT_CACHE_SIZE = "128mb"
DEFAULT_TRANSPORT_HIGH_WATER_MARK = 64 * 1024

Threshold = Union[int, str, bool, None]

_units = {
    "b": 1,
    "kb": 1 << 10,
    "mb": 1 << 20,
    "gb": 1 << 30,
    "tb": 1 << 40,
    "pb": 1 << 50,
}
_bytes_re = re.compile(
    r"^\s*((?:-|\+)?(?:\d+(?:\.\d*)?|\.\d+))\s*(b|kb|mb|gb|tb|pb)?\s*$",
    re.IGNORECASE,
)

# Options accepted at the top level of legacy option mappings and their
# zlib counterpart.
_LEGACY_ZLIB_OPTIONS = {
    "level": "level",
    "window_bits": "window_bits",
    "windowBits": "window_bits",
    "mem_level": "mem_level",
    "memLevel": "mem_level",
    "strategy": "strategy",
}
_LEGACY_BROTLI_OPTIONS = ("quality", "mode", "lgwin", "lgblock")


def parse_bytes(value: Union[int, str]) -> int:
    """Convert a byte size such as ``"1kb"`` or ``"128mB"`` into bytes."""
    if isinstance(value, bool):
        raise TypeError(f"Invalid byte size: {value!r}")
    if isinstance(value, int):
        return value

    match = _bytes_re.match(value)
    if match is None:
        raise ValueError(f"Invalid byte size: {value!r}")

    number, unit = match.groups()
    return int(float(number) * _units[(unit or "b").lower()])


def parse_threshold(threshold: Threshold) -> Optional[int]:
    """``None`` or ``False`` disables the size check altogether."""
    if threshold is None or threshold is False:
        return None
    if threshold is True:
        return DEFAULT_THRESHOLD
    return parse_bytes(threshold)


def default_algorithms() -> List[CompressionAlgorithm]:
    """Server preference order: brotli, then gzip, then deflate."""
    algorithms: List[CompressionAlgorithm] = []
    if BROTLI_AVAILABLE:
        algorithms.append(BrotliAlgorithm())
    algorithms.append(GzipAlgorithm())
    algorithms.append(DeflateAlgorithm())
    return algorithms


@dataclass(frozen=True)
class CompressionConfig:
    """Settings shared, read-only, by every response of a middleware."""

    algorithms: Tuple[CompressionAlgorithm, ...]
    filter: Filter = should_compress
    threshold: Optional[int] = DEFAULT_THRESHOLD
    enforce_encoding: Optional[str] = IDENTITY
    cache_filter: Optional[Filter] = None
    high_water_mark: int = DEFAULT_TRANSPORT_HIGH_WATER_MARK
    by_encoding: Dict[str, CompressionAlgorithm] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        by_encoding: Dict[str, CompressionAlgorithm] = {}
        for algorithm in self.algorithms:
            token = str(algorithm.type.value)
            if token == IDENTITY:
                raise ValueError("identity is not a compression algorithm")
            if token in by_encoding:
                raise ValueError(f"Duplicate algorithm for {token!r}")
            algorithm.check_available()
            by_encoding[token] = algorithm
        object.__setattr__(self, "by_encoding", by_encoding)

        if self.threshold is not None and self.threshold < 0:
            raise ValueError("threshold must not be negative")

    @classmethod
    def create(
        cls,
        algorithms: Optional[Iterable[CompressionAlgorithm]] = None,
        *,
        filter: Optional[Filter] = None,
        threshold: Threshold = DEFAULT_THRESHOLD,
        enforce_encoding: Optional[str] = IDENTITY,
        encodings: Optional[Mapping[str, bool]] = None,
        cache_filter: Optional[Filter] = None,
        high_water_mark: int = DEFAULT_TRANSPORT_HIGH_WATER_MARK,
    ) -> "CompressionConfig":
        if algorithms is None:
            algorithms = default_algorithms()
        unknown = set(encodings or {}) - {e.value for e in ContentEncoding}
        if unknown:
            raise ValueError(f"Unknown encodings: {', '.join(sorted(unknown))}")
        disabled = {
            token for token, enabled in (encodings or {}).items() if not enabled
        }
        return cls(
            algorithms=tuple(
                algorithm
                for algorithm in algorithms
                if str(algorithm.type.value) not in disabled
            ),
            filter=filter or should_compress,
            threshold=parse_threshold(threshold),
            enforce_encoding=enforce_encoding,
            cache_filter=cache_filter,
            high_water_mark=high_water_mark,
        )

    @property
    def supported(self) -> Tuple[str, ...]:
        """Enabled encoding tokens, in server preference order."""
        return tuple(self.by_encoding)


def algorithms_from_options(
    options: Mapping[str, Any],
) -> List[CompressionAlgorithm]:
    """Build algorithms out of flat, legacy style option mappings.

    zlib settings may be given at the top level (``level``, ``window_bits``,
    ``mem_level``, ``strategy``) or under ``zlib``; brotli settings under
    ``brotli``. Nested values win over top level ones.
    """
    zlib_options: Dict[str, Any] = {}
    for name, target in _LEGACY_ZLIB_OPTIONS.items():
        if options.get(name) is not None:
            zlib_options[target] = options[name]
    for name, value in (options.get("zlib") or {}).items():
        if name not in _LEGACY_ZLIB_OPTIONS:
            raise TypeError(f"Unknown zlib option: {name!r}")
        zlib_options[_LEGACY_ZLIB_OPTIONS[name]] = value

    brotli_options: Dict[str, Any] = {}
    for name, value in (options.get("brotli") or {}).items():
        if name not in _LEGACY_BROTLI_OPTIONS:
            raise TypeError(f"Unknown brotli option: {name!r}")
        brotli_options[name] = value
    if isinstance(brotli_options.get("mode"), str):
        brotli_options["mode"] = BrotliMode(brotli_options["mode"])

    algorithms: List[CompressionAlgorithm] = []
    if BROTLI_AVAILABLE:
        algorithms.append(BrotliAlgorithm(**brotli_options))
    algorithms.append(GzipAlgorithm(**zlib_options))
    algorithms.append(DeflateAlgorithm(**zlib_options))
    return algorithms
