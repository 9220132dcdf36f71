import gzip

from asgi_shrink.cache import CompressedCache, entry_size
from asgi_shrink.gzip import GzipAlgorithm

ALGORITHMS = {"gzip": GzipAlgorithm(level=1)}


def make_cache(capacity: int, recompress: bool = False) -> CompressedCache:
    return CompressedCache(capacity, ALGORITHMS, recompress=recompress)


def test_entry_size_accounts_for_key():
    assert entry_size(("gzip", "/a", '"1"'), b"12345") == 5 + 4 + 2 * (2 + 3)


def test_lookup_miss():
    cache = make_cache(1024)
    assert cache.lookup("gzip", "/", '"v"') is None


def test_store_and_lookup():
    cache = make_cache(1024)
    cache.store("gzip", "/", '"v"', b"body")
    assert cache.lookup("gzip", "/", '"v"') == b"body"
    assert cache.lookup("br", "/", '"v"') is None
    assert cache.lookup("gzip", "/", '"w"') is None
    assert ("gzip", "/", '"v"') in cache


def test_first_writer_wins():
    cache = make_cache(1024)
    cache.store("gzip", "/", '"v"', b"first")
    cache.store("gzip", "/", '"v"', b"second")
    assert cache.lookup("gzip", "/", '"v"') == b"first"
    assert len(cache) == 1


def test_least_recently_used_is_evicted():
    size = entry_size(("gzip", "/a", '"v"'), b"x" * 100)
    cache = make_cache(size * 2)

    cache.store("gzip", "/a", '"v"', b"x" * 100)
    cache.store("gzip", "/b", '"v"', b"x" * 100)
    # Touch /a so /b becomes the oldest.
    assert cache.lookup("gzip", "/a", '"v"') is not None
    cache.store("gzip", "/c", '"v"', b"x" * 100)

    assert cache.lookup("gzip", "/b", '"v"') is None
    assert cache.lookup("gzip", "/a", '"v"') is not None
    assert cache.lookup("gzip", "/c", '"v"') is not None
    assert cache.size <= cache.capacity


def test_oversized_entry_is_not_stored():
    cache = make_cache(64)
    cache.store("gzip", "/", '"v"', b"x" * 100)
    assert len(cache) == 0
    assert cache.size == 0


def test_clear():
    cache = make_cache(1024)
    cache.store("gzip", "/", '"v"', b"body")
    cache.clear()
    assert len(cache) == 0
    assert cache.size == 0


def test_store_without_event_loop_skips_recompression():
    cache = make_cache(1 << 20, recompress=True)
    body = gzip.compress(b"data" * 100, compresslevel=1)
    cache.store("gzip", "/", '"v"', body)
    assert cache.lookup("gzip", "/", '"v"') == body


async def test_recompression_replaces_entry():
    cache = make_cache(1 << 20, recompress=True)
    payload = b"the quick brown fox jumps over the lazy dog " * 500
    body = GzipAlgorithm(level=1).compress(payload)

    cache.store("gzip", "/", '"v"', body)
    await cache.wait_recompressed()

    upgraded = cache.lookup("gzip", "/", '"v"')
    assert upgraded is not None
    assert gzip.decompress(upgraded) == payload
    assert cache._entries[("gzip", "/", '"v"')].upgraded
    assert cache.size == entry_size(("gzip", "/", '"v"'), upgraded)


async def test_recompression_skips_evicted_entry():
    payload = b"abc" * 1000
    body = GzipAlgorithm(level=1).compress(payload)
    cache = make_cache(entry_size(("gzip", "/", '"v"'), body), recompress=True)

    cache.store("gzip", "/", '"v"', body)
    cache.clear()
    await cache.wait_recompressed()

    assert len(cache) == 0
    assert cache.size == 0


async def test_unknown_encoding_is_not_recompressed():
    cache = make_cache(1 << 20, recompress=True)
    cache.store("br", "/", '"v"', b"opaque")
    await cache.wait_recompressed()
    assert cache.lookup("br", "/", '"v"') == b"opaque"
