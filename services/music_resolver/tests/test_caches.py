from services.music_resolver.caches import PreviewCache, PreviewMatch, TokenCache


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_token_cache_empty_by_default() -> None:
    assert TokenCache(clock=FakeClock()).get() is None


def test_token_reused_until_safety_margin() -> None:
    clock = FakeClock()
    cache = TokenCache(clock=clock)
    cache.set("tok", expires_in_sec=3600)

    clock.now += 3600 - 21
    assert cache.get() == "tok"

    # Inside the 20s margin the token counts as expired.
    clock.now += 2
    assert cache.get() is None


def test_token_cache_replaces_token_on_set() -> None:
    clock = FakeClock()
    cache = TokenCache(clock=clock)
    cache.set("old", 10)
    cache.set("new", 3600)
    assert cache.get() == "new"


def test_preview_cache_hit_and_negative_hit() -> None:
    cache = PreviewCache(clock=FakeClock())
    match = PreviewMatch(stream_url="https://cdn.test/p.mp3", duration_sec=30.0)
    cache.store("song::artist", match)
    cache.store("nothing::here", None)

    assert cache.lookup("song::artist") == (True, match)
    assert cache.lookup("nothing::here") == (True, None)
    assert cache.lookup("unknown::key") == (False, None)


def test_preview_cache_evicts_least_recently_used() -> None:
    cache = PreviewCache(max_entries=2, clock=FakeClock())
    cache.store("a", None)
    cache.store("b", None)
    cache.lookup("a")
    cache.store("c", None)

    assert "a" in cache
    assert "b" not in cache
    assert "c" in cache
    assert len(cache) == 2


def test_preview_cache_entries_expire() -> None:
    clock = FakeClock()
    cache = PreviewCache(ttl_sec=60, clock=clock)
    cache.store("a", None)
    cache.store("b", None)

    clock.now += 61
    assert cache.lookup("a") == (False, None)
    assert "a" not in cache
    assert cache.clean() == 1
    assert len(cache) == 0
