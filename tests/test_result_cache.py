import pytest
import redis

from lyricflash.core import result_cache as module
from lyricflash.core.flashcards import Flashcard
from lyricflash.core.result_cache import (
    MemoryCacheBackend,
    RedisCacheBackend,
    ResultCache,
    create_cache_backend,
    escape_glob,
    flashcards_key,
    sentiment_key,
)
from lyricflash.core.sentiment_analyzer import EmotionScore, SentimentResult


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class BrokenBackend:
    name = "broken"

    async def get(self, key):
        raise redis.ConnectionError("down")

    async def set(self, key, value, ttl_seconds):
        raise redis.ConnectionError("down")

    async def delete(self, *keys):
        raise redis.ConnectionError("down")

    async def delete_prefix(self, prefix):
        raise redis.ConnectionError("down")

    async def ping(self):
        raise redis.ConnectionError("down")

    async def close(self):
        return None


class StubRedis:
    """Just enough of redis.asyncio.Redis for RedisCacheBackend."""

    def __init__(self, fail_ping=False):
        self.data = {}
        self.fail_ping = fail_ping
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value

    async def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def scan_iter(self, match=None, count=None):
        prefix = match[:-1].replace("\\", "")
        for key in list(self.data):
            if key.startswith(prefix):
                yield key

    async def ping(self):
        if self.fail_ping:
            raise redis.ConnectionError("Connection refused")
        return True

    async def aclose(self):
        self.closed = True


CARDS = [Flashcard("Te quiero", "I love you"), Flashcard("Adiós", "Goodbye")]


def _sentiment():
    return SentimentResult(
        sentiment="Very Positive",
        emoji="😄",
        score="0.90",
        emotions=[EmotionScore("Love", "0.81")],
        primary_emotion="Love",
        emotion_score="0.81",
        song_metadata={"title": "Song", "artist": "Artist"},
    )


def test_key_layout():
    assert flashcards_key("u1", "Despacito") == "flashcards:u1:Despacito"
    assert flashcards_key("u1", "Despacito", "fr") == "flashcards:u1:Despacito:FR"
    assert sentiment_key(7, "Despacito", "Luis Fonsi") == "sentiment:7:Despacito:Luis Fonsi"


def test_colon_in_title_cannot_collide_with_language_variant():
    assert flashcards_key("u1", "Song:FR") != flashcards_key("u1", "Song", "FR")
    assert flashcards_key("u1", "Song:FR") == "flashcards:u1:Song%3AFR"


def test_escape_glob():
    assert escape_glob("a*b?[c]") == "a\\*b\\?\\[c\\]"


@pytest.mark.asyncio
async def test_memory_backend_expires_entries():
    clock = FakeClock()
    backend = MemoryCacheBackend(clock=clock)
    await backend.set("k", "v", 60)
    assert await backend.get("k") == "v"
    clock.now += 61
    assert await backend.get("k") is None


@pytest.mark.asyncio
async def test_memory_backend_is_bounded():
    backend = MemoryCacheBackend(max_entries=2)
    for key in ("a", "b", "c"):
        await backend.set(key, key, 60)
    assert len(backend) == 2
    assert await backend.get("a") is None


@pytest.mark.asyncio
async def test_flashcards_round_trip_and_replace():
    cache = ResultCache(MemoryCacheBackend())
    assert await cache.get_flashcards("u1", "Song") is None
    await cache.set_flashcards("u1", "Song", None, CARDS)
    assert await cache.get_flashcards("u1", "Song") == CARDS
    await cache.set_flashcards("u1", "Song", None, CARDS[:1])
    assert await cache.get_flashcards("u1", "Song") == CARDS[:1]


@pytest.mark.asyncio
async def test_forced_language_is_a_separate_entry():
    cache = ResultCache(MemoryCacheBackend())
    await cache.set_flashcards("u1", "Song", "FR", CARDS)
    assert await cache.get_flashcards("u1", "Song") is None
    assert await cache.get_flashcards("u1", "Song", "fr") == CARDS


@pytest.mark.asyncio
async def test_sentiment_round_trip():
    cache = ResultCache(MemoryCacheBackend())
    await cache.set_sentiment("u1", "Song", "Artist", _sentiment())
    restored = await cache.get_sentiment("u1", "Song", "Artist")
    assert restored == _sentiment()
    assert await cache.get_sentiment("u1", "Song") is None


@pytest.mark.asyncio
async def test_invalidate_song_removes_all_variants_in_both_namespaces():
    backend = MemoryCacheBackend()
    cache = ResultCache(backend)
    await cache.set_flashcards("u1", "Song", None, CARDS)
    await cache.set_flashcards("u1", "Song", "FR", CARDS)
    await cache.set_sentiment("u1", "Song", "Artist", _sentiment())
    await cache.set_flashcards("u1", "Song 2", None, CARDS)
    await cache.set_flashcards("u2", "Song", None, CARDS)

    assert await cache.invalidate_song("u1", "Song") == 3
    assert await cache.get_flashcards("u1", "Song") is None
    assert await cache.get_flashcards("u1", "Song", "FR") is None
    assert await cache.get_sentiment("u1", "Song", "Artist") is None
    assert await cache.get_flashcards("u1", "Song 2") == CARDS
    assert await cache.get_flashcards("u2", "Song") == CARDS


@pytest.mark.asyncio
async def test_invalidate_user_leaves_other_users_alone():
    cache = ResultCache(MemoryCacheBackend())
    await cache.set_flashcards("u1", "A", None, CARDS)
    await cache.set_sentiment("u1", "B", None, _sentiment())
    await cache.set_flashcards("u10", "A", None, CARDS)
    assert await cache.invalidate_user("u1") == 2
    assert await cache.get_flashcards("u10", "A") == CARDS


@pytest.mark.asyncio
async def test_backend_errors_are_misses():
    cache = ResultCache(BrokenBackend())
    assert await cache.get_flashcards("u1", "Song") is None
    assert await cache.set_flashcards("u1", "Song", None, CARDS) is False
    assert await cache.invalidate_song("u1", "Song") == 0


@pytest.mark.asyncio
async def test_corrupt_payload_is_a_miss():
    backend = MemoryCacheBackend()
    await backend.set(flashcards_key("u1", "Song"), "{not json", 60)
    assert await ResultCache(backend).get_flashcards("u1", "Song") is None


@pytest.mark.asyncio
async def test_redis_backend_prefix_delete():
    stub = StubRedis()
    cache = ResultCache(RedisCacheBackend(stub))
    await cache.set_flashcards("u1", "Song", None, CARDS)
    await cache.set_flashcards("u1", "Song", "JA", CARDS)
    await cache.set_flashcards("u1", "Song*", None, CARDS)
    assert await cache.invalidate_song("u1", "Song") == 2
    assert list(stub.data) == ["flashcards:u1:Song*"]


@pytest.mark.asyncio
async def test_create_cache_backend_falls_back_to_memory(monkeypatch):
    stub = StubRedis(fail_ping=True)
    monkeypatch.setattr(module.RedisCacheBackend, "from_url", classmethod(lambda cls, url: cls(stub)))
    backend = await create_cache_backend("redis://127.0.0.1:1/0")
    assert isinstance(backend, MemoryCacheBackend)
    assert stub.closed


@pytest.mark.asyncio
async def test_create_cache_backend_uses_redis_when_reachable(monkeypatch):
    stub = StubRedis()
    monkeypatch.setattr(module.RedisCacheBackend, "from_url", classmethod(lambda cls, url: cls(stub)))
    backend = await create_cache_backend("redis://127.0.0.1:6379/0")
    assert isinstance(backend, RedisCacheBackend)


@pytest.mark.asyncio
async def test_no_url_means_memory():
    assert isinstance(await create_cache_backend(""), MemoryCacheBackend)


class SentimentDeleteFails(MemoryCacheBackend):
    async def delete(self, *keys):
        if any(key.startswith("sentiment:") for key in keys):
            raise redis.ConnectionError("down")
        return await super().delete(*keys)


@pytest.mark.asyncio
async def test_invalidate_song_reports_entries_removed_before_a_failure():
    cache = ResultCache(SentimentDeleteFails())
    await cache.set_flashcards("u1", "Song", None, CARDS)
    await cache.set_flashcards("u1", "Song", "FR", CARDS)
    await cache.set_sentiment("u1", "Song", None, _sentiment())
    assert await cache.invalidate_song("u1", "Song") == 2
    assert await cache.get_flashcards("u1", "Song") is None
