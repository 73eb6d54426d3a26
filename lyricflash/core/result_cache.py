"""
Result cache for flashcards and sentiment.

Keys look like ``namespace:user_id:song_title[:variant]``. The flashcard
variant is a forced language code, the sentiment variant an artist name.
Segments escape ``%`` and ``:`` so a title containing a colon can never be
mistaken for a variant of another title.

The backend is injected. Redis is used when reachable, with an in-memory
fallback. Reads and writes never raise: any backend problem is logged and
treated as a miss, so the pipeline simply recomputes.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Protocol, Tuple

import redis
import redis.asyncio as aioredis

from lyricflash.config import settings
from lyricflash.core.flashcards import Flashcard
from lyricflash.core.sentiment_analyzer import SentimentResult

logger = logging.getLogger(__name__)

FLASHCARDS_NAMESPACE = "flashcards"
SENTIMENT_NAMESPACE = "sentiment"


class CacheBackend(Protocol):
    name: str

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def delete(self, *keys: str) -> int:
        ...

    async def delete_prefix(self, prefix: str) -> int:
        ...

    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        ...


class MemoryCacheBackend:
    name = "in-memory"

    def __init__(self, max_entries: int = settings.MEMORY_CACHE_MAX, clock=time.monotonic):
        self.max_entries = max(1, int(max_entries))
        self._clock = clock
        self._entries: Dict[str, Tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[str]:
        hit = self._entries.get(key)
        if hit is None:
            return None
        expires_at, value = hit
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest_key = next(iter(self._entries))
            self._entries.pop(oldest_key, None)
        # Re-insert so the dict order stays oldest-write first.
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + max(1, int(ttl_seconds)), value)

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self._entries.pop(key, None) is not None)

    async def delete_prefix(self, prefix: str) -> int:
        matched = [key for key in self._entries if key.startswith(prefix)]
        return await self.delete(*matched)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def escape_glob(value: str) -> str:
    return "".join("\\" + ch if ch in "*?[]\\" else ch for ch in value)


class RedisCacheBackend:
    name = "redis"

    def __init__(self, client: aioredis.Redis):
        self._client = client

    @classmethod
    def from_url(
        cls, url: str, connect_timeout: float = settings.REDIS_CONNECT_TIMEOUT_SEC
    ) -> "RedisCacheBackend":
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=connect_timeout,
            socket_timeout=connect_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=max(1, int(ttl_seconds)))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._client.delete(*keys))

    async def delete_prefix(self, prefix: str) -> int:
        pattern = escape_glob(prefix) + "*"
        keys = [key async for key in self._client.scan_iter(match=pattern, count=200)]
        removed = 0
        for start in range(0, len(keys), 500):
            removed += await self.delete(*keys[start:start + 500])
        return removed

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()


async def create_cache_backend(url: Optional[str] = settings.REDIS_URL) -> CacheBackend:
    """Connect to Redis, falling back to an in-memory backend when unavailable."""
    if not url:
        logger.info("No REDIS_URL configured, using in-memory cache")
        return MemoryCacheBackend()
    backend = RedisCacheBackend.from_url(url)
    try:
        await backend.ping()
    except (redis.RedisError, OSError) as exc:
        logger.warning("Redis unavailable, using in-memory fallback: %s", exc)
        try:
            await backend.close()
        except (redis.RedisError, OSError) as close_exc:
            logger.debug("Ignoring error while closing Redis client: %s", close_exc)
        return MemoryCacheBackend()
    logger.info("Redis cache connected (%s)", url)
    return backend


def escape_segment(value: Any) -> str:
    return str(value).replace("%", "%25").replace(":", "%3A")


def cache_key(namespace: str, user_id: Any, song_title: str, variant: Optional[str] = None) -> str:
    parts = [namespace, escape_segment(user_id), escape_segment(song_title)]
    if variant:
        parts.append(escape_segment(variant))
    return ":".join(parts)


def flashcards_key(user_id, song_title, language: Optional[str] = None) -> str:
    variant = str(language or "").strip().upper() or None
    return cache_key(FLASHCARDS_NAMESPACE, user_id, song_title, variant)


def sentiment_key(user_id, song_title, artist: Optional[str] = None) -> str:
    variant = str(artist or "").strip() or None
    return cache_key(SENTIMENT_NAMESPACE, user_id, song_title, variant)


class ResultCache:
    def __init__(
        self,
        backend: CacheBackend,
        flashcards_ttl: int = settings.FLASHCARDS_CACHE_TTL_SEC,
        sentiment_ttl: int = settings.SENTIMENT_CACHE_TTL_SEC,
    ):
        self.backend = backend
        self.flashcards_ttl = int(flashcards_ttl)
        self.sentiment_ttl = int(sentiment_ttl)

    async def get(self, key: str) -> Optional[Any]:
        try:
            raw = await self.backend.get(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s, treating as miss: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Cache entry %s is not valid JSON, treating as miss", key)
            return None

    async def set(self, key: str, payload: Any, ttl_seconds: int) -> bool:
        try:
            await self.backend.set(key, json.dumps(payload, ensure_ascii=False), ttl_seconds)
        except Exception as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
            return False
        return True

    async def get_flashcards(self, user_id, song_title, language=None) -> Optional[List[Flashcard]]:
        payload = await self.get(flashcards_key(user_id, song_title, language))
        if not isinstance(payload, list):
            return None
        return [Flashcard.from_dict(item) for item in payload if isinstance(item, dict)]

    async def set_flashcards(self, user_id, song_title, language, cards: List[Flashcard]) -> bool:
        return await self.set(
            flashcards_key(user_id, song_title, language),
            [card.to_dict() for card in cards],
            self.flashcards_ttl,
        )

    async def get_sentiment(self, user_id, song_title, artist=None) -> Optional[SentimentResult]:
        payload = await self.get(sentiment_key(user_id, song_title, artist))
        if not isinstance(payload, dict):
            return None
        return SentimentResult.from_dict(payload)

    async def set_sentiment(self, user_id, song_title, artist, result: SentimentResult) -> bool:
        return await self.set(
            sentiment_key(user_id, song_title, artist),
            result.to_dict(),
            self.sentiment_ttl,
        )

    async def _delete_identity(self, namespace: str, user_id, song_title) -> int:
        base = cache_key(namespace, user_id, song_title)
        removed = await self.backend.delete(base)
        removed += await self.backend.delete_prefix(base + ":")
        return removed

    async def invalidate_song(self, user_id, song_title) -> int:
        """Drop every cached variant (all languages, all artists) for one song."""
        removed = 0
        try:
            for namespace in (FLASHCARDS_NAMESPACE, SENTIMENT_NAMESPACE):
                removed += await self._delete_identity(namespace, user_id, song_title)
        except Exception as exc:
            logger.error("Error clearing caches for song %r: %s", song_title, exc)
            return removed
        logger.info("Cleared %d cache entries for song %r (user: %s)", removed, song_title, user_id)
        return removed

    async def invalidate_user(self, user_id) -> int:
        removed = 0
        try:
            for namespace in (FLASHCARDS_NAMESPACE, SENTIMENT_NAMESPACE):
                removed += await self.backend.delete_prefix(
                    f"{namespace}:{escape_segment(user_id)}:"
                )
        except Exception as exc:
            logger.error("Error clearing caches for user %s: %s", user_id, exc)
            return removed
        logger.info("Cleared %d cache entries for user %s", removed, user_id)
        return removed
