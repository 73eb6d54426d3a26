"""
Song insights service: flashcards and sentiment for one user's song.

The service owns its connections. Use it as an async context manager so the
HTTP client and the cache backend are opened once and closed at shutdown::

    async with await SongInsightsService.create() as service:
        cards = await service.get_flashcards("u1", "Despacito", LyricsQuery("Despacito", "Luis Fonsi"))

Results are cached per user, song and variant. Degraded results (placeholder
translations, fallback sentiment) are returned to the caller but never cached.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple, Union

import httpx

from lyricflash.config import settings
from lyricflash.core.batch_translator import DeduplicatingBatchTranslator, UniqueLineTable
from lyricflash.core.errors import EmptyLyricsError, MissingIdentifierError
from lyricflash.core.flashcards import Flashcard, assemble_flashcards
from lyricflash.core.language_identifier import LanguageIdentifier, language_name
from lyricflash.core.lyrics_normalizer import normalize_lyrics
from lyricflash.core.result_cache import CacheBackend, ResultCache, create_cache_backend
from lyricflash.core.sentiment_analyzer import SentimentAnalyzer, SentimentResult, build_analysis_text
from lyricflash.data.deepl import DeepLTranslator
from lyricflash.data.huggingface import HuggingFaceEmotionClassifier
from lyricflash.data.lyrics_sources import LrclibLyricsSource, LyricsSource

logger = logging.getLogger(__name__)

FlashcardsSource = Union[Sequence[Flashcard], Any]


def _require(value, field_name: str) -> str:
    text = str(value if value is not None else "").strip()
    if not text:
        raise MissingIdentifierError(field_name)
    return text


class SongInsightsService:
    def __init__(
        self,
        cache: ResultCache,
        lyrics_source: LyricsSource,
        translator: DeduplicatingBatchTranslator,
        analyzer: SentimentAnalyzer,
        language_identifier: Optional[LanguageIdentifier] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.cache = cache
        self.lyrics_source = lyrics_source
        self.translator = translator
        self.analyzer = analyzer
        self.language_identifier = language_identifier or LanguageIdentifier()
        self._http_client = http_client
        self._closed = False

    @classmethod
    async def create(
        cls,
        redis_url: Optional[str] = settings.REDIS_URL,
        lyrics_source: Optional[LyricsSource] = None,
        backend: Optional[CacheBackend] = None,
    ) -> "SongInsightsService":
        """Build the production wiring: DeepL, Hugging Face, LRCLIB, Redis."""
        client = httpx.AsyncClient(
            timeout=settings.EXTERNAL_TIMEOUT_SEC,
            headers={"User-Agent": settings.USER_AGENT},
        )
        cache_backend = backend if backend is not None else await create_cache_backend(redis_url)
        return cls(
            cache=ResultCache(cache_backend),
            lyrics_source=lyrics_source or LrclibLyricsSource(client),
            translator=DeduplicatingBatchTranslator(DeepLTranslator(client)),
            analyzer=SentimentAnalyzer(HuggingFaceEmotionClassifier(client)),
            http_client=client,
        )

    async def __aenter__(self) -> "SongInsightsService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.cache.backend.close()
        except Exception as exc:
            logger.warning("Error closing cache backend: %s", exc)
        if self._http_client is not None:
            await self._http_client.aclose()

    # Flashcards for a song, served from cache when possible.
    async def get_flashcards(
        self,
        user_id,
        song_title: str,
        lyrics_ref: Any,
        language_override: Optional[str] = None,
    ) -> List[Flashcard]:
        user_id = _require(user_id, "user_id")
        song_title = _require(song_title, "song_title")
        cards, _ = await self._resolve_flashcards(user_id, song_title, lyrics_ref, language_override)
        return cards

    async def _resolve_flashcards(
        self, user_id: str, song_title: str, lyrics_ref: Any, language_override: Optional[str] = None
    ) -> Tuple[List[Flashcard], bool]:
        """Return (cards, degraded); degraded cards are never cached."""
        override = str(language_override or "").strip().upper() or None

        cached = await self.cache.get_flashcards(user_id, song_title, override)
        if cached is not None:
            logger.info("Returning cached flashcards for %r (user: %s)", song_title, user_id)
            return cached, False

        cards, degraded = await self._build_flashcards(song_title, lyrics_ref, override)
        if not degraded:
            await self.cache.set_flashcards(user_id, song_title, override, cards)
        return cards, degraded

    async def _build_flashcards(
        self, song_title: str, lyrics_ref: Any, override: Optional[str]
    ) -> Tuple[List[Flashcard], bool]:
        raw = await self.lyrics_source.fetch_lyrics(lyrics_ref)
        if not str(raw or "").strip():
            raise EmptyLyricsError("no lyrics found for this song")
        lines = normalize_lyrics(raw)
        logger.info("Processing %d lyric lines for %r", len(lines), song_title)

        unique_texts = UniqueLineTable.build(lines).texts
        source_lang = self.language_identifier.identify(unique_texts, override)
        outcome = await self.translator.translate(lines, source_lang)
        cards = assemble_flashcards(lines, outcome.translations)
        logger.info(
            "Flashcards ready for %r: %d cards from %s (%d unique lines, %d batches)",
            song_title,
            len(cards),
            language_name(source_lang),
            outcome.unique_count,
            outcome.batch_count,
        )
        if outcome.degraded:
            logger.warning(
                "Not caching flashcards for %r: %d lines are placeholders",
                song_title,
                outcome.degraded_lines,
            )
        return cards, outcome.degraded

    async def get_sentiment(
        self,
        user_id,
        song_title: str,
        artist: Optional[str] = None,
        flashcards_source: FlashcardsSource = None,
    ) -> SentimentResult:
        """
        Sentiment summary of a song.

        ``flashcards_source`` is either already-assembled flashcards or a lyrics
        ref, which is resolved through ``get_flashcards`` so its cache is reused.
        A result built from placeholder translations is returned but not cached.
        """
        user_id = _require(user_id, "user_id")
        song_title = _require(song_title, "song_title")
        artist = str(artist or "").strip() or None

        cached = await self.cache.get_sentiment(user_id, song_title, artist)
        if cached is not None:
            logger.info("Returning cached sentiment for %r (user: %s)", song_title, user_id)
            return cached

        if flashcards_source is None:
            raise EmptyLyricsError("no flashcards or lyrics given for sentiment analysis")
        if _is_flashcard_list(flashcards_source):
            cards = list(flashcards_source)
            placeholder = self.translator.placeholder
            degraded = any(card.back == placeholder for card in cards)
        else:
            cards, degraded = await self._resolve_flashcards(user_id, song_title, flashcards_source)

        text = build_analysis_text(card.back for card in cards)
        result = await self.analyzer.analyze(text)
        result.song_metadata = {"title": song_title, "artist": artist or ""}

        if result.fallback:
            logger.warning("Not caching fallback sentiment for %r", song_title)
        elif degraded:
            logger.warning("Not caching sentiment for %r: built from placeholder translations", song_title)
        else:
            await self.cache.set_sentiment(user_id, song_title, artist, result)
        return result

    async def invalidate(self, user_id, song_title: str) -> int:
        """Hook for any change to a logged song."""
        user_id = _require(user_id, "user_id")
        song_title = _require(song_title, "song_title")
        return await self.cache.invalidate_song(user_id, song_title)

    async def clear_user_history(self, user_id) -> int:
        return await self.cache.invalidate_user(_require(user_id, "user_id"))

    def health(self):
        translator = self.translator.translator
        info = {
            "cache_backend": getattr(self.cache.backend, "name", type(self.cache.backend).__name__),
            "translator_configured": bool(getattr(translator, "configured", True)),
            "classifier_configured": self.analyzer.is_configured(),
            "flashcards_ttl_sec": self.cache.flashcards_ttl,
            "sentiment_ttl_sec": self.cache.sentiment_ttl,
            "translation_batch_size": self.translator.batch_size,
            "default_source_lang": self.language_identifier.default_code,
        }
        source_health = getattr(self.lyrics_source, "health", None)
        if callable(source_health):
            info.update(source_health())
        return info


def _is_flashcard_list(value) -> bool:
    if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
        return False
    return all(isinstance(item, Flashcard) for item in value)
