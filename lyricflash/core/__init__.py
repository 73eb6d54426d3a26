from lyricflash.core.lyrics_normalizer import LyricLine, normalize_lyrics
from lyricflash.core.language_identifier import LanguageIdentifier
from lyricflash.core.batch_translator import DeduplicatingBatchTranslator, UniqueLineTable
from lyricflash.core.flashcards import Flashcard, assemble_flashcards
from lyricflash.core.result_cache import ResultCache, MemoryCacheBackend, RedisCacheBackend
from lyricflash.core.sentiment_analyzer import SentimentAnalyzer, SentimentResult
from lyricflash.core.resilience import RetryPolicy, call_with_retry

__all__ = [
    "LyricLine", "normalize_lyrics",
    "LanguageIdentifier",
    "DeduplicatingBatchTranslator", "UniqueLineTable",
    "Flashcard", "assemble_flashcards",
    "ResultCache", "MemoryCacheBackend", "RedisCacheBackend",
    "SentimentAnalyzer", "SentimentResult",
    "RetryPolicy", "call_with_retry"
]
