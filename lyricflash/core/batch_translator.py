"""
Deduplicating batch translation.

Repeated lines (choruses, refrains) are translated once. Unique lines are sent
in bounded batches, one batch at a time, and the results are redistributed to
every original position so the output always lines up with the input. Lines
that already read as English are passed through without a call.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union

from lyricflash.config import settings
from lyricflash.core.errors import TranslationServiceError
from lyricflash.core.language_identifier import is_english_phrase, language_name
from lyricflash.core.lyrics_normalizer import LyricLine
from lyricflash.core.resilience import CallOutcome, ClientError, Ok, RetryPolicy, call_with_retry
from lyricflash.core.source_preprocessing import prepare_source_text

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Translator(Protocol):
    async def translate_batch(self, lines: Sequence[str], source_lang: str) -> CallOutcome:
        ...


@dataclass
class UniqueLineTable:
    """Canonical line text <-> compact id, plus the position -> id map."""

    texts: List[str] = field(default_factory=list)
    position_ids: List[int] = field(default_factory=list)
    _ids: Dict[str, int] = field(default_factory=dict, repr=False)

    @classmethod
    def build(cls, lines: Iterable[Union[LyricLine, str]]) -> "UniqueLineTable":
        table = cls()
        for line in lines:
            table.add(line.text if isinstance(line, LyricLine) else line)
        return table

    def add(self, text: str) -> int:
        canonical = str(text or "").strip()
        if not canonical:
            raise ValueError("cannot index an empty line")
        unique_id = self._ids.get(canonical)
        if unique_id is None:
            unique_id = len(self.texts)
            self._ids[canonical] = unique_id
            self.texts.append(canonical)
        self.position_ids.append(unique_id)
        return unique_id

    def id_for(self, text: str) -> Optional[int]:
        return self._ids.get(str(text or "").strip())

    def text_for(self, unique_id: int) -> str:
        return self.texts[unique_id]

    def positions_for(self, unique_id: int) -> List[int]:
        return [pos for pos, uid in enumerate(self.position_ids) if uid == unique_id]

    @property
    def total(self) -> int:
        return len(self.position_ids)

    def __len__(self) -> int:
        return len(self.texts)

    def expand(self, unique_values: Sequence[T]) -> List[T]:
        """Map a per-unique-id sequence back onto every original position."""
        if len(unique_values) != len(self.texts):
            raise ValueError(
                f"expected {len(self.texts)} unique values, got {len(unique_values)}"
            )
        return [unique_values[uid] for uid in self.position_ids]

    def stats(self) -> dict:
        total = self.total
        unique = len(self.texts)
        saved = total - unique
        return {
            "total": total,
            "unique": unique,
            "saved": saved,
            "percent_saved": round(saved * 100 / total) if total else 0,
        }


def iter_batches(items: Sequence[T], batch_size: int) -> Iterator[List[T]]:
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    for start in range(0, len(items), batch_size):
        yield list(items[start:start + batch_size])


@dataclass
class TranslationOutcome:
    source_lang: str
    translations: List[str]
    unique_count: int
    batch_count: int
    degraded_lines: int = 0

    @property
    def degraded(self) -> bool:
        return self.degraded_lines > 0


class DeduplicatingBatchTranslator:
    def __init__(
        self,
        translator: Translator,
        batch_size: int = settings.TRANSLATION_BATCH_SIZE,
        retry_policy: Optional[RetryPolicy] = None,
        placeholder: str = settings.TRANSLATION_PLACEHOLDER,
        preprocess: bool = settings.SOURCE_PREPROCESSING,
        preserve_english: bool = settings.PRESERVE_ENGLISH_LINES,
        sleep=asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.translator = translator
        self.batch_size = int(batch_size)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.TRANSLATION_MAX_ATTEMPTS,
            base_delay=settings.TRANSLATION_BASE_DELAY_SEC,
        )
        self.placeholder = placeholder
        self.preprocess = bool(preprocess)
        self.preserve_english = bool(preserve_english)
        self._sleep = sleep

    async def translate(self, lines: Sequence[LyricLine], source_lang: str) -> TranslationOutcome:
        table = UniqueLineTable.build(lines)
        stats = table.stats()
        logger.info(
            "Deduplication: %d lines -> %d unique lines to translate (saved %d%% API usage)",
            stats["total"],
            stats["unique"],
            stats["percent_saved"],
        )
        unique_translations: List[str] = []
        degraded = 0
        batches = list(iter_batches(table.texts, self.batch_size))
        for number, batch in enumerate(batches, start=1):
            logger.info("Translating unique batch %d/%d (%d lines)", number, len(batches), len(batch))
            translated, failed = await self.translate_unique_batch(batch, source_lang, number)
            unique_translations.extend(translated)
            degraded += failed

        translations = table.expand(unique_translations)
        logger.info(
            "Translated %d unique lines from %s to English (%d degraded)",
            len(table),
            language_name(source_lang),
            degraded,
        )
        return TranslationOutcome(
            source_lang=source_lang,
            translations=translations,
            unique_count=len(table),
            batch_count=len(batches),
            degraded_lines=degraded,
        )

    async def translate_unique_batch(
        self, batch: Sequence[str], source_lang: str, number: int = 1
    ) -> Tuple[List[str], int]:
        """Translate one batch; returns (translations, number of placeholder lines)."""
        if not any(str(text or "").strip() for text in batch):
            return ["" for _ in batch], 0
        if str(source_lang or "").strip().upper() == "EN":
            logger.info("Batch %d is already English, skipping translation", number)
            return [str(text or "").strip() for text in batch], 0

        results: List[str] = ["" for _ in batch]
        pending: List[Tuple[int, str]] = []
        for position, text in enumerate(batch):
            text = str(text or "").strip()
            if not text:
                continue
            if self.preserve_english and is_english_phrase(text):
                logger.info("Preserving English line: %r", text)
                results[position] = text
                continue
            prepared = prepare_source_text(text, source_lang) if self.preprocess else text
            pending.append((position, prepared))
        if not pending:
            return results, 0

        async def _call():
            return await self.translator.translate_batch([p for _, p in pending], source_lang)

        outcome = await call_with_retry(
            _call,
            self.retry_policy,
            label=f"translation batch {number}",
            sleep=self._sleep,
        )
        if isinstance(outcome, Ok):
            translated, missing = self._fill_missing(pending, outcome.data)
        elif isinstance(outcome, ClientError):
            raise TranslationServiceError(
                f"translation rejected ({outcome.status}): {outcome.detail}",
                status=outcome.status,
            )
        else:
            logger.warning(
                "Translation batch %d unavailable after retries, using placeholders for %d lines",
                number,
                len(pending),
            )
            translated, missing = [self.placeholder for _ in pending], len(pending)
        for (position, _), text in zip(pending, translated):
            results[position] = text
        return results, missing

    def _fill_missing(self, batch: Sequence[str], data) -> Tuple[List[str], int]:
        received = data if isinstance(data, list) else []
        if len(received) != len(batch):
            logger.warning(
                "Translation batch returned %d lines for %d inputs", len(received), len(batch)
            )
        results = []
        missing = 0
        for position in range(len(batch)):
            value = received[position] if position < len(received) else None
            text = str(value).strip() if value is not None else ""
            if not text:
                missing += 1
                text = self.placeholder
            results.append(text)
        return results, missing
