"""
Sentiment summary of a song's translated lyrics.

The emotion classifier is called through the retry wrapper. Its raw labels are
mapped onto a five-bucket sentiment scale. Any failure to get predictions
yields a fixed neutral fallback, which is a normal result and not an error.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol, Sequence

from lyricflash.config import settings
from lyricflash.config.emotion_taxonomy import NEUTRAL, bucket_for_emotion
from lyricflash.core.resilience import CallOutcome, Ok, RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

TOP_EMOTIONS = 3
TRUNCATION_MARKER = "..."


class EmotionClassifier(Protocol):
    configured: bool

    async def classify(self, text: str) -> CallOutcome:
        ...


@dataclass(frozen=True)
class EmotionScore:
    emotion: str
    score: str

    def to_dict(self) -> dict:
        return {"emotion": self.emotion, "score": self.score}


@dataclass
class SentimentResult:
    sentiment: str
    emoji: str
    score: str
    emotions: List[EmotionScore] = field(default_factory=list)
    primary_emotion: str = "Unknown"
    emotion_score: str = "0.00"
    fallback: bool = False
    song_metadata: Optional[dict] = None

    def to_dict(self) -> dict:
        payload = {
            "sentiment": self.sentiment,
            "emoji": self.emoji,
            "score": self.score,
            "emotions": [e.to_dict() for e in self.emotions],
            "primary_emotion": self.primary_emotion,
            "emotion_score": self.emotion_score,
            "fallback": self.fallback,
        }
        if self.song_metadata is not None:
            payload["song_metadata"] = dict(self.song_metadata)
        return payload

    @classmethod
    def from_dict(cls, payload: dict) -> "SentimentResult":
        return cls(
            sentiment=str(payload.get("sentiment") or NEUTRAL.name),
            emoji=str(payload.get("emoji") or NEUTRAL.emoji),
            score=str(payload.get("score") or "0.50"),
            emotions=[
                EmotionScore(str(e.get("emotion") or ""), str(e.get("score") or "0.00"))
                for e in payload.get("emotions") or []
                if isinstance(e, dict)
            ],
            primary_emotion=str(payload.get("primary_emotion") or "Unknown"),
            emotion_score=str(payload.get("emotion_score") or "0.00"),
            fallback=bool(payload.get("fallback", False)),
            song_metadata=payload.get("song_metadata"),
        )


def fallback_result() -> SentimentResult:
    return SentimentResult(
        sentiment=NEUTRAL.name,
        emoji=NEUTRAL.emoji,
        score="0.50",
        emotions=[],
        primary_emotion="Unknown",
        emotion_score="0.00",
        fallback=True,
    )


def _fmt(value: float) -> str:
    return f"{float(value):.2f}"


def _display_label(label: str) -> str:
    return str(label or "").strip().replace("_", " ").capitalize()


def truncate_text(text: str, max_chars: int) -> str:
    text = str(text or "")
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + TRUNCATION_MARKER


def build_analysis_text(translations: Iterable[str]) -> str:
    """Join unique translated lines (case-insensitive dedup) into one passage."""
    seen = set()
    parts = []
    for text in translations:
        cleaned = str(text or "").strip()
        if len(cleaned) < 2:
            continue
        key = cleaned.lower()
        if key in seen:
            continue
        seen.add(key)
        parts.append(cleaned)
    return ". ".join(parts)


def parse_predictions(data) -> List[dict]:
    """Accept both ``[[{label, score}]]`` and ``[{label, score}]`` shapes."""
    if isinstance(data, list) and data and isinstance(data[0], list):
        data = data[0]
    if not isinstance(data, list):
        return []
    predictions = []
    for item in data:
        if not isinstance(item, dict) or "label" not in item:
            continue
        try:
            score = float(item.get("score", 0.0))
        except (TypeError, ValueError):
            continue
        predictions.append({"label": str(item["label"]).strip().lower(), "score": score})
    return predictions


def rank_emotions(predictions: Sequence[dict], neutral_threshold: float) -> List[dict]:
    """
    Order emotions by score, dropping a weak ``neutral``.

    Neutral survives only as the sole prediction or above ``neutral_threshold``.
    """
    kept = [
        p
        for p in predictions
        if p["label"] != "neutral" or len(predictions) == 1 or p["score"] > neutral_threshold
    ]
    return sorted(kept, key=lambda p: p["score"], reverse=True)


def summarize(predictions: Sequence[dict], neutral_threshold: float) -> Optional[SentimentResult]:
    ranked = rank_emotions(predictions, neutral_threshold)
    if not ranked:
        return None
    primary = ranked[0]
    bucket = bucket_for_emotion(primary["label"])
    return SentimentResult(
        sentiment=bucket.name,
        emoji=bucket.emoji,
        score=_fmt(bucket.score),
        emotions=[
            EmotionScore(_display_label(p["label"]), _fmt(p["score"]))
            for p in ranked[:TOP_EMOTIONS]
        ],
        primary_emotion=_display_label(primary["label"]),
        emotion_score=_fmt(primary["score"]),
        fallback=False,
    )


class SentimentAnalyzer:
    def __init__(
        self,
        classifier: EmotionClassifier,
        retry_policy: Optional[RetryPolicy] = None,
        max_chars: int = settings.SENTIMENT_MAX_CHARS,
        neutral_threshold: float = settings.NEUTRAL_KEEP_THRESHOLD,
        sleep=asyncio.sleep,
    ):
        self.classifier = classifier
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.SENTIMENT_MAX_ATTEMPTS,
            base_delay=settings.SENTIMENT_BASE_DELAY_SEC,
        )
        self.max_chars = int(max_chars)
        self.neutral_threshold = float(neutral_threshold)
        self._sleep = sleep

    def is_configured(self) -> bool:
        return bool(getattr(self.classifier, "configured", False))

    async def analyze(self, text: str) -> SentimentResult:
        if not self.is_configured():
            logger.error("Emotion classifier credential is not configured, returning fallback")
            return fallback_result()
        passage = truncate_text(text, self.max_chars)
        if not passage.strip():
            logger.warning("Nothing to analyze, returning fallback")
            return fallback_result()

        async def _call():
            return await self.classifier.classify(passage)

        outcome = await call_with_retry(
            _call, self.retry_policy, label="emotion classification", sleep=self._sleep
        )
        if not isinstance(outcome, Ok):
            return fallback_result()
        result = summarize(parse_predictions(outcome.data), self.neutral_threshold)
        if result is None:
            logger.warning("Emotion classifier returned no predictions, returning fallback")
            return fallback_result()
        logger.info(
            "Sentiment: %s (%s %s)", result.sentiment, result.primary_emotion, result.emotion_score
        )
        return result
