"""
Emotion -> sentiment bucket table.

Covers the GoEmotions label set (a superset of the Ekman labels returned by the
smaller emotion models). Each bucket carries its own representative score,
which is reported instead of the raw classifier confidence.
"""

from typing import Dict, NamedTuple


class SentimentBucket(NamedTuple):
    name: str
    emoji: str
    score: float


VERY_POSITIVE = SentimentBucket("Very Positive", "😄", 0.90)
POSITIVE = SentimentBucket("Positive", "🙂", 0.70)
NEUTRAL = SentimentBucket("Neutral", "😐", 0.50)
NEGATIVE = SentimentBucket("Negative", "😕", 0.30)
VERY_NEGATIVE = SentimentBucket("Very Negative", "😞", 0.10)

BUCKETS = (VERY_POSITIVE, POSITIVE, NEUTRAL, NEGATIVE, VERY_NEGATIVE)

EMOTION_BUCKETS: Dict[str, SentimentBucket] = {
    # Very positive
    "joy": VERY_POSITIVE,
    "love": VERY_POSITIVE,
    "excitement": VERY_POSITIVE,
    "amusement": VERY_POSITIVE,
    "admiration": VERY_POSITIVE,
    "gratitude": VERY_POSITIVE,
    # Positive
    "optimism": POSITIVE,
    "approval": POSITIVE,
    "caring": POSITIVE,
    "pride": POSITIVE,
    "relief": POSITIVE,
    "desire": POSITIVE,
    "curiosity": POSITIVE,
    "surprise": POSITIVE,
    # Neutral
    "neutral": NEUTRAL,
    "realization": NEUTRAL,
    "confusion": NEUTRAL,
    # Negative
    "annoyance": NEGATIVE,
    "disappointment": NEGATIVE,
    "disapproval": NEGATIVE,
    "embarrassment": NEGATIVE,
    "nervousness": NEGATIVE,
    "remorse": NEGATIVE,
    # Very negative
    "anger": VERY_NEGATIVE,
    "sadness": VERY_NEGATIVE,
    "grief": VERY_NEGATIVE,
    "fear": VERY_NEGATIVE,
    "disgust": VERY_NEGATIVE,
}


def bucket_for_emotion(label: str) -> SentimentBucket:
    return EMOTION_BUCKETS.get(str(label or "").strip().lower(), NEUTRAL)
