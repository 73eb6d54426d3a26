from typing import Dict, List, Sequence

import pytest

from lyricflash.core.resilience import CallOutcome, Ok, RetryPolicy


class RecordingTranslator:
    """Translates from a fixed dictionary and records every batch it receives."""

    configured = True

    def __init__(self, dictionary: Dict[str, str] = None, outcomes: List[CallOutcome] = None):
        self.dictionary = dict(dictionary or {})
        self.outcomes = list(outcomes or [])
        self.calls: List[List[str]] = []
        self.languages: List[str] = []

    async def translate_batch(self, lines: Sequence[str], source_lang: str) -> CallOutcome:
        self.calls.append(list(lines))
        self.languages.append(source_lang)
        if self.outcomes:
            return self.outcomes.pop(0)
        return Ok([self.dictionary.get(line, line.upper()) for line in lines])


class ScriptedClassifier:
    def __init__(self, outcomes: List[CallOutcome] = None, configured: bool = True):
        self.outcomes = list(outcomes or [])
        self.configured = configured
        self.texts: List[str] = []

    async def classify(self, text: str) -> CallOutcome:
        self.texts.append(text)
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]


class FakeSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_attempts=3, base_delay=0.5)


SPANISH_DICTIONARY = {
    "Te quiero": "I love you",
    "Adiós": "Goodbye",
    "Baila conmigo": "Dance with me",
    "Mi corazón": "My heart",
}
