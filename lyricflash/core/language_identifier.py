import logging
import re
from typing import Iterable, Optional

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

from lyricflash.config import settings

logger = logging.getLogger(__name__)

# langdetect is probabilistic; a fixed seed keeps results repeatable.
DetectorFactory.seed = 0

# Source languages accepted by the DeepL translate endpoint.
SUPPORTED_SOURCE_LANGUAGES = {
    "AR": "Arabic",
    "BG": "Bulgarian",
    "CS": "Czech",
    "DA": "Danish",
    "DE": "German",
    "EL": "Greek",
    "EN": "English",
    "ES": "Spanish",
    "ET": "Estonian",
    "FI": "Finnish",
    "FR": "French",
    "HU": "Hungarian",
    "ID": "Indonesian",
    "IT": "Italian",
    "JA": "Japanese",
    "KO": "Korean",
    "LT": "Lithuanian",
    "LV": "Latvian",
    "NB": "Norwegian",
    "NL": "Dutch",
    "PL": "Polish",
    "PT": "Portuguese",
    "RO": "Romanian",
    "RU": "Russian",
    "SK": "Slovak",
    "SL": "Slovenian",
    "SV": "Swedish",
    "TR": "Turkish",
    "UK": "Ukrainian",
    "ZH": "Chinese",
}

_LANGDETECT_ALIASES = {
    "zh-cn": "ZH",
    "zh-tw": "ZH",
    "no": "NB",
}


def to_source_code(detected: str) -> str:
    code = str(detected or "").strip().lower()
    return _LANGDETECT_ALIASES.get(code, code.upper())


def language_name(code: str) -> str:
    return SUPPORTED_SOURCE_LANGUAGES.get(str(code or "").upper(), str(code or ""))


# Marker groups for English lines inside foreign-language songs. "me" and "he"
# are common Spanish and Italian words, so they are not markers. Only a
# capital "I" counts, since "i" is an Italian article.
_ENGLISH_MARKERS = (
    re.compile(
        r"\b(the|and|are|you|for|this|that|with|have|from|what|when|where|will|would|could|should)\b",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(love|baby|heart|tonight|forever|never|always|because|without|everything|something)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b(?:I|(?i:my|mine|your|yours|we|our|ours|they|their|theirs|his|him|she|her|hers|it|its))\b"),
)


def is_english_phrase(text: str) -> bool:
    """
    Cheap check for an English line, used to keep refrains out of translation.

    A line of three words or fewer needs one marker group. Longer lines need two.
    """
    text = str(text or "").strip()
    if len(text) < 3:
        return False
    hits = sum(1 for pattern in _ENGLISH_MARKERS if pattern.search(text))
    words = len(text.split())
    if words <= 3:
        return hits >= 1
    return hits >= 2


class LanguageIdentifier:
    def __init__(
        self,
        default_code: str = settings.DEFAULT_SOURCE_LANG,
        sample_lines: int = settings.LANGUAGE_SAMPLE_LINES,
        min_probability: float = 0.5,
    ):
        self.default_code = str(default_code or "ES").strip().upper()
        self.sample_lines = max(1, int(sample_lines))
        self.min_probability = float(min_probability)

    def build_sample(self, unique_lines: Iterable[str]) -> str:
        sample = []
        for line in unique_lines:
            if len(sample) >= self.sample_lines:
                break
            text = str(line or "").strip()
            if text:
                sample.append(text)
        return " ".join(sample)

    def identify(self, unique_lines: Iterable[str], override: Optional[str] = None) -> str:
        """Return a DeepL source-language code. Never raises."""
        forced = str(override or "").strip().upper()
        if forced:
            logger.info("Using forced language: %s", forced)
            return forced
        sample = self.build_sample(unique_lines)
        if not sample:
            return self.default_code
        try:
            candidates = detect_langs(sample)
        except LangDetectException as exc:
            logger.info("Language detection inconclusive (%s), using %s", exc, self.default_code)
            return self.default_code
        if not candidates:
            return self.default_code
        best = candidates[0]
        code = to_source_code(best.lang)
        if best.prob < self.min_probability or code not in SUPPORTED_SOURCE_LANGUAGES:
            logger.info(
                "Language detection ambiguous (%s p=%.2f), using %s",
                best.lang,
                best.prob,
                self.default_code,
            )
            return self.default_code
        logger.info("Auto-detected language: %s (%s, p=%.2f)", language_name(code), code, best.prob)
        return code
