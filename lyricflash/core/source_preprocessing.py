"""
Language-specific clean-up applied to lyric lines before they are translated.

Song lyrics lean on clipped forms ("pa'", "to'", "j'sais") that machine
translation handles poorly. Expanding them only changes what is sent to the
translator; the flashcard front always keeps the original line.
"""

import re
from typing import Callable, Dict

SPANISH_CONTRACTIONS = {
    # estar
    "toy": "estoy",
    "'toy": "estoy",
    "tás": "estás",
    "'tás": "estás",
    "tas": "estás",
    "ta'": "está",
    "'ta": "está",
    "'tá": "está",
    "tar": "estar",
    "'tar": "estar",
    "tamo": "estamos",
    "'tamo": "estamos",
    "tamos": "estamos",
    "'tamos": "estamos",
    "taba": "estaba",
    "'taba": "estaba",
    "taban": "estaban",
    "'taban": "estaban",
    "tao": "estado",
    "'tao": "estado",
    "tando": "estando",
    "'tando": "estando",
    # clipped s endings
    "ere'": "eres",
    "e'": "es",
    "quiere'": "quieres",
    "tiene'": "tienes",
    "puede'": "puedes",
    "sabe'": "sabes",
    "viene'": "vienes",
    "hace'": "haces",
    "dice'": "dices",
    "baila'": "bailas",
    "canta'": "cantas",
    "mira'": "miras",
    "siente'": "sientes",
    "piensa'": "piensas",
    "va'": "vas",
    "vo'": "voy",
    "pue'": "puede",
    # common reductions
    "pa'": "para",
    "pa": "para",
    "p'": "para",
    "pa'l": "para el",
    "pa'la": "para la",
    "pa'cá": "acá",
    "na'": "nada",
    "to'": "todo",
    "qu'": "que",
    "d'": "de",
    "mu'": "muy",
    "po'": "poco",
    "bue'": "bueno",
    "ca'": "casa",
}

_EDGE_PUNCTUATION = ".,!?;:¡¿\"()"
_WORD_CHARS = r"a-zà-öø-ÿœæ"


def _match_case(original: str, replacement: str) -> str:
    letters = original.lstrip("'")
    if letters[:1].isupper():
        return replacement[:1].upper() + replacement[1:]
    return replacement


def _expand_token(token: str, table: Dict[str, str]) -> str:
    core = token.strip(_EDGE_PUNCTUATION)
    if not core:
        return token
    expansion = table.get(core.lower())
    if expansion is None:
        return token
    start = token.index(core)
    return token[:start] + _match_case(core, expansion) + token[start + len(core):]


def preprocess_spanish(text: str) -> str:
    return " ".join(_expand_token(token, SPANISH_CONTRACTIONS) for token in text.split())


_FRENCH_ELISION = re.compile(rf"\b([cdjlmnst])'([{_WORD_CHARS}])", re.IGNORECASE)
_FRENCH_QUE = re.compile(rf"\bqu'([{_WORD_CHARS}])", re.IGNORECASE)
_FRENCH_SI = re.compile(r"\b(s)'(ils?)\b", re.IGNORECASE)


def preprocess_french(text: str) -> str:
    text = _FRENCH_QUE.sub(r"que \1", text)
    text = _FRENCH_SI.sub(r"\1i \2", text)
    return _FRENCH_ELISION.sub(r"\1e \2", text)


_PORTUGUESE_DE = re.compile(r"\bd'([áàâãéêíóôõú])", re.IGNORECASE)
_PORTUGUESE_NA = re.compile(r"\bn'([áàâãéêíóôõú])", re.IGNORECASE)


def preprocess_portuguese(text: str) -> str:
    text = _PORTUGUESE_DE.sub(r"de \1", text)
    return _PORTUGUESE_NA.sub(r"na \1", text)


PREPROCESSORS: Dict[str, Callable[[str], str]] = {
    "ES": preprocess_spanish,
    "FR": preprocess_french,
    "PT": preprocess_portuguese,
}


def prepare_source_text(text: str, language_code: str) -> str:
    text = str(text or "").strip()
    if not text:
        return ""
    preprocessor = PREPROCESSORS.get(str(language_code or "").upper())
    if preprocessor is None:
        return text
    return preprocessor(text).strip()
