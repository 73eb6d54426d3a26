import logging
import re
from dataclasses import asdict, dataclass
from typing import List, Sequence, Union

from lyricflash.core.lyrics_normalizer import ANNOTATION_ONLY_PATTERN, LyricLine

logger = logging.getLogger(__name__)

_PIPES = re.compile(r"\|+")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class Flashcard:
    front: str
    back: str
    is_identical: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict) -> "Flashcard":
        return cls(
            front=str(payload.get("front") or ""),
            back=str(payload.get("back") or ""),
            is_identical=bool(payload.get("is_identical", False)),
        )


def clean_translation(text: str) -> str:
    """Drop separator glyphs the translator sometimes leaves behind."""
    text = _PIPES.sub("", str(text or ""))
    return _WHITESPACE.sub(" ", text).strip()


def assemble_flashcards(
    lines: Sequence[Union[LyricLine, str]], translations: Sequence[str]
) -> List[Flashcard]:
    if len(lines) != len(translations):
        raise ValueError(
            f"cannot align {len(lines)} lines with {len(translations)} translations"
        )

    cards: List[Flashcard] = []
    empty_count = 0
    annotation_count = 0
    identical_count = 0
    for line, translation in zip(lines, translations):
        front = (line.text if isinstance(line, LyricLine) else str(line or "")).strip()
        back = clean_translation(translation)
        if not front or not back:
            empty_count += 1
            continue
        # Second pass for section labels that slipped through normalization.
        if ANNOTATION_ONLY_PATTERN.match(front) or ANNOTATION_ONLY_PATTERN.match(back):
            annotation_count += 1
            continue
        identical = front == back
        if identical:
            identical_count += 1
        cards.append(Flashcard(front=front, back=back, is_identical=identical))

    logger.info(
        "Created %d flashcards from %d lines (removed %d empty, %d annotations; %d identical kept)",
        len(cards),
        len(lines),
        empty_count,
        annotation_count,
        identical_count,
    )
    return cards
