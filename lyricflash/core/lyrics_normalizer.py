import re
from dataclasses import dataclass
from typing import List, Optional

from lyricflash.core.errors import EmptyLyricsError

# Section labels such as [Chorus] or "[Verse 2: Artist]", optionally quoted.
ANNOTATION_PATTERN = re.compile(r'"?\[.*?\]"?')
ANNOTATION_ONLY_PATTERN = re.compile(r"^\[.*\]$")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


@dataclass(frozen=True)
class LyricLine:
    index: int
    text: str


def strip_annotations(text: str) -> str:
    return ANNOTATION_PATTERN.sub("", text)


def normalize_lyrics(raw_text: Optional[str]) -> List[LyricLine]:
    """
    Turn raw lyric text into ordered, non-empty, trimmed lines.

    Annotations are removed per line before trimming, so a line holding only a
    section label disappears. Raises EmptyLyricsError when nothing is left.
    """
    lines: List[LyricLine] = []
    for raw_line in _LINE_BREAK.split(str(raw_text or "")):
        line = strip_annotations(raw_line).strip()
        if not line:
            continue
        lines.append(LyricLine(index=len(lines), text=line))
    if not lines:
        raise EmptyLyricsError()
    return lines
