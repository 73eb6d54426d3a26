import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Union

import httpx

from lyricflash.config import settings

logger = logging.getLogger(__name__)


class LyricsSource(Protocol):
    async def fetch_lyrics(self, ref: Any) -> str:
        ...


@dataclass(frozen=True)
class LyricsQuery:
    title: str
    artist: str = ""


class StaticLyricsSource:
    """In-memory source keyed by whatever ref the caller uses."""

    def __init__(self, lyrics: Optional[Mapping[Any, str]] = None):
        self._lyrics: Dict[Any, str] = dict(lyrics or {})
        self.fetch_count = 0

    def put(self, ref: Any, text: str) -> None:
        self._lyrics[ref] = text

    async def fetch_lyrics(self, ref: Any) -> str:
        self.fetch_count += 1
        return str(self._lyrics.get(ref) or "")


class FileLyricsSource:
    """Reads lyrics from a UTF-8 text file; the ref is its path."""

    async def fetch_lyrics(self, ref: Union[str, Path]) -> str:
        path = Path(ref)
        if not path.is_file():
            logger.warning("Lyrics file not found: %s", path)
            return ""
        return path.read_text(encoding="utf-8", errors="replace")


class LrclibLyricsSource:
    # Exact LRCLIB lookup first, then a scored search; always returns plain text.
    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = settings.LRCLIB_BASE_URL,
        get_timeout_sec: float = settings.LRCLIB_GET_TIMEOUT_SEC,
        search_timeout_sec: float = settings.LRCLIB_SEARCH_TIMEOUT_SEC,
        backoff_sec: float = 20.0,
    ):
        self._client = client
        self.base_url = str(base_url or "").rstrip("/")
        self.get_timeout_sec = get_timeout_sec
        self.search_timeout_sec = search_timeout_sec
        self.provider_timeout_backoff_sec = backoff_sec
        self._timeout_streak = 0
        self._backoff_until = 0.0

    def health(self):
        return {
            "lyrics_provider": "lrclib",
            "lyrics_provider_backoff_active": bool(time.time() < self._backoff_until),
        }

    async def fetch_lyrics(self, ref: Union[LyricsQuery, str]) -> str:
        query = ref if isinstance(ref, LyricsQuery) else LyricsQuery(title=str(ref or ""))
        title = query.title.strip()
        artist = query.artist.strip()
        if not title:
            return ""

        exact = await self._get_json("/get", title, artist, self.get_timeout_sec)
        if isinstance(exact, dict):
            text = self._plain_from_item(exact)
            if text:
                return text

        best_match = None
        best_score = -1
        seen = set()
        for q_title, q_artist in [(title, artist), (self._norm_text(title), artist), (title, "")]:
            key = (q_title, q_artist)
            if not q_title or key in seen:
                continue
            seen.add(key)
            results = await self._get_json("/search", q_title, q_artist, self.search_timeout_sec)
            for item in results if isinstance(results, list) else []:
                if not isinstance(item, dict) or not self._plain_from_item(item):
                    continue
                score = self._score_match(item, title, artist)
                if score > best_score:
                    best_score = score
                    best_match = item
            if best_match and best_score >= 8:
                break
        return self._plain_from_item(best_match) if best_match else ""

    # Perform one LRCLIB request; network trouble yields None.
    async def _get_json(self, path: str, title: str, artist: str, timeout: float):
        if time.time() < self._backoff_until:
            return None
        params = {"track_name": title, "artist_name": artist}
        try:
            response = await self._client.get(
                f"{self.base_url}{path}",
                params=params,
                headers={"User-Agent": settings.USER_AGENT, "Accept": "application/json"},
                timeout=timeout,
            )
        except httpx.TimeoutException:
            self._record_timeout()
            logger.warning("LRCLIB %s timed out for %r", path, title)
            return None
        except httpx.TransportError as exc:
            logger.warning("LRCLIB %s failed for %r: %s", path, title, exc)
            return None
        self._timeout_streak = 0
        self._backoff_until = 0.0
        if response.status_code != 200:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    # Three timeouts in a row pause the provider for a while.
    def _record_timeout(self):
        self._timeout_streak += 1
        if self._timeout_streak >= 3:
            self._backoff_until = time.time() + self.provider_timeout_backoff_sec

    def _plain_from_item(self, item) -> str:
        if not isinstance(item, dict):
            return ""
        plain = str(item.get("plainLyrics") or "").strip()
        if plain:
            return plain
        return self.strip_lrc_timestamps(item.get("syncedLyrics") or "")

    @staticmethod
    def strip_lrc_timestamps(text) -> str:
        lines: List[str] = []
        for raw_line in str(text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n"):
            line = re.sub(r"\[[0-9]{1,2}:[0-9]{2}(?:[.:][0-9]{1,3})?\]", "", raw_line).strip()
            if line:
                lines.append(line)
        return "\n".join(lines).strip()

    @staticmethod
    def _norm_text(value) -> str:
        text = str(value or "").strip().lower()
        text = re.sub(
            r"\s*[\(\[\-–—].*?(official|lyrics?|audio|video).*?[\)\]]?\s*$", "", text, flags=re.I
        )
        text = re.sub(r"\s*[\(\[]?\s*(feat\.?|featuring|ft\.)\s+[^)\]]+[\)\]]?\s*$", "", text, flags=re.I)
        text = re.sub(r"[^\w ]+", "", text)
        return re.sub(r"\s+", " ", text).strip()

    # Score candidate matches against requested title and artist.
    def _score_match(self, item, title, artist) -> int:
        item_track = self._norm_text(item.get("trackName") or item.get("name") or "")
        item_artist = self._norm_text(item.get("artistName") or "")
        q_track = self._norm_text(title)
        q_artist = self._norm_text(artist)
        score = 0
        if q_track and item_track == q_track:
            score += 6
        elif q_track and q_track in item_track:
            score += 4
        elif q_track and item_track and item_track in q_track:
            score += 2
        if q_artist and item_artist == q_artist:
            score += 5
        elif q_artist and q_artist in item_artist:
            score += 3
        elif q_artist and item_artist and item_artist in q_artist:
            score += 1
        if item.get("plainLyrics"):
            score += 1
        return score
