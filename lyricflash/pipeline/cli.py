import argparse
import asyncio
import json
import logging
import sys

from lyricflash.core.errors import LyricflashError
from lyricflash.data.lyrics_sources import FileLyricsSource, LyricsQuery
from lyricflash.pipeline.song_insights import SongInsightsService

LOG_FORMAT = "[%(levelname)s] %(asctime)s %(message)s"


def _build_parser():
    parser = argparse.ArgumentParser(
        description="Build bilingual lyric flashcards and a sentiment summary for a song."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def _song_args(p):
        p.add_argument("--user", required=True, help="User id that owns the cached results.")
        p.add_argument("--song", required=True, help="Song title (cache identity).")

    def _lyrics_args(p):
        p.add_argument(
            "lyrics",
            nargs="?",
            default="",
            help="Path to a lyrics text file. Omit to look the song up on LRCLIB.",
        )
        p.add_argument("--artist", default="", help="Artist name (LRCLIB lookup, sentiment key).")
        p.add_argument("--json", action="store_true", help="Print raw JSON instead of rows.")

    cards = sub.add_parser("flashcards", help="Translate lyrics into flashcards.")
    _song_args(cards)
    _lyrics_args(cards)
    cards.add_argument("--lang", default="", help="Force the source language (e.g. ES, FR).")

    mood = sub.add_parser("sentiment", help="Summarize the mood of a song.")
    _song_args(mood)
    _lyrics_args(mood)

    inv = sub.add_parser("invalidate", help="Drop cached results for a song or a whole user.")
    inv.add_argument("--user", required=True, help="User id.")
    inv.add_argument("--song", default="", help="Song title. Omit to clear the user's history.")

    parser.add_argument("--verbose", action="store_true", help="Log at INFO level.")
    return parser


def _lyrics_ref(args):
    if args.lyrics:
        return args.lyrics
    return LyricsQuery(title=args.song, artist=args.artist)


def _print_flashcards(cards):
    if not cards:
        print("No flashcards.")
        return
    for number, card in enumerate(cards, start=1):
        marker = " (=)" if card.is_identical else ""
        print(f"{number:>3}. {card.front}")
        print(f"     {card.back}{marker}")


def _print_sentiment(result):
    print(f"{result.emoji} {result.sentiment} (score {result.score})")
    if result.fallback:
        print("[WARN] emotion analysis unavailable, showing neutral default")
    for item in result.emotions:
        print(f"  - {item.emotion}: {item.score}")


async def _run(args) -> int:
    lyrics_source = FileLyricsSource() if getattr(args, "lyrics", "") else None
    service = await SongInsightsService.create(lyrics_source=lyrics_source)
    async with service:
        if args.command == "flashcards":
            cards = await service.get_flashcards(
                args.user, args.song, _lyrics_ref(args), language_override=args.lang or None
            )
            if args.json:
                print(json.dumps([c.to_dict() for c in cards], indent=2, ensure_ascii=False))
            else:
                _print_flashcards(cards)
        elif args.command == "sentiment":
            result = await service.get_sentiment(
                args.user, args.song, artist=args.artist or None, flashcards_source=_lyrics_ref(args)
            )
            if args.json:
                print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
            else:
                _print_sentiment(result)
        else:
            if args.song:
                removed = await service.invalidate(args.user, args.song)
            else:
                removed = await service.clear_user_history(args.user)
            print(f"Removed {removed} cache entries.")
    return 0


def main(argv=None):
    args = _build_parser().parse_args(argv)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.INFO if args.verbose else logging.WARNING,
            format=LOG_FORMAT,
        )
    try:
        return asyncio.run(_run(args))
    except LyricflashError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
