from lyricflash.data.deepl import DeepLTranslator
from lyricflash.data.huggingface import HuggingFaceEmotionClassifier
from lyricflash.data.lyrics_sources import FileLyricsSource, LrclibLyricsSource, LyricsQuery, StaticLyricsSource
from lyricflash.data.spotify import SpotifyTokenClient

__all__ = [
    "DeepLTranslator",
    "HuggingFaceEmotionClassifier",
    "FileLyricsSource", "LrclibLyricsSource", "LyricsQuery", "StaticLyricsSource",
    "SpotifyTokenClient"
]
