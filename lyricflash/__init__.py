from lyricflash.pipeline.song_insights import SongInsightsService
from lyricflash.core.flashcards import Flashcard
from lyricflash.core.sentiment_analyzer import SentimentResult

__version__ = "0.1.0"

__all__ = ["SongInsightsService", "Flashcard", "SentimentResult", "__version__"]
