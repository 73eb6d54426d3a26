import os

from dotenv import load_dotenv

load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}


def env_flag(name: str, default: str = "0") -> bool:
    return str(os.getenv(name, default) or default).strip().lower() in _TRUE_VALUES


def env_int(name: str, default: int, minimum: int = 0) -> int:
    return max(minimum, int(float(os.getenv(name, str(default)) or default)))


def env_float(name: str, default: float, minimum: float = 0.0) -> float:
    return max(minimum, float(os.getenv(name, str(default)) or default))


def env_str(name: str, default: str = "") -> str:
    return str(os.getenv(name, default) or default).strip()


# Cache backend
REDIS_URL = env_str("REDIS_URL", "redis://127.0.0.1:6379/0")
REDIS_CONNECT_TIMEOUT_SEC = env_float("REDIS_CONNECT_TIMEOUT_SEC", 2.0, minimum=0.1)
MEMORY_CACHE_MAX = env_int("MEMORY_CACHE_MAX", 10000, minimum=16)
FLASHCARDS_CACHE_TTL_SEC = env_int("FLASHCARDS_CACHE_TTL_SEC", 60 * 60 * 24, minimum=30)
SENTIMENT_CACHE_TTL_SEC = env_int("SENTIMENT_CACHE_TTL_SEC", 60 * 60 * 24 * 7, minimum=30)

# Translation (DeepL)
DEEPL_API_KEY = env_str("DEEPL_API_KEY")
DEEPL_API_URL = env_str("DEEPL_API_URL", "https://api-free.deepl.com/v2/translate")
DEEPL_TARGET_LANG = env_str("DEEPL_TARGET_LANG", "EN-US")
TRANSLATION_BATCH_SIZE = env_int("TRANSLATION_BATCH_SIZE", 10, minimum=1)
TRANSLATION_MAX_ATTEMPTS = env_int("TRANSLATION_MAX_ATTEMPTS", 2, minimum=1)
TRANSLATION_BASE_DELAY_SEC = env_float("TRANSLATION_BASE_DELAY_SEC", 0.5)
TRANSLATION_PLACEHOLDER = "Translation unavailable"
SOURCE_PREPROCESSING = env_flag("SOURCE_PREPROCESSING", "1")
PRESERVE_ENGLISH_LINES = env_flag("PRESERVE_ENGLISH_LINES", "1")

# Language identification
DEFAULT_SOURCE_LANG = env_str("DEFAULT_SOURCE_LANG", "ES").upper() or "ES"
LANGUAGE_SAMPLE_LINES = env_int("LANGUAGE_SAMPLE_LINES", 10, minimum=1)

# Emotion classification (Hugging Face inference)
HUGGINGFACE_API_TOKEN = env_str("HUGGINGFACE_API_TOKEN")
EMOTION_MODEL = env_str("EMOTION_MODEL", "SamLowe/roberta-base-go_emotions")
HUGGINGFACE_API_URL = env_str(
    "HUGGINGFACE_API_URL",
    f"https://router.huggingface.co/hf-inference/models/{EMOTION_MODEL}",
)
EMOTION_TOP_K = env_int("EMOTION_TOP_K", 10, minimum=1)
SENTIMENT_MAX_ATTEMPTS = env_int("SENTIMENT_MAX_ATTEMPTS", 3, minimum=1)
SENTIMENT_BASE_DELAY_SEC = env_float("SENTIMENT_BASE_DELAY_SEC", 1.0)
SENTIMENT_MAX_CHARS = env_int("SENTIMENT_MAX_CHARS", 1000, minimum=16)
NEUTRAL_KEEP_THRESHOLD = 0.7

# Shared HTTP
EXTERNAL_TIMEOUT_SEC = env_float("EXTERNAL_TIMEOUT_SEC", 15.0, minimum=1.0)
USER_AGENT = env_str("HTTP_USER_AGENT", "lyricflash/0.1")

# Lyrics source (LRCLIB)
LRCLIB_BASE_URL = env_str("LRCLIB_BASE_URL", "https://lrclib.net/api").rstrip("/")
LRCLIB_GET_TIMEOUT_SEC = env_float("LRCLIB_GET_TIMEOUT_SEC", 3.0, minimum=1.0)
LRCLIB_SEARCH_TIMEOUT_SEC = env_float("LRCLIB_SEARCH_TIMEOUT_SEC", 12.0, minimum=1.0)

# Spotify token refresh
SPOTIFY_CLIENT_ID = env_str("SPOTIFY_CLIENT_ID")
SPOTIFY_CLIENT_SECRET = env_str("SPOTIFY_CLIENT_SECRET")
SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_URL = "https://api.spotify.com/v1"
SPOTIFY_AUTH_TIMEOUT_SEC = env_float("SPOTIFY_AUTH_TIMEOUT_SEC", 8.0, minimum=2.0)
SPOTIFY_REFRESH_MAX_ATTEMPTS = env_int("SPOTIFY_REFRESH_MAX_ATTEMPTS", 3, minimum=1)
MAX_REFRESH_ATTEMPTS = 2
