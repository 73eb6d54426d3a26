import httpx

from lyricflash.config import settings
from lyricflash.core.resilience import CallOutcome, ClientError, send_request


class HuggingFaceEmotionClassifier:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_token: str = settings.HUGGINGFACE_API_TOKEN,
        api_url: str = settings.HUGGINGFACE_API_URL,
        top_k: int = settings.EMOTION_TOP_K,
        timeout_sec: float = settings.EXTERNAL_TIMEOUT_SEC,
    ):
        self._client = client
        self.api_token = str(api_token or "").strip()
        self.api_url = api_url
        self.top_k = int(top_k)
        self.timeout_sec = timeout_sec

    @property
    def configured(self) -> bool:
        return bool(self.api_token)

    async def classify(self, text: str) -> CallOutcome:
        """Return raw ``[{label, score}]`` predictions (possibly nested one level)."""
        if not self.configured:
            return ClientError("Hugging Face API token is not configured")
        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "User-Agent": settings.USER_AGENT,
        }
        payload = {"inputs": text, "parameters": {"top_k": self.top_k}}
        return await send_request(
            lambda: self._client.post(
                self.api_url, json=payload, headers=headers, timeout=self.timeout_sec
            )
        )
