from typing import Sequence

import httpx

from lyricflash.config import settings
from lyricflash.core.resilience import CallOutcome, ClientError, Ok, ServerError, send_request


class DeepLTranslator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str = settings.DEEPL_API_KEY,
        api_url: str = settings.DEEPL_API_URL,
        target_lang: str = settings.DEEPL_TARGET_LANG,
        timeout_sec: float = settings.EXTERNAL_TIMEOUT_SEC,
    ):
        self._client = client
        self.api_key = str(api_key or "").strip()
        self.api_url = api_url
        self.target_lang = target_lang
        self.timeout_sec = timeout_sec

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def translate_batch(self, lines: Sequence[str], source_lang: str) -> CallOutcome:
        """Translate lines to English in one request; output keeps input order."""
        if not self.configured:
            return ClientError("DeepL API key is not configured")
        if not lines:
            return Ok([])
        form = {
            "text": list(lines),
            "source_lang": str(source_lang or "").upper(),
            "target_lang": self.target_lang,
            "preserve_formatting": "1",
        }
        headers = {
            "Authorization": f"DeepL-Auth-Key {self.api_key}",
            "User-Agent": settings.USER_AGENT,
        }
        outcome = await send_request(
            lambda: self._client.post(
                self.api_url, data=form, headers=headers, timeout=self.timeout_sec
            )
        )
        if not isinstance(outcome, Ok):
            return outcome
        translations = outcome.data.get("translations") if isinstance(outcome.data, dict) else None
        if not isinstance(translations, list):
            return ServerError("DeepL response has no translations list")
        return Ok([str(item.get("text") or "") if isinstance(item, dict) else "" for item in translations])
