import asyncio
import base64
import logging
from typing import Optional

import httpx

from lyricflash.config import settings
from lyricflash.core.resilience import ClientError, Ok, RetryPolicy, call_with_retry, send_request

logger = logging.getLogger(__name__)

NO_SONG_PLAYING = "No song currently playing."


class SpotifyTokenClient:
    # Refreshes user tokens and reads the currently playing track.
    def __init__(
        self,
        client: httpx.AsyncClient,
        client_id: str = settings.SPOTIFY_CLIENT_ID,
        client_secret: str = settings.SPOTIFY_CLIENT_SECRET,
        token_url: str = settings.SPOTIFY_TOKEN_URL,
        api_url: str = settings.SPOTIFY_API_URL,
        retry_policy: Optional[RetryPolicy] = None,
        timeout_sec: float = settings.SPOTIFY_AUTH_TIMEOUT_SEC,
        max_refresh_attempts: int = settings.MAX_REFRESH_ATTEMPTS,
        sleep=asyncio.sleep,
    ):
        self._client = client
        self.client_id = str(client_id or "").strip()
        self.client_secret = str(client_secret or "").strip()
        self.token_url = token_url
        self.api_url = str(api_url or "").rstrip("/")
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.SPOTIFY_REFRESH_MAX_ATTEMPTS, base_delay=1.0
        )
        self.timeout_sec = timeout_sec
        self.max_refresh_attempts = max(0, int(max_refresh_attempts))
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _basic_auth(self) -> str:
        raw = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")

    async def refresh_access_token(self, refresh_token: str) -> Optional[str]:
        """
        Exchange a refresh token for a new access token.

        Returns None when the user has to authenticate again.
        """
        refresh_token = str(refresh_token or "").strip()
        if not refresh_token:
            logger.warning("No refresh token available, re-authentication required")
            return None
        if not self.enabled:
            logger.error("Spotify client credentials are not configured")
            return None

        headers = {
            "Authorization": f"Basic {self._basic_auth()}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        form = {"grant_type": "refresh_token", "refresh_token": refresh_token}

        async def _call():
            return await send_request(
                lambda: self._client.post(
                    self.token_url, data=form, headers=headers, timeout=self.timeout_sec
                )
            )

        outcome = await call_with_retry(
            _call, self.retry_policy, label="spotify token refresh", sleep=self._sleep
        )
        if isinstance(outcome, Ok):
            payload = outcome.data if isinstance(outcome.data, dict) else {}
            token = str(payload.get("access_token") or "").strip()
            if not token:
                logger.error("Spotify token response has no access_token")
                return None
            logger.info("Spotify access token refreshed")
            return token
        if isinstance(outcome, ClientError) and outcome.status == 400:
            logger.error("Invalid refresh token, user needs to re-authenticate")
        elif isinstance(outcome, ClientError) and outcome.status == 401:
            logger.error("Spotify client credentials rejected")
        return None

    async def fetch_current_song(self, access_token: str, refresh_token: str = "") -> dict:
        token = str(access_token or "").strip()
        refreshes = 0
        while True:
            outcome = await send_request(
                lambda: self._client.get(
                    f"{self.api_url}/me/player/currently-playing",
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout_sec,
                )
            )
            if isinstance(outcome, ClientError) and outcome.status == 401:
                if refreshes >= self.max_refresh_attempts:
                    logger.warning("Spotify token still rejected after %d refreshes", refreshes)
                    return {"error": "Spotify authentication expired.", "auth_expired": True}
                refreshes += 1
                logger.info("Spotify access token expired, refreshing (%d)", refreshes)
                new_token = await self.refresh_access_token(refresh_token)
                if not new_token:
                    return {"error": "Spotify authentication expired.", "auth_expired": True}
                token = new_token
                continue
            break

        if not isinstance(outcome, Ok):
            logger.warning(
                "Fetching current song failed: %s %s", type(outcome).__name__, outcome.detail
            )
            return {"error": "Failed to fetch current song."}
        item = (outcome.data or {}).get("item") if isinstance(outcome.data, dict) else None
        if not isinstance(item, dict):
            return {"error": NO_SONG_PLAYING}
        result = {
            "song": str(item.get("name") or ""),
            "artist": ", ".join(
                str(a.get("name") or "") for a in item.get("artists") or [] if isinstance(a, dict)
            ),
            "album": str((item.get("album") or {}).get("name") or ""),
        }
        if token != access_token:
            result["access_token"] = token
        return result
