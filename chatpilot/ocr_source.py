from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from chatpilot.apps import AppProfile
from chatpilot.models import OcrSnapshot


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class OcrSource:
    """Queries a local Screenpipe service for the latest OCR text of a window.

    Endpoints used:
      GET {base_url}/search?content_type=ocr&window_name=...|app_name=...
      GET {base_url}/health
    """

    def __init__(
        self,
        base_url: str = None,
        lookback_seconds: int = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        from chatpilot.config import Config
        self._base_url = (base_url or Config.SCREENPIPE_URL).rstrip("/")
        self._lookback_s = int(lookback_seconds if lookback_seconds is not None else Config.OCR_LOOKBACK_SECONDS)
        self._timeout = float(timeout)
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def _params(self, profile: Optional[AppProfile], limit: int) -> Dict[str, Any]:
        params: Dict[str, Any] = {"content_type": "ocr", "limit": int(limit)}
        if profile is not None:
            if profile.window_name:
                params["window_name"] = profile.window_name
            if profile.app_name:
                params["app_name"] = profile.app_name
        if self._lookback_s > 0:
            now = datetime.now(timezone.utc)
            params["start_time"] = _iso(now - timedelta(seconds=self._lookback_s))
            params["end_time"] = _iso(now)
        return params

    async def fetch(self, profile: Optional[AppProfile] = None, limit: int = 1) -> Optional[OcrSnapshot]:
        """Latest snapshot, or None when Screenpipe has nothing for the window.

        Transport errors propagate; an empty result is not an error.
        """
        async with self._client() as client:
            r = await client.get(f"{self._base_url}/search", params=self._params(profile, limit))
            r.raise_for_status()
            data = r.json()

        items = (data or {}).get("data") or []
        if not items:
            return None

        item = items[0] or {}
        kind = str(item.get("type") or "OCR").upper()
        content = item.get("content") or {}
        text = content.get("text")
        if kind != "OCR" or not text:
            return None

        timestamp = content.get("timestamp") or _iso(datetime.now(timezone.utc))
        return OcrSnapshot(text=text, timestamp=str(timestamp))

    async def health(self) -> str:
        """'healthy' when Screenpipe answers its health endpoint, else 'error'."""
        try:
            async with self._client() as client:
                r = await client.get(f"{self._base_url}/health")
            return "healthy" if r.is_success else "error"
        except httpx.HTTPError as e:
            print(f"[OCR] Health check error: {e}")
            return "error"
