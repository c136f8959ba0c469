"""Nebius responder (cloud, OpenAI-compatible chat completions)."""

from typing import Dict, List, Optional

import httpx

from chatpilot.responders.base_responder import BaseResponder


class NebiusResponder(BaseResponder):
    """Nebius AI Studio responder."""

    name = "nebius"
    BUSY_REPLY = "Let me think about this for a moment."

    def __init__(self, api_key: str = None, model: str = None, base_url: str = None,
                 app: str = "chat", timeout: float = 90,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize Nebius responder.

        Args:
            api_key: Nebius API key (defaults to Config.NEBIUS_API_KEY)
            model: Model name to use (defaults to Config.NEBIUS_MODEL)
            base_url: API base URL (defaults to Config.NEBIUS_BASE_URL)
            app: Chat application label used in prompts
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(app=app)
        from chatpilot.config import Config

        self.api_key = api_key or Config.NEBIUS_API_KEY or ""
        self.model = model or Config.NEBIUS_MODEL
        self.base_url = (base_url or Config.NEBIUS_BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def list_models(self) -> List[str]:
        if not self.api_key:
            return []
        async with self._client() as client:
            r = await client.get(f"{self.base_url}/models", headers=self._headers())
            r.raise_for_status()
            data = r.json()
        return [m.get("id", "") for m in (data.get("data") or data.get("models") or []) if m.get("id")]

    async def chat(self, messages: List[Dict[str, str]], temperature: float = 0.3, max_tokens: int = 1000) -> str:
        if not self.api_key:
            raise RuntimeError("NEBIUS_API_KEY is not set.")

        body = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        print(f"[NEBIUS] Calling {self.model} with {len(messages)} messages")

        async with self._client() as client:
            r = await client.post(f"{self.base_url}/chat/completions", json=body, headers=self._headers())
            r.raise_for_status()
            data = r.json()

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise RuntimeError(f"Unexpected Nebius response: {str(data)[:200]}") from e

    async def generate(self, prompt: str, temperature: float = 0.3, max_tokens: int = 1000) -> str:
        return await self.chat([{"role": "user", "content": prompt}], temperature, max_tokens)
