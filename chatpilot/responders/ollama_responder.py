"""Ollama responder (local models over Ollama's HTTP API)."""

from typing import Dict, List, Optional

import httpx

from chatpilot.prompt import messages_to_prompt
from chatpilot.responders.base_responder import BaseResponder


class OllamaResponder(BaseResponder):
    """Local Ollama-based responder.

    Endpoints used:
      GET  {ollama_url}/api/tags
      POST {ollama_url}/api/generate
    """

    name = "ollama"
    BUSY_REPLY = "I'm still thinking about your last message. I'll respond in a moment."

    def __init__(self, ollama_url: str = None, model: str = None, app: str = "chat",
                 timeout: float = 90, transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize Ollama responder.

        Args:
            ollama_url: URL of Ollama server (defaults to Config.OLLAMA_URL)
            model: Model name to use (defaults to Config.OLLAMA_MODEL)
            app: Chat application label used in prompts
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(app=app)
        from chatpilot.config import Config
        self.ollama_url = (ollama_url or Config.OLLAMA_URL).rstrip("/")
        self.model = model or Config.OLLAMA_MODEL
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def list_models(self) -> List[str]:
        async with self._client() as client:
            r = await client.get(f"{self.ollama_url}/api/tags")
            r.raise_for_status()
            data = r.json()
        return [m.get("name", "") for m in (data.get("models") or []) if m.get("name")]

    async def _post_generate(self, prompt: str, system: str, temperature: float, max_tokens: int) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }
        if system:
            payload["system"] = system

        try:
            async with self._client() as client:
                r = await client.post(f"{self.ollama_url}/api/generate", json=payload)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise RuntimeError(
                    f"Model '{self.model}' not found. Install it with: ollama pull {self.model}"
                ) from e
            raise
        except httpx.ConnectError as e:
            raise RuntimeError(
                f"Cannot connect to Ollama at {self.ollama_url}. Please ensure Ollama is running."
            ) from e

        return data.get("response", "") or ""

    async def generate(self, prompt: str, temperature: float = 0.3, max_tokens: int = 1000) -> str:
        print(f"[OLLAMA] Calling {self.model} with prompt: {prompt[:100]}...")
        return await self._post_generate(prompt, "", temperature, max_tokens)

    async def chat(self, messages: List[Dict[str, str]], temperature: float = 0.3, max_tokens: int = 1000) -> str:
        system, prompt = messages_to_prompt(messages)
        print(f"[OLLAMA] Calling {self.model} with {len(messages)} messages")
        return await self._post_generate(prompt, system, temperature, max_tokens)
