"""Gemini responder (Google Generative AI SDK)."""

import asyncio
from typing import Any, Dict, List

from chatpilot.responders.base_responder import BaseResponder


class GeminiResponder(BaseResponder):
    """Google Gemini-based responder."""

    name = "gemini"
    BUSY_REPLY = "Let me think about this for a moment."

    def __init__(self, api_key: str = None, model: str = None, app: str = "chat", genai: Any = None):
        """Initialize Gemini responder.

        Args:
            api_key: Gemini API key (defaults to Config.GEMINI_API_KEY)
            model: Model name to use (defaults to Config.GEMINI_MODEL)
            app: Chat application label used in prompts
            genai: Pre-imported ``google.generativeai`` module (tests)
        """
        super().__init__(app=app)
        from chatpilot.config import Config

        self.api_key = api_key or Config.GEMINI_API_KEY
        self.model_name = model or Config.GEMINI_MODEL

        # Validate API key
        if not self.api_key:
            raise ValueError(
                "GEMINI_API_KEY is required. Please set it in your .env file or environment variables. "
                "Get your API key from: https://aistudio.google.com/app/apikey"
            )

        if genai is None:
            try:
                import google.generativeai as genai
            except ImportError:
                raise ImportError(
                    "google-generativeai library is required for the Gemini responder. "
                    "Install it with: pip install google-generativeai"
                )
        try:
            genai.configure(api_key=self.api_key)
        except Exception as e:
            raise RuntimeError(f"Failed to initialize Gemini: {str(e)}")
        self.genai = genai

    async def list_models(self) -> List[str]:
        models = await asyncio.to_thread(lambda: list(self.genai.list_models()))
        return [
            m.name for m in models
            if "generateContent" in (getattr(m, "supported_generation_methods", None) or [])
        ]

    async def chat(self, messages: List[Dict[str, str]], temperature: float = 0.3, max_tokens: int = 1000) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        contents = [
            {"role": "model" if m["role"] == "assistant" else "user", "parts": [m["content"]]}
            for m in messages if m["role"] != "system"
        ]

        model = self.genai.GenerativeModel(self.model_name, system_instruction=system or None)
        try:
            response = await model.generate_content_async(
                contents,
                generation_config={
                    "temperature": temperature,
                    "top_p": 0.95,
                    "top_k": 40,
                    "max_output_tokens": max_tokens,
                },
            )
            return response.text or ""
        except Exception as e:
            error_msg = str(e).lower()
            print(f"[GEMINI] API error: {e}")

            # Handle specific error types
            if "api key" in error_msg or "unauthorized" in error_msg or "403" in error_msg:
                raise RuntimeError("Invalid or missing API key. Please check your GEMINI_API_KEY setting.") from e
            if "quota" in error_msg or "rate limit" in error_msg or "429" in error_msg:
                raise RuntimeError("Rate limit exceeded. Please wait a moment and try again.") from e
            if "model" in error_msg and "not found" in error_msg:
                raise RuntimeError(
                    f"Model '{self.model_name}' not found. Please check your GEMINI_MODEL setting."
                ) from e
            raise

    async def generate(self, prompt: str, temperature: float = 0.3, max_tokens: int = 1000) -> str:
        return await self.chat([{"role": "user", "content": prompt}], temperature, max_tokens)
