"""Abstract base class for AI responders."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from chatpilot.models import ChatMessage, ConversationVerdict
from chatpilot.prompt import (
    build_analysis_messages,
    build_greeting_messages,
    build_reply_messages,
)
from chatpilot.schema import parse_verdict


DEFAULT_GREETING = "Hey there! 👋 How's your day going?"


class BaseResponder(ABC):
    """Abstract base class for all language-model backends.

    Subclasses implement the transport primitives (``list_models``,
    ``generate`` and ``chat``); analysis, replies and greetings are built on
    top of them here so every backend behaves the same way.
    """

    name = "base"

    # Sent instead of a real reply while the backend cannot take a call
    BUSY_REPLY = "I'm still thinking about your last message. I'll respond in a moment."

    def __init__(self, app: str = "chat"):
        self.app = app
        self.is_processing = False
        self.last_error: Optional[str] = None

    @abstractmethod
    async def list_models(self) -> List[str]:
        """Names of the models the backend can serve."""
        pass

    @abstractmethod
    async def generate(self, prompt: str, temperature: float = 0.3, max_tokens: int = 1000) -> str:
        """Complete a single prompt and return the text."""
        pass

    @abstractmethod
    async def chat(self, messages: List[Dict[str, str]], temperature: float = 0.3, max_tokens: int = 1000) -> str:
        """Answer a list of ``{role, content}`` messages and return the text."""
        pass

    def is_available(self) -> bool:
        """Whether the backend is configured well enough to be called."""
        return True

    async def _call(self, messages: List[Dict[str, str]], **kwargs: Any) -> str:
        self.is_processing = True
        self.last_error = None
        try:
            return await self.chat(messages, **kwargs)
        except Exception as e:
            self.last_error = str(e)
            raise
        finally:
            self.is_processing = False

    async def analyze_conversation(
        self,
        previous_text: str,
        current_text: str,
        my_username: str,
        last_own_response: str = "",
        recent_history: str = "",
        context_instructions: str = "",
    ) -> ConversationVerdict:
        """Ask the model whether the OCR change contains a message worth answering.

        Transport errors propagate; unparseable model output never does.
        """
        messages = build_analysis_messages(
            previous_text,
            current_text,
            my_username,
            last_own_response=last_own_response,
            recent_history=recent_history,
            context_instructions=context_instructions,
            app=self.app,
        )
        raw = await self._call(messages, temperature=0.1, max_tokens=1000)
        verdict = parse_verdict(raw)
        print(f"[{self.name.upper()}] Analysis verdict: {verdict.to_dict()}")
        return verdict

    async def generate_reply(
        self,
        incoming_message: str,
        history: Optional[List[ChatMessage]] = None,
        ocr_context: Optional[str] = None,
    ) -> str:
        """Generate the reply to send for an incoming message.

        Returns ``BUSY_REPLY`` straight away if the backend is unavailable or
        already busy with another call.
        """
        if self.is_processing or not self.is_available():
            return self.BUSY_REPLY

        messages = build_reply_messages(incoming_message, history or [], ocr_context, app=self.app)
        reply = await self._call(messages)
        return reply.strip()

    async def generate_greeting(self, ocr_text: str, greeting_prompt: Optional[str] = None,
                                fallback: str = DEFAULT_GREETING) -> str:
        """Generate an opening message. Never returns an empty string."""
        try:
            if self.is_processing or not self.is_available():
                return fallback or DEFAULT_GREETING
            messages = build_greeting_messages(ocr_text, greeting_prompt, app=self.app)
            greeting = (await self._call(messages, temperature=0.8, max_tokens=200)).strip()
        except Exception as e:
            print(f"[{self.name.upper()}] Error generating greeting: {e}")
            return fallback or DEFAULT_GREETING

        return greeting or fallback or DEFAULT_GREETING
