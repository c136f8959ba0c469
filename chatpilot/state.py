from dataclasses import dataclass, field
from typing import List, Optional

from chatpilot.models import ChatMessage


@dataclass
class SessionState:
    is_active: bool = False
    last_ocr_text: str = ""
    previous_ocr_text: str = ""
    last_ai_response: str = ""
    processing_in_flight: bool = False
    greeting_sent: bool = False
    last_message: str = ""
    chat_history: List[ChatMessage] = field(default_factory=list)
    message_history: List[str] = field(default_factory=list)

    def observe(self, text: str) -> Optional[str]:
        """Record freshly captured OCR text.

        Returns the previously seen text when the screen content changed and
        there is something to compare against; returns None when the text is
        empty, unchanged, or becomes the first baseline.
        """
        if not text or text == self.last_ocr_text:
            return None

        previous = self.last_ocr_text
        self.last_ocr_text = text
        self.previous_ocr_text = previous or text

        if not previous:
            return None
        return previous

    def add_message(self, role: str, content: str) -> ChatMessage:
        msg = ChatMessage(role=role, content=content)
        self.chat_history.append(msg)
        return msg

    def recent_history(self, limit: int) -> List[ChatMessage]:
        if limit <= 0:
            return []
        return self.chat_history[-limit:]
