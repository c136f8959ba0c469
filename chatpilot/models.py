"""Data models for chatpilot."""

from dataclasses import dataclass, field
from typing import Literal
import time


@dataclass
class OcrSnapshot:
    """The latest recognized text of the watched chat window."""
    text: str
    timestamp: str

    def to_dict(self):
        return {
            "text": self.text,
            "timestamp": self.timestamp
        }


@dataclass
class ConversationVerdict:
    """What the analyzer made of the difference between two OCR snapshots."""
    new_message_detected: bool
    should_reply: bool
    message: str
    sender: str
    reasoning: str

    def to_dict(self):
        return {
            "newMessageDetected": self.new_message_detected,
            "shouldReply": self.should_reply,
            "message": self.message,
            "sender": self.sender,
            "reasoning": self.reasoning
        }


@dataclass
class ChatMessage:
    """A message in the automated conversation."""
    role: Literal["user", "assistant", "system"]
    content: str
    ts: float = field(default_factory=lambda: time.time())  # Unix timestamp

    def to_dict(self):
        return {
            "role": self.role,
            "content": self.content,
            "ts": self.ts
        }


@dataclass
class LogEntry:
    """A line in the operator-visible activity log."""
    time: str
    message: str

    def to_dict(self):
        return {
            "time": self.time,
            "message": self.message
        }
