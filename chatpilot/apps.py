"""Target chat applications: screen coordinates, OCR filters and Discord context."""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import re


@dataclass(frozen=True)
class AppProfile:
    """Everything the agent needs to know about one chat application."""
    key: str
    label: str
    input_box: Tuple[int, int]
    protocol: str
    window_name: Optional[str] = None  # OCR filter by window title
    app_name: Optional[str] = None  # OCR filter by application name
    fallback_greeting: str = "Hey there! 👋 How's your day going?"


APP_PROFILES: Dict[str, AppProfile] = {
    "whatsapp": AppProfile(
        key="whatsapp",
        label="WhatsApp",
        input_box=(1300, 680),
        protocol="whatsapp://",
        window_name="WhatsApp",
    ),
    "discord": AppProfile(
        key="discord",
        label="Discord",
        input_box=(600, 650),
        protocol="discord://",
        app_name="Discord",
        fallback_greeting="Hello Discord! 👋 How's everyone doing today?",
    ),
}


def get_app_profile(app: str) -> AppProfile:
    """Look up a profile by key ("whatsapp" or "discord").

    Raises:
        ValueError: If the app is not supported
    """
    profile = APP_PROFILES.get((app or "").strip().lower())
    if profile is None:
        raise ValueError(
            f"Unsupported app: '{app}'. "
            f"Supported apps are: {', '.join(APP_PROFILES)}"
        )
    return profile


# Discord context types
SERVER_CHANNEL = "server_channel"
DIRECT_MESSAGE = "direct_message"
UNKNOWN = "unknown"


@dataclass
class DiscordContext:
    type: str = UNKNOWN
    is_dm: bool = False
    server_name: Optional[str] = None
    channel_name: Optional[str] = None
    username: Optional[str] = None

    def to_dict(self):
        return {
            "type": self.type,
            "isDM": self.is_dm,
            "serverName": self.server_name,
            "channelName": self.channel_name,
            "username": self.username,
        }


_DM_TO_RE = re.compile(r"Direct Messages to ([^\n]+)", re.IGNORECASE)
_MESSAGE_AT_RE = re.compile(r"Message\s?@([^\n\s]+)", re.IGNORECASE)
_CHANNEL_RE = re.compile(r"#\s?([a-zA-Z0-9_-]+)")
_SERVER_MARKER_RE = re.compile(r"server-updates|server-staff|announcements", re.IGNORECASE)


def detect_discord_context(ocr_text: str) -> DiscordContext:
    """Work out whether Discord OCR text shows a DM or a server channel."""
    context = DiscordContext()
    text = ocr_text or ""

    if "Direct Messages" in text and (
        "Find or start a conversation" in text or "Message @" in text
    ):
        context.type = DIRECT_MESSAGE
        context.is_dm = True
        m = _DM_TO_RE.search(text) or _MESSAGE_AT_RE.search(text)
        if m and m.group(1):
            context.username = m.group(1).strip()
        return context

    m = _CHANNEL_RE.search(text)
    if m and m.group(1):
        context.type = SERVER_CHANNEL
        context.channel_name = m.group(1).strip()

        # OCR makes the server name a guess: the last non-empty line before a
        # well-known channel name
        marker = _SERVER_MARKER_RE.search(text)
        if marker:
            lines = [l for l in text.split(marker.group(0))[0].split("\n") if l.strip()]
            if lines:
                context.server_name = lines[-1].strip()

    return context


def context_instructions(context: Optional[DiscordContext]) -> str:
    """Extra analyzer instructions for a Discord conversation."""
    if context is None:
        return ""
    if context.type == DIRECT_MESSAGE and context.username:
        return (
            f"This is a Discord direct message conversation with {context.username}. "
            "Focus on messages that appear to be from them. "
            'Messages typically appear in the format "Username timestamp: message content". '
            "Ignore system messages and UI elements."
        )
    if context.type == SERVER_CHANNEL and context.channel_name:
        return (
            f"This is a Discord server conversation in the #{context.channel_name} channel. "
            "There might be multiple participants. "
            'Messages typically appear in the format "Username timestamp: message content". '
            "Only respond to messages that are directed to you or seem to warrant a response. "
            "Ignore system messages and UI elements."
        )
    return (
        "This is a Discord conversation. "
        "Messages typically appear with username and timestamp, then the message content. "
        "There might be multiple participants in the conversation."
    )


def describe_context(context: Optional[DiscordContext], sender: str = "") -> str:
    """Short human description used in log lines, e.g. 'from Sam in #general'."""
    if context is None:
        return ""
    if context.type == DIRECT_MESSAGE and context.username:
        return f"from {context.username} in DM"
    if context.type == SERVER_CHANNEL and context.channel_name:
        return f"from {sender or 'someone'} in #{context.channel_name}"
    return ""


def greeting_prompt(context: Optional[DiscordContext]) -> str:
    if context is not None:
        if context.type == DIRECT_MESSAGE and context.username:
            return f"Generate a friendly initial greeting for a Discord direct message conversation with {context.username}."
        if context.type == SERVER_CHANNEL and context.channel_name:
            return f"Generate a friendly initial greeting for a Discord server in the #{context.channel_name} channel."
    return "Generate a friendly initial greeting for a Discord conversation."


def fallback_greeting(profile: AppProfile, context: Optional[DiscordContext] = None) -> str:
    if context is not None:
        if context.type == DIRECT_MESSAGE:
            return "Hey there! 👋 How can I help you today?"
        if context.type == SERVER_CHANNEL:
            return "Hello everyone! 👋 I'm here to help. Feel free to ask me anything!"
    return profile.fallback_greeting
