"""Configuration management for API keys and settings."""

import os
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

# config.py is in chatpilot/, .env is in project root
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(env_path, override=True)


class Config:
    """Application configuration from environment variables."""

    # AI provider settings
    AI_PROVIDER: str = os.getenv("AI_PROVIDER", "ollama")  # "ollama", "nebius" or "gemini"

    # Ollama settings (no API key needed, it's local)
    OLLAMA_URL: str = os.getenv("OLLAMA_URL", "http://localhost:11434")
    OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "qwen2.5")

    # Nebius settings (OpenAI-compatible cloud endpoint)
    NEBIUS_API_KEY: Optional[str] = os.getenv("NEBIUS_API_KEY")
    NEBIUS_BASE_URL: str = os.getenv("NEBIUS_BASE_URL", "https://api.studio.nebius.ai/v1")
    NEBIUS_MODEL: str = os.getenv("NEBIUS_MODEL", "meta-llama/Meta-Llama-3.1-70B-Instruct")

    # Gemini settings
    GEMINI_API_KEY: Optional[str] = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

    # Screenpipe (OCR source)
    SCREENPIPE_URL: str = os.getenv("SCREENPIPE_URL", "http://localhost:3030")
    OCR_LOOKBACK_SECONDS: int = int(os.getenv("OCR_LOOKBACK_SECONDS", "30"))

    # Target chat application and the name we impersonate
    TARGET_APP: str = os.getenv("TARGET_APP", "whatsapp")  # "whatsapp" or "discord"
    MY_USERNAME: str = os.getenv("MY_USERNAME", "You")

    # Monitoring loop timings
    POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "5"))
    BUSY_BACKOFF_SECONDS: float = float(os.getenv("BUSY_BACKOFF_SECONDS", "2"))
    REPLY_COOLDOWN_SECONDS: float = float(os.getenv("REPLY_COOLDOWN_SECONDS", "4"))
    STARTUP_DELAY_SECONDS: float = float(os.getenv("STARTUP_DELAY_SECONDS", "10"))
    GREETING_DELAY_SECONDS: float = float(os.getenv("GREETING_DELAY_SECONDS", "15"))
    GREETING_COOLDOWN_SECONDS: float = float(os.getenv("GREETING_COOLDOWN_SECONDS", "5"))

    # Input automation
    SEND_COOLDOWN_SECONDS: float = float(os.getenv("SEND_COOLDOWN_SECONDS", "10"))
    TYPE_CHUNK_SIZE: int = int(os.getenv("TYPE_CHUNK_SIZE", "15"))
    TYPE_CHUNK_DELAY_SECONDS: float = float(os.getenv("TYPE_CHUNK_DELAY_SECONDS", "0.3"))

    # Prompt context sizes
    ANALYSIS_HISTORY_MESSAGES: int = int(os.getenv("ANALYSIS_HISTORY_MESSAGES", "4"))
    REPLY_HISTORY_MESSAGES: int = int(os.getenv("REPLY_HISTORY_MESSAGES", "10"))

    # Rolling activity log
    LOG_LIMIT: int = int(os.getenv("LOG_LIMIT", "10"))

    # HTTP control server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8010"))

    @classmethod
    def validate(cls) -> list[str]:
        """Validate configuration and return list of missing required settings."""
        missing = []

        # Check provider-specific requirements
        if cls.AI_PROVIDER == "nebius" and not cls.NEBIUS_API_KEY:
            missing.append("NEBIUS_API_KEY (required when AI_PROVIDER=nebius)")
        if cls.AI_PROVIDER == "gemini" and not cls.GEMINI_API_KEY:
            missing.append("GEMINI_API_KEY (required when AI_PROVIDER=gemini)")

        if cls.TARGET_APP not in ("whatsapp", "discord"):
            missing.append("TARGET_APP (must be 'whatsapp' or 'discord')")

        return missing

