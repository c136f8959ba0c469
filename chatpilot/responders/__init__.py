"""Responder factory for creating different LLM backends."""

from chatpilot.responders.base_responder import BaseResponder


def create_responder(provider: str = "ollama", app: str = "chat", model: str = None) -> BaseResponder:
    """Factory function to create a responder instance based on provider.

    Args:
        provider: Backend to create ("ollama", "nebius" or "gemini")
        app: Chat application label used in prompts
        model: Optional model override

    Returns:
        BaseResponder instance

    Raises:
        ValueError: If provider is not supported
    """
    provider = (provider or "").lower()

    if provider == "ollama":
        from chatpilot.responders.ollama_responder import OllamaResponder
        return OllamaResponder(model=model, app=app)
    elif provider == "nebius":
        from chatpilot.responders.nebius_responder import NebiusResponder
        return NebiusResponder(model=model, app=app)
    elif provider == "gemini":
        from chatpilot.responders.gemini_responder import GeminiResponder
        return GeminiResponder(model=model, app=app)
    else:
        raise ValueError(
            f"Unsupported AI provider: '{provider}'. "
            f"Supported providers are: 'ollama', 'nebius', 'gemini'"
        )


__all__ = ["create_responder", "BaseResponder"]
