"""Text generation through the Claude API."""

from typing import Any

import anthropic

from .errors import ConfigurationError


class TextGenerator:
    """Thin wrapper around the Anthropic Messages API."""

    def __init__(self, config: dict[str, Any], client: Any = None):
        self.model = config.get("claude_model", "claude-sonnet-4-20250514")
        if client is None:
            api_key = config.get("claude_api_key")
            if not api_key:
                raise ConfigurationError(
                    "Claude API key required. Set ANTHROPIC_API_KEY or claude_api_key in config."
                )
            client = anthropic.Anthropic(api_key=api_key)
        self.client = client

    def generate(
        self,
        prompt: str,
        max_tokens: int = 1000,
        temperature: float = 0.7,
        system: str | None = None,
    ) -> str:
        """Return the model's text reply to a single user prompt."""
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = self.client.messages.create(**kwargs)
        return "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")


def get_generator(config: dict[str, Any]) -> TextGenerator | None:
    """Generator for optional uses (summaries, labels); None without an API key."""
    if not config.get("claude_api_key"):
        return None
    return TextGenerator(config)
