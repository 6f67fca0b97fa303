"""Anthropic API client with usage and cost tracking.

Provides a singleton client and a plain-text completion call used by the
letter draft assistant.
"""

import hashlib
import logging

import anthropic

from ..config import settings

logger = logging.getLogger(__name__)

MODELS = {
    "haiku": "claude-haiku-4-5-20251001",
    "sonnet": "claude-sonnet-4-5-20250929",
}

PRICING = {
    "claude-haiku-4-5-20251001": {"input": 0.80, "output": 4.00},
    "claude-sonnet-4-5-20250929": {"input": 3.00, "output": 15.00},
}

_client: anthropic.Anthropic | None = None


def get_client() -> anthropic.Anthropic:
    """Get or create the singleton Anthropic client."""
    global _client
    if _client is None:
        _client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
    return _client


def resolve_model(model: str) -> str:
    return MODELS.get(model, MODELS["haiku"])


def prompt_hash(*parts: str) -> str:
    """SHA-256 over the prompt parts, used as a cache key."""
    content = "\x1f".join(parts)
    return hashlib.sha256(content.encode()).hexdigest()


def calculate_cost(usage: anthropic.types.Usage, model_id: str) -> float:
    pricing = PRICING.get(model_id, PRICING[MODELS["haiku"]])
    input_cost = (usage.input_tokens / 1_000_000) * pricing["input"]
    output_cost = (usage.output_tokens / 1_000_000) * pricing["output"]
    return round(input_cost + output_cost, 6)


def _strip_markdown_wrapper(text: str) -> str:
    """Remove a ``` fence the model sometimes wraps prose in."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if "```" in text:
            text = text.rsplit("```", 1)[0]
        text = text.strip()
    return text


def complete_text(
    system_prompt: str,
    user_prompt: str,
    model_id: str,
    max_tokens: int,
) -> tuple[str, anthropic.types.Usage]:
    """Single message call returning the text blocks joined together.

    Raises anthropic.APIError on transport or API failures and ValueError
    when the model answers with no text.
    """
    client = get_client()

    message = client.messages.create(
        model=model_id,
        max_tokens=max_tokens,
        system=system_prompt,
        messages=[{"role": "user", "content": user_prompt}],
    )

    text = "".join(block.text for block in message.content if getattr(block, "type", "") == "text")
    text = _strip_markdown_wrapper(text)
    if not text:
        logger.warning("Empty completion (model=%s, stop_reason=%s)", model_id, getattr(message, "stop_reason", None))
        raise ValueError("Model returned an empty response")

    return text, message.usage
