"""LLM gateway — thin wrapper over the Anthropic async client.

Upstream 429/402 statuses are surfaced as ``UpstreamQuotaError`` so callers can
pass them through verbatim; everything else becomes ``UpstreamError``.
"""

from __future__ import annotations

import logging

import anthropic

from brainbattle.config import Settings, get_settings
from brainbattle.errors import UpstreamError, UpstreamQuotaError

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
CREDITS_EXHAUSTED_MESSAGE = "AI credits exhausted. Please add credits."


class LLMGateway:
    """Send a system + user prompt and return the model's text reply."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.client: anthropic.AsyncAnthropic | None = None
        if self.settings.anthropic_api_key:
            self.client = anthropic.AsyncAnthropic(api_key=self.settings.anthropic_api_key)

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def complete(self, system: str, prompt: str, *, temperature: float | None = None) -> str:
        """Return the concatenated text blocks of the model response.

        Raises:
            UpstreamQuotaError: Upstream answered 429 or 402.
            UpstreamError: Not configured, any other upstream failure, or an empty reply.
        """
        if self.client is None:
            msg = "LLM API key is not configured"
            raise UpstreamError(msg)

        try:
            response = await self.client.messages.create(
                model=self.settings.llm_model,
                max_tokens=self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature if temperature is None else temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.RateLimitError as e:
            logger.warning("LLM gateway rate limited: %s", e)
            raise UpstreamQuotaError(RATE_LIMIT_MESSAGE, status_code=429) from e
        except anthropic.APIStatusError as e:
            logger.error("LLM gateway error: %s %s", e.status_code, e.message)
            if e.status_code == 402:
                raise UpstreamQuotaError(CREDITS_EXHAUSTED_MESSAGE, status_code=402) from e
            msg = f"AI gateway error: {e.status_code}"
            raise UpstreamError(msg) from e
        except anthropic.APIError as e:
            logger.error("LLM gateway request failed: %s", e)
            msg = "AI gateway request failed"
            raise UpstreamError(msg) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        if not text.strip():
            msg = "No content in AI response"
            raise UpstreamError(msg)
        return text


_gateway: LLMGateway | None = None


def get_llm_gateway() -> LLMGateway:
    """FastAPI dependency / in-process accessor. Tests override or replace it."""
    global _gateway  # noqa: PLW0603
    if _gateway is None:
        _gateway = LLMGateway()
    return _gateway


def set_llm_gateway(gateway: LLMGateway | None) -> None:
    """Install a gateway (or reset to lazy default with ``None``)."""
    global _gateway  # noqa: PLW0603
    _gateway = gateway
