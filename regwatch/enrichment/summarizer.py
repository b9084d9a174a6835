"""Summary enrichment behind a small interface.

``TruncatingSummarizer`` is the default and never fails.
``OpenAISummarizer`` asks an OpenAI chat model for a 1-2 sentence
summary; on any failure (no key, timeout, open circuit, empty answer)
it degrades to the truncated description so persistence is never
blocked on the summary.

The openai SDK import is deferred to first use.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from regwatch.circuit_breaker import CircuitBreaker
from regwatch.config.settings import Settings, get_settings
from regwatch.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_LENGTH = 300

SYSTEM_PROMPT = (
    "You are an expert regulatory analyst. Summarize regulatory information "
    "in 1-2 sentences, focusing on key impacts, affected products/industries, "
    "and actionable insights for businesses. Be concise and professional."
)

USER_PROMPT = "Summarize this regulatory update:\n\nTitle: {title}\n\nDescription: {description}"


def truncate_description(text: str, limit: int = DEFAULT_SUMMARY_LENGTH) -> str:
    """Cut ``text`` at ``limit`` characters, adding an ellipsis only if cut."""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


class Summarizer(ABC):
    """Produces a short summary for an alert."""

    @abstractmethod
    async def summarize(self, title: str, description: str) -> str:
        """Return a summary; must not raise."""
        ...


class TruncatingSummarizer(Summarizer):
    """Description cut to a fixed length (falls back to the title)."""

    def __init__(self, max_length: int = DEFAULT_SUMMARY_LENGTH) -> None:
        self.max_length = max_length

    async def summarize(self, title: str, description: str) -> str:
        return truncate_description(description or title, self.max_length)


class OpenAISummarizer(Summarizer):
    """Chat-completion summaries with a truncation fallback.

    Args:
        settings: Provides the API key, model and timeout.
        max_length: Length used by the truncation fallback.
        breaker: Circuit breaker around the API (one is created if None).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        max_length: int = DEFAULT_SUMMARY_LENGTH,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._fallback = TruncatingSummarizer(max_length)
        self._client: Any = None
        self._breaker = breaker or CircuitBreaker(
            failure_threshold=3,
            recovery_timeout=300.0,
            name="openai_summary",
            on_state_change=get_metrics().record_circuit_state,
        )

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    def _get_client(self) -> Any:
        """Lazy-initialize OpenAI async client."""
        if self._client is None:
            import openai

            api_key = self._settings.openai_api_key
            self._client = openai.AsyncOpenAI(
                api_key=api_key.get_secret_value() if api_key else None,
                timeout=self._settings.summary_timeout_seconds,
            )
        return self._client

    async def _complete(self, title: str, description: str) -> str:
        client = self._get_client()
        response = await client.chat.completions.create(
            model=self._settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": USER_PROMPT.format(title=title, description=description),
                },
            ],
            max_tokens=150,
            temperature=0.3,
        )
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise ValueError("Empty summary returned")
        return content.strip()

    async def summarize(self, title: str, description: str) -> str:
        if not self._settings.summarizer_configured:
            return await self._fallback.summarize(title, description)
        try:
            return await self._breaker.call(self._complete, title, description)
        except Exception as e:
            logger.warning("AI summary failed for %r, using truncation: %s", title[:80], e)
            return await self._fallback.summarize(title, description)


def create_summarizer(
    settings: Settings | None = None,
    max_length: int = DEFAULT_SUMMARY_LENGTH,
) -> Summarizer:
    """OpenAI summarizer when a key is configured, truncation otherwise."""
    settings = settings or get_settings()
    if settings.summarizer_configured:
        return OpenAISummarizer(settings, max_length)
    return TruncatingSummarizer(max_length)
