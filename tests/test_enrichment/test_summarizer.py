"""Tests for summary enrichment and its truncation fallback."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from regwatch.circuit_breaker import CircuitState
from regwatch.config.settings import Settings
from regwatch.enrichment.summarizer import (
    OpenAISummarizer,
    TruncatingSummarizer,
    create_summarizer,
    truncate_description,
)


class TestTruncateDescription:
    def test_short_text_unchanged(self):
        assert truncate_description("Short notice.", 300) == "Short notice."

    def test_long_text_gets_ellipsis(self):
        text = "word " * 100
        result = truncate_description(text, 50)
        assert result.endswith("...")
        assert len(result) <= 53

    def test_exact_length_no_ellipsis(self):
        assert truncate_description("x" * 10, 10) == "x" * 10

    def test_none_is_empty(self):
        assert truncate_description(None) == ""


class TestTruncatingSummarizer:
    @pytest.mark.asyncio
    async def test_uses_description(self):
        summarizer = TruncatingSummarizer(20)
        result = await summarizer.summarize("Title", "A long description of the recall event")
        assert result == "A long description o..."

    @pytest.mark.asyncio
    async def test_falls_back_to_title(self):
        assert await TruncatingSummarizer().summarize("Only a title", "") == "Only a title"


class TestOpenAISummarizer:
    @pytest.mark.asyncio
    async def test_unconfigured_uses_truncation(self, test_settings):
        summarizer = OpenAISummarizer(test_settings, max_length=10)
        with patch.object(summarizer, "_complete", new_callable=AsyncMock) as complete:
            result = await summarizer.summarize("T", "0123456789abcdef")

        complete.assert_not_called()
        assert result == "0123456789..."

    @pytest.mark.asyncio
    async def test_returns_model_summary(self):
        settings = Settings(openai_api_key="sk-test")
        summarizer = OpenAISummarizer(settings)

        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = "  Acme recalls peanut butter over Salmonella.  "
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)
        summarizer._client = client

        result = await summarizer.summarize("Acme Recall", "Peanut butter recall")

        assert result == "Acme recalls peanut butter over Salmonella."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == settings.openai_model
        assert "Acme Recall" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_error_falls_back(self):
        summarizer = OpenAISummarizer(Settings(openai_api_key="sk-test"))
        with patch.object(
            summarizer, "_complete", new_callable=AsyncMock, side_effect=TimeoutError("slow")
        ):
            result = await summarizer.summarize("Title", "Description text")

        assert result == "Description text"

    @pytest.mark.asyncio
    async def test_empty_answer_falls_back(self):
        summarizer = OpenAISummarizer(Settings(openai_api_key="sk-test"))
        response = MagicMock()
        response.choices = [MagicMock()]
        response.choices[0].message.content = "   "
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)
        summarizer._client = client

        assert await summarizer.summarize("Title", "Description text") == "Description text"

    @pytest.mark.asyncio
    async def test_repeated_failures_open_breaker(self):
        summarizer = OpenAISummarizer(Settings(openai_api_key="sk-test"))
        complete = AsyncMock(side_effect=RuntimeError("boom"))
        with patch.object(summarizer, "_complete", complete):
            for _ in range(5):
                await summarizer.summarize("Title", "Description")

        assert complete.await_count == 3
        assert summarizer.breaker.state == CircuitState.OPEN


class TestCreateSummarizer:
    def test_without_key(self, test_settings):
        assert isinstance(create_summarizer(test_settings), TruncatingSummarizer)

    def test_with_key(self):
        assert isinstance(
            create_summarizer(Settings(openai_api_key="sk-test")), OpenAISummarizer
        )
