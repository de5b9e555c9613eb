"""Tests for the tiered model fallback chain."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from pagelens.analysis.composer import parse_summary
from pagelens.bridge.channel import ClosedChannel, LocalChannel
from pagelens.bridge.protocol import error, ok
from pagelens.config import Settings
from pagelens.errors import EmptyInput, ModelUnavailable, TiersExhausted
from pagelens.events import EventBus, EventType
from pagelens.llm.base import ModelService
from pagelens.orchestrator import (
    MOCK_BULLETS,
    MOCK_HIGHLIGHTS,
    ModelOrchestrator,
    SUMMARY_PROMPT,
)
from pagelens.types import SourceTier

MODEL_SUMMARY = "- Model bullet one\n- Model bullet two\n\n===HIGHLIGHTS===\nModel highlight."


class StaticSession:
    def __init__(self, text):
        self.text = text
        self.prompts = []

    async def generate(self, *, prompt, max_output_tokens, temperature=0.2):
        self.prompts.append((prompt, max_output_tokens))
        return {"candidates": [{"content": {"parts": [{"text": self.text}]}}]}


class StaticService(ModelService):
    def __init__(self, text):
        self.session = StaticSession(text)

    async def create(self, model_name):
        return self.session


class UnavailableService(ModelService):
    async def create(self, model_name):
        raise ModelUnavailable("LanguageModel API not available")


def page_channel(text=None):
    """Page context whose model returns ``text``; None means no model."""
    async def handler(message):
        if text is None:
            return error("LanguageModel not available in page", unavailable=True)
        return ok(text=text)
    return LocalChannel(handler, "page")


# =============================================================================
# Summaries
# =============================================================================


class TestSummarize:

    @pytest.mark.asyncio
    async def test_on_device_tier_wins(self, article_text):
        service = StaticService(MODEL_SUMMARY)
        orchestrator = ModelOrchestrator(on_device=service)

        result = await orchestrator.summarize(article_text, page=page_channel("unused"))

        assert result.source_tier == SourceTier.ON_DEVICE
        assert result.bullets == ["Model bullet one", "Model bullet two"]
        assert result.highlights == ["Model highlight."]
        assert result.raw_text == MODEL_SUMMARY
        assert [a.tier for a in result.attempts] == [SourceTier.ON_DEVICE]

    @pytest.mark.asyncio
    async def test_prompt_and_token_budget(self, article_text):
        service = StaticService(MODEL_SUMMARY)
        await ModelOrchestrator(on_device=service).summarize(article_text)

        prompt, tokens = service.session.prompts[0]
        assert prompt == SUMMARY_PROMPT.format(content=article_text)
        assert "===HIGHLIGHTS===" in prompt
        assert tokens == 400

    @pytest.mark.asyncio
    async def test_page_tier_after_on_device_fails(self, article_text):
        orchestrator = ModelOrchestrator(on_device=UnavailableService())

        result = await orchestrator.summarize(article_text, page=page_channel(MODEL_SUMMARY))

        assert result.source_tier == SourceTier.PAGE_CONTEXT
        assert result.bullets == ["Model bullet one", "Model bullet two"]
        assert [(a.tier, a.ok) for a in result.attempts] == [
            (SourceTier.ON_DEVICE, False),
            (SourceTier.PAGE_CONTEXT, True),
        ]

    @pytest.mark.asyncio
    async def test_extractive_after_both_models_fail(self, article_text):
        orchestrator = ModelOrchestrator(on_device=None)

        result = await orchestrator.summarize(article_text, page=page_channel(None))

        assert result.source_tier == SourceTier.EXTRACTIVE_FALLBACK
        assert 1 <= len(result.bullets) <= 4
        assert [a.tier for a in result.attempts] == [
            SourceTier.ON_DEVICE,
            SourceTier.PAGE_CONTEXT,
            SourceTier.EXTRACTIVE_FALLBACK,
        ]

    @pytest.mark.asyncio
    async def test_unreachable_page_falls_through(self, article_text):
        result = await ModelOrchestrator().summarize(article_text, page=ClosedChannel())
        assert result.source_tier == SourceTier.EXTRACTIVE_FALLBACK

    @pytest.mark.asyncio
    async def test_empty_model_reply_counts_as_failure(self, article_text):
        orchestrator = ModelOrchestrator(on_device=StaticService("   "))
        result = await orchestrator.summarize(article_text)
        assert result.source_tier == SourceTier.EXTRACTIVE_FALLBACK
        assert "empty" in result.attempts[0].error

    @pytest.mark.asyncio
    async def test_prose_reply_becomes_single_bullet(self, article_text):
        orchestrator = ModelOrchestrator(on_device=StaticService("Just a paragraph of prose."))
        result = await orchestrator.summarize(article_text)
        assert result.bullets == ["Just a paragraph of prose."]
        assert result.highlights == []

    @pytest.mark.asyncio
    async def test_blank_text_exhausts_chain(self):
        with pytest.raises(TiersExhausted) as excinfo:
            await ModelOrchestrator().summarize("   ")

        assert excinfo.value.tier == "extractive-fallback"
        assert excinfo.value.message.startswith("Model not supported on this device or context:")
        assert isinstance(excinfo.value.__cause__, EmptyInput)

    @pytest.mark.asyncio
    async def test_mock_mode_skips_every_tier(self, article_text):
        service = StaticService(MODEL_SUMMARY)
        result = await ModelOrchestrator(on_device=service).summarize(article_text, mock=True)

        assert result.source_tier == SourceTier.MOCK
        assert result.bullets == list(MOCK_BULLETS)
        assert result.highlights == list(MOCK_HIGHLIGHTS)
        assert parse_summary(result.raw_text) == (list(MOCK_BULLETS), list(MOCK_HIGHLIGHTS))
        assert service.session.prompts == []

    @pytest.mark.asyncio
    async def test_model_timeout(self, article_text):
        class SlowService(ModelService):
            async def create(self, model_name):
                await asyncio.sleep(1)

        orchestrator = ModelOrchestrator(on_device=SlowService(), settings=Settings(model_timeout=0.01))
        result = await orchestrator.summarize(article_text)

        assert result.source_tier == SourceTier.EXTRACTIVE_FALLBACK
        assert "0.01" in result.attempts[0].error

    @pytest.mark.asyncio
    async def test_tier_events_are_published(self, article_text):
        bus = EventBus()
        events = []
        bus.subscribe("tier.*", events.append)

        orchestrator = ModelOrchestrator(on_device=None, event_bus=bus)
        await orchestrator.summarize(article_text, page=page_channel(MODEL_SUMMARY))

        assert [(e.event_type, e.data["tier"]) for e in events] == [
            (EventType.TIER_FAILED.value, "on-device"),
            (EventType.TIER_SUCCEEDED.value, "page-context"),
        ]

    @pytest.mark.asyncio
    async def test_page_tier_not_tried_after_success(self, article_text):
        with patch("pagelens.orchestrator.invoke_in_page", new=AsyncMock()) as invoke:
            await ModelOrchestrator(on_device=StaticService(MODEL_SUMMARY)).summarize(article_text)
        invoke.assert_not_called()


# =============================================================================
# Answers
# =============================================================================


class TestAnswer:

    @pytest.mark.asyncio
    async def test_model_answer_is_trimmed(self):
        service = StaticService("  The answer is 42.  \n")
        result = await ModelOrchestrator(on_device=service).answer("Some page.", "What is it?")

        assert result.answer == "The answer is 42."
        assert result.source_tier == SourceTier.ON_DEVICE
        assert result.fallback_used is False
        assert "Question: What is it?" in service.session.prompts[0][0]
        assert service.session.prompts[0][1] == 300

    @pytest.mark.asyncio
    async def test_page_tier_answer(self):
        result = await ModelOrchestrator().answer("Page.", "Q?", page=page_channel("From the page."))
        assert result.answer == "From the page."
        assert result.source_tier == SourceTier.PAGE_CONTEXT

    @pytest.mark.asyncio
    async def test_falls_back_to_keyword_matcher(self):
        text = "Berlin is in Germany. Paris is the capital of France."
        result = await ModelOrchestrator().answer(text, "What is the capital of France?")

        assert result.answer == "Paris is the capital of France."
        assert result.source_tier == SourceTier.EXTRACTIVE_FALLBACK
        assert result.fallback_used is True

    @pytest.mark.asyncio
    async def test_blank_text_answers_with_sentinel(self):
        result = await ModelOrchestrator().answer("", "Anything?")
        assert result.answer == "No content to answer from."

    @pytest.mark.asyncio
    async def test_mock_answer(self):
        result = await ModelOrchestrator().answer("Page.", "Is this real?", mock=True)
        assert result.answer == 'MOCK ANSWER: simulated response to "Is this real?"'
        assert result.source_tier == SourceTier.MOCK
