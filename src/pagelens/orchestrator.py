"""Tiered fallback chain for summaries and answers.

Tiers run strictly one after another:

1. on-device: the model service of the privileged context
2. page-context: the page's own model, reached over a channel
3. extractive-fallback: local frequency scoring / keyword overlap

Each tier's failure is caught and logged and the next tier is tried.
The extractive tier only comes up empty on blank input; then the chain is
exhausted and :class:`TiersExhausted` is raised with the last model error.
Mock mode skips every tier and returns fixed content.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Tuple

from pagelens.analysis.composer import extractive_summary, format_summary, parse_summary
from pagelens.analysis.qa import answer_question
from pagelens.bridge.channel import Channel
from pagelens.config import Settings
from pagelens.errors import EmptyInput, ModelInvocationError, TiersExhausted
from pagelens.events import EventBus, EventType
from pagelens.llm.base import GenerationOptions, ModelService
from pagelens.llm.invoke import generate_text, invoke_in_page
from pagelens.types import QAResult, SourceTier, SummaryResult, TierAttempt

logger = logging.getLogger(__name__)


SUMMARY_PROMPT = (
    "Summarize the following webpage content into 4 concise bullet points and "
    "provide 4 highlight-worthy sentences (exact sentence text). Separate bullets "
    'with "\\n- " and highlight sentences after a delimiter "===HIGHLIGHTS===\\n" '
    "followed by each sentence on its own line. Content:\n\n{content}"
)

ANSWER_PROMPT = (
    "Answer the user's question based on the following webpage content. Provide a "
    "concise answer. If you cannot find a direct answer, give a short summary "
    "relevant to the question.\n\nQuestion: {question}\n\nContent:\n{content}"
)

MOCK_BULLETS = (
    "This page explains the main idea in 3-5 short points.",
    "Important architecture or workflow details are discussed.",
    "Major benefits and trade-offs are highlighted.",
    "Next steps and contact information are provided.",
)

MOCK_HIGHLIGHTS = (
    "This is a highlight sentence one.",
    "This is a highlight sentence two.",
    "This is a highlight sentence three.",
)

MOCK_ANSWER_TEMPLATE = 'MOCK ANSWER: simulated response to "{question}"'


def mock_summary() -> SummaryResult:
    bullets, highlights = list(MOCK_BULLETS), list(MOCK_HIGHLIGHTS)
    return SummaryResult(
        bullets=bullets,
        highlights=highlights,
        raw_text=format_summary(bullets, highlights),
        source_tier=SourceTier.MOCK,
    )


def mock_answer(question: str) -> QAResult:
    return QAResult(
        answer=MOCK_ANSWER_TEMPLATE.format(question=question),
        source_tier=SourceTier.MOCK,
        fallback_used=False,
    )


TierCall = Callable[[], Awaitable[str]]


class ModelOrchestrator:
    """Runs the fallback chain for one request at a time.

    Example:
        orchestrator = ModelOrchestrator(on_device=RestModelService(url))
        summary = await orchestrator.summarize(text, page=channel)
        answer = await orchestrator.answer(text, "Who wrote this?", page=channel)
    """

    def __init__(
        self,
        on_device: Optional[ModelService] = None,
        settings: Optional[Settings] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.on_device = on_device
        self.settings = settings or Settings()
        self.event_bus = event_bus

    # =========================================================================
    # Tier plumbing
    # =========================================================================

    def _options(self, max_tokens: int) -> GenerationOptions:
        return GenerationOptions(
            model=self.settings.model_name,
            max_output_tokens=max_tokens,
            temperature=self.settings.temperature,
        )

    def _publish(self, event_type: EventType, data: dict) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event_type.value, data, source="orchestrator")

    async def _attempt(self, call: TierCall) -> str:
        timeout = self.settings.model_timeout
        if timeout is None:
            text = await call()
        else:
            try:
                text = await asyncio.wait_for(call(), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise ModelInvocationError(f"no response within {timeout}s") from e
        if not (text or "").strip():
            raise ModelInvocationError("model returned an empty response")
        return text

    async def _run_model_tiers(
        self,
        task: str,
        prompt: str,
        page: Optional[Channel],
        max_tokens: int,
    ) -> Tuple[Optional[SourceTier], str, List[TierAttempt]]:
        """Try the two model tiers; returns (tier, text, attempts), tier None on failure."""
        options = self._options(max_tokens)
        tiers: List[Tuple[SourceTier, TierCall]] = [
            (SourceTier.ON_DEVICE, lambda: generate_text(self.on_device, prompt, options)),
            (SourceTier.PAGE_CONTEXT, lambda: invoke_in_page(page, prompt, options)),
        ]

        attempts: List[TierAttempt] = []
        for tier, call in tiers:
            try:
                text = await self._attempt(call)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.warning("[Orchestrator] %s tier %s failed: %s", task, tier.value, message)
                attempts.append(TierAttempt(tier=tier, ok=False, error=message))
                self._publish(EventType.TIER_FAILED, {"task": task, "tier": tier.value, "error": message})
                continue
            logger.info("[Orchestrator] %s served by %s", task, tier.value)
            attempts.append(TierAttempt(tier=tier, ok=True))
            self._publish(EventType.TIER_SUCCEEDED, {"task": task, "tier": tier.value})
            return tier, text, attempts
        return None, "", attempts

    # =========================================================================
    # Tasks
    # =========================================================================

    def _extractive_summary(self, text: str) -> SummaryResult:
        result = extractive_summary(
            text,
            max_bullets=self.settings.max_bullets,
            max_highlights=self.settings.max_highlights,
        )
        if result.is_empty:
            raise EmptyInput("no sentences in page text")
        return result

    async def summarize(
        self,
        text: str,
        *,
        page: Optional[Channel] = None,
        mock: bool = False,
    ) -> SummaryResult:
        """Summarize page text through the fallback chain."""
        if mock:
            logger.info("[Orchestrator] summarize: mock mode")
            return mock_summary()

        prompt = SUMMARY_PROMPT.format(content=text)
        tier, raw, attempts = await self._run_model_tiers(
            "summarize", prompt, page, self.settings.summary_tokens
        )
        if tier is not None:
            bullets, highlights = parse_summary(raw)
            return SummaryResult(
                bullets=bullets,
                highlights=highlights,
                raw_text=raw,
                source_tier=tier,
                attempts=attempts,
            )

        try:
            result = self._extractive_summary(text)
        except EmptyInput as e:
            last_error = attempts[-1].error if attempts else str(e)
            raise TiersExhausted(
                SourceTier.EXTRACTIVE_FALLBACK.value,
                f"Model not supported on this device or context: {last_error}",
            ) from e

        attempts.append(TierAttempt(tier=SourceTier.EXTRACTIVE_FALLBACK, ok=True))
        result.attempts = attempts
        logger.info("[Orchestrator] summarize served by extractive fallback")
        return result

    async def answer(
        self,
        text: str,
        question: str,
        *,
        page: Optional[Channel] = None,
        mock: bool = False,
    ) -> QAResult:
        """Answer a question about page text through the fallback chain."""
        question = question or ""
        if mock:
            logger.info("[Orchestrator] answer: mock mode")
            return mock_answer(question)

        prompt = ANSWER_PROMPT.format(question=question, content=text)
        tier, reply, attempts = await self._run_model_tiers(
            "answer", prompt, page, self.settings.answer_tokens
        )
        if tier is not None:
            return QAResult(answer=reply.strip(), source_tier=tier, fallback_used=False, attempts=attempts)

        result = answer_question(text, question)
        attempts.append(TierAttempt(tier=SourceTier.EXTRACTIVE_FALLBACK, ok=True))
        result.attempts = attempts
        logger.info("[Orchestrator] answer served by extractive fallback")
        return result
