"""Page-side agents.

:class:`ContentAgent` plays the extension's content script: it reads the
page, applies and removes highlights, runs the local summarizer and QA
matcher, and writes results to the store. :class:`PageWorld` plays the
page's own execution context, which can read the document directly and
may host a model capability of its own.

Both answer action-tagged messages through a :class:`Dispatcher`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pagelens.analysis.composer import extractive_summary
from pagelens.analysis.qa import answer_question
from pagelens.bridge.protocol import Action, Dispatcher, ok
from pagelens.config import Settings
from pagelens.dom.highlight import HIGHLIGHT_CSS, highlight_sentences, remove_highlights
from pagelens.dom.tree import Document, Element, TextNode
from pagelens.errors import EmptyInput, StorageError
from pagelens.llm.base import ModelService
from pagelens.llm.invoke import serve_page_model
from pagelens.orchestrator import mock_answer, mock_summary
from pagelens.storage import PageStore
from pagelens.types import MAX_HIGHLIGHTS, HistoryEntry, SourceTier, StoredPageData

logger = logging.getLogger(__name__)

MOCK_BANNER_ID = "pagelens-mock-banner"
MOCK_BANNER_TEXT = "Mock mode - simulated AI responses"
MOCK_BANNER_STYLE = (
    "position: fixed; right: 16px; bottom: 16px; background: rgba(37,99,235,0.95); "
    "color: #fff; padding: 8px 12px; border-radius: 8px; z-index: 2147483647; font-size: 13px"
)
STYLE_ID = "pagelens-style"


class ContentAgent:
    """Content-script counterpart bound to one document and URL."""

    def __init__(
        self,
        document: Document,
        url: str,
        store: PageStore,
        settings: Optional[Settings] = None,
    ):
        self.document = document
        self.url = url
        self.store = store
        self.settings = settings or Settings()
        self.dispatcher = Dispatcher("Content")
        self._register_handlers()
        self._install_style()
        if store.backend.event_bus is not None:
            store.watch_mock_mode(self.set_mock_banner)

    async def dispatch(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await self.dispatcher.dispatch(message)

    def page_text(self) -> str:
        return self.document.inner_text

    # =========================================================================
    # Mock banner
    # =========================================================================

    def _install_style(self) -> None:
        if self.document.get_element_by_id(STYLE_ID) is None:
            style = Element("style", {"id": STYLE_ID}, [TextNode(HIGHLIGHT_CSS)])
            self.document.head.append_child(style)

    def set_mock_banner(self, enabled: bool) -> None:
        """Show or remove the mock-mode banner."""
        existing = self.document.get_element_by_id(MOCK_BANNER_ID)
        if enabled and existing is None:
            banner = Element(
                "div",
                {"id": MOCK_BANNER_ID, "style": MOCK_BANNER_STYLE},
                [TextNode(MOCK_BANNER_TEXT)],
            )
            self.document.body.append_child(banner)
            logger.debug("[Content] Mock banner shown")
        elif not enabled and existing is not None:
            existing.remove()

    async def sync_mock_banner(self) -> None:
        """Match the banner to the stored flag (used when the page loads)."""
        self.set_mock_banner(await self.store.get_mock_mode())

    # =========================================================================
    # Handlers
    # =========================================================================

    def _register_handlers(self) -> None:
        d = self.dispatcher
        d.register(Action.EXTRACT_PAGE, self._handle_extract)
        d.register(Action.HIGHLIGHT_SENTENCES, self._handle_highlight)
        d.register(Action.REMOVE_HIGHLIGHTS, self._handle_remove)
        d.register(Action.STORE_SUMMARY, self._handle_store_summary)
        d.register(Action.EXTRACT_AND_SUMMARIZE, self._handle_extract_and_summarize)
        d.register(Action.ASK_QUESTION, self._handle_ask_question)

    def _handle_extract(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return ok(text=self.page_text())

    def _handle_highlight(self, message: Dict[str, Any]) -> Dict[str, Any]:
        sentences = message.get("sentences")
        if not isinstance(sentences, list):
            sentences = []
        sentences = [str(s) for s in sentences[:MAX_HIGHLIGHTS]]
        return ok(count=highlight_sentences(self.document, sentences))

    def _handle_remove(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return ok(count=remove_highlights(self.document))

    async def _handle_store_summary(self, message: Dict[str, Any]) -> Dict[str, Any]:
        await self.store.store_page_data(self.url, message.get("data") or {})
        return ok()

    async def _handle_extract_and_summarize(self, message: Dict[str, Any]) -> Dict[str, Any]:
        if message.get("mock"):
            result = mock_summary()
        else:
            text = self.page_text()[: self.settings.max_text_chars]
            result = extractive_summary(
                text,
                max_bullets=self.settings.max_bullets,
                max_highlights=self.settings.max_highlights,
            )
            if result.is_empty:
                raise EmptyInput("Nothing to summarize on this page")

        applied = highlight_sentences(self.document, result.highlights[:MAX_HIGHLIGHTS])
        logger.debug(
            "[Content] Local summary for %s: %d bullets, %d highlighted",
            self.url, len(result.bullets), applied,
        )
        data = StoredPageData.from_result(result)
        try:
            await self.store.store_page_data(self.url, data.to_dict())
        except StorageError as e:
            logger.warning("[Content] Could not store summary for %s: %s", self.url, e)
        return ok(
            data=data.to_dict(),
            fallbackUsed=result.source_tier == SourceTier.EXTRACTIVE_FALLBACK,
        )

    async def _handle_ask_question(self, message: Dict[str, Any]) -> Dict[str, Any]:
        question = str(message.get("question") or "")
        if message.get("mock"):
            result = mock_answer(question)
        else:
            result = answer_question(self.page_text()[: self.settings.max_text_chars], question)
        try:
            await self.store.append_history(
                self.url,
                HistoryEntry(question=question, answer=result.answer, source_tier=result.source_tier),
            )
        except StorageError as e:
            logger.warning("[Content] Could not record history for %s: %s", self.url, e)
        return ok(answer=result.answer, fallbackUsed=result.fallback_used)

    async def stored_summary(self) -> Optional[StoredPageData]:
        return await self.store.load_summary(self.url)


class PageWorld:
    """The page's own context: direct document reads and the page model."""

    def __init__(self, document: Document, model_service: Optional[ModelService] = None):
        self.document = document
        self.model_service = model_service
        self.dispatcher = Dispatcher("Page")
        self.dispatcher.register(Action.READ_PAGE_TEXT, self._handle_read)
        self.dispatcher.register(Action.INVOKE_MODEL, self._handle_invoke)

    async def dispatch(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await self.dispatcher.dispatch(message)

    def _handle_read(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return ok(text=self.document.inner_text)

    async def _handle_invoke(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await serve_page_model(self.model_service, message)
