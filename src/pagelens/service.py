"""Background service: the privileged context that coordinates a request.

A summarize request flows extraction -> orchestrator -> highlight -> store.
An ask request flows extraction -> orchestrator -> history append.
Highlight and storage failures are logged and never fail the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pagelens.bridge.channel import Channel
from pagelens.bridge.protocol import Action, Dispatcher, error, is_ok, ok, request
from pagelens.config import Settings
from pagelens.errors import ChannelError, ExtractionFailure, StorageError, TiersExhausted
from pagelens.events import EventBus, EventType
from pagelens.orchestrator import ModelOrchestrator
from pagelens.storage import PageStore
from pagelens.types import MAX_HIGHLIGHTS, HistoryEntry, QAResult, SummaryResult

logger = logging.getLogger(__name__)


@dataclass
class Tab:
    """A browser tab as seen from the background service.

    ``content`` reaches the content script; ``page`` reaches the page's own
    context and may be absent (e.g. the page refused injection).
    """
    tab_id: int
    url: str
    content: Channel
    page: Optional[Channel] = None


class BackgroundService:
    """Handles popup actions against the active tab."""

    def __init__(
        self,
        orchestrator: ModelOrchestrator,
        store: PageStore,
        settings: Optional[Settings] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self.orchestrator = orchestrator
        self.store = store
        self.settings = settings or Settings()
        self.event_bus = event_bus
        self.tabs: Dict[int, Tab] = {}
        self.active_tab_id: Optional[int] = None

        self.dispatcher = Dispatcher("Background")
        self.dispatcher.register(Action.SUMMARIZE, self._handle_summarize)
        self.dispatcher.register(Action.ASK, self._handle_ask)
        self.dispatcher.register(Action.CLEAR_DATA, self._handle_clear)

    async def dispatch(self, message: Dict[str, Any]) -> Dict[str, Any]:
        return await self.dispatcher.dispatch(message)

    # =========================================================================
    # Tabs
    # =========================================================================

    def register_tab(self, tab: Tab, activate: bool = True) -> None:
        self.tabs[tab.tab_id] = tab
        if activate or self.active_tab_id is None:
            self.active_tab_id = tab.tab_id
        logger.debug("[Service] Registered tab %s (%s)", tab.tab_id, tab.url)

    def unregister_tab(self, tab_id: int) -> None:
        self.tabs.pop(tab_id, None)
        if self.active_tab_id == tab_id:
            self.active_tab_id = next(iter(self.tabs), None)

    def get_tab(self, tab_id: Optional[int] = None) -> Tab:
        """Look up ``tab_id``, or the active tab when None."""
        if tab_id is None:
            tab_id = self.active_tab_id
        tab = self.tabs.get(tab_id) if tab_id is not None else None
        if tab is None:
            raise ExtractionFailure("No active tab")
        return tab

    # =========================================================================
    # Extraction
    # =========================================================================

    async def extract_page_text(self, tab: Tab) -> str:
        """Ask the content script for the page text, then read it directly.

        Raises:
            ExtractionFailure: both paths failed
        """
        timeout = self.settings.extract_timeout
        reason = "no response from content script"
        try:
            response = await tab.content.request(request(Action.EXTRACT_PAGE), timeout=timeout)
            if is_ok(response):
                return str(response.get("text") or "")
            reason = str(response.get("message") or reason)
        except ChannelError as e:
            reason = str(e)
        logger.warning("[Service] Content script extraction failed (%s), reading page directly", reason)

        if tab.page is None:
            raise ExtractionFailure(reason)
        try:
            response = await tab.page.request(request(Action.READ_PAGE_TEXT), timeout=timeout)
        except ChannelError as e:
            raise ExtractionFailure(str(e)) from e
        if not is_ok(response):
            raise ExtractionFailure(str(response.get("message") or "page read failed"))
        return str(response.get("text") or "")

    async def _page_text(self, tab: Tab) -> str:
        text = await self.extract_page_text(tab)
        if len(text) > self.settings.max_text_chars:
            logger.debug("[Service] Truncating %d chars of page text", len(text))
            text = text[: self.settings.max_text_chars]
        return text

    # =========================================================================
    # Operations
    # =========================================================================

    async def summarize(self, tab_id: Optional[int] = None, mock: bool = False) -> SummaryResult:
        tab = self.get_tab(tab_id)
        text = await self._page_text(tab)
        result = await self.orchestrator.summarize(text, page=tab.page, mock=mock)

        await self._highlight(tab, result)
        try:
            await self.store.save_summary(tab.url, result)
        except StorageError as e:
            logger.warning("[Service] Could not persist summary for %s: %s", tab.url, e)

        self._publish(EventType.SUMMARY_COMPLETED, {
            "url": tab.url,
            "source": result.source_tier.value,
            "bullets": len(result.bullets),
        })
        return result

    async def ask(self, question: str, tab_id: Optional[int] = None, mock: bool = False) -> QAResult:
        tab = self.get_tab(tab_id)
        text = await self._page_text(tab)
        result = await self.orchestrator.answer(text, question, page=tab.page, mock=mock)

        entry = HistoryEntry(question=question, answer=result.answer, source_tier=result.source_tier)
        try:
            await self.store.append_history(tab.url, entry)
        except StorageError as e:
            logger.warning("[Service] Could not record history for %s: %s", tab.url, e)

        self._publish(EventType.ANSWER_COMPLETED, {
            "url": tab.url,
            "source": result.source_tier.value,
        })
        return result

    async def clear_data(self) -> None:
        await self.store.clear()
        tab = self.tabs.get(self.active_tab_id) if self.active_tab_id is not None else None
        if tab is not None:
            try:
                await tab.content.request(
                    request(Action.REMOVE_HIGHLIGHTS), timeout=self.settings.extract_timeout
                )
            except ChannelError as e:
                logger.debug("[Service] Could not clear highlights: %s", e)

    async def _highlight(self, tab: Tab, result: SummaryResult) -> None:
        sentences = result.highlights[:MAX_HIGHLIGHTS]
        if not sentences:
            return
        try:
            response = await tab.content.request(
                request(Action.HIGHLIGHT_SENTENCES, sentences=sentences),
                timeout=self.settings.extract_timeout,
            )
        except ChannelError as e:
            logger.warning("[Service] Highlighting failed: %s", e)
            return
        logger.debug("[Service] Highlighted %s sentence(s)", response.get("count"))

    def _publish(self, event_type: EventType, data: dict) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event_type.value, data, source="background")

    # =========================================================================
    # Message handlers
    # =========================================================================

    @staticmethod
    def _tab_id(message: Dict[str, Any]) -> Optional[int]:
        value = message.get("tabId")
        return int(value) if value is not None else None

    async def _handle_summarize(self, message: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = await self.summarize(self._tab_id(message), mock=bool(message.get("mock")))
        except ExtractionFailure as e:
            return error(f"Failed to extract page text: {e}")
        except TiersExhausted as e:
            return error(e.message, source=e.tier)
        return ok(
            text=result.raw_text,
            bullets=result.bullets,
            highlights=result.highlights,
            source=result.source_tier.value,
        )

    async def _handle_ask(self, message: Dict[str, Any]) -> Dict[str, Any]:
        question = str(message.get("question") or "")
        try:
            result = await self.ask(question, self._tab_id(message), mock=bool(message.get("mock")))
        except ExtractionFailure as e:
            return error(f"Failed to extract page text: {e}")
        return ok(answer=result.answer, source=result.source_tier.value)

    async def _handle_clear(self, message: Dict[str, Any]) -> Dict[str, Any]:
        await self.clear_data()
        return ok()
