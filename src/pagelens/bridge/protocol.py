"""Action-tagged request/response messages between execution contexts.

Requests are plain dicts ``{"action": ..., **fields}``; responses always
carry ``status`` (``"ok"`` or ``"error"``) and, on error, ``message``.
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_ERROR = "error"


class Action(str, Enum):
    """Every action understood by the background service or the page."""

    # page (content script)
    EXTRACT_PAGE = "extract_page"
    HIGHLIGHT_SENTENCES = "highlight_sentences"
    REMOVE_HIGHLIGHTS = "remove_highlights"
    STORE_SUMMARY = "store_summary"
    EXTRACT_AND_SUMMARIZE = "extract_and_summarize"
    ASK_QUESTION = "ask_question"
    # page (main world)
    READ_PAGE_TEXT = "read_page_text"
    INVOKE_MODEL = "invoke_model"
    # background
    SUMMARIZE = "summarize"
    ASK = "ask"
    CLEAR_DATA = "clear_data"


Message = Dict[str, Any]
Handler = Callable[[Message], Union[Message, Awaitable[Message]]]


def ok(**fields: Any) -> Message:
    """Build a success response."""
    return {"status": STATUS_OK, **fields}


def error(message: str, **fields: Any) -> Message:
    """Build an error response."""
    return {"status": STATUS_ERROR, "message": str(message), **fields}


def is_ok(response: Optional[Message]) -> bool:
    return isinstance(response, dict) and response.get("status") == STATUS_OK


def request(action: Action, **fields: Any) -> Message:
    """Build a request message."""
    return {"action": action.value, **fields}


class Dispatcher:
    """Routes request messages to registered handlers by action.

    Usage:
        dispatcher = Dispatcher("content")

        @dispatcher.handler(Action.EXTRACT_PAGE)
        def handle_extract(message):
            return ok(text="...")

        response = await dispatcher.dispatch({"action": "extract_page"})
    """

    def __init__(self, name: str = "dispatcher"):
        self.name = name
        self.handlers: Dict[str, Handler] = {}

    def handler(self, action: Action):
        """Decorator to register a handler for ``action``."""
        def decorator(func: Handler) -> Handler:
            self.register(action, func)
            return func
        return decorator

    def register(self, action: Action, func: Handler) -> None:
        self.handlers[Action(action).value] = func

    def handles(self, action: str) -> bool:
        return action in self.handlers

    async def dispatch(self, message: Message) -> Message:
        """Run the handler for ``message``; failures become error responses."""
        if not isinstance(message, dict):
            return error("Malformed message")
        action = str(message.get("action") or "")
        func = self.handlers.get(action)
        if func is None:
            return error(f"Unknown action: {action or '(none)'}")

        try:
            result = func(message)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error("[%s] %s failed: %s", self.name, action, e)
            return error(str(e) or type(e).__name__)

        if result is None:
            return ok()
        if not isinstance(result, dict):
            return error(f"{action} returned {type(result).__name__}, expected dict")
        if "status" not in result:
            return ok(**result)
        return result
