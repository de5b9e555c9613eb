"""Asynchronous request/response channels between execution contexts.

Contexts share no objects: every message crossing a channel must survive a
JSON round-trip. Timeouts are explicit per request; an abandoned request
does not stop work already running on the other side.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

from pagelens.errors import ChannelError, ChannelTimeout

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


def serializable_copy(message: Message) -> Message:
    """Deep copy through JSON, rejecting anything a real transport couldn't carry."""
    try:
        return json.loads(json.dumps(message))
    except (TypeError, ValueError) as e:
        raise ChannelError(f"message is not serializable: {e}") from e


class Channel(ABC):
    """One side's handle for sending requests to another context."""

    @abstractmethod
    async def _send(self, message: Message) -> Message:
        """Deliver ``message`` and wait for its response."""

    async def request(self, message: Message, timeout: Optional[float] = None) -> Message:
        """Send a request; ``timeout`` of None waits indefinitely.

        Raises:
            ChannelTimeout: no response within ``timeout`` seconds
            ChannelError: delivery failed or the reply was malformed
        """
        payload = serializable_copy(message)
        try:
            if timeout is None:
                response = await self._send(payload)
            else:
                response = await asyncio.wait_for(self._send(payload), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ChannelTimeout(
                f"timeout after {timeout}s waiting for {payload.get('action')!r}"
            ) from e
        except ChannelError:
            raise
        except Exception as e:
            raise ChannelError(f"{payload.get('action')!r} failed: {e}") from e

        if not isinstance(response, dict):
            raise ChannelError(f"malformed response to {payload.get('action')!r}")
        return response


class LocalChannel(Channel):
    """Channel to a handler living in the same process.

    Both request and response are copied through JSON so no state leaks
    across the boundary.
    """

    def __init__(self, handler: Callable[[Message], Awaitable[Message]], name: str = "local"):
        self._handler = handler
        self.name = name

    async def _send(self, message: Message) -> Message:
        response = await self._handler(message)
        if not isinstance(response, dict):
            raise ChannelError(f"{self.name}: handler returned no response")
        return serializable_copy(response)


class ClosedChannel(Channel):
    """Channel whose receiving end does not exist."""

    def __init__(self, reason: str = "Could not establish connection. Receiving end does not exist."):
        self.reason = reason

    async def _send(self, message: Message) -> Message:
        raise ChannelError(self.reason)
