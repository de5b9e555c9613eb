"""Error kinds raised across pagelens.

Tier failures are caught by the orchestrator and only surface as
:class:`TiersExhausted`. Storage failures are logged and swallowed by the
background service and the page agent.
"""

from __future__ import annotations

from typing import Optional


class PageLensError(Exception):
    """Base exception for pagelens errors."""
    pass


class ExtractionFailure(PageLensError):
    """Page text unreachable via any path."""
    pass


class ModelUnavailable(PageLensError):
    """Model capability absent in this execution context."""
    pass


class ModelInvocationError(PageLensError):
    """Model capability present but the call was rejected or failed."""
    pass


class EmptyInput(PageLensError):
    """Nothing to summarize or answer."""
    pass


class StorageError(PageLensError):
    """A persistence operation failed."""
    pass


class ChannelError(PageLensError):
    """Cross-context message could not be delivered or answered."""
    pass


class ChannelTimeout(ChannelError):
    """No response arrived within the caller's timeout."""
    pass


class TiersExhausted(PageLensError):
    """Every tier of the fallback chain failed.

    Carries the identity of the last tier tried and its failure message.
    """

    def __init__(self, tier: Optional[str], message: str):
        super().__init__(message)
        self.tier = tier
        self.message = message

    def __str__(self) -> str:
        if self.tier:
            return f"{self.message} (last tier: {self.tier})"
        return self.message
