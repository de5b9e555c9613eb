"""Result and record types shared by the orchestrator, page agent and store."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


MAX_BULLETS = 4
MAX_HIGHLIGHTS = 5


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


class SourceTier(str, Enum):
    """Which producer in the fallback chain created a result."""

    ON_DEVICE = "on-device"
    PAGE_CONTEXT = "page-context"
    EXTRACTIVE_FALLBACK = "extractive-fallback"
    MOCK = "mock"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "SourceTier":
        """Parse a stored tier name; unknown values map to the extractive tier."""
        try:
            return cls((value or "").strip())
        except ValueError:
            return cls.EXTRACTIVE_FALLBACK


@dataclass(frozen=True)
class TierAttempt:
    """Outcome of trying one tier."""

    tier: SourceTier
    ok: bool
    error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"tier": self.tier.value, "ok": self.ok}
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class SummaryResult:
    """Bullets plus highlight sentences for one page."""

    bullets: List[str]
    highlights: List[str]
    raw_text: str
    source_tier: SourceTier
    attempts: List[TierAttempt] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.bullets = list(self.bullets)[:MAX_BULLETS]
        self.highlights = list(self.highlights)[:MAX_HIGHLIGHTS]

    @property
    def is_empty(self) -> bool:
        return not self.bullets and not self.highlights

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bullets": list(self.bullets),
            "highlights": list(self.highlights),
            "raw": self.raw_text,
            "source": self.source_tier.value,
            "attempts": [a.to_dict() for a in self.attempts],
        }


@dataclass
class QAResult:
    """Answer to a question about a page."""

    answer: str
    source_tier: SourceTier
    fallback_used: bool = False
    attempts: List[TierAttempt] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "answer": self.answer,
            "source": self.source_tier.value,
            "fallbackUsed": self.fallback_used,
            "attempts": [a.to_dict() for a in self.attempts],
        }


@dataclass(frozen=True)
class HistoryEntry:
    """One question/answer exchange, appended to a page's history."""

    question: str
    answer: str
    timestamp: int = field(default_factory=now_ms)
    source_tier: SourceTier = SourceTier.EXTRACTIVE_FALLBACK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "at": self.timestamp,
            "source": self.source_tier.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        return cls(
            question=str(data.get("question", "")),
            answer=str(data.get("answer", "")),
            timestamp=int(data.get("at") or 0),
            source_tier=SourceTier.from_str(data.get("source")),
        )


@dataclass(frozen=True)
class StoredPageData:
    """Persisted projection of the latest summary for a URL."""

    summary: List[str]
    highlights: List[str]
    raw_text: str
    updated_at: int = field(default_factory=now_ms)

    @classmethod
    def from_result(cls, result: SummaryResult) -> "StoredPageData":
        return cls(
            summary=list(result.bullets),
            highlights=list(result.highlights),
            raw_text=result.raw_text,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": list(self.summary),
            "highlights": list(self.highlights),
            "raw": self.raw_text,
            "updated": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredPageData":
        return cls(
            summary=[str(s) for s in data.get("summary") or []],
            highlights=[str(s) for s in data.get("highlights") or []],
            raw_text=str(data.get("raw", "")),
            updated_at=int(data.get("updated") or 0),
        )
