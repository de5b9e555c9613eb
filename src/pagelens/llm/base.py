"""Model service interface shared by both execution contexts.

A service hands out sessions for a named model; a session generates a
response whose text sits inside a candidate/content structure that
:func:`extract_response_text` flattens.

Design goals:
- Same contract for the privileged context and the page context
- Easy to test (fake services)
- Failures surface as ``ModelUnavailable`` / ``ModelInvocationError``
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Protocol

DEFAULT_MODEL = "gemini-nano"


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call generation parameters."""
    model: str = DEFAULT_MODEL
    max_output_tokens: int = 400
    temperature: float = 0.2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "maxOutputTokens": self.max_output_tokens,
            "temperature": self.temperature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationOptions":
        data = data or {}
        return cls(
            model=str(data.get("model") or DEFAULT_MODEL),
            max_output_tokens=int(data.get("maxOutputTokens") or 400),
            temperature=float(data.get("temperature", 0.2)),
        )


class ModelSession(Protocol):
    """A created model, ready to generate."""

    async def generate(
        self,
        *,
        prompt: str,
        max_output_tokens: int,
        temperature: float = 0.2,
    ) -> Any:
        ...


class ModelService(ABC):
    """Entry point to a model capability inside one execution context."""

    @abstractmethod
    async def create(self, model_name: str) -> ModelSession:
        """Create a session for ``model_name``.

        Raises:
            ModelUnavailable: the capability is absent here
        """


def _join_parts(parts: Iterable[Any]) -> str:
    out = []
    for part in parts:
        if isinstance(part, dict):
            out.append(str(part.get("text") or ""))
        elif isinstance(part, str):
            out.append(part)
    return "".join(out)


def _content_text(content: Any) -> str | None:
    if isinstance(content, list):
        return _join_parts(content)
    if isinstance(content, dict) and isinstance(content.get("parts"), list):
        return _join_parts(content["parts"])
    if isinstance(content, str):
        return content
    return None


def extract_response_text(response: Any) -> str:
    """Flatten a generation response into plain text.

    Understands ``candidates[0].content`` (a list of ``{"text"}`` parts or a
    ``{"parts": [...]}`` dict) and ``output[0].content``. Strings pass
    through. Anything else is returned as JSON.
    """
    if response is None:
        return ""
    if isinstance(response, str):
        return response
    if isinstance(response, dict):
        for key in ("candidates", "output"):
            items = response.get(key)
            if isinstance(items, list) and items and isinstance(items[0], dict):
                text = _content_text(items[0].get("content"))
                if text is not None:
                    return text
        if isinstance(response.get("text"), str):
            return response["text"]
    return json.dumps(response, ensure_ascii=False, default=str)
