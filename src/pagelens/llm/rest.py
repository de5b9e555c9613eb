"""Model service backed by a local ``generateContent`` HTTP endpoint.

The endpoint speaks the Gemini REST shape::

    POST {base_url}/v1beta/models/{model}:generateContent
    {"contents": [{"role": "user", "parts": [{"text": ...}]}],
     "generationConfig": {"temperature": ..., "maxOutputTokens": ...}}

and answers ``{"candidates": [{"content": {"parts": [{"text": ...}]}}]}``.
Blocking HTTP runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict

import requests

from pagelens.errors import ModelInvocationError, ModelUnavailable
from pagelens.llm.base import ModelService, ModelSession

logger = logging.getLogger(__name__)


class RestModelSession:
    """Session bound to one model on one endpoint."""

    def __init__(self, service: "RestModelService", model_name: str):
        self._service = service
        self.model_name = model_name

    async def generate(
        self,
        *,
        prompt: str,
        max_output_tokens: int,
        temperature: float = 0.2,
    ) -> Dict[str, Any]:
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": float(temperature),
                "maxOutputTokens": int(max_output_tokens),
            },
        }
        return await asyncio.to_thread(self._service.post_generate, self.model_name, payload)


class RestModelService(ModelService):
    """On-device model runtime reached over loopback HTTP."""

    def __init__(self, base_url: str, *, timeout_seconds: float = 120.0):
        self._base_url = (base_url or "").rstrip("/")
        self._timeout_seconds = float(timeout_seconds)

    @property
    def base_url(self) -> str:
        return self._base_url

    def is_available(self, *, timeout_seconds: float = 1.5) -> bool:
        if not self._base_url:
            return False
        try:
            r = requests.get(f"{self._base_url}/v1beta/models", timeout=float(timeout_seconds))
            return r.status_code == 200
        except requests.RequestException:
            return False

    async def create(self, model_name: str) -> ModelSession:
        if not self._base_url:
            raise ModelUnavailable("no model endpoint configured")
        if not (model_name or "").strip():
            raise ModelInvocationError("model name not set")
        return RestModelSession(self, model_name.strip())

    def post_generate(self, model_name: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url}/v1beta/models/{model_name}:generateContent"
        t0 = time.perf_counter()
        try:
            r = requests.post(
                url,
                headers={"Content-Type": "application/json"},
                data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
                timeout=self._timeout_seconds,
            )
        except requests.Timeout as e:
            raise ModelInvocationError(f"model request timed out: {e}") from e
        except requests.ConnectionError as e:
            raise ModelUnavailable(f"model endpoint unreachable: {e}") from e
        except requests.RequestException as e:
            raise ModelInvocationError(f"model request failed: {e}") from e

        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        logger.debug("[Model] %s status=%s latency_ms=%s", model_name, r.status_code, elapsed_ms)

        if r.status_code == 404:
            raise ModelUnavailable(f"model {model_name!r} not found status=404")
        if r.status_code >= 400:
            raise ModelInvocationError(f"model call failed status={r.status_code}")
        try:
            return r.json() or {}
        except ValueError as e:
            raise ModelInvocationError(f"model returned invalid JSON: {e}") from e
