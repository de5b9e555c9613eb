"""Model invocation for the two model tiers.

``generate_text`` runs a model service in the caller's own context.
``invoke_in_page`` asks the page's context to run its service over a
channel; the page side answers through ``serve_page_model``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from pagelens.bridge.channel import Channel
from pagelens.bridge.protocol import Action, error, ok, request
from pagelens.errors import ChannelError, ModelInvocationError, ModelUnavailable, PageLensError
from pagelens.llm.base import GenerationOptions, ModelService, extract_response_text

logger = logging.getLogger(__name__)


async def generate_text(
    service: Optional[ModelService],
    prompt: str,
    options: GenerationOptions,
) -> str:
    """Create a session, generate, and flatten the response to text.

    Raises:
        ModelUnavailable: no service in this context
        ModelInvocationError: the service rejected or failed the call
    """
    if service is None:
        raise ModelUnavailable("model capability not available in this context")
    try:
        session = await service.create(options.model)
        response = await session.generate(
            prompt=prompt,
            max_output_tokens=options.max_output_tokens,
            temperature=options.temperature,
        )
    except PageLensError:
        raise
    except Exception as e:
        raise ModelInvocationError(str(e) or type(e).__name__) from e
    return extract_response_text(response)


async def invoke_in_page(
    channel: Optional[Channel],
    prompt: str,
    options: GenerationOptions,
    timeout: Optional[float] = None,
) -> str:
    """Run the page context's model via message passing."""
    if channel is None:
        raise ModelUnavailable("no page context to inject into")
    message = request(Action.INVOKE_MODEL, prompt=prompt, options=options.to_dict())
    try:
        response = await channel.request(message, timeout=timeout)
    except ChannelError as e:
        raise ModelInvocationError(f"page context unreachable: {e}") from e

    if response.get("status") != "ok":
        reason = str(response.get("message") or "no result from page script")
        if response.get("unavailable"):
            raise ModelUnavailable(reason)
        raise ModelInvocationError(reason)
    return str(response.get("text") or "")


async def serve_page_model(service: Optional[ModelService], message: Dict[str, Any]) -> Dict[str, Any]:
    """Page-side handler for ``invoke_model`` requests."""
    options = GenerationOptions.from_dict(message.get("options") or {})
    prompt = str(message.get("prompt") or "")
    try:
        text = await generate_text(service, prompt, options)
    except ModelUnavailable as e:
        return error(str(e), unavailable=True)
    except PageLensError as e:
        return error(str(e))
    return ok(text=text)
