"""Model service contract, REST-backed implementation and tier invocation."""

from pagelens.llm.base import (
    DEFAULT_MODEL,
    GenerationOptions,
    ModelService,
    ModelSession,
    extract_response_text,
)
from pagelens.llm.invoke import generate_text, invoke_in_page, serve_page_model
from pagelens.llm.rest import RestModelService

__all__ = [
    "DEFAULT_MODEL",
    "GenerationOptions",
    "ModelService",
    "ModelSession",
    "RestModelService",
    "extract_response_text",
    "generate_text",
    "invoke_in_page",
    "serve_page_model",
]
