# src/llm/request_builder.py - v1
"""Assemble chat requests from run parameters.

Stateless. Inputs are never mutated: the schema is deep-copied into the
request and images are stripped of any data URI prefix.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

from visiontester.core.models import OcrStepParameters, RunParameters
from visiontester.llm.models import ChatMessage, ChatOptions, ChatRequest
from visiontester.utils.base64 import strip_data_uri_prefix

OCR_TEXT_PLACEHOLDER = "{ocr_text}"


@dataclass(frozen=True)
class TurnPrompts:
    """Role-specific prompt pair for one turn."""

    system: str
    user: str


def build_options(
    parameters: RunParameters,
    override: OcrStepParameters | None = None,
) -> ChatOptions:
    """Sampling options, with per-step overrides taking precedence."""
    temperature = parameters.temperature
    max_tokens = parameters.max_tokens
    num_ctx = parameters.num_ctx
    if override is not None:
        if override.temperature is not None:
            temperature = override.temperature
        if override.max_tokens is not None:
            max_tokens = override.max_tokens
        if override.num_ctx is not None:
            num_ctx = override.num_ctx
    return ChatOptions(
        temperature=temperature,
        num_predict=max_tokens,
        num_ctx=num_ctx,
        top_k=parameters.top_k,
        top_p=parameters.top_p,
    )


def build_request(
    model: str,
    parameters: RunParameters,
    prompts: TurnPrompts,
    images: list[str] | None = None,
    schema: dict[str, Any] | None = None,
    options: ChatOptions | None = None,
) -> ChatRequest:
    """Build one chat request.

    Args:
        model: Model name (e.g. qwen2.5vl:7b).
        parameters: Run parameter snapshot.
        prompts: System/user prompt pair for this turn.
        images: Base64 image contents for vision turns.
        schema: Cleaned JSON schema to attach as a response-format constraint.
        options: Explicit sampling options (defaults to the parameters').

    Returns:
        ChatRequest ready for the transport.
    """
    messages: list[ChatMessage] = []
    if prompts.system.strip():
        messages.append(ChatMessage(role="system", content=prompts.system))

    user = ChatMessage(role="user", content=prompts.user)
    if images:
        user.images = [strip_data_uri_prefix(img) for img in images]
    messages.append(user)

    return ChatRequest(
        model=model,
        messages=messages,
        format=copy.deepcopy(schema) if schema is not None else None,
        options=options or build_options(parameters),
    )


def build_direct_request(
    model: str,
    parameters: RunParameters,
    content: str,
    schema: dict[str, Any] | None = None,
) -> ChatRequest:
    """Single vision turn with the schema attached."""
    return build_request(
        model,
        parameters,
        TurnPrompts(parameters.system_prompt, parameters.user_prompt),
        images=[content],
        schema=schema,
    )


def build_ocr_request(
    model: str,
    parameters: RunParameters,
    content: str,
) -> ChatRequest:
    """OCR vision turn: OCR prompt pair, no schema."""
    step = parameters.ocr_step
    prompts = (
        TurnPrompts(step.system_prompt, step.user_prompt)
        if step is not None
        else TurnPrompts(parameters.system_prompt, parameters.user_prompt)
    )
    return build_request(
        model,
        parameters,
        prompts,
        images=[content],
        options=build_options(parameters, step),
    )


def interpolate_ocr_text(user_prompt: str, ocr_text: str) -> str:
    """Insert OCR text into the parse prompt.

    Uses the ``{ocr_text}`` placeholder when present, otherwise appends the
    text after a blank line.
    """
    if OCR_TEXT_PLACEHOLDER in user_prompt:
        return user_prompt.replace(OCR_TEXT_PLACEHOLDER, ocr_text)
    if not user_prompt.strip():
        return ocr_text
    return f"{user_prompt}\n\n{ocr_text}"


def build_parse_request(
    model: str,
    parameters: RunParameters,
    ocr_text: str,
    schema: dict[str, Any] | None = None,
) -> ChatRequest:
    """Text-only parse turn carrying the OCR text and the schema."""
    prompts = TurnPrompts(
        parameters.system_prompt,
        interpolate_ocr_text(parameters.user_prompt, ocr_text),
    )
    return build_request(model, parameters, prompts, schema=schema)
