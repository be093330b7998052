from __future__ import annotations

import os
from typing import Any, Dict, List

from openai import OpenAI
from openai import RateLimitError

from .llm_base import (
    LLMAdapter,
    LLMRequest,
    LLMResponse,
    TransientGatewayError,
    UnsupportedRequestError,
)

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"


class OpenAIAdapter(LLMAdapter):
    """Text-only provider. Grounding is not available and is ignored."""

    def __init__(self, model_override: str | None = None) -> None:
        self.api_key = os.getenv("OPENAI_API_KEY")
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is not set.")
        self.client = OpenAI(api_key=self.api_key)
        self.model_override = model_override or os.getenv("OPENAI_MODEL", DEFAULT_OPENAI_MODEL)

    def resolve_model(self, model: str) -> str:
        """Gemini names from the pipeline defaults map to the configured OpenAI model."""
        if model and not model.startswith("gemini"):
            return model
        return self.model_override

    def complete(self, model: str, request: LLMRequest) -> LLMResponse:
        if request.wants_image:
            raise UnsupportedRequestError("OpenAI adapter does not generate images.")
        if request.grounded:
            print("[openai] search grounding requested but not supported; continuing without it")

        resolved = self.resolve_model(model)
        options: Dict[str, Any] = {}
        if request.max_output_tokens:
            options["max_tokens"] = min(request.max_output_tokens, 16384)
        if request.response_mime_type == "application/json":
            options["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(
                model=resolved,
                messages=self._messages(request),
                **options,
            )
        except RateLimitError as exc:
            error = getattr(exc, "error", None)
            code = getattr(error, "code", None)
            if code == "insufficient_quota":
                raise RuntimeError(
                    "OpenAI API quota exceeded. Please enable billing in your OpenAI account."
                ) from exc
            raise

        content = response.choices[0].message.content
        if content is None:
            raise TransientGatewayError("OpenAI returned empty content.")
        usage = getattr(response, "usage", None)
        usage_payload = None
        if usage:
            usage_payload = {
                "prompt_tokens": getattr(usage, "prompt_tokens", None),
                "completion_tokens": getattr(usage, "completion_tokens", None),
                "total_tokens": getattr(usage, "total_tokens", None),
            }
            print(
                f"[openai] model={resolved} "
                f"prompt_tokens={usage_payload['prompt_tokens']} "
                f"completion_tokens={usage_payload['completion_tokens']}"
            )
        return LLMResponse(raw_text=content, usage=usage_payload)

    def _messages(self, request: LLMRequest) -> List[Dict[str, Any]]:
        if not request.image:
            return [{"role": "user", "content": request.contents}]
        return [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": request.contents},
                    {"type": "image_url", "image_url": {"url": request.image}},
                ],
            }
        ]
