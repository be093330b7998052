from __future__ import annotations

import base64
import os
from typing import Any, Dict, List

from google import genai
from google.genai import types

from .llm_base import (
    LLMAdapter,
    LLMRequest,
    LLMResponse,
    TransientGatewayError,
    dedupe_sources,
    split_data_uri,
)


class GeminiAdapter(LLMAdapter):
    def __init__(self) -> None:
        api_key = os.getenv("GEMINI_API_KEY")
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY is not set.")

        self.client = genai.Client(api_key=api_key)

    def complete(self, model: str, request: LLMRequest) -> LLMResponse:
        print(
            f"[gemini] model={model} grounded={request.grounded} "
            f"json={bool(request.response_mime_type)} image={request.wants_image}"
        )
        response = self.client.models.generate_content(
            model=model,
            contents=self._contents(request),
            config=self._config(request),
        )

        text = getattr(response, "text", None) or ""
        images = self._images(response)
        if not text and not images:
            raise TransientGatewayError("Gemini returned empty content.")

        return LLMResponse(
            raw_text=text,
            sources=self._sources(response),
            images=images,
            usage=self._usage(response),
        )

    def _contents(self, request: LLMRequest) -> List[Any]:
        contents: List[Any] = [request.contents]
        if request.image:
            mime_type, payload = split_data_uri(request.image)
            contents.append(
                types.Part.from_bytes(data=base64.b64decode(payload), mime_type=mime_type)
            )
        return contents

    def _config(self, request: LLMRequest) -> types.GenerateContentConfig:
        options: Dict[str, Any] = {}
        if request.max_output_tokens:
            options["max_output_tokens"] = request.max_output_tokens
        if request.response_mime_type:
            options["response_mime_type"] = request.response_mime_type
        if request.response_schema:
            options["response_json_schema"] = request.response_schema
        if request.grounded:
            options["tools"] = [types.Tool(google_search=types.GoogleSearch())]
        if request.response_modalities:
            options["response_modalities"] = list(request.response_modalities)
        return types.GenerateContentConfig(**options)

    def _candidate(self, response: Any) -> Any:
        candidates = getattr(response, "candidates", None) or []
        return candidates[0] if candidates else None

    def _sources(self, response: Any) -> List[Dict[str, str]]:
        candidate = self._candidate(response)
        metadata = getattr(candidate, "grounding_metadata", None)
        chunks = getattr(metadata, "grounding_chunks", None) or []
        sources = []
        for chunk in chunks:
            web = getattr(chunk, "web", None)
            if web is not None and web.uri and web.title:
                sources.append({"title": web.title, "uri": web.uri})
        return dedupe_sources(sources)

    def _images(self, response: Any) -> List[Dict[str, str]]:
        candidate = self._candidate(response)
        content = getattr(candidate, "content", None)
        images = []
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is None or not inline.data:
                continue
            data = inline.data
            if isinstance(data, bytes):
                data = base64.b64encode(data).decode("ascii")
            images.append({"mime_type": inline.mime_type or "image/png", "data": data})
        return images

    def _usage(self, response: Any) -> Dict[str, Any] | None:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return None
        return {
            "prompt_tokens": getattr(usage, "prompt_token_count", None),
            "completion_tokens": getattr(usage, "candidates_token_count", None),
            "total_tokens": getattr(usage, "total_token_count", None),
        }
