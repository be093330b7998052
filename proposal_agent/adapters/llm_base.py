from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

GOOGLE_SEARCH = "google_search"


class UnsupportedRequestError(RuntimeError):
    """Raised when a provider cannot serve the requested call shape."""


class TransientGatewayError(RuntimeError):
    """An empty or truncated provider reply; worth another attempt."""


@dataclass
class LLMRequest:
    contents: str
    image: Optional[str] = None
    max_output_tokens: Optional[int] = None
    response_mime_type: Optional[str] = None
    response_schema: Optional[Dict[str, Any]] = None
    tools: List[str] = field(default_factory=list)
    response_modalities: List[str] = field(default_factory=list)

    @property
    def grounded(self) -> bool:
        return GOOGLE_SEARCH in self.tools

    @property
    def wants_image(self) -> bool:
        return "IMAGE" in self.response_modalities


@dataclass
class LLMResponse:
    raw_text: str
    sources: List[Dict[str, str]] = field(default_factory=list)
    images: List[Dict[str, str]] = field(default_factory=list)
    usage: Optional[Dict[str, Any]] = None


class LLMAdapter(Protocol):
    def complete(self, model: str, request: LLMRequest) -> LLMResponse:
        ...


def split_data_uri(data_uri: str) -> tuple[str, str]:
    """Return ``(mime_type, base64_payload)`` for a ``data:`` URI."""
    header, _, payload = data_uri.partition(",")
    mime_type = "image/png"
    if header.startswith("data:") and ";" in header:
        mime_type = header[len("data:"):].split(";", 1)[0] or mime_type
    return mime_type, payload


def dedupe_sources(sources: List[Dict[str, str]]) -> List[Dict[str, str]]:
    unique: Dict[str, Dict[str, str]] = {}
    for source in sources:
        uri = source.get("uri")
        if uri and source.get("title"):
            unique[uri] = {"title": source["title"], "uri": uri}
    return list(unique.values())
