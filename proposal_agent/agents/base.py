from __future__ import annotations

from typing import Callable, Optional

from proposal_agent.adapters.gateway import LLMGateway
from proposal_agent.adapters.llm_base import GOOGLE_SEARCH, LLMRequest, LLMResponse
from proposal_agent.prompts import PromptLibrary
from proposal_agent.settings import JSON_MIME_TYPE, PipelineSettings

LogFn = Callable[[str], None]


def _silent(message: str) -> None:
    return None


class BaseAgent:
    def __init__(
        self,
        gateway: LLMGateway,
        settings: PipelineSettings,
        prompts: PromptLibrary,
        on_log: Optional[LogFn] = None,
    ) -> None:
        self.gateway = gateway
        self.settings = settings
        self.prompts = prompts
        self.on_log = on_log or _silent

    def log(self, message: str) -> None:
        self.on_log(message)

    def call(
        self,
        model: str,
        prompt: str,
        *,
        grounded: bool = False,
        json_mode: bool = False,
        retries: Optional[int] = 1,
        quiet: bool = False,
        **config,
    ) -> LLMResponse:
        request = LLMRequest(
            contents=prompt,
            tools=[GOOGLE_SEARCH] if grounded else [],
            response_mime_type=JSON_MIME_TYPE if json_mode else None,
            **config,
        )
        return self.gateway.generate(
            model, request, retries=retries, on_log=None if quiet else self.on_log
        )
