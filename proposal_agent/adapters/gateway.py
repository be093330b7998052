from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Optional

from proposal_agent.settings import HIGH_OUTPUT_TOKENS, PipelineSettings

from .llm_base import LLMAdapter, LLMRequest, LLMResponse

LogFn = Callable[[str], None]


class LLMGateway:
    """Bounded, linearly backed-off access to a single LLM adapter.

    Every attempt is preceded by the session's pacing delay when it is set.
    A call configured with ``retries=N`` makes at most ``N + 1`` attempts
    and re-raises the last error once they are exhausted.
    """

    def __init__(
        self,
        adapter: LLMAdapter,
        settings: PipelineSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.adapter = adapter
        self.settings = settings
        self._sleep = sleep

    def generate(
        self,
        model: str,
        request: LLMRequest,
        retries: Optional[int] = None,
        on_log: Optional[LogFn] = None,
    ) -> LLMResponse:
        if retries is None:
            retries = self.settings.max_retries
        if request.max_output_tokens is None and not request.wants_image:
            request = replace(request, max_output_tokens=HIGH_OUTPUT_TOKENS)

        delay = self.settings.api_delay
        for attempt in range(retries + 1):
            try:
                if delay > 0:
                    if on_log and attempt == 0:
                        on_log(f"System pause: {delay}s (Rate Limit Control)...")
                    self._sleep(delay)
                if on_log and attempt > 0:
                    on_log(f"Retry attempt {attempt}/{retries} for model {model}...")
                return self.adapter.complete(model, request)
            except Exception as exc:
                print(f"[gateway] attempt {attempt + 1} failed for model {model}: {exc}")
                if on_log:
                    on_log(f"Warning: API call failed (Attempt {attempt + 1}). Retrying...")
                if attempt == retries:
                    raise
                self._sleep(1.0 * (attempt + 1))
        raise RuntimeError("Max retries reached")
