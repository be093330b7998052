from __future__ import annotations

from typing import Any, Dict

from proposal_agent.gates.parsers import parse_json_object
from proposal_agent.models import ValidationResult

from .base import BaseAgent


class ValidatorAgent(BaseAgent):
    """Scores a design against the business root causes.

    Any failure, transport or parse, fails open: the pipeline is never
    blocked by the validator itself.
    """

    def validate(self, business: Dict[str, Any], design: Dict[str, Any]) -> ValidationResult:
        prompt = self.prompts.render(
            "validator",
            root_causes=business.get("rootCauseAnalysis") or [],
            pain_points=business.get("keyPainPoints") or [],
            architecture_overview=design.get("architectureOverview", ""),
            key_components=design.get("keyComponents") or [],
            rationale=design.get("rationale", ""),
        )
        try:
            response = self.call(self.settings.fast_model, prompt, json_mode=True)
            return ValidationResult.from_payload(parse_json_object(response.raw_text))
        except Exception as exc:
            self.log(f"Validation failed (Logic Error): {exc}")
            return ValidationResult.fail_open()
