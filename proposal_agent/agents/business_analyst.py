from __future__ import annotations

from typing import Any, Dict

from proposal_agent.gates.parsers import parse_artifact
from proposal_agent.models import fallback_business_analysis

from .base import BaseAgent

BUSINESS_SCHEMA = "business_analysis.schema.json"


class BusinessAnalystAgent(BaseAgent):
    def analyze(self, company_name: str, business_case: str, language: str) -> Dict[str, Any]:
        self.log("[Business Analyst] Deconstructing business case and identifying ROI opportunities...")
        prompt = self.prompts.render(
            "business_analysis",
            company_name=company_name,
            business_case=business_case,
            language=language,
        )
        try:
            response = self.call(self.settings.fast_model, prompt, json_mode=True)
            analysis = parse_artifact(response.raw_text, BUSINESS_SCHEMA, self.settings.schemas_dir)
        except Exception as exc:
            self.log(f"Business Analysis failed: {exc}")
            return fallback_business_analysis(business_case)
        analysis["expandedContent"] = {}
        return analysis
