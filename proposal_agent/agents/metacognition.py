from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

from proposal_agent.gates.parsers import (
    ArtifactParseError,
    parse_artifact,
    parse_json_object,
    strip_images_for_context,
)
from proposal_agent.settings import HIGH_OUTPUT_TOKENS

from .base import BaseAgent

METACOGNITION_SCHEMA = "metacognition.schema.json"
SYNTHESIS_ATTEMPTS = 2


class MetacognitionAgent(BaseAgent):
    """Reason, Act, Observe over every artifact of the proposal.

    1. Reason: hypotheses and search queries as JSON.
    2. Act: grounded search validating those hypotheses.
    3. Observe: structured stakeholder report; one retry on bad JSON.
    """

    def __init__(self, *args, pause: Callable[[float], None] = time.sleep, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._pause = pause

    def analyze(
        self,
        company_name: str,
        research: Dict[str, Any],
        business: Dict[str, Any],
        design: Dict[str, Any],
        proposal: str,
        cost: Dict[str, Any],
        language: str = "English",
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        model = model or self.settings.fast_model
        self.log(f"[ReAct Metacognition] Starting cognitive analysis for {company_name}...")
        try:
            return self._analyze(company_name, research, business, design, proposal, cost, language, model)
        except Exception as exc:
            self.log(f"[ReAct Metacognition] Error: {exc}")
            raise

    def _analyze(self, company_name, research, business, design, proposal, cost, language, model):
        self.log("[ReAct Metacognition] Reasoning: Identifying hypotheses and search queries...")
        reason_prompt = self.prompts.render(
            "metacognition_reason",
            company_name=company_name,
            research=research,
            business=business,
            design=design,
            cost=cost,
            language=language,
            vendor_name=self.settings.vendor_name,
        )
        reason_response = self.call(model, reason_prompt, json_mode=True)
        reasoning = parse_json_object(reason_response.raw_text)
        queries = reasoning.get("searchQueries") or []
        self.log(f"[ReAct Metacognition] Identified {len(queries)} areas requiring validation.")

        self.log("[ReAct Metacognition] Action: Executing grounded search for validation...")
        industry = (research.get("detailedAnalysis") or {}).get("industryLandscape") or "technology"
        act_prompt = self.prompts.render(
            "metacognition_act",
            company_name=company_name,
            industry=industry,
            hypotheses=reasoning.get("hypotheses") or {},
            search_queries=queries,
            language=language,
        )
        act_response = self.call(
            model, act_prompt, grounded=True, max_output_tokens=HIGH_OUTPUT_TOKENS
        )
        findings = act_response.raw_text or "No additional findings from search."
        self.log("[ReAct Metacognition] Observation: Received grounded research insights.")

        self.log("[ReAct Metacognition] Synthesizing: Creating final analysis with grounded insights...")
        observe_prompt = self.prompts.render(
            "metacognition_observe",
            company_name=company_name,
            research=research,
            business=business,
            design=design,
            proposal=strip_images_for_context(proposal),
            cost=cost,
            findings=findings,
            language=language,
            vendor_name=self.settings.vendor_name,
        )
        analysis = self._synthesize(model, observe_prompt)
        analysis["groundingSources"] = [source["uri"] for source in act_response.sources]
        analysis.setdefault("expandedContent", {})

        self.log(
            f"[ReAct Metacognition] Identified {len(analysis.get('consonanceMatrix', []))} alignment dimensions."
        )
        self.log(f"[ReAct Metacognition] Found {len(analysis.get('dissonanceAlerts', []))} dissonance alerts.")
        self.log(
            f"[ReAct Metacognition] Mapped {len(analysis.get('tensionManagement', []))} tensions to manage."
        )
        self.log("[ReAct Metacognition] Analysis complete with grounded validation.")
        return analysis

    def _synthesize(self, model: str, prompt: str) -> Dict[str, Any]:
        for attempt in range(1, SYNTHESIS_ATTEMPTS + 1):
            response = self.call(model, prompt, json_mode=True)
            try:
                return parse_artifact(response.raw_text, METACOGNITION_SCHEMA, self.settings.schemas_dir)
            except ArtifactParseError:
                self.log(
                    "[ReAct Metacognition] Warning: JSON parsing failed in stage 3 "
                    f"(Attempt {attempt}/{SYNTHESIS_ATTEMPTS}). Retrying synthesis..."
                )
                if attempt == SYNTHESIS_ATTEMPTS:
                    raise
                self._pause(1.0)
        raise ArtifactParseError("Failed to generate valid metacognition analysis.")
