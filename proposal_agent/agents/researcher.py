from __future__ import annotations

from typing import Any, Dict

from proposal_agent.gates.parsers import ArtifactParseError, parse_json_object, validate_artifact
from proposal_agent.models import empty_detailed_analysis, fallback_research

from .base import BaseAgent

RESEARCH_SCHEMA = "research_result.schema.json"


def missing_research_field(data: Dict[str, Any]) -> str | None:
    """Name the first sparse section of a KYC payload, or ``None`` when complete."""
    analysis = data.get("detailedAnalysis") or {}
    if not analysis.get("challengesAndRisks"):
        return "Challenges & Risks"
    competitors = analysis.get("competitors") or {}
    if not competitors.get("global") and not competitors.get("local"):
        return "Competitors"
    return None


def merge_repair(original: Dict[str, Any], repair: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(original)
    merged.update(repair)
    return merged


class ResearcherAgent(BaseAgent):
    """KYC research with a single grounded repair pass for sparse results."""

    def conduct_research(self, company_name: str, language: str) -> Dict[str, Any]:
        model = self.settings.fast_model
        self.log(f'[ReAct Researcher] Reasoning: Formulating search strategy for "{company_name}"...')
        prompt = self.prompts.render("research", company_name=company_name, language=language)

        self.log("[ReAct Researcher] Action: Executing primary deep-dive search...")
        try:
            response = self.call(model, prompt, grounded=True, json_mode=True, retries=2)
        except Exception:
            self.log("[ReAct Researcher] Error: Primary search failed. Using fallback.")
            return fallback_research(company_name)

        try:
            data = parse_json_object(response.raw_text)
        except ArtifactParseError:
            self.log("Warning: JSON parse failed. Attempting fallback...")
            data = {}

        missing_field = missing_research_field(data)
        if missing_field:
            data = self._repair(company_name, missing_field, data, language)

        result = self._complete(company_name, data, response.sources)
        try:
            return validate_artifact(result, RESEARCH_SCHEMA, self.settings.schemas_dir)
        except ArtifactParseError as exc:
            self.log(f"[ReAct Researcher] Warning: research payload rejected ({exc}). Using fallback.")
            return fallback_research(company_name)

    def _repair(
        self, company_name: str, missing_field: str, data: Dict[str, Any], language: str
    ) -> Dict[str, Any]:
        self.log(
            f"[ReAct Researcher] Observation: Data is sparse for '{missing_field}'. "
            "Triggering Agentic Repair..."
        )
        try:
            prompt = self.prompts.render(
                "research_repair",
                company_name=company_name,
                missing_field=missing_field,
                current_data=data,
                language=language,
            )
            self.log("[ReAct Researcher] Action: Executing targeted repair search...")
            response = self.call(self.settings.fast_model, prompt, grounded=True, json_mode=True)
            repaired = parse_json_object(response.raw_text)
        except Exception as exc:
            print(f"[researcher] repair failed: {exc}")
            self.log("[ReAct Researcher] Repair failed. Proceeding with available data.")
            return data

        self.log("[ReAct Researcher] Success: Data repaired and synthesized.")
        return merge_repair(data, repaired)

    def _complete(
        self, company_name: str, data: Dict[str, Any], sources: list
    ) -> Dict[str, Any]:
        detailed = data.get("detailedAnalysis")
        if isinstance(detailed, dict) and detailed:
            detailed = {**empty_detailed_analysis(), **detailed}
        else:
            detailed = empty_detailed_analysis()
        return {
            "summary": data.get("summary") or f"Information about {company_name}",
            "strategicGoals": data.get("strategicGoals") or [],
            "detailedAnalysis": detailed,
            "sources": sources,
            "expandedContent": {},
        }
