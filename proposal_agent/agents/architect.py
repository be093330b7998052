from __future__ import annotations

from typing import Any, Dict, Optional

from proposal_agent.context_filter import apply_context_filter
from proposal_agent.gates.parsers import extract_markdown, load_schema, parse_json_object, validate_artifact
from proposal_agent.models import FALLBACK_MERMAID_SENTINEL, ProposalRequest, fallback_design

from .base import BaseAgent

DESIGN_SCHEMA = "solution_design.schema.json"
DESIGN_RESPONSE_SCHEMA = "design_response.schema.json"
NO_GROUNDING = "No specific grounding data available."


def normalize_design(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Fold the snake_case fields of the structured response into the artifact."""
    design = dict(payload)
    thinking = design.pop("thinking_process", None) or design.get("thinkingProcess")
    if thinking:
        design["thinkingProcess"] = thinking
    alternatives = design.pop("alternatives_discarded", None)
    if alternatives and "alternativesDiscarded" not in design:
        design["alternativesDiscarded"] = alternatives
    return design


def clean_diagram(raw_text: str) -> str:
    diagram = extract_markdown(raw_text)
    if diagram.startswith("mermaid"):
        diagram = diagram[len("mermaid"):].lstrip()
    return diagram


class ArchitectAgent(BaseAgent):
    """Grounding, structured design, then a diagram-only refinement pass."""

    def research_services(self, request: ProposalRequest, business_case: str) -> str:
        self.log(f"[Grounding Architect] Researching optimal {request.hyperscaler} services...")
        try:
            services = self._search_services(request.hyperscaler, business_case)
        except Exception as exc:
            self.log(f"Grounding failed: {exc}")
            return "Standard cloud services will be used."
        return services or "No services identified."

    def design(
        self,
        request: ProposalRequest,
        research: Dict[str, Any],
        business: Dict[str, Any],
        feedback: Optional[str] = None,
        current_design: Optional[Dict[str, Any]] = None,
        density: str = "high",
    ) -> Dict[str, Any]:
        model = request.text_model or self.settings.text_model
        self.log(f"[ReAct Architect] Initiating 3-Stage Design Sequence for {request.hyperscaler}...")

        grounding = NO_GROUNDING
        if not feedback:
            grounding = self._ground(request, business)

        self.log(
            f"[Stage 2/3] Architecting: Designing solution with context density {density.upper()}..."
        )
        refinement = ""
        if feedback and current_design:
            refinement = self.prompts.render(
                "architect_refinement", feedback=feedback, current_design=current_design
            )
        prompt = self.prompts.render(
            "architect_design",
            hyperscaler=request.hyperscaler,
            company_name=request.company_name,
            language=request.language,
            context=apply_context_filter(research, business, density),
            grounding=grounding,
            refinement=refinement,
        )

        try:
            response = self.call(
                model,
                prompt,
                grounded=True,
                json_mode=True,
                retries=2,
                response_schema=load_schema(DESIGN_RESPONSE_SCHEMA, self.settings.schemas_dir),
            )
            result = normalize_design(parse_json_object(response.raw_text))
            validate_artifact(result, DESIGN_SCHEMA, self.settings.schemas_dir)
        except Exception as exc:
            print(f"[architect] design error: {exc}")
            self.log(f"Error generating design: {exc}")
            return fallback_design()

        thinking = result.get("thinkingProcess")
        if thinking:
            self.log(f"[Stage 2/3] Thought Process:\n{thinking[:150]}...")

        mermaid = result.get("mermaidCode", "")
        if mermaid and FALLBACK_MERMAID_SENTINEL not in mermaid:
            result["mermaidCode"] = self._refine_diagram(
                mermaid, result.get("architectureOverview", ""), request.hyperscaler
            )
        return result

    def _ground(self, request: ProposalRequest, business: Dict[str, Any]) -> str:
        self.log(
            f"[Stage 1/3] Grounding: Researching latest {request.hyperscaler} services for this case..."
        )
        try:
            services = self._search_services(request.hyperscaler, business.get("problemStatement", ""))
        except Exception as exc:
            print(f"[architect] grounding failed, proceeding with internal knowledge: {exc}")
            self.log("[Stage 1/3] Warning: Grounding failed. Using internal knowledge base.")
            return NO_GROUNDING
        self.log("[Stage 1/3] Grounding Complete.")
        return services or NO_GROUNDING

    def _search_services(self, hyperscaler: str, business_case: str) -> str:
        prompt = self.prompts.render(
            "architect_services", hyperscaler=hyperscaler, business_case=business_case
        )
        return self.call(self.settings.fast_model, prompt, grounded=True).raw_text

    def _refine_diagram(self, mermaid: str, overview: str, hyperscaler: str) -> str:
        self.log("[Stage 3/3] Visualization: Refining Diagram for detail and layout...")
        prompt = self.prompts.render(
            "architect_diagram", mermaid_code=mermaid, overview=overview, hyperscaler=hyperscaler
        )
        try:
            response = self.call(self.settings.fast_model, prompt, quiet=True)
        except Exception as exc:
            print(f"[architect] diagram refinement failed, keeping original: {exc}")
            self.log("[Stage 3/3] Warning: Refinement skipped. Using original diagram.")
            return mermaid

        refined = clean_diagram(response.raw_text)
        if "graph" in refined or "flowchart" in refined:
            self.log("[Stage 3/3] Visualization Enhanced.")
            return refined
        return mermaid
