from __future__ import annotations

from typing import Any, Dict, Optional

from proposal_agent.context_filter import apply_context_filter
from proposal_agent.gates.parsers import extract_markdown
from proposal_agent.models import ProposalRequest
from proposal_agent.settings import HIGH_OUTPUT_TOKENS
from proposal_agent.utils.time import today_label

from .base import BaseAgent

PROPOSAL_ERROR = "# Error generating proposal"


class WriterAgent(BaseAgent):
    def generate(
        self,
        request: ProposalRequest,
        research: Dict[str, Any],
        business: Dict[str, Any],
        design: Dict[str, Any],
        images: Optional[Dict[str, Optional[str]]] = None,
        feedback: Optional[str] = None,
        previous_proposal: Optional[str] = None,
        density: str = "high",
    ) -> str:
        primary_model = request.text_model or self.settings.text_model
        fallback_model = self.settings.fast_model
        self.log(
            f"[ReAct Writer] Analyzing Audience and Strategy for {request.language} proposal "
            f"(Context: {density.upper()})..."
        )

        refinement = ""
        if feedback and previous_proposal:
            refinement = self.prompts.render("writer_refinement", feedback=feedback)
        prompt = self.prompts.render(
            "writer",
            company_name=request.company_name,
            hyperscaler=request.hyperscaler,
            language=request.language,
            business_case=request.business_case,
            design=design,
            context=apply_context_filter(research, business, density),
            date=today_label(),
            refinement=refinement,
            vendor_name=self.settings.vendor_name,
        )

        try:
            response = self.call(primary_model, prompt, max_output_tokens=HIGH_OUTPUT_TOKENS)
        except Exception:
            self.log(f"Primary model failed. Switching to fallback ({fallback_model})...")
            print("[writer] primary model failed, switching to fallback")
            try:
                response = self.call(fallback_model, prompt)
            except Exception:
                return PROPOSAL_ERROR
            return extract_markdown(response.raw_text or f"{PROPOSAL_ERROR} (Fallback)")

        markdown = extract_markdown(response.raw_text or PROPOSAL_ERROR)
        self.log("[ReAct Writer] Text generated. Injecting visual assets...")
        cover = (images or {}).get("coverImage")
        if cover:
            markdown = f"![Cover Image]({cover})\n\n" + markdown
        return markdown
