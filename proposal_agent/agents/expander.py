from __future__ import annotations

from typing import Any, Dict, Optional

from proposal_agent.gates.parsers import extract_markdown, strip_images_for_context
from proposal_agent.models import EXPAND_DENSITIES
from proposal_agent.settings import HIGH_OUTPUT_TOKENS

from .base import BaseAgent

EXPANSION_ERROR = "Could not expand section due to an error."

DENSITY_INSTRUCTIONS = {
    "Low": "Provide a concise 2-paragraph summary.",
    "Medium": "Provide a comprehensive report.",
    "High": "Provide an extremely detailed, in-depth analysis with multiple subsections.",
}


class ExpanderAgent(BaseAgent):
    """Deep dives into a single named section of an existing artifact."""

    def _density(self, density: str) -> str:
        if density not in EXPAND_DENSITIES:
            raise ValueError(f"Unknown expansion density: {density!r}")
        return DENSITY_INSTRUCTIONS[density]

    def _expand(self, template: str, grounded: bool, **values: Any) -> str:
        prompt = self.prompts.render(template, **values)
        try:
            response = self.call(self.settings.fast_model, prompt, grounded=grounded)
        except Exception as exc:
            self.log(f"Expansion error: {exc}")
            return EXPANSION_ERROR
        return extract_markdown(response.raw_text or "Expansion failed.")

    def expand_research(
        self,
        company_name: str,
        section: str,
        research: Dict[str, Any],
        language: str,
        density: str = "Medium",
        instruction: str = "",
    ) -> str:
        self.log(f"Expanding section: {section} using Google Search (Language: {language})...")
        return self._expand(
            "expand_research",
            grounded=True,
            company_name=company_name,
            section=section,
            context=research,
            language=language,
            density_instruction=self._density(density),
            instruction=instruction,
        )

    def expand_business(
        self,
        section: str,
        business: Dict[str, Any],
        language: str,
        density: str = "Medium",
        instruction: str = "",
    ) -> str:
        self.log(f"Expanding business section: {section}...")
        return self._expand(
            "expand_research",
            grounded=True,
            company_name="Client Business Case",
            section=section,
            context=business,
            language=language,
            density_instruction=self._density(density),
            instruction=instruction,
        )

    def expand_architecture(
        self,
        section: str,
        design: Dict[str, Any],
        language: str,
        density: str = "Medium",
        instruction: str = "",
    ) -> str:
        self.log(f"Expanding architecture section: {section}...")
        return self._expand(
            "expand_architecture",
            grounded=True,
            section=section,
            design=design,
            language=language,
            density_instruction=self._density(density),
            instruction=instruction,
        )

    def expand_proposal(
        self,
        section: str,
        proposal: str,
        business_case: str,
        language: str,
        density: str = "Medium",
        instruction: str = "",
    ) -> str:
        self.log(f"Expanding proposal section: {section}...")
        return self._expand(
            "expand_proposal",
            grounded=False,
            section=section,
            proposal=strip_images_for_context(proposal),
            business_case=business_case,
            language=language,
            density_instruction=self._density(density),
            instruction=instruction,
        )

    def expand_metacognition(
        self,
        section: str,
        current_content: str,
        analysis: Dict[str, Any],
        language: str,
        model: Optional[str] = None,
    ) -> str:
        self.log(f'[Metacognition Analyst] Expanding "{section}"...')
        prompt = self.prompts.render(
            "expand_metacognition",
            section=section,
            current_content=current_content,
            analysis=analysis,
            language=language,
        )
        try:
            response = self.call(
                model or self.settings.fast_model, prompt, max_output_tokens=HIGH_OUTPUT_TOKENS
            )
        except Exception as exc:
            self.log(f"[Metacognition Analyst] Expansion failed: {exc}")
            return current_content
        self.log("[Metacognition Analyst] Section expanded successfully.")
        return response.raw_text or current_content
