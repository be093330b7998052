from __future__ import annotations

import re
from typing import Any, Dict, Optional

from proposal_agent.adapters.llm_base import LLMRequest
from proposal_agent.artifacts.cover import composite_logos_on_cover, fetch_company_logo

from .base import BaseAgent

IMAGE_MODALITIES = ["TEXT", "IMAGE"]

INFOGRAPHIC_KEYS = {
    "kyc": "kycInfographic",
    "business": "businessInfographic",
    "architecture": "architectureInfographic",
    "cost": "costInfographic",
    "metacognition": "metacognitionInfographic",
    "cover": "coverImage",
}


class VisualizerAgent(BaseAgent):
    """One image call per artifact kind. Never raises; failures yield ``None``."""

    def __init__(self, *args, logo_fetcher=fetch_company_logo, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._fetch_logo = logo_fetcher

    def generate_image(self, prompt: str, model: Optional[str] = None, label: str = "image") -> Optional[str]:
        model = model or self.settings.image_model
        try:
            self.log(f"[Visualizer] Generating {label}...")
            request = LLMRequest(contents=prompt, response_modalities=list(IMAGE_MODALITIES))
            response = self.gateway.generate(model, request, retries=0)
            for image in response.images:
                payload = re.sub(r"\s", "", image["data"])
                self.log(f"[Visualizer] {label} generated successfully.")
                return f"data:{image['mime_type']};base64,{payload}"
            self.log(f"[Visualizer] Warning: No image data returned for {label}.")
        except Exception as exc:
            print(f"[visualizer] image generation failed for {label}: {exc}")
            self.log(f"[Visualizer] Failed to generate {label}.")
        return None

    def kyc_infographic(self, company_name: str, research: Dict[str, Any], language: str, model: Optional[str] = None):
        prompt = self.prompts.render(
            "visual_kyc", company_name=company_name, research=research, language=language
        )
        return self.generate_image(prompt, model, "KYC Infographic")

    def business_infographic(self, business: Dict[str, Any], language: str, model: Optional[str] = None):
        prompt = self.prompts.render("visual_business", business=business, language=language)
        return self.generate_image(prompt, model, "Business Infographic")

    def architecture_infographic(
        self, design: Dict[str, Any], hyperscaler: str, language: str, model: Optional[str] = None
    ):
        prompt = self.prompts.render(
            "visual_architecture",
            design={key: value for key, value in design.items() if key != "expandedContent"},
            hyperscaler=hyperscaler,
            language=language,
        )
        return self.generate_image(prompt, model, "Architecture Infographic")

    def cost_infographic(self, estimation: Dict[str, Any], language: str, model: Optional[str] = None):
        plan = estimation.get("optimalPlan") or {}
        summary = {
            "totalWeeks": plan.get("totalWeeks"),
            "totalCost": plan.get("totalCost"),
            "roles": [
                {"role": role.get("role"), "stress": (role.get("stress") or {}).get("score")}
                for role in plan.get("roles", [])
            ],
        }
        prompt = self.prompts.render("visual_cost", estimation=summary, language=language)
        return self.generate_image(prompt, model, "Cost Infographic")

    def metacognition_infographic(
        self, analysis: Dict[str, Any], company_name: str, language: str, model: Optional[str] = None
    ):
        prompt = self.prompts.render(
            "visual_metacognition", analysis=analysis, company_name=company_name, language=language
        )
        return self.generate_image(prompt, model, "Metacognition Infographic")

    def cover_image(
        self, company_name: str, context: Dict[str, Any], instruction: str = "", model: Optional[str] = None
    ):
        prompt = self.prompts.render(
            "visual_cover", company_name=company_name, context=context, instruction=instruction
        )
        return self.generate_image(prompt, model, "cover image")

    def cover_with_logos(
        self, company_name: str, context: Dict[str, Any], instruction: str = "", model: Optional[str] = None
    ) -> Optional[str]:
        self.log(f"[Visualizer] Generating cover image for {company_name}...")
        base_cover = self.cover_image(company_name, context, instruction, model)
        if not base_cover:
            self.log("[Visualizer] Warning: Base cover generation failed.")
            return None

        self.log(f"[Visualizer] Fetching {company_name} logo...")
        customer_logo = self._fetch_logo(company_name)
        if customer_logo:
            self.log("[Visualizer] Customer logo retrieved successfully.")
        else:
            self.log("[Visualizer] Customer logo not found, using text fallback.")

        self.log("[Visualizer] Compositing logos onto cover...")
        cover = composite_logos_on_cover(
            base_cover,
            customer_logo,
            company_name,
            vendor_name=self.settings.vendor_name,
            vendor_logo=self.settings.vendor_logo,
        )
        self.log("[Visualizer] Cover image with logos generated successfully.")
        return cover
