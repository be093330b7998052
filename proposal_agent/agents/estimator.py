from __future__ import annotations

import re
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from proposal_agent.gates.parsers import parse_artifact, strip_images_for_context

from .base import BaseAgent

COST_SCHEMA = "cost_estimation.schema.json"
HOURS_PER_WEEK = 40
DELIVERABLES_HEADER = re.compile(r"##\s*7\.", re.IGNORECASE)
WEEK_MENTION = re.compile(r"(\d+)\s*(?:semanas?|weeks?)", re.IGNORECASE)
TIMELINE_REQUEST = re.compile(r"week|semana|timeline|cronograma|duraci", re.IGNORECASE)


def load_execution_rates(path: Path) -> Dict[str, float]:
    """Rate card without solution architect roles, which the design team covers."""
    with open(path, encoding="utf-8") as handle:
        rates = yaml.safe_load(handle) or {}
    return {
        role: float(rate)
        for role, rate in rates.get("hourly_rates", {}).items()
        if "solution architect" not in role.lower()
    }


def relevant_proposal_sections(proposal_markdown: str) -> str:
    """Everything before the deliverables section, images removed."""
    return DELIVERABLES_HEADER.split(strip_images_for_context(proposal_markdown))[0]


def stated_weeks(proposal_markdown: str) -> Optional[int]:
    mentions = [int(value) for value in WEEK_MENTION.findall(proposal_markdown)]
    if not mentions:
        return None
    return Counter(mentions).most_common(1)[0][0]


def role_hours(role: Dict[str, Any]) -> float:
    allocations = role.get("allocations") or {}
    return sum(float(pct) / 100 * HOURS_PER_WEEK for pct in allocations.values())


def recalculate_total_cost(estimation: Dict[str, Any]) -> Dict[str, Any]:
    plan = estimation.get("optimalPlan") or {}
    plan["totalCost"] = round(
        sum(float(role.get("hourlyRate", 0)) * role_hours(role) for role in plan.get("roles", [])),
        2,
    )
    return estimation


class EstimatorAgent(BaseAgent):
    """Weekly role allocation plan derived from the proposal text.

    Failures propagate: there is no sensible default staffing plan.
    """

    def estimate(
        self, proposal_markdown: str, language: str = "English", model: Optional[str] = None
    ) -> Dict[str, Any]:
        model = model or self.settings.fast_model
        self.log("[Cost Estimator] Analyzing proposal timeline and assigning roles...")
        context = relevant_proposal_sections(proposal_markdown)
        self.log(
            "[Cost Estimator] Context filtered to relevant sections "
            "(Executive Summary, Solution, Timeline)."
        )
        self.log(
            f"[Cost Estimator] Estimating Payload: {len(context)} chars "
            f"(~{(len(context) + 3) // 4} tokens)."
        )
        weeks = stated_weeks(context)
        self.log(f"[Cost Estimator] Proposal timeline: {weeks if weeks else 'NOT FOUND'} weeks.")

        prompt = self.prompts.render(
            "estimator",
            proposal=context,
            language=language,
            rates=load_execution_rates(self.settings.rates_path),
        )
        try:
            response = self.call(model, prompt, json_mode=True)
            estimation = parse_artifact(response.raw_text, COST_SCHEMA, self.settings.schemas_dir)
        except Exception as exc:
            self.log(f"Cost Estimation failed: {exc}")
            raise

        self.log("[Cost Estimator] Estimation complete.")
        return recalculate_total_cost(estimation)

    def refine(
        self,
        estimation: Dict[str, Any],
        instruction: str,
        proposal_markdown: str,
        language: str = "English",
        model: Optional[str] = None,
    ) -> Dict[str, Any]:
        model = model or self.settings.fast_model
        self.log(f'[Cost Estimator] Refining plan (Model: {model}): "{instruction}"...')
        proposal = strip_images_for_context(proposal_markdown)
        prompt = self.prompts.render(
            "estimator_refine",
            instruction=instruction,
            language=language,
            proposal=proposal,
            estimation=estimation,
        )
        try:
            response = self.call(model, prompt, json_mode=True)
            refined = parse_artifact(response.raw_text, COST_SCHEMA, self.settings.schemas_dir)
        except Exception as exc:
            self.log(f"Cost Refinement failed: {exc}")
            raise

        anchored = stated_weeks(relevant_proposal_sections(proposal))
        total_weeks = refined["optimalPlan"].get("totalWeeks")
        if anchored and total_weeks != anchored and not TIMELINE_REQUEST.search(instruction):
            self.log(
                f"[Cost Estimator] Warning: refined plan spans {total_weeks} weeks but the "
                f"proposal states {anchored} weeks."
            )
        return recalculate_total_cost(refined)
