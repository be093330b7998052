"""Projection of upstream artifacts into a downstream prompt context.

Density trades completeness for token budget:

* ``low``: executive summary only.
* ``medium``: tactical summary, truncated industry text and top risks.
* ``high``: both artifacts serialised in full.
"""
from __future__ import annotations

import json
from typing import Any, Dict

INDUSTRY_PREVIEW_CHARS = 300


def _detailed(research: Dict[str, Any]) -> Dict[str, Any]:
    return research.get("detailedAnalysis") or {}


def _business_value(business: Dict[str, Any]) -> Dict[str, Any]:
    return business.get("expectedBusinessValue") or {}


def low_context(research: Dict[str, Any], business: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "client_summary": research.get("summary", ""),
        "strategic_goals": list(research.get("strategicGoals") or [])[:3],
        "core_problem": business.get("problemStatement", ""),
        "expected_roi": _business_value(business).get("roi", ""),
        "key_constraints": _detailed(research).get("regulatoryConstraints") or [],
    }


def medium_context(research: Dict[str, Any], business: Dict[str, Any]) -> Dict[str, Any]:
    detailed = _detailed(research)
    industry = detailed.get("industryLandscape") or ""
    return {
        "client_summary": research.get("summary", ""),
        "strategic_goals": list(research.get("strategicGoals") or []),
        "industry_context": industry[:INDUSTRY_PREVIEW_CHARS] + "...",
        "top_risks": list(detailed.get("challengesAndRisks") or [])[:5],
        "problem_statement": business.get("problemStatement", ""),
        "root_causes": business.get("rootCauseAnalysis") or [],
        "roi_analysis": _business_value(business),
        "key_pain_points": business.get("keyPainPoints") or [],
        "hyperscaler_affinity": detailed.get("hyperscalerAffinity", ""),
        "key_constraints": detailed.get("regulatoryConstraints") or [],
    }


def high_context(research: Dict[str, Any], business: Dict[str, Any]) -> Dict[str, Any]:
    return {"research_full": research, "business_analysis_full": business}


_PROJECTIONS = {
    "low": low_context,
    "medium": medium_context,
    "high": high_context,
}


def apply_context_filter(
    research: Dict[str, Any], business: Dict[str, Any], density: str
) -> str:
    try:
        projection = _PROJECTIONS[density]
    except KeyError:
        raise ValueError(f"Unknown context density: {density!r}") from None
    return json.dumps(projection(research, business), indent=2, ensure_ascii=False)
