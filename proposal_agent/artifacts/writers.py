from __future__ import annotations

import base64
from pathlib import Path
from typing import Dict, List

from proposal_agent.adapters.llm_base import split_data_uri
from proposal_agent.utils.io import write_json, write_text


def _bullets(items) -> List[str]:
    return [f"- {item}" for item in items or []]


def _expanded(lines: List[str], artifact: Dict) -> None:
    for section, content in (artifact.get("expandedContent") or {}).items():
        lines.extend(["", f"## {section} (expanded)", "", content])


def write_research(path: Path, research: Dict) -> None:
    detailed = research.get("detailedAnalysis") or {}
    competitors = detailed.get("competitors") or {}
    lines: List[str] = ["# KYC Research", "", research.get("summary", ""), "", "## Strategic Goals"]
    lines.extend(_bullets(research.get("strategicGoals")))
    lines.extend(["", "## Industry Landscape", detailed.get("industryLandscape", "")])
    lines.extend(["", "## Challenges & Risks"])
    lines.extend(_bullets(detailed.get("challengesAndRisks")))
    lines.extend(["", "## Competitors", "", "Global:"])
    lines.extend(_bullets(competitors.get("global")))
    lines.extend(["", "Local:"])
    lines.extend(_bullets(competitors.get("local")))
    swot = detailed.get("swot") or {}
    if swot:
        lines.extend(["", "## SWOT"])
        for quadrant in ("strengths", "weaknesses", "opportunities", "threats"):
            lines.extend(["", f"### {quadrant.title()}"])
            lines.extend(_bullets(swot.get(quadrant)))
    if research.get("sources"):
        lines.extend(["", "## Sources"])
        lines.extend(f"- [{source['title']}]({source['uri']})" for source in research["sources"])
    _expanded(lines, research)
    write_text(path, "\n".join(lines) + "\n")


def write_business(path: Path, business: Dict) -> None:
    value = business.get("expectedBusinessValue") or {}
    lines: List[str] = ["# Business Analysis", "", "## Problem Statement", business.get("problemStatement", "")]
    lines.extend(["", "## Root Causes"])
    lines.extend(_bullets(business.get("rootCauseAnalysis")))
    lines.extend(["", "## Key Pain Points"])
    lines.extend(_bullets(business.get("keyPainPoints")))
    lines.extend(["", "## Expected Value", f"- ROI: {value.get('roi', '')}", f"- Efficiency: {value.get('efficiencyGains', '')}"])
    lines.extend(_bullets(value.get("otherBenefits")))
    if business.get("userStories"):
        lines.extend(["", "## User Stories"])
        lines.extend(_bullets(business["userStories"]))
    if business.get("mermaidDiagram"):
        lines.extend(["", "```mermaid", business["mermaidDiagram"], "```"])
    _expanded(lines, business)
    write_text(path, "\n".join(lines) + "\n")


def write_design(path: Path, design: Dict) -> None:
    status = "Approved" if design.get("isApproved") else "Draft"
    lines: List[str] = [
        "# Solution Design",
        "",
        f"Status: {status}",
        "",
        "## Overview",
        design.get("architectureOverview", ""),
        "",
        "## Key Components",
    ]
    lines.extend(_bullets(design.get("keyComponents")))
    lines.extend(["", "## Rationale", design.get("rationale", "")])
    mapping = design.get("businessMapping") or []
    if mapping:
        lines.extend(["", "## Business Mapping", "", "| Business Goal | Technical Solution | Outcome |", "| --- | --- | --- |"])
        lines.extend(f"| {m['businessGoal']} | {m['technicalSolution']} | {m['outcome']} |" for m in mapping)
    lines.extend(["", "```mermaid", design.get("mermaidCode", ""), "```"])
    _expanded(lines, design)
    write_text(path, "\n".join(lines) + "\n")


def write_cost_plan(path: Path, estimation: Dict) -> None:
    plan = estimation.get("optimalPlan") or {}
    weeks = int(plan.get("totalWeeks") or 0)
    week_keys = [str(week) for week in range(1, weeks + 1)]
    lines: List[str] = [
        "# Cost Estimation",
        "",
        f"Total weeks: {weeks}",
        f"Total cost: {plan.get('totalCost', 0):,.2f} USD",
        "",
        "| Role | Rate | " + " | ".join(f"W{key}" for key in week_keys) + " | Stress |",
        "| --- | --- | " + " | ".join("---" for _ in week_keys) + " | --- |",
    ]
    for role in plan.get("roles", []):
        allocations = role.get("allocations") or {}
        cells = " | ".join(str(allocations.get(key, 0)) for key in week_keys)
        stress = role.get("stress") or {}
        lines.append(
            f"| {role['role']} | {role['hourlyRate']} | {cells} | {stress.get('score', '-')} {stress.get('level', '')} |"
        )
    lines.extend(["", "## Reasoning", plan.get("reasoning", "")])
    comparison = estimation.get("proposalComparison")
    if comparison:
        lines.extend(
            [
                "",
                "## Comparison with Proposal",
                f"- Proposed weeks: {comparison.get('proposedWeeks')}",
                f"- Optimal weeks: {comparison.get('optimalWeeks')}",
                "",
                comparison.get("recommendation", ""),
            ]
        )
    write_text(path, "\n".join(lines) + "\n")


def write_image(path: Path, data_uri: str) -> Path:
    mime_type, payload = split_data_uri(data_uri)
    extension = mime_type.split("/")[-1].replace("jpeg", "jpg")
    target = path.with_suffix(f".{extension}")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(base64.b64decode(payload))
    return target


def export_state(out_dir: Path, state: Dict) -> List[Path]:
    """Write every available artifact of a session under ``out_dir``."""
    written: List[Path] = []
    renderers = [
        ("research", "kyc.md", write_research),
        ("business", "business_analysis.md", write_business),
        ("design", "solution_design.md", write_design),
        ("costEstimation", "cost_estimation.md", write_cost_plan),
    ]
    for key, filename, renderer in renderers:
        if state.get(key):
            renderer(out_dir / filename, state[key])
            written.append(out_dir / filename)
    for key, filename in (("proposalMarkdown", "proposal.md"), ("evaluationMarkdown", "evaluation.md")):
        if state.get(key):
            write_text(out_dir / filename, state[key])
            written.append(out_dir / filename)
    if state.get("metacognition"):
        write_json(out_dir / "metacognition.json", state["metacognition"])
        written.append(out_dir / "metacognition.json")
    for name, data_uri in (state.get("images") or {}).items():
        if data_uri:
            written.append(write_image(out_dir / "images" / name, data_uri))
    return written
