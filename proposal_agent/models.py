from __future__ import annotations

import copy
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

HYPERSCALERS = ("AWS", "Azure", "GCP", "OCI")
CONTEXT_DENSITIES = ("low", "medium", "high")
EXPAND_DENSITIES = ("Low", "Medium", "High")
LOG_TYPES = ("info", "success", "thinking", "error", "paused")

FALLBACK_MERMAID = "graph TD;\nClient-->LoadBalancer;\nLoadBalancer-->AppServer;\nAppServer-->Database;"
FALLBACK_MERMAID_SENTINEL = "graph TD;\nClient-->LoadBalancer"


class AppStep(str, Enum):
    INPUT = "INPUT"
    PROCESSING = "PROCESSING"
    RESULT = "RESULT"


@dataclass
class ProposalRequest:
    company_name: str
    business_case: str
    hyperscaler: str = "AWS"
    language: str = "English"
    text_model: Optional[str] = None
    image_model: Optional[str] = None
    context_density: str = "high"
    api_delay: float = 0.0

    def __post_init__(self) -> None:
        if self.hyperscaler not in HYPERSCALERS:
            raise ValueError(f"Unsupported hyperscaler: {self.hyperscaler}")
        if self.context_density not in CONTEXT_DENSITIES:
            raise ValueError(f"Unsupported context density: {self.context_density}")
        if not self.company_name.strip():
            raise ValueError("company_name must not be empty")

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict) -> "ProposalRequest":
        return cls(**payload)


@dataclass
class AgentLog:
    message: str
    type: str = "info"
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ValidationResult:
    is_valid: bool
    score: float
    critique: str
    missing_requirements: List[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict) -> "ValidationResult":
        if not isinstance(payload.get("isValid"), bool):
            raise ValueError("Validation payload is missing a boolean isValid.")
        return cls(
            is_valid=payload["isValid"],
            score=float(payload.get("score", 0)),
            critique=str(payload.get("critique", "")),
            missing_requirements=[str(item) for item in payload.get("missingRequirements", [])],
        )

    @classmethod
    def fail_open(cls) -> "ValidationResult":
        return cls(
            is_valid=True,
            score=5,
            critique="Validation API failed, skipping check.",
            missing_requirements=[],
        )


def empty_detailed_analysis() -> Dict:
    return {
        "industryLandscape": "Data unavailable",
        "challengesAndRisks": [],
        "regulatoryConstraints": [],
        "keyStakeholders": [],
        "hyperscalerAffinity": "Unknown",
        "businessMaturity": "Unknown",
        "eaMaturity": "Unknown",
        "genAiMaturity": "Unknown",
        "competitors": {"global": [], "local": []},
        "swot": {"strengths": [], "weaknesses": [], "opportunities": [], "threats": []},
    }


def fallback_research(company_name: str) -> Dict:
    detailed = empty_detailed_analysis()
    detailed.update(
        {
            "industryLandscape": "General Industry",
            "challengesAndRisks": ["Legacy Systems", "Cost of Inaction: High operational costs"],
            "keyStakeholders": ["CIO", "CTO"],
            "businessMaturity": "Average",
            "eaMaturity": "Low AI Adoption",
            "genAiMaturity": "Low",
        }
    )
    return {
        "summary": f"Could not retrieve real-time data for {company_name}.",
        "strategicGoals": ["Digital Transformation", "Operational Efficiency"],
        "detailedAnalysis": detailed,
        "sources": [],
        "expandedContent": {},
    }


def fallback_business_analysis(business_case: str) -> Dict:
    return {
        "problemStatement": business_case,
        "rootCauseAnalysis": [],
        "currentProcessFlaws": [],
        "expectedBusinessValue": {"roi": "Unknown", "efficiencyGains": "Unknown", "otherBenefits": []},
        "keyPainPoints": [],
        "userStories": [],
        "mermaidDiagram": "",
        "expandedContent": {},
    }


def fallback_design() -> Dict:
    return {
        "architectureOverview": "High-Availability Cloud Architecture (Fallback Design)",
        "keyComponents": [
            "Managed Compute Service",
            "Relational Database Service",
            "Object Storage",
            "CDN",
        ],
        "rationale": "Standard industry best practices were applied as a fallback due to an error.",
        "mermaidCode": FALLBACK_MERMAID,
    }


def empty_images() -> Dict[str, Optional[str]]:
    return {
        "coverImage": None,
        "kycInfographic": None,
        "businessInfographic": None,
        "architectureInfographic": None,
        "costInfographic": None,
        "metacognitionInfographic": None,
    }


def fresh_state() -> Dict:
    return copy.deepcopy(
        {
            "request": None,
            "research": None,
            "business": None,
            "design": None,
            "proposalMarkdown": "",
            "costEstimation": None,
            "metacognition": None,
            "images": empty_images(),
            "evaluationMarkdown": "",
            "evaluationScore": 0,
            "step": AppStep.INPUT.value,
            "logs": [],
        }
    )
