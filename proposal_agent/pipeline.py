from __future__ import annotations

import functools
import json
import re
import time
from typing import Any, Callable, Dict, Optional

from proposal_agent.adapters.gateway import LLMGateway
from proposal_agent.adapters.gemini_adapter import GeminiAdapter
from proposal_agent.adapters.llm_base import LLMAdapter
from proposal_agent.adapters.mock_adapter import MockAdapter
from proposal_agent.adapters.openai_adapter import OpenAIAdapter
from proposal_agent.agents.architect import ArchitectAgent
from proposal_agent.agents.auditor import AuditorAgent
from proposal_agent.agents.business_analyst import BusinessAnalystAgent
from proposal_agent.agents.estimator import COST_SCHEMA, EstimatorAgent, recalculate_total_cost
from proposal_agent.agents.expander import ExpanderAgent
from proposal_agent.agents.metacognition import MetacognitionAgent
from proposal_agent.agents.researcher import ResearcherAgent
from proposal_agent.agents.validator import ValidatorAgent
from proposal_agent.agents.visualizer import INFOGRAPHIC_KEYS, VisualizerAgent
from proposal_agent.agents.writer import WriterAgent
from proposal_agent.artifacts.cover import fetch_company_logo
from proposal_agent.artifacts.proposal_sync import (
    SyncPreview,
    apply_sync,
    insert_section_expansion,
    sync_preview,
)
from proposal_agent.gates.audit import extract_improvements, needs_revision, parse_evaluation_score
from proposal_agent.gates.parsers import validate_artifact
from proposal_agent.models import AgentLog, AppStep, ProposalRequest, fresh_state
from proposal_agent.prompts import PromptLibrary
from proposal_agent.settings import PipelineSettings

TRANSITIONS = {
    AppStep.INPUT: {AppStep.PROCESSING},
    AppStep.PROCESSING: {AppStep.RESULT, AppStep.INPUT},
    AppStep.RESULT: {AppStep.PROCESSING, AppStep.INPUT},
}

EXPANDABLE = ("kyc", "business", "design", "proposal", "metacognition")
ARTIFACT_KEYS = {"kyc": "research", "business": "business", "design": "design", "metacognition": "metacognition"}
COVER_IMAGE = re.compile(r"!\[Cover Image\]\(data:image/[^)]+\)")


class PipelineError(RuntimeError):
    pass


class PhaseTransitionError(PipelineError):
    pass


class MissingArtifactError(PipelineError):
    pass


def build_adapter(mode: str, provider: str = "gemini") -> LLMAdapter:
    if mode == "mock":
        return MockAdapter()
    if provider == "gemini":
        return GeminiAdapter()
    if provider == "openai":
        return OpenAIAdapter()
    raise ValueError(f"Unknown provider: {provider}")


def user_action(label: str):
    """Log any failure of a user action as an ``error`` entry and return ``None``.

    Committed artifacts are left in place.
    """

    def decorator(method):
        @functools.wraps(method)
        def wrapper(self: "PipelineController", *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except Exception as exc:
                print(f"[pipeline] {label} failed: {exc}")
                self.add_log(f"Error {label}: {exc}", "error")
                return None

        return wrapper

    return decorator


class PipelineController:
    """Owns the session state and runs one stage per user action.

    ``run`` performs the blocking research, analysis and design sequence.
    Everything downstream (proposal, audit, cost, metacognition) happens only
    when the matching action is called; nothing cascades.
    """

    def __init__(
        self,
        adapter: LLMAdapter,
        settings: Optional[PipelineSettings] = None,
        state: Optional[Dict[str, Any]] = None,
        sleep: Callable[[float], None] = time.sleep,
        logo_fetcher: Callable[[str], Optional[str]] = fetch_company_logo,
    ) -> None:
        self.adapter = adapter
        self.base_settings = settings or PipelineSettings()
        self.state = state or fresh_state()
        self._sleep = sleep
        self._logo_fetcher = logo_fetcher
        self._configure()

    def _configure(self) -> None:
        settings = self.base_settings
        if self.state.get("request"):
            request = self.request
            settings = settings.with_overrides(
                api_delay=request.api_delay,
                text_model=request.text_model,
                image_model=request.image_model,
            )
        self.settings = settings
        gateway = LLMGateway(self.adapter, settings, sleep=self._sleep)
        prompts = PromptLibrary(settings.prompts_dir)
        shared = dict(gateway=gateway, settings=settings, prompts=prompts, on_log=self._thinking)
        self.researcher = ResearcherAgent(**shared)
        self.business_analyst = BusinessAnalystAgent(**shared)
        self.architect = ArchitectAgent(**shared)
        self.validator = ValidatorAgent(**shared)
        self.writer = WriterAgent(**shared)
        self.auditor = AuditorAgent(**shared)
        self.estimator = EstimatorAgent(**shared)
        self.metacognition = MetacognitionAgent(**shared, pause=self._sleep)
        self.visualizer = VisualizerAgent(**shared, logo_fetcher=self._logo_fetcher)
        self.expander = ExpanderAgent(**shared)

    @property
    def request(self) -> ProposalRequest:
        return ProposalRequest.from_dict(self.state["request"])

    @property
    def step(self) -> AppStep:
        return AppStep(self.state["step"])

    def add_log(self, message: str, type: str = "info") -> None:
        entry = AgentLog(message=message, type=type)
        self.state["logs"].append(entry.to_dict())
        print(f"[pipeline] {type}: {message}")

    def _thinking(self, message: str) -> None:
        self.add_log(message, "thinking")

    def _transition(self, target: AppStep) -> None:
        if target not in TRANSITIONS[self.step]:
            raise PhaseTransitionError(f"Illegal transition {self.step.value} -> {target.value}")
        self.state["step"] = target.value

    def _require(self, *keys: str) -> None:
        missing = [key for key in keys if not self.state.get(key)]
        if missing:
            raise MissingArtifactError(f"Missing required artifacts: {', '.join(missing)}")

    def reset(self) -> None:
        if self.step != AppStep.INPUT:
            self._transition(AppStep.INPUT)
        self.state = fresh_state()
        self._configure()

    def run(self, request: ProposalRequest) -> Dict[str, Any]:
        self._transition(AppStep.PROCESSING)
        self.state = fresh_state()
        self.state["step"] = AppStep.PROCESSING.value
        self.state["request"] = request.to_dict()
        self._configure()

        self.add_log(f"Initialized agent for company: {request.company_name}")
        self.add_log(
            f"Configuration: Density={request.context_density.upper()}, API Delay={request.api_delay}s"
        )
        if self.settings.api_delay > 0:
            self.add_log(f"Pacing enabled: {self.settings.api_delay}s before every model call.", "paused")

        try:
            self._run_blocking_phase(request)
        except Exception as exc:
            print(f"[pipeline] run aborted: {exc}")
            if self.step == AppStep.PROCESSING:
                self._transition(AppStep.INPUT)
            self.add_log(f"Critical Error: {exc}", "error")
        return self.state

    def _run_blocking_phase(self, request: ProposalRequest) -> None:
        self.add_log(
            f"Starting KYC Research using Google Search Grounding (Language: {request.language})...",
            "thinking",
        )
        research = self.researcher.conduct_research(request.company_name, request.language)
        self.state["research"] = research
        self.add_log("Research complete. Identified strategic goals and SWOT analysis.", "success")
        self.state["images"]["kycInfographic"] = self.visualizer.kyc_infographic(
            request.company_name, research, request.language
        )

        self.add_log("Analyzing Business Case & ROI...", "thinking")
        business = self.business_analyst.analyze(
            request.company_name, request.business_case, request.language
        )
        self.state["business"] = business
        self.add_log("Business Case Analysis Complete.", "success")
        self.state["images"]["businessInfographic"] = self.visualizer.business_infographic(
            business, request.language
        )

        self._transition(AppStep.RESULT)
        self.add_log(f'Designing Architecture for "{request.company_name}"...', "thinking")
        self._design_with_validation()
        self.add_log("Design Phase Complete. Waiting for user approval to generate proposal...", "success")

    def _design_with_validation(self) -> Dict[str, Any]:
        request = self.request
        research, business = self.state["research"], self.state["business"]
        design = self.architect.design(request, research, business, density=request.context_density)

        self.add_log("Validating Architecture Logic against Business Requirements...", "thinking")
        validation = self.validator.validate(business, design)
        if not validation.is_valid:
            self.add_log(f"Architecture Logic Check Failed (Score: {validation.score:g}/10).", "error")
            self.add_log(f'Critique: "{validation.critique}"')
            self.add_log("Re-designing architecture with corrective feedback...", "thinking")
            design = self.architect.design(
                request,
                research,
                business,
                feedback=validation.critique,
                current_design=design,
                density=request.context_density,
            )
            self.add_log("Re-design complete.", "success")
        else:
            self.add_log(f"Architecture Logic Validated (Score: {validation.score:g}/10).", "success")

        self.state["design"] = design
        self.state["images"]["architectureInfographic"] = self.visualizer.architecture_infographic(
            design, request.hyperscaler, request.language
        )
        return design

    def _cover_context(self, include_analysis: bool = False) -> Dict[str, Any]:
        research = self.state["research"]
        request = self.request
        context = {
            "summary": research.get("summary"),
            "businessCase": request.business_case,
            "strategicGoals": research.get("strategicGoals"),
            "hyperScaler": request.hyperscaler,
            "problemStatement": (self.state.get("business") or {}).get("problemStatement"),
        }
        if include_analysis:
            context["analysis"] = research.get("detailedAnalysis")
        return context

    @user_action("generating proposal")
    def generate_proposal(self) -> Optional[str]:
        self._require("request", "research", "business", "design")
        request = self.request
        self.add_log("Generating cover image with logos...", "thinking")
        cover = self.visualizer.cover_with_logos(request.company_name, self._cover_context())
        self.state["images"]["coverImage"] = cover

        self.add_log(f"Drafting initial proposal (Density: {request.context_density})...", "thinking")
        markdown = self.writer.generate(
            request,
            self.state["research"],
            self.state["business"],
            self.state["design"],
            images=self.state["images"],
            density=request.context_density,
        )
        self.state["proposalMarkdown"] = markdown
        self.add_log("Proposal generated. Ready for review.", "success")
        return markdown

    @user_action("during proposal refinement")
    def refine_proposal(self, feedback: Optional[str] = None) -> Optional[str]:
        """Rewrite the proposal from feedback, or from the last audit's improvements."""
        self._require("request", "research", "business", "design", "proposalMarkdown")
        if not feedback:
            self._require("evaluationMarkdown")
            feedback = extract_improvements(self.state["evaluationMarkdown"]).text
        request = self.request
        self.add_log("Refining Proposal based on user feedback...", "thinking")
        markdown = self.writer.generate(
            request,
            self.state["research"],
            self.state["business"],
            self.state["design"],
            images=self.state["images"],
            feedback=feedback,
            previous_proposal=self.state["proposalMarkdown"],
            density=request.context_density,
        )
        self.state["proposalMarkdown"] = markdown
        self.add_log("Proposal updated based on feedback.", "success")
        return markdown

    @user_action("in audit")
    def audit_proposal(self) -> Optional[int]:
        self._require("request", "proposalMarkdown")
        request = self.request
        self.add_log("Manual SMART Audit triggered...", "thinking")
        evaluation = self.auditor.evaluate(
            self.state["proposalMarkdown"], request.company_name, request.language
        )
        score = parse_evaluation_score(evaluation)
        improvements = extract_improvements(evaluation)
        self.state["evaluationMarkdown"] = evaluation
        self.state["evaluationScore"] = score
        self.add_log(
            f"Audit Complete. New Score: {score}/100 | Critical Issues: "
            f"{'YES' if improvements.has_critical else 'NO'}",
            "success",
        )
        if needs_revision(evaluation):
            self.add_log("Quality standard not met (SMART >= 90 and no criticals). Refinement suggested.")
        return score

    @user_action("during design refinement")
    def refine_design(self, feedback: str) -> Optional[Dict[str, Any]]:
        self._require("request", "research", "business", "design")
        request = self.request
        self.add_log("Refining Architecture based on user feedback...", "thinking")
        design = self.architect.design(
            request,
            self.state["research"],
            self.state["business"],
            feedback=feedback,
            current_design=self.state["design"],
            density=request.context_density,
        )
        self.state["design"] = design
        self.add_log("Architecture updated successfully. Generate the proposal when ready.", "success")
        return design

    @user_action("regenerating design")
    def regenerate_design(self) -> Optional[Dict[str, Any]]:
        self._require("request", "research", "business")
        self.add_log("Regenerating architecture from scratch...", "thinking")
        design = self._design_with_validation()
        self.add_log("Architecture regenerated.", "success")
        return design

    @user_action("approving design")
    def approve_design(self) -> bool:
        self._require("design")
        self.state["design"]["isApproved"] = True
        self.add_log("Architecture approved.", "success")
        return True

    @user_action("generating cost estimation")
    def estimate_cost(self) -> Optional[Dict[str, Any]]:
        self._require("request", "proposalMarkdown")
        request = self.request
        self.add_log("Initiating Execution Cost Estimation (Agentic)...", "thinking")
        estimation = self.estimator.estimate(
            self.state["proposalMarkdown"], request.language, request.text_model
        )
        estimation["isDirty"] = False
        self.state["costEstimation"] = estimation
        self.add_log("Cost Estimation generated successfully.", "success")
        self.state["images"]["costInfographic"] = self.visualizer.cost_infographic(
            estimation, request.language
        )
        return estimation

    @user_action("refining cost")
    def refine_cost(self, instruction: str) -> Optional[Dict[str, Any]]:
        self._require("request", "costEstimation", "proposalMarkdown")
        request = self.request
        self.add_log(f'Refining cost plan: "{instruction}"...', "thinking")
        current = {key: value for key, value in self.state["costEstimation"].items() if key != "isDirty"}
        estimation = self.estimator.refine(
            current,
            instruction,
            self.state["proposalMarkdown"],
            request.language,
            request.text_model,
        )
        estimation["isDirty"] = True
        self.state["costEstimation"] = estimation
        self.add_log("Cost plan refined.", "success")
        return estimation

    @user_action("saving cost estimation")
    def save_cost_estimation(self, edited: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Commit an edited plan (or the current one), recompute cost and refresh the infographic."""
        self._require("request")
        if edited is None:
            self._require("costEstimation")
            edited = self.state["costEstimation"]
        self.add_log("Saving cost estimation changes...", "thinking")
        estimation = {key: value for key, value in edited.items() if key != "isDirty"}
        validate_artifact(estimation, COST_SCHEMA, self.settings.schemas_dir)
        estimation = recalculate_total_cost(estimation)
        estimation["isDirty"] = False
        self.state["costEstimation"] = estimation

        self.add_log("Regenerating cost infographic with updated plan...", "thinking")
        self.state["images"]["costInfographic"] = self.visualizer.cost_infographic(
            estimation, self.request.language
        )
        self.add_log("Cost estimation saved and infographic regenerated.", "success")
        return estimation

    @user_action("in metacognition analysis")
    def analyze_metacognition(self) -> Optional[Dict[str, Any]]:
        self._require("request", "research", "business", "design", "proposalMarkdown", "costEstimation")
        request = self.request
        self.add_log("Starting Metacognition Analysis (ReAct)...", "thinking")
        analysis = self.metacognition.analyze(
            request.company_name,
            self.state["research"],
            self.state["business"],
            self.state["design"],
            self.state["proposalMarkdown"],
            self.state["costEstimation"],
            request.language,
            request.text_model,
        )
        self.state["metacognition"] = analysis
        self.add_log("Metacognition analysis complete.", "success")
        self.state["images"]["metacognitionInfographic"] = self.visualizer.metacognition_infographic(
            analysis, request.company_name, request.language
        )
        return analysis

    @user_action("expanding section")
    def expand_section(
        self, target: str, section: str, density: str = "Medium", instruction: str = ""
    ) -> Optional[str]:
        if target not in EXPANDABLE:
            raise ValueError(f"Unknown expansion target: {target}")
        self._require("request")
        request = self.request
        self.add_log(f"Expanding {target} section: {section} (Density: {density})...", "thinking")

        if target == "proposal":
            self._require("proposalMarkdown")
            expansion = self.expander.expand_proposal(
                section,
                self.state["proposalMarkdown"],
                request.business_case,
                request.language,
                density,
                instruction,
            )
            self.state["proposalMarkdown"] = insert_section_expansion(
                self.state["proposalMarkdown"], section, expansion
            )
        else:
            key = ARTIFACT_KEYS[target]
            self._require(key)
            artifact = self.state[key]
            if target == "kyc":
                expansion = self.expander.expand_research(
                    request.company_name,
                    section,
                    artifact.get("detailedAnalysis") or {},
                    request.language,
                    density,
                    instruction,
                )
            elif target == "business":
                expansion = self.expander.expand_business(
                    section, artifact, request.language, density, instruction
                )
            elif target == "design":
                expansion = self.expander.expand_architecture(
                    section, artifact, request.language, density, instruction
                )
            else:
                expansion = self.expander.expand_metacognition(
                    section,
                    self._metacognition_section(section),
                    artifact,
                    request.language,
                    request.text_model,
                )
            artifact.setdefault("expandedContent", {})[section] = expansion

        self.add_log(f"Section '{section}' expanded successfully.", "success")
        return expansion

    def _metacognition_section(self, section: str) -> str:
        analysis = self.state["metacognition"]
        existing = (analysis.get("expandedContent") or {}).get(section)
        if existing:
            return existing
        perspectives = {
            "customer perspective": "customerPerspective",
            "vendor perspective": "vendorPerspective",
            f"{self.settings.vendor_name.lower()} perspective": "vendorPerspective",
            "proposal perspective": "proposalPerspective",
        }
        key = perspectives.get(section.lower())
        if key and analysis.get(key):
            return json.dumps(analysis[key], indent=2, ensure_ascii=False)
        return ""

    @user_action("updating section")
    def update_section(self, target: str, section: str, content: Optional[str]) -> None:
        """Replace or, with ``content=None``, delete a stored section expansion."""
        if target not in ARTIFACT_KEYS:
            raise ValueError(f"Unknown section target: {target}")
        key = ARTIFACT_KEYS[target]
        self._require(key)
        expanded = self.state[key].setdefault("expandedContent", {})
        if content is None:
            expanded.pop(section, None)
        else:
            expanded[section] = content
        self.add_log(
            f"{target.upper()} section '{section}' {'deleted' if content is None else 'updated'} manually."
        )

    def update_proposal(self, markdown: str) -> None:
        self.state["proposalMarkdown"] = markdown
        self.add_log("Proposal edited manually.")

    @user_action("regenerating infographic")
    def regenerate_infographic(self, kind: str) -> Optional[str]:
        self._require("request")
        request = self.request
        self.add_log(f"Regenerating {kind} infographic...", "thinking")
        if kind == "kyc":
            self._require("research")
            image = self.visualizer.kyc_infographic(request.company_name, self.state["research"], request.language)
        elif kind == "business":
            self._require("business")
            image = self.visualizer.business_infographic(self.state["business"], request.language)
        elif kind == "architecture":
            self._require("design")
            image = self.visualizer.architecture_infographic(
                self.state["design"], request.hyperscaler, request.language
            )
        elif kind == "cost":
            self._require("costEstimation")
            image = self.visualizer.cost_infographic(self.state["costEstimation"], request.language)
            self.state["costEstimation"]["isDirty"] = False
        elif kind == "metacognition":
            self._require("metacognition")
            image = self.visualizer.metacognition_infographic(
                self.state["metacognition"], request.company_name, request.language
            )
        else:
            raise ValueError(f"Unknown infographic kind: {kind}")
        self.state["images"][INFOGRAPHIC_KEYS[kind]] = image
        self.add_log(f"{kind} infographic regenerated.", "success")
        return image

    @user_action("regenerating cover")
    def regenerate_cover(self, instruction: str = "") -> Optional[str]:
        self._require("request", "research")
        self.add_log("Regenerating cover image...", "thinking")
        cover = self.visualizer.cover_with_logos(
            self.request.company_name, self._cover_context(include_analysis=True), instruction
        )
        if not cover:
            self.add_log("Cover image could not be regenerated.", "error")
            return None
        self.state["images"]["coverImage"] = cover
        markdown = self.state.get("proposalMarkdown")
        if markdown and COVER_IMAGE.search(markdown):
            self.state["proposalMarkdown"] = COVER_IMAGE.sub(
                lambda _: f"![Cover Image]({cover})", markdown, count=1
            )
        self.add_log("Cover image updated successfully.", "success")
        return cover

    @user_action("previewing sync")
    def sync_preview(self) -> Optional[SyncPreview]:
        self._require("request", "costEstimation", "proposalMarkdown")
        self.add_log("Generating sync preview...", "thinking")
        return sync_preview(
            self.state["proposalMarkdown"],
            self.state["costEstimation"],
            self.request.language,
            self.settings.vendor_name,
        )

    @user_action("syncing cost to proposal")
    def sync_cost_to_proposal(self) -> Optional[str]:
        self._require("request", "costEstimation", "proposalMarkdown")
        markdown = apply_sync(
            self.state["proposalMarkdown"],
            self.state["costEstimation"],
            self.request.language,
            self.settings.vendor_name,
        )
        self.state["proposalMarkdown"] = markdown
        self.add_log(
            f"Proposal updated with {self.settings.vendor_name} Team and WBS from Cost Estimation.",
            "success",
        )
        return markdown
