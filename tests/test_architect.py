import json

import pytest

from proposal_agent.agents.architect import ArchitectAgent, clean_diagram, normalize_design
from proposal_agent.agents.validator import ValidatorAgent
from proposal_agent.models import FALLBACK_MERMAID, ProposalRequest
from tests.fakes.scripted_adapter import ScriptedAdapter

RESEARCH = {"summary": "Retailer", "strategicGoals": ["Growth"], "detailedAnalysis": {}}
BUSINESS = {"problemStatement": "Slow orders", "rootCauseAnalysis": ["Monolith"], "keyPainPoints": ["Timeouts"]}
DESIGN_RESPONSE = {
    "thinking_process": "Serverless absorbs peaks.",
    "alternatives_discarded": "Kubernetes: too much ops overhead.",
    "architectureOverview": "Serverless order pipeline.",
    "keyComponents": ["API Gateway", "Lambda"],
    "rationale": "Elastic.",
    "mermaidCode": "graph LR\n  A-->B",
}


@pytest.fixture
def request_():
    return ProposalRequest(company_name="Acme", business_case="Orders are slow", hyperscaler="AWS")


def test_normalize_design_folds_snake_case_fields():
    design = normalize_design(DESIGN_RESPONSE)
    assert design["thinkingProcess"] == "Serverless absorbs peaks."
    assert design["alternativesDiscarded"] == "Kubernetes: too much ops overhead."
    assert "thinking_process" not in design


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("```mermaid\ngraph TD\n  A-->B\n```", "graph TD\n  A-->B"),
        ("```\nflowchart LR\n  A-->B\n```", "flowchart LR\n  A-->B"),
        ("graph TD\n  A-->B", "graph TD\n  A-->B"),
    ],
)
def test_clean_diagram(raw, expected):
    assert clean_diagram(raw) == expected


class TestDesign:
    def test_three_stage_sequence(self, make_agent, request_):
        adapter = ScriptedAdapter(
            "Use API Gateway and Lambda.",
            json.dumps(DESIGN_RESPONSE),
            "```mermaid\ngraph TD\n  User-->API\n```",
        )
        agent = make_agent(ArchitectAgent, adapter)

        design = agent.design(request_, RESEARCH, BUSINESS, density="medium")

        assert len(adapter.calls) == 3
        grounding, structured, diagram = [request for _, request in adapter.calls]
        assert grounding.grounded
        assert structured.response_schema is not None
        assert structured.response_mime_type == "application/json"
        assert "Use API Gateway and Lambda." in structured.contents
        assert "REFINEMENT MODE" not in structured.contents
        assert not diagram.grounded
        assert design["mermaidCode"] == "graph TD\n  User-->API"
        assert design["thinkingProcess"] == "Serverless absorbs peaks."

    def test_feedback_skips_grounding_and_embeds_current_design(self, make_agent, request_):
        adapter = ScriptedAdapter(json.dumps(DESIGN_RESPONSE), "graph TD\n  A-->C")
        agent = make_agent(ArchitectAgent, adapter)
        current = {"architectureOverview": "Old VM design", "mermaidCode": "graph TD\n  X-->Y"}

        agent.design(request_, RESEARCH, BUSINESS, feedback="Add a queue", current_design=current)

        assert len(adapter.calls) == 2
        prompt = adapter.prompts[0]
        assert "REFINEMENT MODE" in prompt
        assert "Add a queue" in prompt
        assert "Old VM design" in prompt
        assert "No specific grounding data available." in prompt

    def test_grounding_failure_uses_internal_knowledge(self, make_agent, request_):
        adapter = ScriptedAdapter(
            RuntimeError("search down"), RuntimeError("search down"), json.dumps(DESIGN_RESPONSE), "not a diagram"
        )
        logs = []
        agent = make_agent(ArchitectAgent, adapter, logs=logs)

        design = agent.design(request_, RESEARCH, BUSINESS)

        assert "No specific grounding data available." in adapter.prompts[2]
        assert "[Stage 1/3] Warning: Grounding failed. Using internal knowledge base." in logs
        # refinement without a graph keeps the original diagram
        assert design["mermaidCode"] == "graph LR\n  A-->B"

    def test_design_failure_returns_fallback_without_diagram_pass(self, make_agent, request_):
        adapter = ScriptedAdapter("grounding", "{}")
        agent = make_agent(ArchitectAgent, adapter)

        design = agent.design(request_, RESEARCH, BUSINESS)

        assert design["mermaidCode"] == FALLBACK_MERMAID
        assert design["architectureOverview"].endswith("(Fallback Design)")
        assert len(adapter.calls) == 2

    def test_request_model_overrides_settings(self, make_agent):
        request = ProposalRequest(company_name="Acme", business_case="x", text_model="custom-model")
        adapter = ScriptedAdapter("grounding", json.dumps(DESIGN_RESPONSE), "graph TD\n  A-->B")
        agent = make_agent(ArchitectAgent, adapter)

        agent.design(request, RESEARCH, BUSINESS)

        assert adapter.calls[1][0] == "custom-model"


class TestResearchServices:
    def test_grounded_search_on_fast_model(self, make_agent, request_, settings):
        adapter = ScriptedAdapter("Use EventBridge and Step Functions.")
        logs = []
        agent = make_agent(ArchitectAgent, adapter, logs=logs)

        services = agent.research_services(request_, "Orders are slow")

        assert services == "Use EventBridge and Step Functions."
        model, request = adapter.calls[0]
        assert model == settings.fast_model
        assert request.grounded
        assert "Orders are slow" in request.contents
        assert "[Grounding Architect] Researching optimal AWS services..." in logs

    def test_empty_answer(self, make_agent, request_):
        agent = make_agent(ArchitectAgent, ScriptedAdapter(""))
        assert agent.research_services(request_, "Orders are slow") == "No services identified."

    def test_failure_falls_back_to_standard_services(self, make_agent, request_):
        adapter = ScriptedAdapter(RuntimeError("search down"), RuntimeError("search down"))
        logs = []
        agent = make_agent(ArchitectAgent, adapter, logs=logs)

        assert agent.research_services(request_, "Orders are slow") == "Standard cloud services will be used."
        assert "Grounding failed: search down" in logs


class TestValidator:
    def test_parses_verdict(self, make_agent):
        payload = {"isValid": False, "score": 4, "critique": "Reconciliation missing.", "missingRequirements": ["Recon"]}
        agent = make_agent(ValidatorAgent, ScriptedAdapter(json.dumps(payload)))

        result = agent.validate(BUSINESS, DESIGN_RESPONSE)

        assert result.is_valid is False
        assert result.score == 4
        assert result.missing_requirements == ["Recon"]

    def test_prompt_carries_business_and_design(self, make_agent):
        adapter = ScriptedAdapter('{"isValid": true, "score": 9, "critique": "ok"}')
        make_agent(ValidatorAgent, adapter).validate(BUSINESS, DESIGN_RESPONSE)
        assert "Monolith" in adapter.prompts[0]
        assert "Serverless order pipeline." in adapter.prompts[0]

    @pytest.mark.parametrize("outcome", ["nonsense", '{"score": 3}', RuntimeError("timeout")])
    def test_fails_open(self, make_agent, outcome):
        agent = make_agent(ValidatorAgent, ScriptedAdapter(outcome, outcome))

        result = agent.validate(BUSINESS, DESIGN_RESPONSE)

        assert result.is_valid is True
        assert result.score == 5
        assert result.critique == "Validation API failed, skipping check."
