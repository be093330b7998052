from proposal_agent.agents.auditor import EVALUATION_ERROR, AuditorAgent
from proposal_agent.agents.writer import PROPOSAL_ERROR, WriterAgent
from proposal_agent.models import ProposalRequest
from tests.fakes.scripted_adapter import ScriptedAdapter

RESEARCH = {"summary": "Retailer", "strategicGoals": ["Growth"], "detailedAnalysis": {}}
BUSINESS = {"problemStatement": "Slow orders", "rootCauseAnalysis": [], "keyPainPoints": []}
DESIGN = {"architectureOverview": "Serverless", "keyComponents": ["Lambda"], "rationale": "x", "mermaidCode": "graph TD"}
COVER = "data:image/png;base64,AAAA"


def make_request(**overrides):
    fields = dict(company_name="Acme", business_case="Orders are slow", language="Spanish")
    fields.update(overrides)
    return ProposalRequest(**fields)


class TestWriter:
    def test_prepends_cover_and_unwraps_markdown(self, make_agent):
        adapter = ScriptedAdapter("```markdown\n# Propuesta\nTexto\n```")
        agent = make_agent(WriterAgent, adapter)

        markdown = agent.generate(make_request(), RESEARCH, BUSINESS, DESIGN, images={"coverImage": COVER})

        assert markdown == f"![Cover Image]({COVER})\n\n# Propuesta\nTexto"

    def test_prompt_carries_vendor_language_and_design(self, make_agent, settings):
        adapter = ScriptedAdapter("# Proposal")
        make_agent(WriterAgent, adapter).generate(make_request(), RESEARCH, BUSINESS, DESIGN)

        prompt = adapter.prompts[0]
        assert settings.vendor_name in prompt
        assert "Spanish" in prompt
        assert '"Serverless"' in prompt

    def test_feedback_adds_refinement_block(self, make_agent):
        adapter = ScriptedAdapter("# Proposal v2")
        agent = make_agent(WriterAgent, adapter)

        agent.generate(
            make_request(), RESEARCH, BUSINESS, DESIGN, feedback="Shorten the summary", previous_proposal="# v1"
        )

        assert "Shorten the summary" in adapter.prompts[0]

    def test_switches_to_fast_model_when_primary_fails(self, make_agent, settings):
        adapter = ScriptedAdapter(RuntimeError("overloaded"), RuntimeError("overloaded"), "# From fallback")
        logs = []
        agent = make_agent(WriterAgent, adapter, logs=logs)

        markdown = agent.generate(make_request(), RESEARCH, BUSINESS, DESIGN, images={"coverImage": COVER})

        assert markdown == "# From fallback"
        assert adapter.calls[0][0] == settings.text_model
        assert adapter.calls[2][0] == settings.fast_model
        assert f"Primary model failed. Switching to fallback ({settings.fast_model})..." in logs

    def test_total_failure_returns_error_document(self, make_agent):
        adapter = ScriptedAdapter(*[RuntimeError("down")] * 4)
        agent = make_agent(WriterAgent, adapter)

        assert agent.generate(make_request(), RESEARCH, BUSINESS, DESIGN) == PROPOSAL_ERROR
        assert len(adapter.calls) == 4


class TestAuditor:
    def test_images_are_stripped_before_sending(self, make_agent):
        adapter = ScriptedAdapter("| ***Nota:*** | 91 |")
        agent = make_agent(AuditorAgent, adapter)

        evaluation = agent.evaluate(f"![Cover Image]({COVER})\n# Proposal", "Acme", "English")

        assert evaluation == "| ***Nota:*** | 91 |"
        prompt = adapter.prompts[0]
        assert prompt.startswith("[stage:auditor]")
        assert "base64" not in prompt
        assert "# Proposal" in prompt

    def test_failure_returns_error_marker(self, make_agent):
        adapter = ScriptedAdapter(*[RuntimeError("down")] * 3)
        agent = make_agent(AuditorAgent, adapter)

        assert agent.evaluate("# Proposal", "Acme", "English") == EVALUATION_ERROR
        assert len(adapter.calls) == 3
