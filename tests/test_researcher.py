import json

from proposal_agent.adapters.llm_base import LLMResponse
from proposal_agent.agents.business_analyst import BusinessAnalystAgent
from proposal_agent.agents.researcher import ResearcherAgent, merge_repair, missing_research_field
from tests.fakes.scripted_adapter import ScriptedAdapter

SOURCES = [{"title": "Annual report", "uri": "https://acme.example/report"}]


def research_payload(risks=None, competitors=None):
    return {
        "summary": "Acme sells groceries.",
        "strategicGoals": ["Growth"],
        "detailedAnalysis": {
            "industryLandscape": "Competitive",
            "challengesAndRisks": risks if risks is not None else ["Legacy ERP"],
            "competitors": competitors if competitors is not None else {"global": ["Walmart"], "local": []},
        },
    }


class TestMissingField:
    def test_complete_payload(self):
        assert missing_research_field(research_payload()) is None

    def test_risks_checked_first(self):
        assert missing_research_field(research_payload(risks=[], competitors={})) == "Challenges & Risks"

    def test_competitors(self):
        assert missing_research_field(research_payload(competitors={"global": [], "local": []})) == "Competitors"


def test_merge_repair_is_shallow_and_repair_wins():
    merged = merge_repair({"summary": "old", "strategicGoals": ["a"]}, {"summary": "new"})
    assert merged == {"summary": "new", "strategicGoals": ["a"]}


class TestConductResearch:
    def test_complete_result_skips_repair(self, make_agent):
        adapter = ScriptedAdapter(LLMResponse(raw_text=json.dumps(research_payload()), sources=SOURCES))
        agent = make_agent(ResearcherAgent, adapter)

        result = agent.conduct_research("Acme", "English")

        assert len(adapter.calls) == 1
        assert adapter.calls[0][1].grounded
        assert result["sources"] == SOURCES
        assert result["expandedContent"] == {}
        # absent optional fields are filled with defaults
        assert result["detailedAnalysis"]["swot"]["strengths"] == []

    def test_sparse_result_triggers_one_repair(self, make_agent):
        repair = {"detailedAnalysis": research_payload(risks=["Supply chain"])["detailedAnalysis"]}
        adapter = ScriptedAdapter(
            LLMResponse(raw_text=json.dumps(research_payload(risks=[])), sources=SOURCES),
            json.dumps(repair),
        )
        logs = []
        agent = make_agent(ResearcherAgent, adapter, logs=logs)

        result = agent.conduct_research("Acme", "English")

        assert len(adapter.calls) == 2
        assert "Challenges & Risks" in adapter.prompts[1]
        assert result["detailedAnalysis"]["challengesAndRisks"] == ["Supply chain"]
        assert result["summary"] == "Acme sells groceries."
        assert "[ReAct Researcher] Success: Data repaired and synthesized." in logs

    def test_failed_repair_keeps_original_data(self, make_agent):
        adapter = ScriptedAdapter(
            json.dumps(research_payload(risks=[])), RuntimeError("quota"), RuntimeError("quota")
        )
        agent = make_agent(ResearcherAgent, adapter)

        result = agent.conduct_research("Acme", "English")

        assert result["summary"] == "Acme sells groceries."
        assert result["detailedAnalysis"]["challengesAndRisks"] == []

    def test_primary_failure_returns_fallback(self, make_agent, sleeps):
        adapter = ScriptedAdapter(*[RuntimeError("down")] * 3)
        agent = make_agent(ResearcherAgent, adapter)

        result = agent.conduct_research("Acme", "English")

        assert result["summary"] == "Could not retrieve real-time data for Acme."
        assert result["strategicGoals"] == ["Digital Transformation", "Operational Efficiency"]
        assert len(adapter.calls) == 3
        assert sleeps == [1.0, 2.0]

    def test_unparseable_text_still_yields_valid_research(self, make_agent):
        adapter = ScriptedAdapter("I could not find anything useful.")
        agent = make_agent(ResearcherAgent, adapter)

        result = agent.conduct_research("Acme", "English")

        assert result["summary"] == "Information about Acme"
        assert result["detailedAnalysis"]["industryLandscape"] == "Data unavailable"


class TestBusinessAnalyst:
    def test_valid_analysis(self, make_agent):
        payload = {"problemStatement": "Slow", "rootCauseAnalysis": ["Monolith"], "keyPainPoints": ["Timeouts"]}
        agent = make_agent(BusinessAnalystAgent, ScriptedAdapter(json.dumps(payload)))

        analysis = agent.analyze("Acme", "Orders are slow", "English")

        assert analysis["rootCauseAnalysis"] == ["Monolith"]
        assert analysis["expandedContent"] == {}

    def test_schema_violation_falls_back_to_business_case(self, make_agent):
        agent = make_agent(BusinessAnalystAgent, ScriptedAdapter('{"problemStatement": "Slow"}'))

        analysis = agent.analyze("Acme", "Orders are slow", "English")

        assert analysis["problemStatement"] == "Orders are slow"
        assert analysis["expectedBusinessValue"]["roi"] == "Unknown"
