import json
import sys

import pytest

from proposal_agent import main as cli
from proposal_agent.main import DEFAULT_BRIEF_TEMPLATE, parse_brief, split_front_matter


class TestBrief:
    def test_default_template_parses(self):
        request = parse_brief(DEFAULT_BRIEF_TEMPLATE)
        assert request.company_name == "Acme Retail"
        assert request.hyperscaler == "AWS"
        assert request.api_delay == 0.0
        assert request.text_model is None
        assert request.business_case.startswith("# Business Case")

    def test_front_matter_overrides(self):
        request = parse_brief(
            "---\ncompany_name: Globex\nhyperscaler: GCP\nlanguage: Spanish\ncontext_density: low\n"
            "api_delay: 1.5\n---\nNeed a data lake.\n"
        )
        assert (request.hyperscaler, request.language, request.context_density) == ("GCP", "Spanish", "low")
        assert request.api_delay == 1.5
        assert request.business_case == "Need a data lake."

    def test_numeric_company_name_becomes_string(self):
        assert parse_brief("---\ncompany_name: 1999\n---\nx").company_name == "1999"

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValueError, match="Unknown brief fields: budget"):
            parse_brief("---\ncompany_name: Acme\nbudget: 10\n---\nx")

    def test_company_name_is_required(self):
        with pytest.raises(ValueError, match="company_name"):
            parse_brief("Just a business case without front matter.")

    def test_invalid_hyperscaler(self):
        with pytest.raises(ValueError, match="Unsupported hyperscaler"):
            parse_brief("---\ncompany_name: Acme\nhyperscaler: Heroku\n---\nx")

    def test_split_without_closing_marker(self):
        assert split_front_matter("---\ncompany_name: Acme\n") == ({}, "---\ncompany_name: Acme\n")


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["proposal-agent", *argv])
    cli.main()


class TestMain:
    def test_missing_brief_writes_template(self, monkeypatch, tmp_path):
        brief = tmp_path / "brief.md"

        run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", str(tmp_path / "sessions"), "run", "--brief", str(brief))

        assert brief.read_text(encoding="utf-8") == DEFAULT_BRIEF_TEMPLATE
        assert not (tmp_path / "sessions").exists()

    def test_run_then_act_on_session(self, monkeypatch, tmp_path, capsys):
        sessions_dir = str(tmp_path / "sessions")
        brief = tmp_path / "brief.md"
        brief.write_text(DEFAULT_BRIEF_TEMPLATE, encoding="utf-8")

        run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", sessions_dir, "run", "--brief", str(brief))
        session_id = capsys.readouterr().out.strip().splitlines()[-1].split("Session: ")[1]

        run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", sessions_dir, "--session", session_id, "approve-design")
        capsys.readouterr()

        run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", sessions_dir, "sessions")
        summaries = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert summaries[0]["id"] == session_id
        assert summaries[0]["previewText"] == "Acme Retail - AWS"

        out_dir = tmp_path / "export"
        run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", sessions_dir, "--session", session_id, "export", "--out", str(out_dir))
        assert "Status: Approved" in (out_dir / "solution_design.md").read_text(encoding="utf-8")
        assert (out_dir / "kyc.md").exists()

    def test_actions_require_a_session(self, monkeypatch, tmp_path):
        with pytest.raises(SystemExit, match="--session is required"):
            run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", str(tmp_path), "audit")

    def test_failed_action_exits_non_zero(self, monkeypatch, tmp_path, capsys):
        sessions_dir = str(tmp_path / "sessions")
        brief = tmp_path / "brief.md"
        brief.write_text(DEFAULT_BRIEF_TEMPLATE, encoding="utf-8")
        run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", sessions_dir, "run", "--brief", str(brief))
        session_id = capsys.readouterr().out.strip().splitlines()[-1].split("Session: ")[1]

        with pytest.raises(SystemExit) as excinfo:
            run_cli(monkeypatch, "--mode", "mock", "--sessions-dir", sessions_dir, "--session", session_id, "estimate")

        assert excinfo.value.code == 1

    def test_live_mode_requires_provider_key(self, monkeypatch, tmp_path):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.setattr(cli, "load_dotenv", lambda path: False)
        brief = tmp_path / "brief.md"
        brief.write_text(DEFAULT_BRIEF_TEMPLATE, encoding="utf-8")

        with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
            run_cli(monkeypatch, "--mode", "live", "--sessions-dir", str(tmp_path), "run", "--brief", str(brief))
