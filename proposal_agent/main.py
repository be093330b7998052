from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Any, Dict, Tuple

import yaml
from dotenv import load_dotenv

from proposal_agent.artifacts.writers import export_state
from proposal_agent.models import ProposalRequest
from proposal_agent.pipeline import PipelineController, build_adapter
from proposal_agent.sessions import SessionStore
from proposal_agent.settings import PipelineSettings
from proposal_agent.utils.io import read_json, read_text, write_text
from proposal_agent.utils.time import utc_timestamp

DEFAULT_BRIEF_TEMPLATE = """---
company_name: Acme Retail
hyperscaler: AWS
language: English
context_density: high
api_delay: 0
# text_model: gemini-3-pro-preview
# image_model: gemini-2.5-flash-image
---
# Business Case

Describe the client's problem, the outcome they expect and any known constraints.
"""

FRONT_MATTER_FIELDS = ("company_name", "hyperscaler", "language", "context_density", "api_delay", "text_model", "image_model")
PROVIDER_KEYS = {"gemini": "GEMINI_API_KEY", "openai": "OPENAI_API_KEY"}


def split_front_matter(text: str) -> Tuple[Dict[str, Any], str]:
    if not text.startswith("---"):
        return {}, text
    _, _, rest = text.partition("\n")
    header, separator, body = rest.partition("\n---")
    if not separator:
        return {}, text
    meta = yaml.safe_load(header) or {}
    if not isinstance(meta, dict):
        raise ValueError("Brief front matter must be a YAML mapping.")
    return meta, body.split("\n", 1)[1] if "\n" in body else ""


def parse_brief(text: str) -> ProposalRequest:
    meta, body = split_front_matter(text)
    unknown = sorted(set(meta) - set(FRONT_MATTER_FIELDS))
    if unknown:
        raise ValueError(f"Unknown brief fields: {', '.join(unknown)}")
    fields = {key: meta[key] for key in FRONT_MATTER_FIELDS if meta.get(key) is not None}
    if "company_name" not in fields:
        raise ValueError("Brief front matter must set company_name.")
    fields["company_name"] = str(fields["company_name"])
    if "api_delay" in fields:
        fields["api_delay"] = float(fields["api_delay"])
    return ProposalRequest(business_case=body.strip(), **fields)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Technical proposal agent")
    parser.add_argument("--mode", choices=["mock", "live"], required=True)
    parser.add_argument("--provider", choices=sorted(PROVIDER_KEYS), default=None)
    parser.add_argument("--session", help="Session id to act on")
    parser.add_argument("--sessions-dir", default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Research, business analysis and validated design")
    run.add_argument("--brief", required=True)

    commands.add_parser("proposal", help="Generate cover and proposal document")
    refine_proposal = commands.add_parser("refine-proposal")
    refine_proposal.add_argument("--feedback", help="Defaults to the last audit's improvements")
    commands.add_parser("audit", help="SMART audit of the current proposal")

    refine_design = commands.add_parser("refine-design")
    refine_design.add_argument("--feedback", required=True)
    commands.add_parser("regenerate-design")
    commands.add_parser("approve-design")

    commands.add_parser("estimate", help="Cost estimation from the proposal")
    refine_cost = commands.add_parser("refine-cost")
    refine_cost.add_argument("--instruction", required=True)
    save_cost = commands.add_parser("save-cost")
    save_cost.add_argument("--file", help="Edited cost estimation JSON")

    commands.add_parser("metacognition")

    expand = commands.add_parser("expand")
    expand.add_argument("--target", choices=["kyc", "business", "design", "proposal", "metacognition"], required=True)
    expand.add_argument("--section", required=True)
    expand.add_argument("--density", choices=["Low", "Medium", "High"], default="Medium")
    expand.add_argument("--instruction", default="")

    update = commands.add_parser("update-section")
    update.add_argument("--target", choices=["kyc", "business", "design", "metacognition"], required=True)
    update.add_argument("--section", required=True)
    content = update.add_mutually_exclusive_group(required=True)
    content.add_argument("--content-file")
    content.add_argument("--delete", action="store_true")

    infographic = commands.add_parser("infographic")
    infographic.add_argument("--kind", choices=["kyc", "business", "architecture", "cost", "metacognition"], required=True)
    cover = commands.add_parser("cover")
    cover.add_argument("--instruction", default="")

    commands.add_parser("sync-preview")
    commands.add_parser("sync", help="Rebuild team and timeline sections from the cost plan")

    commands.add_parser("sessions", help="List saved sessions")
    commands.add_parser("delete-session")
    export = commands.add_parser("export", help="Write session artifacts to a run folder")
    export.add_argument("--out", default=None)
    return parser


def _ensure_env(provider: str) -> None:
    key = PROVIDER_KEYS[provider]
    if not os.getenv(key):
        raise RuntimeError(
            f"Missing required API keys: {key}. Create a .env file from .env.example and set the keys."
        )


def _dispatch(controller: PipelineController, args: argparse.Namespace) -> Any:
    command = args.command
    if command == "proposal":
        return controller.generate_proposal()
    if command == "refine-proposal":
        return controller.refine_proposal(args.feedback)
    if command == "audit":
        return controller.audit_proposal()
    if command == "refine-design":
        return controller.refine_design(args.feedback)
    if command == "regenerate-design":
        return controller.regenerate_design()
    if command == "approve-design":
        return controller.approve_design()
    if command == "estimate":
        return controller.estimate_cost()
    if command == "refine-cost":
        return controller.refine_cost(args.instruction)
    if command == "save-cost":
        edited = read_json(Path(args.file)) if args.file else None
        return controller.save_cost_estimation(edited)
    if command == "metacognition":
        return controller.analyze_metacognition()
    if command == "expand":
        return controller.expand_section(args.target, args.section, args.density, args.instruction)
    if command == "update-section":
        content = None if args.delete else read_text(Path(args.content_file))
        return controller.update_section(args.target, args.section, content)
    if command == "infographic":
        return controller.regenerate_infographic(args.kind)
    if command == "cover":
        return controller.regenerate_cover(args.instruction)
    if command == "sync-preview":
        preview = controller.sync_preview()
        if preview:
            print(f"--- current team ---\n{preview.original_team_section}\n--- new team ---\n{preview.team_section}")
            print(f"--- current timeline ---\n{preview.original_wbs_section}\n--- new timeline ---\n{preview.wbs_section}")
        return preview
    if command == "sync":
        return controller.sync_cost_to_proposal()
    raise ValueError(f"Unknown command: {command}")


def main() -> None:
    args = build_parser().parse_args()
    base_dir = Path(__file__).resolve().parents[1]
    store = SessionStore(Path(args.sessions_dir) if args.sessions_dir else base_dir / "runs" / "sessions")

    if args.command == "sessions":
        for summary in store.list():
            print(json.dumps(summary, ensure_ascii=False))
        return
    if args.command != "run" and not args.session:
        raise SystemExit(f"--session is required for '{args.command}'")
    if args.command == "delete-session":
        store.delete(args.session)
        return
    if args.command == "export":
        record = store.load(args.session)
        out_dir = Path(args.out) if args.out else base_dir / "runs" / utc_timestamp()
        for path in export_state(out_dir, record["data"]):
            print(path)
        return

    load_dotenv(base_dir / ".env")
    settings = PipelineSettings.from_env().with_overrides(provider=args.provider)
    if args.mode == "live":
        _ensure_env(settings.provider)
    adapter = build_adapter(args.mode, settings.provider)

    if args.command == "run":
        brief_path = Path(args.brief)
        if not brief_path.exists():
            write_text(brief_path, DEFAULT_BRIEF_TEMPLATE)
            print(f"Brief template created at {brief_path}. Please edit it with project details.")
            return
        request = parse_brief(read_text(brief_path))
        controller = PipelineController(adapter, settings)
        controller.run(request)
    else:
        controller = PipelineController(adapter, settings, state=store.load(args.session)["data"])
        _dispatch(controller, args)

    record = store.save(controller.state, session_id=args.session)
    print(f"Session: {record['id']}")
    logs = controller.state["logs"]
    if logs and logs[-1]["type"] == "error":
        raise SystemExit(1)


if __name__ == "__main__":
    main()
