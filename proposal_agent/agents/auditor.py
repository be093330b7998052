from __future__ import annotations

from proposal_agent.gates.parsers import extract_markdown, strip_images_for_context

from .base import BaseAgent

EVALUATION_ERROR = "# Error in Evaluation service"


class AuditorAgent(BaseAgent):
    def evaluate(self, proposal_markdown: str, project_name: str, language: str) -> str:
        self.log(f"Initializing Auditor Agent (SMART Criteria) in {language}...")
        prompt = self.prompts.render(
            "auditor", project_name=project_name, language=language
        )
        try:
            self.log("Optimizing context window (stripping images)...")
            proposal = strip_images_for_context(proposal_markdown)
            self.log("Sending evaluation request...")
            response = self.call(
                self.settings.fast_model, f"{prompt}\n\n{proposal}", retries=2
            )
        except Exception as exc:
            print(f"[auditor] evaluation error: {exc}")
            self.log(f"Audit failed: {exc}")
            return EVALUATION_ERROR
        self.log("Audit complete.")
        return extract_markdown(response.raw_text or EVALUATION_ERROR)
