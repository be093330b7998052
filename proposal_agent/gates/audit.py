from __future__ import annotations

import re
from dataclasses import dataclass

SCORE_ROW = re.compile(r"\|\s*\*\*\*Nota:\*\*\*\s*\|\s*(\d+)")
IMPROVEMENTS_HEADER = re.compile(r"##\s+.*(?:Improve|Mejorar|Crític|Critic).*", re.IGNORECASE)
CRITICAL_CELLS = (
    re.compile(r"\|\s*\*\*CRÍTICO\*\*\s*\|"),
    re.compile(r"\|\s*CRÍTICO\s*\|"),
    re.compile(r"\|\s*\*\*CRITICAL\*\*\s*\|"),
    re.compile(r"\|\s*CRITICAL\s*\|"),
)
DEFAULT_IMPROVEMENTS = "Please review the proposal for completeness."


@dataclass
class Improvements:
    text: str
    has_critical: bool


def parse_evaluation_score(markdown: str) -> int:
    """Read the audit score from the ``| ***Nota:*** | <n> |`` row, 0 if absent."""
    match = SCORE_ROW.search(markdown or "")
    if match:
        return int(match.group(1))
    return 0


def extract_improvements(markdown: str) -> Improvements:
    parts = IMPROVEMENTS_HEADER.split(markdown or "")
    text = parts[1] if len(parts) > 1 else ""
    has_critical = any(pattern.search(text) for pattern in CRITICAL_CELLS)
    return Improvements(text=text or DEFAULT_IMPROVEMENTS, has_critical=has_critical)


def needs_revision(markdown: str, threshold: int = 90) -> bool:
    return parse_evaluation_score(markdown) < threshold or extract_improvements(markdown).has_critical
