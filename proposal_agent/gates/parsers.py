from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict

from jsonschema import ValidationError, validate

from proposal_agent.settings import PACKAGE_DIR
from proposal_agent.utils.io import read_json

SCHEMAS_DIR = PACKAGE_DIR / "schemas"

_JSON_FENCE = re.compile(r"```json([\s\S]*?)```")
_MARKDOWN_WRAPPER = re.compile(r"^```(?:markdown)?\s*([\s\S]*?)\s*```$")
_INLINE_IMAGE = re.compile(r"!\[([^\]]*)\]\(data:image/[^;]+;base64,[^)]+\)")


class ArtifactParseError(ValueError):
    """Model output could not be turned into the expected artifact."""


def extract_json(raw_text: str) -> str:
    """Best-effort isolation of a JSON object inside free-form model text.

    Tries a fenced ```json block first, then the first balanced ``{...}``
    span found by brace-depth counting, and finally returns the text with
    stray fences removed. The caller performs the actual parse.
    """
    if not raw_text:
        return "{}"

    fenced = _JSON_FENCE.search(raw_text)
    if fenced:
        return fenced.group(1).strip()

    start = raw_text.find("{")
    if start != -1:
        depth = 0
        for index in range(start, len(raw_text)):
            char = raw_text[index]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
            if depth == 0:
                return raw_text[start : index + 1]

    return raw_text.replace("```", "").strip()


def extract_markdown(raw_text: str) -> str:
    if not raw_text:
        return ""
    wrapped = _MARKDOWN_WRAPPER.match(raw_text)
    if wrapped:
        return wrapped.group(1).strip()
    return raw_text


def strip_images_for_context(markdown: str) -> str:
    return _INLINE_IMAGE.sub(r"![\1]([Image Data Omitted for Context Window])", markdown)


def parse_json_object(raw_text: str) -> Dict[str, Any]:
    candidate = extract_json(raw_text)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as exc:
        snippet = candidate.strip().replace("\n", " ")
        snippet = (snippet[:200] + "...") if len(snippet) > 200 else snippet
        raise ArtifactParseError(f"No JSON object found in response. Snippet: {snippet}") from exc
    if not isinstance(parsed, dict):
        raise ArtifactParseError(f"Expected a JSON object, got {type(parsed).__name__}.")
    return parsed


def load_schema(name: str, schemas_dir: Path = SCHEMAS_DIR) -> Dict[str, Any]:
    return read_json(Path(schemas_dir) / name)


def validate_artifact(
    payload: Dict[str, Any], schema_name: str, schemas_dir: Path = SCHEMAS_DIR
) -> Dict[str, Any]:
    try:
        validate(instance=payload, schema=load_schema(schema_name, schemas_dir))
    except ValidationError as exc:
        location = "/".join(str(part) for part in exc.absolute_path) or "<root>"
        raise ArtifactParseError(f"{schema_name}: {location}: {exc.message}") from exc
    return payload


def parse_artifact(
    raw_text: str, schema_name: str, schemas_dir: Path = SCHEMAS_DIR
) -> Dict[str, Any]:
    return validate_artifact(parse_json_object(raw_text), schema_name, schemas_dir)
