from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any, Dict

from proposal_agent.utils.io import read_text


def as_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


class PromptLibrary:
    """Loads ``configs/prompts/<name>.md`` templates and fills ``$placeholders``.

    Templates are opaque: values are substituted verbatim and a missing
    placeholder raises ``KeyError`` instead of leaking ``$name`` to the model.
    """

    def __init__(self, prompts_dir: Path) -> None:
        self.prompts_dir = Path(prompts_dir)
        self._cache: Dict[str, Template] = {}

    def template(self, name: str) -> Template:
        if name not in self._cache:
            self._cache[name] = Template(read_text(self.prompts_dir / f"{name}.md"))
        return self._cache[name]

    def render(self, name: str, /, **values: Any) -> str:
        rendered = {
            key: value if isinstance(value, str) else as_json(value)
            for key, value in values.items()
        }
        return self.template(name).substitute(rendered)
