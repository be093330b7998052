from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

PACKAGE_DIR = Path(__file__).resolve().parent

REASONING_PRO = "gemini-3-pro-preview"
REASONING_FLASH = "gemini-3-flash-preview"
VISION_PRO = "gemini-3-pro-image-preview"
VISION_FLASH = "gemini-2.5-flash-image"

HIGH_OUTPUT_TOKENS = 65536
JSON_MIME_TYPE = "application/json"


@dataclass(frozen=True)
class PipelineSettings:
    """Per-session knobs shared by the gateway and every stage agent.

    ``api_delay`` is the pacing delay in seconds applied before each model
    call. It is carried here instead of in module state so two sessions in
    the same process can pace independently.
    """

    provider: str = "gemini"
    text_model: str = REASONING_PRO
    fast_model: str = REASONING_FLASH
    image_model: str = VISION_FLASH
    api_delay: float = 0.0
    max_retries: int = 2
    vendor_name: str = "Nubiral"
    vendor_logo: Optional[Path] = None
    prompts_dir: Path = PACKAGE_DIR / "configs" / "prompts"
    schemas_dir: Path = PACKAGE_DIR / "schemas"
    rates_path: Path = PACKAGE_DIR / "configs" / "rates.yaml"

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        vendor_logo = os.getenv("PROPOSAL_VENDOR_LOGO")
        return cls(
            provider=os.getenv("PROPOSAL_PROVIDER", "gemini"),
            text_model=os.getenv("PROPOSAL_TEXT_MODEL", REASONING_PRO),
            fast_model=os.getenv("PROPOSAL_FAST_MODEL", REASONING_FLASH),
            image_model=os.getenv("PROPOSAL_IMAGE_MODEL", VISION_FLASH),
            api_delay=float(os.getenv("PROPOSAL_API_DELAY", "0")),
            max_retries=int(os.getenv("PROPOSAL_MAX_RETRIES", "2")),
            vendor_name=os.getenv("PROPOSAL_VENDOR_NAME", "Nubiral"),
            vendor_logo=Path(vendor_logo) if vendor_logo else None,
        )

    def with_overrides(self, **changes) -> "PipelineSettings":
        return replace(self, **{key: value for key, value in changes.items() if value is not None})
