from __future__ import annotations

import base64
import io
import re
from pathlib import Path
from typing import Optional

import httpx
from PIL import Image, ImageDraw, ImageFont

from proposal_agent.adapters.llm_base import split_data_uri

LOGO_ENDPOINT = "https://logo.clearbit.com/{domain}"
LOGO_TLDS = ("com", "cl", "co", "net")
BAR_COLOR = (255, 255, 255, 217)
TEXT_COLOR = (30, 41, 59, 255)
LOGO_MARGIN = 40


def candidate_logo_domains(company_name: str) -> list[str]:
    clean = re.sub(r"[^a-z0-9]", "", company_name.lower())
    if not clean:
        return []
    return [f"{clean}.{tld}" for tld in LOGO_TLDS]


def fetch_company_logo(company_name: str, client: Optional[httpx.Client] = None) -> Optional[str]:
    """Try guessed domains against the logo lookup; first success wins."""
    owns_client = client is None
    client = client or httpx.Client(timeout=10.0, follow_redirects=True)
    try:
        for domain in candidate_logo_domains(company_name):
            try:
                response = client.get(LOGO_ENDPOINT.format(domain=domain))
            except httpx.HTTPError:
                continue
            if response.is_success and response.content:
                mime_type = response.headers.get("content-type", "image/png").split(";")[0]
                encoded = base64.b64encode(response.content).decode("ascii")
                return f"data:{mime_type};base64,{encoded}"
        print(f"[cover] could not fetch logo for {company_name}")
        return None
    finally:
        if owns_client:
            client.close()


def _decode_image(data_uri: str) -> Image.Image:
    _, payload = split_data_uri(data_uri)
    return Image.open(io.BytesIO(base64.b64decode(payload))).convert("RGBA")


def _encode_png(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def _font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _paste_scaled(canvas: Image.Image, logo: Image.Image, x: int, y: int, height: int) -> int:
    width = max(1, round(logo.width / logo.height * height))
    scaled = logo.resize((width, height))
    canvas.alpha_composite(scaled, (x, y))
    return width


def _draw_name(draw: ImageDraw.ImageDraw, text: str, x: int, y: int, height: int, align_right: bool = False) -> None:
    font = _font(max(8, round(height * 0.6)))
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    if align_right:
        x = x - (right - left)
    draw.text((x, y + (height - (bottom - top)) // 2), text, fill=TEXT_COLOR, font=font)


def composite_logos_on_cover(
    base_cover: str,
    customer_logo: Optional[str],
    company_name: str,
    vendor_name: str = "",
    vendor_logo: Optional[Path] = None,
) -> str:
    """Draw a light footer bar with the client mark on the left and the vendor mark on the right.

    Missing logos degrade to the upper-cased name. Any imaging failure
    returns the untouched base cover.
    """
    try:
        canvas = _decode_image(base_cover)
        logo_height = int(min(80, canvas.height * 0.08)) or 1
        logo_y = canvas.height - logo_height - 30

        overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        ImageDraw.Draw(overlay).rectangle(
            [0, canvas.height - logo_height - 60, canvas.width, canvas.height], fill=BAR_COLOR
        )
        canvas.alpha_composite(overlay)
        draw = ImageDraw.Draw(canvas)

        right_edge = canvas.width - LOGO_MARGIN
        if vendor_logo and Path(vendor_logo).exists():
            vendor = Image.open(vendor_logo).convert("RGBA")
            width = max(1, round(vendor.width / vendor.height * logo_height))
            _paste_scaled(canvas, vendor, right_edge - width, logo_y, logo_height)
        elif vendor_name:
            _draw_name(draw, vendor_name.upper(), right_edge, logo_y, logo_height, align_right=True)

        placed = False
        if customer_logo:
            try:
                _paste_scaled(canvas, _decode_image(customer_logo), LOGO_MARGIN, logo_y, logo_height)
                placed = True
            except (OSError, ValueError) as exc:
                print(f"[cover] customer logo unreadable, drawing name instead: {exc}")
        if not placed:
            _draw_name(draw, company_name.upper(), LOGO_MARGIN, logo_y, logo_height)

        return _encode_png(canvas)
    except (OSError, ValueError) as exc:
        print(f"[cover] logo composite error: {exc}")
        return base_cover
