from __future__ import annotations

import textwrap
from pathlib import Path
from typing import List

from PIL import Image, ImageDraw, ImageFont

from batwatch.core.status import Alert


def _safe_font(size: int = 12) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    try:
        return ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", size=size
        )
    except OSError:
        return ImageFont.load_default()


def alert_lines(alert: Alert, width_chars: int = 32) -> List[str]:
    lines = [alert.summary]
    if alert.detail:
        lines += textwrap.wrap(alert.detail, width=width_chars)[:4]
    lines.append("dismiss manually" if alert.sticky else f"auto-dismiss {alert.timeout_ms} ms")
    return lines


def render_alert(width: int, height: int, alert: Alert) -> Image.Image:
    """1-bit alert card sized for a small e-paper panel."""
    img = Image.new("1", (width, height), 255)
    draw = ImageDraw.Draw(img)
    font = _safe_font(12)

    inverted = alert.sticky
    draw.rectangle((0, 0, width, 18), fill=0 if inverted else 255, outline=0)
    draw.text((4, 3), f"batwatch [{alert.urgency.value}]", font=font, fill=255 if inverted else 0)

    y = 24
    for line in alert_lines(alert):
        draw.text((4, y), line, font=font, fill=0)
        y += 14
        if y > height - 14:
            break
    return img


def save_alert_image(path: str, image: Image.Image) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    image.save(p)
    return p
