from __future__ import annotations

import colorsys
from typing import Dict, Iterable, Mapping

PALETTE = (
    "#2563eb",
    "#16a34a",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#0f766e",
    "#ec4899",
    "#14b8a6",
    "#f97316",
    "#6366f1",
    "#84cc16",
    "#06b6d4",
)

GOLDEN_ANGLE = 137.508


def _hex_from_hsl(hue: float, saturation: float = 0.62, lightness: float = 0.52) -> str:
    r, g, b = colorsys.hls_to_rgb((hue % 360) / 360, lightness, saturation)
    return "#{:02x}{:02x}{:02x}".format(round(r * 255), round(g * 255), round(b * 255))


def color_for(index: int) -> str:
    if index < len(PALETTE):
        return PALETTE[index]
    # past the palette, spread hues by the golden angle so neighbours stay distinct
    return _hex_from_hsl(index * GOLDEN_ANGLE)


def generate_color_map(items: Iterable[str], existing: Mapping[str, str] | None = None) -> Dict[str, str]:
    """Return a new map with a colour for every item; existing assignments never change."""
    out: Dict[str, str] = dict(existing or {})
    next_index = len(out)
    for name in items:
        if not name or name in out:
            continue
        out[name] = color_for(next_index)
        next_index += 1
    return out
