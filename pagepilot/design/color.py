"""
Color utilities for design-token generation.

Hex parsing is tolerant (3 or 6 digits, with or without '#'); anything else
falls back to the brand default instead of raising. Contrast follows the
WCAG 2.x relative-luminance definition.
"""

import colorsys
import logging
import re
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)

DEFAULT_PRIMARY = "#6d28d9"

_HEX_RE = re.compile(r"^#?([0-9a-f]{3}|[0-9a-f]{6})$")

RGB = Tuple[int, int, int]


def normalize_hex(value: object, fallback: str = DEFAULT_PRIMARY) -> str:
    """
    Normalise a color to lowercase 6-digit ``#rrggbb``.

    Returns:
        The normalised color, or ``fallback`` for anything unparseable
    """
    text = str(value or "").strip().lower()
    match = _HEX_RE.match(text)
    if not match:
        return fallback
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return f"#{digits}"


def hex_to_rgb(value: str) -> RGB:
    digits = normalize_hex(value)[1:]
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    def byte(v: float) -> int:
        return max(0, min(255, int(round(v))))

    return "#{:02x}{:02x}{:02x}".format(byte(r), byte(g), byte(b))


def hex_to_hsl(value: str) -> Tuple[float, float, float]:
    """Return (h, s, l), each in [0, 1]."""
    r, g, b = hex_to_rgb(value)
    h, l, s = colorsys.rgb_to_hls(r / 255.0, g / 255.0, b / 255.0)
    return h, s, l


def hsl_to_hex(h: float, s: float, l: float) -> str:
    h = h % 1.0
    s = max(0.0, min(1.0, s))
    l = max(0.0, min(1.0, l))
    r, g, b = colorsys.hls_to_rgb(h, l, s)
    return rgb_to_hex(r * 255.0, g * 255.0, b * 255.0)


def relative_luminance(value: str) -> float:
    def channel(v: int) -> float:
        c = v / 255.0
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = hex_to_rgb(value)
    return 0.2126 * channel(r) + 0.7152 * channel(g) + 0.0722 * channel(b)


def contrast_ratio(a: str, b: str) -> float:
    """WCAG contrast ratio between two colors, in [1, 21]."""
    la, lb = relative_luminance(a), relative_luminance(b)
    hi, lo = (la, lb) if la > lb else (lb, la)
    return (hi + 0.05) / (lo + 0.05)


@dataclass
class ContrastResult:
    color: str
    ratio: float
    ok: bool


def ensure_contrast(
    fg: str,
    bg: str,
    minimum: float = 4.5,
    max_steps: int = 40,
    step: float = 0.03,
) -> ContrastResult:
    """
    Nudge the foreground's lightness until it reaches ``minimum`` contrast.

    The foreground moves toward whichever extreme (black or white) can
    contrast more with the background. Best effort: after ``max_steps`` the
    best color seen is returned with ``ok=False``.
    """
    fg = normalize_hex(fg, "#000000")
    bg = normalize_hex(bg, "#ffffff")
    best, best_ratio = fg, contrast_ratio(fg, bg)
    if best_ratio >= minimum:
        return ContrastResult(best, best_ratio, True)

    bg_lum = relative_luminance(bg)
    darken = (bg_lum + 0.05) / 0.05 >= 1.05 / (bg_lum + 0.05)
    h, s, l = hex_to_hsl(fg)
    for _ in range(max_steps):
        l = max(0.0, l - step) if darken else min(1.0, l + step)
        candidate = hsl_to_hex(h, s, l)
        ratio = contrast_ratio(candidate, bg)
        if ratio > best_ratio:
            best, best_ratio = candidate, ratio
        if best_ratio >= minimum or l in (0.0, 1.0):
            break

    if best_ratio < minimum:
        logger.debug(f"[DESIGN] Contrast {best_ratio:.2f} < {minimum} for {fg} on {bg}")
    return ContrastResult(best, best_ratio, best_ratio >= minimum)


def shift_lightness(value: str, delta: float) -> str:
    """Shift HSL lightness by ``delta`` (in [-1, 1] units), clamped."""
    h, s, l = hex_to_hsl(value)
    return hsl_to_hex(h, s, l + delta)


def shift_hsl(value: str, dh_deg: float, ds_pct: float, dl_pct: float) -> str:
    """Rotate hue by degrees and shift saturation/lightness by percentage points."""
    h, s, l = hex_to_hsl(value)
    return hsl_to_hex(h + dh_deg / 360.0, s + ds_pct / 100.0, l + dl_pct / 100.0)


def _mix(value: str, other: RGB, amount: float) -> str:
    t = max(0.0, min(1.0, amount))
    r, g, b = hex_to_rgb(value)
    return rgb_to_hex(
        r * (1 - t) + other[0] * t,
        g * (1 - t) + other[1] * t,
        b * (1 - t) + other[2] * t,
    )


def tint(value: str, amount: float) -> str:
    """Mix toward white."""
    return _mix(value, (255, 255, 255), amount)


def shade(value: str, amount: float) -> str:
    """Mix toward black."""
    return _mix(value, (0, 0, 0), amount)
