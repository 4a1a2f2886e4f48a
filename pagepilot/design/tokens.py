"""
Design Token Mixer for PagePilot.

Turns a (primary, dark, tone) brand triple into a complete token bundle:
palette, type scale, spacing ramp, shadows, radius and the CSS custom
properties a template renderer consumes. Foreground colors are nudged until
they meet their contrast targets (7:1 for body text, 4.5:1 for text on the
primary) whenever that is reachable.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .color import DEFAULT_PRIMARY, contrast_ratio, ensure_contrast, normalize_hex
from .config import DesignConfig, get_design_config

logger = logging.getLogger(__name__)

TONES = ("minimal", "playful", "serious", "brutalist")
DEFAULT_TONE = "serious"

# tone -> (base px, modular scale, radius px)
_TONE_TYPE = {
    "minimal": (18, 1.25, 16),
    "playful": (17, 1.22, 20),
    "serious": (16, 1.2, 12),
    "brutalist": (15, 1.333, 0),
}

_TONE_SPACING = {
    "minimal": [4, 8, 16, 24, 32, 48, 64, 96],
    "playful": [4, 8, 12, 20, 28, 40, 56, 72],
    "serious": [4, 8, 12, 16, 24, 32, 48, 64],
    "brutalist": [2, 4, 8, 12, 16, 24, 32, 48],
}

_STEP_NAMES = ("xs", "sm", "base", "lg", "xl", "2xl")


def normalize_tone(tone: Any) -> str:
    """Lower-case a tone name; anything unknown maps to "serious"."""
    value = str(tone or "").strip().lower()
    return value if value in TONES else DEFAULT_TONE


@dataclass
class Palette:
    bg: str
    fg: str
    primary: str
    primary_fg: str
    muted: str
    border: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "bg": self.bg,
            "fg": self.fg,
            "primary": self.primary,
            "primary_fg": self.primary_fg,
            "muted": self.muted,
            "border": self.border,
        }


@dataclass
class TypeScale:
    base_px: int
    scale: float
    steps: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"base_px": self.base_px, "scale": self.scale, "steps": list(self.steps)}


@dataclass
class TokenMeta:
    contrast_ok: bool
    ratio_text: float
    ratio_primary: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contrast_ok": self.contrast_ok,
            "ratio_text": round(self.ratio_text, 4),
            "ratio_primary": round(self.ratio_primary, 4),
        }


@dataclass
class DesignTokens:
    """
    A complete token bundle for one brand triple.

    Attributes:
        tone: Normalised tone the bundle was built for
        dark: Whether the bundle targets a dark background
        palette: Core colors
        type_scale: Base size, ratio and the six rendered steps
        spacing: Spacing ramp in px, tight to airy
        shadows: Small/medium/large box-shadow values
        radius: Corner radius in px
        css_vars: CSS custom properties derived from the above
        meta: Contrast verdicts
    """

    tone: str
    dark: bool
    palette: Palette
    type_scale: TypeScale
    spacing: List[int]
    shadows: Dict[str, str]
    radius: int
    css_vars: Dict[str, str]
    meta: TokenMeta

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tone": self.tone,
            "dark": self.dark,
            "palette": self.palette.to_dict(),
            "type": self.type_scale.to_dict(),
            "space": {"ramp": list(self.spacing)},
            "shadow": dict(self.shadows),
            "radius": self.radius,
            "css_vars": dict(self.css_vars),
            "meta": self.meta.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DesignTokens":
        palette = data.get("palette", {})
        type_data = data.get("type", {})
        meta = data.get("meta", {})
        return cls(
            tone=normalize_tone(data.get("tone")),
            dark=bool(data.get("dark", False)),
            palette=Palette(
                bg=palette.get("bg", "#ffffff"),
                fg=palette.get("fg", "#0b0b0b"),
                primary=palette.get("primary", DEFAULT_PRIMARY),
                primary_fg=palette.get("primary_fg", "#ffffff"),
                muted=palette.get("muted", "#f5f5f5"),
                border=palette.get("border", "#e5e7eb"),
            ),
            type_scale=TypeScale(
                base_px=int(type_data.get("base_px", 16)),
                scale=float(type_data.get("scale", 1.2)),
                steps=[int(s) for s in type_data.get("steps", [])],
            ),
            spacing=[int(s) for s in data.get("space", {}).get("ramp", [])],
            shadows=dict(data.get("shadow", {})),
            radius=int(data.get("radius", 12)),
            css_vars=dict(data.get("css_vars", {})),
            meta=TokenMeta(
                contrast_ok=bool(meta.get("contrast_ok", False)),
                ratio_text=float(meta.get("ratio_text", 1.0)),
                ratio_primary=float(meta.get("ratio_primary", 1.0)),
            ),
        )


def _shadows(tone: str, dark: bool) -> Dict[str, str]:
    if tone == "brutalist":
        ink = "#f4f4f5" if dark else "#000000"
        return {"s": f"2px 2px 0 {ink}", "m": f"4px 4px 0 {ink}", "l": f"8px 8px 0 {ink}"}
    k = 2 if dark else 1
    return {
        "s": f"0 1px 2px rgba(0,0,0,{0.06 * k:.2f})",
        "m": f"0 6px 16px rgba(0,0,0,{0.08 * k:.2f})",
        "l": f"0 18px 44px rgba(0,0,0,{0.12 * k:.2f})",
    }


def token_mixer(
    primary: Optional[str] = None,
    dark: bool = False,
    tone: str = DEFAULT_TONE,
    config: Optional[DesignConfig] = None,
) -> DesignTokens:
    """
    Build the token bundle for a brand triple.

    Never raises: an unparseable primary falls back to the brand default and
    an unknown tone to "serious".

    Args:
        primary: Brand color as hex
        dark: Build for a dark background
        tone: "minimal", "playful", "serious" or "brutalist"
        config: Contrast targets (defaults to the global design config)

    Returns:
        DesignTokens with ``meta.contrast_ok`` set when both text and
        on-primary targets were met
    """
    config = config or get_design_config()
    tone = normalize_tone(tone)
    dark = bool(dark)
    primary = normalize_hex(primary)

    bg = "#0b0b0b" if dark else "#ffffff"
    muted = "#171717" if dark else "#f5f5f5"
    border = "#262626" if dark else "#e5e7eb"

    text = ensure_contrast("#f4f4f5" if dark else "#0b0b0b", bg, config.text_contrast)

    # Start on-primary text from whichever pole already reads better.
    on_primary_seed = "#ffffff" if contrast_ratio("#ffffff", primary) >= contrast_ratio("#000000", primary) else "#000000"
    on_primary = ensure_contrast(on_primary_seed, primary, config.primary_contrast)

    base_px, scale, radius = _TONE_TYPE[tone]
    steps = [int(round(base_px * scale ** n)) for n in range(-2, 4)]
    spacing = list(_TONE_SPACING[tone])
    shadows = _shadows(tone, dark)

    css_vars = {
        "--color-bg": bg,
        "--color-fg": text.color,
        "--color-primary": primary,
        "--color-on-primary": on_primary.color,
        "--color-muted": muted,
        "--color-border": border,
        "--radius": f"{radius}px",
    }
    for name, px in zip(_STEP_NAMES, steps):
        css_vars[f"--font-size-{name}"] = f"{px}px"
    for i, px in enumerate(spacing[:6], start=1):
        css_vars[f"--space-{i}"] = f"{px}px"
    for size, value in shadows.items():
        css_vars[f"--shadow-{size}"] = value

    meta = TokenMeta(
        contrast_ok=text.ok and on_primary.ok,
        ratio_text=text.ratio,
        ratio_primary=on_primary.ratio,
    )
    if not meta.contrast_ok:
        logger.debug(
            f"[DESIGN] Contrast targets missed for {primary} ({tone}, dark={dark}): "
            f"text={text.ratio:.2f} primary={on_primary.ratio:.2f}"
        )

    return DesignTokens(
        tone=tone,
        dark=dark,
        palette=Palette(
            bg=bg,
            fg=text.color,
            primary=primary,
            primary_fg=on_primary.color,
            muted=muted,
            border=border,
        ),
        type_scale=TypeScale(base_px=base_px, scale=scale, steps=steps),
        spacing=spacing,
        shadows=shadows,
        radius=radius,
        css_vars=css_vars,
        meta=meta,
    )
