"""
Heuristic design evaluation.

Scores a token bundle out of 100:
- spacing generosity (section gap vs. an airy 32px)    25
- body-text contrast, capped at 12:1                    30
- on-primary contrast, capped at 12:1                   15
- simplicity constant                                   15
- type-scale closeness to a major third (1.25)          15
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .tokens import DesignTokens

CONTRAST_CAP = 12.0
IDEAL_SCALE = 1.25
MIN_BASE_PX = 16
SIMPLICITY = 15.0


@dataclass
class DesignEvaluation:
    visual_score: float
    a11y_pass: bool
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visual_score": self.visual_score,
            "a11y_pass": self.a11y_pass,
            "notes": list(self.notes),
        }


def evaluate_design(tokens: DesignTokens) -> DesignEvaluation:
    """
    Score a token bundle.

    ``a11y_pass`` requires both contrast targets met and a base font of at
    least 16px; the visual score is reported either way.
    """
    notes: List[str] = []
    meta = tokens.meta
    base_px = tokens.type_scale.base_px

    section_gap = tokens.spacing[4] if len(tokens.spacing) > 4 else 0
    spacing = 25.0 * min(1.0, section_gap / 32.0)
    if section_gap < 24:
        notes.append("tight_spacing")

    text = 30.0 * min(meta.ratio_text, CONTRAST_CAP) / CONTRAST_CAP
    on_primary = 15.0 * min(meta.ratio_primary, CONTRAST_CAP) / CONTRAST_CAP
    if not meta.contrast_ok:
        notes.append("contrast_below_target")

    type_weight = 15.0 * max(0.0, 1.0 - abs(tokens.type_scale.scale - IDEAL_SCALE) / IDEAL_SCALE * 4)
    if base_px < MIN_BASE_PX:
        notes.append("base_font_small")

    score = spacing + text + on_primary + SIMPLICITY + type_weight
    score = round(max(0.0, min(100.0, score)), 2)

    return DesignEvaluation(
        visual_score=score,
        a11y_pass=bool(meta.contrast_ok and base_px >= MIN_BASE_PX),
        notes=notes,
    )
