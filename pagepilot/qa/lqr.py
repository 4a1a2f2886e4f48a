"""
Layout Quality Rating (LQR).

A small deterministic score out of 100 derived from rendered-page metrics.
Starts at 90 and subtracts capped penalties for long or short lines, block
density, contrast issues and rhythm issues, plus a penalty for long lines on
narrow viewports.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

BASELINE = 90.0


class LayoutMetrics(BaseModel):
    """
    Rendered-page measurements. Missing or unusable values fall back to
    neutral defaults (0 blocks, 60 chars per line, 0 issues, 1200px).
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    blocks: Optional[float] = None
    avg_chars_per_line: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("avg_chars_per_line", "avgCharsPerLine")
    )
    contrast_issues: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("contrast_issues", "contrastIssues")
    )
    rhythm_issues: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("rhythm_issues", "rhythmIssues")
    )
    viewport_width_px: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("viewport_width_px", "viewportWidthPx")
    )

    @field_validator("*", mode="before")
    @classmethod
    def _finite_or_none(cls, v: Any) -> Optional[float]:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        try:
            v = float(v)
        except OverflowError:
            return None
        return v if math.isfinite(v) else None


@dataclass
class LayoutQualityResult:
    score: int
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "reasons": list(self.reasons)}


def score_layout_quality(metrics: Union[LayoutMetrics, Mapping[str, Any], None]) -> LayoutQualityResult:
    """
    Compute the LQR for a page.

    Returns:
        LayoutQualityResult with an integer score in [0, 100] and the
        penalty reasons that applied, e.g. ["line_length_long", "contrast"]
    """
    if isinstance(metrics, LayoutMetrics):
        m = metrics
    else:
        try:
            m = LayoutMetrics.model_validate(dict(metrics or {}))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"[LAYOUT] Unusable layout metrics, scoring defaults: {e}")
            m = LayoutMetrics()

    blocks = m.blocks if m.blocks is not None else 0.0
    chars = m.avg_chars_per_line if m.avg_chars_per_line is not None else 60.0
    contrast = m.contrast_issues if m.contrast_issues is not None else 0.0
    rhythm = m.rhythm_issues if m.rhythm_issues is not None else 0.0
    viewport = m.viewport_width_px if m.viewport_width_px is not None else 1200.0

    score = BASELINE
    reasons: List[str] = []

    if chars > 90:
        reasons.append("line_length_long")
        score -= min(20.0, (chars - 90) / 2)
    elif chars < 35:
        reasons.append("line_length_short")
        score -= 5.0

    if blocks > 40:
        reasons.append("density_high")
        score -= min(15.0, (blocks - 40) * 0.5)

    if contrast > 0:
        reasons.append("contrast")
        score -= min(30.0, contrast * 5)

    if rhythm > 0:
        reasons.append("rhythm")
        score -= min(20.0, rhythm * 4)

    if viewport < 500 and chars > 80:
        if "line_length_long" not in reasons:
            reasons.append("line_length_long")
        score -= 5.0

    final = int(math.floor(max(0.0, min(100.0, score)) + 0.5))
    return LayoutQualityResult(score=final, reasons=reasons)
