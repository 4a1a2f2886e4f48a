"""
Layout Quality Gate for PagePilot.

Decides what happens to a rendered page given its Layout Quality Rating
(LQR, 0-100) and QA hints:

- LQR >= soft and no issues                 -> ok
- LQR between hard_fail and soft, or issues -> patch
- LQR < hard_fail                           -> downgrade
- LQR unknown (missing, NaN, inf, negative) -> patch

The gate is pure and total: it never raises and never consults state.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .config import get_layout_config

logger = logging.getLogger(__name__)


class LayoutDecision(str, Enum):
    """Gate outcomes, from worst to best."""

    DOWNGRADE = "downgrade"
    PATCH = "patch"
    OK = "ok"


_TIERS = {
    LayoutDecision.DOWNGRADE: 0,
    LayoutDecision.PATCH: 1,
    LayoutDecision.OK: 2,
}


def decision_tier(decision: Union[LayoutDecision, str]) -> int:
    """Order decisions: downgrade (0) < patch (1) < ok (2). Unknown is 0."""
    try:
        return _TIERS[LayoutDecision(decision)]
    except ValueError:
        return 0


def _pick(data: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in data:
            return data[name]
    return None


def _usable_score(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    return value


@dataclass
class LayoutGateInput:
    """
    What the gate looks at.

    Attributes:
        lqr_score: LQR in [0, 100], or None when unknown
        has_a11y_issues: Other QA checks found accessibility problems
        has_perf_issues: Other QA checks found performance problems
    """

    lqr_score: Optional[float] = None
    has_a11y_issues: bool = False
    has_perf_issues: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LayoutGateInput":
        """Build from a dict with either camelCase or snake_case keys."""
        return cls(
            lqr_score=_pick(data, "lqr_score", "lqrScore"),
            has_a11y_issues=bool(_pick(data, "has_a11y_issues", "hasA11yIssues")),
            has_perf_issues=bool(_pick(data, "has_perf_issues", "hasPerfIssues")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lqr_score": self.lqr_score,
            "has_a11y_issues": self.has_a11y_issues,
            "has_perf_issues": self.has_perf_issues,
        }


GateInputLike = Union[LayoutGateInput, Mapping[str, Any]]


@dataclass
class LayoutGateOptions:
    """Gate thresholds; None or non-finite values fall back to config."""

    hard_fail_threshold: Optional[float] = None
    soft_threshold: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LayoutGateOptions":
        return cls(
            hard_fail_threshold=_pick(data, "hard_fail_threshold", "hardFailThreshold"),
            soft_threshold=_pick(data, "soft_threshold", "softThreshold"),
        )

    def resolved(self) -> Tuple[float, float]:
        config = get_layout_config()

        def finite_or(value: Any, default: float) -> float:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return default
            try:
                value = float(value)
            except OverflowError:
                return default
            return value if math.isfinite(value) else default

        return (
            finite_or(self.hard_fail_threshold, config.hard_fail),
            finite_or(self.soft_threshold, config.soft),
        )


GateOptionsLike = Union[LayoutGateOptions, Mapping[str, Any], None]


def coerce_gate_input(value: Any) -> LayoutGateInput:
    if isinstance(value, LayoutGateInput):
        return value
    if isinstance(value, Mapping):
        return LayoutGateInput.from_mapping(value)
    return LayoutGateInput()


def coerce_gate_options(value: GateOptionsLike) -> LayoutGateOptions:
    if isinstance(value, LayoutGateOptions):
        return value
    if isinstance(value, Mapping):
        return LayoutGateOptions.from_mapping(value)
    return LayoutGateOptions()


@dataclass
class LayoutGateResult:
    decision: LayoutDecision
    reason: str
    lqr_score: Optional[float]
    hard_fail_threshold: float
    soft_threshold: float

    @property
    def tier(self) -> int:
        return decision_tier(self.decision)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "reason": self.reason,
            "lqr_score": self.lqr_score,
            "hard_fail_threshold": self.hard_fail_threshold,
            "soft_threshold": self.soft_threshold,
        }


def decide_layout_gate(
    gate_input: GateInputLike,
    options: GateOptionsLike = None,
) -> LayoutGateResult:
    """
    Decide ok / patch / downgrade for a page.

    Args:
        gate_input: LayoutGateInput or a mapping (camelCase or snake_case)
        options: Threshold overrides (defaults hard_fail=60, soft=80)

    Returns:
        LayoutGateResult naming the decision and the rule that produced it
    """
    data = coerce_gate_input(gate_input)
    hard_fail, soft = coerce_gate_options(options).resolved()
    score = _usable_score(data.lqr_score)
    a11y, perf = bool(data.has_a11y_issues), bool(data.has_perf_issues)

    if score is None:
        decision = LayoutDecision.PATCH
        reason = "no_lqr_but_issues" if (a11y or perf) else "no_lqr_score"
    elif score < hard_fail:
        decision, reason = LayoutDecision.DOWNGRADE, "lqr_below_hard_fail"
    elif score < soft:
        decision, reason = LayoutDecision.PATCH, "lqr_between_hard_and_soft"
    elif a11y and perf:
        decision, reason = LayoutDecision.PATCH, "good_lqr_but_a11y_and_perf_issues"
    elif a11y:
        decision, reason = LayoutDecision.PATCH, "good_lqr_but_a11y_issues"
    elif perf:
        decision, reason = LayoutDecision.PATCH, "good_lqr_but_perf_issues"
    else:
        decision, reason = LayoutDecision.OK, "good_lqr_and_no_issues"

    logger.debug(f"[LAYOUT] Gate lqr={score} a11y={a11y} perf={perf} -> {decision.value} ({reason})")
    return LayoutGateResult(
        decision=decision,
        reason=reason,
        lqr_score=score,
        hard_fail_threshold=hard_fail,
        soft_threshold=soft,
    )
