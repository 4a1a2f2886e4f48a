"""
Layout Guardrail Mapper for PagePilot.

Translates the gate's internal decision vocabulary into the publishing
policy vocabulary:

    ok        -> allow / layout_ok
    patch     -> patch / layout_needs_patch
    downgrade -> block / layout_bad
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .gate import (
    GateInputLike,
    GateOptionsLike,
    LayoutDecision,
    LayoutGateResult,
    decide_layout_gate,
)

logger = logging.getLogger(__name__)


class GuardrailMode(str, Enum):
    ALLOW = "allow"
    PATCH = "patch"
    BLOCK = "block"


_MAPPING = {
    LayoutDecision.OK: (GuardrailMode.ALLOW, "layout_ok"),
    LayoutDecision.PATCH: (GuardrailMode.PATCH, "layout_needs_patch"),
    LayoutDecision.DOWNGRADE: (GuardrailMode.BLOCK, "layout_bad"),
}


@dataclass
class LayoutGuardrailOutcome:
    mode: GuardrailMode
    code: str
    decision: LayoutDecision
    lqr_score: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "code": self.code,
            "decision": self.decision.value,
            "lqr_score": self.lqr_score,
        }


def decide_layout_guardrail(gate: LayoutGateResult) -> LayoutGuardrailOutcome:
    """Map a gate result to a guardrail outcome. Total over all decisions."""
    decision = LayoutDecision(gate.decision)
    mode, code = _MAPPING[decision]
    return LayoutGuardrailOutcome(mode=mode, code=code, decision=decision, lqr_score=gate.lqr_score)


@dataclass
class LayoutSupGateResult:
    """Gate and guardrail together, plus the two flags publishers branch on."""

    gate: LayoutGateResult
    guardrail: LayoutGuardrailOutcome
    should_block: bool
    should_patch: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "gate": self.gate.to_dict(),
            "guardrail": self.guardrail.to_dict(),
            "should_block": self.should_block,
            "should_patch": self.should_patch,
        }


def decide_layout_sup_gate(
    gate_input: GateInputLike,
    options: GateOptionsLike = None,
) -> LayoutSupGateResult:
    """Run the gate, map it, and derive the block/patch flags."""
    gate = decide_layout_gate(gate_input, options)
    guardrail = decide_layout_guardrail(gate)
    result = LayoutSupGateResult(
        gate=gate,
        guardrail=guardrail,
        should_block=guardrail.mode is GuardrailMode.BLOCK,
        should_patch=guardrail.mode is GuardrailMode.PATCH,
    )
    if result.should_block:
        logger.info(f"[LAYOUT] Blocking page: {gate.reason} (lqr={gate.lqr_score})")
    return result
