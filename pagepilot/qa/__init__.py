"""
QA Module for PagePilot.

Post-render layout checks that decide whether a page ships:
- score_layout_quality: LQR (0-100) from page metrics
- decide_layout_gate: ok / patch / downgrade
- decide_layout_guardrail: allow / patch / block policy mapping
- run_layout_solver: bounded patch loop that never lowers the decision tier
"""

from .config import LayoutConfig, get_layout_config, reset_layout_config
from .lqr import LayoutMetrics, LayoutQualityResult, score_layout_quality
from .gate import (
    LayoutDecision,
    LayoutGateInput,
    LayoutGateOptions,
    LayoutGateResult,
    decide_layout_gate,
    decision_tier,
)
from .guardrail import (
    GuardrailMode,
    LayoutGuardrailOutcome,
    LayoutSupGateResult,
    decide_layout_guardrail,
    decide_layout_sup_gate,
)
from .solver import (
    LayoutPatchProposal,
    LayoutSolverOptions,
    LayoutSolverResult,
    LayoutSolverTraceStep,
    run_layout_solver,
)

__all__ = [
    # Config
    "LayoutConfig",
    "get_layout_config",
    "reset_layout_config",
    # LQR
    "LayoutMetrics",
    "LayoutQualityResult",
    "score_layout_quality",
    # Gate
    "LayoutDecision",
    "LayoutGateInput",
    "LayoutGateOptions",
    "LayoutGateResult",
    "decide_layout_gate",
    "decision_tier",
    # Guardrail
    "GuardrailMode",
    "LayoutGuardrailOutcome",
    "LayoutSupGateResult",
    "decide_layout_guardrail",
    "decide_layout_sup_gate",
    # Solver
    "LayoutPatchProposal",
    "LayoutSolverOptions",
    "LayoutSolverResult",
    "LayoutSolverTraceStep",
    "run_layout_solver",
]
