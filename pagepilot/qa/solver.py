"""
Layout Solver for PagePilot.

Greedy, bounded improvement loop over caller-supplied patches. The solver
knows nothing about CSS: the caller proposes patches for a state and
applies a patch to get the next state; the solver re-gates every
candidate and commits the best eligible one.

A candidate is eligible when it reaches a strictly higher decision tier,
or stays in the same tier while raising LQR by at least ``min_lqr_delta``.
Candidates that drop a tier are never taken, so the trace is monotone in
tier. "No eligible patch" is a normal way to stop.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .config import get_layout_config
from .gate import (
    GateInputLike,
    GateOptionsLike,
    LayoutDecision,
    LayoutGateInput,
    LayoutGateResult,
    coerce_gate_input,
    decide_layout_gate,
)

logger = logging.getLogger(__name__)


@dataclass
class LayoutPatchProposal:
    """
    A candidate fix, opaque to the solver.

    Attributes:
        id: Caller-chosen identifier, e.g. "tighten-line-height"
        description: Optional human-readable summary
        payload: Anything the caller's apply function needs
    """

    id: str
    description: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def coerce(cls, value: Any) -> "LayoutPatchProposal":
        if isinstance(value, LayoutPatchProposal):
            return value
        if isinstance(value, Mapping):
            return cls(
                id=str(value.get("id", "")),
                description=value.get("description"),
                payload={k: v for k, v in value.items() if k not in ("id", "description")},
            )
        return cls(id=str(value))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id}
        if self.description is not None:
            data["description"] = self.description
        if self.payload:
            data["payload"] = dict(self.payload)
        return data


ProposePatchesFn = Callable[[LayoutGateInput, LayoutGateResult], Sequence[Any]]
ApplyPatchFn = Callable[[LayoutGateInput, LayoutPatchProposal], GateInputLike]


@dataclass
class LayoutSolverOptions:
    """Loop bounds; None or out-of-range values fall back to LayoutConfig."""

    max_iterations: Optional[int] = None
    min_lqr_delta: Optional[float] = None
    gate_options: GateOptionsLike = None


@dataclass
class LayoutSolverTraceStep:
    patch: LayoutPatchProposal
    before: LayoutGateResult
    after: LayoutGateResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patch": self.patch.to_dict(),
            "before": self.before.to_dict(),
            "after": self.after.to_dict(),
        }


@dataclass
class LayoutSolverResult:
    """
    Outcome of a solver run.

    Attributes:
        initial: Gate result before any patch
        final: Gate result after the last committed patch
        decision: ``final.decision``
        applied_patches: Committed patches, in order
        trace: One step per committed patch
        iterations: Loop iterations consumed
        exhausted: True when the iteration bound ran out before reaching ok
        final_input: State the final gate result was computed from
    """

    initial: LayoutGateResult
    final: LayoutGateResult
    decision: LayoutDecision
    applied_patches: List[LayoutPatchProposal] = field(default_factory=list)
    trace: List[LayoutSolverTraceStep] = field(default_factory=list)
    iterations: int = 0
    exhausted: bool = False
    final_input: Optional[LayoutGateInput] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial": self.initial.to_dict(),
            "final": self.final.to_dict(),
            "decision": self.decision.value,
            "applied_patches": [p.to_dict() for p in self.applied_patches],
            "trace": [s.to_dict() for s in self.trace],
            "iterations": self.iterations,
            "exhausted": self.exhausted,
        }


def _finite_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def _resolve_options(options: Union[LayoutSolverOptions, Mapping[str, Any], None]) -> LayoutSolverOptions:
    if isinstance(options, LayoutSolverOptions):
        raw = options
    elif isinstance(options, Mapping):
        raw = LayoutSolverOptions(
            max_iterations=options.get("max_iterations", options.get("maxIterations")),
            min_lqr_delta=options.get("min_lqr_delta", options.get("minLqrDelta")),
            gate_options=options.get("gate_options", options.get("gateOptions")),
        )
    else:
        raw = LayoutSolverOptions()

    config = get_layout_config()
    max_iterations = _finite_number(raw.max_iterations)
    if max_iterations is None or max_iterations < 1:
        max_iterations = config.max_iterations
    min_delta = _finite_number(raw.min_lqr_delta)
    if min_delta is None or min_delta <= 0:
        min_delta = config.min_lqr_delta
    return LayoutSolverOptions(
        max_iterations=int(max_iterations),
        min_lqr_delta=float(min_delta),
        gate_options=raw.gate_options,
    )


def run_layout_solver(
    initial_input: GateInputLike,
    propose_patches: ProposePatchesFn,
    apply_patch: ApplyPatchFn,
    options: Union[LayoutSolverOptions, Mapping[str, Any], None] = None,
) -> LayoutSolverResult:
    """
    Improve a page's gate decision with caller-supplied patches.

    Each iteration asks for proposals, applies and re-gates every one, and
    commits the best eligible candidate (higher tier first, then higher
    LQR, then earliest proposed). The run stops when the page is ok, when
    no candidate is eligible, or after ``max_iterations``. A callback that
    raises ends the run at the current state.

    Args:
        initial_input: Starting gate input
        propose_patches: ``(state, gate) -> proposals``
        apply_patch: ``(state, patch) -> next state``
        options: Iteration bound, minimum LQR delta and gate thresholds

    Returns:
        LayoutSolverResult
    """
    opts = _resolve_options(options)
    state = coerce_gate_input(initial_input)
    gate = decide_layout_gate(state, opts.gate_options)
    initial = gate
    base_lqr = gate.lqr_score if gate.lqr_score is not None else 0.0

    result = LayoutSolverResult(initial=initial, final=gate, decision=gate.decision, final_input=state)
    if gate.decision is LayoutDecision.OK:
        return result

    iterations = 0
    while iterations < opts.max_iterations:
        iterations += 1
        try:
            proposals = [LayoutPatchProposal.coerce(p) for p in (propose_patches(state, gate) or [])]
        except Exception as e:
            logger.warning(f"[LAYOUT] propose_patches failed, stopping: {e}")
            break
        if not proposals:
            break

        current_lqr = gate.lqr_score if gate.lqr_score is not None else base_lqr
        best = None  # (patch, state, gate)
        try:
            for patch in proposals:
                next_state = coerce_gate_input(apply_patch(state, patch))
                next_gate = decide_layout_gate(next_state, opts.gate_options)
                next_lqr = next_gate.lqr_score if next_gate.lqr_score is not None else base_lqr

                if next_gate.tier < gate.tier:
                    continue
                if next_gate.tier == gate.tier and next_lqr - current_lqr < opts.min_lqr_delta:
                    continue

                if best is None:
                    best = (patch, next_state, next_gate)
                    continue
                best_gate = best[2]
                best_lqr = best_gate.lqr_score if best_gate.lqr_score is not None else base_lqr
                if next_gate.tier > best_gate.tier or (next_gate.tier == best_gate.tier and next_lqr > best_lqr):
                    best = (patch, next_state, next_gate)
        except Exception as e:
            logger.warning(f"[LAYOUT] apply_patch failed, stopping: {e}")
            break

        if best is None:
            logger.debug(f"[LAYOUT] No eligible patch at iteration {iterations}")
            break

        patch, state, next_gate = best
        result.trace.append(LayoutSolverTraceStep(patch=patch, before=gate, after=next_gate))
        result.applied_patches.append(patch)
        gate = next_gate
        logger.debug(f"[LAYOUT] Applied {patch.id}: {gate.decision.value} lqr={gate.lqr_score}")
        if gate.decision is LayoutDecision.OK:
            break
    else:
        result.exhausted = True

    result.final = gate
    result.decision = gate.decision
    result.final_input = state
    result.iterations = iterations
    logger.info(
        f"[LAYOUT] Solver {initial.decision.value} -> {gate.decision.value} "
        f"after {len(result.applied_patches)} patches ({iterations} iterations)"
    )
    return result
