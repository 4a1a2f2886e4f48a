"""
Tests for the layout solver.

Tests the greedy patch loop: tier monotonicity, LQR deltas,
iteration bounds and callback failures.
"""

import pytest


def bump(state, patch):
    """Apply a patch whose payload carries an LQR delta and issue fixes."""
    from pagepilot.qa import LayoutGateInput

    delta = patch.payload.get("delta", 0)
    return LayoutGateInput(
        lqr_score=None if state.lqr_score is None and "set" not in patch.payload
        else patch.payload.get("set", (state.lqr_score or 0) + delta),
        has_a11y_issues=state.has_a11y_issues and not patch.payload.get("fix_a11y", False),
        has_perf_issues=state.has_perf_issues,
    )


def propose(*proposals):
    """Proposal callback that always offers the same patches."""
    def _propose(state, gate):
        return list(proposals)
    return _propose


class TestPatchProposal:
    """Test LayoutPatchProposal coercion."""

    def test_coerce(self):
        """Test strings and mappings become proposals."""
        from pagepilot.qa import LayoutPatchProposal

        assert LayoutPatchProposal.coerce("wrap-text").id == "wrap-text"
        patch = LayoutPatchProposal.coerce({"id": "gap", "description": "more gap", "delta": 4})
        assert patch.payload == {"delta": 4}
        assert patch.to_dict() == {"id": "gap", "description": "more gap", "payload": {"delta": 4}}


class TestRunLayoutSolver:
    """Test run_layout_solver."""

    def test_already_ok(self):
        """Test an ok page is returned without calling back."""
        from pagepilot.qa import run_layout_solver

        def never(*args):
            raise AssertionError("should not be called")

        result = run_layout_solver({"lqr_score": 95}, never, never)

        assert result.decision.value == "ok"
        assert result.iterations == 0
        assert result.applied_patches == []
        assert not result.exhausted

    def test_best_patch_wins(self):
        """Test the patch reaching the highest tier is committed."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 50},
            propose({"id": "small", "delta": 5}, {"id": "big", "delta": 35}),
            bump,
        )

        assert [p.id for p in result.applied_patches] == ["big"]
        assert result.initial.decision.value == "downgrade"
        assert result.decision.value == "ok"
        assert result.final.lqr_score == 85
        assert result.iterations == 1
        assert not result.exhausted
        assert result.final_input.lqr_score == 85

    def test_never_lowers_tier(self):
        """Test a patch that drops a tier is never taken."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 70},
            propose({"id": "regress", "delta": -30}, {"id": "noise", "delta": 0.5}),
            bump,
        )

        assert result.applied_patches == []
        assert result.decision.value == "patch"
        assert result.iterations == 1
        assert not result.exhausted

    def test_trace_is_monotone(self):
        """Test tiers along the trace never decrease."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 40},
            propose({"id": "up", "delta": 12}, {"id": "down", "delta": -10}),
            bump,
            {"max_iterations": 5},
        )

        for step in result.trace:
            assert step.after.tier >= step.before.tier
        assert result.final.tier >= result.initial.tier
        assert [p.id for p in result.applied_patches] == ["up", "up", "up", "up"]
        assert result.decision.value == "ok"

    def test_exhausted(self):
        """Test the iteration bound."""
        from pagepilot.qa import LayoutSolverOptions, run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 62},
            propose({"id": "nudge", "delta": 2}),
            bump,
            LayoutSolverOptions(max_iterations=3),
        )

        assert result.iterations == 3
        assert result.exhausted
        assert result.final.lqr_score == 68
        assert len(result.trace) == 3

    def test_min_delta(self):
        """Test same-tier patches must clear the minimum LQR delta."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 62},
            propose({"id": "nudge", "delta": 2}),
            bump,
            {"minLqrDelta": 3},
        )

        assert result.applied_patches == []

    def test_tie_goes_to_first(self):
        """Test equal candidates keep the earliest proposal."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 70},
            propose({"id": "a", "delta": 20}, {"id": "b", "delta": 20}),
            bump,
        )

        assert [p.id for p in result.applied_patches] == ["a"]

    def test_issue_fix_raises_tier(self):
        """Test fixing an a11y issue at equal LQR counts as progress."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 85, "has_a11y_issues": True},
            propose({"id": "fix-contrast", "fix_a11y": True}),
            bump,
        )

        assert result.decision.value == "ok"
        assert result.initial.reason == "good_lqr_but_a11y_issues"

    def test_unknown_lqr(self):
        """Test a page with no LQR can be patched to a known good score."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver({}, propose({"id": "measure", "set": 91}), bump)

        assert result.initial.reason == "no_lqr_score"
        assert result.decision.value == "ok"

    def test_apply_called_once_per_proposal(self):
        """Test each proposal is applied exactly once per iteration."""
        from pagepilot.qa import run_layout_solver

        calls = []

        def counting(state, patch):
            calls.append(patch.id)
            return bump(state, patch)

        run_layout_solver({"lqr_score": 50}, propose({"id": "a", "delta": 40}, {"id": "b", "delta": 1}), counting)

        assert calls == ["a", "b"]

    def test_apply_failure_stops(self):
        """Test a raising callback ends the run at the current state."""
        from pagepilot.qa import run_layout_solver

        def broken(state, patch):
            raise RuntimeError("renderer crashed")

        result = run_layout_solver({"lqr_score": 70}, propose("wrap"), broken)

        assert result.decision.value == "patch"
        assert result.applied_patches == []
        assert not result.exhausted

    def test_propose_failure_stops(self):
        """Test a raising proposal callback ends the run."""
        from pagepilot.qa import run_layout_solver

        def broken(state, gate):
            raise ValueError("no ideas")

        result = run_layout_solver({"lqr_score": 70}, broken, bump)

        assert result.iterations == 1
        assert result.applied_patches == []

    def test_no_proposals(self):
        """Test an empty proposal list stops immediately."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver({"lqr_score": 30}, propose(), bump)

        assert result.decision.value == "downgrade"
        assert result.iterations == 1

    def test_bad_options_fall_back(self):
        """Test out-of-range options use configured defaults."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 62},
            propose({"id": "nudge", "delta": 2}),
            bump,
            {"max_iterations": 0, "min_lqr_delta": float("nan")},
        )

        assert result.iterations == 3

    @pytest.mark.parametrize("max_iterations", [float("inf"), 10**400, float("nan")])
    def test_unbounded_iterations_fall_back(self, max_iterations):
        """Test an infinite or oversized iteration bound uses the configured default."""
        from pagepilot.qa import run_layout_solver

        result = run_layout_solver(
            {"lqr_score": 62},
            propose({"id": "nudge", "delta": 2}),
            bump,
            {"max_iterations": max_iterations, "min_lqr_delta": 10**400},
        )

        assert result.iterations == 3
        assert result.exhausted

    def test_to_dict(self):
        """Test the serialised result."""
        from pagepilot.qa import run_layout_solver

        data = run_layout_solver({"lqr_score": 50}, propose({"id": "big", "delta": 40}), bump).to_dict()

        assert data["decision"] == "ok"
        assert data["applied_patches"] == [{"id": "big", "payload": {"delta": 40}}]
        assert data["trace"][0]["before"]["decision"] == "downgrade"
