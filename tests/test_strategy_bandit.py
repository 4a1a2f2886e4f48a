"""
Tests for the strategy bandit.

Tests Thompson-sampling arm selection, outcome recording,
persistence and resilience to storage failures.
"""

import pytest


class TestArmStats:
    """Test ArmStats."""

    def test_defaults(self):
        """Test a fresh arm."""
        from pagepilot.routing import ArmStats

        arm = ArmStats(arm_id="rules")

        assert arm.alpha == 1.0
        assert arm.beta == 1.0
        assert arm.n == 0
        assert arm.mean == 0.5

    def test_apply_success_and_ema(self):
        """Test an outcome updates counts and seeds the EMAs."""
        from pagepilot.routing import ArmStats, Outcome

        arm = ArmStats(arm_id="local")
        arm.apply(Outcome(success=True, ms=800, cents=0.2, tokens=1000), 0.25)
        arm.apply(Outcome(success=False, ms=400), 0.25)

        assert arm.alpha == 2.0
        assert arm.beta == 2.0
        assert arm.n == 2
        assert arm.ema_ms == pytest.approx(700.0)
        assert arm.ema_cents == pytest.approx(0.2)
        assert arm.ema_tokens == pytest.approx(1000.0)

    def test_from_dict_repairs(self):
        """Test persisted junk is repaired rather than trusted."""
        from pagepilot.routing import ArmStats

        arm = ArmStats.from_dict("cloud", {"alpha": 0.2, "beta": "x", "ema_ms": -4, "n": 3}, (1.0, 3.0))

        assert arm.alpha == 1.0
        assert arm.beta == 3.0
        assert arm.ema_ms is None
        assert arm.n == 3

    def test_from_dict_non_mapping(self):
        """Test non-mapping data yields the prior."""
        from pagepilot.routing import ArmStats

        arm = ArmStats.from_dict("rules", "nonsense", (3.0, 1.0))

        assert (arm.alpha, arm.beta) == (3.0, 1.0)

    def test_from_dict_oversized_numbers(self):
        """Test integers too large for a float are treated as missing."""
        from pagepilot.routing import ArmStats

        huge = 10**400
        arm = ArmStats.from_dict("cloud", {"alpha": huge, "beta": 5, "ema_ms": huge, "ema_cents": 0.3, "n": huge}, (1.0, 3.0))

        assert arm.alpha == 1.0
        assert arm.beta == 5.0
        assert arm.ema_ms is None
        assert arm.ema_cents == 0.3
        assert arm.n == 0


class TestOutcome:
    """Test Outcome validation."""

    def test_unusable_metrics_dropped(self):
        """Test negative, NaN and non-numeric metrics become None."""
        from pagepilot.routing import Outcome

        outcome = Outcome.model_validate(
            {"success": True, "ms": -1, "cents": float("nan"), "tokens": "many", "extra": 1}
        )

        assert outcome.ms is None
        assert outcome.cents is None
        assert outcome.tokens is None


class TestEma:
    """Test the ema helper."""

    def test_seed_and_update(self):
        """Test first value seeds, later values blend."""
        from pagepilot.routing import ema

        assert ema(None, 10.0) == 10.0
        assert ema(10.0, 20.0, 0.25) == pytest.approx(12.5)


class TestStrategyBandit:
    """Test StrategyBandit."""

    def test_default_arms(self, memory_store, rng):
        """Test priors seed the three generation paths."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)
        stats = bandit.get_stats()

        assert set(stats["arms"]) == {"rules", "local", "cloud"}
        assert stats["arms"]["rules"]["alpha"] == 3.0
        assert stats["arms"]["cloud"]["beta"] == 3.0
        assert stats["best_arm"] == "rules"

    def test_pick_arm_returns_candidate(self, memory_store, rng):
        """Test a pick is always one of the candidates."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)

        for _ in range(20):
            assert bandit.pick_arm() in ("rules", "local", "cloud")
        assert bandit.pick_arm(["local"]) == "local"

    def test_pick_arm_empty_uses_defaults(self, memory_store, rng):
        """Test an empty candidate list falls back to configured arms."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)

        assert bandit.pick_arm([]) in ("rules", "local", "cloud")

    def test_pick_arm_no_arms_at_all(self, memory_store, rng):
        """Test a bandit without configured arms returns an empty string."""
        from pagepilot.routing import RouterConfig, StrategyBandit

        bandit = StrategyBandit(config=RouterConfig(arm_priors={}), store=memory_store, rng=rng)

        assert bandit.pick_arm() == ""

    def test_prior_favours_rules(self, memory_store, rng):
        """Test the optimistic rules prior wins most cold-start picks."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)
        picks = [bandit.pick_arm() for _ in range(300)]

        assert picks.count("rules") > picks.count("cloud")

    def test_equal_priors_pick_uniformly(self, memory_store, rng):
        """Test arms with equal priors and no metrics are picked about equally often."""
        from pagepilot.routing import RouterConfig, StrategyBandit

        config = RouterConfig(arm_priors={"a": (1.0, 1.0), "b": (1.0, 1.0), "c": (1.0, 1.0)})
        bandit = StrategyBandit(config=config, store=memory_store, rng=rng)

        picks = [bandit.pick_arm() for _ in range(3000)]

        for arm in ("a", "b", "c"):
            assert picks.count(arm) / 3000 == pytest.approx(1 / 3, abs=0.05)

    def test_shapes_stay_at_least_one(self, memory_store, rng):
        """Test alpha and beta never drop below 1 over a random outcome sequence."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)
        payloads = [
            {"success": True, "ms": 300},
            {"success": False, "cents": 0.4, "tokens": 900},
            {"success": True, "ms": float("nan"), "cents": -2},
            {"success": False, "ms": 10**400},
            {"ms": 10},
            {"success": "perhaps"},
            "junk",
            None,
        ]
        counts = {}
        for _ in range(400):
            arm = ["rules", "local", "cloud", "edge"][int(rng.integers(4))]
            payload = payloads[int(rng.integers(len(payloads)))]
            stats = bandit.record_outcome(arm, payload)
            if stats is not None:
                counts[arm] = counts.get(arm, 0) + 1
                assert stats.n == counts[arm]
            for data in bandit.get_stats()["arms"].values():
                assert data["alpha"] >= 1.0
                assert data["beta"] >= 1.0

    def test_oversized_persisted_numbers(self, memory_store, rng):
        """Test stats holding integers too large for a float still select."""
        from pagepilot.routing import StrategyBandit

        memory_store.set("router.stats", {"rules": {"alpha": 10**400, "beta": 1, "ema_ms": 10**400, "n": 10**400}})
        bandit = StrategyBandit(store=memory_store, rng=rng)

        assert bandit.pick_arm() in ("rules", "local", "cloud")
        assert bandit.get_stats()["arms"]["rules"]["alpha"] == 3.0

    def test_resource_penalty(self, memory_store, rng):
        """Test a very slow arm is never chosen."""
        from pagepilot.routing import StrategyBandit

        memory_store.set("router.stats", {
            "rules": {"alpha": 50, "beta": 1, "ema_ms": 60000},
            "local": {"alpha": 2, "beta": 2, "ema_ms": 300},
        })
        bandit = StrategyBandit(store=memory_store, rng=rng)

        picks = {bandit.pick_arm(["rules", "local"]) for _ in range(50)}

        assert picks == {"local"}

    def test_record_outcome_persists(self, memory_store, rng):
        """Test outcomes are merged into the store."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)
        stats = bandit.record_outcome("local", {"success": True, "ms": 900, "cents": 0.1, "tokens": 700})

        assert stats.alpha == 3.0
        assert stats.n == 1
        doc = memory_store.get("router.stats").value
        assert doc["local"]["alpha"] == 3.0
        assert doc["local"]["ema_ms"] == 900.0
        assert doc["rules"]["alpha"] == 3.0

    def test_state_shared_across_instances(self, memory_store, rng):
        """Test a second bandit on the same store sees recorded outcomes."""
        from pagepilot.routing import StrategyBandit

        StrategyBandit(store=memory_store, rng=rng).record_outcome("cloud", {"success": False})
        other = StrategyBandit(store=memory_store, rng=rng)

        assert other.get_stats()["arms"]["cloud"]["beta"] == 4.0

    def test_unknown_arm_gets_flat_prior(self, memory_store, rng):
        """Test recording for an unconfigured arm starts from Beta(1, 1)."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)
        stats = bandit.record_outcome("edge", {"success": True})

        assert (stats.alpha, stats.beta) == (2.0, 1.0)

    def test_malformed_outcome(self, memory_store, rng):
        """Test a malformed outcome is ignored."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)

        assert bandit.record_outcome("rules", {"ms": 10}) is None
        assert memory_store.get("router.stats").value is None

    def test_write_failure_kept_in_memory(self, rng):
        """Test a failing store does not lose the outcome for this process."""
        from pagepilot.routing import StrategyBandit
        from pagepilot.storage import InMemoryStore

        class ReadOnly(InMemoryStore):
            def _write(self, key, value):
                raise OSError("read-only")

        bandit = StrategyBandit(store=ReadOnly(), rng=rng)
        stats = bandit.record_outcome("rules", {"success": True})

        assert stats is not None
        assert stats.alpha == 4.0

    def test_corrupt_state_uses_priors(self, file_store, rng):
        """Test a corrupt stats file falls back to priors."""
        from pagepilot.routing import StrategyBandit

        file_store.store_dir.mkdir(parents=True)
        file_store.path_for("router.stats").write_text("{{{")
        bandit = StrategyBandit(store=file_store, rng=rng)

        assert bandit.pick_arm() in ("rules", "local", "cloud")
        assert bandit.get_stats()["arms"]["rules"]["alpha"] == 3.0

    def test_reset(self, memory_store, rng):
        """Test reset restores priors."""
        from pagepilot.routing import StrategyBandit

        bandit = StrategyBandit(store=memory_store, rng=rng)
        bandit.record_outcome("rules", {"success": False})
        bandit.reset()

        assert memory_store.get("router.stats").value["rules"]["beta"] == 1.0


class TestStrategyGlobals:
    """Test module-level helpers."""

    def test_pick_and_record(self):
        """Test the global bandit uses the global store."""
        from pagepilot.routing import get_strategy_bandit, pick_arm, record_outcome
        from pagepilot.storage import get_store

        arm = pick_arm()
        record_outcome(arm, {"success": True})

        assert get_strategy_bandit() is get_strategy_bandit()
        assert get_store().get("router.stats").value[arm]["n"] == 1
