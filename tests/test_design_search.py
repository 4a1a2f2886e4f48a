"""
Tests for taste priors, goal/industry heuristics and the token searches.
"""

import json

import pytest


class TestSignature:
    """Test brand-triple signatures."""

    def test_signature(self):
        """Test signatures are lower-cased and pipe separated."""
        from pagepilot.design import signature

        assert signature("#6D28D9", True, "Serious") == "#6d28d9|1|serious"
        assert signature("#0ea5e9", False, "minimal") == "#0ea5e9|0|minimal"

    def test_parse_signature(self):
        """Test parsing a signature back into a bias."""
        from pagepilot.design.priors import parse_signature

        assert parse_signature("#0ea5e9|1|playful") == {"primary": "#0ea5e9", "dark": True, "tone": "playful"}


class TestTastePriors:
    """Test TastePriors loading and prior_bonus."""

    def test_malformed_rows_dropped(self):
        """Test short or non-numeric rows are filtered on load."""
        from pagepilot.design import TastePriors

        priors = TastePriors.model_validate({
            "bias": "nonsense",
            "top": [["#0ea5e9|0|serious", 0.7, 5, 3], ["short"], ["#000000|0|serious", "high"], "row"],
        })

        assert priors.bias.primary is None
        assert priors.top == [("#0ea5e9|0|serious", 0.7, 5, 3)]

    def test_rate_for(self):
        """Test rate lookup by signature."""
        from pagepilot.design import TastePriors

        priors = TastePriors(top=[("#0ea5e9|0|serious", 0.6, 4, 2)])

        assert priors.rate_for("#0ea5e9|0|serious") == 0.6
        assert priors.rate_for("#0ea5e9|1|serious") == 0.0

    def test_load_missing(self, memory_store):
        """Test missing priors load as empty."""
        from pagepilot.design import load_taste_priors

        priors = load_taste_priors(memory_store)

        assert priors.top == []
        assert priors.bias.tone is None

    def test_load_invalid(self, memory_store):
        """Test a malformed document loads as empty."""
        from pagepilot.design import load_taste_priors

        memory_store.set("taste.priors", ["not", "an", "object"])

        assert load_taste_priors(memory_store).top == []

    def test_model_bias_kept(self):
        """Test a TasteBias instance survives validation."""
        from pagepilot.design import TasteBias, TastePriors

        priors = TastePriors(bias=TasteBias(primary="#0ea5e9", dark=True, tone="minimal"))

        assert priors.bias.primary == "#0ea5e9"
        assert priors.bias.dark is True
        assert priors.bias.tone == "minimal"

    def test_oversized_numbers_dropped(self):
        """Test integers too large for a float do not break loading."""
        from pagepilot.design import TastePriors

        priors = TastePriors.model_validate({
            "top": [["#0ea5e9|0|serious", 10**400, 5, 3], ["#6d28d9|0|serious", 0.4, 10**400, float("inf")]],
        })

        assert priors.top == [("#6d28d9|0|serious", 0.4, 0, 0)]

    def test_prior_bonus(self):
        """Test rate and bias matches add up."""
        from pagepilot.design import TastePriors, prior_bonus
        from pagepilot.design.search import DesignCandidate

        priors = TastePriors.model_validate({
            "bias": {"primary": "#6D28D9", "dark": False, "tone": "serious"},
            "top": [["#6d28d9|0|serious", 0.5, 5, 3]],
        })
        cand = DesignCandidate(primary="#6d28d9", dark=False, tone="serious")

        assert prior_bonus(cand, priors) == pytest.approx(0.06 + 0.03 + 0.02 + 0.03)

    def test_prior_bonus_capped(self):
        """Test the bonus never exceeds the cap."""
        from pagepilot.design import TastePriors, prior_bonus
        from pagepilot.design.search import DesignCandidate

        priors = TastePriors.model_validate({
            "bias": {"primary": "#6d28d9", "dark": False, "tone": "serious"},
            "top": [["#6d28d9|0|serious", 1.0, 50, 50]],
        })
        cand = DesignCandidate(primary="#6d28d9", dark=False, tone="serious")

        assert prior_bonus(cand, priors) == pytest.approx(0.15)

    def test_prior_bonus_empty(self):
        """Test empty priors give no bonus."""
        from pagepilot.design import TastePriors, prior_bonus
        from pagepilot.design.search import DesignCandidate

        cand = DesignCandidate(primary="#6d28d9", dark=True, tone="playful")

        assert prior_bonus(cand, TastePriors()) == 0.0


class TestTasteTrainer:
    """Test TasteTrainer."""

    def test_log_event(self, memory_store):
        """Test a win also counts as seen."""
        from pagepilot.design import TasteTrainer

        trainer = TasteTrainer(store=memory_store, clock=lambda: 1700000000.0)
        trainer.log_event("seen", "#0EA5E9", False, "serious")
        row = trainer.log_event("win", "#0ea5e9", False, "serious", {"cls": 0.02, "lcp_ms": 1800})

        assert row == {"seen": 2, "win": 1, "good_seen": 2, "good_win": 1, "ts": 1700000000.0}
        assert memory_store.get("taste.events").value["#0ea5e9|0|serious"]["win"] == 1

    def test_bad_metrics_skip_good_counters(self, memory_store):
        """Test pages failing a11y or perf only move the raw counters."""
        from pagepilot.design import TasteTrainer

        trainer = TasteTrainer(store=memory_store)
        trainer.log_event("seen", "#0ea5e9", False, "serious", {"a11y": False})
        row = trainer.log_event("win", "#0ea5e9", False, "serious", {"lcp_ms": 4000})

        assert row["seen"] == 2
        assert row["good_seen"] == 0
        assert row["good_win"] == 0

    def test_unknown_kind(self, memory_store):
        """Test unknown event kinds are rejected."""
        from pagepilot.design import TasteTrainer

        assert TasteTrainer(store=memory_store).log_event("click", "#0ea5e9", False, "serious") is None
        assert memory_store.get("taste.events").value is None

    def test_metrics_gate(self):
        """Test the quality bar."""
        from pagepilot.design import TasteMetrics

        assert TasteMetrics().is_good()
        assert not TasteMetrics(cls=0.3).is_good()
        assert not TasteMetrics(lcp_ms=2600).is_good()
        assert not TasteMetrics(a11y=False).is_good()

    def test_retrain(self, memory_store):
        """Test smoothed win rates, ranking and bias."""
        from pagepilot.design import TasteTrainer, load_taste_priors

        trainer = TasteTrainer(store=memory_store)
        for _ in range(3):
            trainer.log_event("seen", "#0ea5e9", True, "minimal")
        for _ in range(2):
            trainer.log_event("win", "#0ea5e9", True, "minimal")
        for _ in range(3):
            trainer.log_event("seen", "#6d28d9", False, "serious")
        trainer.log_event("seen", "#ff0000", False, "playful")

        priors = trainer.retrain()

        assert [row[0] for row in priors.top] == ["#0ea5e9|1|minimal", "#6d28d9|0|serious"]
        assert priors.top[0] == ("#0ea5e9|1|minimal", round(3 / 7, 4), 5, 2)
        assert priors.top[1][1] == pytest.approx(0.2)
        assert priors.bias.primary == "#0ea5e9"
        assert priors.bias.dark is True
        assert priors.bias.tone == "minimal"
        assert load_taste_priors(memory_store) == priors

    def test_retrained_bias_feeds_prior_bonus(self, memory_store):
        """Test the learned bias adds its dimension matches to the bonus."""
        from pagepilot.design import TasteTrainer, load_taste_priors, prior_bonus
        from pagepilot.design.search import DesignCandidate

        trainer = TasteTrainer(store=memory_store)
        for _ in range(3):
            trainer.log_event("seen", "#0ea5e9", True, "minimal")
        for _ in range(2):
            trainer.log_event("win", "#0ea5e9", True, "minimal")
        trainer.retrain()

        priors = load_taste_priors(memory_store)

        assert priors.bias.primary == "#0ea5e9"
        favourite = DesignCandidate(primary="#0ea5e9", dark=True, tone="minimal")
        assert prior_bonus(favourite, priors) == pytest.approx(0.4286 * 0.12 + 0.03 + 0.02 + 0.03)
        stranger = DesignCandidate(primary="#ff0000", dark=True, tone="minimal")
        assert prior_bonus(stranger, priors) == pytest.approx(0.02 + 0.03)

    def test_retrain_oversized_counts(self, memory_store):
        """Test event counters too large for a float are ignored."""
        from pagepilot.design import TasteTrainer

        memory_store.set("taste.events", {
            "#0ea5e9|0|serious": {"seen": 10**400, "win": 10**400, "good_seen": 10**400, "good_win": 1},
        })

        priors = TasteTrainer(store=memory_store).retrain()

        assert priors.top == []

    def test_retrain_falls_back_to_raw_counters(self, memory_store):
        """Test raw counters are used when nothing qualifies on good counters."""
        from pagepilot.design import TasteTrainer

        trainer = TasteTrainer(store=memory_store)
        for _ in range(3):
            trainer.log_event("win", "#0ea5e9", False, "serious", {"a11y": False})

        priors = trainer.retrain()

        assert priors.top == [("#0ea5e9|0|serious", 0.8, 3, 3)]

    def test_retrain_empty(self, memory_store):
        """Test retraining without events stores empty priors."""
        from pagepilot.design import TasteTrainer

        priors = TasteTrainer(store=memory_store).retrain()

        assert priors.top == []
        assert memory_store.get("taste.priors").value == {"bias": {"primary": None, "dark": None, "tone": None}, "top": []}


class TestHeuristics:
    """Test goal/industry heuristics."""

    def test_packaged_table_loads(self):
        """Test the shipped YAML table."""
        from pagepilot.design import get_heuristics

        table = get_heuristics()

        assert set(table.industry) == {"saas", "ecommerce", "portfolio"}
        assert "purchase" in table.goal

    def test_bonus_capped(self):
        """Test matching rules add up but stay under the cap."""
        from pagepilot.design import goal_industry_bonus

        assert goal_industry_bonus("serious", False, goal="purchase", industry="saas") == pytest.approx(0.04)

    def test_bonus_partial(self):
        """Test only matching rules count."""
        from pagepilot.design import goal_industry_bonus

        assert goal_industry_bonus("serious", True, industry="SaaS") == pytest.approx(0.02)
        assert goal_industry_bonus("playful", True, industry="saas") == 0.0
        assert goal_industry_bonus("serious", False) == 0.0
        assert goal_industry_bonus("serious", False, goal="unknown") == 0.0

    def test_from_dict_tolerates_junk(self):
        """Test malformed tables become empty."""
        from pagepilot.design import HeuristicsTable

        assert HeuristicsTable.from_dict("junk").industry == {}
        table = HeuristicsTable.from_dict({"industry": {"saas": [{"tone": "minimal", "bonus": 0.01}, "bad"]}})
        assert len(table.industry["saas"]) == 1
        assert table.industry["saas"][0].tones == ["minimal"]

    def test_missing_file(self, monkeypatch, tmp_path):
        """Test a missing heuristics file yields an empty table."""
        from pagepilot.design import heuristics

        monkeypatch.setattr(heuristics, "HEURISTICS_PATH", tmp_path / "missing.yaml")

        table = heuristics.get_heuristics(force_reload=True)

        assert table.industry == {}
        assert heuristics.goal_industry_bonus("serious", False, industry="saas", table=table) == 0.0


class TestScoreCandidates:
    """Test candidate generation and fitness."""

    def test_generate_candidates(self):
        """Test primaries x modes x tones, requested triple first."""
        from pagepilot.design.search import generate_candidates

        candidates = generate_candidates("#6d28d9", False, "brutalist")

        assert len(candidates) == 5 * 2 * 4
        first = candidates[0]
        assert (first.primary, first.dark, first.tone) == ("#6d28d9", False, "brutalist")
        assert len(generate_candidates("#6d28d9", False, "serious", limit=7)) == 7

    def test_a11y_penalty(self):
        """Test failing accessibility multiplies the visual score by 0.72."""
        from pagepilot.design import TastePriors
        from pagepilot.design.search import DesignCandidate, score_candidates

        [cand] = score_candidates([DesignCandidate("#6d28d9", False, "brutalist")], TastePriors())

        assert not cand.a11y_pass
        assert cand.fitness == round(cand.visual / 100 * 0.72, 4)

    def test_context_bonus(self):
        """Test the industry bonus raises fitness."""
        from pagepilot.design import TastePriors
        from pagepilot.design.search import DesignCandidate, score_candidates

        [plain] = score_candidates([DesignCandidate("#6d28d9", False, "serious")], TastePriors())
        [saas] = score_candidates([DesignCandidate("#6d28d9", False, "serious")], TastePriors(), industry="saas")

        assert saas.fitness == pytest.approx(plain.fitness + 0.03, abs=1e-4)

    def test_ranking(self):
        """Test candidates come back best first."""
        from pagepilot.design import TastePriors
        from pagepilot.design.search import generate_candidates, score_candidates

        ranked = score_candidates(generate_candidates("#0ea5e9", True, "playful"), TastePriors())
        fitness = [c.fitness for c in ranked]

        assert fitness == sorted(fitness, reverse=True)
        assert ranked[0].a11y_pass


class TestSearchBestTokensCached:
    """Test the memoised token search."""

    def test_result_shape(self, memory_store):
        """Test the stored result."""
        from pagepilot.design import SCHEMA_VERSION, search_best_tokens_cached
        from pagepilot.design.search import LIGHTNESS_DELTAS

        result = search_best_tokens_cached("#0EA5E9", tone="minimal", store=memory_store)

        assert result.schema_version == SCHEMA_VERSION
        assert result.args == {"primary": "#0ea5e9", "dark": False, "tone": "minimal", "goal": None, "industry": None}
        # minimal, serious, playful in both modes for each shifted primary
        assert result.tried == len(LIGHTNESS_DELTAS) * 2 * 3 == 30
        assert len(result.top) == 6
        assert result.picked == result.top[0]
        assert result.picked["a11y"] is True
        assert result.best_tokens().palette.primary == result.picked["primary"]

    def test_byte_identical_on_repeat(self, memory_store):
        """Test repeated calls return the same bytes."""
        from pagepilot.design import search_best_tokens_cached

        first = search_best_tokens_cached("#0ea5e9", True, "playful", goal="waitlist", store=memory_store)
        second = search_best_tokens_cached("0EA5E9", True, "Playful", goal=" Waitlist ", store=memory_store)

        assert second.cache_key == first.cache_key
        assert second.to_json() == first.to_json()
        assert json.loads(first.to_json())["cache_key"] == first.cache_key

    def test_cache_hit_skips_search(self, memory_store, monkeypatch):
        """Test a cached result is returned without scoring again."""
        from pagepilot.design import search, search_best_tokens_cached

        first = search_best_tokens_cached(store=memory_store)

        def boom(*args, **kwargs):
            raise AssertionError("search ran again")

        monkeypatch.setattr(search, "score_candidates", boom)

        assert search_best_tokens_cached(store=memory_store).to_json() == first.to_json()

    def test_different_args_different_keys(self, memory_store):
        """Test each argument takes part in the key."""
        from pagepilot.design import search_best_tokens_cached

        keys = {
            search_best_tokens_cached(store=memory_store).cache_key,
            search_best_tokens_cached(dark=True, store=memory_store).cache_key,
            search_best_tokens_cached(tone="minimal", store=memory_store).cache_key,
            search_best_tokens_cached(industry="saas", store=memory_store).cache_key,
        }

        assert len(keys) == 4
        assert len(memory_store.get("token.search").value) == 4

    def test_stale_schema_recomputed(self, memory_store):
        """Test entries written under another schema version are ignored."""
        from pagepilot.design import SCHEMA_VERSION, search_best_tokens_cached

        first = search_best_tokens_cached(store=memory_store)
        doc = memory_store.get("token.search").value
        doc[first.cache_key]["schema_version"] = SCHEMA_VERSION - 1
        doc[first.cache_key]["tried"] = 0
        memory_store.set("token.search", doc)

        again = search_best_tokens_cached(store=memory_store)

        assert again.tried == first.tried
        assert memory_store.get("token.search").value[first.cache_key]["schema_version"] == SCHEMA_VERSION

    def test_brutalist_penalised(self, memory_store):
        """Test an inaccessible requested tone loses to an accessible neighbour."""
        from pagepilot.design import search_best_tokens_cached

        result = search_best_tokens_cached(tone="brutalist", store=memory_store)

        assert result.picked["tone"] != "brutalist"
        assert result.picked["a11y"] is True

    def test_priors_steer_choice(self, memory_store):
        """Test a strong learned preference wins among accessible candidates."""
        from pagepilot.design import TasteTrainer, search_best_tokens_cached

        trainer = TasteTrainer(store=memory_store)
        for _ in range(10):
            trainer.log_event("win", "#6d28d9", True, "playful")
        trainer.retrain()

        result = search_best_tokens_cached(tone="serious", store=memory_store)

        assert result.picked["dark"] is True
        assert result.picked["tone"] == "playful"

    def test_cache_eviction(self, memory_store):
        """Test the oldest entries are evicted past the limit."""
        from pagepilot.design import DesignConfig, search_best_tokens_cached

        config = DesignConfig(cache_limit=2)
        first = search_best_tokens_cached(tone="minimal", store=memory_store, config=config)
        search_best_tokens_cached(tone="serious", store=memory_store, config=config)
        search_best_tokens_cached(tone="playful", store=memory_store, config=config)

        doc = memory_store.get("token.search").value
        assert len(doc) == 2
        assert first.cache_key not in doc

    def test_store_failure_still_returns(self):
        """Test an unwritable store only costs the memo."""
        from pagepilot.design import search_best_tokens_cached
        from pagepilot.storage import InMemoryStore

        class ReadOnly(InMemoryStore):
            def _write(self, key, value):
                raise OSError("read-only")

        result = search_best_tokens_cached(store=ReadOnly())

        assert result.picked["a11y"] is True


class TestWideTokenSearch:
    """Test wide_token_search."""

    def test_palette_neighbourhood(self):
        """Test the palette starts at the base and has no duplicates."""
        from pagepilot.design.search import expand_primary_palette

        palette = expand_primary_palette("#0EA5E9")

        assert palette[0] == "#0ea5e9"
        assert len(palette) == len(set(palette))
        assert len(palette) <= 23
        assert expand_primary_palette("#0ea5e9") == palette

    def test_wide_search(self):
        """Test the wide search is capped, accessible and deterministic."""
        from pagepilot.design import wide_token_search

        result = wide_token_search("#0ea5e9", False, "minimal")
        again = wide_token_search("#0ea5e9", False, "minimal")

        assert result.tried == 48
        assert result.picked.a11y_pass
        assert len(result.top5) == 5
        assert result.to_dict() == again.to_dict()

    def test_wide_search_avoids_brutalist(self):
        """Test accessibility outranks the requested tone."""
        from pagepilot.design import wide_token_search

        result = wide_token_search(tone="brutalist")

        assert result.picked.tone == "serious"
        assert result.tokens.tone == "serious"
