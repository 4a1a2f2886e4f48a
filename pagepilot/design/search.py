"""
Design Token Search for PagePilot.

Two deterministic searches over brand-triple neighbourhoods:

- wide_token_search: tints, shades and a hash-permuted HSL ring around the
  requested primary, ranked accessibility first, then visual score, then
  closeness to what was asked for
- search_best_tokens_cached: lightness-shifted primaries x tones x
  {dark, light}, ranked by a fitness that folds in learned taste priors and
  goal/industry nudges, memoised in the ``token.search`` store

Memo keys hash the normalised arguments together with SCHEMA_VERSION, so any
change to scoring must bump the version.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from ..storage import KeyValueStore, get_store
from .color import normalize_hex, shade, shift_hsl, shift_lightness, tint
from .config import DesignConfig, get_design_config
from .heuristics import goal_industry_bonus
from .priors import TastePriors, load_taste_priors, prior_bonus
from .score import evaluate_design
from .tokens import DesignTokens, normalize_tone, token_mixer

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 5

LIGHTNESS_DELTAS = (0.0, -0.06, 0.06, -0.12, 0.12)

TONE_NEIGHBOURHOOD = {
    "minimal": ("minimal", "serious"),
    "serious": ("serious", "minimal"),
    "playful": ("playful", "minimal"),
    "brutalist": ("brutalist", "serious"),
}

_RING_HUE = (-8, -4, 4, 8)
_RING_SAT = (-6, 6)
_RING_LIGHT = (-6, 6)
_RING_SIZE = 16


def stable_json(obj: Any) -> str:
    """Canonical JSON: sorted keys, no whitespace."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"))


def _fnv1a(text: str) -> int:
    h = 2166136261
    for ch in text:
        h = ((h ^ ord(ch)) * 16777619) & 0xFFFFFFFF
    return h


@dataclass
class DesignCandidate:
    """One scored brand triple."""

    primary: str
    dark: bool
    tone: str
    tokens: Optional[DesignTokens] = None
    fitness: float = 0.0
    a11y_pass: bool = False
    visual: float = 0.0

    def summary(self) -> Dict[str, Any]:
        return {
            "primary": self.primary,
            "dark": self.dark,
            "tone": self.tone,
            "fitness": self.fitness,
            "a11y": self.a11y_pass,
            "visual": self.visual,
        }


@lru_cache(maxsize=2048)
def _evaluate_triple(
    primary: str,
    tone: str,
    dark: bool,
    text_contrast: float,
    primary_contrast: float,
) -> Tuple[bool, float]:
    config = DesignConfig(text_contrast=text_contrast, primary_contrast=primary_contrast)
    evaluation = evaluate_design(token_mixer(primary, dark, tone, config=config))
    return evaluation.a11y_pass, evaluation.visual_score


# ----- wide search -----

def expand_primary_palette(primary: str) -> List[str]:
    """
    Deterministic palette neighbourhood: the base, three tints, three shades
    and up to sixteen HSL ring jitters in a hash-dependent order.
    """
    base = normalize_hex(primary)
    palette = [base]
    for amount in (0.08, 0.16, 0.24):
        palette.append(tint(base, amount))
    for amount in (0.08, 0.16, 0.24):
        palette.append(shade(base, amount))

    offset = _fnv1a(base)

    def rotate(values: Tuple[int, ...]) -> List[int]:
        n = len(values)
        return [values[(i + offset % n) % n] for i in range(n)]

    ring = [
        shift_hsl(base, dh, ds, dl)
        for dh in rotate(_RING_HUE)
        for ds in rotate(_RING_SAT)
        for dl in rotate(_RING_LIGHT)
    ]
    palette.extend(ring[:_RING_SIZE])
    return list(dict.fromkeys(palette))


@dataclass
class WideSearchResult:
    tokens: DesignTokens
    picked: DesignCandidate
    tried: int
    candidates: int
    top5: List[DesignCandidate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tokens": self.tokens.to_dict(),
            "picked": self.picked.summary(),
            "tried": self.tried,
            "candidates": self.candidates,
            "top5": [c.summary() for c in self.top5],
        }


def wide_token_search(
    primary: Optional[str] = None,
    dark: bool = False,
    tone: str = "serious",
    config: Optional[DesignConfig] = None,
) -> WideSearchResult:
    """
    Search the palette x tone x mode neighbourhood of a brand triple.

    The winner maximises (a11y_pass, visual score, proximity), where
    proximity counts how many of primary/tone/mode match the request.
    Earlier candidates win ties.
    """
    config = config or get_design_config()
    primary_in = normalize_hex(primary)
    tone_in = normalize_tone(tone)
    dark_in = bool(dark)

    tones = TONE_NEIGHBOURHOOD[tone_in]
    candidates = [
        DesignCandidate(primary=p, dark=d, tone=t)
        for p in expand_primary_palette(primary_in)
        for t in tones
        for d in (dark_in, not dark_in)
    ][: config.max_candidates]

    best: Optional[DesignCandidate] = None
    best_rank: Tuple[int, float, int] = (-1, -1.0, -1)
    for cand in candidates:
        cand.a11y_pass, cand.visual = _evaluate_triple(
            cand.primary, cand.tone, cand.dark, config.text_contrast, config.primary_contrast
        )
        proximity = (cand.primary == primary_in) + (cand.tone == tone_in) + (cand.dark == dark_in)
        rank = (int(cand.a11y_pass), cand.visual, proximity)
        if rank > best_rank:
            best, best_rank = cand, rank

    top5 = sorted(candidates, key=lambda c: (not c.a11y_pass, -c.visual))[:5]
    tokens = token_mixer(best.primary, best.dark, best.tone, config=config)
    logger.debug(
        f"[DESIGN] Wide search picked {best.primary}/{best.tone}/dark={best.dark} "
        f"from {len(candidates)} candidates"
    )
    return WideSearchResult(
        tokens=tokens,
        picked=best,
        tried=len(candidates),
        candidates=len(candidates),
        top5=top5,
    )


# ----- cached search -----

@dataclass
class TokenSearchResult:
    """
    A memoised search outcome. Immutable once written to the store.

    Attributes:
        cache_key: sha256 of the schema version and normalised arguments
        schema_version: SCHEMA_VERSION at the time of writing
        args: The normalised arguments
        best: Token bundle of the winner, as a plain dict
        picked: Summary of the winning candidate
        tried: Number of candidates scored
        top: Summaries of the best candidates, best first
    """

    cache_key: str
    schema_version: int
    args: Dict[str, Any]
    best: Dict[str, Any]
    picked: Dict[str, Any]
    tried: int
    top: List[Dict[str, Any]] = field(default_factory=list)

    def best_tokens(self) -> DesignTokens:
        return DesignTokens.from_dict(self.best)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cache_key": self.cache_key,
            "schema_version": self.schema_version,
            "args": dict(self.args),
            "best": self.best,
            "picked": dict(self.picked),
            "tried": self.tried,
            "top": [dict(t) for t in self.top],
        }

    def to_json(self) -> str:
        return stable_json(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenSearchResult":
        return cls(
            cache_key=str(data["cache_key"]),
            schema_version=int(data["schema_version"]),
            args=dict(data["args"]),
            best=dict(data["best"]),
            picked=dict(data["picked"]),
            tried=int(data["tried"]),
            top=[dict(t) for t in data.get("top", [])],
        )


def _normalise_args(
    primary: Optional[str],
    dark: bool,
    tone: str,
    goal: Optional[str],
    industry: Optional[str],
) -> Dict[str, Any]:
    return {
        "primary": normalize_hex(primary),
        "dark": bool(dark),
        "tone": normalize_tone(tone),
        "goal": str(goal).strip().lower() if goal else None,
        "industry": str(industry).strip().lower() if industry else None,
    }


def search_cache_key(args: Dict[str, Any]) -> str:
    payload = stable_json({"v": SCHEMA_VERSION, "args": args})
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def generate_candidates(
    primary: str,
    dark: bool,
    tone: str,
    limit: int = 48,
) -> List[DesignCandidate]:
    """Lightness-shifted primaries x {requested, opposite mode} x tones, capped at ``limit``."""
    base = normalize_hex(primary)
    primaries = list(dict.fromkeys(
        base if delta == 0 else shift_lightness(base, delta) for delta in LIGHTNESS_DELTAS
    ))
    tones = list(dict.fromkeys([tone, "minimal", "serious", "playful"]))
    out = [
        DesignCandidate(primary=p, dark=d, tone=t)
        for p in primaries
        for d in (dark, not dark)
        for t in tones
    ]
    return out[:limit]


def score_candidates(
    candidates: List[DesignCandidate],
    priors: TastePriors,
    goal: Optional[str] = None,
    industry: Optional[str] = None,
    config: Optional[DesignConfig] = None,
) -> List[DesignCandidate]:
    """
    Fill in tokens and fitness for each candidate and rank them.

    ``fitness = visual / 100`` (times the a11y penalty when a11y fails) plus
    the prior bonus and the goal/industry bonus, rounded to 4 places.
    Ranking is by fitness, then raw visual score; the sort is stable.
    """
    config = config or get_design_config()
    for cand in candidates:
        cand.tokens = token_mixer(cand.primary, cand.dark, cand.tone, config=config)
        evaluation = evaluate_design(cand.tokens)
        cand.a11y_pass = evaluation.a11y_pass
        cand.visual = evaluation.visual_score
        fitness = evaluation.visual_score / 100.0
        if not evaluation.a11y_pass:
            fitness *= config.a11y_penalty
        fitness += prior_bonus(cand, priors, config)
        fitness += goal_industry_bonus(cand.tone, cand.dark, goal, industry, config=config)
        cand.fitness = round(fitness, 4)
    return sorted(candidates, key=lambda c: (-c.fitness, -c.visual))


def _read_cached(store: KeyValueStore, config: DesignConfig, key: str) -> Optional[TokenSearchResult]:
    doc = store.get(config.search_key).value_or({})
    entry = doc.get(key) if isinstance(doc, dict) else None
    if not isinstance(entry, dict):
        return None
    try:
        cached = TokenSearchResult.from_dict(entry)
    except (KeyError, TypeError, ValueError) as e:
        logger.warning(f"[DESIGN] Discarding malformed search cache entry {key[:12]}: {e}")
        return None
    if cached.schema_version != SCHEMA_VERSION or cached.cache_key != key:
        return None
    return cached


def search_best_tokens_cached(
    primary: Optional[str] = None,
    dark: bool = False,
    tone: str = "serious",
    goal: Optional[str] = None,
    industry: Optional[str] = None,
    store: Optional[KeyValueStore] = None,
    config: Optional[DesignConfig] = None,
) -> TokenSearchResult:
    """
    Best token bundle for a brand triple and page context, memoised.

    The first call scores up to ``max_candidates`` candidates and stores the
    result; later calls with equivalent arguments return the stored entry,
    so ``to_json()`` is byte-identical across calls. Store failures only
    cost a recomputation.

    Args:
        primary: Brand color as hex (falls back to the default purple)
        dark: Prefer a dark background
        tone: Requested tone
        goal: Page goal hint, e.g. "purchase", "waitlist", "demo"
        industry: Industry hint, e.g. "saas", "ecommerce", "portfolio"
        store: Key/value store (defaults to the global store)
        config: Search settings (defaults to the global design config)

    Returns:
        TokenSearchResult
    """
    config = config or get_design_config()
    store = store or get_store()
    args = _normalise_args(primary, dark, tone, goal, industry)
    key = search_cache_key(args)

    cached = _read_cached(store, config, key)
    if cached is not None:
        logger.debug(f"[DESIGN] Token search cache hit {key[:12]}")
        return cached

    priors = load_taste_priors(store, config)
    candidates = generate_candidates(args["primary"], args["dark"], args["tone"], config.max_candidates)
    ranked = score_candidates(candidates, priors, args["goal"], args["industry"], config)
    if ranked:
        winner = ranked[0]
        best = winner.tokens.to_dict()
        picked = winner.summary()
    else:
        best = token_mixer(args["primary"], args["dark"], args["tone"], config=config).to_dict()
        picked = {}

    result = TokenSearchResult(
        cache_key=key,
        schema_version=SCHEMA_VERSION,
        args=args,
        best=best,
        picked=picked,
        tried=len(ranked),
        top=[c.summary() for c in ranked[: config.top_k]],
    )
    # Normalise through JSON so a fresh result matches what a cache hit returns.
    result = TokenSearchResult.from_dict(json.loads(result.to_json()))

    def update(doc: Any) -> Dict[str, Any]:
        entries = doc if isinstance(doc, dict) else {}
        entries.pop(key, None)
        entries[key] = result.to_dict()
        while len(entries) > config.cache_limit:
            entries.pop(next(iter(entries)))
        return entries

    stored = store.merge(config.search_key, update, default={})
    if not stored.ok:
        logger.warning(f"[DESIGN] Token search result not cached: {stored.error}")
    logger.info(
        f"[DESIGN] Token search {key[:12]}: picked {picked.get('primary')}/{picked.get('tone')} "
        f"dark={picked.get('dark')} fitness={picked.get('fitness')} from {len(ranked)}"
    )
    return result
