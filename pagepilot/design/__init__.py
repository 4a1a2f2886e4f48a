"""
Design Module for PagePilot.

Accessible design tokens from a brand triple (primary color, dark mode,
tone), a heuristic evaluator, learned taste priors and the memoised
token search that combines them.
"""

from .config import DesignConfig, get_design_config, reset_design_config
from .color import (
    DEFAULT_PRIMARY,
    ContrastResult,
    contrast_ratio,
    ensure_contrast,
    normalize_hex,
    relative_luminance,
    shade,
    shift_lightness,
    tint,
)
from .tokens import DesignTokens, TONES, normalize_tone, token_mixer
from .score import DesignEvaluation, evaluate_design
from .priors import (
    TasteBias,
    TasteMetrics,
    TastePriors,
    TasteTrainer,
    load_taste_priors,
    prior_bonus,
    signature,
)
from .heuristics import HeuristicsTable, get_heuristics, goal_industry_bonus
from .search import (
    SCHEMA_VERSION,
    DesignCandidate,
    TokenSearchResult,
    WideSearchResult,
    search_best_tokens_cached,
    wide_token_search,
)

__all__ = [
    # Config
    "DesignConfig",
    "get_design_config",
    "reset_design_config",
    # Color
    "DEFAULT_PRIMARY",
    "ContrastResult",
    "contrast_ratio",
    "ensure_contrast",
    "normalize_hex",
    "relative_luminance",
    "shade",
    "shift_lightness",
    "tint",
    # Tokens
    "DesignTokens",
    "TONES",
    "normalize_tone",
    "token_mixer",
    "DesignEvaluation",
    "evaluate_design",
    # Priors
    "TasteBias",
    "TasteMetrics",
    "TastePriors",
    "TasteTrainer",
    "load_taste_priors",
    "prior_bonus",
    "signature",
    # Heuristics
    "HeuristicsTable",
    "get_heuristics",
    "goal_industry_bonus",
    # Search
    "SCHEMA_VERSION",
    "DesignCandidate",
    "TokenSearchResult",
    "WideSearchResult",
    "search_best_tokens_cached",
    "wide_token_search",
]
