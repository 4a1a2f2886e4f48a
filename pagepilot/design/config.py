"""
Design Search Configuration for PagePilot.

All settings are configurable via environment variables.
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class DesignConfig:
    """
    Configuration for token generation and search.

    Attributes:
        max_candidates: Hard cap on candidates scored per cached search
        top_k: Candidates kept in the cached explanation list
        a11y_penalty: Fitness multiplier for candidates failing a11y
        prior_weight: Weight of the learned win rate in the prior bonus
        prior_cap: Ceiling on the prior bonus
        bias_primary: Bonus when the candidate primary matches the learned bias
        bias_dark: Bonus when the candidate mode matches the learned bias
        bias_tone: Bonus when the candidate tone matches the learned bias
        context_cap: Ceiling on the goal/industry bonus
        text_contrast: Target contrast for body text
        primary_contrast: Target contrast for text on the primary color
        cache_limit: Most memoised searches kept before the oldest are evicted
        search_key: Store key for the memoised search results
        priors_key: Store key for learned taste priors
        events_key: Store key for raw taste events
    """

    max_candidates: int = 48
    top_k: int = 6
    a11y_penalty: float = 0.72
    prior_weight: float = 0.12
    prior_cap: float = 0.15
    bias_primary: float = 0.03
    bias_dark: float = 0.02
    bias_tone: float = 0.03
    context_cap: float = 0.04
    text_contrast: float = 7.0
    primary_contrast: float = 4.5
    cache_limit: int = 256
    search_key: str = "token.search"
    priors_key: str = "taste.priors"
    events_key: str = "taste.events"

    @classmethod
    def from_env(cls) -> "DesignConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            DESIGN_MAX_CANDIDATES: int (1-48)
            DESIGN_TOP_K: int
            DESIGN_A11Y_PENALTY: float
            DESIGN_PRIOR_WEIGHT: float
            DESIGN_PRIOR_CAP: float
            DESIGN_CONTEXT_CAP: float
        """
        def get_float(key: str, default: float) -> float:
            try:
                return float(os.environ.get(key, default))
            except (ValueError, TypeError):
                return default

        def get_int(key: str, default: int) -> int:
            try:
                return int(os.environ.get(key, default))
            except (ValueError, TypeError):
                return default

        max_candidates = get_int("DESIGN_MAX_CANDIDATES", 48)
        if not 1 <= max_candidates <= 48:
            logger.warning(f"[DESIGN] DESIGN_MAX_CANDIDATES={max_candidates} out of range, using 48")
            max_candidates = 48

        return cls(
            max_candidates=max_candidates,
            top_k=max(1, get_int("DESIGN_TOP_K", 6)),
            a11y_penalty=get_float("DESIGN_A11Y_PENALTY", 0.72),
            prior_weight=get_float("DESIGN_PRIOR_WEIGHT", 0.12),
            prior_cap=get_float("DESIGN_PRIOR_CAP", 0.15),
            context_cap=get_float("DESIGN_CONTEXT_CAP", 0.04),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "max_candidates": self.max_candidates,
            "top_k": self.top_k,
            "a11y_penalty": self.a11y_penalty,
            "prior_weight": self.prior_weight,
            "prior_cap": self.prior_cap,
            "bias_primary": self.bias_primary,
            "bias_dark": self.bias_dark,
            "bias_tone": self.bias_tone,
            "context_cap": self.context_cap,
            "text_contrast": self.text_contrast,
            "primary_contrast": self.primary_contrast,
            "cache_limit": self.cache_limit,
            "search_key": self.search_key,
            "priors_key": self.priors_key,
            "events_key": self.events_key,
        }


_config: Optional[DesignConfig] = None


def get_design_config(force_reload: bool = False) -> DesignConfig:
    """Get the global design configuration."""
    global _config
    if _config is None or force_reload:
        _config = DesignConfig.from_env()
    return _config


def reset_design_config() -> None:
    """Reset global config (mainly for testing)."""
    global _config
    _config = None
