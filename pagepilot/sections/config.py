"""
Section Bandit Configuration for PagePilot.

All settings are configurable via environment variables.
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class SectionConfig:
    """
    Configuration for the section variant bandit.

    Attributes:
        explore_bonus: Peak bonus for a never-seen variant
        explore_tau: Trials over which the bonus fades (e-folding)
        explore_cap: Trial count after which the bonus stops shrinking
        mean_weight: Weight of the posterior mean tie-breaker
        decay_after_days: Idle time before decay kicks in
        half_life_days: Half-life of evidence once decay applies
        store_key: Store key for section arm stats
    """

    explore_bonus: float = 0.05
    explore_tau: float = 6.0
    explore_cap: int = 20
    mean_weight: float = 0.02
    decay_after_days: float = 7.0
    half_life_days: float = 60.0
    store_key: str = "sections.bandits"

    @classmethod
    def from_env(cls) -> "SectionConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            SECTIONS_EXPLORE_BONUS: float
            SECTIONS_MEAN_WEIGHT: float
            SECTIONS_DECAY_AFTER_DAYS: float
            SECTIONS_HALF_LIFE_DAYS: float (must be > 0)
        """
        def get_float(key: str, default: float) -> float:
            try:
                return float(os.environ.get(key, default))
            except (ValueError, TypeError):
                return default

        half_life = get_float("SECTIONS_HALF_LIFE_DAYS", 60.0)
        if half_life <= 0:
            logger.warning(f"[SECTIONS] SECTIONS_HALF_LIFE_DAYS={half_life} invalid, using 60")
            half_life = 60.0

        return cls(
            explore_bonus=get_float("SECTIONS_EXPLORE_BONUS", 0.05),
            mean_weight=get_float("SECTIONS_MEAN_WEIGHT", 0.02),
            decay_after_days=get_float("SECTIONS_DECAY_AFTER_DAYS", 7.0),
            half_life_days=half_life,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "explore_bonus": self.explore_bonus,
            "explore_tau": self.explore_tau,
            "explore_cap": self.explore_cap,
            "mean_weight": self.mean_weight,
            "decay_after_days": self.decay_after_days,
            "half_life_days": self.half_life_days,
            "store_key": self.store_key,
        }


_config: Optional[SectionConfig] = None


def get_section_config(force_reload: bool = False) -> SectionConfig:
    """Get the global section bandit configuration."""
    global _config
    if _config is None or force_reload:
        _config = SectionConfig.from_env()
    return _config


def reset_section_config() -> None:
    """Reset global config (mainly for testing)."""
    global _config
    _config = None
