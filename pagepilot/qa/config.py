"""
Layout QA Configuration for PagePilot.

All settings are configurable via environment variables.
"""

import math
import os
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class LayoutConfig:
    """
    Configuration for the layout gate and solver.

    Attributes:
        hard_fail: LQR below which a page is downgraded
        soft: LQR below which a page is patched
        max_iterations: Solver iteration bound
        min_lqr_delta: Smallest same-tier LQR gain the solver accepts
    """

    hard_fail: float = 60.0
    soft: float = 80.0
    max_iterations: int = 3
    min_lqr_delta: float = 1.0

    @classmethod
    def from_env(cls) -> "LayoutConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            LAYOUT_HARD_FAIL: float
            LAYOUT_SOFT: float
            LAYOUT_MAX_ITERATIONS: int (> 0)
            LAYOUT_MIN_LQR_DELTA: float (> 0)
        """
        def get_float(key: str, default: float) -> float:
            try:
                value = float(os.environ.get(key, default))
            except (ValueError, TypeError):
                return default
            return value if math.isfinite(value) else default

        max_iterations = 3
        try:
            max_iterations = int(os.environ.get("LAYOUT_MAX_ITERATIONS", 3))
        except (ValueError, TypeError):
            pass
        if max_iterations <= 0:
            logger.warning(f"[LAYOUT] LAYOUT_MAX_ITERATIONS={max_iterations} invalid, using 3")
            max_iterations = 3

        min_delta = get_float("LAYOUT_MIN_LQR_DELTA", 1.0)
        if min_delta <= 0:
            min_delta = 1.0

        return cls(
            hard_fail=get_float("LAYOUT_HARD_FAIL", 60.0),
            soft=get_float("LAYOUT_SOFT", 80.0),
            max_iterations=max_iterations,
            min_lqr_delta=min_delta,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "hard_fail": self.hard_fail,
            "soft": self.soft,
            "max_iterations": self.max_iterations,
            "min_lqr_delta": self.min_lqr_delta,
        }


_config: Optional[LayoutConfig] = None


def get_layout_config(force_reload: bool = False) -> LayoutConfig:
    """Get the global layout configuration."""
    global _config
    if _config is None or force_reload:
        _config = LayoutConfig.from_env()
    return _config


def reset_layout_config() -> None:
    """Reset global config (mainly for testing)."""
    global _config
    _config = None
