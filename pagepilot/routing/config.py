"""
Router Configuration for PagePilot.

Module-local configuration for the strategy/expert routers and the budget
gate. All settings are configurable via environment variables.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Generation paths and their Beta priors: rules are cheap and usually fine,
# cloud is expensive and must earn its keep.
DEFAULT_ARM_PRIORS: Dict[str, Tuple[float, float]] = {
    "rules": (3.0, 1.0),
    "local": (2.0, 2.0),
    "cloud": (1.0, 3.0),
}


def _get_float(key: str, default: float) -> float:
    try:
        return float(os.environ.get(key, default))
    except (ValueError, TypeError):
        return default


@dataclass
class RouterConfig:
    """
    Configuration for the routing subsystem.

    Attributes:
        lambda_ms: Penalty per second of EMA latency
        lambda_cents: Penalty per cent of EMA cost
        lambda_tokens: Penalty per 1k EMA tokens
        ema_alpha: Smoothing factor for latency/cost/token EMAs
        arm_priors: Strategy arm -> (alpha, beta) prior
        default_ms: Latency assumed for an arm with no EMA yet
        default_cents: Cost assumed for an arm with no EMA yet
        default_tokens: Tokens assumed for an arm with no EMA yet
        expert_prior: (alpha, beta) prior for every expert key
        expert_default_ms: Latency assumed for an expert with no EMA yet
        expert_default_cents: Cost assumed for an expert with no EMA yet
        expert_default_tokens: Tokens assumed for an expert with no EMA yet
        max_cents: Default cost ceiling for the budget gate
        max_tokens: Default token ceiling for the budget gate
        router_key: Store key for strategy arm stats
        experts_key: Store key for expert stats
    """

    lambda_ms: float = 0.3
    lambda_cents: float = 0.4
    lambda_tokens: float = 0.1
    ema_alpha: float = 0.25

    arm_priors: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: dict(DEFAULT_ARM_PRIORS)
    )
    default_ms: float = 400.0
    default_cents: float = 0.1
    default_tokens: float = 500.0

    expert_prior: Tuple[float, float] = (2.0, 2.0)
    expert_default_ms: float = 500.0
    expert_default_cents: float = 0.1
    expert_default_tokens: float = 800.0

    max_cents: float = 0.5
    max_tokens: float = 4000.0

    router_key: str = "router.stats"
    experts_key: str = "experts.stats"

    @classmethod
    def from_env(cls) -> "RouterConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            ROUTER_LAMBDA_MS, ROUTER_LAMBDA_CENTS, ROUTER_LAMBDA_TOKENS: float
            ROUTER_EMA_ALPHA: float in (0, 1]
            ROUTER_MAX_CENTS, ROUTER_MAX_TOKENS: float budget ceilings
        """
        ema_alpha = _get_float("ROUTER_EMA_ALPHA", 0.25)
        if not 0.0 < ema_alpha <= 1.0:
            logger.warning(f"[ROUTER] ROUTER_EMA_ALPHA={ema_alpha} out of range, using 0.25")
            ema_alpha = 0.25

        return cls(
            lambda_ms=_get_float("ROUTER_LAMBDA_MS", 0.3),
            lambda_cents=_get_float("ROUTER_LAMBDA_CENTS", 0.4),
            lambda_tokens=_get_float("ROUTER_LAMBDA_TOKENS", 0.1),
            ema_alpha=ema_alpha,
            max_cents=_get_float("ROUTER_MAX_CENTS", 0.5),
            max_tokens=_get_float("ROUTER_MAX_TOKENS", 4000.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "lambda_ms": self.lambda_ms,
            "lambda_cents": self.lambda_cents,
            "lambda_tokens": self.lambda_tokens,
            "ema_alpha": self.ema_alpha,
            "arm_priors": {k: list(v) for k, v in self.arm_priors.items()},
            "default_ms": self.default_ms,
            "default_cents": self.default_cents,
            "default_tokens": self.default_tokens,
            "expert_prior": list(self.expert_prior),
            "max_cents": self.max_cents,
            "max_tokens": self.max_tokens,
        }


# Global config instance (lazy-loaded)
_config: Optional[RouterConfig] = None


def get_router_config(force_reload: bool = False) -> RouterConfig:
    """
    Get the global router configuration.

    Args:
        force_reload: Force reload from environment

    Returns:
        RouterConfig instance
    """
    global _config
    if _config is None or force_reload:
        _config = RouterConfig.from_env()
        logger.debug(
            f"[ROUTER] Config lambdas=({_config.lambda_ms}, {_config.lambda_cents}, "
            f"{_config.lambda_tokens}), ema_alpha={_config.ema_alpha}"
        )
    return _config


def reset_router_config() -> None:
    """Reset global config (mainly for testing)."""
    global _config
    _config = None
