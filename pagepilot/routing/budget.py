"""
Budget Gate for PagePilot.

Pure admission check run before a generation request is routed: a request
is admitted only while both its expected cost and its expected token count
stay within their ceilings.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config import get_router_config


def _observed(value: Any) -> Optional[float]:
    # Missing observations never block a request; unreadable ones always do.
    if value is None:
        return 0.0
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(v):
        return None
    return max(0.0, v)


def _ceiling(value: Optional[float], default: float) -> float:
    if value is None:
        return default
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if not math.isfinite(v):
        return default
    return v


def under_budget(
    cents: Optional[float] = None,
    tokens: Optional[float] = None,
    max_cents: Optional[float] = None,
    max_tokens: Optional[float] = None,
) -> bool:
    """
    Check whether a request fits the cost and token budget.

    Args:
        cents: Expected cost in cents (missing = 0, negative = 0)
        tokens: Expected token count (missing = 0, negative = 0)
        max_cents: Cost ceiling (config default if None)
        max_tokens: Token ceiling (config default if None)

    Returns:
        False if either dimension exceeds its ceiling or is unreadable
        (NaN, infinite, non-numeric)
    """
    config = get_router_config()
    cents_cap = _ceiling(max_cents, config.max_cents)
    tokens_cap = _ceiling(max_tokens, config.max_tokens)
    spent, used = _observed(cents), _observed(tokens)
    if spent is None or used is None:
        return False
    return spent <= cents_cap and used <= tokens_cap


@dataclass
class BudgetLimits:
    """Cost and token ceilings for one caller (e.g. a pricing tier)."""

    max_cents: Optional[float] = None
    max_tokens: Optional[float] = None

    def admits(self, cents: Optional[float] = None, tokens: Optional[float] = None) -> bool:
        return under_budget(cents, tokens, self.max_cents, self.max_tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {"max_cents": self.max_cents, "max_tokens": self.max_tokens}
