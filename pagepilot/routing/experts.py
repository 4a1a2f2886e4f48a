"""
Expert Bandit for PagePilot.

Generalised router over named experts (one model/provider pairing per
task). Same Beta-Bernoulli + resource-penalty maths as the strategy bandit,
but keyed by free-form strings with a flatter Beta(2, 2) prior, persisted
under ``experts.stats``.

The expert registry below lists what can be chosen; ``pick_expert_for``
narrows it by task and an optional per-call cost cap before sampling.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..storage import KeyValueStore
from .bandit import ArmStats, OutcomeLike, ThompsonRouter
from .config import RouterConfig, get_router_config

logger = logging.getLogger(__name__)

# Expert records share the strategy arm shape; only the key space differs.
ExpertStats = ArmStats

VALID_TASKS = ("planner", "coder", "critic")


@dataclass(frozen=True)
class Expert:
    """
    A selectable model for one task.

    Attributes:
        key: Stable stats key, e.g. "critic/mini/4o-mini"
        task: "planner", "coder" or "critic"
        provider: Serving provider name
        model: Provider model id
        cost_cents: Rough per-call cost estimate
        tokens_est: Rough per-call token estimate
        enabled: Disabled experts are never offered
    """

    key: str
    task: str
    provider: str
    model: str
    cost_cents: float
    tokens_est: int
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "task": self.task,
            "provider": self.provider,
            "model": self.model,
            "cost_cents": self.cost_cents,
            "tokens_est": self.tokens_est,
            "enabled": self.enabled,
        }


DEFAULT_EXPERTS: Tuple[Expert, ...] = (
    Expert("critic/mini/4o-mini", "critic", "openai", "gpt-4o-mini", 0.03, 1200),
    Expert("critic/best/4o", "critic", "openai", "gpt-4o", 0.15, 2000),
    Expert("planner/mini/4o-mini", "planner", "openai", "gpt-4o-mini", 0.02, 800),
    Expert("planner/best/4o", "planner", "openai", "gpt-4o", 0.12, 1600),
    Expert("coder/mini/4o-mini", "coder", "openai", "gpt-4o-mini", 0.04, 1600),
    Expert("coder/best/4o", "coder", "openai", "gpt-4o", 0.40, 4000),
)


def experts_for_task(
    task: str,
    max_cents: Optional[float] = None,
    registry: Sequence[Expert] = DEFAULT_EXPERTS,
) -> List[Expert]:
    """
    List enabled experts for a task, optionally capped by per-call cost.

    Args:
        task: Task name
        max_cents: Drop experts whose cost estimate exceeds this
        registry: Expert pool (default registry if omitted)
    """
    pool = [e for e in registry if e.task == task and e.enabled]
    if max_cents is not None:
        pool = [e for e in pool if e.cost_cents <= max_cents]
    return pool


def expert_by_key(key: str, registry: Sequence[Expert] = DEFAULT_EXPERTS) -> Optional[Expert]:
    for expert in registry:
        if expert.key == key:
            return expert
    return None


class ExpertBandit(ThompsonRouter):
    """
    Thompson-sampling router over named experts.

    Usage:
        bandit = ExpertBandit()
        expert = bandit.pick_expert_for("critic", max_cents=0.05)
        ...
        bandit.record_expert_outcome(expert.key, {"success": False, "ms": 2400})
    """

    tag = "EXPERTS"

    def __init__(
        self,
        config: Optional[RouterConfig] = None,
        store: Optional[KeyValueStore] = None,
        rng: Optional[np.random.Generator] = None,
        registry: Sequence[Expert] = DEFAULT_EXPERTS,
    ):
        config = config or get_router_config()
        self.registry = tuple(registry)
        super().__init__(config.experts_key, config=config, store=store, rng=rng)

    def prior_for(self, arm_id: str) -> Tuple[float, float]:
        return self.config.expert_prior

    def neutral_metrics(self) -> Tuple[float, float, float]:
        return (
            self.config.expert_default_ms,
            self.config.expert_default_cents,
            self.config.expert_default_tokens,
        )

    def choose_expert_key(self, keys: Sequence[str]) -> Optional[str]:
        """
        Choose among arbitrary expert keys.

        Returns:
            The winning key, or None when ``keys`` is empty
        """
        return self._select(list(keys))

    def pick_expert_for(self, task: str, max_cents: Optional[float] = None) -> Optional[Expert]:
        """
        Choose an expert for a task within an optional per-call cost cap.

        Returns:
            The chosen Expert, or None if no expert is eligible
        """
        pool = experts_for_task(task, max_cents, self.registry)
        if not pool:
            logger.debug(f"[EXPERTS] No eligible expert for task={task}, max_cents={max_cents}")
            return None
        key = self._select([e.key for e in pool])
        return next((e for e in pool if e.key == key), pool[0])

    def record_expert_outcome(self, key: str, outcome: OutcomeLike) -> Optional[ArmStats]:
        """Report an expert's outcome. Never raises."""
        try:
            return self._record(key, outcome)
        except Exception as e:
            logger.warning(f"[EXPERTS] record_expert_outcome failed for {key!r}: {e}")
            return None


# Global bandit instance
_bandit: Optional[ExpertBandit] = None


def get_expert_bandit(config: Optional[RouterConfig] = None) -> ExpertBandit:
    """Get global expert bandit instance."""
    global _bandit
    if _bandit is None:
        _bandit = ExpertBandit(config=config)
    return _bandit


def reset_expert_bandit() -> None:
    """Reset global bandit (mainly for testing)."""
    global _bandit
    _bandit = None


def choose_expert_key(keys: Sequence[str]) -> Optional[str]:
    return get_expert_bandit().choose_expert_key(keys)


def record_expert_outcome(key: str, outcome: OutcomeLike) -> Optional[ArmStats]:
    return get_expert_bandit().record_expert_outcome(key, outcome)
