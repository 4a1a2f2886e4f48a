"""
Routing Module for PagePilot.

Decides *how* a page gets generated:
- under_budget: pure cost/token admission check
- StrategyBandit: Thompson sampling over generation paths (rules/local/cloud)
- ExpertBandit: Thompson sampling over named experts per task

Outcomes reported back update Beta posteriors and latency/cost/token EMAs.
"""

from .config import RouterConfig, get_router_config, reset_router_config, DEFAULT_ARM_PRIORS
from .budget import BudgetLimits, under_budget
from .bandit import (
    ArmStats,
    Outcome,
    StrategyBandit,
    ThompsonRouter,
    ema,
    get_strategy_bandit,
    reset_strategy_bandit,
    pick_arm,
    record_outcome,
)
from .experts import (
    DEFAULT_EXPERTS,
    Expert,
    ExpertStats,
    ExpertBandit,
    choose_expert_key,
    expert_by_key,
    experts_for_task,
    get_expert_bandit,
    record_expert_outcome,
    reset_expert_bandit,
)

__all__ = [
    # Config
    "RouterConfig",
    "get_router_config",
    "reset_router_config",
    "DEFAULT_ARM_PRIORS",
    # Budget
    "BudgetLimits",
    "under_budget",
    # Strategy bandit
    "ArmStats",
    "Outcome",
    "StrategyBandit",
    "ThompsonRouter",
    "ema",
    "get_strategy_bandit",
    "reset_strategy_bandit",
    "pick_arm",
    "record_outcome",
    # Experts
    "DEFAULT_EXPERTS",
    "Expert",
    "ExpertStats",
    "ExpertBandit",
    "choose_expert_key",
    "expert_by_key",
    "experts_for_task",
    "get_expert_bandit",
    "record_expert_outcome",
    "reset_expert_bandit",
]
