"""
PagePilot - adaptive decision core for a prompt-to-page platform.

Decides, never renders. Components:
- routing: budget gate plus Thompson-sampling routers over generation
  strategies and named experts
- sections: per-audience content-variant bandit with time decay
- design: accessible design tokens, taste priors and a memoised token search
- qa: layout quality rating, gate, guardrail mapping and patch solver
- audit: guardrail audit-log summaries
- storage: injected key/value persistence (file or memory)

Quick Start:
    from pagepilot.routing import pick_arm, record_outcome, under_budget

    arm = pick_arm()
    ...
    record_outcome(arm, {"success": True, "ms": 850, "cents": 0.2, "tokens": 1200})
"""

__version__ = "0.3.0"

from .errors import ConfigurationError, PagePilotError

__all__ = [
    "__version__",
    "ConfigurationError",
    "PagePilotError",
]
