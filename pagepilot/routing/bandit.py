"""
Strategy Bandit for PagePilot.

Thompson-sampling router over generation paths ("rules", "local", "cloud").

Each arm keeps a Beta(alpha, beta) belief over "the request shipped with low
edits and under budget", plus EMAs of latency, cost and tokens. Selection
samples every arm's belief and subtracts a resource penalty:

    score = Beta(alpha, beta) draw
            - (lambda_ms * ema_ms / 1000 + lambda_cents * ema_cents
               + lambda_tokens * ema_tokens / 1000)

State lives in the injected key/value store under ``router.stats`` and is
re-read before every decision. Storage failures never reach the caller.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..sampling import beta_mean, beta_sample
from ..storage import KeyValueStore, get_store
from .config import RouterConfig, get_router_config

logger = logging.getLogger(__name__)


def ema(prev: Optional[float], x: float, alpha: float = 0.25) -> float:
    """Exponential moving average; the first observation seeds the average."""
    if prev is None:
        return x
    return (1.0 - alpha) * prev + alpha * x


def _finite_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return v if math.isfinite(v) and v >= 0 else None


class Outcome(BaseModel):
    """
    Result of one routed generation, reported back by the request handler.

    Metrics that are missing, negative or non-finite are treated as not
    observed and leave the arm's EMAs untouched.
    """

    model_config = ConfigDict(extra="ignore")

    success: bool
    ms: Optional[float] = None
    cents: Optional[float] = None
    tokens: Optional[float] = None

    @field_validator("ms", "cents", "tokens", mode="before")
    @classmethod
    def _drop_unusable(cls, v: Any) -> Optional[float]:
        return _finite_or_none(v)


OutcomeLike = Union[Outcome, Mapping[str, Any]]


@dataclass
class ArmStats:
    """
    State for a single routing arm.

    Attributes:
        arm_id: Arm name (e.g. "rules") or expert key
        alpha: Successes + prior, never below 1
        beta: Failures + prior, never below 1
        ema_ms: Latency EMA in milliseconds
        ema_cents: Cost EMA in cents
        ema_tokens: Token-count EMA
        n: Number of recorded outcomes
    """

    arm_id: str
    alpha: float = 1.0
    beta: float = 1.0
    ema_ms: Optional[float] = None
    ema_cents: Optional[float] = None
    ema_tokens: Optional[float] = None
    n: int = 0

    @property
    def mean(self) -> float:
        """Posterior mean success rate."""
        return beta_mean(self.alpha, self.beta)

    def apply(self, outcome: Outcome, ema_alpha: float) -> None:
        """Fold one outcome into the arm."""
        if outcome.success:
            self.alpha += 1.0
        else:
            self.beta += 1.0
        self.n += 1
        if outcome.ms is not None:
            self.ema_ms = ema(self.ema_ms, outcome.ms, ema_alpha)
        if outcome.cents is not None:
            self.ema_cents = ema(self.ema_cents, outcome.cents, ema_alpha)
        if outcome.tokens is not None:
            self.ema_tokens = ema(self.ema_tokens, outcome.tokens, ema_alpha)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "arm": self.arm_id,
            "alpha": self.alpha,
            "beta": self.beta,
            "ema_ms": self.ema_ms,
            "ema_cents": self.ema_cents,
            "ema_tokens": self.ema_tokens,
            "n": self.n,
        }

    @classmethod
    def from_dict(
        cls,
        arm_id: str,
        data: Any,
        prior: Tuple[float, float] = (1.0, 1.0),
    ) -> "ArmStats":
        """
        Rebuild an arm from persisted data, repairing anything out of range.

        Non-mapping data yields a fresh arm at ``prior``.
        """
        if not isinstance(data, Mapping):
            return cls(arm_id=arm_id, alpha=prior[0], beta=prior[1])

        def shape(key: str, fallback: float) -> float:
            v = _finite_or_none(data.get(key))
            return fallback if v is None else max(1.0, v)

        n = _finite_or_none(data.get("n"))
        return cls(
            arm_id=arm_id,
            alpha=shape("alpha", prior[0]),
            beta=shape("beta", prior[1]),
            ema_ms=_finite_or_none(data.get("ema_ms")),
            ema_cents=_finite_or_none(data.get("ema_cents")),
            ema_tokens=_finite_or_none(data.get("ema_tokens")),
            n=int(n) if n is not None else 0,
        )


class ThompsonRouter:
    """
    Shared Thompson-sampling machinery for strategy arms and experts.

    Subclasses define which store key they own, each key's prior and the
    neutral EMA values assumed before any observation.
    """

    tag = "ROUTER"

    def __init__(
        self,
        store_key: str,
        config: Optional[RouterConfig] = None,
        store: Optional[KeyValueStore] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.config = config or get_router_config()
        self.store_key = store_key
        self.store = store or get_store()
        self.rng = rng
        self._state: Dict[str, ArmStats] = {}
        self._load_state()

    # ----- subclass hooks -----

    def prior_for(self, arm_id: str) -> Tuple[float, float]:
        return (1.0, 1.0)

    def neutral_metrics(self) -> Tuple[float, float, float]:
        return (self.config.default_ms, self.config.default_cents, self.config.default_tokens)

    def default_arms(self) -> List[str]:
        return []

    # ----- persistence -----

    def _parse(self, doc: Any) -> Dict[str, ArmStats]:
        state: Dict[str, ArmStats] = {}
        if isinstance(doc, Mapping):
            for arm_id, data in doc.items():
                state[str(arm_id)] = ArmStats.from_dict(str(arm_id), data, self.prior_for(str(arm_id)))
        elif doc is not None:
            logger.warning(f"[{self.tag}] Ignoring malformed state under {self.store_key!r}")
        for arm_id in self.default_arms():
            if arm_id not in state:
                alpha, beta = self.prior_for(arm_id)
                state[arm_id] = ArmStats(arm_id=arm_id, alpha=alpha, beta=beta)
        return state

    @staticmethod
    def _serialize(state: Dict[str, ArmStats]) -> Dict[str, Any]:
        return {arm_id: arm.to_dict() for arm_id, arm in state.items()}

    def _load_state(self) -> None:
        """Load state from the store, falling back to priors."""
        result = self.store.get(self.store_key)
        if result.ok:
            self._state = self._parse(result.value)
            logger.debug(f"[{self.tag}] Loaded {len(self._state)} arms from {self.store_key!r}")
        else:
            self._state = self._parse(None)
            logger.warning(f"[{self.tag}] Using in-memory defaults: {result.error}")

    def _refresh(self) -> Dict[str, ArmStats]:
        result = self.store.get(self.store_key)
        if result.ok and result.value is not None:
            self._state = self._parse(result.value)
        elif result.error is not None and result.error.is_corrupt:
            self._state = self._parse(None)
        return self._state

    def _arm(self, state: Dict[str, ArmStats], arm_id: str) -> ArmStats:
        arm = state.get(arm_id)
        if arm is None:
            alpha, beta = self.prior_for(arm_id)
            arm = ArmStats(arm_id=arm_id, alpha=alpha, beta=beta)
        return arm

    # ----- decisions -----

    def score(self, arm: ArmStats, draw: float) -> float:
        """Sampled success minus the resource penalty."""
        neutral_ms, neutral_cents, neutral_tokens = self.neutral_metrics()
        ms = arm.ema_ms if arm.ema_ms is not None else neutral_ms
        cents = arm.ema_cents if arm.ema_cents is not None else neutral_cents
        tokens = arm.ema_tokens if arm.ema_tokens is not None else neutral_tokens
        penalty = (
            self.config.lambda_ms * ms / 1000.0
            + self.config.lambda_cents * cents
            + self.config.lambda_tokens * tokens / 1000.0
        )
        return draw - penalty

    def _select(self, arm_ids: Sequence[str]) -> Optional[str]:
        if not arm_ids:
            return None
        state = self._refresh()
        best_id: Optional[str] = None
        best_score = -math.inf
        for arm_id in arm_ids:
            arm = self._arm(state, arm_id)
            value = self.score(arm, beta_sample(arm.alpha, arm.beta, self.rng))
            # Strict comparison keeps the first-seen arm on ties
            if best_id is None or value > best_score:
                best_id, best_score = arm_id, value
        logger.debug(f"[{self.tag}] Selected {best_id} (score={best_score:.3f})")
        return best_id

    def _record(self, arm_id: str, outcome: OutcomeLike) -> Optional[ArmStats]:
        try:
            parsed = outcome if isinstance(outcome, Outcome) else Outcome.model_validate(outcome)
        except ValidationError as e:
            logger.warning(f"[{self.tag}] Ignoring malformed outcome for {arm_id!r}: {e}")
            return None

        ema_alpha = self.config.ema_alpha

        def update(doc: Any) -> Dict[str, Any]:
            state = self._parse(doc)
            arm = self._arm(state, arm_id)
            arm.apply(parsed, ema_alpha)
            state[arm_id] = arm
            return self._serialize(state)

        result = self.store.merge(self.store_key, update, default={})
        if result.ok:
            self._state = self._parse(result.value)
        else:
            logger.warning(f"[{self.tag}] Outcome kept in memory only: {result.error}")
            arm = self._arm(self._state, arm_id)
            arm.apply(parsed, ema_alpha)
            self._state[arm_id] = arm

        recorded = self._state[arm_id]
        logger.debug(
            f"[{self.tag}] Updated {arm_id}: success={parsed.success}, "
            f"alpha={recorded.alpha:.0f}, beta={recorded.beta:.0f}, n={recorded.n}"
        )
        return recorded

    def get_stats(self) -> Dict[str, Any]:
        """Get per-arm statistics."""
        state = self._refresh()
        return {
            "store_key": self.store_key,
            "arms": {
                arm_id: {**arm.to_dict(), "mean": round(arm.mean, 4)}
                for arm_id, arm in state.items()
            },
            "best_arm": max(state.values(), key=lambda a: a.mean).arm_id if state else None,
        }

    def reset(self) -> None:
        """Reset state to priors."""
        self._state = self._parse(None)
        result = self.store.set(self.store_key, self._serialize(self._state))
        if not result.ok:
            logger.warning(f"[{self.tag}] Reset not persisted: {result.error}")
        logger.info(f"[{self.tag}] Reset {self.store_key!r}")


class StrategyBandit(ThompsonRouter):
    """
    Router over generation paths.

    Usage:
        bandit = StrategyBandit()
        if under_budget(cents=estimate.cents, tokens=estimate.tokens):
            arm = bandit.pick_arm()
        ...
        bandit.record_outcome(arm, {"success": True, "ms": 820, "cents": 0.2})
    """

    tag = "ROUTER"

    def __init__(
        self,
        config: Optional[RouterConfig] = None,
        store: Optional[KeyValueStore] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        config = config or get_router_config()
        super().__init__(config.router_key, config=config, store=store, rng=rng)

    def prior_for(self, arm_id: str) -> Tuple[float, float]:
        return self.config.arm_priors.get(arm_id, (1.0, 1.0))

    def default_arms(self) -> List[str]:
        return list(self.config.arm_priors)

    def pick_arm(self, arms: Optional[Sequence[str]] = None) -> str:
        """
        Choose a generation path.

        Args:
            arms: Candidate arms in priority order (configured arms if None)

        Returns:
            The arm with the highest penalised Thompson draw
        """
        candidates = list(arms) if arms else self.default_arms()
        picked = self._select(candidates)
        return picked if picked is not None else ""

    def record_outcome(self, arm: str, outcome: OutcomeLike) -> Optional[ArmStats]:
        """
        Report the result of a routed request. Never raises.

        Returns:
            The arm's updated stats, or None if the outcome was malformed
        """
        try:
            return self._record(arm, outcome)
        except Exception as e:
            logger.warning(f"[ROUTER] record_outcome failed for {arm!r}: {e}")
            return None


# Global bandit instance
_bandit: Optional[StrategyBandit] = None


def get_strategy_bandit(config: Optional[RouterConfig] = None) -> StrategyBandit:
    """Get global strategy bandit instance."""
    global _bandit
    if _bandit is None:
        _bandit = StrategyBandit(config=config)
    return _bandit


def reset_strategy_bandit() -> None:
    """Reset global bandit (mainly for testing)."""
    global _bandit
    _bandit = None


def pick_arm(arms: Optional[Sequence[str]] = None) -> str:
    """Choose a generation path with the global strategy bandit."""
    return get_strategy_bandit().pick_arm(arms)


def record_outcome(arm: str, outcome: OutcomeLike) -> Optional[ArmStats]:
    """Report an outcome to the global strategy bandit."""
    return get_strategy_bandit().record_outcome(arm, outcome)
