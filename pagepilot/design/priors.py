"""
Taste Priors for PagePilot.

Learned preferences over brand triples (primary, dark, tone). Two store keys
are involved:

- ``taste.events``: raw per-signature counters written by TasteTrainer
  as pages ship (``seen``) and convert (``win``)
- ``taste.priors``: the trained summary, a bias triple plus the top
  signatures by smoothed win rate; the token search only reads this

Signatures look like ``"#6d28d9|0|serious"`` (primary, dark flag, tone).
"""

import logging
import math
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..storage import KeyValueStore, get_store
from .config import DesignConfig, get_design_config

logger = logging.getLogger(__name__)

TOP_N = 8
EVENT_KINDS = ("seen", "win")

TopRow = Tuple[str, float, int, int]


def signature(primary: str, dark: bool, tone: str) -> str:
    return f"{str(primary or '').lower()}|{'1' if dark else '0'}|{str(tone or '').lower()}"


def parse_signature(sig: str) -> Dict[str, Any]:
    primary, _, rest = str(sig).partition("|")
    flag, _, tone = rest.partition("|")
    return {"primary": primary or None, "dark": flag == "1", "tone": tone or None}


class TasteBias(BaseModel):
    """Preferred dimensions; any may be unset."""

    model_config = ConfigDict(extra="ignore")

    primary: Optional[str] = None
    dark: Optional[bool] = None
    tone: Optional[str] = None


class TastePriors(BaseModel):
    """
    Trained taste summary.

    ``top`` rows are ``(signature, smoothed win rate, seen, win)``. Rows that
    are too short or carry a non-numeric rate are dropped on load.
    """

    model_config = ConfigDict(extra="ignore")

    bias: TasteBias = TasteBias()
    top: List[TopRow] = []

    @field_validator("bias", mode="before")
    @classmethod
    def _bias_or_empty(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, TasteBias)) else {}

    @field_validator("top", mode="before")
    @classmethod
    def _clean_rows(cls, v: Any) -> List[TopRow]:
        rows: List[TopRow] = []
        if not isinstance(v, (list, tuple)):
            return rows
        for row in v:
            if not isinstance(row, (list, tuple)) or len(row) < 2:
                continue
            try:
                rate = float(row[1])
            except (TypeError, ValueError, OverflowError):
                continue
            if not math.isfinite(rate):
                continue
            seen = _count(row[2]) if len(row) > 2 else 0
            win = _count(row[3]) if len(row) > 3 else 0
            rows.append((str(row[0]), rate, seen, win))
        return rows

    def rate_for(self, sig: str) -> float:
        """Smoothed win rate for a signature, 0.0 when unknown."""
        for key, rate, _, _ in self.top:
            if key == sig:
                return rate
        return 0.0


def load_taste_priors(
    store: Optional[KeyValueStore] = None,
    config: Optional[DesignConfig] = None,
) -> TastePriors:
    """
    Read trained priors. Missing, unreadable or malformed priors load as empty.
    """
    config = config or get_design_config()
    store = store or get_store()
    result = store.get(config.priors_key)
    doc = result.value_or(None)
    if doc is None:
        return TastePriors()
    try:
        return TastePriors.model_validate(doc)
    except ValidationError as e:
        logger.warning(f"[DESIGN] Ignoring malformed taste priors: {e.error_count()} errors")
        return TastePriors()


def prior_bonus(
    candidate: Any,
    priors: TastePriors,
    config: Optional[DesignConfig] = None,
) -> float:
    """
    Fitness bonus from learned taste.

    ``min(prior_cap, rate * prior_weight + bias matches)`` where a matching
    primary adds 0.03, matching dark mode 0.02 and matching tone 0.03.

    Args:
        candidate: Anything with ``primary``, ``dark`` and ``tone`` attributes
        priors: Loaded taste priors
    """
    config = config or get_design_config()
    primary = str(candidate.primary).lower()
    sig = signature(primary, candidate.dark, candidate.tone)

    bonus = priors.rate_for(sig) * config.prior_weight
    bias = priors.bias
    if bias.primary and bias.primary.lower() == primary:
        bonus += config.bias_primary
    if bias.dark is not None and bias.dark == bool(candidate.dark):
        bonus += config.bias_dark
    if bias.tone and bias.tone.lower() == str(candidate.tone).lower():
        bonus += config.bias_tone
    return min(config.prior_cap, bonus)


class TasteMetrics(BaseModel):
    """Quality signals gating the "good" counters."""

    model_config = ConfigDict(extra="ignore")

    a11y: Optional[bool] = None
    cls: Optional[float] = None
    lcp_ms: Optional[float] = None

    def is_good(self) -> bool:
        return (
            self.a11y is not False
            and (self.cls is None or self.cls <= 0.1)
            and (self.lcp_ms is None or self.lcp_ms <= 2500)
        )


class TasteTrainer:
    """
    Collects taste events and trains priors from them.

    Usage:
        trainer = TasteTrainer()
        trainer.log_event("seen", "#6d28d9", False, "serious", {"cls": 0.02})
        trainer.log_event("win", "#6d28d9", False, "serious")
        priors = trainer.retrain()
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[DesignConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store or get_store()
        self.config = config or get_design_config()
        self.clock = clock

    def log_event(
        self,
        kind: str,
        primary: str,
        dark: bool,
        tone: str,
        metrics: Optional[Any] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Count a shipped ("seen") or converted ("win") brand triple.

        A win also counts as seen. The ``good_*`` counters only move when the
        page met a11y and performance bars (CLS <= 0.1, LCP <= 2500ms).

        Returns:
            The updated counter row, or None if the event was rejected or
            could not be stored
        """
        if kind not in EVENT_KINDS:
            logger.warning(f"[DESIGN] Unknown taste event kind {kind!r}")
            return None
        try:
            gate = metrics if isinstance(metrics, TasteMetrics) else TasteMetrics.model_validate(metrics or {})
        except ValidationError:
            gate = TasteMetrics(a11y=False)
        good = gate.is_good()
        sig = signature(primary, dark, tone)
        box: Dict[str, Any] = {}

        def update(doc: Any) -> Dict[str, Any]:
            events = doc if isinstance(doc, dict) else {}
            row = events.get(sig) if isinstance(events.get(sig), dict) else {}
            row = {
                "seen": _count(row.get("seen")),
                "win": _count(row.get("win")),
                "good_seen": _count(row.get("good_seen")),
                "good_win": _count(row.get("good_win")),
            }
            row["seen"] += 1
            if good:
                row["good_seen"] += 1
            if kind == "win":
                row["win"] += 1
                if good:
                    row["good_win"] += 1
            row["ts"] = self.clock()
            events[sig] = row
            box["row"] = row
            return events

        result = self.store.merge(self.config.events_key, update, default={})
        if not result.ok:
            logger.warning(f"[DESIGN] Taste event dropped: {result.error}")
            return None
        return box["row"]

    def retrain(self, alpha: float = 1.0, min_seen: int = 3) -> TastePriors:
        """
        Rebuild priors from the event counters and persist them.

        Scores are ``(win + alpha) / (seen + 2 * alpha)`` over signatures
        with at least ``min_seen`` views. Gated "good" counters are used when
        any signature qualifies on them, raw counters otherwise.
        """
        events = self.store.get(self.config.events_key).value_or({})
        if not isinstance(events, dict):
            events = {}

        good: List[Tuple[str, float, int, int]] = []
        raw: List[Tuple[str, float, int, int]] = []
        for sig, row in events.items():
            if not isinstance(row, dict):
                continue
            s, w = _count(row.get("seen")), _count(row.get("win"))
            gs, gw = _count(row.get("good_seen")), _count(row.get("good_win"))
            if gs >= min_seen:
                good.append((sig, (gw + alpha) / (gs + 2 * alpha), gs, gw))
            if s >= min_seen:
                raw.append((sig, (w + alpha) / (s + 2 * alpha), s, w))

        scored = sorted(good or raw, key=lambda r: (-r[1], -r[2]))[:TOP_N]
        bias = parse_signature(scored[0][0]) if scored else {}
        priors = TastePriors(
            bias=TasteBias(**bias),
            top=[(sig, round(rate, 4), seen, win) for sig, rate, seen, win in scored],
        )

        result = self.store.set(self.config.priors_key, priors.model_dump(mode="json"))
        if not result.ok:
            logger.warning(f"[DESIGN] Taste priors not persisted: {result.error}")
        logger.info(f"[DESIGN] Retrained taste priors from {len(events)} signatures, kept {len(scored)}")
        return priors


def _count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    try:
        v = float(value)
    except OverflowError:
        return 0
    if not math.isfinite(v):
        return 0
    return max(0, int(v))
