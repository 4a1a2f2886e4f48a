"""
Section Variant Bandit for PagePilot.

Personalises content blocks: for each (audience, base section) pair a set
of sibling variants ("hero-basic", "hero-split", ...) competes under
Thompson sampling. Conversions reported by the webhook are wins.

Selection score per sibling:

    Beta(alpha, beta) draw
    + explore_bonus * exp(-min(seen, explore_cap) / explore_tau)
    + mean_weight * alpha / (alpha + beta)

The exploration bonus favours cold variants for their first handful of
trials and then fades out. Evidence older than ``decay_after_days`` is
shrunk toward the uninformative Beta(1, 1) prior with a ``half_life_days``
half-life, so an early lucky streak cannot dominate forever.

Persisted document (``sections.bandits``):
    {"<audience>|<base_id>": {"siblings": [...], "arms": {variant: {...}}}}
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..sampling import beta_mean, beta_sample
from ..storage import KeyValueStore, get_store
from .config import SectionConfig, get_section_config

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def section_key(audience: str, base_id: str) -> str:
    return f"{audience or 'all'}|{base_id}"


def _num(value: Any, fallback: float, floor: float) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        return fallback
    if not math.isfinite(v):
        return fallback
    return max(floor, v)


def _parse_time(value: Any) -> Optional[datetime]:
    if not isinstance(value, str):
        return None
    try:
        ts = datetime.fromisoformat(value)
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass
class SectionArmStats:
    """
    State for one section variant.

    Attributes:
        variant_id: Variant section id
        alpha: Wins + 1 (decayed), never below 1
        beta: Losses + 1 (decayed), never below 1
        seen: Times the variant was shown (decayed)
        win: Times the variant converted (decayed)
        last_updated: Last outcome or decay time (UTC)
    """

    variant_id: str
    alpha: float = 1.0
    beta: float = 1.0
    seen: float = 0.0
    win: float = 0.0
    last_updated: datetime = field(default_factory=_utcnow)

    @property
    def mean(self) -> float:
        return beta_mean(self.alpha, self.beta)

    def decay(self, now: datetime, after_days: float, half_life_days: float) -> bool:
        """
        Shrink evidence toward Beta(1, 1) if the arm has been idle too long.

        Returns:
            True if the arm was decayed
        """
        idle_days = (now - self.last_updated).total_seconds() / SECONDS_PER_DAY
        if idle_days <= after_days:
            return False
        factor = 0.5 ** (idle_days / half_life_days)
        self.alpha = 1.0 + (self.alpha - 1.0) * factor
        self.beta = 1.0 + (self.beta - 1.0) * factor
        self.seen *= factor
        self.win *= factor
        self.last_updated = now
        return True

    def record(self, won: bool, now: datetime) -> None:
        self.seen += 1.0
        if won:
            self.win += 1.0
            self.alpha += 1.0
        else:
            self.beta += 1.0
        self.last_updated = now

    def to_dict(self) -> Dict[str, Any]:
        return {
            "variant_id": self.variant_id,
            "alpha": round(self.alpha, 6),
            "beta": round(self.beta, 6),
            "seen": round(self.seen, 6),
            "win": round(self.win, 6),
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, variant_id: str, data: Any, now: datetime) -> "SectionArmStats":
        if not isinstance(data, Mapping):
            return cls(variant_id=variant_id, last_updated=now)
        seen = _num(data.get("seen"), 0.0, 0.0)
        return cls(
            variant_id=variant_id,
            alpha=_num(data.get("alpha"), 1.0, 1.0),
            beta=_num(data.get("beta"), 1.0, 1.0),
            seen=seen,
            win=min(seen, _num(data.get("win"), 0.0, 0.0)),
            last_updated=_parse_time(data.get("last_updated")) or now,
        )


@dataclass
class SectionEntry:
    """All sibling arms competing for one (audience, base section)."""

    siblings: List[str] = field(default_factory=list)
    arms: Dict[str, SectionArmStats] = field(default_factory=dict)

    def ensure(self, variant_id: str, now: datetime) -> SectionArmStats:
        if variant_id not in self.siblings:
            self.siblings.append(variant_id)
        arm = self.arms.get(variant_id)
        if arm is None:
            arm = SectionArmStats(variant_id=variant_id, last_updated=now)
            self.arms[variant_id] = arm
        return arm

    def to_dict(self) -> Dict[str, Any]:
        return {
            "siblings": list(self.siblings),
            "arms": {v: arm.to_dict() for v, arm in self.arms.items()},
        }

    @classmethod
    def from_dict(cls, data: Any, now: datetime) -> Optional["SectionEntry"]:
        if not isinstance(data, Mapping):
            return None
        arms_data = data.get("arms") if isinstance(data.get("arms"), Mapping) else {}
        raw_siblings = data.get("siblings") if isinstance(data.get("siblings"), list) else []
        siblings = [s for s in dict.fromkeys(raw_siblings) if isinstance(s, str)]
        entry = cls()
        for variant in siblings + [str(v) for v in arms_data if str(v) not in siblings]:
            entry.siblings.append(variant)
            entry.arms[variant] = SectionArmStats.from_dict(variant, arms_data.get(variant), now)
        return entry


Document = Dict[str, SectionEntry]


class SectionBandit:
    """
    Per (audience, base section) Thompson-sampling bandit.

    Usage:
        bandit = SectionBandit()
        bandit.seed_variants("hero-basic", "founders", ["hero-basic", "hero-split"])
        variant = bandit.pick_variant("hero-basic", "founders")
        ...
        bandit.record_section_outcome([variant, "pricing-simple"], "founders", won=True)
    """

    def __init__(
        self,
        config: Optional[SectionConfig] = None,
        store: Optional[KeyValueStore] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.config = config or get_section_config()
        self.store = store or get_store()
        self.rng = rng
        self.clock = clock
        self._memory: Document = {}

    # ----- persistence -----

    def _parse(self, doc: Any) -> Document:
        now = self.clock()
        parsed: Document = {}
        if isinstance(doc, Mapping):
            for key, data in doc.items():
                entry = SectionEntry.from_dict(data, now)
                if entry is not None:
                    parsed[str(key)] = entry
        elif doc is not None:
            logger.warning("[SECTIONS] Ignoring malformed section state")
        return parsed

    @staticmethod
    def _serialize(entries: Document) -> Dict[str, Any]:
        return {key: entry.to_dict() for key, entry in entries.items()}

    def _read(self) -> Document:
        result = self.store.get(self.config.store_key)
        if result.ok:
            if result.value is not None:
                self._memory = self._parse(result.value)
        elif result.error is not None and result.error.is_corrupt:
            self._memory = {}
        return self._memory

    def _mutate(self, change: Callable[[Document], Any]) -> Any:
        """
        Apply ``change`` to the stored document, or to memory if the store fails.

        Returns:
            Whatever ``change`` returned
        """
        box: Dict[str, Any] = {}

        def update(doc: Any) -> Dict[str, Any]:
            entries = self._parse(doc)
            box["ret"] = change(entries)
            box["entries"] = entries
            return self._serialize(entries)

        result = self.store.merge(self.config.store_key, update, default={})
        if result.ok:
            self._memory = box["entries"]
            return box["ret"]
        logger.warning(f"[SECTIONS] Change kept in memory only: {result.error}")
        return change(self._memory)

    # ----- operations -----

    def seed_variants(self, base_id: str, audience: str, siblings: Sequence[str]) -> List[str]:
        """
        Ensure Beta(1, 1) arms exist for every sibling. Never overwrites state.

        Returns:
            The full sibling list for the key after seeding
        """
        key = section_key(audience, base_id)
        wanted = [s for s in dict.fromkeys(siblings) if isinstance(s, str) and s]

        def change(entries: Document) -> List[str]:
            now = self.clock()
            entry = entries.setdefault(key, SectionEntry())
            for variant in wanted:
                entry.ensure(variant, now)
            return list(entry.siblings)

        return self._mutate(change)

    def pick_variant(self, section_id: str, audience: str = "all") -> str:
        """
        Choose the variant to render for a base section.

        Returns:
            The winning sibling, or ``section_id`` unchanged when the
            (audience, section) key has never been seeded
        """
        key = section_key(audience, section_id)
        entries = self._read()
        entry = entries.get(key)
        if entry is None or not entry.siblings:
            return section_id

        now = self.clock()
        if any(self._would_decay(entry.arms[v], now) for v in entry.siblings):
            entry = self._apply_decay(key) or entry

        best, best_score = section_id, -math.inf
        for variant in entry.siblings:
            arm = entry.arms[variant]
            score = self._score(arm)
            if score > best_score:
                best, best_score = variant, score
        logger.debug(f"[SECTIONS] {key}: picked {best} (score={best_score:.3f})")
        return best

    def record_section_outcome(
        self,
        section_ids: Sequence[str],
        audience: str,
        won: bool,
    ) -> List[Tuple[str, str]]:
        """
        Credit a page's sections with a conversion (or a non-conversion).

        Each id credits the base whose siblings contain it; an unknown id is
        lazily seeded as its own base. A base is credited at most once per
        call.

        Returns:
            (store key, variant) pairs that were updated
        """
        ids = [s for s in dict.fromkeys(section_ids or []) if isinstance(s, str) and s]
        aud = audience or "all"

        def change(entries: Document) -> List[Tuple[str, str]]:
            now = self.clock()
            credited: List[Tuple[str, str]] = []
            touched = set()
            for variant in ids:
                key = self._base_key_for(entries, aud, variant)
                if key in touched:
                    continue
                touched.add(key)
                entry = entries.setdefault(key, SectionEntry())
                arm = entry.ensure(variant, now)
                arm.decay(now, self.config.decay_after_days, self.config.half_life_days)
                arm.record(bool(won), now)
                credited.append((key, variant))
            return credited

        try:
            credited = self._mutate(change)
        except Exception as e:
            logger.warning(f"[SECTIONS] record_section_outcome failed: {e}")
            return []
        logger.debug(f"[SECTIONS] Recorded won={won} for {credited}")
        return credited

    def get_stats(self, base_id: str, audience: str = "all") -> Dict[str, Any]:
        key = section_key(audience, base_id)
        entry = self._read().get(key)
        if entry is None:
            return {"key": key, "seeded": False, "arms": {}}
        return {
            "key": key,
            "seeded": True,
            "arms": {
                v: {**entry.arms[v].to_dict(), "mean": round(entry.arms[v].mean, 4)}
                for v in entry.siblings
            },
        }

    # ----- internals -----

    def _score(self, arm: SectionArmStats) -> float:
        draw = beta_sample(arm.alpha, arm.beta, self.rng)
        seen = min(arm.seen, float(self.config.explore_cap))
        bonus = self.config.explore_bonus * math.exp(-seen / self.config.explore_tau)
        return draw + bonus + self.config.mean_weight * arm.mean

    def _would_decay(self, arm: SectionArmStats, now: datetime) -> bool:
        idle_days = (now - arm.last_updated).total_seconds() / SECONDS_PER_DAY
        return idle_days > self.config.decay_after_days

    def _apply_decay(self, key: str) -> Optional[SectionEntry]:
        def change(entries: Document) -> Optional[SectionEntry]:
            entry = entries.get(key)
            if entry is None:
                return None
            now = self.clock()
            decayed = [
                v for v in entry.siblings
                if entry.arms[v].decay(now, self.config.decay_after_days, self.config.half_life_days)
            ]
            if decayed:
                logger.info(f"[SECTIONS] Decayed {key}: {decayed}")
            return entry

        return self._mutate(change)

    @staticmethod
    def _base_key_for(entries: Document, audience: str, variant: str) -> str:
        own = section_key(audience, variant)
        if own in entries:
            return own
        prefix = f"{audience}|"
        for key, entry in entries.items():
            if key.startswith(prefix) and variant in entry.arms:
                return key
        return own


# Global bandit instance
_bandit: Optional[SectionBandit] = None


def get_section_bandit(config: Optional[SectionConfig] = None) -> SectionBandit:
    """Get global section bandit instance."""
    global _bandit
    if _bandit is None:
        _bandit = SectionBandit(config=config)
    return _bandit


def reset_section_bandit() -> None:
    """Reset global bandit (mainly for testing)."""
    global _bandit
    _bandit = None


def seed_variants(base_id: str, audience: str, siblings: Sequence[str]) -> List[str]:
    return get_section_bandit().seed_variants(base_id, audience, siblings)


def pick_variant(section_id: str, audience: str = "all") -> str:
    return get_section_bandit().pick_variant(section_id, audience)


def record_section_outcome(section_ids: Sequence[str], audience: str, won: bool) -> List[Tuple[str, str]]:
    return get_section_bandit().record_section_outcome(section_ids, audience, won)
