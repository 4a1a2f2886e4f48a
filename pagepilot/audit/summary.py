"""
Guardrail Audit Summariser for PagePilot.

Each publish decision appends one JSON row to an audit log, e.g.

    {"mode": "allow", "ms": 42, "pii_present": false, "abuse_reasons": []}

summarize_sup_audit folds rows into counts, mode buckets and latency
statistics; derive_sup_rates turns the counts into percentages for
dashboards. Malformed rows are skipped one at a time.
"""

import json
import logging
import math
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator

logger = logging.getLogger(__name__)

MODES = ("allow", "strict", "block")
DEFAULT_WINDOW = 1000


class SupAuditRow(BaseModel):
    """One audit record. Unusable fields degrade to their empty value."""

    model_config = ConfigDict(extra="ignore")

    mode: str = ""
    ms: Optional[float] = None
    pii_present: bool = False
    abuse_reasons: List[Any] = []

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, v: Any) -> str:
        return v.strip().lower() if isinstance(v, str) else ""

    @field_validator("ms", mode="before")
    @classmethod
    def _latency(cls, v: Any) -> Optional[float]:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        try:
            v = float(v)
        except OverflowError:
            return None
        if not math.isfinite(v) or v < 0:
            return None
        return v

    @field_validator("pii_present", mode="before")
    @classmethod
    def _truthy(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("abuse_reasons", mode="before")
    @classmethod
    def _reasons(cls, v: Any) -> List[Any]:
        return list(v) if isinstance(v, (list, tuple)) else []

    @property
    def bucket(self) -> str:
        return self.mode if self.mode in MODES else "other"


@dataclass
class SupSummary:
    total: int = 0
    modes: Dict[str, int] = field(default_factory=lambda: {"allow": 0, "strict": 0, "block": 0, "other": 0})
    avg_ms: Optional[float] = None
    p95_ms: Optional[float] = None
    pii_present: int = 0
    abuse_with_reasons: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "modes": dict(self.modes),
            "avg_ms": self.avg_ms,
            "p95_ms": self.p95_ms,
            "pii_present": self.pii_present,
            "abuse_with_reasons": self.abuse_with_reasons,
        }


def _as_mapping(raw: Any) -> Optional[Dict[str, Any]]:
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    return raw if isinstance(raw, dict) else None


def nearest_rank_p95(values: List[float]) -> Optional[float]:
    """95th percentile by nearest rank: sorted[floor(0.95 * (n - 1))]."""
    if not values:
        return None
    ordered = sorted(values)
    return ordered[int(math.floor(0.95 * (len(ordered) - 1)))]


def summarize_sup_audit(rows: Optional[Iterable[Any]]) -> SupSummary:
    """
    Summarise audit rows.

    Args:
        rows: Dicts or JSON strings; anything that does not decode to an
            object is skipped

    Returns:
        SupSummary; ``avg_ms`` and ``p95_ms`` are None when no row carried
        a usable latency
    """
    summary = SupSummary()
    latencies: List[float] = []

    for raw in rows or []:
        data = _as_mapping(raw)
        if data is None:
            continue
        row = SupAuditRow.model_validate(data)
        summary.total += 1
        summary.modes[row.bucket] += 1
        if row.ms is not None:
            latencies.append(row.ms)
        if row.pii_present:
            summary.pii_present += 1
        if row.abuse_reasons:
            summary.abuse_with_reasons += 1

    if latencies:
        summary.avg_ms = float(np.mean(latencies))
        summary.p95_ms = nearest_rank_p95(latencies)
    return summary


def derive_sup_rates(summary: Optional[SupSummary]) -> Dict[str, Optional[float]]:
    """
    Percentages of total, rounded to 2 places. All None for an empty summary.
    """
    keys = ("allow_pct", "strict_pct", "block_pct", "other_pct", "pii_pct", "abuse_pct")
    if summary is None or summary.total == 0:
        return {k: None for k in keys}

    def pct(n: int) -> float:
        return round(n / summary.total * 100, 2)

    return {
        "allow_pct": pct(summary.modes["allow"]),
        "strict_pct": pct(summary.modes["strict"]),
        "block_pct": pct(summary.modes["block"]),
        "other_pct": pct(summary.modes["other"]),
        "pii_pct": pct(summary.pii_present),
        "abuse_pct": pct(summary.abuse_with_reasons),
    }


def load_sup_audit_rows(path: Union[str, Path], window: int = DEFAULT_WINDOW) -> List[Dict[str, Any]]:
    """
    Read the last ``window`` rows of a JSONL audit log.

    Best effort: a missing or unreadable file yields an empty list and
    undecodable lines are dropped.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"[AUDIT] No audit log at {path}")
        return []
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            tail = deque(f, maxlen=max(1, int(window)))
    except OSError as e:
        logger.warning(f"[AUDIT] Could not read {path}: {e}")
        return []

    rows: List[Dict[str, Any]] = []
    skipped = 0
    for line in tail:
        line = line.strip()
        if not line:
            continue
        data = _as_mapping(line)
        if data is None:
            skipped += 1
            continue
        rows.append(data)
    if skipped:
        logger.debug(f"[AUDIT] Skipped {skipped} malformed lines in {path}")
    return rows
