"""
Goal / industry heuristics for the token search.

Small hand-tuned nudges loaded from ``heuristics.yaml`` next to this module.
A rule matches a candidate when its optional ``tone`` list contains the
candidate tone and its optional ``dark`` flag equals the candidate mode.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config import DesignConfig, get_design_config

logger = logging.getLogger(__name__)

HEURISTICS_PATH = Path(__file__).with_name("heuristics.yaml")


@dataclass
class HeuristicRule:
    bonus: float
    tones: Optional[List[str]] = None
    dark: Optional[bool] = None

    def matches(self, tone: str, dark: bool) -> bool:
        if self.tones is not None and tone not in self.tones:
            return False
        if self.dark is not None and self.dark != dark:
            return False
        return True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeuristicRule":
        tones = data.get("tone")
        if isinstance(tones, str):
            tones = [tones]
        dark = data.get("dark")
        return cls(
            bonus=float(data.get("bonus", 0.0)),
            tones=[str(t).lower() for t in tones] if tones is not None else None,
            dark=bool(dark) if dark is not None else None,
        )


@dataclass
class HeuristicsTable:
    industry: Dict[str, List[HeuristicRule]] = field(default_factory=dict)
    goal: Dict[str, List[HeuristicRule]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "HeuristicsTable":
        if not isinstance(data, dict):
            return cls()

        def section(name: str) -> Dict[str, List[HeuristicRule]]:
            raw = data.get(name) or {}
            return {
                str(k).lower(): [HeuristicRule.from_dict(r) for r in rules if isinstance(r, dict)]
                for k, rules in raw.items()
                if isinstance(rules, list)
            }

        return cls(industry=section("industry"), goal=section("goal"))

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "HeuristicsTable":
        """Load the table from YAML."""
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data)


_table: Optional[HeuristicsTable] = None


def get_heuristics(force_reload: bool = False) -> HeuristicsTable:
    """
    Get the packaged heuristics table.

    A missing or malformed file logs a warning and yields an empty table,
    which means no context bonus at all.
    """
    global _table
    if _table is None or force_reload:
        try:
            _table = HeuristicsTable.from_yaml(HEURISTICS_PATH)
        except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
            logger.warning(f"[DESIGN] Could not load heuristics from {HEURISTICS_PATH}: {e}")
            _table = HeuristicsTable()
    return _table


def goal_industry_bonus(
    tone: str,
    dark: bool,
    goal: Optional[str] = None,
    industry: Optional[str] = None,
    table: Optional[HeuristicsTable] = None,
    config: Optional[DesignConfig] = None,
) -> float:
    """Context bonus for a candidate, capped at ``config.context_cap``."""
    table = table or get_heuristics()
    config = config or get_design_config()
    tone = str(tone).lower()
    bonus = 0.0
    for rules in (
        table.industry.get(str(industry or "").lower(), []),
        table.goal.get(str(goal or "").lower(), []),
    ):
        for rule in rules:
            if rule.matches(tone, bool(dark)):
                bonus += rule.bonus
    return min(config.context_cap, bonus)
