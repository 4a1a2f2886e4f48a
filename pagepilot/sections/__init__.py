"""
Sections Module for PagePilot.

Per-audience Thompson sampling over content-block variants with
exploration bonus and time decay.
"""

from .config import SectionConfig, get_section_config, reset_section_config
from .bandit import (
    SectionArmStats,
    SectionBandit,
    SectionEntry,
    get_section_bandit,
    reset_section_bandit,
    section_key,
    seed_variants,
    pick_variant,
    record_section_outcome,
)

__all__ = [
    "SectionConfig",
    "get_section_config",
    "reset_section_config",
    "SectionArmStats",
    "SectionBandit",
    "SectionEntry",
    "get_section_bandit",
    "reset_section_bandit",
    "section_key",
    "seed_variants",
    "pick_variant",
    "record_section_outcome",
]
